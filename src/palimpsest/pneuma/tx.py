"""
Transaction Assembler - The two-phase simulate / sign+submit protocol.

Every call starts as a built descriptor and is simulated against current
ledger state. Read-only calls stop there: the simulated result is final
and no signature is needed. Mutating calls continue through signing and
submission until the network confirms or rejects them.

    BUILT -> SIMULATED -> SIGNED -> SUBMITTED -> CONFIRMED | REJECTED

Transitions outside that graph raise InvalidTransitionError. Nothing here
retries: a rejected or expired transaction needs a fresh descriptor.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Generic, Optional, Protocol, TypeVar, Union, runtime_checkable

from ..config import DEFAULT_SUBMIT_TIMEOUT
from ..errors import (
    AlreadySubmittedError,
    InvalidArgumentError,
    InvalidTransitionError,
    SigningError,
    SimulationError,
    SubmissionError,
    TransactionTimeoutError,
)
from ..utils import same_address
from .call import CallDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TxState(str, Enum):
    BUILT = "built"
    SIMULATED = "simulated"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


_TRANSITIONS: dict[TxState, frozenset[TxState]] = {
    TxState.BUILT: frozenset({TxState.SIMULATED}),
    TxState.SIMULATED: frozenset({TxState.SIGNED}),
    TxState.SIGNED: frozenset({TxState.SUBMITTED}),
    TxState.SUBMITTED: frozenset({TxState.CONFIRMED, TxState.REJECTED}),
    TxState.CONFIRMED: frozenset(),
    TxState.REJECTED: frozenset(),
}


class RejectReason(str, Enum):
    INSUFFICIENT_RESOURCES = "insufficient_resources"
    CONFLICTING_STATE = "conflicting_state"
    EXPIRED_ESTIMATE = "expired_estimate"
    REVERTED = "reverted"
    DUPLICATE = "duplicate"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CostEstimate:
    """
    Resource estimate returned by simulation.

    Attributes:
        gas_limit: Gas units reserved for execution
        gas_price: Price per gas unit (wei)
        nonce: Account sequence number; the network accepts it exactly once
        valid_until: Last ledger sequence at which the estimate is valid
            (None when the network does not expire estimates)
    """
    gas_limit: int
    gas_price: int
    nonce: int
    valid_until: Optional[int] = None

    @property
    def max_fee(self) -> int:
        return self.gas_limit * self.gas_price


@dataclass(frozen=True)
class Simulation:
    result_data: bytes
    estimate: Optional[CostEstimate] = None


@dataclass(frozen=True)
class SignedCall:
    descriptor: CallDescriptor
    estimate: CostEstimate
    raw_transaction: bytes
    tx_id: str


@dataclass(frozen=True)
class Inclusion:
    tx_id: str
    success: bool
    result_data: Optional[bytes] = None
    reason: Optional[RejectReason] = None
    detail: Optional[str] = None
    block: Optional[int] = None


class Network(Protocol):
    """Remote execution platform exposing simulate and submit."""

    async def simulate(self, descriptor: CallDescriptor) -> Simulation:
        """Dry-run a call. Raises SimulationError if it would not succeed."""
        ...

    async def submit(self, signed: SignedCall) -> Inclusion:
        """Send a signed call and wait until it is included or refused."""
        ...

    async def get_status(self, tx_id: str) -> Optional[Inclusion]:
        """Outcome of a previously submitted call, or None while pending."""
        ...


@runtime_checkable
class Signer(Protocol):
    """Credential holder for the calling account."""

    @property
    def address(self) -> str:
        ...

    def sign(
        self, descriptor: CallDescriptor, estimate: CostEstimate
    ) -> Union[SignedCall, Awaitable[SignedCall]]:
        ...


class AssembledTransaction(Generic[T]):
    """
    One call moving through the simulate / sign / submit protocol.

    Args:
        descriptor: Built call
        network: Network to simulate and submit against
        timeout: Default seconds to wait for inclusion on submit()
    """

    def __init__(
        self,
        descriptor: CallDescriptor,
        network: Network,
        *,
        timeout: float = DEFAULT_SUBMIT_TIMEOUT,
    ) -> None:
        if timeout is None or timeout <= 0:
            raise InvalidArgumentError("timeout must be a positive number of seconds", field="timeout")
        self._descriptor = descriptor
        self._network = network
        self._timeout = timeout
        self._state = TxState.BUILT
        self._result: Any = None
        self._estimate: Optional[CostEstimate] = None
        self._signed: Optional[SignedCall] = None
        self._inclusion: Optional[Inclusion] = None

    def __repr__(self) -> str:
        return (
            f"AssembledTransaction({self._descriptor.method.name}, "
            f"state={self._state.value}, tx_id={self.tx_id})"
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def descriptor(self) -> CallDescriptor:
        return self._descriptor

    @property
    def state(self) -> TxState:
        return self._state

    @property
    def is_read_only(self) -> bool:
        return not self._descriptor.mutates

    @property
    def is_final(self) -> bool:
        """True once ``result`` is authoritative."""
        if self.is_read_only:
            return self._state is TxState.SIMULATED
        return self._state is TxState.CONFIRMED

    @property
    def result(self) -> T:
        """Simulated (provisional) or confirmed (final) result."""
        if self._state is TxState.BUILT:
            raise InvalidTransitionError("No result before simulation", reason="not_simulated")
        return self._result

    @property
    def estimate(self) -> Optional[CostEstimate]:
        return self._estimate

    @property
    def tx_id(self) -> Optional[str]:
        return self._signed.tx_id if self._signed else None

    @property
    def inclusion(self) -> Optional[Inclusion]:
        return self._inclusion

    # ------------------------------------------------------------------
    # Protocol steps
    # ------------------------------------------------------------------

    async def simulate(self) -> T:
        """
        Dry-run the call against current ledger state.

        Returns:
            Decoded result: final for read-only calls, a preview otherwise

        Raises:
            SimulationError: If the call would not succeed
            CodecError: If the returned data does not match the schema
        """
        self._check(TxState.SIMULATED)
        simulation = await self._network.simulate(self._descriptor)
        result = self._descriptor.decode(simulation.result_data)
        if self._descriptor.mutates and simulation.estimate is None:
            raise SimulationError(
                f"{self._descriptor.method.name}: network returned no cost estimate",
                reason="missing_estimate",
            )
        self._estimate = simulation.estimate
        self._result = result
        self._advance(TxState.SIMULATED)
        return result

    async def sign(self, signer: Signer) -> SignedCall:
        """
        Have the account's credential holder sign the simulated call.

        Raises:
            InvalidTransitionError: Read-only call, or not yet simulated
            SigningError: Wrong account, or the signer failed
        """
        if self.is_read_only:
            raise InvalidTransitionError(
                f"{self._descriptor.method.name} is read-only; its simulated result is final",
                reason="read_only",
            )
        self._check(TxState.SIGNED)
        if not same_address(signer.address, self._descriptor.account):
            raise SigningError(
                f"Signer {signer.address} cannot sign for {self._descriptor.account}",
                reason="account_mismatch",
            )
        try:
            signed = signer.sign(self._descriptor, self._estimate)
            if inspect.isawaitable(signed):
                signed = await signed
        except SigningError:
            raise
        except Exception as exc:
            raise SigningError(f"Signer failed: {exc}", reason="signer_failed") from exc

        self._signed = signed
        self._advance(TxState.SIGNED)
        return signed

    async def submit(self, timeout: Optional[float] = None) -> T:
        """
        Send the signed call and wait for inclusion.

        Args:
            timeout: Seconds to wait (default: the constructor's timeout)

        Returns:
            Final decoded result

        Raises:
            AlreadySubmittedError: Submitted before (whatever the outcome)
            InvalidTransitionError: Not signed yet
            SubmissionError: The network rejected the transaction
            TransactionTimeoutError: No outcome within the wait; the
                transaction may still land, use refresh() to find out
        """
        if self._state in (TxState.SUBMITTED, TxState.CONFIRMED, TxState.REJECTED):
            raise AlreadySubmittedError(
                f"Transaction {self.tx_id} was already submitted ({self._state.value})",
                reason=self._state.value,
                details={"tx_id": self.tx_id},
            )
        self._check(TxState.SUBMITTED)
        wait = timeout if timeout is not None else self._timeout
        if wait <= 0:
            raise InvalidArgumentError("timeout must be a positive number of seconds", field="timeout")

        self._advance(TxState.SUBMITTED)
        logger.info("Submitted %s as %s", self._descriptor.method.name, self.tx_id)
        try:
            inclusion = await asyncio.wait_for(self._network.submit(self._signed), timeout=wait)
        except asyncio.TimeoutError:
            logger.warning("Transaction %s unresolved after %.1fs", self.tx_id, wait)
            raise TransactionTimeoutError(
                f"Transaction {self.tx_id} not resolved within {wait}s",
                tx_id=self.tx_id,
                transaction=self,
            ) from None
        return self._resolve(inclusion)

    async def sign_and_send(self, signer: Signer, timeout: Optional[float] = None) -> T:
        """Simulate if needed, then sign and submit."""
        if self._state is TxState.BUILT:
            await self.simulate()
        await self.sign(signer)
        return await self.submit(timeout=timeout)

    async def refresh(self) -> TxState:
        """
        Ask the network for the outcome of a submitted transaction.

        Use after a TransactionTimeoutError. A rejection is reflected in
        ``state`` and ``inclusion``; the final result in ``result``.
        """
        if self._state is not TxState.SUBMITTED:
            return self._state
        inclusion = await self._network.get_status(self.tx_id)
        if inclusion is not None:
            self._record(inclusion)
        return self._state

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check(self, target: TxState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise InvalidTransitionError(
                f"Cannot move {self._descriptor.method.name} from {self._state.value} to {target.value}",
                reason=f"{self._state.value}->{target.value}",
            )

    def _advance(self, target: TxState) -> None:
        self._check(target)
        logger.debug(
            "%s: %s -> %s", self._descriptor.method.name, self._state.value, target.value
        )
        self._state = target

    def _record(self, inclusion: Inclusion) -> None:
        self._inclusion = inclusion
        if inclusion.success:
            self._advance(TxState.CONFIRMED)
            if inclusion.result_data is not None:
                self._result = self._descriptor.decode(inclusion.result_data)
            logger.info("Confirmed %s (%s)", self._descriptor.method.name, inclusion.tx_id)
        else:
            self._advance(TxState.REJECTED)
            logger.warning(
                "Rejected %s (%s): %s",
                self._descriptor.method.name,
                inclusion.tx_id,
                (inclusion.reason or RejectReason.UNKNOWN).value,
            )

    def _resolve(self, inclusion: Inclusion) -> T:
        self._record(inclusion)
        if self._state is TxState.CONFIRMED:
            return self._result
        reason = inclusion.reason or RejectReason.UNKNOWN
        if reason is RejectReason.DUPLICATE:
            raise AlreadySubmittedError(
                f"Transaction {inclusion.tx_id} was already included",
                reason=reason.value,
                details={"tx_id": inclusion.tx_id},
            )
        raise SubmissionError(
            f"{self._descriptor.method.name} rejected: {inclusion.detail or reason.value}",
            reason=reason.value,
            tx_id=inclusion.tx_id,
        )
