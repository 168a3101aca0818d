"""
Local ledger - an in-process network hosting one contract.

Implements the Network protocol without a node: calldata is decoded with
the contract schema, dispatched to a Python contract object, and results
are encoded back to wire bytes, exactly as a remote node would return
them. Useful for development, demos and tests.

Ledger rules:
- Simulation runs against a deep copy of contract state and never
  mutates the ledger.
- Submission decodes the signed transaction, recovers its sender and
  rejects it unless the transaction id, calldata, target, nonce, gas and
  chain id it commits to are those of the submitted call. It then
  enforces the account nonce (exactly once), estimate expiry (ledger
  sequence) and gas sufficiency before executing.
- Inclusion runs as its own task, so a caller that stops waiting does
  not cancel it; the outcome stays queryable by transaction id.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import rlp
from eth_account import Account
from rlp.exceptions import DecodingError

from ..config import DEFAULT_CHAIN_ID
from ..errors import CodecError, SimulationError
from ..utils import keccak256, same_address, to_checksum_address, unix_now
from .abi import ContractSchema
from .call import CallDescriptor
from .codec import decode_call, encode_result
from .tx import CostEstimate, Inclusion, RejectReason, Simulation, SignedCall

logger = logging.getLogger(__name__)

BASE_GAS = 21_000
GAS_PER_CALLDATA_BYTE = 16
EXECUTION_GAS = 40_000
DEFAULT_GAS_PRICE = 1_000_000_000
DEFAULT_ESTIMATE_TTL = 100  # ledger sequences


class ContractAbort(Exception):
    """Raised by contract code to abort a call."""

    def __init__(self, message: str, reason: str = "aborted") -> None:
        super().__init__(message)
        self.reason = reason


@dataclass(frozen=True)
class CallContext:
    sender: str
    timestamp: int
    sequence: int


def required_gas(calldata: bytes) -> int:
    return BASE_GAS + GAS_PER_CALLDATA_BYTE * len(calldata) + EXECUTION_GAS


@dataclass(frozen=True)
class SignedFields:
    """Fields a signed legacy transaction commits to."""

    nonce: int
    gas_price: int
    gas: int
    to: str
    value: int
    data: bytes
    chain_id: Optional[int]


def decode_legacy_transaction(raw: bytes) -> SignedFields:
    """
    Decode an RLP-encoded legacy (EIP-155) transaction.

    Raises:
        ValueError: If ``raw`` is not a nine-field legacy transaction
    """
    try:
        items = rlp.decode(raw)
    except (DecodingError, IndexError) as exc:
        raise ValueError(f"undecodable transaction: {exc}") from exc
    if not isinstance(items, (list, tuple)) or len(items) != 9 or not all(isinstance(i, bytes) for i in items):
        raise ValueError("not a legacy transaction")
    nonce, gas_price, gas, to, value, data, v, _r, _s = items
    if len(to) != 20:
        raise ValueError("transaction has no 20-byte recipient")
    v_int = int.from_bytes(v, "big")
    return SignedFields(
        nonce=int.from_bytes(nonce, "big"),
        gas_price=int.from_bytes(gas_price, "big"),
        gas=int.from_bytes(gas, "big"),
        to="0x" + to.hex(),
        value=int.from_bytes(value, "big"),
        data=bytes(data),
        # EIP-155: v = chain_id * 2 + 35 + recovery id
        chain_id=(v_int - 35) // 2 if v_int >= 35 else None,
    )


def _payload_mismatches(fields: SignedFields, descriptor: CallDescriptor, estimate: CostEstimate) -> list[str]:
    checks = {
        "to": same_address(fields.to, descriptor.contract_address),
        "data": fields.data == descriptor.calldata,
        "value": fields.value == 0,
        "nonce": fields.nonce == estimate.nonce,
        "gas": fields.gas == estimate.gas_limit,
        "gasPrice": fields.gas_price == estimate.gas_price,
        "chainId": fields.chain_id == descriptor.chain_id,
    }
    return [name for name, ok in checks.items() if not ok]


class LocalLedger:
    """
    In-process ledger hosting a single contract.

    Args:
        contract: Contract object; one method per schema method, each
            taking a CallContext followed by the method's arguments
        schema: Contract schema used to decode calls and encode results
        contract_address: Address the contract is "deployed" at
        chain_id: Chain id accepted by this ledger
        clock: Returns the ledger timestamp in seconds
        inclusion_delay: Seconds between submission and inclusion
        estimate_ttl: Ledger sequences an estimate stays valid for
    """

    def __init__(
        self,
        contract: Any,
        schema: ContractSchema,
        *,
        contract_address: str,
        chain_id: int = DEFAULT_CHAIN_ID,
        clock: Callable[[], int] = unix_now,
        inclusion_delay: float = 0.0,
        estimate_ttl: int = DEFAULT_ESTIMATE_TTL,
        gas_price: int = DEFAULT_GAS_PRICE,
    ) -> None:
        self._contract = contract
        self._schema = schema
        self._address = to_checksum_address(contract_address)
        self._chain_id = chain_id
        self._clock = clock
        self._inclusion_delay = inclusion_delay
        self._estimate_ttl = estimate_ttl
        self._gas_price = gas_price
        self._sequence = 0
        self._nonces: dict[str, int] = {}
        self._outcomes: dict[str, Inclusion] = {}
        self._pending: dict[str, asyncio.Task] = {}

    @property
    def contract(self) -> Any:
        return self._contract

    @property
    def contract_address(self) -> str:
        return self._address

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def sequence(self) -> int:
        return self._sequence

    def nonce_of(self, address: str) -> int:
        return self._nonces.get(address.lower(), 0)

    def advance(self, sequences: int = 1) -> None:
        """Close empty ledgers (ages outstanding estimates)."""
        self._sequence += sequences

    # ------------------------------------------------------------------
    # Network protocol
    # ------------------------------------------------------------------

    async def simulate(self, descriptor: CallDescriptor) -> Simulation:
        self._check_target(descriptor)
        sandbox = copy.deepcopy(self._contract)
        try:
            data = self._execute(sandbox, descriptor.calldata, descriptor.account)
        except ContractAbort as exc:
            raise SimulationError(
                f"{descriptor.method.name} would abort: {exc}", reason=exc.reason
            ) from exc
        estimate = CostEstimate(
            gas_limit=required_gas(descriptor.calldata),
            gas_price=self._gas_price,
            nonce=self.nonce_of(descriptor.account),
            valid_until=self._sequence + self._estimate_ttl,
        )
        return Simulation(result_data=data, estimate=estimate)

    async def submit(self, signed: SignedCall) -> Inclusion:
        tx_id = "0x" + keccak256(signed.raw_transaction).hex()
        if tx_id != signed.tx_id:
            return self._reject(signed, RejectReason.UNKNOWN, f"transaction id does not match payload ({tx_id})")
        if tx_id in self._outcomes:
            return Inclusion(
                tx_id=tx_id,
                success=False,
                reason=RejectReason.DUPLICATE,
                detail="transaction already processed",
            )
        task = self._pending.get(tx_id)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._include(signed))
            self._pending[tx_id] = task
        return await asyncio.shield(task)

    async def get_status(self, tx_id: str) -> Optional[Inclusion]:
        return self._outcomes.get(tx_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_target(self, descriptor: CallDescriptor) -> None:
        if not same_address(descriptor.contract_address, self._address):
            raise SimulationError(
                f"No contract at {descriptor.contract_address}", reason="unknown_contract"
            )
        if descriptor.chain_id != self._chain_id:
            raise SimulationError(
                f"Wrong chain id {descriptor.chain_id} (ledger is {self._chain_id})",
                reason="wrong_chain",
            )

    def _execute(self, contract: Any, calldata: bytes, sender: str) -> bytes:
        try:
            method, args = decode_call(self._schema, calldata)
        except CodecError as exc:
            raise ContractAbort(str(exc), reason="bad_calldata") from exc
        ctx = CallContext(sender=sender, timestamp=self._clock(), sequence=self._sequence)
        handler = getattr(contract, method.name)
        value = handler(ctx, **{p.name: v for p, v in zip(method.inputs, args)})
        return encode_result(method, value)

    async def _include(self, signed: SignedCall) -> Inclusion:
        try:
            if self._inclusion_delay:
                await asyncio.sleep(self._inclusion_delay)
            inclusion = self._apply(signed)
            self._outcomes[signed.tx_id] = inclusion
            return inclusion
        finally:
            self._pending.pop(signed.tx_id, None)

    def _reject(self, signed: SignedCall, reason: RejectReason, detail: str) -> Inclusion:
        logger.debug("Ledger rejected %s: %s (%s)", signed.tx_id, reason.value, detail)
        return Inclusion(tx_id=signed.tx_id, success=False, reason=reason, detail=detail)

    def _apply(self, signed: SignedCall) -> Inclusion:
        descriptor, estimate = signed.descriptor, signed.estimate
        try:
            fields = decode_legacy_transaction(signed.raw_transaction)
            sender = Account.recover_transaction(signed.raw_transaction)
        except Exception as exc:
            return self._reject(signed, RejectReason.UNKNOWN, f"invalid signature: {exc}")
        # Execution uses descriptor and estimate; both must be what was signed.
        mismatches = _payload_mismatches(fields, descriptor, estimate)
        if mismatches:
            return self._reject(
                signed, RejectReason.UNKNOWN, f"signed payload differs in {', '.join(mismatches)}"
            )
        if not same_address(sender, descriptor.account):
            return self._reject(signed, RejectReason.UNKNOWN, "signature does not match account")
        if descriptor.chain_id != self._chain_id or not same_address(descriptor.contract_address, self._address):
            return self._reject(signed, RejectReason.UNKNOWN, "wrong chain or contract")

        expected_nonce = self.nonce_of(sender)
        if estimate.nonce != expected_nonce:
            return self._reject(
                signed,
                RejectReason.CONFLICTING_STATE,
                f"nonce {estimate.nonce} is stale (account is at {expected_nonce})",
            )
        if estimate.valid_until is not None and self._sequence > estimate.valid_until:
            return self._reject(
                signed,
                RejectReason.EXPIRED_ESTIMATE,
                f"estimate valid until {estimate.valid_until}, ledger at {self._sequence}",
            )
        needed = required_gas(descriptor.calldata)
        if estimate.gas_limit < needed:
            return self._reject(
                signed,
                RejectReason.INSUFFICIENT_RESOURCES,
                f"gas limit {estimate.gas_limit} below {needed}",
            )

        # A reverted call still consumes the nonce and closes a ledger.
        self._nonces[sender.lower()] = expected_nonce + 1
        self._sequence += 1

        working = copy.deepcopy(self._contract)
        try:
            data = self._execute(working, descriptor.calldata, sender)
        except ContractAbort as exc:
            return Inclusion(
                tx_id=signed.tx_id,
                success=False,
                reason=RejectReason.REVERTED,
                detail=str(exc),
                block=self._sequence,
            )
        self._contract = working
        return Inclusion(tx_id=signed.tx_id, success=True, result_data=data, block=self._sequence)
