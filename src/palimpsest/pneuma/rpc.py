"""
JSON-RPC network adapter for EVM nodes.

Lightweight alternative to web3.py: async httpx for HTTP, eth-abi (via the
codec) for payloads. Implements the Network protocol:

    simulate    eth_call (+ eth_estimateGas, eth_gasPrice and
                eth_getTransactionCount for mutating calls)
    submit      eth_sendRawTransaction, then wait for the receipt
    get_status  eth_getTransactionReceipt

Node error messages are classified into RejectReasons. Transport failures
raise NetworkError. Nothing here retries a failed request.

This adapter stands in for the external network client: receipt polling
in ``submit`` happens here, outside the record store and the assembler,
which only await the Network protocol.

A confirmed EVM receipt carries no return data, so a confirmed call keeps
the result of its ``eth_call`` simulation against "latest".
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Optional

import httpx

from ..config import DEFAULT_RPC_URL
from ..errors import NetworkError, SimulationError
from .call import CallDescriptor
from .tx import CostEstimate, Inclusion, RejectReason, Simulation, SignedCall

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 2.0
# Headroom over eth_estimateGas (x1.2)
GAS_MARGIN_NUM, GAS_MARGIN_DEN = 6, 5

_request_ids = itertools.count(1)

# (substring of the node's error message, reason); first match wins
_ERROR_PATTERNS: tuple[tuple[str, RejectReason], ...] = (
    ("already known", RejectReason.DUPLICATE),
    ("known transaction", RejectReason.DUPLICATE),
    ("already imported", RejectReason.DUPLICATE),
    ("nonce too low", RejectReason.CONFLICTING_STATE),
    ("nonce too high", RejectReason.CONFLICTING_STATE),
    ("replacement transaction underpriced", RejectReason.CONFLICTING_STATE),
    ("insufficient funds", RejectReason.INSUFFICIENT_RESOURCES),
    ("intrinsic gas too low", RejectReason.INSUFFICIENT_RESOURCES),
    ("out of gas", RejectReason.INSUFFICIENT_RESOURCES),
    ("exceeds block gas limit", RejectReason.INSUFFICIENT_RESOURCES),
    ("underpriced", RejectReason.EXPIRED_ESTIMATE),
    ("less than block base fee", RejectReason.EXPIRED_ESTIMATE),
    ("execution reverted", RejectReason.REVERTED),
)


class JsonRpcError(NetworkError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, method: str, code: Optional[int], message: str, data: Any = None) -> None:
        super().__init__(
            f"{method} failed: {message}",
            reason="rpc_error",
            details={"code": code, "data": data},
        )
        self.method = method
        self.code = code
        self.rpc_message = message
        self.data = data


def classify_rpc_error(message: str) -> RejectReason:
    """Map a node's rejection message to a RejectReason."""
    lowered = message.lower()
    for pattern, reason in _ERROR_PATTERNS:
        if pattern in lowered:
            return reason
    return RejectReason.UNKNOWN


def _hex_int(value: str) -> int:
    return int(value, 16)


def _hex_bytes(value: Optional[str]) -> bytes:
    if not value:
        return b""
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


class JsonRpcNetwork:
    """
    Network backed by an EVM JSON-RPC endpoint.

    Args:
        rpc_url: Endpoint URL (default: Base Sepolia)
        transport: Optional httpx transport (e.g. httpx.MockTransport)
        http_timeout: Per-request HTTP timeout in seconds
        poll_interval: Seconds between receipt polls while waiting
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http_timeout: float = DEFAULT_HTTP_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._url = rpc_url
        self._transport = transport
        self._http_timeout = http_timeout
        self._poll_interval = poll_interval

    @property
    def url(self) -> str:
        return self._url

    async def _rpc_call(self, method: str, params: list) -> Any:
        """
        Make a JSON-RPC call.

        Returns:
            Result field from the RPC response

        Raises:
            JsonRpcError: The node returned an error object
            NetworkError: Transport failure or a malformed response
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(_request_ids),
        }
        try:
            async with httpx.AsyncClient(timeout=self._http_timeout, transport=self._transport) as client:
                response = await client.post(self._url, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise NetworkError(f"{method}: {exc}", reason="transport") from exc
        except ValueError as exc:
            raise NetworkError(f"{method}: response is not JSON", reason="bad_response") from exc

        if not isinstance(data, dict):
            raise NetworkError(f"{method}: unexpected response {data!r}", reason="bad_response")
        if "error" in data:
            error = data["error"] or {}
            raise JsonRpcError(method, error.get("code"), str(error.get("message", error)), error.get("data"))
        return data.get("result")

    # ------------------------------------------------------------------
    # Network protocol
    # ------------------------------------------------------------------

    async def simulate(self, descriptor: CallDescriptor) -> Simulation:
        call = descriptor.to_call_object()
        try:
            if not descriptor.mutates:
                result = await self._rpc_call("eth_call", [call, "latest"])
                return Simulation(result_data=_hex_bytes(result))

            result, gas, gas_price, nonce = await asyncio.gather(
                self._rpc_call("eth_call", [call, "latest"]),
                self._rpc_call("eth_estimateGas", [call]),
                self._rpc_call("eth_gasPrice", []),
                self._rpc_call("eth_getTransactionCount", [descriptor.account, "pending"]),
            )
        except JsonRpcError as exc:
            raise SimulationError(
                f"{descriptor.method.name} would fail: {exc.rpc_message}",
                reason=classify_rpc_error(exc.rpc_message).value,
                details={"code": exc.code, "data": exc.data},
            ) from exc

        estimate = CostEstimate(
            gas_limit=_hex_int(gas) * GAS_MARGIN_NUM // GAS_MARGIN_DEN,
            gas_price=_hex_int(gas_price),
            nonce=_hex_int(nonce),
        )
        return Simulation(result_data=_hex_bytes(result), estimate=estimate)

    async def submit(self, signed: SignedCall) -> Inclusion:
        try:
            tx_hash = await self._rpc_call("eth_sendRawTransaction", ["0x" + signed.raw_transaction.hex()])
        except JsonRpcError as exc:
            reason = classify_rpc_error(exc.rpc_message)
            logger.debug("Node refused %s: %s", signed.tx_id, exc.rpc_message)
            return Inclusion(tx_id=signed.tx_id, success=False, reason=reason, detail=exc.rpc_message)

        if tx_hash and tx_hash.lower() != signed.tx_id.lower():
            logger.warning("Node reported hash %s for %s", tx_hash, signed.tx_id)

        while True:
            inclusion = await self.get_status(signed.tx_id)
            if inclusion is not None:
                return inclusion
            await asyncio.sleep(self._poll_interval)

    async def get_status(self, tx_id: str) -> Optional[Inclusion]:
        receipt = await self._rpc_call("eth_getTransactionReceipt", [tx_id])
        if receipt is None:
            return None
        return _parse_receipt(tx_id, receipt)


def _parse_receipt(tx_id: str, receipt: dict[str, Any]) -> Inclusion:
    block = receipt.get("blockNumber")
    block_number = _hex_int(block) if block else None
    if receipt.get("status") == "0x1":
        # Receipts carry no return data; the assembler keeps the simulated result.
        return Inclusion(tx_id=tx_id, success=True, block=block_number)
    return Inclusion(
        tx_id=tx_id,
        success=False,
        reason=RejectReason.REVERTED,
        detail="execution reverted",
        block=block_number,
    )
