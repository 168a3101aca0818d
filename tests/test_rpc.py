"""Tests for the JSON-RPC network adapter using httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

import httpx
import pytest

from palimpsest.codex.store import RecordStore
from palimpsest.config import DEFAULT_CHAIN_ID
from palimpsest.errors import CodecError, NetworkError, SimulationError, SubmissionError
from palimpsest.pneuma.abi import parse_shape
from palimpsest.pneuma.codec import encode_value
from palimpsest.pneuma.rpc import JsonRpcError, JsonRpcNetwork, classify_rpc_error
from palimpsest.pneuma.tx import RejectReason
from palimpsest.sigil.eth import LocalSigner
from palimpsest.utils import keccak256

from .conftest import CONTRACT_ADDRESS

RPC_URL = "https://rpc.test"
TX_ID = "0x" + "ab" * 32


class FakeNode:
    """Answers JSON-RPC requests from a method -> result table."""

    def __init__(self) -> None:
        self.results: dict[str, Any] = {
            "eth_estimateGas": hex(100_000),
            "eth_gasPrice": hex(1_000_000_000),
            "eth_getTransactionCount": hex(7),
        }
        self.errors: dict[str, dict[str, Any]] = {}
        self.receipts: list[Optional[dict[str, Any]]] = []
        self.calls: list[str] = []
        self.raw_transactions: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body["method"]
        self.calls.append(method)
        reply: dict[str, Any] = {"jsonrpc": "2.0", "id": body["id"]}
        if method in self.errors:
            reply["error"] = self.errors[method]
        elif method == "eth_sendRawTransaction":
            raw = body["params"][0]
            self.raw_transactions.append(raw)
            reply["result"] = "0x" + keccak256(bytes.fromhex(raw[2:])).hex()
        elif method == "eth_getTransactionReceipt":
            reply["result"] = self.receipts.pop(0) if self.receipts else None
        else:
            reply["result"] = self.results.get(method)
        return httpx.Response(200, json=reply)


def _network(handler: Callable[[httpx.Request], httpx.Response]) -> JsonRpcNetwork:
    return JsonRpcNetwork(RPC_URL, transport=httpx.MockTransport(handler), poll_interval=0)


@pytest.fixture()
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture()
def rpc_store(node: FakeNode, signer: LocalSigner) -> RecordStore:
    return RecordStore(_network(node.handler), CONTRACT_ADDRESS, chain_id=DEFAULT_CHAIN_ID, signer=signer)


def _result(shape: str, value: Any) -> str:
    return "0x" + encode_value(parse_shape(shape, {}), value).hex()


def _u32(value: int) -> str:
    return _result("u32", value)


class TestSimulate:

    @pytest.mark.asyncio
    async def test_read_only_uses_eth_call_only(self, node: FakeNode, rpc_store: RecordStore) -> None:
        node.results["eth_call"] = _u32(5)
        assert await rpc_store.count() == 5
        assert node.calls == ["eth_call"]

    @pytest.mark.asyncio
    async def test_mutating_estimate(self, node: FakeNode, rpc_store: RecordStore) -> None:
        node.results["eth_call"] = _result("bool", True)
        tx = await rpc_store.prepare("delete_document", owner=rpc_store.account, document_id=1)
        assert tx.result is True
        assert tx.estimate.gas_limit == 120_000
        assert tx.estimate.gas_price == 1_000_000_000
        assert tx.estimate.nonce == 7
        assert sorted(node.calls) == sorted(
            ["eth_call", "eth_estimateGas", "eth_gasPrice", "eth_getTransactionCount"]
        )

    @pytest.mark.asyncio
    async def test_revert_is_a_simulation_error(self, node: FakeNode, rpc_store: RecordStore) -> None:
        node.errors["eth_call"] = {"code": 3, "message": "execution reverted: unauthorized", "data": "0x"}
        with pytest.raises(SimulationError) as exc_info:
            await rpc_store.count()
        assert exc_info.value.reason == "reverted"

    @pytest.mark.asyncio
    async def test_empty_result_is_a_codec_error(self, node: FakeNode, rpc_store: RecordStore) -> None:
        node.results["eth_call"] = "0x"
        with pytest.raises(CodecError):
            await rpc_store.count()


class TestSubmit:

    @pytest.mark.asyncio
    async def test_create_waits_for_receipt(self, node: FakeNode, rpc_store: RecordStore) -> None:
        node.results["eth_call"] = _u32(1)
        node.receipts = [None, None, {"status": "0x1", "blockNumber": "0x10"}]
        assert await rpc_store.create("n1", b"x") == 1
        assert len(node.raw_transactions) == 1
        assert node.calls.count("eth_getTransactionReceipt") == 3

    @pytest.mark.asyncio
    async def test_node_refusal(self, node: FakeNode, rpc_store: RecordStore) -> None:
        node.results["eth_call"] = _u32(1)
        node.errors["eth_sendRawTransaction"] = {"code": -32000, "message": "nonce too low"}
        with pytest.raises(SubmissionError) as exc_info:
            await rpc_store.create("n1", b"x")
        assert exc_info.value.reason == "conflicting_state"
        assert "eth_getTransactionReceipt" not in node.calls

    @pytest.mark.asyncio
    async def test_reverted_receipt(self, node: FakeNode, rpc_store: RecordStore) -> None:
        node.results["eth_call"] = _u32(1)
        node.receipts = [{"status": "0x0", "blockNumber": "0x11"}]
        with pytest.raises(SubmissionError) as exc_info:
            await rpc_store.create("n1", b"x")
        assert exc_info.value.reason == "reverted"

    @pytest.mark.asyncio
    async def test_get_status_pending(self, node: FakeNode) -> None:
        network = _network(node.handler)
        assert await network.get_status(TX_ID) is None


class TestTransport:

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        network = _network(lambda request: httpx.Response(502, text="bad gateway"))
        with pytest.raises(NetworkError) as exc_info:
            await network.get_status(TX_ID)
        assert exc_info.value.reason == "transport"

    @pytest.mark.asyncio
    async def test_not_json(self) -> None:
        network = _network(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(NetworkError) as exc_info:
            await network.get_status(TX_ID)
        assert exc_info.value.reason == "bad_response"

    @pytest.mark.asyncio
    async def test_rpc_error_object(self, node: FakeNode) -> None:
        node.errors["eth_getTransactionReceipt"] = {"code": -32602, "message": "invalid argument"}
        with pytest.raises(JsonRpcError) as exc_info:
            await _network(node.handler).get_status(TX_ID)
        assert exc_info.value.code == -32602


@pytest.mark.parametrize(
    ("message", "reason"),
    [
        ("nonce too low", RejectReason.CONFLICTING_STATE),
        ("replacement transaction underpriced", RejectReason.CONFLICTING_STATE),
        ("insufficient funds for gas * price + value", RejectReason.INSUFFICIENT_RESOURCES),
        ("intrinsic gas too low", RejectReason.INSUFFICIENT_RESOURCES),
        ("transaction underpriced", RejectReason.EXPIRED_ESTIMATE),
        ("already known", RejectReason.DUPLICATE),
        ("execution reverted", RejectReason.REVERTED),
        ("something odd", RejectReason.UNKNOWN),
    ],
)
def test_classify_rpc_error(message: str, reason: RejectReason) -> None:
    assert classify_rpc_error(message) is reason
