"""Shared fixtures: wallets, a controllable clock and an in-process ledger."""

from __future__ import annotations

from typing import Optional

import pytest

from palimpsest.codex.contract import DocumentStorage
from palimpsest.codex.store import RecordStore
from palimpsest.config import DEFAULT_CHAIN_ID
from palimpsest.pneuma.abi import ContractSchema, document_storage_schema
from palimpsest.pneuma.ledger import LocalLedger
from palimpsest.sigil.eth import LocalSigner, generate_eoa

CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


class FakeClock:
    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture()
def schema() -> ContractSchema:
    return document_storage_schema()


@pytest.fixture()
def wallet() -> tuple[str, str]:
    return generate_eoa()


@pytest.fixture()
def other_wallet() -> tuple[str, str]:
    return generate_eoa()


@pytest.fixture()
def signer(wallet: tuple[str, str]) -> LocalSigner:
    return LocalSigner(wallet[0])


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


def make_ledger(schema: ContractSchema, clock: FakeClock, **kwargs) -> LocalLedger:
    return LocalLedger(
        DocumentStorage(),
        schema,
        contract_address=CONTRACT_ADDRESS,
        chain_id=DEFAULT_CHAIN_ID,
        clock=clock,
        **kwargs,
    )


@pytest.fixture()
def ledger(schema: ContractSchema, clock: FakeClock) -> LocalLedger:
    return make_ledger(schema, clock)


def make_store(ledger: LocalLedger, signer: Optional[LocalSigner], **kwargs) -> RecordStore:
    kwargs.setdefault("chain_id", DEFAULT_CHAIN_ID)
    return RecordStore(ledger, CONTRACT_ADDRESS, signer=signer, **kwargs)


@pytest.fixture()
def store(ledger: LocalLedger, signer: LocalSigner) -> RecordStore:
    return make_store(ledger, signer)
