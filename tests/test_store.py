"""End-to-end record store scenarios against the in-process ledger."""

from __future__ import annotations

import asyncio

import pytest

from palimpsest.codex.records import RecordPatch
from palimpsest.codex.store import RecordStore, as_option
from palimpsest.errors import InvalidArgumentError, SigningError
from palimpsest.pneuma.codec import ABSENT, Present
from palimpsest.pneuma.ledger import LocalLedger
from palimpsest.pneuma.tx import TxState
from palimpsest.sigil.eth import LocalSigner

from .conftest import FakeClock, make_store


class CountingSigner(LocalSigner):
    def __init__(self, private_key: str) -> None:
        super().__init__(private_key)
        self.calls = 0

    def sign(self, descriptor, estimate):
        self.calls += 1
        return super().sign(descriptor, estimate)


class TestInit:

    @pytest.mark.asyncio
    async def test_init_is_submitted(self, store: RecordStore, ledger: LocalLedger) -> None:
        nonce = ledger.nonce_of(store.account)
        assert await store.init() is None
        assert ledger.contract.initialized
        assert ledger.nonce_of(store.account) == nonce + 1


class TestCreate:

    @pytest.mark.asyncio
    async def test_ids_start_at_one_and_increase(self, store: RecordStore) -> None:
        assert await store.create("n1", b"x") == 1
        assert await store.create("n2", b"y") == 2

    @pytest.mark.asyncio
    async def test_ids_are_never_reused(self, store: RecordStore) -> None:
        await store.create("n1", b"x")
        second = await store.create("n2", b"x")
        assert await store.delete(second)
        assert await store.create("n3", b"x") == 3

    @pytest.mark.asyncio
    async def test_record_contents(self, store: RecordStore, clock: FakeClock) -> None:
        record_id = await store.create("lease", b"sealed", metadata=b"meta", tags=["home", "home"])
        record = await store.read(record_id)
        assert record is not None
        assert record.owner == store.account
        assert record.content == b"sealed"
        assert record.metadata == Present(b"meta")
        assert record.tags == ("home", "home")
        assert record.created_at == record.updated_at == clock.now

    @pytest.mark.asyncio
    async def test_metadata_absent_vs_empty(self, store: RecordStore) -> None:
        first = await store.create("a", b"x")
        second = await store.create("b", b"x", metadata=Present(b""))
        assert (await store.read(first)).metadata is ABSENT
        assert (await store.read(second)).metadata is ABSENT

    @pytest.mark.asyncio
    async def test_validation(self, store: RecordStore) -> None:
        with pytest.raises(InvalidArgumentError) as exc_info:
            await store.create("", b"x")
        assert exc_info.value.field == "name"
        with pytest.raises(InvalidArgumentError) as exc_info:
            await store.create("n", b"")
        assert exc_info.value.field == "content"
        with pytest.raises(InvalidArgumentError):
            await store.create("n", b"x", tags="single-string")

    @pytest.mark.asyncio
    async def test_owners_are_isolated(
        self, store: RecordStore, ledger: LocalLedger, other_wallet: tuple[str, str]
    ) -> None:
        other = make_store(ledger, LocalSigner(other_wallet[0]))
        await store.create("mine", b"x")
        assert await other.create("theirs", b"y") == 1
        assert await store.count() == 1
        assert await other.count() == 1
        assert (await store.read(1, owner=other.account)).name == "theirs"


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_then_read(self, store: RecordStore) -> None:
        record_id = await store.create("n1", b"x")
        assert await store.delete(record_id) is True
        assert await store.read(record_id) is None
        assert await store.delete(record_id) is False

    @pytest.mark.asyncio
    async def test_delete_unknown(self, store: RecordStore) -> None:
        assert await store.delete(42) is False


class TestUpdate:

    @pytest.mark.asyncio
    async def test_name_only(self, store: RecordStore, clock: FakeClock) -> None:
        record_id = await store.create("n1", b"x", metadata=b"m", tags=["a"])
        before = await store.read(record_id)
        clock.advance(60)

        assert await store.update(record_id, name=Present("renamed")) is True
        after = await store.read(record_id)
        assert after.name == "renamed"
        assert after.updated_at == before.updated_at + 60
        assert after.created_at == before.created_at
        assert (after.content, after.metadata, after.tags) == (before.content, before.metadata, before.tags)

    @pytest.mark.asyncio
    async def test_clear_metadata_and_tags(self, store: RecordStore) -> None:
        record_id = await store.create("n1", b"x", metadata=b"m", tags=["a", "b"])
        assert await store.update(record_id, metadata=Present(b""), tags=Present([]))
        record = await store.read(record_id)
        assert record.metadata is ABSENT
        assert record.tags == ()

    @pytest.mark.asyncio
    async def test_unknown_record(self, store: RecordStore) -> None:
        assert await store.update(9, name=Present("x")) is False

    @pytest.mark.asyncio
    async def test_all_absent_is_a_no_op(self, store: RecordStore, ledger: LocalLedger, clock: FakeClock) -> None:
        record_id = await store.create("n1", b"x")
        before = await store.read(record_id)
        sequence = ledger.sequence
        clock.advance(60)

        assert await store.update(record_id) is True
        assert await store.update_patch(record_id, RecordPatch()) is True
        assert await store.update(99) is False
        assert ledger.sequence == sequence
        assert await store.read(record_id) == before

    @pytest.mark.asyncio
    async def test_cannot_blank_required_fields(self, store: RecordStore) -> None:
        record_id = await store.create("n1", b"x")
        with pytest.raises(InvalidArgumentError):
            await store.update(record_id, name=Present(""))
        with pytest.raises(InvalidArgumentError):
            await store.update(record_id, content=Present(b""))

    @pytest.mark.asyncio
    async def test_bare_values_are_wrapped(self, store: RecordStore) -> None:
        record_id = await store.create("n1", b"x")
        assert await store.update(record_id, name="plain", tags=("t",))
        record = await store.read(record_id)
        assert (record.name, record.tags) == ("plain", ("t",))


class TestQueries:

    @pytest.mark.asyncio
    async def test_tag_filter_is_inclusive_or(self, store: RecordStore) -> None:
        await store.create("a", b"x", tags=["a"])
        await store.create("b", b"x", tags=["b", "z"])
        await store.create("c", b"x", tags=["c"])
        found = await store.filter_by_tags(["a", "b"])
        assert [r.id for r in found] == [1, 2]
        assert await store.filter_by_tags(["nope"]) == []

    @pytest.mark.asyncio
    async def test_empty_tag_filter(self, store: RecordStore) -> None:
        with pytest.raises(InvalidArgumentError):
            await store.filter_by_tags([])

    @pytest.mark.asyncio
    async def test_count_matches_list(self, store: RecordStore) -> None:
        for name in ("a", "b", "c"):
            await store.create(name, b"x")
        await store.delete(2)
        records = await store.list_by_owner()
        assert await store.count() == len(records) == 2
        assert [r.id for r in records] == [1, 3]

    @pytest.mark.asyncio
    async def test_concurrent_queries(self, store: RecordStore) -> None:
        await store.create("a", b"x", tags=["t"])
        count, records, tagged = await asyncio.gather(
            store.count(), store.list_by_owner(), store.filter_by_tags(["t"])
        )
        assert count == len(records) == len(tagged) == 1

    @pytest.mark.asyncio
    async def test_queries_never_sign(self, ledger: LocalLedger, wallet: tuple[str, str]) -> None:
        signer = CountingSigner(wallet[0])
        store = make_store(ledger, signer)
        await store.create("a", b"x", tags=["t"])
        assert signer.calls == 1

        await store.read(1)
        await store.list_by_owner()
        await store.filter_by_tags(["t"])
        await store.count()
        assert signer.calls == 1

        tx = await store.prepare("get_document_count", owner=store.account)
        assert tx.state is TxState.SIMULATED and tx.is_final

    @pytest.mark.asyncio
    async def test_read_only_store_without_signer(self, store: RecordStore, ledger: LocalLedger) -> None:
        await store.create("a", b"x")
        reader = RecordStore(ledger, store.contract_address, account=store.account)
        assert await reader.count() == 1
        with pytest.raises(SigningError) as exc_info:
            await reader.create("b", b"y")
        assert exc_info.value.reason == "no_signer"


class TestScenarios:

    @pytest.mark.asyncio
    async def test_create_delete_count(self, store: RecordStore) -> None:
        assert await store.create("n1", b"x", metadata=ABSENT, tags=[]) == 1
        assert await store.create("n2", b"x") == 2
        assert await store.delete(1)
        assert await store.count() == 1
        assert [r.id for r in await store.list_by_owner()] == [2]

    @pytest.mark.asyncio
    async def test_update_tags_then_filter(self, store: RecordStore) -> None:
        await store.create("n1", b"x")
        await store.create("n2", b"x")
        assert await store.update(2, tags=Present(["g"]))
        assert [r.id for r in await store.filter_by_tags(["g"])] == [2]

    @pytest.mark.asyncio
    async def test_prepare_does_not_submit(self, store: RecordStore) -> None:
        tx = await store.prepare(
            "store_document",
            owner=store.account,
            encrypted_content=b"x",
            name="preview",
            encrypted_metadata=ABSENT,
            tags=[],
        )
        assert tx.result == 1
        assert not tx.is_final
        assert await store.count() == 0


def test_as_option() -> None:
    assert as_option(None) is ABSENT
    assert as_option(ABSENT) is ABSENT
    assert as_option(Present(1)) == Present(1)
    assert as_option(b"") == Present(b"")


def test_store_requires_an_account(ledger: LocalLedger) -> None:
    with pytest.raises(InvalidArgumentError):
        RecordStore(ledger, "0x5FbDB2315678afecb367f032d93F642f64180aa3")
