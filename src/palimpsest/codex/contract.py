"""
DocumentStorage contract semantics, executed in-process.

Mirrors the deployed contract's behaviour for the LocalLedger:

- ids are per owner, start at 1, only ever increase and are never reused
- each owner keeps an insertion-ordered id list; deletion removes the id
  from it permanently
- mutating methods abort unless the transaction sender is ``owner``
- updates go through the partial-update merge policy

Methods take a CallContext first, then the arguments declared in
``pneuma/schemas/document_storage.json``, and return native values the
codec can encode for the declared output shape.
"""

from __future__ import annotations

from typing import Any

from ..pneuma.codec import ABSENT, Option, Present
from ..pneuma.ledger import CallContext, ContractAbort
from ..utils import same_address
from .merge import apply_patch, normalize_metadata
from .records import Record, RecordPatch

FIRST_ID = 1
MAX_ID = (1 << 32) - 1


class DocumentStorage:
    def __init__(self) -> None:
        self.initialized = False
        self._next_id: dict[str, int] = {}
        self._ids: dict[str, list[int]] = {}
        self._records: dict[tuple[str, int], Record] = {}

    @staticmethod
    def _authorize(ctx: CallContext, owner: str) -> str:
        if not same_address(ctx.sender, owner):
            raise ContractAbort(f"{ctx.sender} is not authorized for {owner}", reason="unauthorized")
        return owner.lower()

    def _live(self, owner: str) -> list[Record]:
        key = owner.lower()
        return [self._records[(key, i)] for i in self._ids.get(key, []) if (key, i) in self._records]

    # ------------------------------------------------------------------
    # Mutating
    # ------------------------------------------------------------------

    def init(self, ctx: CallContext) -> None:
        self.initialized = True

    def store_document(
        self,
        ctx: CallContext,
        owner: str,
        encrypted_content: bytes,
        name: str,
        encrypted_metadata: Option[bytes],
        tags: list[str],
    ) -> int:
        key = self._authorize(ctx, owner)
        record_id = self._next_id.get(key, FIRST_ID)
        if record_id > MAX_ID:
            raise ContractAbort(f"id space exhausted for {owner}", reason="id_overflow")
        self._next_id[key] = record_id + 1

        self._records[(key, record_id)] = Record(
            id=record_id,
            owner=owner,
            name=name,
            content=encrypted_content,
            metadata=normalize_metadata(encrypted_metadata),
            tags=tuple(tags),
            created_at=ctx.timestamp,
            updated_at=ctx.timestamp,
        )
        self._ids.setdefault(key, []).append(record_id)
        return record_id

    def update_document(
        self,
        ctx: CallContext,
        owner: str,
        document_id: int,
        encrypted_content: Option[bytes],
        name: Option[str],
        encrypted_metadata: Option[bytes],
        tags: Option[list[str]],
    ) -> bool:
        key = self._authorize(ctx, owner)
        record = self._records.get((key, document_id))
        if record is None:
            return False
        patch = RecordPatch.from_wire_args(encrypted_content, name, encrypted_metadata, tags)
        self._records[(key, document_id)] = apply_patch(record, patch, ctx.timestamp)
        return True

    def delete_document(self, ctx: CallContext, owner: str, document_id: int) -> bool:
        key = self._authorize(ctx, owner)
        if self._records.pop((key, document_id), None) is None:
            return False
        self._ids[key] = [i for i in self._ids.get(key, []) if i != document_id]
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_document(self, ctx: CallContext, owner: str, document_id: int) -> Option[dict[str, Any]]:
        record = self._records.get((owner.lower(), document_id))
        return Present(record.to_wire()) if record is not None else ABSENT

    def get_user_documents(self, ctx: CallContext, owner: str) -> list[dict[str, Any]]:
        return [r.to_wire() for r in self._live(owner)]

    def get_documents_by_tags(self, ctx: CallContext, owner: str, search_tags: list[str]) -> list[dict[str, Any]]:
        return [r.to_wire() for r in self._live(owner) if r.has_any_tag(search_tags)]

    def get_document_count(self, ctx: CallContext, owner: str) -> int:
        return len(self._ids.get(owner.lower(), []))
