"""
Record Store - Owner-scoped facade over the DocumentStorage contract.

Each operation builds a call, simulates it, and then:
- read-only (read, list_by_owner, filter_by_tags, count): returns the
  simulated result, which is final; nothing is signed
- mutating (init, create, update, delete): signs, submits and returns the
  confirmed result; a provisional result is never returned as final

Use ``prepare()`` to get the simulated transaction without submitting it.
The facade owns no record state.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from ..config import DEFAULT_CHAIN_ID, DEFAULT_SUBMIT_TIMEOUT, Settings
from ..errors import InvalidArgumentError, SigningError
from ..pneuma.abi import ContractSchema, document_storage_schema
from ..pneuma.call import BindingContext, build_call
from ..pneuma.codec import ABSENT, Option, Present, is_present
from ..pneuma.rpc import JsonRpcNetwork
from ..pneuma.tx import AssembledTransaction, Network, Signer
from .merge import normalize_metadata
from .records import Record, RecordPatch

logger = logging.getLogger(__name__)


def as_option(value: Any) -> Option:
    """None -> ABSENT; Present/ABSENT pass through; anything else is wrapped."""
    if value is None or value is ABSENT or isinstance(value, Present):
        return ABSENT if value is None else value
    return Present(value)


def _tag_list(tags: Iterable[str], field: str = "tags") -> list[str]:
    if isinstance(tags, str):
        raise InvalidArgumentError(f"{field} must be a sequence of strings, not a string", field=field)
    return list(tags)


class RecordStore:
    """
    Args:
        network: Where calls are simulated and submitted
        contract_address: Deployed DocumentStorage address
        chain_id: Chain the contract lives on
        account: Calling account (default: the signer's address)
        signer: Credential holder; required only for mutating operations
        schema: Contract schema (default: the bundled DocumentStorage schema)
        timeout: Seconds to wait for inclusion of each submitted call
    """

    def __init__(
        self,
        network: Network,
        contract_address: str,
        *,
        chain_id: int = DEFAULT_CHAIN_ID,
        account: Optional[str] = None,
        signer: Optional[Signer] = None,
        schema: Optional[ContractSchema] = None,
        timeout: float = DEFAULT_SUBMIT_TIMEOUT,
    ) -> None:
        account = account or (signer.address if signer is not None else None)
        if account is None:
            raise InvalidArgumentError("An account or a signer is required", field="account")
        self._network = network
        self._signer = signer
        self._timeout = timeout
        self._binding = BindingContext(
            contract_address=contract_address,
            chain_id=chain_id,
            account=account,
            schema=schema or document_storage_schema(),
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        signer: Optional[Signer] = None,
        *,
        account: Optional[str] = None,
        network: Optional[Network] = None,
    ) -> "RecordStore":
        """Build a store against the configured JSON-RPC endpoint."""
        return cls(
            network or JsonRpcNetwork(settings.rpc_url),
            settings.require_contract(),
            chain_id=settings.chain_id,
            account=account,
            signer=signer,
            timeout=settings.submit_timeout,
        )

    @property
    def account(self) -> str:
        return self._binding.account

    @property
    def contract_address(self) -> str:
        return self._binding.contract_address

    @property
    def network(self) -> Network:
        return self._network

    # ------------------------------------------------------------------
    # Call plumbing
    # ------------------------------------------------------------------

    async def prepare(self, method: str, **args: Any) -> AssembledTransaction:
        """
        Build and simulate a contract call without submitting it.

        Args:
            method: Contract method name (e.g. "store_document")
            **args: Method arguments by name

        Returns:
            AssembledTransaction in the SIMULATED state; ``result`` is the
            preview for mutating calls and final for read-only ones
        """
        descriptor = build_call(method, args, self._binding)
        tx: AssembledTransaction = AssembledTransaction(descriptor, self._network, timeout=self._timeout)
        await tx.simulate()
        return tx

    async def _invoke(self, method: str, **args: Any) -> Any:
        tx = await self.prepare(method, **args)
        if tx.is_read_only:
            return tx.result
        if self._signer is None:
            raise SigningError(f"{method} needs a signer for {self.account}", reason="no_signer")
        return await tx.sign_and_send(self._signer)

    def _owner(self, owner: Optional[str]) -> str:
        return owner if owner is not None else self.account

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """Initialize the contract."""
        await self._invoke("init")

    async def create(
        self,
        name: str,
        content: bytes,
        metadata: Any = ABSENT,
        tags: Iterable[str] = (),
    ) -> int:
        """
        Store a new record owned by the calling account.

        Args:
            name: Non-empty display name
            content: Non-empty (encrypted) content
            metadata: Optional (encrypted) metadata; ABSENT, None or bytes
            tags: Ordered tags (duplicates kept)

        Returns:
            The id assigned by the contract. On a JSON-RPC network this is
            the id from the confirmed call's simulation against the latest
            block, since receipts carry no return data; with an earlier
            write from the same account still pending it can be stale.

        Raises:
            InvalidArgumentError: Empty name or content, or wrong types
            SubmissionError: The network rejected the transaction
        """
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError("name must be a non-empty string", field="name")
        if not isinstance(content, (bytes, bytearray)) or not content:
            raise InvalidArgumentError("content must be non-empty bytes", field="content")

        record_id = await self._invoke(
            "store_document",
            owner=self.account,
            encrypted_content=bytes(content),
            name=name,
            encrypted_metadata=normalize_metadata(as_option(metadata)),
            tags=_tag_list(tags),
        )
        logger.info("Created record %s for %s", record_id, self.account)
        return record_id

    async def update(
        self,
        record_id: int,
        *,
        name: Any = ABSENT,
        content: Any = ABSENT,
        metadata: Any = ABSENT,
        tags: Any = ABSENT,
    ) -> bool:
        """
        Partially update a record. Omitted fields are left untouched.

        ``metadata=Present(b"")`` clears stored metadata.

        Returns:
            True if the record exists and was updated, False otherwise
        """
        tags_opt = as_option(tags)
        if is_present(tags_opt):
            tags_opt = Present(tuple(_tag_list(tags_opt.value)))
        patch = RecordPatch(
            name=as_option(name),
            content=as_option(content),
            metadata=as_option(metadata),
            tags=tags_opt,
        )
        return await self.update_patch(record_id, patch)

    async def update_patch(self, record_id: int, patch: RecordPatch) -> bool:
        if is_present(patch.name) and not patch.name.value:
            raise InvalidArgumentError("name cannot be set to an empty string", field="name")
        if is_present(patch.content) and not patch.content.value:
            raise InvalidArgumentError("content cannot be set to empty bytes", field="content")

        if patch.is_empty():
            # Nothing to change: report existence without submitting.
            logger.debug("Empty update for record %s", record_id)
            return await self.read(record_id) is not None

        updated = await self._invoke(
            "update_document",
            owner=self.account,
            document_id=record_id,
            **patch.to_wire_args(),
        )
        logger.info("Update of record %s: %s (%s)", record_id, updated, ", ".join(patch.present_fields()))
        return updated

    async def delete(self, record_id: int) -> bool:
        """Delete a record permanently. False if it does not exist."""
        deleted = await self._invoke("delete_document", owner=self.account, document_id=record_id)
        logger.info("Delete of record %s: %s", record_id, deleted)
        return deleted

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def read(self, record_id: int, owner: Optional[str] = None) -> Optional[Record]:
        found = await self._invoke("get_document", owner=self._owner(owner), document_id=record_id)
        return Record.from_wire(found.value) if is_present(found) else None

    async def list_by_owner(self, owner: Optional[str] = None) -> list[Record]:
        """All live records of ``owner`` (default: the calling account), oldest first."""
        rows = await self._invoke("get_user_documents", owner=self._owner(owner))
        return [Record.from_wire(row) for row in rows]

    async def filter_by_tags(self, tags: Iterable[str], owner: Optional[str] = None) -> list[Record]:
        """
        Records carrying at least one of ``tags``.

        Raises:
            InvalidArgumentError: If ``tags`` is empty
        """
        search = _tag_list(tags)
        if not search:
            raise InvalidArgumentError("At least one tag is required", field="tags")
        rows = await self._invoke("get_documents_by_tags", owner=self._owner(owner), search_tags=search)
        return [Record.from_wire(row) for row in rows]

    async def count(self, owner: Optional[str] = None) -> int:
        return await self._invoke("get_document_count", owner=self._owner(owner))
