from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..errors import InvalidArgumentError
from ..pneuma.codec import ABSENT, Option, Present, is_present
from ..utils import is_address, to_checksum_address

# Record attribute -> contract field name
WIRE_FIELDS = {
    "id": "id",
    "owner": "owner",
    "content": "encrypted_content",
    "name": "name",
    "metadata": "encrypted_metadata",
    "created_at": "created_at",
    "updated_at": "updated_at",
    "tags": "tags",
}


def _require_option(name: str, value: Any) -> None:
    if not (isinstance(value, Present) or value is ABSENT):
        raise InvalidArgumentError(
            f"{name} must be Present(...) or ABSENT, got {type(value).__name__}", field=name
        )


@dataclass(frozen=True)
class Record:
    """
    One stored document.

    Attributes:
        id: Per-owner identifier assigned by the contract
        owner: Owner address (checksummed)
        name: Display name
        content: Ciphertext
        metadata: Optional ciphertext
        tags: Ordered tags, duplicates kept
        created_at: Seconds since epoch, fixed at creation
        updated_at: Seconds since epoch, refreshed by updates
    """
    id: int
    owner: str
    name: str
    content: bytes
    metadata: Option[bytes] = ABSENT
    tags: tuple[str, ...] = ()
    created_at: int = 0
    updated_at: int = 0

    def __post_init__(self) -> None:
        if not is_address(self.owner):
            raise InvalidArgumentError(f"owner is not an address: {self.owner!r}", field="owner")
        _require_option("metadata", self.metadata)
        object.__setattr__(self, "owner", to_checksum_address(self.owner))
        object.__setattr__(self, "content", bytes(self.content))
        object.__setattr__(self, "tags", tuple(self.tags))
        if is_present(self.metadata):
            object.__setattr__(self, "metadata", Present(bytes(self.metadata.value)))

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "Record":
        return cls(**{attr: payload[wire] for attr, wire in WIRE_FIELDS.items()})

    def to_wire(self) -> dict[str, Any]:
        result = {wire: getattr(self, attr) for attr, wire in WIRE_FIELDS.items()}
        result["tags"] = list(self.tags)
        return result

    def has_any_tag(self, search_tags: Any) -> bool:
        wanted = set(search_tags)
        return any(tag in wanted for tag in self.tags)


@dataclass(frozen=True)
class RecordPatch:
    """Fields to change in an update; ABSENT leaves a field untouched."""

    name: Option[str] = ABSENT
    content: Option[bytes] = ABSENT
    metadata: Option[bytes] = ABSENT
    tags: Option[tuple[str, ...]] = ABSENT

    def __post_init__(self) -> None:
        for name in ("name", "content", "metadata", "tags"):
            _require_option(name, getattr(self, name))
        if is_present(self.tags):
            object.__setattr__(self, "tags", Present(tuple(self.tags.value)))

    def is_empty(self) -> bool:
        return not self.present_fields()

    def present_fields(self) -> list[str]:
        return [n for n in ("name", "content", "metadata", "tags") if is_present(getattr(self, n))]

    def to_wire_args(self) -> dict[str, Any]:
        return {
            "encrypted_content": self.content,
            "name": self.name,
            "encrypted_metadata": self.metadata,
            "tags": Present(list(self.tags.value)) if is_present(self.tags) else ABSENT,
        }

    @classmethod
    def from_wire_args(
        cls,
        encrypted_content: Option[bytes],
        name: Option[str],
        encrypted_metadata: Option[bytes],
        tags: Option[list[str]],
    ) -> "RecordPatch":
        return cls(name=name, content=encrypted_content, metadata=encrypted_metadata, tags=tags)
