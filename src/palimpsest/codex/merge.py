"""
Partial-update merge policy.

Each field of a RecordPatch is applied independently:

- ABSENT      keep the stored value
- Present(v)  replace the stored value as a whole (no element-level merge
              of tags, no byte-level patching of content or metadata)

``metadata=Present(b"")`` clears stored metadata to ABSENT. ``updated_at``
moves only when at least one field is present and never goes backwards,
so ``created_at <= updated_at`` always holds. An all-absent patch returns
the record unchanged.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from ..pneuma.codec import ABSENT, Present, is_present
from .records import Record, RecordPatch


def normalize_metadata(metadata: Any) -> Any:
    """Present(b"") means "no metadata"."""
    if is_present(metadata) and not metadata.value:
        return ABSENT
    return metadata


def apply_patch(record: Record, patch: RecordPatch, now: int) -> Record:
    if patch.is_empty():
        return record

    changes: dict[str, Any] = {}
    if is_present(patch.name):
        changes["name"] = patch.name.value
    if is_present(patch.content):
        changes["content"] = patch.content.value
    if is_present(patch.metadata):
        changes["metadata"] = normalize_metadata(Present(patch.metadata.value))
    if is_present(patch.tags):
        changes["tags"] = tuple(patch.tags.value)

    changes["updated_at"] = max(now, record.updated_at)
    return replace(record, **changes)
