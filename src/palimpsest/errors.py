"""
Error taxonomy for Palimpsest.

Every failure surfaced by the library is a ``PalimpsestError`` carrying a
kind, an optional reason code and the offending field where one applies.
Nothing in the library retries automatically; callers decide what to do
from the structured detail.
"""

from __future__ import annotations

from typing import Any, Optional


class PalimpsestError(RuntimeError):
    exit_code: int = 1
    kind: str = "error"

    def __init__(
        self,
        message: str,
        *,
        reason: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.field = field
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.reason:
            result["reason"] = self.reason
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = dict(self.details)
        return result


class InvalidArgumentError(PalimpsestError, ValueError):
    exit_code = 2
    kind = "invalid_argument"


class CodecError(PalimpsestError):
    exit_code = 3
    kind = "codec"


class SimulationError(PalimpsestError):
    exit_code = 4
    kind = "simulation"


class SubmissionError(PalimpsestError):
    exit_code = 5
    kind = "submission"

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        tx_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, reason=reason, details=details)
        self.tx_id = tx_id

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.tx_id:
            result["tx_id"] = self.tx_id
        return result


class AlreadySubmittedError(PalimpsestError):
    exit_code = 6
    kind = "already_submitted"


class TransactionTimeoutError(PalimpsestError, TimeoutError):
    """Raised when a submission is not resolved within the wait window.

    The transaction may still be included later. ``tx_id`` identifies it
    and ``transaction`` (when set) can be refreshed to learn the outcome.
    """

    exit_code = 7
    kind = "timeout"

    def __init__(self, message: str, *, tx_id: str, transaction: Any = None) -> None:
        super().__init__(message, reason="timeout")
        self.tx_id = tx_id
        self.transaction = transaction

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["tx_id"] = self.tx_id
        return result


class InvalidTransitionError(PalimpsestError):
    exit_code = 8
    kind = "invalid_transition"


class SigningError(PalimpsestError):
    exit_code = 9
    kind = "signing"


class NetworkError(PalimpsestError):
    exit_code = 10
    kind = "network"


class ConfigError(PalimpsestError):
    exit_code = 11
    kind = "config"
