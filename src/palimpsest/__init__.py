__all__ = [
    # Records
    "Record",
    "RecordPatch",
    "RecordStore",
    "apply_patch",
    # Optional values
    "ABSENT",
    "Present",
    "Option",
    # Calls and transactions
    "AssembledTransaction",
    "BindingContext",
    "CallDescriptor",
    "CostEstimate",
    "TxState",
    "RejectReason",
    "build_call",
    # Networks
    "JsonRpcNetwork",
    "LocalLedger",
    "DocumentStorage",
    # Schema
    "ContractSchema",
    "load_schema",
    "SchemaValidationError",
    # Signing and sealing
    "LocalSigner",
    "generate_eoa",
    "CryptoError",
    "seal",
    "open_sealed",
    "derive_record_key",
    # Configuration
    "Settings",
    # Errors
    "PalimpsestError",
    "InvalidArgumentError",
    "CodecError",
    "SimulationError",
    "SubmissionError",
    "AlreadySubmittedError",
    "TransactionTimeoutError",
    "InvalidTransitionError",
    "SigningError",
    "NetworkError",
    "ConfigError",
]

from .codex.contract import DocumentStorage
from .codex.merge import apply_patch
from .codex.records import Record, RecordPatch
from .codex.store import RecordStore
from .config import Settings
from .errors import (
    AlreadySubmittedError,
    CodecError,
    ConfigError,
    InvalidArgumentError,
    InvalidTransitionError,
    NetworkError,
    PalimpsestError,
    SigningError,
    SimulationError,
    SubmissionError,
    TransactionTimeoutError,
)
from .pneuma.abi import ContractSchema, load_schema
from .pneuma.call import BindingContext, CallDescriptor, build_call
from .pneuma.codec import ABSENT, Option, Present
from .pneuma.ledger import LocalLedger
from .pneuma.rpc import JsonRpcNetwork
from .pneuma.tx import AssembledTransaction, CostEstimate, RejectReason, TxState
from .sigil.crypto import CryptoError, derive_record_key, open_sealed, seal
from .sigil.eth import LocalSigner, generate_eoa
from .spec.schemas import SchemaValidationError
