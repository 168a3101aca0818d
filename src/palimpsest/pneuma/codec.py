"""
Schema Codec - Convert native values to and from the contract's wire format.

Wire format is the Ethereum contract ABI (via eth-abi), driven by the
shapes declared in the contract schema:

    option<T>  ->  (bool present, T value)   absent = (false, zero(T))
    vec<T>     ->  T[]
    record     ->  tuple in declared field order

Optional values are the tagged variant ``Present(value) | ABSENT`` so that
"absent" and "empty" stay distinct end to end. Decoding is strict: data
that does not re-encode to exactly the same bytes is rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Mapping, Sequence, TypeVar, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError

from ..errors import CodecError, InvalidArgumentError, PalimpsestError
from ..utils import is_address, to_checksum_address
from .abi import ContractSchema, MethodSpec, Shape

T = TypeVar("T")

ZERO_ADDRESS = "0x" + "0" * 40


class _Absent:
    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Absent":
        return self

    def __deepcopy__(self, memo: dict) -> "_Absent":
        return self

    def __reduce__(self) -> tuple:
        return (_Absent, ())


ABSENT = _Absent()


@dataclass(frozen=True)
class Present(Generic[T]):
    value: T


Option = Union[Present[T], _Absent]


def is_present(option: Any) -> bool:
    return isinstance(option, Present)


# ---------------------------------------------------------------------------
# Native value validation
# ---------------------------------------------------------------------------

def check_value(shape: Shape, value: Any, path: str = "value") -> None:
    """
    Validate a native value against a shape.

    Raises:
        InvalidArgumentError: With ``field`` set to the offending path
    """
    _validate(shape, value, path, InvalidArgumentError)


def _validate(shape: Shape, value: Any, path: str, error_cls: type[PalimpsestError]) -> None:
    def fail(expected: str) -> None:
        raise error_cls(f"{path}: expected {expected}, got {type(value).__name__}", field=path)

    if shape.kind == "scalar":
        name = shape.name
        if name == "bool":
            if not isinstance(value, bool):
                fail("bool")
        elif name == "string":
            if not isinstance(value, str):
                fail("string")
        elif name == "bytes":
            if not isinstance(value, (bytes, bytearray)):
                fail("bytes")
        elif name == "address":
            if not is_address(value):
                raise error_cls(f"{path}: not a 20-byte hex address: {value!r}", field=path)
        else:
            if not isinstance(value, int) or isinstance(value, bool):
                fail(name)
            bits = int(name[1:])
            if name.startswith("u"):
                low, high = 0, (1 << bits) - 1
            else:
                low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
            if not low <= value <= high:
                raise error_cls(f"{path}: {value} out of range for {name}", field=path)
        return

    if shape.kind == "option":
        if isinstance(value, Present):
            _validate(shape.inner, value.value, path, error_cls)
        elif value is not ABSENT:
            fail(f"Present(...) or ABSENT for {shape}")
        return

    if shape.kind == "vec":
        if not isinstance(value, (list, tuple)):
            fail(str(shape))
        for i, item in enumerate(value):
            _validate(shape.inner, item, f"{path}[{i}]", error_cls)
        return

    if isinstance(value, Mapping):
        expected = {f.name for f in shape.fields}
        extra = set(value) - expected
        if extra:
            raise error_cls(f"{path}: unexpected fields {sorted(extra)}", field=path)
    for f in shape.fields:
        _validate(f.shape, _get_field(value, f.name, f"{path}.{f.name}", error_cls), f"{path}.{f.name}", error_cls)


def _get_field(value: Any, name: str, path: str, error_cls: type[PalimpsestError]) -> Any:
    if isinstance(value, Mapping):
        if name not in value:
            raise error_cls(f"{path}: missing field", field=path)
        return value[name]
    if not hasattr(value, name):
        raise error_cls(f"{path}: missing field", field=path)
    return getattr(value, name)


# ---------------------------------------------------------------------------
# Native <-> wire
# ---------------------------------------------------------------------------

def _zero(shape: Shape) -> Any:
    if shape.kind == "scalar":
        return {"bool": False, "string": "", "bytes": b"", "address": ZERO_ADDRESS}.get(shape.name, 0)
    if shape.kind == "option":
        return (False, _zero(shape.inner))
    if shape.kind == "vec":
        return []
    return tuple(_zero(f.shape) for f in shape.fields)


def _to_wire(shape: Shape, value: Any) -> Any:
    if shape.kind == "scalar":
        if shape.name == "bytes":
            return bytes(value)
        if shape.name == "address":
            return value.lower()
        return value
    if shape.kind == "option":
        if isinstance(value, Present):
            return (True, _to_wire(shape.inner, value.value))
        return (False, _zero(shape.inner))
    if shape.kind == "vec":
        return [_to_wire(shape.inner, item) for item in value]
    return tuple(
        _to_wire(f.shape, value[f.name] if isinstance(value, Mapping) else getattr(value, f.name))
        for f in shape.fields
    )


def _from_wire(shape: Shape, raw: Any) -> Any:
    if shape.kind == "scalar":
        if shape.name == "bytes":
            return bytes(raw)
        if shape.name == "address":
            return to_checksum_address(raw)
        return raw
    if shape.kind == "option":
        present, payload = raw
        return Present(_from_wire(shape.inner, payload)) if present else ABSENT
    if shape.kind == "vec":
        return [_from_wire(shape.inner, item) for item in raw]
    return {f.name: _from_wire(f.shape, item) for f, item in zip(shape.fields, raw)}


def encode_values(shapes: Sequence[Shape], values: Sequence[Any]) -> bytes:
    """
    ABI-encode native values.

    Raises:
        CodecError: If a value does not fit its shape or eth-abi refuses it
    """
    if len(shapes) != len(values):
        raise CodecError(f"Expected {len(shapes)} values, got {len(values)}")
    for i, (shape, value) in enumerate(zip(shapes, values)):
        _validate(shape, value, f"[{i}]", CodecError)
    types = [s.abi_type for s in shapes]
    try:
        return encode(types, [_to_wire(s, v) for s, v in zip(shapes, values)])
    except (EncodingError, TypeError, ValueError) as exc:
        raise CodecError(f"Cannot encode {types}: {exc}") from exc


def decode_values(shapes: Sequence[Shape], data: bytes) -> list[Any]:
    """
    ABI-decode wire bytes into native values.

    Raises:
        CodecError: On truncated, malformed, trailing or non-canonical data
    """
    if not shapes:
        if data:
            raise CodecError(f"Expected no data, got {len(data)} bytes")
        return []
    if not data:
        raise CodecError("Empty data where a value was expected")

    types = [s.abi_type for s in shapes]
    try:
        raw = decode(types, bytes(data))
    except (DecodingError, UnicodeDecodeError, ValueError, OverflowError) as exc:
        raise CodecError(f"Cannot decode {types}: {exc}") from exc

    values = [_from_wire(s, r) for s, r in zip(shapes, raw)]
    if encode_values(shapes, values) != bytes(data):
        raise CodecError(f"Non-canonical encoding for {types}")
    return values


def encode_value(shape: Shape, value: Any) -> bytes:
    return encode_values((shape,), (value,))


def decode_value(shape: Shape, data: bytes) -> Any:
    return decode_values((shape,), data)[0]


# ---------------------------------------------------------------------------
# Method-level helpers
# ---------------------------------------------------------------------------

def encode_call(method: MethodSpec, args: Sequence[Any]) -> bytes:
    """Selector + ABI-encoded arguments."""
    return method.selector + encode_values(method.input_shapes, args)


def decode_call(schema: ContractSchema, calldata: bytes) -> tuple[MethodSpec, list[Any]]:
    """
    Split calldata into its method and native arguments.

    Raises:
        CodecError: On an unknown selector or malformed arguments
    """
    if len(calldata) < 4:
        raise CodecError("Calldata shorter than a selector")
    try:
        method = schema.by_selector(bytes(calldata[:4]))
    except KeyError:
        raise CodecError(f"Unknown selector 0x{bytes(calldata[:4]).hex()}") from None
    body = bytes(calldata[4:])
    if not method.inputs:
        if body:
            raise CodecError(f"{method.name} takes no arguments")
        return method, []
    return method, decode_values(method.input_shapes, body)


def encode_result(method: MethodSpec, value: Any) -> bytes:
    if method.output is None:
        return b""
    return encode_value(method.output, value)


def decode_result(method: MethodSpec, data: bytes) -> Any:
    """
    Decode a method's return data.

    Empty data for a method that declares an output is an error, never
    an implicit default.
    """
    if method.output is None:
        decode_values((), data)
        return None
    return decode_value(method.output, data)
