"""
Contract schema - Declarative description of a contract's method surface.

Single source of truth: pneuma/schemas/*.json. Each document lists the
contract's record types and methods (parameter shapes, output shape,
mutability). It is validated against spec/v1/contract.schema.json and
parsed once into a method table; the codec and call builder are driven
entirely by that table.

Shape grammar:
    scalar    bool | u8 | u32 | u64 | u128 | i32 | i64 | i128
              | string | bytes | address
    option<T> value that may be absent
    vec<T>    ordered sequence
    <Name>    a record type declared in the same document
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional

from ..errors import InvalidArgumentError
from ..spec.schemas import CONTRACT_SCHEMA, SchemaRegistry, SchemaValidationError, load_json
from ..utils import keccak256

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"

# shape name -> Ethereum ABI type
SCALAR_TYPES: dict[str, str] = {
    "bool": "bool",
    "u8": "uint8",
    "u32": "uint32",
    "u64": "uint64",
    "u128": "uint128",
    "i32": "int32",
    "i64": "int64",
    "i128": "int128",
    "string": "string",
    "bytes": "bytes",
    "address": "address",
}


@dataclass(frozen=True)
class Shape:
    kind: str  # "scalar" | "option" | "vec" | "record"
    name: str
    inner: Optional["Shape"] = None
    fields: tuple["Param", ...] = ()

    @property
    def abi_type(self) -> str:
        if self.kind == "scalar":
            return SCALAR_TYPES[self.name]
        if self.kind == "option":
            return f"(bool,{self.inner.abi_type})"
        if self.kind == "vec":
            return f"{self.inner.abi_type}[]"
        return "(" + ",".join(f.shape.abi_type for f in self.fields) + ")"

    def __str__(self) -> str:
        if self.kind in ("option", "vec"):
            return f"{self.kind}<{self.inner}>"
        return self.name


@dataclass(frozen=True)
class Param:
    name: str
    shape: Shape


@dataclass(frozen=True)
class MethodSpec:
    name: str
    inputs: tuple[Param, ...]
    output: Optional[Shape]
    mutates: bool
    doc: str = ""

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.shape.abi_type for p in self.inputs)})"

    @property
    def selector(self) -> bytes:
        """First 4 bytes of keccak256(signature)."""
        return keccak256(self.signature.encode("utf-8"))[:4]

    @property
    def input_shapes(self) -> tuple[Shape, ...]:
        return tuple(p.shape for p in self.inputs)


@dataclass(frozen=True)
class ContractSchema:
    name: str
    version: int
    records: Mapping[str, Shape] = field(default_factory=dict)
    methods: Mapping[str, MethodSpec] = field(default_factory=dict)

    def method(self, name: str) -> MethodSpec:
        try:
            return self.methods[name]
        except KeyError:
            raise InvalidArgumentError(
                f"Method {name!r} not found in {self.name} schema",
                field="method",
            ) from None

    def by_selector(self, selector: bytes) -> MethodSpec:
        for method in self.methods.values():
            if method.selector == selector:
                return method
        raise KeyError(selector.hex())

    @classmethod
    def from_dict(
        cls, payload: dict[str, Any], registry: SchemaRegistry | None = None
    ) -> "ContractSchema":
        registry = registry or SchemaRegistry.default()
        registry.validate_instance(payload, CONTRACT_SCHEMA)

        records: dict[str, Shape] = {}
        for entry in payload["records"]:
            fields = tuple(
                Param(f["name"], parse_shape(f["type"], records)) for f in entry["fields"]
            )
            records[entry["name"]] = Shape(kind="record", name=entry["name"], fields=fields)

        methods: dict[str, MethodSpec] = {}
        for entry in payload["methods"]:
            if entry["name"] in methods:
                raise SchemaValidationError(f"Duplicate method {entry['name']!r}")
            output = entry["output"]
            methods[entry["name"]] = MethodSpec(
                name=entry["name"],
                inputs=tuple(Param(p["name"], parse_shape(p["type"], records)) for p in entry["inputs"]),
                output=parse_shape(output, records) if output is not None else None,
                mutates=entry["mutates"],
                doc=entry.get("doc", ""),
            )

        return cls(name=payload["contract"], version=payload["version"], records=records, methods=methods)


def parse_shape(text: str, records: Mapping[str, Shape]) -> Shape:
    """
    Parse a shape expression such as ``option<vec<string>>``.

    Raises:
        SchemaValidationError: On unknown names or unbalanced brackets
    """
    text = text.strip()
    for kind in ("option", "vec"):
        prefix = f"{kind}<"
        if text.startswith(prefix):
            if not text.endswith(">"):
                raise SchemaValidationError(f"Unbalanced shape: {text!r}")
            return Shape(kind=kind, name=kind, inner=parse_shape(text[len(prefix):-1], records))
    if text in SCALAR_TYPES:
        return Shape(kind="scalar", name=text)
    if text in records:
        return records[text]
    raise SchemaValidationError(f"Unknown shape: {text!r}")


@lru_cache(maxsize=16)
def load_schema(contract_name: str = "document_storage") -> ContractSchema:
    """
    Load a contract schema shipped with the package.

    Args:
        contract_name: Schema file stem (e.g., "document_storage")

    Raises:
        FileNotFoundError: If the schema file does not exist
        SchemaValidationError: If the document is malformed
    """
    path = SCHEMA_DIR / f"{contract_name}.json"
    if not path.exists():
        raise FileNotFoundError(f"Contract schema not found: {path}")
    return ContractSchema.from_dict(load_json(path))


def document_storage_schema() -> ContractSchema:
    """Load the DocumentStorage schema."""
    return load_schema("document_storage")
