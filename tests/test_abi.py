"""Tests for contract schema loading."""

from __future__ import annotations

import copy

import pytest

from palimpsest.errors import InvalidArgumentError
from palimpsest.pneuma.abi import SCHEMA_DIR, ContractSchema, load_schema, parse_shape
from palimpsest.spec.schemas import SchemaValidationError, load_json


@pytest.fixture()
def payload() -> dict:
    return load_json(SCHEMA_DIR / "document_storage.json")


class TestDocumentStorageSchema:

    def test_method_table(self, schema: ContractSchema) -> None:
        assert set(schema.methods) == {
            "init",
            "store_document",
            "get_document",
            "get_user_documents",
            "update_document",
            "delete_document",
            "get_documents_by_tags",
            "get_document_count",
        }

    def test_mutability(self, schema: ContractSchema) -> None:
        mutating = {name for name, m in schema.methods.items() if m.mutates}
        assert mutating == {"init", "store_document", "update_document", "delete_document"}

    def test_signatures(self, schema: ContractSchema) -> None:
        assert schema.method("get_document_count").signature == "get_document_count(address)"
        assert schema.method("update_document").signature == (
            "update_document(address,uint32,(bool,bytes),(bool,string),(bool,bytes),(bool,string[]))"
        )

    def test_selectors_are_unique(self, schema: ContractSchema) -> None:
        selectors = [m.selector for m in schema.methods.values()]
        assert len(set(selectors)) == len(selectors)
        for method in schema.methods.values():
            assert schema.by_selector(method.selector) is method

    def test_record_field_order(self, schema: ContractSchema) -> None:
        fields = [f.name for f in schema.records["EncryptedDocument"].fields]
        assert fields == [
            "id",
            "owner",
            "encrypted_content",
            "name",
            "encrypted_metadata",
            "created_at",
            "updated_at",
            "tags",
        ]

    def test_unknown_method(self, schema: ContractSchema) -> None:
        with pytest.raises(InvalidArgumentError) as exc_info:
            schema.method("transfer")
        assert exc_info.value.field == "method"

    def test_loaded_once(self) -> None:
        assert load_schema("document_storage") is load_schema("document_storage")

    def test_missing_schema_file(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_schema("no_such_contract")


class TestSchemaValidation:

    def test_missing_methods(self, payload: dict) -> None:
        del payload["methods"]
        with pytest.raises(SchemaValidationError) as exc_info:
            ContractSchema.from_dict(payload)
        assert exc_info.value.errors

    def test_unknown_shape(self, payload: dict) -> None:
        broken = copy.deepcopy(payload)
        broken["methods"][0]["inputs"] = [{"name": "x", "type": "float"}]
        with pytest.raises(SchemaValidationError):
            ContractSchema.from_dict(broken)

    def test_duplicate_method(self, payload: dict) -> None:
        payload["methods"].append(copy.deepcopy(payload["methods"][0]))
        with pytest.raises(SchemaValidationError):
            ContractSchema.from_dict(payload)


class TestShapes:

    def test_abi_types(self) -> None:
        assert parse_shape("option<vec<string>>", {}).abi_type == "(bool,string[])"
        assert parse_shape("vec<u64>", {}).abi_type == "uint64[]"
        assert str(parse_shape("option<bytes>", {})) == "option<bytes>"

    def test_unbalanced(self) -> None:
        with pytest.raises(SchemaValidationError):
            parse_shape("vec<string", {})
