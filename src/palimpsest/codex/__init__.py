"""
Codex - The owner-scoped encrypted record model.

- records:  Record and RecordPatch value types
- merge:    Partial-update merge policy
- contract: DocumentStorage contract semantics (hosted by LocalLedger)
- store:    RecordStore facade, one method per record operation
"""
