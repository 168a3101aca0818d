"""
Pneuma - Ledger interaction layer for Palimpsest.

Provides the contract schema, wire codec, call builder, transaction
assembler and two networks: a JSON-RPC adapter for EVM nodes and an
in-process ledger for development and tests.

Uses httpx + eth-account + eth-abi instead of the heavyweight web3.py.
"""
