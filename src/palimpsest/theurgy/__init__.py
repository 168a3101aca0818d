"""
Theurgy - Command implementations for the Palimpsest CLI.

Each module corresponds to top-level CLI commands:
- genesis: Create a wallet and write the default configuration
- inscribe: Seal and store a new record
- recall:  Read, list, search and count records
- amend:   Partially update a record
- erase:   Delete a record
"""
