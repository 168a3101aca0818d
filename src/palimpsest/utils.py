from __future__ import annotations

import re
import time

from eth_hash.auto import keccak

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def keccak256(data: bytes) -> bytes:
    # Keccak-256 != SHA3-256 (NIST). Never use hashlib.sha3_256 here.
    return keccak(data)


def is_address(value: object) -> bool:
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def to_checksum_address(address: str) -> str:
    """Convert an address to EIP-55 checksummed format."""
    if not is_address(address):
        raise ValueError(f"Not a 20-byte hex address: {address!r}")
    addr = address[2:].lower()
    addr_hash = keccak256(addr.encode("utf-8")).hex()
    result = "0x"
    for i, c in enumerate(addr):
        if c in "abcdef":
            result += c.upper() if int(addr_hash[i], 16) >= 8 else c
        else:
            result += c
    return result


def same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


def unix_now() -> int:
    return int(time.time())
