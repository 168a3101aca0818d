"""Unit tests for utils.py functions."""

from __future__ import annotations

import pytest

from palimpsest.utils import is_address, keccak256, same_address, to_checksum_address, unix_now


class TestKeccak:
    def test_empty_input(self):
        assert keccak256(b"").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"

    def test_differs_from_sha3(self):
        import hashlib

        assert keccak256(b"abc") != hashlib.sha3_256(b"abc").digest()


class TestAddresses:
    def test_checksum_known_vector(self):
        # EIP-55 test vector
        lowered = "0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed"
        assert to_checksum_address(lowered) == "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"

    def test_checksum_is_idempotent(self):
        addr = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"
        assert to_checksum_address(addr) == addr
        assert to_checksum_address(addr.lower()) == addr

    @pytest.mark.parametrize("value", ["", "0x", "0x1234", "5aaeb6053f3e94c9b9a09f33669435e7ef1beaed", None, 42])
    def test_rejects_non_addresses(self, value):
        assert not is_address(value)

    def test_checksum_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_checksum_address("0xnot-an-address")

    def test_same_address_ignores_case(self):
        assert same_address(
            "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
            "0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed",
        )
        assert not same_address(
            "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
            "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359",
        )


def test_unix_now_is_seconds():
    now = unix_now()
    assert isinstance(now, int)
    assert now > 1_600_000_000
