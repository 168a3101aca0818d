"""
ECDSA / secp256k1 Key Management for Palimpsest.

This module handles Ethereum-compatible ECDSA keys used for:
- Signing state-changing contract calls (store, update, delete)
- Deriving the owner-scoped key that seals record content

Keys are stored in ~/.palimpsest/.env as PRIVATE_KEY (hex format) and
never leave this process.

Dependencies: eth-account (lightweight, no full web3.py needed)
"""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..config import PALIMPSEST_ENV
from ..pneuma.call import CallDescriptor
from ..pneuma.tx import CostEstimate, SignedCall


def generate_eoa() -> tuple[str, str]:
    """
    Generate a new ECDSA/secp256k1 keypair (EOA).

    Returns:
        Tuple of (private_key_hex, address)
        - private_key_hex: 0x-prefixed hex private key (66 chars)
        - address: 0x-prefixed checksummed Ethereum address (42 chars)
    """
    private_key = "0x" + secrets.token_hex(32)
    account = Account.from_key(private_key)
    return private_key, account.address


def read_env_file(env_path: Path) -> dict[str, str]:
    existing: dict[str, str] = {}
    if env_path.exists():
        for line in env_path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                k, v = line.split("=", 1)
                existing[k.strip()] = v.strip()
    return existing


def write_env_values(values: dict[str, str], env_path: Optional[Path] = None) -> Path:
    """Merge values into a .env file, keeping unrelated keys."""
    env_path = env_path or PALIMPSEST_ENV
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing = read_env_file(env_path)
    existing.update(values)

    lines = [f"{k}={v}" for k, v in existing.items()]
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    # Set secure permissions on Unix
    if os.name != "nt":
        env_path.chmod(0o600)

    return env_path


def save_private_key(private_key: str, env_path: Optional[Path] = None) -> Path:
    """
    Save private key to .env file.

    Args:
        private_key: 0x-prefixed hex private key
        env_path: Path to .env file (default: ~/.palimpsest/.env)

    Returns:
        Path to the saved .env file
    """
    return write_env_values({"PRIVATE_KEY": private_key}, env_path)


def load_private_key(env_path: Optional[Path] = None) -> str:
    """
    Load private key from .env file or environment.

    Args:
        env_path: Path to .env file (default: ~/.palimpsest/.env)

    Returns:
        0x-prefixed hex private key

    Raises:
        ValueError: If PRIVATE_KEY not found
    """
    env_path = env_path or PALIMPSEST_ENV

    if env_path.exists():
        load_dotenv(env_path, override=True)

    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        raise ValueError(
            f"PRIVATE_KEY not found. Run 'palimpsest genesis' or set "
            f"PRIVATE_KEY in {env_path}"
        )

    # Ensure 0x prefix
    if not private_key.startswith("0x"):
        private_key = "0x" + private_key

    return private_key


def get_account(private_key: Optional[str] = None) -> LocalAccount:
    """
    Get an eth-account LocalAccount from a private key.

    Args:
        private_key: 0x-prefixed hex private key.
                     If None, loads from .env.
    """
    if private_key is None:
        private_key = load_private_key()
    return Account.from_key(private_key)


def get_address(private_key: Optional[str] = None) -> str:
    """0x-prefixed checksummed address for a private key (or the .env key)."""
    return get_account(private_key).address


class LocalSigner:
    """
    Signs contract calls with a locally held key.

    Implements the Signer protocol expected by AssembledTransaction.
    """

    def __init__(self, private_key: Optional[str] = None) -> None:
        self._account = get_account(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, descriptor: CallDescriptor, estimate: CostEstimate) -> SignedCall:
        tx = descriptor.to_transaction(estimate)
        signed = self._account.sign_transaction(tx)
        return SignedCall(
            descriptor=descriptor,
            estimate=estimate,
            raw_transaction=bytes(signed.raw_transaction),
            tx_id="0x" + bytes(signed.hash).hex(),
        )
