"""
Runtime configuration.

Values come from the process environment, optionally seeded from
``~/.palimpsest/.env`` (written by ``palimpsest genesis``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError
from .utils import is_address

PALIMPSEST_DIR = Path.home() / ".palimpsest"
PALIMPSEST_ENV = PALIMPSEST_DIR / ".env"

# Base Sepolia
DEFAULT_RPC_URL = "https://sepolia.base.org"
DEFAULT_CHAIN_ID = 84532
DEFAULT_SUBMIT_TIMEOUT = 60.0


@dataclass(frozen=True)
class Settings:
    rpc_url: str = DEFAULT_RPC_URL
    chain_id: int = DEFAULT_CHAIN_ID
    contract_address: Optional[str] = None
    submit_timeout: float = DEFAULT_SUBMIT_TIMEOUT
    env_path: Path = PALIMPSEST_ENV

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "Settings":
        """
        Build settings from the environment.

        Args:
            env_path: Path to a .env file (default: ~/.palimpsest/.env).
                      Loaded if it exists; existing variables win.

        Raises:
            ConfigError: If a variable is present but malformed
        """
        env_path = env_path or PALIMPSEST_ENV
        if env_path.exists():
            load_dotenv(env_path, override=False)

        chain_raw = os.environ.get("CHAIN_ID", str(DEFAULT_CHAIN_ID))
        try:
            chain_id = int(chain_raw)
        except ValueError as exc:
            raise ConfigError(f"CHAIN_ID must be an integer, got {chain_raw!r}", field="CHAIN_ID") from exc

        timeout_raw = os.environ.get("PALIMPSEST_SUBMIT_TIMEOUT", str(DEFAULT_SUBMIT_TIMEOUT))
        try:
            submit_timeout = float(timeout_raw)
        except ValueError as exc:
            raise ConfigError(
                f"PALIMPSEST_SUBMIT_TIMEOUT must be a number, got {timeout_raw!r}",
                field="PALIMPSEST_SUBMIT_TIMEOUT",
            ) from exc
        if submit_timeout <= 0:
            raise ConfigError("PALIMPSEST_SUBMIT_TIMEOUT must be positive", field="PALIMPSEST_SUBMIT_TIMEOUT")

        contract_address = os.environ.get("DOCUMENT_STORAGE_ADDRESS") or None
        if contract_address is not None and not is_address(contract_address):
            raise ConfigError(
                f"DOCUMENT_STORAGE_ADDRESS is not an address: {contract_address!r}",
                field="DOCUMENT_STORAGE_ADDRESS",
            )

        return cls(
            rpc_url=os.environ.get("PALIMPSEST_RPC_URL", DEFAULT_RPC_URL),
            chain_id=chain_id,
            contract_address=contract_address,
            submit_timeout=submit_timeout,
            env_path=env_path,
        )

    def require_contract(self) -> str:
        if not self.contract_address:
            raise ConfigError(
                "DOCUMENT_STORAGE_ADDRESS not set. Set it in the environment "
                f"or in {self.env_path}.",
                field="DOCUMENT_STORAGE_ADDRESS",
            )
        return self.contract_address
