"""
Settings — Default configuration and the settings loader for the migrator.

This module provides the DEFAULT_SETTINGS dict used as fallback values when
environment variables are not set, the NEAR network presets, and the
MigrationConfig struct that is handed to the orchestrator. Configuration is
loaded from a .env file at runtime; nothing here is process-wide state once
load_config() has returned.

Configuration precedence (highest to lowest):
  1. CLI flags (--debug, --dry-run)
  2. Environment variables (from .env file)
  3. DEFAULT_SETTINGS (this file)

Settings reference:
  NEAR_NETWORK            "mainnet" or "testnet"; RPC preset and CLI network-config
  NEAR_RPC_URL            Overrides the preset RPC URL for reads
  SOURCE_ACCOUNT_ID       Contract to read from (must be in ReadOnly status)
  DESTINATION_ACCOUNT_ID  Contract to write to (must be in Genesis status)
  SIGNER_ACCOUNT_ID       Account signing the writes (default: destination)
  NEAR_CLI_BIN            Signer executable (default: "near")
  FETCH_PAGE_SIZE         Records per read page (default: 50)
  COMMIT_CHUNK_SIZE       Records per write batch (default: 20)
  GAS_BUDGET              Gas attached to every write (default: 300 Tgas)
  MAX_CONCURRENT_FETCHES  Page reads in flight at once (default: 8)
  REQUEST_TIMEOUT         RPC request timeout in seconds (default: 30)
  NODES_START_INDEX       First node index to commit (default: 0)
  ACCOUNTS_START_INDEX    First account index to commit (default: 0)
  DRY_RUN                 Fetch and report only, never write (default: False)
  DEBUG                   Verbose output (default: False)
  OUTPUT_DIR              Where run results are written (default: ./output)
  OUTPUT_RETENTION_DAYS   Days to keep old output folders (0 = keep forever)
  SAVE_RESULTS            Whether to write migration_results.json (default: True)
"""

import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Any, List, Optional

from dotenv import load_dotenv


class ConfigError(ValueError):
    """A setting is present but cannot be turned into a usable value."""


# 300 Tgas, the largest budget a single function call may attach.
GAS_BUDGET = 300 * 10**12

NETWORKS = {
    "mainnet": "https://rpc.mainnet.near.org",
    "testnet": "https://rpc.testnet.near.org",
}

DEFAULT_SETTINGS = {
    "NEAR_NETWORK": "mainnet",
    "NEAR_CLI_BIN": "near",
    "FETCH_PAGE_SIZE": 50,
    "COMMIT_CHUNK_SIZE": 20,
    "GAS_BUDGET": GAS_BUDGET,
    "MAX_CONCURRENT_FETCHES": 8,
    "REQUEST_TIMEOUT": 30,
    "NODES_START_INDEX": 0,
    "ACCOUNTS_START_INDEX": 0,
    "DRY_RUN": False,
    "DEBUG": False,
    "OUTPUT_DIR": "./output",
    "OUTPUT_RETENTION_DAYS": 30,
    "SAVE_RESULTS": True,
}


@dataclass
class MigrationConfig:
    """Every parameter of one migration run.

    Attributes:
        network_id: "mainnet" or "testnet".
        rpc_url: JSON-RPC endpoint used for reads.
        source_account_id: Contract the records are read from.
        destination_account_id: Contract the records are written to.
        signer_account_id: Account whose key signs the write calls.
        near_cli_bin: Executable used to sign and submit write calls.
        page_size: Records requested per read page.
        chunk_size: Records sent per write batch.
        gas: Gas attached to every write call.
        max_concurrency: Upper bound on page reads in flight.
        request_timeout: RPC request timeout in seconds.
        nodes_start_index: First node index to commit (resume support).
        accounts_start_index: First account index to commit (resume support).
        dry_run: If True, stop after the report and never write.
        debug: If True, print verbose progress.
        output_dir: Root directory for run results.
        retention_days: Days to keep old output folders (0 = forever).
        save_results: Whether to write migration_results.json.
    """

    network_id: str
    rpc_url: str
    source_account_id: str
    destination_account_id: str
    signer_account_id: str
    near_cli_bin: str = DEFAULT_SETTINGS["NEAR_CLI_BIN"]
    page_size: int = DEFAULT_SETTINGS["FETCH_PAGE_SIZE"]
    chunk_size: int = DEFAULT_SETTINGS["COMMIT_CHUNK_SIZE"]
    gas: int = DEFAULT_SETTINGS["GAS_BUDGET"]
    max_concurrency: int = DEFAULT_SETTINGS["MAX_CONCURRENT_FETCHES"]
    request_timeout: int = DEFAULT_SETTINGS["REQUEST_TIMEOUT"]
    nodes_start_index: int = DEFAULT_SETTINGS["NODES_START_INDEX"]
    accounts_start_index: int = DEFAULT_SETTINGS["ACCOUNTS_START_INDEX"]
    dry_run: bool = DEFAULT_SETTINGS["DRY_RUN"]
    debug: bool = DEFAULT_SETTINGS["DEBUG"]
    output_dir: str = DEFAULT_SETTINGS["OUTPUT_DIR"]
    retention_days: int = DEFAULT_SETTINGS["OUTPUT_RETENTION_DAYS"]
    save_results: bool = DEFAULT_SETTINGS["SAVE_RESULTS"]

    def validate(self) -> List[str]:
        """Check the values that load_config() cannot reject on its own.

        Returns:
            A list of error messages; empty when the config is usable.
        """
        errors = []
        if not self.source_account_id:
            errors.append("SOURCE_ACCOUNT_ID is required")
        if not self.destination_account_id:
            errors.append("DESTINATION_ACCOUNT_ID is required")
        if (
            self.source_account_id
            and self.source_account_id == self.destination_account_id
        ):
            errors.append("SOURCE_ACCOUNT_ID and DESTINATION_ACCOUNT_ID must differ")
        if not self.signer_account_id:
            errors.append("SIGNER_ACCOUNT_ID is required")
        if self.page_size <= 0:
            errors.append("FETCH_PAGE_SIZE must be positive")
        if self.chunk_size <= 0:
            errors.append("COMMIT_CHUNK_SIZE must be positive")
        if self.max_concurrency <= 0:
            errors.append("MAX_CONCURRENT_FETCHES must be positive")
        if self.gas <= 0:
            errors.append("GAS_BUDGET must be positive")
        if self.nodes_start_index < 0:
            errors.append("NODES_START_INDEX must not be negative")
        if self.accounts_start_index < 0:
            errors.append("ACCOUNTS_START_INDEX must not be negative")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _get_int(name: str) -> int:
    raw = os.getenv(name, str(DEFAULT_SETTINGS[name])).strip()
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _get_bool(name: str) -> bool:
    return os.getenv(name, str(DEFAULT_SETTINGS[name])).strip().lower() == "true"


def load_config(env_file: Optional[str] = "./.env") -> MigrationConfig:
    """Build a MigrationConfig from the environment.

    Args:
        env_file: Path to a .env file. If the file exists, it is loaded via
                  python-dotenv. Otherwise, falls back to system environment.

    Returns:
        The populated MigrationConfig. Call validate() before using it.

    Raises:
        ConfigError: If a numeric setting is not an integer or the network
                     is unknown.
    """
    if env_file:
        env_path = Path(env_file)
        if env_path.exists():
            load_dotenv(env_path)
            print(f"Loaded configuration from: {env_file}")
        else:
            print(f"Warning: {env_file} not found, using defaults/environment")

    network_id = os.getenv("NEAR_NETWORK", DEFAULT_SETTINGS["NEAR_NETWORK"]).strip().lower()
    if network_id not in NETWORKS:
        raise ConfigError(
            f"NEAR_NETWORK must be one of {', '.join(sorted(NETWORKS))}, got {network_id!r}"
        )
    rpc_url = os.getenv("NEAR_RPC_URL", "") or NETWORKS[network_id]

    destination = os.getenv("DESTINATION_ACCOUNT_ID", "").strip()

    return MigrationConfig(
        network_id=network_id,
        rpc_url=rpc_url,
        source_account_id=os.getenv("SOURCE_ACCOUNT_ID", "").strip(),
        destination_account_id=destination,
        # genesis_init_* methods are #[private]: only the contract account may call them.
        signer_account_id=os.getenv("SIGNER_ACCOUNT_ID", "").strip() or destination,
        near_cli_bin=os.getenv("NEAR_CLI_BIN", DEFAULT_SETTINGS["NEAR_CLI_BIN"]),
        page_size=_get_int("FETCH_PAGE_SIZE"),
        chunk_size=_get_int("COMMIT_CHUNK_SIZE"),
        gas=_get_int("GAS_BUDGET"),
        max_concurrency=_get_int("MAX_CONCURRENT_FETCHES"),
        request_timeout=_get_int("REQUEST_TIMEOUT"),
        nodes_start_index=_get_int("NODES_START_INDEX"),
        accounts_start_index=_get_int("ACCOUNTS_START_INDEX"),
        dry_run=_get_bool("DRY_RUN"),
        debug=_get_bool("DEBUG"),
        output_dir=os.getenv("OUTPUT_DIR", DEFAULT_SETTINGS["OUTPUT_DIR"]),
        retention_days=_get_int("OUTPUT_RETENTION_DAYS"),
        save_results=_get_bool("SAVE_RESULTS"),
    )
