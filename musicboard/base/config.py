# ============================================================================
# musicboard/base/config.py
# Client Configuration Management
# ============================================================================
#
# PURPOSE:
# All tunables for the MusicBoard client: where the ledger lives, where the
# encryption capability comes from, how long to wait for confirmations and
# how logging is set up.
#
# KEY CONCEPTS:
# 1. Frozen dataclasses: one immutable section per concern
# 2. Environment Variables: every setting can be overridden (MUSICBOARD_*)
# 3. Process-wide accessor: get_config() builds from env once, set_config()
#    replaces it (tests, embedding applications)
#
# ============================================================================

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

SEPOLIA_CHAIN_ID = 11155111


# ============================================================================
# Ledger Configuration
# ============================================================================

@dataclass(frozen=True)
class LedgerConfig:
    # Chain whose address-book entry is preferred over the session chain
    default_chain_id: int = SEPOLIA_CHAIN_ID

    # Explicit contract address; bypasses the address book when set
    contract_address: Optional[str] = None

    # Wait before the first post-write re-read (seconds)
    note_refresh_delay: float = 1.2
    applause_refresh_delay: float = 1.0

    # Post-write polling: how many reads, and the gap between them
    refresh_attempts: int = 5
    refresh_interval: float = 1.5

    # Upper bound on waiting for a transaction to confirm (seconds)
    confirmation_timeout: float = 180.0


# ============================================================================
# Encryption Capability Configuration
# ============================================================================

@dataclass(frozen=True)
class CapabilityConfig:
    # In-process module tried first
    module_name: str = "relayer_sdk"

    # Global name the remote script installs itself under
    global_name: str = "relayerSDK"

    # Versioned remote script resource
    script_url: str = "https://cdn.zama.ai/relayer-sdk-js/0.2.0/relayer-sdk-js.umd.cjs"
    script_timeout: float = 30.0

    # Hex SHA-256 the fetched script must match before it is executed.
    # Unset means the script path refuses to run anything.
    script_sha256: Optional[str] = None

    # Chain id -> name of the network preset exposed by the factory
    network_presets: tuple = ((SEPOLIA_CHAIN_ID, "SepoliaConfig"),)

    def preset_name(self, chain_id: int) -> Optional[str]:
        return dict(self.network_presets).get(chain_id)


# ============================================================================
# Wallet RPC Configuration
# ============================================================================

@dataclass(frozen=True)
class RpcConfig:
    url: str = "https://ethereum-sepolia-rpc.publicnode.com"
    request_timeout: float = 30.0


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    file_enabled: bool = False
    file_path: Path = field(default_factory=lambda: Path.home() / ".musicboard" / "musicboard.log")
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass
class MusicBoardConfig:
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    capability: CapabilityConfig = field(default_factory=CapabilityConfig)
    rpc: RpcConfig = field(default_factory=RpcConfig)
    log: LogConfig = field(default_factory=LogConfig)
    debug: bool = False

    @classmethod
    def from_env(cls) -> "MusicBoardConfig":
        ledger = LedgerConfig(
            default_chain_id=int(os.getenv("MUSICBOARD_DEFAULT_CHAIN_ID", str(SEPOLIA_CHAIN_ID))),
            contract_address=os.getenv("MUSICBOARD_CONTRACT_ADDRESS") or None,
            note_refresh_delay=float(os.getenv("MUSICBOARD_NOTE_REFRESH_DELAY", "1.2")),
            applause_refresh_delay=float(os.getenv("MUSICBOARD_APPLAUSE_REFRESH_DELAY", "1.0")),
            refresh_attempts=int(os.getenv("MUSICBOARD_REFRESH_ATTEMPTS", "5")),
            refresh_interval=float(os.getenv("MUSICBOARD_REFRESH_INTERVAL", "1.5")),
            confirmation_timeout=float(os.getenv("MUSICBOARD_CONFIRMATION_TIMEOUT", "180")),
        )

        defaults = CapabilityConfig()
        capability = CapabilityConfig(
            module_name=os.getenv("MUSICBOARD_SDK_MODULE", defaults.module_name),
            global_name=os.getenv("MUSICBOARD_SDK_GLOBAL", defaults.global_name),
            script_url=os.getenv("MUSICBOARD_SDK_SCRIPT_URL", defaults.script_url),
            script_timeout=float(os.getenv("MUSICBOARD_SDK_SCRIPT_TIMEOUT", "30")),
            script_sha256=os.getenv("MUSICBOARD_SDK_SCRIPT_SHA256") or None,
        )

        rpc = RpcConfig(
            url=os.getenv("MUSICBOARD_RPC_URL", RpcConfig.url),
            request_timeout=float(os.getenv("MUSICBOARD_RPC_TIMEOUT", "30")),
        )

        log_defaults = LogConfig()
        log = LogConfig(
            level=os.getenv("MUSICBOARD_LOG_LEVEL", "INFO"),
            file_enabled=os.getenv("MUSICBOARD_LOG_FILE_ENABLED", "false").lower() == "true",
            file_path=Path(os.getenv("MUSICBOARD_LOG_FILE", str(log_defaults.file_path))),
        )

        return cls(
            ledger=ledger,
            capability=capability,
            rpc=rpc,
            log=log,
            debug=os.getenv("MUSICBOARD_DEBUG", "false").lower() == "true",
        )


_config: Optional[MusicBoardConfig] = None


def get_config() -> MusicBoardConfig:
    global _config
    if _config is None:
        _config = MusicBoardConfig.from_env()
    return _config


def set_config(config: Optional[MusicBoardConfig]) -> None:
    global _config
    _config = config


def setup_logging(config: Optional[MusicBoardConfig] = None) -> None:
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_enabled:
        from logging.handlers import RotatingFileHandler
        cfg.log.file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.log.file_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    level = "DEBUG" if cfg.debug else cfg.log.level.upper()
    logging.basicConfig(
        level=getattr(logging, level),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
