"""
Identity Configuration Module
=============================

Provides immutable, environment-aware configuration with security-first defaults.

Security Features:
- Immutable configuration after initialization
- Environment variable override support
- No secrets in default values (and none accepted from the environment)
- OS-aware path handling
"""

from __future__ import annotations

import hashlib
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Any, Optional


# Security Constants
_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset({
    "password", "secret", "key", "token", "mnemonic",
    "private", "credential", "passphrase", "seed"
})

SUPPORTED_STORE_BACKENDS: Final[frozenset[str]] = frozenset({"sqlite", "memory"})


def _is_sensitive_key(key: str) -> bool:
    """Check if a configuration key might contain sensitive data."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS)


def _get_default_data_dir() -> Path:
    """Get OS-appropriate default data directory."""
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif system == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:  # Linux and others
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))

    return base / "AuroraID"


def _get_default_log_dir() -> Path:
    """Get OS-appropriate default log directory."""
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / "AuroraID" / "Logs"
    elif system == "darwin":
        return Path.home() / "Library" / "Logs" / "AuroraID"
    else:  # Linux and others
        return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / "AuroraID" / "logs"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class PathConfig:
    """Immutable path configuration with OS-aware defaults."""

    data_dir: Path = field(default_factory=_get_default_data_dir)
    log_dir: Path = field(default_factory=_get_default_log_dir)

    def __post_init__(self) -> None:
        """Validate paths after initialization."""
        for field_name in ["data_dir", "log_dir"]:
            path = getattr(self, field_name)
            if not path.is_absolute():
                raise ValueError(f"{field_name} must be an absolute path: {path}")


@dataclass(frozen=True, slots=True)
class WalletConfig:
    """Wallet derivation settings."""

    default_chain_type: str = "ethereum"
    # Optional screen geometry to feed the device fingerprint, e.g. "1920x1080".
    # Headless processes have no screen, so the attribute is skipped by default.
    screen_resolution: Optional[str] = None

    def __post_init__(self) -> None:
        from auroraid.core.crypto.wallet import ChainType

        # Raises UnsupportedChainTypeError
        ChainType.parse(self.default_chain_type)


@dataclass(frozen=True, slots=True)
class StoreConfig:
    """Key-value store selection."""

    backend: str = "sqlite"
    filename: str = "identity.db"

    def __post_init__(self) -> None:
        if self.backend not in SUPPORTED_STORE_BACKENDS:
            raise ValueError(f"Invalid store backend: {self.backend}")
        if "/" in self.filename or "\\" in self.filename or self.filename in ("", ".", ".."):
            raise ValueError(f"Store filename must be a bare file name: {self.filename!r}")


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Immutable logging configuration."""

    level: str = "INFO"
    max_file_size_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5
    enable_console: bool = True
    enable_file: bool = False
    enable_json: bool = False
    include_checksums: bool = True

    def __post_init__(self) -> None:
        """Validate logging settings."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {self.level}")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Immutable application configuration."""

    app_name: str = "AuroraID"
    version: str = "0.1.0"


class IdentityConfig:
    """
    Centralized, immutable configuration loader with environment override support.

    Usage:
        config = IdentityConfig.load()
        db_path = config.store_path
        chain = config.wallet.default_chain_type

    Environment variables are prefixed with AURORAID_ and use double
    underscores for nested values:
        AURORAID_LOGGING__LEVEL=DEBUG
        AURORAID_STORE__BACKEND=memory
        AURORAID_PATHS__DATA_DIR=/custom/path
        AURORAID_WALLET__DEFAULT_CHAIN_TYPE=polkadot
    """

    __slots__ = ("_paths", "_wallet", "_store", "_logging", "_app", "_frozen", "_config_hash")

    def __init__(
        self,
        paths: Optional[PathConfig] = None,
        wallet: Optional[WalletConfig] = None,
        store: Optional[StoreConfig] = None,
        logging: Optional[LoggingConfig] = None,
        app: Optional[AppConfig] = None,
    ) -> None:
        """Initialize configuration. Use IdentityConfig.load() for standard initialization."""
        object.__setattr__(self, "_frozen", False)
        object.__setattr__(self, "_paths", paths or PathConfig())
        object.__setattr__(self, "_wallet", wallet or WalletConfig())
        object.__setattr__(self, "_store", store or StoreConfig())
        object.__setattr__(self, "_logging", logging or LoggingConfig())
        object.__setattr__(self, "_app", app or AppConfig())
        object.__setattr__(self, "_config_hash", self._compute_hash())
        object.__setattr__(self, "_frozen", True)

    def _compute_hash(self) -> str:
        """Compute a hash of the configuration for integrity checking."""
        config_str = f"{self._paths}|{self._wallet}|{self._store}|{self._logging}|{self._app}"
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @property
    def paths(self) -> PathConfig:
        return self._paths

    @property
    def wallet(self) -> WalletConfig:
        return self._wallet

    @property
    def store(self) -> StoreConfig:
        return self._store

    @property
    def logging(self) -> LoggingConfig:
        return self._logging

    @property
    def app(self) -> AppConfig:
        return self._app

    @property
    def config_hash(self) -> str:
        """Get configuration integrity hash."""
        return self._config_hash

    @property
    def store_path(self) -> Path:
        """Location of the SQLite key-value store."""
        return self._paths.data_dir / self._store.filename

    @classmethod
    def load(cls, env_prefix: str = "AURORAID") -> IdentityConfig:
        """
        Load configuration with environment variable overrides.

        Args:
            env_prefix: Prefix for environment variables (default: AURORAID)

        Returns:
            Configured IdentityConfig instance
        """
        env_overrides = cls._parse_env_overrides(env_prefix)

        paths_kwargs: dict[str, Any] = {}
        if "paths.data_dir" in env_overrides:
            paths_kwargs["data_dir"] = Path(env_overrides["paths.data_dir"])
        if "paths.log_dir" in env_overrides:
            paths_kwargs["log_dir"] = Path(env_overrides["paths.log_dir"])

        wallet_kwargs: dict[str, Any] = {}
        if "wallet.default_chain_type" in env_overrides:
            wallet_kwargs["default_chain_type"] = env_overrides["wallet.default_chain_type"].lower()
        if "wallet.screen_resolution" in env_overrides:
            wallet_kwargs["screen_resolution"] = env_overrides["wallet.screen_resolution"]

        store_kwargs: dict[str, Any] = {}
        if "store.backend" in env_overrides:
            store_kwargs["backend"] = env_overrides["store.backend"].lower()
        if "store.filename" in env_overrides:
            store_kwargs["filename"] = env_overrides["store.filename"]

        logging_kwargs: dict[str, Any] = {}
        if "logging.level" in env_overrides:
            logging_kwargs["level"] = env_overrides["logging.level"].upper()
        if "logging.enable_console" in env_overrides:
            logging_kwargs["enable_console"] = _parse_bool(env_overrides["logging.enable_console"])
        if "logging.enable_file" in env_overrides:
            logging_kwargs["enable_file"] = _parse_bool(env_overrides["logging.enable_file"])
        if "logging.enable_json" in env_overrides:
            logging_kwargs["enable_json"] = _parse_bool(env_overrides["logging.enable_json"])
        if "logging.include_checksums" in env_overrides:
            logging_kwargs["include_checksums"] = _parse_bool(env_overrides["logging.include_checksums"])

        return cls(
            paths=PathConfig(**paths_kwargs) if paths_kwargs else None,
            wallet=WalletConfig(**wallet_kwargs) if wallet_kwargs else None,
            store=StoreConfig(**store_kwargs) if store_kwargs else None,
            logging=LoggingConfig(**logging_kwargs) if logging_kwargs else None,
        )

    @staticmethod
    def _parse_env_overrides(prefix: str) -> dict[str, str]:
        """Parse environment variables with the given prefix."""
        overrides: dict[str, str] = {}
        prefix_upper = f"{prefix.upper()}_"

        for key, value in os.environ.items():
            if key.startswith(prefix_upper):
                # AURORAID_SECTION__KEY -> section.key
                config_key = key[len(prefix_upper):].lower().replace("__", ".")

                # SECURITY: Skip sensitive keys from environment
                if _is_sensitive_key(config_key):
                    continue

                overrides[config_key] = value

        return overrides

    def ensure_directories(self) -> None:
        """Create all required directories with secure permissions."""
        import stat

        for directory in (self._paths.data_dir, self._paths.log_dir):
            directory.mkdir(parents=True, exist_ok=True)

            # Set restrictive permissions on Unix-like systems
            if platform.system().lower() != "windows":
                directory.chmod(stat.S_IRWXU)  # 700 - owner only

    def __repr__(self) -> str:
        """Safe string representation without sensitive data."""
        return f"IdentityConfig(hash={self._config_hash}, app={self._app.app_name})"

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification after initialization."""
        if hasattr(self, "_frozen") and self._frozen:
            raise AttributeError("IdentityConfig is immutable after initialization")
        super().__setattr__(name, value)
