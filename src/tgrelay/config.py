"""Configuration management for tgrelay.

Supports layered configuration with priority: CLI args > ENV vars > .env file > defaults
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_data_dir() -> Path:
    """Get platform-appropriate default data directory using platformdirs.

    - macOS: ~/Library/Application Support/tgrelay
    - Windows: %APPDATA%/tgrelay
    - Linux: ~/.local/share/tgrelay
    """
    return Path(platformdirs.user_data_dir("tgrelay", "tgrelay"))


def get_user_log_dir() -> Path:
    """Get platform-appropriate user logs directory."""
    return Path(platformdirs.user_log_dir("tgrelay", "tgrelay"))


class ProxyType(str, Enum):
    """Supported proxy types."""

    SOCKS5 = "socks5"
    HTTP = "http"


class ProxyConfig(BaseModel):
    """Proxy used for every Telegram connection."""

    enabled: bool = False
    proxy_type: ProxyType = ProxyType.SOCKS5
    host: str = ""
    port: int = Field(default=1080, ge=1, le=65535)
    username: str = ""
    password: str = ""

    def to_telethon_proxy(self) -> tuple[Any, ...] | None:
        """Convert to Telethon proxy format.

        Returns:
            Tuple of (proxy_type, host, port, rdns, username, password) or None if disabled
        """
        if not self.enabled or not self.host:
            return None

        import socks

        proxy_type_map = {
            ProxyType.SOCKS5: socks.SOCKS5,
            ProxyType.HTTP: socks.HTTP,
        }

        return (
            proxy_type_map[self.proxy_type],
            self.host,
            self.port,
            True,  # rdns (resolve DNS remotely)
            self.username or None,
            self.password or None,
        )


class Settings(BaseSettings):
    """Application settings with layered configuration support.

    Configuration is loaded in the following priority (highest to lowest):
    1. CLI arguments (passed directly to Settings())
    2. Environment variables (prefixed with TGRELAY_)
    3. .env file (if present in current directory)
    4. Default values

    Environment variables:
        TGRELAY_API_ID / TGRELAY_API_HASH: Telegram application credentials
        TGRELAY_HOST: Server host (default: 127.0.0.1)
        TGRELAY_PORT: Server port (default: 8000)
        TGRELAY_DATA_DIR: Directory holding credentials.json and triggers.json
        TGRELAY_LOG_LEVEL: Logging level (default: INFO)
        TGRELAY_PROXY__HOST etc.: Nested proxy settings
    """

    model_config = SettingsConfigDict(
        env_prefix="TGRELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    # Server settings
    host: str = Field(default="127.0.0.1", description="Server host to bind to")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port to bind to")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Telegram application credentials (https://my.telegram.org/apps)
    api_id: int = Field(default=0, ge=0, description="Telegram API ID")
    api_hash: str = Field(default="", description="Telegram API hash")

    # Paths
    data_dir: Path = Field(
        default_factory=_get_default_data_dir,
        description="Base directory for persisted credentials and triggers",
    )

    # Timeouts (seconds)
    connect_timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Timeout for connecting an account with a stored credential",
    )
    registration_timeout: float = Field(
        default=600.0,
        ge=10.0,
        le=3600.0,
        description="Time allowed for a registration handshake to complete",
    )

    proxy: ProxyConfig = Field(default_factory=ProxyConfig)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_to_file: bool = Field(default=False, description="Also log to a rotating file")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        ge=1024 * 1024,
        le=100 * 1024 * 1024,
        description="Maximum size of each log file before rotation",
    )
    log_file_backup_count: int = Field(
        default=5, ge=1, le=20, description="Number of backup log files to keep"
    )
    log_format: str = Field(
        default="text",
        description="Log format: 'text' for human-readable, 'json' for structured logging",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is supported."""
        valid_formats = {"text", "json"}
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Invalid log format: {v}. Must be one of: {', '.join(valid_formats)}")
        return v_lower

    @property
    def credentials_path(self) -> Path:
        """Credential document (identity -> session string)."""
        return self.data_dir / "credentials.json"

    @property
    def triggers_path(self) -> Path:
        """Trigger document (identity -> list of rules)."""
        return self.data_dir / "triggers.json"

    @property
    def log_file_path(self) -> Path:
        return get_user_log_dir() / "tgrelay.log"

    def ensure_data_dirs(self) -> list[str]:
        """Create data directories if they don't exist.

        Returns:
            List of error messages (empty if all successful)
        """
        errors = []
        dirs_to_create = [("data", self.data_dir)]
        if self.log_to_file:
            dirs_to_create.append(("log", self.log_file_path.parent))

        for dir_name, dir_path in dirs_to_create:
            try:
                dir_path.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(
                    f"Permission denied creating {dir_name} directory: {dir_path}\n"
                    f"  → Use --data-dir flag or grant write permissions"
                )
            except OSError as e:
                errors.append(f"Failed to create {dir_name} directory: {dir_path} ({e})")

        return errors

    def check(self) -> list[str]:
        """Validate configuration and return any warnings."""
        warnings = []
        if not self.api_id or not self.api_hash:
            warnings.append(
                "Telegram API credentials are not set (TGRELAY_API_ID / TGRELAY_API_HASH); "
                "connections will fail"
            )
        if self.data_dir.exists() and not self.data_dir.is_dir():
            warnings.append(f"Data path exists but is not a directory: {self.data_dir}")
        if self.debug and self.host == "0.0.0.0":  # nosec B104
            warnings.append(
                "Debug mode enabled with public host binding - not recommended for production"
            )
        return warnings

    def print_config(self) -> None:
        """Print current configuration to stdout."""
        print("tgrelay Configuration:")
        print(f"  Host: {self.host}")
        print(f"  Port: {self.port}")
        print(f"  Debug: {self.debug}")
        print(f"  API ID: {self.api_id or 'not set'}")
        print(f"  API Hash: {'set' if self.api_hash else 'not set'}")
        print(f"  Data Directory: {self.data_dir}")
        print(f"  Credentials: {self.credentials_path}")
        print(f"  Triggers: {self.triggers_path}")
        print(f"  Connect Timeout: {self.connect_timeout}s")
        print(f"  Registration Timeout: {self.registration_timeout}s")
        if self.proxy.enabled:
            print(f"  Proxy: {self.proxy.proxy_type.value}://{self.proxy.host}:{self.proxy.port}")
        else:
            print("  Proxy: disabled")
        print(f"  Log Level: {self.log_level}")
        print(f"  Log Format: {self.log_format}")
        if self.log_to_file:
            print(f"  Log File: {self.log_file_path}")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    To reload settings, call reset_settings() first.
    """
    return Settings()


def reset_settings() -> None:
    """Clear settings cache to force reload on next get_settings() call."""
    get_settings.cache_clear()
