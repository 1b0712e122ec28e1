"""
Configuration settings with environment variable loading.

All secrets MUST be provided via environment variables (or a .env file).
Never log or expose tokens in any output.
"""

import json
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 15000
DEFAULT_ALLOWED_ORIGINS = ("http://localhost:*", "http://127.0.0.1:*")
DEFAULT_ADDON_OPTIONS_PATH = Path("/data/options.json")

# add-on option name -> environment variable
_ADDON_OPTIONS = {
    "canvas_base_url": "CANVAS_BASE_URL",
    "canvas_api_token": "CANVAS_API_TOKEN",
    "mcp_auth_token": "MCP_AUTH_TOKEN",
}


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class CanvasConfig:
    """Canvas LMS configuration."""
    base_url: str
    api_token: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def __post_init__(self):
        if not self.base_url:
            raise ConfigurationError("CANVAS_BASE_URL is required")
        if not self.api_token:
            raise ConfigurationError("CANVAS_API_TOKEN is required")
        # Validate URL format
        if not self.base_url.startswith("https://"):
            raise ConfigurationError("CANVAS_BASE_URL must use HTTPS")
        if self.timeout_ms <= 0:
            raise ConfigurationError("CANVAS_TIMEOUT_MS must be a positive integer")

    def __repr__(self) -> str:
        """Never expose token in repr."""
        return (
            f"CanvasConfig(base_url='{self.base_url}', api_token='***REDACTED***', "
            f"timeout_ms={self.timeout_ms})"
        )


@dataclass(frozen=True)
class ServerConfig:
    """MCP HTTP server configuration."""
    port: int = 8080
    host: str = "0.0.0.0"
    base_path: str = "/mcp"
    allowed_origins: tuple = field(default_factory=lambda: DEFAULT_ALLOWED_ORIGINS)
    auth_token: str = ""

    def __post_init__(self):
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"PORT must be between 1 and 65535, got {self.port}")
        if not self.base_path.startswith("/"):
            raise ConfigurationError("BASE_PATH must start with '/'")
        object.__setattr__(self, "allowed_origins", tuple(self.allowed_origins))

    @property
    def auth_enabled(self) -> bool:
        return bool(self.auth_token)

    def __repr__(self) -> str:
        """Safe repr without the auth token."""
        return (
            f"ServerConfig(host='{self.host}', port={self.port}, base_path='{self.base_path}', "
            f"allowed_origins={list(self.allowed_origins)}, auth_enabled={self.auth_enabled})"
        )


@dataclass(frozen=True)
class Settings:
    """
    Application settings container.

    All configuration is loaded from environment variables.
    Secrets are never logged or exposed.
    """
    canvas: CanvasConfig
    server: ServerConfig
    log_level: str = "INFO"

    def __repr__(self) -> str:
        return (
            f"Settings(\n"
            f"  canvas={self.canvas},\n"
            f"  server={self.server},\n"
            f"  log_level={self.log_level}\n"
            f")"
        )


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Load settings from environment variables.

    Optionally loads from a .env file first.

    Args:
        env_file: Optional path to .env file

    Returns:
        Configured Settings instance

    Raises:
        ConfigurationError: If required configuration is missing
    """
    # Load .env file if provided
    if env_file and env_file.exists():
        _load_env_file(env_file)
    elif Path(".env").exists():
        _load_env_file(Path(".env"))

    try:
        canvas = CanvasConfig(
            base_url=os.getenv("CANVAS_BASE_URL", "").strip().rstrip("/"),
            api_token=os.getenv("CANVAS_API_TOKEN", "").strip(),
            timeout_ms=_parse_int("CANVAS_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
        )

        server = ServerConfig(
            port=_parse_int("PORT", 8080),
            host=os.getenv("HOST", "0.0.0.0"),
            base_path=os.getenv("BASE_PATH", "/mcp"),
            allowed_origins=_parse_origins(os.getenv("ALLOWED_ORIGINS")),
            auth_token=os.getenv("MCP_AUTH_TOKEN", ""),
        )

        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        settings = Settings(
            canvas=canvas,
            server=server,
            log_level=log_level,
        )

        logger.info("Configuration loaded successfully")
        logger.debug(f"Settings: {settings}")

        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e


def _parse_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'") from None


def _parse_origins(raw: Optional[str]) -> tuple:
    if not raw:
        return DEFAULT_ALLOWED_ORIGINS
    return tuple(o.strip() for o in raw.split(",") if o.strip())


def load_addon_options(path: Path = DEFAULT_ADDON_OPTIONS_PATH) -> None:
    """
    Export Home Assistant add-on options as environment variables.

    Only non-empty string options are exported. A missing or unreadable
    options file is ignored.
    """
    try:
        options = json.loads(Path(path).read_text())
    except (OSError, ValueError):
        logger.debug(f"No usable add-on options at {path}")
        return

    if not isinstance(options, dict):
        return

    for option, env_name in _ADDON_OPTIONS.items():
        value = options.get(option)
        if isinstance(value, str) and value:
            os.environ[env_name] = value
            logger.debug(f"Add-on option {option} applied")


def _load_env_file(path: Path) -> None:
    """
    Load environment variables from a file.

    Simple .env parser that handles:
    - KEY=value
    - KEY="quoted value"
    - # comments
    - Empty lines
    """
    logger.debug(f"Loading environment from {path}")

    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue

            # Parse KEY=value
            if "=" not in line:
                logger.warning(f"Invalid line {line_num} in {path}: no '=' found")
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            # Remove quotes if present
            if value.startswith('"') and value.endswith('"'):
                value = value[1:-1]
            elif value.startswith("'") and value.endswith("'"):
                value = value[1:-1]

            # Only set if not already defined (env vars take precedence)
            if key not in os.environ:
                os.environ[key] = value
