# Copyright (c) 2025 Stephen Clau

# This file is part of MC Player Watch.

# MC Player Watch is dual-licensed:

# 1. GNU Affero General Public License v3.0 (AGPL-3.0)
#    See LICENSE file for full terms

# 2. Commercial License
#    For proprietary use without AGPL requirements
#    Contact: licensing@laudiversified.com

# SPDX-License-Identifier: AGPL-3.0-only OR Commercial

"""
Configuration module for MC Player Watch.

- servers.yml is MANDATORY (contains all watched Minecraft servers)
- Discord bot token and notification channel are REQUIRED
- Gemini API key is OPTIONAL (absence disables join-message enrichment)
- Docker secrets support: reads from /run/secrets/* and env vars
"""

from dataclasses import dataclass
from importlib.metadata import version, PackageNotFoundError
from pathlib import Path
from typing import Optional, Dict, Any
import os
import yaml
import structlog

logger = structlog.get_logger()

SERVICE_NAME = "mc-player-watch"

try:
    __version__ = version(SERVICE_NAME)
except PackageNotFoundError:
    # Package not installed, fallback for development
    __version__ = "dev"

DEFAULT_MINECRAFT_PORT = 25565


def _read_docker_secret(secret_name: str) -> Optional[str]:
    """
    Read a secret from Docker secrets location.

    Docker Swarm/Kubernetes mounts secrets at /run/secrets/{secret_name}.

    Args:
        secret_name: Name of the secret (e.g., 'discord_bot_token')

    Returns:
        Secret value or None if not found
    """
    secret_path = Path(f"/run/secrets/{secret_name}")

    if secret_path.exists():
        try:
            return secret_path.read_text().strip()
        except (IOError, OSError) as e:
            logger.warning("docker_secret_read_error", secret=secret_name, error=str(e))
            return None

    return None


def get_config_value(
    env_var: str,
    secret_name: Optional[str] = None,
    required: bool = False,
    default: Optional[str] = None,
) -> Optional[str]:
    """
    Get configuration value from environment variables or Docker secrets.

    Tries in order:
    1. Docker secret file at /run/secrets/{secret_name}
    2. Environment variable {env_var}
    3. Default value if provided
    4. Raise error if required and not found

    Args:
        env_var: Environment variable name (e.g., 'DISCORD_BOT_TOKEN')
        secret_name: Docker secret name. If not provided, uses env_var lowercased
        required: If True, raises ValueError when value not found
        default: Default value if not found in env or secrets

    Returns:
        Configuration value from secret, env var, or default

    Raises:
        ValueError: If required=True and value not found
    """
    if secret_name is None:
        secret_name = env_var.lower()

    secret_value = _read_docker_secret(secret_name)
    if secret_value is not None:
        logger.debug("config_value_loaded_from_secret", source="docker_secret", var=env_var)
        return secret_value

    env_value = os.getenv(env_var)
    if env_value is not None and env_value != "":
        logger.debug("config_value_loaded_from_env", source="environment", var=env_var)
        return env_value

    if default is not None:
        logger.debug("config_value_loaded_from_default", source="default", var=env_var)
        return default

    if required:
        raise ValueError(
            f"Required configuration value not found for '{env_var}'. "
            f"Checked: Docker secret '{secret_name}', environment variable '{env_var}'"
        )

    return None


def _safe_int(value: Any, field_name: str, default: int) -> int:
    """
    Safely convert value to int with proper type checking.

    Raises:
        ValueError: If conversion fails
    """
    if value is None:
        return default

    # bool is an int subclass; a YAML "yes" must not become port 1
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {field_name} to int: bool")

    if isinstance(value, int):
        return value

    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ValueError(f"Invalid integer for {field_name}: {value}")

    raise ValueError(f"Cannot convert {field_name} to int: {type(value).__name__}")


def _safe_float(value: Any, field_name: str, default: float) -> float:
    """
    Safely convert value to float with proper type checking.

    Raises:
        ValueError: If conversion fails
    """
    if value is None:
        return default

    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {field_name} to float: bool")

    if isinstance(value, (int, float)):
        return float(value)

    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise ValueError(f"Invalid float for {field_name}: {value}")

    raise ValueError(f"Cannot convert {field_name} to float: {type(value).__name__}")


def _safe_bool(value: Any, field_name: str, default: bool) -> bool:
    """Convert 'true'/'false'-style strings (or bools) to bool."""
    if value is None:
        return default

    if isinstance(value, bool):
        return value

    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("1", "true", "yes", "on"):
            return True
        if normalized in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Invalid boolean for {field_name}: {value}")

    raise ValueError(f"Cannot convert {field_name} to bool: {type(value).__name__}")


@dataclass(frozen=True)
class ServerConfig:
    """A watched Minecraft server. Immutable once loaded."""

    name: str
    """Display name; unique key for runtime state and notifications."""

    host: str
    """Hostname or IP address of the server."""

    port: int = DEFAULT_MINECRAFT_PORT
    """Server List Ping port."""

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Server name cannot be empty")

        if not self.host or not self.host.strip():
            raise ValueError(f"Server {self.name}: host cannot be empty")

        if not isinstance(self.port, int) or isinstance(self.port, bool):
            raise ValueError(f"Server {self.name}: port must be an integer")

        if not 1 <= self.port <= 65535:
            raise ValueError(f"Server {self.name}: invalid port {self.port}")

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class Config:
    """Main application configuration."""

    discord_bot_token: str
    """Discord bot token (required)."""

    channel_id: int
    """Discord channel ID that receives every notification (required)."""

    servers: Dict[str, ServerConfig]
    """Server name -> ServerConfig. At least one server is required."""

    gemini_api_key: Optional[str] = None
    """Optional Gemini API key. When unset, join messages use the plain format."""

    gemini_model: str = "gemini-2.5-flash"
    """Gemini model used for join-message enrichment."""

    enrichment_timeout: float = 10.0
    """Seconds before an enrichment request is abandoned."""

    check_interval: float = 30.0
    """Seconds between monitoring sweeps."""

    query_timeout: float = 5.0
    """Seconds before a single status query is treated as a failure."""

    announce_initial_roster: bool = True
    """If False, the first successful poll of a server is recorded silently."""

    http_host: str = "0.0.0.0"
    """Host to bind the HTTP status server to."""

    http_port: int = 3000
    """Port to bind the HTTP status server to."""

    log_level: str = "info"
    """Logging level: debug, info, warning, error. Default: info"""

    log_format: str = "console"
    """Logging format: console or json. Default: console"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.discord_bot_token:
            raise ValueError("discord_bot_token is REQUIRED")

        if not self.channel_id or self.channel_id <= 0:
            raise ValueError("channel_id is REQUIRED and must be a positive Discord ID")

        if not isinstance(self.servers, dict) or not self.servers:
            raise ValueError(
                "servers configuration is REQUIRED. "
                "servers.yml must define at least one server."
            )

        if self.check_interval <= 0:
            raise ValueError(f"check_interval must be > 0, got {self.check_interval}")

        if self.query_timeout <= 0:
            raise ValueError(f"query_timeout must be > 0, got {self.query_timeout}")

        if self.enrichment_timeout <= 0:
            raise ValueError(
                f"enrichment_timeout must be > 0, got {self.enrichment_timeout}"
            )

        if not 1 <= self.http_port <= 65535:
            raise ValueError(f"Invalid http_port: {self.http_port}. Must be 1-65535")

        valid_levels = {"debug", "info", "warning", "error"}
        if self.log_level.lower() not in valid_levels:
            raise ValueError(
                f"Invalid log_level '{self.log_level}'. Must be one of: {', '.join(sorted(valid_levels))}"
            )

        valid_formats = {"console", "json"}
        if self.log_format.lower() not in valid_formats:
            raise ValueError(
                f"Invalid log_format '{self.log_format}'. Must be one of: {', '.join(sorted(valid_formats))}"
            )

    @property
    def enrichment_enabled(self) -> bool:
        return bool(self.gemini_api_key)


def load_servers(servers_yml_path: Path) -> Dict[str, ServerConfig]:
    """
    Parse servers.yml into ServerConfig objects keyed by name.

    Expected layout::

        servers:
          "My Server":
            host: play.example.org
            port: 25565

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file has no usable server definitions
        yaml.YAMLError: If the file is not valid YAML
    """
    if not servers_yml_path.exists():
        raise FileNotFoundError(
            f"servers.yml not found at {servers_yml_path}. "
            f"At least one Minecraft server must be configured."
        )

    with open(servers_yml_path, encoding="utf-8") as f:
        servers_data = yaml.safe_load(f)

    if not isinstance(servers_data, dict) or not servers_data.get("servers"):
        raise ValueError("servers.yml must contain 'servers' key with server definitions")

    if not isinstance(servers_data["servers"], dict):
        raise ValueError("servers.yml 'servers' must map server names to settings")

    servers: Dict[str, ServerConfig] = {}
    for name, server_data in servers_data["servers"].items():
        server_data = server_data or {}
        name = str(name)
        servers[name] = ServerConfig(
            name=name,
            host=str(server_data.get("host", "")),
            port=_safe_int(
                server_data.get("port"),
                f"Server {name} port",
                DEFAULT_MINECRAFT_PORT,
            ),
        )

    return servers


def load_config() -> Config:
    """
    Load configuration from environment variables and servers.yml.

    Returns:
        Fully populated Config object with validation

    Raises:
        FileNotFoundError: If servers.yml not found
        ValueError: If required config values missing or invalid
        yaml.YAMLError: If servers.yml invalid YAML
    """
    config_dir = os.getenv("CONFIG_DIR", ".")
    servers = load_servers(Path(config_dir) / "servers.yml")

    discord_bot_token = get_config_value(
        env_var="DISCORD_BOT_TOKEN",
        secret_name="discord_bot_token",
        required=True,
    )

    channel_id = _safe_int(
        get_config_value(env_var="CHANNEL_ID", required=True),
        "channel_id",
        0,
    )

    gemini_api_key = get_config_value(
        env_var="GEMINI_API_KEY",
        secret_name="gemini_api_key",
    )

    config = Config(
        discord_bot_token=discord_bot_token or "",
        channel_id=channel_id,
        servers=servers,
        gemini_api_key=gemini_api_key,
        gemini_model=get_config_value(env_var="GEMINI_MODEL", default="gemini-2.5-flash")
        or "gemini-2.5-flash",
        enrichment_timeout=_safe_float(
            get_config_value(env_var="ENRICHMENT_TIMEOUT"), "enrichment_timeout", 10.0
        ),
        check_interval=_safe_float(
            get_config_value(env_var="CHECK_INTERVAL"), "check_interval", 30.0
        ),
        query_timeout=_safe_float(
            get_config_value(env_var="QUERY_TIMEOUT"), "query_timeout", 5.0
        ),
        announce_initial_roster=_safe_bool(
            get_config_value(env_var="ANNOUNCE_INITIAL_ROSTER"),
            "announce_initial_roster",
            True,
        ),
        http_host=get_config_value(env_var="HTTP_HOST", default="0.0.0.0") or "0.0.0.0",
        http_port=_safe_int(
            get_config_value(env_var="HTTP_PORT") or get_config_value(env_var="PORT"),
            "http_port",
            3000,
        ),
        log_level=get_config_value(env_var="LOG_LEVEL", default="info") or "info",
        log_format=get_config_value(env_var="LOG_FORMAT", default="console") or "console",
    )

    if not config.enrichment_enabled:
        logger.info("enrichment_disabled", reason="GEMINI_API_KEY not set")

    return config


def validate_config(config: Config) -> bool:
    """
    Validate a Config object for completeness.

    Returns:
        True if config is valid, False otherwise
    """
    if not config.discord_bot_token:
        logger.error("config_validation_failed_no_token")
        return False

    if not config.channel_id:
        logger.error("config_validation_failed_no_channel")
        return False

    if not config.servers:
        logger.error("config_validation_failed_no_servers")
        return False

    for name, server in config.servers.items():
        if name != server.name:
            logger.error("config_validation_failed_name_mismatch", server=name)
            return False

    return True
