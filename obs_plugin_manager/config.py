"""
OBS Plugin Manager Configuration.

Handles loading, saving, and validating configuration from various sources:
- Default values
- Configuration file (TOML)
- Environment variables
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from platformdirs import user_cache_path, user_config_path

# Try to import tomllib (Python 3.11+) or tomli as fallback
try:
    import tomllib
except ImportError:
    try:
        import tomli as tomllib  # type: ignore
    except ImportError:
        tomllib = None  # type: ignore

from obs_plugin_manager.errors import ConfigurationError


# Configuration directory and file constants
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "obs-plugin-manager"
DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_CACHE_DIR = user_cache_path("obs-plugin-manager", appauthor=False)
DEFAULT_BACKUP_DIR = Path.home() / "LamaWorlds_OBS_Backups"

# OBS keeps per-user plugins and plugin settings under its roaming config dir
OBS_USER_CONFIG_DIR = user_config_path("obs-studio", appauthor=False, roaming=True)

ENV_PREFIX = "OBSPM_"


@dataclass
class ValidationError:
    """Validation error for configuration."""
    field: str
    message: str
    severity: str  # "error" or "warning"

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.field}: {self.message}"


@dataclass
class NetworkConfig:
    """Configuration for outbound GitHub requests."""

    api_base_url: str = "https://api.github.com"
    user_agent: str = "LamaWorlds-OBS-AddonManager"
    github_token: Optional[str] = None

    # Cache
    cache_ttl: float = 5 * 60.0  # 5 minutes

    # Rate limiting
    max_concurrent_requests: int = 2
    request_delay: float = 0.5  # seconds between requests

    # Retry
    max_retries: int = 3
    retry_delay: float = 1.0  # base delay, doubled on each attempt
    timeout: float = 10.0


@dataclass
class HostConfig:
    """Configuration for locating OBS Studio."""

    # Explicit installation path, detected when not set
    obs_path: Optional[Path] = None

    # Per-user plugin locations
    user_plugins_dir: Path = field(default_factory=lambda: OBS_USER_CONFIG_DIR / "plugins")
    user_plugin_config_dir: Path = field(
        default_factory=lambda: OBS_USER_CONFIG_DIR / "plugin_config"
    )


@dataclass
class BackupConfig:
    """Configuration for pre-mutation backups."""

    backup_dir: Path = DEFAULT_BACKUP_DIR
    max_backups: int = 10
    # Prune beyond max_backups after every backup (off: backups are only
    # removed by an explicit prune)
    auto_prune: bool = False


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None


@dataclass
class ManagerConfig:
    """Main configuration container."""

    # Paths
    config_dir: Path = DEFAULT_CONFIG_DIR
    cache_dir: Path = DEFAULT_CACHE_DIR

    # Sub-configurations
    network: NetworkConfig = field(default_factory=NetworkConfig)
    host: HostConfig = field(default_factory=HostConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def cache_file(self) -> Path:
        """Path of the persisted response cache."""
        return self.cache_dir / "cache.json"


_OPTIONAL_PATH_FIELDS = {"obs_path", "file"}
_PATH_FIELDS = {
    "user_plugins_dir",
    "user_plugin_config_dir",
    "backup_dir",
} | _OPTIONAL_PATH_FIELDS


def load_config(
    config_path: Optional[Path] = None,
    env_prefix: str = ENV_PREFIX,
) -> ManagerConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Default values

    Args:
        config_path: Path to config file (default: ~/.config/obs-plugin-manager/config.toml)
        env_prefix: Prefix for environment variables

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the config file exists but cannot be parsed
    """
    config = ManagerConfig()

    if config_path is None:
        env_config_dir = os.environ.get(f"{env_prefix}CONFIG_DIR")
        if env_config_dir:
            config_path = Path(env_config_dir) / DEFAULT_CONFIG_FILE
        else:
            config_path = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE

    if config_path.exists() and tomllib is not None:
        config = _load_from_file(config_path, config)

    config = _load_from_env(config, env_prefix)

    return config


def _apply_section(target: Any, values: dict[str, Any]) -> None:
    """Copy known keys from a TOML table onto a config dataclass."""
    for key, value in values.items():
        if not hasattr(target, key):
            continue
        if key in _PATH_FIELDS:
            if not value:
                if key in _OPTIONAL_PATH_FIELDS:
                    setattr(target, key, None)
                continue
            value = Path(value).expanduser()
        setattr(target, key, value)


def _load_from_file(path: Path, config: ManagerConfig) -> ManagerConfig:
    """Load configuration from a TOML file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(
            f"Failed to load config from {path}: {e}",
            details={"path": str(path)},
        ) from e

    for section in ("network", "host", "backup", "logging"):
        if isinstance(data.get(section), dict):
            _apply_section(getattr(config, section), data[section])

    # Top-level settings
    if "config_dir" in data:
        config.config_dir = Path(data["config_dir"]).expanduser()
    if "cache_dir" in data:
        config.cache_dir = Path(data["cache_dir"]).expanduser()

    return config


def _env_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


def _load_from_env(config: ManagerConfig, prefix: str) -> ManagerConfig:
    """Load configuration from environment variables."""
    try:
        # Network settings
        if env_val := os.environ.get(f"{prefix}GITHUB_TOKEN"):
            config.network.github_token = env_val
        # Also honour the conventional GITHUB_TOKEN without prefix
        elif env_val := os.environ.get("GITHUB_TOKEN"):
            config.network.github_token = env_val
        if env_val := os.environ.get(f"{prefix}CACHE_TTL"):
            config.network.cache_ttl = float(env_val)
        if env_val := os.environ.get(f"{prefix}MAX_CONCURRENT_REQUESTS"):
            config.network.max_concurrent_requests = int(env_val)
        if env_val := os.environ.get(f"{prefix}MAX_RETRIES"):
            config.network.max_retries = int(env_val)
        if env_val := os.environ.get(f"{prefix}TIMEOUT"):
            config.network.timeout = float(env_val)
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric environment value: {e}") from e

    # Host settings
    if env_val := os.environ.get(f"{prefix}OBS_PATH"):
        config.host.obs_path = Path(env_val)
    if env_val := os.environ.get(f"{prefix}USER_PLUGINS_DIR"):
        config.host.user_plugins_dir = Path(env_val)

    # Backup settings
    if env_val := os.environ.get(f"{prefix}BACKUP_DIR"):
        config.backup.backup_dir = Path(env_val)
    if env_val := os.environ.get(f"{prefix}AUTO_PRUNE"):
        config.backup.auto_prune = _env_bool(env_val)

    # Logging settings
    if env_val := os.environ.get(f"{prefix}LOG_LEVEL"):
        config.logging.level = env_val.upper()

    # Paths
    if env_val := os.environ.get(f"{prefix}CONFIG_DIR"):
        config.config_dir = Path(env_val)
    if env_val := os.environ.get(f"{prefix}CACHE_DIR"):
        config.cache_dir = Path(env_val)

    return config


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(str(value))


def save_config(config: ManagerConfig, path: Optional[Path] = None) -> None:
    """
    Save configuration to a TOML file.

    Secrets (the GitHub token) are never written; supply them through the
    environment instead.

    Args:
        config: Configuration to save
        path: Path to save to (default: config.config_dir / config.toml)
    """
    if path is None:
        path = config.config_dir / DEFAULT_CONFIG_FILE

    path.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        "# OBS Plugin Manager Configuration",
        "# Generated automatically - edit with care",
        "",
        f"config_dir = {_toml_value(config.config_dir)}",
        f"cache_dir = {_toml_value(config.cache_dir)}",
        "",
        "[network]",
        f"api_base_url = {_toml_value(config.network.api_base_url)}",
        f"user_agent = {_toml_value(config.network.user_agent)}",
        f"cache_ttl = {config.network.cache_ttl}",
        f"max_concurrent_requests = {config.network.max_concurrent_requests}",
        f"request_delay = {config.network.request_delay}",
        f"max_retries = {config.network.max_retries}",
        f"retry_delay = {config.network.retry_delay}",
        f"timeout = {config.network.timeout}",
        "",
        "[host]",
    ]
    if config.host.obs_path:
        lines.append(f"obs_path = {_toml_value(config.host.obs_path)}")
    lines.extend([
        f"user_plugins_dir = {_toml_value(config.host.user_plugins_dir)}",
        f"user_plugin_config_dir = {_toml_value(config.host.user_plugin_config_dir)}",
        "",
        "[backup]",
        f"backup_dir = {_toml_value(config.backup.backup_dir)}",
        f"max_backups = {config.backup.max_backups}",
        f"auto_prune = {_toml_value(config.backup.auto_prune)}",
        "",
        "[logging]",
        f"level = {_toml_value(config.logging.level)}",
    ])
    if config.logging.file:
        lines.append(f"file = {_toml_value(config.logging.file)}")

    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


# Global configuration instance (lazy-loaded)
_global_config: Optional[ManagerConfig] = None


def get_config() -> ManagerConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def set_config(config: ManagerConfig) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def clear_config_cache() -> None:
    """Clear the global configuration cache."""
    global _global_config
    _global_config = None


def _validate_url(url: str) -> bool:
    """Validate a URL format."""
    url_pattern = r"^https?://[^\s/$.?#].[^\s]*$"
    return bool(re.match(url_pattern, url))


def validate_config(config: Optional[ManagerConfig] = None) -> List[ValidationError]:
    """
    Validate configuration and return list of errors.

    Args:
        config: Configuration to validate (default: loaded from file)

    Returns:
        List of validation errors (empty if valid)
    """
    if config is None:
        config = load_config()

    errors: List[ValidationError] = []
    network = config.network

    if not _validate_url(network.api_base_url):
        errors.append(ValidationError(
            field="network.api_base_url",
            message=f"Invalid URL format: {network.api_base_url}",
            severity="error",
        ))

    if network.max_concurrent_requests < 1:
        errors.append(ValidationError(
            field="network.max_concurrent_requests",
            message="Must be at least 1.",
            severity="error",
        ))

    if network.max_retries < 0:
        errors.append(ValidationError(
            field="network.max_retries",
            message="Must not be negative.",
            severity="error",
        ))

    for name in ("cache_ttl", "request_delay", "retry_delay", "timeout"):
        if getattr(network, name) < 0:
            errors.append(ValidationError(
                field=f"network.{name}",
                message="Must not be negative.",
                severity="error",
            ))

    if not network.github_token:
        errors.append(ValidationError(
            field="network.github_token",
            message="GitHub token not set. Anonymous requests are limited to 60 per hour.",
            severity="warning",
        ))

    if config.backup.max_backups < 1:
        errors.append(ValidationError(
            field="backup.max_backups",
            message="Must be at least 1.",
            severity="error",
        ))

    if config.host.obs_path is not None and not config.host.obs_path.exists():
        errors.append(ValidationError(
            field="host.obs_path",
            message=f"OBS path does not exist: {config.host.obs_path}",
            severity="error",
        ))

    if not config.backup.backup_dir.exists():
        errors.append(ValidationError(
            field="backup.backup_dir",
            message=f"Backup directory does not exist yet: {config.backup.backup_dir}",
            severity="warning",
        ))

    return errors


def _config_to_dict(config: ManagerConfig, mask_secrets: bool = True) -> dict[str, Any]:
    """
    Convert configuration to dictionary.

    Args:
        config: Configuration to convert
        mask_secrets: If True, mask the GitHub token

    Returns:
        Dictionary representation of config
    """
    token = config.network.github_token
    if token and mask_secrets:
        token = token[:4] + "****" if len(token) > 4 else "****"

    return {
        "config_dir": str(config.config_dir),
        "cache_dir": str(config.cache_dir),
        "network": {
            "api_base_url": config.network.api_base_url,
            "user_agent": config.network.user_agent,
            "github_token": token,
            "cache_ttl": config.network.cache_ttl,
            "max_concurrent_requests": config.network.max_concurrent_requests,
            "request_delay": config.network.request_delay,
            "max_retries": config.network.max_retries,
            "retry_delay": config.network.retry_delay,
            "timeout": config.network.timeout,
        },
        "host": {
            "obs_path": str(config.host.obs_path) if config.host.obs_path else None,
            "user_plugins_dir": str(config.host.user_plugins_dir),
            "user_plugin_config_dir": str(config.host.user_plugin_config_dir),
        },
        "backup": {
            "backup_dir": str(config.backup.backup_dir),
            "max_backups": config.backup.max_backups,
            "auto_prune": config.backup.auto_prune,
        },
        "logging": {
            "level": config.logging.level,
            "format": config.logging.format,
            "file": str(config.logging.file) if config.logging.file else None,
        },
    }
