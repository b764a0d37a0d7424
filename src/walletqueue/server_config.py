"""
Configuration management for the WalletQueue service.

Supports multiple configuration sources with proper precedence:
1. Environment variables (highest priority)
2. Project-level .walletqueue.yaml
3. User-level ~/.walletqueue/config.yaml
4. Default values (lowest priority)
"""

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass
class QueueConfig:
    """Queue and server configuration options"""

    # Core settings
    name: str = "WalletQueue"
    log_level: str = "INFO"
    data_dir: str = ".walletqueue"
    persist_queue: bool = True

    # Retry policy
    max_retries: int = 3
    base_retry_delay: float = 1.0  # seconds
    max_retry_delay: float = 60.0  # seconds

    # Backup mirror
    backup_ttl_seconds: int = 24 * 60 * 60

    # Delay before a background queue pass
    background_delay: float = 0.1  # seconds

    # Connectivity probing
    probe_host: str = "1.1.1.1"
    probe_port: int = 53
    probe_timeout: float = 5.0  # seconds
    probe_interval: float = 30.0  # seconds

    # Simulated backend (CLI and MCP wiring)
    simulated_latency: float = 0.05  # seconds
    simulated_failure_rate: float = 0.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.base_retry_delay < 0:
            raise ValueError("base_retry_delay must not be negative")
        if self.max_retry_delay < self.base_retry_delay:
            raise ValueError("max_retry_delay must be at least base_retry_delay")
        if self.backup_ttl_seconds <= 0:
            raise ValueError("backup_ttl_seconds must be positive")

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_TRUE_STRINGS = ("true", "1", "yes", "on")
_FALSE_STRINGS = ("false", "0", "no", "off")


def _coerce(value: Any, field_type: type) -> Any:
    if field_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in _TRUE_STRINGS:
            return True
        if isinstance(value, str) and value.lower() in _FALSE_STRINGS:
            return False
        raise ValueError("expected a boolean")
    if field_type is int:
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise ValueError("expected an integer")
        return int(value)
    if field_type is float:
        if isinstance(value, bool):
            raise ValueError("expected a number")
        return float(value)
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ValueError("expected a string")
    return str(value)


class ConfigurationLoader:
    """Loads configuration from multiple sources with proper precedence"""

    PROJECT_CONFIG_NAMES = [
        ".walletqueue.yaml",
        ".walletqueue.yml",
        "walletqueue.yaml",
        "walletqueue.yml",
    ]

    # Environment variable mappings
    ENV_MAPPINGS = {
        "WALLETQUEUE_NAME": "name",
        "WALLETQUEUE_LOG_LEVEL": "log_level",
        "WALLETQUEUE_DATA_DIR": "data_dir",
        "WALLETQUEUE_PERSIST": ("persist_queue", bool),
        "WALLETQUEUE_MAX_RETRIES": ("max_retries", int),
        "WALLETQUEUE_BASE_RETRY_DELAY": ("base_retry_delay", float),
        "WALLETQUEUE_MAX_RETRY_DELAY": ("max_retry_delay", float),
        "WALLETQUEUE_BACKUP_TTL": ("backup_ttl_seconds", int),
        "WALLETQUEUE_BACKGROUND_DELAY": ("background_delay", float),
        "WALLETQUEUE_PROBE_HOST": "probe_host",
        "WALLETQUEUE_PROBE_PORT": ("probe_port", int),
        "WALLETQUEUE_PROBE_TIMEOUT": ("probe_timeout", float),
        "WALLETQUEUE_PROBE_INTERVAL": ("probe_interval", float),
        "WALLETQUEUE_SIMULATED_LATENCY": ("simulated_latency", float),
        "WALLETQUEUE_SIMULATED_FAILURE_RATE": ("simulated_failure_rate", float),
    }

    def __init__(
        self,
        project_root: Optional[Path] = None,
        user_config_dir: Optional[Path] = None,
    ):
        self.project_root = Path(project_root) if project_root else Path.cwd()
        self.user_config_dir = user_config_dir or Path.home() / ".walletqueue"

    def load_config(self) -> QueueConfig:
        """Load configuration from all sources with proper precedence"""
        config_dict: Dict[str, Any] = {}

        user_config = self._load_user_config()
        if user_config:
            config_dict.update(user_config)

        project_config = self._load_project_config()
        if project_config:
            config_dict.update(project_config)

        config_dict.update(self._load_env_config())

        known = {f.name for f in fields(QueueConfig)}
        unknown = sorted(str(k) for k in set(config_dict) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

        return QueueConfig(**{k: v for k, v in config_dict.items() if k in known})

    def _read_yaml(self, config_file: Path) -> Optional[Dict[str, Any]]:
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            logger.warning(f"Failed to load config from {config_file}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Config file {config_file} is not a mapping, ignoring")
            return None
        return self._coerce_file_values(data, config_file)

    def _coerce_file_values(self, data: Dict[str, Any], source: Path) -> Dict[str, Any]:
        """Convert file values to the field types, dropping ones that do not fit"""
        field_types = {f.name: f.type for f in fields(QueueConfig)}
        coerced: Dict[str, Any] = {}

        for key, value in data.items():
            field_type = field_types.get(key)
            if field_type is None:
                coerced[key] = value
                continue
            try:
                coerced[key] = _coerce(value, field_type)
            except (ValueError, TypeError) as e:
                logger.warning(f"Invalid value for {key} in {source}: {value!r} ({e})")

        return coerced

    def _load_user_config(self) -> Optional[Dict[str, Any]]:
        """Load user-level configuration from ~/.walletqueue/config.yaml"""
        for name in ["config.yaml", "config.yml"]:
            config_file = self.user_config_dir / name
            if config_file.exists():
                return self._read_yaml(config_file)
        return None

    def _load_project_config(self) -> Optional[Dict[str, Any]]:
        """Load project-level configuration from .walletqueue.yaml"""
        for config_name in self.PROJECT_CONFIG_NAMES:
            config_file = self.project_root / config_name
            if config_file.exists():
                data = self._read_yaml(config_file)
                if data is not None:
                    return data
        return None

    def _load_env_config(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        env_config: Dict[str, Any] = {}

        for env_var, config_key in self.ENV_MAPPINGS.items():
            env_value = os.environ.get(env_var)
            if env_value is None:
                continue

            if isinstance(config_key, tuple):
                key, converter = config_key
                try:
                    if converter is bool:
                        env_config[key] = env_value.lower() in ("true", "1", "yes", "on")
                    else:
                        env_config[key] = converter(env_value)
                except (ValueError, TypeError) as e:
                    logger.warning(f"Invalid value for {env_var}: {env_value} ({e})")
            else:
                env_config[config_key] = env_value

        return env_config

    def save_project_config(self, config: Dict[str, Any]) -> bool:
        """Save configuration to the project config file"""
        try:
            config_file = self.project_root / ".walletqueue.yaml"
            with open(config_file, "w", encoding="utf-8") as f:
                yaml.dump(config, f, default_flow_style=False, sort_keys=True)
            return True
        except (yaml.YAMLError, OSError) as e:
            logger.error(f"Failed to save project config: {e}")
            return False


def load_configuration(project_root: Optional[Path] = None) -> QueueConfig:
    """
    Load WalletQueue configuration from all sources.

    Args:
        project_root: Directory holding the project config file. Defaults to
            the current working directory.

    Returns:
        QueueConfig: Complete configuration object
    """
    return ConfigurationLoader(project_root).load_config()


def get_config_paths(project_root: Optional[Path] = None) -> Dict[str, Path]:
    """
    Get paths to configuration files.

    Returns:
        Dict mapping config type to file path
    """
    loader = ConfigurationLoader(project_root)
    return {
        "user": loader.user_config_dir / "config.yaml",
        "project": loader.project_root / ".walletqueue.yaml",
        "project_root": loader.project_root,
    }
