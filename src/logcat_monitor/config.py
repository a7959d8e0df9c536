"""
LOGCAT Monitor Configuration Management

Provides configuration loading with multi-layer support:
1. Hardcoded defaults
2. User config file (~/.logcat-monitor/config.yaml or $LOGCAT_MONITOR_CONFIG)
3. Environment variables

Also resolves the adb executable when no explicit path is configured.
"""

from __future__ import annotations

import os
import re
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml


# =============================================================================
# Configuration Schema Data Classes
# =============================================================================


@dataclass
class AdbConfig:
    """adb executable and process settings"""
    path: str = ""  # Empty: resolve from SDK env vars or PATH
    poll_timeout_ms: int = 10
    clear_timeout_seconds: float = 10.0
    list_attempts: int = 2


@dataclass
class BufferConfig:
    """In-memory history settings"""
    capacity: int = 2000
    display_limit: int = 200


@dataclass
class FilterDefaults:
    """Initial filter state"""
    only_unity: bool = True
    text: str = ""
    severities: list[str] = field(default_factory=list)


@dataclass
class DashboardConfig:
    """Dashboard settings"""
    refresh_interval_ms: int = 100


@dataclass
class MonitorConfig:
    """Main configuration"""
    adb: AdbConfig = field(default_factory=AdbConfig)
    buffer: BufferConfig = field(default_factory=BufferConfig)
    filters: FilterDefaults = field(default_factory=FilterDefaults)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)

    debug_logging: bool = False
    log_level: str = "WARNING"

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_logging else self.log_level


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(Exception):
    """Base configuration error"""
    pass


class ConfigValidationError(ConfigError):
    """Configuration validation error with detailed context"""

    def __init__(self, message: str, path: str = "", value: Any = None):
        self.message = message
        self.path = path
        self.value = value
        full_msg = "Validation error"
        if path:
            full_msg += f" at '{path}'"
        full_msg += f": {message}"
        if value is not None:
            full_msg += f" (got: {repr(value)})"
        super().__init__(full_msg)


# =============================================================================
# Configuration Utilities
# =============================================================================


def expand_env_vars(value: str, env: Mapping[str, str] | None = None) -> str:
    """
    Expand ${VAR} and $VAR references. Unknown variables are left unexpanded.

    Examples:
        >>> expand_env_vars("$SDK/platform-tools", {"SDK": "/opt/android"})
        '/opt/android/platform-tools'
    """
    if env is None:
        env = os.environ

    pattern = r'\$\{([^}]+)\}|\$([a-zA-Z_][a-zA-Z0-9_]*)'

    def replacer(match: re.Match) -> str:
        var_name = match.group(1) or match.group(2)
        return env.get(var_name, match.group(0))

    return re.sub(pattern, replacer, value)


def expand_path(path: str | Path) -> Path:
    """Expand environment variables and ~ in a path"""
    return Path(expand_env_vars(str(path))).expanduser()


def validate_numeric_range(
    value: Any,
    min_val: int | float | None = None,
    max_val: int | float | None = None,
    path: str = "",
) -> None:
    """
    Validate that a numeric value is within range.

    Raises:
        ConfigValidationError: If validation fails
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigValidationError(f"Expected numeric value, got {type(value).__name__}", path, value)

    if min_val is not None and value < min_val:
        raise ConfigValidationError(f"Value must be >= {min_val}", path, value)

    if max_val is not None and value > max_val:
        raise ConfigValidationError(f"Value must be <= {max_val}", path, value)


def validate_enum(value: Any, allowed: set[str] | list[str], path: str = "") -> None:
    """
    Validate that a value is in the allowed set.

    Raises:
        ConfigValidationError: If validation fails
    """
    if value not in allowed:
        allowed_str = ", ".join(repr(v) for v in sorted(allowed))
        raise ConfigValidationError(f"Value must be one of: {allowed_str}", path, value)


# =============================================================================
# Configuration Loader
# =============================================================================


class ConfigLoader:
    """
    Loads and validates configuration from multiple sources.

    Loading order (later sources override earlier ones):
    1. Hardcoded defaults
    2. User config file (~/.logcat-monitor/config.yaml or $LOGCAT_MONITOR_CONFIG)
    3. Environment variables (LOGCAT_MONITOR_* prefix)
    """

    DEFAULT_USER_CONFIG_PATH = "~/.logcat-monitor/config.yaml"

    # Map of environment variable names to config paths
    ENV_VAR_MAP: dict[str, str] = {
        "LOGCAT_MONITOR_ADB": "adb.path",
        "LOGCAT_MONITOR_DEBUG": "debug_logging",
        "LOGCAT_MONITOR_LOG_LEVEL": "log_level",
    }

    SECTIONS = ("adb", "buffer", "filters", "dashboard")

    def __init__(self, user_config_path: Path | str | None = None):
        """
        Initialize the configuration loader.

        Args:
            user_config_path: Optional custom user config path
        """
        self.user_config_path = expand_path(user_config_path) if user_config_path else None

    def load(self) -> MonitorConfig:
        """
        Load configuration from all sources.

        Returns:
            Fully loaded and validated MonitorConfig

        Raises:
            ConfigError: If the config file is not valid YAML
            ConfigValidationError: If configuration is invalid
        """
        config = MonitorConfig()

        user_config_path = self.user_config_path or self._get_user_config_path()
        user_data = self._load_yaml_file(user_config_path)
        if user_data:
            self._apply_config_dict(config, user_data)

        self._apply_env_vars(config)
        self._validate_config(config)

        return config

    def _get_user_config_path(self) -> Path:
        """Get the user config path, checking LOGCAT_MONITOR_CONFIG env var."""
        env_path = os.environ.get("LOGCAT_MONITOR_CONFIG")
        if env_path:
            return expand_path(env_path)
        return expand_path(self.DEFAULT_USER_CONFIG_PATH)

    def _load_yaml_file(self, path: Path) -> dict[str, Any] | None:
        """
        Load a YAML configuration file.

        Returns:
            Parsed YAML data, or None if the file does not exist

        Raises:
            ConfigError: If file is invalid YAML
        """
        if not path.exists():
            return None

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
                return data if isinstance(data, dict) else {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")

    def _apply_config_dict(self, target: Any, data: dict[str, Any], prefix: str = "") -> None:
        """Apply a configuration dictionary onto a config object"""
        for key, value in data.items():
            current_path = f"{prefix}.{key}" if prefix else key

            if value is None:
                continue  # Skip null values

            if not prefix and key in self.SECTIONS:
                if not isinstance(value, dict):
                    raise ConfigValidationError("Expected a mapping", current_path, value)
                self._apply_config_dict(getattr(target, key), value, current_path)
            elif hasattr(target, key):
                setattr(target, key, value)

    def _apply_env_vars(self, config: MonitorConfig) -> None:
        """Apply environment variable overrides to configuration."""
        for env_var, config_path in self.ENV_VAR_MAP.items():
            value: Any = os.environ.get(env_var)
            if value is None:
                continue

            *parents, final_attr = config_path.split(".")
            obj: Any = config
            for part in parents:
                obj = getattr(obj, part)

            current_value = getattr(obj, final_attr)
            if isinstance(current_value, bool):
                value = value.lower() in ("1", "true", "yes", "on")
            elif final_attr == "log_level":
                value = value.upper()

            setattr(obj, final_attr, value)

    def _validate_config(self, config: MonitorConfig) -> None:
        """
        Validate the complete configuration.

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        if not isinstance(config.adb.path, str):
            raise ConfigValidationError("Expected a string", "adb.path", config.adb.path)
        validate_numeric_range(config.adb.poll_timeout_ms, min_val=0, max_val=1000, path="adb.poll_timeout_ms")
        validate_numeric_range(config.adb.clear_timeout_seconds, min_val=0.1, path="adb.clear_timeout_seconds")
        validate_numeric_range(config.adb.list_attempts, min_val=1, max_val=10, path="adb.list_attempts")

        validate_numeric_range(config.buffer.capacity, min_val=1, path="buffer.capacity")
        validate_numeric_range(config.buffer.display_limit, min_val=1, path="buffer.display_limit")

        if not isinstance(config.filters.text, str):
            raise ConfigValidationError("Expected a string", "filters.text", config.filters.text)
        if not isinstance(config.filters.severities, list):
            raise ConfigValidationError("Expected a list", "filters.severities", config.filters.severities)
        for letter in config.filters.severities:
            validate_enum(letter, {"W", "I", "E", "D", "V"}, "filters.severities")

        validate_numeric_range(
            config.dashboard.refresh_interval_ms,
            min_val=16,
            path="dashboard.refresh_interval_ms",
        )

        validate_enum(
            config.log_level,
            {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"},
            "log_level",
        )


def load_config(config_path: Path | str | None = None) -> MonitorConfig:
    """
    Load configuration from defaults, the user file and the environment.

    Args:
        config_path: Optional explicit config file

    Returns:
        Validated MonitorConfig
    """
    return ConfigLoader(user_config_path=config_path).load()


# =============================================================================
# adb Resolution
# =============================================================================


def _adb_executable_name() -> str:
    return "adb.exe" if sys.platform.startswith("win") else "adb"


def resolve_adb_path(
    config: MonitorConfig,
    env: Mapping[str, str] | None = None,
) -> Path | None:
    """
    Locate the adb executable.

    Order: explicit adb.path, $ANDROID_SDK_ROOT/platform-tools,
    $ANDROID_HOME/platform-tools, then PATH.

    Args:
        config: Loaded configuration
        env: Environment to consult (defaults to os.environ)

    Returns:
        Path to adb, or None if it cannot be found
    """
    if env is None:
        env = os.environ

    if config.adb.path:
        return expand_path(config.adb.path)

    for sdk_var in ("ANDROID_SDK_ROOT", "ANDROID_HOME"):
        sdk_root = env.get(sdk_var)
        if not sdk_root:
            continue
        candidate = expand_path(sdk_root) / "platform-tools" / _adb_executable_name()
        if candidate.exists():
            return candidate

    found = shutil.which("adb", path=env.get("PATH"))
    return Path(found) if found else None


# =============================================================================
# Initialize Default Configuration
# =============================================================================


def init_default_config(output_path: Path | str | None = None) -> Path:
    """
    Create a default configuration file.

    Args:
        output_path: Optional output path (defaults to ~/.logcat-monitor/config.yaml)

    Returns:
        Path where configuration was written
    """
    if output_path is None:
        output_path = expand_path(ConfigLoader.DEFAULT_USER_CONFIG_PATH)
    else:
        output_path = expand_path(output_path)

    output_path.parent.mkdir(parents=True, exist_ok=True)

    default_config = {
        "adb": {
            "path": "",
            "poll_timeout_ms": 10,
            "clear_timeout_seconds": 10.0,
            "list_attempts": 2,
        },
        "buffer": {
            "capacity": 2000,
            "display_limit": 200,
        },
        "filters": {
            "only_unity": True,
            "text": "",
            "severities": [],
        },
        "dashboard": {
            "refresh_interval_ms": 100,
        },
        "log_level": "WARNING",
        "debug_logging": False,
    }

    with open(output_path, "w") as f:
        yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)

    return output_path
