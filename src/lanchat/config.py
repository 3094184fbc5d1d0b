"""
LanChat - Configuration Management

This module handles loading, merging, and managing configuration from
TOML files and environment variables. Supports default values and
runtime configuration updates.

Author: lanchat contributors
Version: 1.0.0
"""

import copy
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

# Python 3.11+ has tomllib built-in, older versions need tomli
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .ciphers import EncryptionMode, get_cipher
from .constants import (
    CONFIG_FILENAME,
    CONNECTION_TIMEOUT,
    DEFAULT_DATA_DIR,
    DEFAULT_ENCRYPTION_KEY,
    DEFAULT_ENCRYPTION_MODE,
    DEFAULT_HOST,
    DEFAULT_PORT,
    MAX_FRAME_SIZE,
)
from .errors import ConfigError, ErrorCode
from .settings import CipherSettings, SecurityPolicy

ENV_PREFIX = "LANCHAT"

# Default configuration dictionary
DEFAULT_CONFIG: Dict[str, Any] = {
    "network": {
        "host": DEFAULT_HOST,
        "port": DEFAULT_PORT,
        "peer_port": DEFAULT_PORT,
        "timeout": CONNECTION_TIMEOUT,
        "max_frame_size": MAX_FRAME_SIZE,
    },
    "encryption": {
        "mode": DEFAULT_ENCRYPTION_MODE,
        "key": DEFAULT_ENCRYPTION_KEY,
    },
    "security": {
        "sign_messages": True,
        "reject_invalid_signatures": True,
        "symmetric_handshake": True,
    },
    "logging": {
        "level": "INFO",
        "file_logging": True,
        "console_logging": True,
    },
}


class Config:
    """Configuration manager for LanChat.

    Loads configuration from TOML files, merges with defaults,
    and applies environment variable overrides. Provides a simple
    interface for accessing and updating configuration values.

    Attributes:
        config_path: Path to the configuration file
        data: Configuration dictionary
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file (optional)
                If not provided, uses default location
        """
        if config_path is None:
            data_dir = Path(DEFAULT_DATA_DIR).expanduser()
            config_path = data_dir / CONFIG_FILENAME

        self.config_path = Path(config_path)
        self.data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file and merge with defaults.

        Returns:
            Merged configuration dictionary

        Raises:
            ConfigError: If configuration loading or parsing fails
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    file_config = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(
                    ErrorCode.E704_CONFIG_PARSE_ERROR,
                    f"Failed to parse configuration file: {e}",
                    {"path": str(self.config_path), "error": str(e)},
                )

            config = self._merge_config(config, file_config)

        return self._apply_env_overrides(config)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge override config into base config.

        Args:
            base: Base configuration dictionary
            override: Override configuration dictionary

        Returns:
            Merged configuration dictionary
        """
        result = copy.deepcopy(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration.

        Environment variables follow the pattern: LANCHAT_SECTION_KEY
        For example: LANCHAT_NETWORK_PORT=9000

        Args:
            config: Base configuration dictionary

        Returns:
            Configuration with environment overrides applied
        """
        result = copy.deepcopy(config)

        for section, settings in config.items():
            if not isinstance(settings, dict):
                continue

            for key in settings:
                env_var = f"{ENV_PREFIX}_{section.upper()}_{key.upper()}"
                env_value = os.environ.get(env_var)

                if env_value is not None:
                    original_type = type(settings[key])
                    try:
                        if original_type == bool:
                            result[section][key] = env_value.lower() in ("true", "1", "yes")
                        elif original_type == int:
                            result[section][key] = int(env_value)
                        elif original_type == float:
                            result[section][key] = float(env_value)
                        else:
                            result[section][key] = env_value
                    except ValueError:
                        # Keep original value if conversion fails
                        pass

        return result

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            section: Configuration section name
            key: Configuration key name
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return self.data.get(section, {}).get(key, default)

    def set(self, section: str, key: str, value: Any) -> None:
        """Set a configuration value.

        Args:
            section: Configuration section name
            key: Configuration key name
            value: Value to set
        """
        if section not in self.data:
            self.data[section] = {}

        self.data[section][key] = value

    def cipher_settings(self) -> CipherSettings:
        """Build the initial encryption settings.

        Returns:
            CipherSettings for the configured mode and key

        Raises:
            ConfigError: If the mode is unknown or the key is invalid for it
        """
        mode_name = str(self.get("encryption", "mode", DEFAULT_ENCRYPTION_MODE))
        key = str(self.get("encryption", "key", DEFAULT_ENCRYPTION_KEY))

        try:
            mode = EncryptionMode.from_name(mode_name)
        except ValueError as e:
            raise ConfigError(ErrorCode.E703_INVALID_CONFIG, str(e), {"mode": mode_name})

        if mode != EncryptionMode.RSA_HYBRID:
            cipher = get_cipher(mode)
            if not cipher.is_valid_key(key):
                raise ConfigError(
                    ErrorCode.E703_INVALID_CONFIG,
                    f"Invalid key for {mode.value} mode: {cipher.key_error()}",
                    {"mode": mode.value},
                )

        return CipherSettings(mode=mode, key=key)

    def security_policy(self) -> SecurityPolicy:
        """Build the signing and handshake policy."""
        return SecurityPolicy(
            sign_messages=bool(self.get("security", "sign_messages", True)),
            reject_invalid_signatures=bool(self.get("security", "reject_invalid_signatures", True)),
            symmetric_handshake=bool(self.get("security", "symmetric_handshake", True)),
        )

    def save(self) -> None:
        """Save current configuration to file.

        Raises:
            ConfigError: If saving fails
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.config_path, "w") as f:
                self._write_toml(f, self.data)

        except OSError as e:
            raise ConfigError(
                ErrorCode.E702_CONFIG_SAVE_FAILED,
                f"Failed to save configuration: {e}",
                {"path": str(self.config_path), "error": str(e)},
            )

    def _write_toml(self, file, data: Dict[str, Any]) -> None:
        """Write configuration data as TOML format.

        Args:
            file: File object to write to
            data: Configuration data to write
        """
        for section, settings in data.items():
            if isinstance(settings, dict):
                file.write(f"[{section}]\n")
                for key, value in settings.items():
                    if isinstance(value, bool):
                        file.write(f"{key} = {str(value).lower()}\n")
                    elif isinstance(value, (int, float)):
                        file.write(f"{key} = {value}\n")
                    elif isinstance(value, str):
                        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
                        file.write(f'{key} = "{escaped}"\n')
                file.write("\n")

    def to_dict(self) -> Dict[str, Any]:
        """Get configuration as dictionary.

        Returns:
            Configuration dictionary
        """
        return copy.deepcopy(self.data)
