"""
UniFi API Client - Secure Configuration Loader

This module provides credential loading from multiple sources with cascading
priority: environment variables -> config file -> keyring.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import keyring
from keyring.errors import KeyringError

from .exceptions import ConfigurationError
from .models import ClientConfig

logger = logging.getLogger("unifi-api")

_TRUE_VALUES = ("true", "1", "yes")


class ConfigLoader:
    """
    Secure configuration loader for UniFi controller credentials.

    Priority order for credential sources:
    1. Environment variables (highest priority) - for CI/CD and containers
    2. Config file (~/.unifi-api/config.json) - for multiple profiles
    3. Keyring storage (lowest priority)

    Security features:
    - Automatic file permission enforcement (0600)
    - No credential logging
    - Profile-based multi-controller support
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".unifi-api"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"
    REQUIRED_FILE_PERMISSIONS = 0o600
    KEYRING_SERVICE_NAME = "unifi-api-client"

    @classmethod
    def load(cls, profile: str = "default") -> ClientConfig:
        """
        Load controller configuration for the specified profile.

        Args:
            profile: Profile name to load (default: "default")

        Returns:
            ClientConfig with credentials

        Raises:
            ConfigurationError: If no credentials found or configuration invalid
        """
        logger.debug(f"Loading configuration for profile: {profile}")

        config = cls._load_from_env()
        if config:
            logger.info("Loaded configuration from environment variables")
            return config

        config = cls._load_from_config_file(profile)
        if config:
            logger.info(f"Loaded configuration for profile '{profile}' from config file")
            return config

        config = cls._load_from_keyring(profile)
        if config:
            logger.info(f"Loaded configuration for profile '{profile}' from keyring")
            return config

        raise ConfigurationError(
            f"No credentials found for profile '{profile}'. "
            f"Configure credentials using 'unifi-api setup' or set environment variables "
            f"(UNIFI_HOST, UNIFI_USERNAME, UNIFI_PASSWORD)"
        )

    @classmethod
    def _from_mapping(cls, data: Dict[str, Any]) -> ClientConfig:
        values = {
            "host": data["host"],
            "username": data["username"],
            "password": data["password"],
        }
        for key in ("scheme", "port", "site", "verify_ssl", "ca_bundle", "timeout"):
            if data.get(key) is not None:
                values[key] = data[key]
        return ClientConfig.validated(**values)

    @classmethod
    def _load_from_env(cls) -> Optional[ClientConfig]:
        """Load configuration from environment variables."""
        host = os.getenv("UNIFI_HOST")
        username = os.getenv("UNIFI_USERNAME")
        password = os.getenv("UNIFI_PASSWORD")

        if not (host and username and password):
            return None

        data: Dict[str, Any] = {
            "host": host,
            "username": username,
            "password": password,
            "site": os.getenv("UNIFI_SITE"),
            "verify_ssl": os.getenv("UNIFI_VERIFY_SSL", "true").lower() in _TRUE_VALUES,
        }
        port = os.getenv("UNIFI_PORT")
        if port:
            try:
                data["port"] = int(port)
            except ValueError:
                raise ConfigurationError(f"Invalid UNIFI_PORT value: {port!r}")
        return cls._from_mapping(data)

    @classmethod
    def _read_config_file(cls) -> Dict[str, Any]:
        config_file = cls.DEFAULT_CONFIG_FILE
        cls._verify_file_permissions(config_file)
        try:
            with open(config_file, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file: {e}")
            raise ConfigurationError(f"Invalid JSON in config file: {e}")

    @classmethod
    def _write_config_file(cls, config_data: Dict[str, Any]) -> None:
        config_file = cls.DEFAULT_CONFIG_FILE
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, 'w') as f:
            json.dump(config_data, f, indent=2)
        cls._set_secure_permissions(config_file)

    @classmethod
    def _load_from_config_file(cls, profile: str) -> Optional[ClientConfig]:
        """Load configuration from config file."""
        if not cls.DEFAULT_CONFIG_FILE.exists():
            logger.debug(f"Config file not found: {cls.DEFAULT_CONFIG_FILE}")
            return None

        config_data = cls._read_config_file()
        if profile not in config_data:
            logger.debug(f"Profile '{profile}' not found in config file")
            return None

        try:
            return cls._from_mapping(config_data[profile])
        except KeyError as e:
            logger.error(f"Missing required field in config file: {e}")
            raise ConfigurationError(f"Missing required field in config file: {e}")

    @classmethod
    def _load_from_keyring(cls, profile: str) -> Optional[ClientConfig]:
        """Load configuration from keyring."""
        try:
            stored = keyring.get_password(cls.KEYRING_SERVICE_NAME, profile)
        except KeyringError as e:
            logger.debug(f"Could not read keyring: {e}")
            return None
        if not stored:
            return None

        try:
            return cls._from_mapping(json.loads(stored))
        except (ValueError, KeyError) as e:
            logger.debug(f"Ignoring unreadable keyring entry for profile '{profile}': {e}")
            return None

    @classmethod
    def save_profile(cls, profile: str, config: ClientConfig) -> None:
        """
        Save configuration profile to config file.

        Args:
            profile: Profile name
            config: Client configuration to save
        """
        config_data = cls._read_config_file() if cls.DEFAULT_CONFIG_FILE.exists() else {}

        config_data[profile] = {
            "host": config.host,
            "port": config.port,
            "username": config.username,
            "password": config.password,
            "site": config.site,
            "verify_ssl": config.verify_ssl,
        }
        if config.ca_bundle:
            config_data[profile]["ca_bundle"] = config.ca_bundle
        if config.scheme != "https":
            config_data[profile]["scheme"] = config.scheme

        cls._write_config_file(config_data)
        logger.info(f"Saved profile '{profile}' to config file")

    @classmethod
    def delete_profile(cls, profile: str) -> None:
        """
        Delete a profile from config file.

        Raises:
            ConfigurationError: If profile doesn't exist
        """
        if not cls.DEFAULT_CONFIG_FILE.exists():
            raise ConfigurationError(f"Config file not found: {cls.DEFAULT_CONFIG_FILE}")

        config_data = cls._read_config_file()
        if profile not in config_data:
            raise ConfigurationError(f"Profile '{profile}' not found")

        del config_data[profile]
        cls._write_config_file(config_data)
        logger.info(f"Deleted profile '{profile}' from config file")

    @classmethod
    def list_profiles(cls) -> List[str]:
        if not cls.DEFAULT_CONFIG_FILE.exists():
            return []
        return list(cls._read_config_file().keys())

    @classmethod
    def get_profile_info(cls, profile: str) -> Dict[str, Any]:
        """
        Get non-sensitive information about a profile.

        Returns:
            Dictionary with host, port, site, username and verify_ssl (no password)

        Raises:
            ConfigurationError: If profile doesn't exist
        """
        if not cls.DEFAULT_CONFIG_FILE.exists():
            raise ConfigurationError(f"Config file not found: {cls.DEFAULT_CONFIG_FILE}")

        config_data = cls._read_config_file()
        if profile not in config_data:
            raise ConfigurationError(f"Profile '{profile}' not found")

        profile_config = config_data[profile]
        return {
            "host": profile_config["host"],
            "port": profile_config.get("port", 443),
            "site": profile_config.get("site", "default"),
            "username": profile_config["username"],
            "verify_ssl": profile_config.get("verify_ssl", True),
        }

    @classmethod
    def _set_secure_permissions(cls, file_path: Path) -> None:
        """Set secure file permissions (0600 - owner read/write only)."""
        try:
            os.chmod(file_path, cls.REQUIRED_FILE_PERMISSIONS)
            logger.debug(f"Set secure permissions on {file_path}")
        except OSError as e:
            logger.warning(f"Could not set secure permissions on {file_path}: {e}")

    @classmethod
    def _verify_file_permissions(cls, file_path: Path) -> None:
        """Verify file has secure permissions, fixing them if not."""
        try:
            current_perms = os.stat(file_path).st_mode & 0o777
        except OSError as e:
            logger.debug(f"Could not verify file permissions: {e}")
            return

        if current_perms != cls.REQUIRED_FILE_PERMISSIONS:
            logger.warning(
                f"Config file {file_path} has insecure permissions {oct(current_perms)}. "
                f"Recommended: {oct(cls.REQUIRED_FILE_PERMISSIONS)}"
            )
            cls._set_secure_permissions(file_path)
