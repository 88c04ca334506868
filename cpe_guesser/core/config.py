"""
Application Configuration
cpe_guesser/core/config.py

Settings are read from the environment (and .env), optionally layered with a
YAML settings file, and finally with command line overrides.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging
import os

import yaml

from cpe_guesser.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "settings.yaml"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Application
    APP_NAME: str = "CPE Guesser"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # HTTP server
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # Backing store
    DATABASE_URL: str = "sqlite:///./cpe_guesser.db"
    DATABASE_POOL_SIZE: int = 20
    STORE_TIMEOUT_SECONDS: int = 5

    # CPE dictionary
    CPE_PATH: str = "./data/official-cpe-dictionary_v2.3.xml"
    CPE_SOURCE: str = "https://nvd.nist.gov/feeds/xml/cpe/dictionary/official-cpe-dictionary_v2.3.xml.gz"
    HTTP_TIMEOUT_SECONDS: int = 300

    # Index import
    IMPORT_BATCH_SIZE: int = 5000
    INDEX_LEGACY_TOKEN_SCORES: bool = False

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('IMPORT_BATCH_SIZE')
    @classmethod
    def validate_batch_size(cls, v):
        if v < 1:
            raise ValueError('Import batch size must be at least 1')
        return v

    @field_validator('SERVER_PORT')
    @classmethod
    def validate_port(cls, v):
        if not 1 <= v <= 65535:
            raise ValueError('Server port must be between 1 and 65535')
        return v


# (section, key) in the YAML file -> Settings field
YAML_FIELD_MAP = {
    ("server", "host"): "SERVER_HOST",
    ("server", "port"): "SERVER_PORT",
    ("database", "url"): "DATABASE_URL",
    ("database", "pool_size"): "DATABASE_POOL_SIZE",
    ("database", "timeout"): "STORE_TIMEOUT_SECONDS",
    ("cpe", "path"): "CPE_PATH",
    ("cpe", "source"): "CPE_SOURCE",
    ("logging", "level"): "LOG_LEVEL",
    ("logging", "file"): "LOG_FILE",
    ("import", "batch_size"): "IMPORT_BATCH_SIZE",
    ("import", "legacy_token_scores"): "INDEX_LEGACY_TOKEN_SCORES",
}


def load_yaml_config(config_file: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a YAML settings file and flatten it into Settings field names.

    Unknown sections and keys are ignored with a warning.

    Raises:
        ConfigError: If the file cannot be read or is not valid YAML
    """
    config_path = Path(config_file).expanduser()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Error reading config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping at the top level")

    values: Dict[str, Any] = {}
    for section, entries in data.items():
        if not isinstance(entries, dict):
            logger.warning(f"Ignoring non-mapping section '{section}' in {config_path}")
            continue
        for key, value in entries.items():
            field = YAML_FIELD_MAP.get((section, key))
            if field is None:
                logger.warning(f"Ignoring unknown setting '{section}.{key}' in {config_path}")
                continue
            values[field] = value

    return values


def load_settings(config_path: Optional[Union[str, Path]] = None, **overrides) -> Settings:
    """
    Build the effective settings.

    Precedence, highest first: ``overrides`` (command line), the YAML file,
    the environment, the defaults. Overrides whose value is None are ignored
    so unset command line flags never mask the file.
    """
    if config_path:
        config_file = Path(config_path).expanduser().resolve()
        if not config_file.exists():
            raise ConfigError(f"Config file does not exist: {config_file}")
    else:
        config_file = Path(DEFAULT_CONFIG_FILE)
        if not config_file.exists():
            config_file = None

    values: Dict[str, Any] = {}
    if config_file is not None:
        logger.debug(f"Loading config from: {config_file}")
        values.update(load_yaml_config(config_file))

    values.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return Settings(**values)
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def get_cpe_path(settings: Settings) -> str:
    """Absolute path of the local CPE dictionary file"""
    return os.path.abspath(os.path.expanduser(settings.CPE_PATH))


def get_database_config(settings: Settings) -> dict:
    """Get database configuration for SQLAlchemy"""
    return {
        'url': settings.DATABASE_URL,
        'pool_size': settings.DATABASE_POOL_SIZE,
        'timeout': settings.STORE_TIMEOUT_SECONDS,
        'echo': settings.DEBUG
    }


__all__ = [
    'Settings',
    'DEFAULT_CONFIG_FILE',
    'load_yaml_config',
    'load_settings',
    'get_cpe_path',
    'get_database_config',
]
