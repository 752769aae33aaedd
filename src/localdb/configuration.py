"""
Configuration Management for localdb

🔧 Unified Configuration System:
Dataclass configuration for storage backends, repositories and logging,
with presets per environment and loaders for dictionaries, JSON files and
environment variables.
"""

from typing import Dict, Any, Optional, Union
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import json
import logging
import os

from .persistence.backends import FileStorage, KeyValueStore, MemoryStorage
from .persistence.repositories import LocalRepository, RepositoryError
from .persistence.repositories.identity import IdentityGenerator

class ConfigurationError(RepositoryError):
    """Raised for invalid configuration values"""
    pass

class Environment(Enum):
    """Application environments"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"

@dataclass
class StorageConfig:
    """Key-value backend configuration"""
    backend: str = "memory"
    path: Optional[str] = None
    delay: float = 0

@dataclass
class RepositoryConfig:
    """Record repository configuration"""
    # cursor identity field; None uses each model's own id_attribute
    id_attribute: Optional[str] = None
    index_separator: str = ","

@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

@dataclass
class LocalDbConfig:
    """Complete localdb configuration"""
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    storage: StorageConfig = field(default_factory=StorageConfig)
    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def for_environment(cls, environment: Environment) -> 'LocalDbConfig':
        """Create configuration for specific environment"""
        config = cls(environment=environment)

        if environment == Environment.DEVELOPMENT:
            config.debug = True
            config.logging.level = "DEBUG"

        elif environment == Environment.TESTING:
            config.storage.backend = "memory"
            config.logging.level = "WARNING"

        elif environment == Environment.PRODUCTION:
            config.storage.backend = "file"
            config.storage.path = "localdb.json"
            config.logging.level = "INFO"

        return config

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'LocalDbConfig':
        """Create configuration from dictionary"""
        environment = Environment.DEVELOPMENT
        if "environment" in config_dict:
            environment = _parse_environment(config_dict["environment"])
        config = cls.for_environment(environment)

        if "debug" in config_dict:
            config.debug = bool(config_dict["debug"])

        for section in ("storage", "repository", "logging"):
            values = config_dict.get(section) or {}
            target = getattr(config, section)
            for key, value in values.items():
                if not hasattr(target, key):
                    raise ConfigurationError(f"Unknown {section} setting: {key}")
                setattr(target, key, value)

        config.validate()
        return config

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> 'LocalDbConfig':
        """Load configuration from a JSON file"""
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if config_path.suffix != '.json':
            raise ConfigurationError(f"Unsupported configuration file format: {config_path.suffix}")

        with open(config_path) as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def from_environment(cls) -> 'LocalDbConfig':
        """Create configuration from environment variables"""
        config = cls.for_environment(_parse_environment(os.getenv('LOCALDB_ENV', 'development')))

        if os.getenv('LOCALDB_DEBUG'):
            config.debug = os.getenv('LOCALDB_DEBUG').lower() == 'true'

        if os.getenv('LOCALDB_STORAGE'):
            config.storage.backend = os.getenv('LOCALDB_STORAGE')

        if os.getenv('LOCALDB_PATH'):
            config.storage.path = os.getenv('LOCALDB_PATH')

        if os.getenv('LOCALDB_DELAY'):
            raw_delay = os.getenv('LOCALDB_DELAY')
            try:
                config.storage.delay = float(raw_delay)
            except ValueError as error:
                raise ConfigurationError(
                    f"Invalid LOCALDB_DELAY value: expected a number, got '{raw_delay}'"
                ) from error

        if os.getenv('LOCALDB_LOG_LEVEL'):
            config.logging.level = os.getenv('LOCALDB_LOG_LEVEL').upper()

        config.validate()
        return config

    def validate(self) -> None:
        """Check settings that would otherwise fail later and less clearly"""
        if self.storage.backend not in ("memory", "file"):
            raise ConfigurationError(f"Unknown storage backend: {self.storage.backend}")
        if self.storage.backend == "file" and not self.storage.path:
            raise ConfigurationError("File storage requires storage.path")
        if self.storage.delay < 0:
            raise ConfigurationError("storage.delay must be zero or positive")
        if not self.repository.index_separator:
            raise ConfigurationError("repository.index_separator must not be empty")
        if not isinstance(logging.getLevelName(self.logging.level.upper()), int):
            raise ConfigurationError(f"Unknown logging level: {self.logging.level}")

    def create_storage(self) -> KeyValueStore:
        """Build the configured key-value backend"""
        if self.storage.backend == "file":
            return FileStorage(self.storage.path)
        return MemoryStorage(self.storage.delay)

    def create_repository(self,
                          name: str,
                          storage: Optional[KeyValueStore] = None,
                          id_generator: Optional[IdentityGenerator] = None) -> LocalRepository:
        """Build a repository for one collection, on ``storage`` or a new configured backend"""
        return LocalRepository(
            name,
            storage if storage is not None else self.create_storage(),
            id_generator=id_generator,
            id_attribute=self.repository.id_attribute,
            separator=self.repository.index_separator,
        )

def _parse_environment(value: str) -> Environment:
    try:
        return Environment(value)
    except ValueError:
        raise ConfigurationError(f"Unknown environment: {value}") from None

def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """Install a stream handler on the ``localdb`` logger"""
    config = config or LoggingConfig()
    logger = logging.getLogger("localdb")
    logger.setLevel(config.level.upper())
    if not any(getattr(h, "_localdb_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler._localdb_handler = True
        logger.addHandler(handler)
    for handler in logger.handlers:
        if getattr(handler, "_localdb_handler", False):
            handler.setFormatter(logging.Formatter(config.format))
    return logger

__all__ = [
    "ConfigurationError", "Environment", "StorageConfig", "RepositoryConfig",
    "LoggingConfig", "LocalDbConfig", "configure_logging"
]
