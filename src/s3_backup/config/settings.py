"""Configuration settings and models for the backup application."""

import sys
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, validator


class Platform(str, Enum):
    """Operating systems with their own reserved file names."""
    WINDOWS = "windows"
    DARWIN = "darwin"
    LINUX = "linux"
    OTHER = "other"

    @classmethod
    def current(cls) -> "Platform":
        """Detect the platform the process is running on."""
        if sys.platform.startswith("win"):
            return cls.WINDOWS
        if sys.platform == "darwin":
            return cls.DARWIN
        if sys.platform.startswith("linux"):
            return cls.LINUX
        return cls.OTHER


# Names generated by the operating system that are never backed up
SYSTEM_FILES = {
    Platform.WINDOWS: ("$RECYCLE.BIN", "desktop.ini"),
    Platform.DARWIN: (".DS_Store",),
}


def ignored_names(platform: Platform, extra: Iterable[str] = ()) -> FrozenSet[str]:
    """Build the ignore-set for a platform.

    Args:
        platform: Platform to look up reserved names for
        extra: Additional user-configured names

    Returns:
        Frozen set of base names to skip during traversal
    """
    return frozenset(SYSTEM_FILES.get(platform, ())) | frozenset(extra)


class StorageOptions(BaseModel):
    """Options passed to the S3 client."""
    profile: Optional[str] = None  # Named profile from ~/.aws/config
    region: Optional[str] = None
    accelerate: bool = False  # S3 Transfer Acceleration endpoint


class SyncOptions(BaseModel):
    """Synchronization options."""
    force_hash_check: bool = False  # Never trust the stored timestamp alone
    dry_run: bool = False
    extra_ignored_names: List[str] = Field(default_factory=list)


class LoggingOptions(BaseModel):
    """Logging options."""
    level: str = "INFO"
    file: Optional[Path] = None

    @validator('level')
    def validate_level(cls, v):
        level = v.upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'Unknown log level: {v}')
        return level


class BackupConfig(BaseModel):
    """Main configuration class."""
    storage: StorageOptions = Field(default_factory=StorageOptions)
    sync_options: SyncOptions = Field(default_factory=SyncOptions)
    logging: LoggingOptions = Field(default_factory=LoggingOptions)

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "BackupConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    def get_ignored_names(self, platform: Optional[Platform] = None) -> FrozenSet[str]:
        """Resolve the ignore-set for the given (or running) platform."""
        if platform is None:
            platform = Platform.current()
        return ignored_names(platform, self.sync_options.extra_ignored_names)
