"""Configuration management for the S3 backup application."""

from .settings import BackupConfig, LoggingOptions, Platform, StorageOptions, SyncOptions

__all__ = ["BackupConfig", "LoggingOptions", "Platform", "StorageOptions", "SyncOptions"]
