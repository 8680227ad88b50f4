"""
S3 Backup Tool

Copies a local file or directory tree to an S3 bucket, skipping files
whose remote copy is already present and unchanged.
"""

__version__ = "1.0.0"
__author__ = "S3 Backup Tool"
__description__ = "Incremental backup of local files to AWS S3"

from .config.settings import BackupConfig
from .sync.backup_manager import BackupManager

__all__ = ["BackupConfig", "BackupManager"]
