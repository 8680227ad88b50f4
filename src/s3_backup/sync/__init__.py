"""Sync engine for backup operations."""

from .backup_manager import BackupManager
from .change_detector import FileSynchronizer
from .walker import TreeWalker

__all__ = ["BackupManager", "FileSynchronizer", "TreeWalker"]
