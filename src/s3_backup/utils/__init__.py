"""Utility functions and helpers."""

from .file_utils import FileHelper
from .logging import setup_logging
from .progress import ConsoleProgress, ProgressListener

__all__ = ["setup_logging", "FileHelper", "ConsoleProgress", "ProgressListener"]
