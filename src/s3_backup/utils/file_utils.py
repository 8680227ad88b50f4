"""File utility functions."""

import hashlib
import stat
from datetime import datetime
from pathlib import Path
from typing import Union

# Stored alongside every object; must stay stable across releases
MODIFIED_TIME_FORMAT = '%Y-%m-%d %H:%M:%S'

class FileHelper:
    """Helper class for file operations."""

    @staticmethod
    def format_file_size(size_bytes: float) -> str:
        """Format file size in human readable format.

        Args:
            size_bytes: Size in bytes

        Returns:
            Formatted size string
        """
        size_names = ["B", "KB", "MB", "GB", "TB"]
        i = 0

        while size_bytes >= 1024 and i < len(size_names) - 1:
            size_bytes /= 1024.0
            i += 1

        return f"{size_bytes:.2f} {size_names[i]}"

    @staticmethod
    def format_modified_time(mtime: float) -> str:
        """Format a modification time with second precision in local time.

        Args:
            mtime: Modification time as returned by ``os.stat``

        Returns:
            Timestamp formatted as ``YYYY-MM-DD HH:MM:SS``
        """
        return datetime.fromtimestamp(mtime).strftime(MODIFIED_TIME_FORMAT)

    @staticmethod
    def is_regular_file(mode: int) -> bool:
        """Check whether a stat mode describes a plain file."""
        return stat.S_ISREG(mode)

    @staticmethod
    def calculate_file_hash(file_path: Union[str, Path], chunk_size: int = 1024 * 1024) -> str:
        """Calculate SHA-256 hash of a file.

        Args:
            file_path: Path to the file
            chunk_size: Size of chunks to read

        Returns:
            SHA-256 hash as hex string

        Raises:
            OSError: If the file cannot be opened or read
        """
        hash_sha256 = hashlib.sha256()

        with open(file_path, 'rb') as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                hash_sha256.update(chunk)

        return hash_sha256.hexdigest()
