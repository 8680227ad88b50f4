"""Backup destinations."""

from .s3 import RemoteObjectState, S3ObjectStore

__all__ = ["RemoteObjectState", "S3ObjectStore"]
