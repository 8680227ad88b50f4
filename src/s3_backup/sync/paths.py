"""Resolve a (source, destination URI) pair into a backup target."""

import os
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

from .errors import InvalidCopyTarget, InvalidDestination, SourceNotFound

S3_SCHEME = 's3'


@dataclass(frozen=True)
class SyncTarget:
    """Where a backup reads from and writes to."""
    bucket: str
    base_key: str  # No leading slash; empty string is the bucket root
    base_local_path: str

    @property
    def url(self) -> str:
        return f"{S3_SCHEME}://{self.bucket}/{self.base_key}"


def resolve_target(source: str, destination: str) -> SyncTarget:
    """Normalize the command-line source and destination.

    A trailing slash on the destination means "inside this prefix"; without
    it the destination key is the exact object name. A trailing slash on the
    source means "the contents of this directory".

    Args:
        source: Local file or directory
        destination: URI of the form ``s3://bucket[/key][/]``

    Returns:
        SyncTarget

    Raises:
        InvalidDestination: Scheme is not s3 or the bucket is missing
        SourceNotFound: Local source does not exist
        InvalidCopyTarget: Directory contents aimed at a single key
    """
    parsed = urlparse(destination)
    if parsed.scheme != S3_SCHEME:
        raise InvalidDestination(f"Backup destination is not s3: {destination}")
    if not parsed.netloc:
        raise InvalidDestination(f"Unable to parse backup destination path: {destination}")

    if not os.path.exists(source):
        raise SourceNotFound(f"Backup source does not exist: {source}")

    # s3://bucket is the bucket root
    key = unquote(parsed.path) or '/'
    local_path = source

    key_is_dir = key.endswith('/')
    source_is_dir = local_path.endswith('/')

    if key_is_dir:
        if source_is_dir:
            key = key[:-1]
            local_path = local_path[:-1] or '/'
        else:
            key = key + os.path.basename(local_path)
    elif source_is_dir:
        raise InvalidCopyTarget(f"Cannot copy contents of directory {source} to s3 path {key}")

    if key.startswith('/'):
        key = key[1:]

    return SyncTarget(bucket=parsed.netloc, base_key=key, base_local_path=local_path)
