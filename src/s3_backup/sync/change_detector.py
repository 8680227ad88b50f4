"""Change detection and conditional upload of single files.

A remote object is considered up to date when its size matches the local
file and either the stored modification timestamp or the stored SHA-256
matches. The timestamp comparison is cheap (no file read) and is skipped
when ``force_hash_check`` is set.

State lives entirely on the object: the digest and timestamp are written as
user metadata on upload, and the timestamp is also kept as an object tag so
it can be refreshed without re-uploading the body.
"""

import contextlib
import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from ..destinations.s3 import HASH_METADATA_KEY, TIMESTAMP_KEY, RemoteObjectState, S3ObjectStore
from ..utils.file_utils import FileHelper
from .errors import FileUnreadable, TagUpdateFailed
from .paths import SyncTarget
from .walker import FileTask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalFileSnapshot:
    """Size, formatted modification time and (once read) digest of a local file."""
    size_bytes: int
    mod_time_formatted: str
    sha256_hex: Optional[str] = None

    @classmethod
    def from_path(cls, path: str) -> "LocalFileSnapshot":
        """Stat a file without reading its content.

        Raises:
            FileUnreadable: If the file cannot be stat'ed
        """
        try:
            info = os.stat(path)
        except OSError as e:
            raise FileUnreadable(f"Unable to get information on {path}: {e}", path=path) from e
        return cls(
            size_bytes=info.st_size,
            mod_time_formatted=FileHelper.format_modified_time(info.st_mtime),
        )

    def with_hash(self, path: str) -> "LocalFileSnapshot":
        """Read the whole file once and return a copy carrying its SHA-256.

        Raises:
            FileUnreadable: If the file cannot be opened or read
        """
        try:
            digest = FileHelper.calculate_file_hash(path)
        except OSError as e:
            raise FileUnreadable(f"Unable to read file {path}: {e}", path=path) from e
        return replace(self, sha256_hex=digest)


class FileOutcome(str, Enum):
    """What happened to a file."""
    UPLOADED = "uploaded"
    SKIPPED = "skipped"
    TAGS_UPDATED = "tags_updated"
    WOULD_UPLOAD = "would_upload"


@dataclass
class FileResult:
    """Result of synchronizing one FileTask."""
    task: FileTask
    outcome: FileOutcome
    bytes_transferred: int = 0
    error: Optional[str] = None  # Non-fatal problem, e.g. a failed tag update


def refresh_timestamp_tag(tags: List[Tuple[str, str]], mod_time: str) -> List[Tuple[str, str]]:
    """Replace the timestamp tag, keeping every other tag verbatim."""
    refreshed = [(k, v) for k, v in tags if k != TIMESTAMP_KEY]
    refreshed.append((TIMESTAMP_KEY, mod_time))
    return refreshed


def is_synchronized(remote: RemoteObjectState, local: LocalFileSnapshot,
                    force_hash_check: bool = False) -> bool:
    """Whether the remote object can stand in for the local file.

    Args:
        remote: Probed state of the destination key
        local: Local snapshot; the hash is only compared when present
        force_hash_check: Ignore the stored timestamp

    Returns:
        True if no upload is needed
    """
    if not remote.is_live or remote.size_bytes != local.size_bytes:
        return False
    if not force_hash_check and remote.stored_timestamp is not None \
            and remote.stored_timestamp == local.mod_time_formatted:
        return True
    return local.sha256_hex is not None and remote.stored_hash == local.sha256_hex


class FileSynchronizer:
    """Decides per file whether to upload, refresh tags, or skip."""

    def __init__(self, store: S3ObjectStore, target: SyncTarget, force_hash_check: bool = False,
                 dry_run: bool = False, progress=None):
        """Initialize file synchronizer.

        Args:
            store: Object store the files are backed up to
            target: Resolved backup target (provides the bucket)
            force_hash_check: Always verify by content hash
            dry_run: Decide and log, but never write to the store
            progress: Object with a ``track(description, total)`` context
                manager yielding a ProgressListener, or None
        """
        self.store = store
        self.target = target
        self.force_hash_check = force_hash_check
        self.dry_run = dry_run
        self.progress = progress

    def sync_file(self, task: FileTask) -> FileResult:
        """Bring one remote object up to date with its local file.

        Raises:
            FileUnreadable: Local file cannot be stat'ed or read
            MetadataProbeFailed: Head request failed with a non-404 error
            UploadFailed: Transfer to S3 failed
        """
        bucket = self.target.bucket
        key = task.remote_key
        logger.info(f"Processing {task.local_path} -> s3://{bucket}/{key}")

        local = LocalFileSnapshot.from_path(task.local_path)
        remote = self.store.probe_metadata(bucket, key)

        tags: List[Tuple[str, str]] = []
        if remote.is_live:
            tags = self._read_tags(bucket, key)
            tagged_timestamp = dict(tags).get(TIMESTAMP_KEY)
            if tagged_timestamp is not None:
                remote = replace(remote, stored_timestamp=tagged_timestamp)

        # Cheap check first: size and timestamp, without reading the file
        if is_synchronized(remote, local, self.force_hash_check):
            logger.info(f"{key} already exists. Skipping...")
            return FileResult(task=task, outcome=FileOutcome.SKIPPED)

        local = local.with_hash(task.local_path)
        new_tags = refresh_timestamp_tag(tags, local.mod_time_formatted)

        if is_synchronized(remote, local, self.force_hash_check):
            if self.dry_run:
                logger.info(f"[DRY RUN] {key} already exists. Would update tags")
                return FileResult(task=task, outcome=FileOutcome.SKIPPED)
            logger.info(f"{key} already exists. Updating tags...")
            result = FileResult(task=task, outcome=FileOutcome.TAGS_UPDATED)
        else:
            if self.dry_run:
                logger.info(f"[DRY RUN] Would upload {task.local_path} to s3://{bucket}/{key}")
                return FileResult(task=task, outcome=FileOutcome.WOULD_UPLOAD)
            self._upload(task, local)
            result = FileResult(task=task, outcome=FileOutcome.UPLOADED, bytes_transferred=local.size_bytes)

        try:
            self.store.put_tags(bucket, key, new_tags)
        except TagUpdateFailed as e:
            logger.warning(str(e))
            result.error = str(e)

        return result

    def _read_tags(self, bucket: str, key: str) -> List[Tuple[str, str]]:
        try:
            return self.store.get_tags(bucket, key)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Unable to read tags for {key}: {e}")
            return []

    def _upload(self, task: FileTask, local: LocalFileSnapshot) -> None:
        metadata = {
            HASH_METADATA_KEY: local.sha256_hex,
            TIMESTAMP_KEY: local.mod_time_formatted,
        }

        if self.progress is not None:
            tracker = self.progress.track(os.path.basename(task.local_path), local.size_bytes)
        else:
            tracker = contextlib.nullcontext()

        # Opened separately from the hashing pass so the upload starts at byte 0
        try:
            f = open(task.local_path, 'rb')
        except OSError as e:
            raise FileUnreadable(f"Unable to open file {task.local_path}: {e}", path=task.local_path) from e

        with f, tracker as listener:
            try:
                self.store.put_object(
                    self.target.bucket,
                    task.remote_key,
                    f,
                    local.size_bytes,
                    metadata,
                    on_progress=listener
                )
            except OSError as e:
                # boto3 passes read errors on the file object through unchanged
                raise FileUnreadable(
                    f"Unable to read file {task.local_path}: {e}", path=task.local_path
                ) from e

        logger.info(
            f"Uploaded {task.local_path} to s3://{self.target.bucket}/{task.remote_key} "
            f"({FileHelper.format_file_size(local.size_bytes)})"
        )
