"""AWS S3 destination handler."""

import logging
import threading
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from ..sync.errors import MetadataProbeFailed, TagUpdateFailed, UploadFailed
from ..utils.progress import ProgressListener

logger = logging.getLogger(__name__)

# Object user-metadata and tag keys written by this tool
HASH_METADATA_KEY = 'sha256'
TIMESTAMP_KEY = 'modified-timestamp'

_NOT_FOUND_CODES = ('404', 'NoSuchKey', 'NotFound')


@dataclass(frozen=True)
class RemoteObjectState:
    """What a head request tells us about the destination key."""
    exists: bool
    size_bytes: Optional[int] = None
    is_delete_marker: bool = False
    stored_hash: Optional[str] = None
    stored_timestamp: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def is_live(self) -> bool:
        """True when a real (non delete marker) object sits at the key."""
        return self.exists and not self.is_delete_marker


class _CumulativeCallback:
    """Turns boto3's per-chunk byte counts into cumulative progress.

    s3transfer invokes the callback from its worker threads on multipart
    uploads.
    """

    def __init__(self, listener: ProgressListener, total_size: int):
        self.listener = listener
        self.total_size = total_size
        self.bytes_so_far = 0
        self._lock = threading.Lock()

    def __call__(self, bytes_amount: int) -> None:
        with self._lock:
            self.bytes_so_far += bytes_amount
            self.listener.update(self.bytes_so_far, self.total_size)


def _is_delete_marker(response: Dict) -> bool:
    if response.get('DeleteMarker'):
        return True
    headers = response.get('ResponseMetadata', {}).get('HTTPHeaders', {})
    return headers.get('x-amz-delete-marker', '').lower() == 'true'


class S3ObjectStore:
    """Thin wrapper over a boto3 S3 client exposing the operations a backup needs."""

    def __init__(self, s3_client):
        """Initialize S3 object store.

        Args:
            s3_client: boto3 S3 client
        """
        self.s3_client = s3_client

    def probe_metadata(self, bucket: str, key: str) -> RemoteObjectState:
        """Fetch object metadata without downloading the body.

        Args:
            bucket: S3 bucket name
            key: Object key

        Returns:
            RemoteObjectState; ``exists`` is False when the key is missing

        Raises:
            MetadataProbeFailed: On any error other than a 404
        """
        try:
            response = self.s3_client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            error_code = str(e.response.get('Error', {}).get('Code', ''))
            if error_code in _NOT_FOUND_CODES:
                # A delete marker answers HEAD with a 404 plus a marker header
                return RemoteObjectState(exists=False, is_delete_marker=_is_delete_marker(e.response))
            raise MetadataProbeFailed(
                f"Unable to retrieve s3 object metadata for key {key} [{e}]", key=key
            ) from e
        except BotoCoreError as e:
            raise MetadataProbeFailed(
                f"Unable to retrieve s3 object metadata for key {key} [{e}]", key=key
            ) from e

        metadata = response.get('Metadata', {}) or {}
        return RemoteObjectState(
            exists=True,
            size_bytes=response.get('ContentLength'),
            is_delete_marker=_is_delete_marker(response),
            stored_hash=metadata.get(HASH_METADATA_KEY),
            stored_timestamp=metadata.get(TIMESTAMP_KEY),
            metadata=dict(metadata),
        )

    def put_object(self, bucket: str, key: str, fileobj: BinaryIO, total_size: int,
                   metadata: Dict[str, str],
                   on_progress: Optional[ProgressListener] = None) -> None:
        """Stream a file object to S3 as a single logical upload.

        boto3 decides internally whether to split the transfer into parts.

        Args:
            bucket: S3 bucket name
            key: Object key
            fileobj: Binary file object positioned at the start
            total_size: Number of bytes that will be read from ``fileobj``
            metadata: User metadata attached to the object
            on_progress: Listener fed after every chunk read

        Raises:
            UploadFailed: If the transfer fails
        """
        callback = _CumulativeCallback(on_progress, total_size) if on_progress else None
        try:
            self.s3_client.upload_fileobj(
                Fileobj=fileobj,
                Bucket=bucket,
                Key=key,
                ExtraArgs={'Metadata': metadata},
                Callback=callback
            )
        except (BotoCoreError, ClientError) as e:
            raise UploadFailed(f"Unable to upload to s3://{bucket}/{key} [{e}]", key=key) from e

    def get_tags(self, bucket: str, key: str) -> List[Tuple[str, str]]:
        """Read the object's tag set.

        Raises:
            ClientError, BotoCoreError: Propagated from boto3
        """
        response = self.s3_client.get_object_tagging(Bucket=bucket, Key=key)
        return [(tag['Key'], tag['Value']) for tag in response.get('TagSet', [])]

    def put_tags(self, bucket: str, key: str, tags: List[Tuple[str, str]]) -> None:
        """Replace the object's tag set.

        Raises:
            TagUpdateFailed: If S3 rejects the tagging request
        """
        try:
            self.s3_client.put_object_tagging(
                Bucket=bucket,
                Key=key,
                Tagging={'TagSet': [{'Key': k, 'Value': v} for k, v in tags]}
            )
        except (BotoCoreError, ClientError) as e:
            raise TagUpdateFailed(f"Unable to update tag for {key} [{e}]", key=key) from e
