"""Shared fixtures: an in-memory stand-in for the boto3 S3 client."""

import logging
import os
import sys
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from s3_backup.sync.paths import SyncTarget
from s3_backup.utils.file_utils import FileHelper


def client_error(code: str, operation: str, status: int = 400, headers=None) -> ClientError:
    return ClientError(
        {
            'Error': {'Code': code, 'Message': code},
            'ResponseMetadata': {'HTTPStatusCode': status, 'HTTPHeaders': headers or {}},
        },
        operation,
    )


class FakeS3Client:
    """Implements the handful of S3 calls the backup makes."""

    chunk_size = 4

    def __init__(self):
        self.objects = {}
        self.delete_markers = set()
        self.failures = {}
        self.calls = []

    def seed(self, bucket, key, body=b'', metadata=None, tags=None):
        self.objects[(bucket, key)] = {
            'body': body,
            'metadata': dict(metadata or {}),
            'tags': list(tags or []),
        }

    def tags_of(self, bucket, key):
        return dict(self.objects[(bucket, key)]['tags'])

    @property
    def uploaded_keys(self):
        return [call[2] for call in self.calls if call[0] == 'upload_fileobj']

    @property
    def tagged_keys(self):
        return [call[2] for call in self.calls if call[0] == 'put_object_tagging']

    def _check_failure(self, method, key):
        err = self.failures.get((method, key))
        if err is not None:
            raise err

    def head_bucket(self, Bucket):
        self.calls.append(('head_bucket', Bucket, None))
        self._check_failure('head_bucket', Bucket)
        return {'ResponseMetadata': {'HTTPStatusCode': 200, 'HTTPHeaders': {}}}

    def head_object(self, Bucket, Key):
        self.calls.append(('head_object', Bucket, Key))
        self._check_failure('head_object', Key)
        if (Bucket, Key) in self.delete_markers:
            raise client_error('404', 'HeadObject', 404, {'x-amz-delete-marker': 'true'})
        obj = self.objects.get((Bucket, Key))
        if obj is None:
            raise client_error('404', 'HeadObject', 404)
        return {
            'ContentLength': len(obj['body']),
            'Metadata': dict(obj['metadata']),
            'ResponseMetadata': {'HTTPStatusCode': 200, 'HTTPHeaders': {}},
        }

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None, Callback=None, Config=None):
        self.calls.append(('upload_fileobj', Bucket, Key))
        self._check_failure('upload_fileobj', Key)
        body = b''
        for chunk in iter(lambda: Fileobj.read(self.chunk_size), b''):
            body += chunk
            if Callback is not None:
                Callback(len(chunk))
        self.delete_markers.discard((Bucket, Key))
        # A new object version starts without tags
        self.seed(Bucket, Key, body, (ExtraArgs or {}).get('Metadata'))

    def get_object_tagging(self, Bucket, Key):
        self.calls.append(('get_object_tagging', Bucket, Key))
        self._check_failure('get_object_tagging', Key)
        obj = self.objects.get((Bucket, Key))
        if obj is None:
            raise client_error('NoSuchKey', 'GetObjectTagging', 404)
        return {'TagSet': [{'Key': k, 'Value': v} for k, v in obj['tags']]}

    def put_object_tagging(self, Bucket, Key, Tagging):
        self.calls.append(('put_object_tagging', Bucket, Key))
        self._check_failure('put_object_tagging', Key)
        obj = self.objects.get((Bucket, Key))
        if obj is None:
            raise client_error('NoSuchKey', 'PutObjectTagging', 404)
        obj['tags'] = [(tag['Key'], tag['Value']) for tag in Tagging['TagSet']]


class RecordingProgress:
    """Progress reporter that remembers every update."""

    def __init__(self):
        self.tracked = []
        self.updates = []

    def track(self, description, total):
        self.tracked.append((description, total))
        return _RecordingContext(self)


class _RecordingContext:
    def __init__(self, owner):
        self.owner = owner

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def update(self, bytes_so_far, total):
        self.owner.updates.append((bytes_so_far, total))


def write_file(path: Path, content: bytes, mtime: float = 1_700_000_000) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    os.utime(path, (mtime, mtime))
    return path


def formatted_mtime(path: Path) -> str:
    return FileHelper.format_modified_time(os.stat(path).st_mtime)


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def target(tmp_path):
    return SyncTarget(bucket='bucket', base_key='backup', base_local_path=str(tmp_path))


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # CLI runs attach handlers to streams that are closed afterwards
    logging.getLogger('s3_backup').handlers.clear()
