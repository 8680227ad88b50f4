"""Tests for per-file change detection and upload."""

import hashlib
import os

import pytest

from s3_backup.destinations.s3 import HASH_METADATA_KEY, TIMESTAMP_KEY, RemoteObjectState, S3ObjectStore
from s3_backup.sync.change_detector import (
    FileOutcome,
    FileSynchronizer,
    LocalFileSnapshot,
    is_synchronized,
    refresh_timestamp_tag,
)
from s3_backup.sync.errors import FileUnreadable, MetadataProbeFailed, UploadFailed
from s3_backup.sync.walker import FileTask
from s3_backup.utils.file_utils import FileHelper

from conftest import RecordingProgress, client_error, formatted_mtime, write_file

CONTENT = b"hello backup"
DIGEST = hashlib.sha256(CONTENT).hexdigest()


@pytest.fixture
def local_file(tmp_path):
    return write_file(tmp_path / "notes.txt", CONTENT)


@pytest.fixture
def task(local_file):
    return FileTask(local_path=str(local_file), remote_key="backup/notes.txt")


def make_synchronizer(s3_client, target, **kwargs):
    return FileSynchronizer(S3ObjectStore(s3_client), target, **kwargs)


def test_new_file_is_uploaded_with_metadata_and_tag(s3_client, target, task, local_file):
    result = make_synchronizer(s3_client, target).sync_file(task)

    assert result.outcome == FileOutcome.UPLOADED
    assert result.bytes_transferred == len(CONTENT)
    stored = s3_client.objects[("bucket", "backup/notes.txt")]
    assert stored["body"] == CONTENT
    assert stored["metadata"] == {
        HASH_METADATA_KEY: DIGEST,
        TIMESTAMP_KEY: formatted_mtime(local_file),
    }
    assert s3_client.tags_of("bucket", "backup/notes.txt") == {TIMESTAMP_KEY: formatted_mtime(local_file)}


def test_second_run_performs_no_upload(s3_client, target, task):
    synchronizer = make_synchronizer(s3_client, target)
    synchronizer.sync_file(task)
    s3_client.calls.clear()

    result = synchronizer.sync_file(task)

    assert result.outcome == FileOutcome.SKIPPED
    assert s3_client.uploaded_keys == []
    assert s3_client.tagged_keys == []


def test_timestamp_match_skips_without_reading_file(s3_client, target, task, local_file, monkeypatch):
    s3_client.seed("bucket", "backup/notes.txt", CONTENT, tags=[(TIMESTAMP_KEY, formatted_mtime(local_file))])

    def fail(*args, **kwargs):
        raise AssertionError("file content should not be read")

    monkeypatch.setattr(FileHelper, "calculate_file_hash", staticmethod(fail))

    result = make_synchronizer(s3_client, target).sync_file(task)

    assert result.outcome == FileOutcome.SKIPPED


def test_timestamp_in_metadata_is_used_without_tag(s3_client, target, task, local_file):
    s3_client.seed("bucket", "backup/notes.txt", CONTENT,
                   metadata={TIMESTAMP_KEY: formatted_mtime(local_file)})

    result = make_synchronizer(s3_client, target).sync_file(task)

    assert result.outcome == FileOutcome.SKIPPED
    assert s3_client.uploaded_keys == []


def test_size_mismatch_always_uploads(s3_client, target, task, local_file):
    s3_client.seed(
        "bucket", "backup/notes.txt", CONTENT + b"!",
        metadata={HASH_METADATA_KEY: DIGEST},
        tags=[(TIMESTAMP_KEY, formatted_mtime(local_file))],
    )

    result = make_synchronizer(s3_client, target).sync_file(task)

    assert result.outcome == FileOutcome.UPLOADED
    assert s3_client.objects[("bucket", "backup/notes.txt")]["body"] == CONTENT


def test_force_hash_ignores_matching_timestamp(s3_client, target, task, local_file):
    s3_client.seed(
        "bucket", "backup/notes.txt", b"x" * len(CONTENT),
        metadata={HASH_METADATA_KEY: "0" * 64},
        tags=[(TIMESTAMP_KEY, formatted_mtime(local_file))],
    )

    result = make_synchronizer(s3_client, target, force_hash_check=True).sync_file(task)

    assert result.outcome == FileOutcome.UPLOADED


def test_force_hash_skips_upload_when_hash_matches(s3_client, target, task, local_file):
    s3_client.seed(
        "bucket", "backup/notes.txt", CONTENT,
        metadata={HASH_METADATA_KEY: DIGEST},
        tags=[(TIMESTAMP_KEY, formatted_mtime(local_file))],
    )

    result = make_synchronizer(s3_client, target, force_hash_check=True).sync_file(task)

    assert result.outcome == FileOutcome.TAGS_UPDATED
    assert s3_client.uploaded_keys == []


def test_stale_timestamp_with_matching_hash_refreshes_tags_only(s3_client, target, task, local_file):
    s3_client.seed(
        "bucket", "backup/notes.txt", CONTENT,
        metadata={HASH_METADATA_KEY: DIGEST, TIMESTAMP_KEY: "2001-01-01 00:00:00"},
        tags=[("owner", "ops"), (TIMESTAMP_KEY, "2001-01-01 00:00:00")],
    )

    result = make_synchronizer(s3_client, target).sync_file(task)

    assert result.outcome == FileOutcome.TAGS_UPDATED
    assert s3_client.uploaded_keys == []
    assert s3_client.tags_of("bucket", "backup/notes.txt") == {
        "owner": "ops",
        TIMESTAMP_KEY: formatted_mtime(local_file),
    }


def test_reupload_preserves_existing_tags(s3_client, target, task, local_file):
    s3_client.seed("bucket", "backup/notes.txt", b"old", tags=[("owner", "ops")])

    make_synchronizer(s3_client, target).sync_file(task)

    assert s3_client.tags_of("bucket", "backup/notes.txt") == {
        "owner": "ops",
        TIMESTAMP_KEY: formatted_mtime(local_file),
    }


def test_delete_marker_is_treated_as_missing(s3_client, target, task):
    s3_client.delete_markers.add(("bucket", "backup/notes.txt"))

    result = make_synchronizer(s3_client, target).sync_file(task)

    assert result.outcome == FileOutcome.UPLOADED


def test_probe_error_aborts_task(s3_client, target, task):
    s3_client.failures[("head_object", "backup/notes.txt")] = client_error("403", "HeadObject", 403)

    with pytest.raises(MetadataProbeFailed):
        make_synchronizer(s3_client, target).sync_file(task)
    assert s3_client.uploaded_keys == []


def test_unreadable_file_raises(s3_client, target, task, monkeypatch):
    def deny(path, chunk_size=0):
        raise PermissionError(13, "Permission denied", path)

    monkeypatch.setattr(FileHelper, "calculate_file_hash", staticmethod(deny))

    with pytest.raises(FileUnreadable):
        make_synchronizer(s3_client, target).sync_file(task)
    assert s3_client.uploaded_keys == []


def test_vanished_file_raises(s3_client, target, task, local_file):
    os.remove(local_file)

    with pytest.raises(FileUnreadable):
        make_synchronizer(s3_client, target).sync_file(task)


def test_upload_failure_raises(s3_client, target, task):
    s3_client.failures[("upload_fileobj", "backup/notes.txt")] = client_error("500", "PutObject", 500)

    with pytest.raises(UploadFailed):
        make_synchronizer(s3_client, target).sync_file(task)


def test_tag_failure_is_not_fatal(s3_client, target, task):
    s3_client.failures[("put_object_tagging", "backup/notes.txt")] = client_error("AccessDenied", "PutObjectTagging")

    result = make_synchronizer(s3_client, target).sync_file(task)

    assert result.outcome == FileOutcome.UPLOADED
    assert "Unable to update tag" in result.error


def test_tag_read_failure_falls_back_to_hash(s3_client, target, task):
    s3_client.seed("bucket", "backup/notes.txt", CONTENT, metadata={HASH_METADATA_KEY: DIGEST})
    s3_client.failures[("get_object_tagging", "backup/notes.txt")] = client_error("AccessDenied", "GetObjectTagging")

    result = make_synchronizer(s3_client, target).sync_file(task)

    assert result.outcome == FileOutcome.TAGS_UPDATED
    assert s3_client.uploaded_keys == []


def test_progress_reports_cumulative_bytes(s3_client, target, task):
    progress = RecordingProgress()

    make_synchronizer(s3_client, target, progress=progress).sync_file(task)

    assert progress.tracked == [("notes.txt", len(CONTENT))]
    sent = [bytes_so_far for bytes_so_far, _ in progress.updates]
    assert sent == sorted(sent)
    assert sent[-1] == len(CONTENT)
    assert len(progress.updates) == -(-len(CONTENT) // s3_client.chunk_size)
    assert all(total == len(CONTENT) for _, total in progress.updates)


def test_dry_run_writes_nothing(s3_client, target, task):
    result = make_synchronizer(s3_client, target, dry_run=True).sync_file(task)

    assert result.outcome == FileOutcome.WOULD_UPLOAD
    assert s3_client.uploaded_keys == []
    assert s3_client.tagged_keys == []


def test_empty_file_is_uploaded_once(s3_client, target, tmp_path):
    empty = write_file(tmp_path / "empty", b"")
    task = FileTask(local_path=str(empty), remote_key="backup/empty")
    synchronizer = make_synchronizer(s3_client, target)

    assert synchronizer.sync_file(task).outcome == FileOutcome.UPLOADED
    assert synchronizer.sync_file(task).outcome == FileOutcome.SKIPPED


def test_is_synchronized_requires_live_object():
    local = LocalFileSnapshot(size_bytes=3, mod_time_formatted="2024-01-01 00:00:00", sha256_hex="abc")
    marker = RemoteObjectState(exists=False, is_delete_marker=True)
    live = RemoteObjectState(exists=True, size_bytes=3, stored_hash="abc")

    assert not is_synchronized(marker, local)
    assert is_synchronized(live, local)


def test_is_synchronized_needs_hash_or_timestamp():
    local = LocalFileSnapshot(size_bytes=3, mod_time_formatted="2024-01-01 00:00:00")
    remote = RemoteObjectState(exists=True, size_bytes=3)

    assert not is_synchronized(remote, local)


def test_refresh_timestamp_tag_keeps_order_of_other_tags():
    tags = [("a", "1"), (TIMESTAMP_KEY, "old"), ("b", "2")]

    assert refresh_timestamp_tag(tags, "new") == [("a", "1"), ("b", "2"), (TIMESTAMP_KEY, "new")]


def test_snapshot_formats_mtime_to_the_second(local_file):
    snapshot = LocalFileSnapshot.from_path(str(local_file))

    assert snapshot.size_bytes == len(CONTENT)
    assert snapshot.mod_time_formatted == formatted_mtime(local_file)
    assert len(snapshot.mod_time_formatted) == len("2024-01-01 00:00:00")
    assert snapshot.with_hash(str(local_file)).sha256_hex == DIGEST


def test_read_error_during_upload_raises_unreadable(s3_client, target, task):
    s3_client.failures[("upload_fileobj", "backup/notes.txt")] = OSError(5, "Input/output error")

    with pytest.raises(FileUnreadable):
        make_synchronizer(s3_client, target).sync_file(task)
