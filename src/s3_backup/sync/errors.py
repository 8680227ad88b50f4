"""Exceptions raised while resolving and synchronizing a backup."""


class BackupError(Exception):
    """Base class for all backup errors."""


class InvalidTargetError(BackupError):
    """The source/destination pair cannot be backed up. Aborts the whole run."""


class InvalidDestination(InvalidTargetError):
    """Destination is not an s3:// URI with a bucket."""


class SourceNotFound(InvalidTargetError):
    """Local source path does not exist."""


class InvalidCopyTarget(InvalidTargetError):
    """Directory contents cannot be flattened onto a single key."""


class FileSyncError(BackupError):
    """Failure confined to a single file or subtree. Siblings keep going."""

    def __init__(self, message: str, path: str = "", key: str = ""):
        super().__init__(message)
        self.path = path
        self.key = key


class DirectoryUnreadable(FileSyncError):
    """Directory listing failed."""


class MetadataProbeFailed(FileSyncError):
    """Head request against the destination key failed for a reason other than 404."""


class FileUnreadable(FileSyncError):
    """Local file could not be opened or read."""


class UploadFailed(FileSyncError):
    """Transferring the file to S3 failed."""


class TagUpdateFailed(FileSyncError):
    """Writing the tag set back to the object failed."""
