"""Enumerate local files and map them to S3 keys."""

import logging
import os
import stat
from dataclasses import dataclass, field
from typing import FrozenSet, Iterator, List

from ..utils.file_utils import FileHelper
from .errors import DirectoryUnreadable
from .paths import SyncTarget

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileTask:
    """One local file and the key it is backed up to."""
    local_path: str
    remote_key: str


@dataclass
class WalkStats:
    """Entries the walker did not turn into tasks."""
    ignored: int = 0
    irregular: int = 0
    unreadable: int = 0
    errors: List[str] = field(default_factory=list)


def child_key(parent_key: str, name: str) -> str:
    """Key of a directory entry; an empty parent is the bucket root."""
    return f"{parent_key}/{name}" if parent_key else name


class TreeWalker:
    """Depth-first traversal of a local source tree.

    Symlinks, devices, sockets and pipes below the source are skipped, as are
    files whose base name is in the ignore-set. Problems with one entry are
    logged and never stop the traversal of its siblings.
    """

    def __init__(self, ignored_names: FrozenSet[str] = frozenset()):
        self.ignored_names = ignored_names
        self.stats = WalkStats()

    def walk(self, target: SyncTarget) -> Iterator[FileTask]:
        """Yield a FileTask for every regular, non-ignored file under the target."""
        self.stats = WalkStats()
        # The source itself may be a symlink to a directory
        yield from self._visit(target.base_local_path, target.base_key, follow_symlinks=True)

    def _visit(self, local_path: str, remote_key: str, follow_symlinks: bool = False) -> Iterator[FileTask]:
        try:
            info = os.stat(local_path, follow_symlinks=follow_symlinks)
        except OSError as e:
            self._record_error(f"Unable to get information on {local_path}: {e}")
            return

        if os.path.basename(local_path) in self.ignored_names:
            logger.info(f"{local_path} is a restricted file. Skipping...")
            self.stats.ignored += 1
        elif stat.S_ISDIR(info.st_mode):
            try:
                names = os.listdir(local_path)
            except OSError as e:
                error = DirectoryUnreadable(
                    f"Unable to get files in directory {local_path}: {e}",
                    path=local_path, key=remote_key
                )
                self._record_error(str(error))
                return

            for name in names:
                yield from self._visit(os.path.join(local_path, name), child_key(remote_key, name))
        elif not FileHelper.is_regular_file(info.st_mode):
            logger.info(f"{local_path} is an irregular file. Skipping...")
            self.stats.irregular += 1
        else:
            yield FileTask(local_path=local_path, remote_key=remote_key)

    def _record_error(self, message: str) -> None:
        logger.error(message)
        self.stats.unreadable += 1
        self.stats.errors.append(message)
