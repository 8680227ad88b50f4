"""Main backup manager orchestrating the backup process."""

import logging
from datetime import datetime
from typing import Any, Dict

from botocore.exceptions import BotoCoreError, ClientError

from ..auth.cloud_auth import AWSAuth
from ..config.settings import BackupConfig
from ..destinations.s3 import S3ObjectStore
from .change_detector import FileOutcome, FileSynchronizer
from .errors import FileSyncError
from .paths import SyncTarget, resolve_target
from .walker import TreeWalker

# Module logger
logger = logging.getLogger(__name__)


class BackupManager:
    """Main backup manager that orchestrates the backup process."""

    def __init__(self, config: BackupConfig, s3_client=None, progress=None):
        """Initialize backup manager.

        Args:
            config: Backup configuration
            s3_client: boto3 S3 client; built from ``config.storage`` when omitted
            progress: Progress reporter passed to the file synchronizer
        """
        self.config = config
        self.progress = progress
        self.aws_auth = AWSAuth(
            profile_name=config.storage.profile,
            region=config.storage.region,
            accelerate=config.storage.accelerate
        )
        if s3_client is None:
            s3_client = self.aws_auth.get_s3_client()
        self.store = S3ObjectStore(s3_client)
        self.ignored_names = config.get_ignored_names()

    def test_connection(self, bucket_name: str) -> bool:
        """Test S3 connection by checking if bucket is accessible.

        Args:
            bucket_name: Name of S3 bucket to test

        Returns:
            True if connection successful, False otherwise
        """
        try:
            self.store.s3_client.head_bucket(Bucket=bucket_name)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to connect to S3 bucket {bucket_name}: {e}")
            return False

    def run_backup(self, source: str, destination: str) -> Dict[str, Any]:
        """Back up a local file or directory to an S3 URI.

        Args:
            source: Local file or directory
            destination: ``s3://bucket[/key][/]``

        Returns:
            Dictionary with backup results

        Raises:
            InvalidTargetError: If the source/destination pair is invalid
        """
        target = resolve_target(source, destination)
        return self.run_target(target)

    def run_target(self, target: SyncTarget) -> Dict[str, Any]:
        """Synchronize every file under an already resolved target.

        Args:
            target: Resolved backup target

        Returns:
            Dictionary with backup results
        """
        sync_options = self.config.sync_options
        logger.info(f"Starting backup: {target.base_local_path} -> {target.url}")
        if sync_options.dry_run:
            logger.info("DRY RUN MODE - No files will be uploaded")
        start_time = datetime.now()

        results = {
            'source': target.base_local_path,
            'destination': target.url,
            'start_time': start_time,
            'status': 'started',
            'files_processed': 0,
            'files_uploaded': 0,
            'files_skipped': 0,
            'tags_updated': 0,
            'bytes_transferred': 0,
            'errors': []
        }

        walker = TreeWalker(self.ignored_names)
        synchronizer = FileSynchronizer(
            self.store,
            target,
            force_hash_check=sync_options.force_hash_check,
            dry_run=sync_options.dry_run,
            progress=self.progress
        )

        try:
            for task in walker.walk(target):
                results['files_processed'] += 1
                try:
                    file_result = synchronizer.sync_file(task)
                except FileSyncError as e:
                    logger.error(str(e))
                    results['errors'].append(f"{task.local_path}: {e}")
                    continue

                if file_result.outcome in (FileOutcome.UPLOADED, FileOutcome.WOULD_UPLOAD):
                    results['files_uploaded'] += 1
                elif file_result.outcome == FileOutcome.TAGS_UPDATED:
                    results['tags_updated'] += 1
                    results['files_skipped'] += 1
                else:
                    results['files_skipped'] += 1
                results['bytes_transferred'] += file_result.bytes_transferred
                if file_result.error:
                    results['errors'].append(f"{task.local_path}: {file_result.error}")

            results['status'] = 'completed'

        finally:
            results['errors'].extend(walker.stats.errors)
            results['files_ignored'] = walker.stats.ignored + walker.stats.irregular
            results['end_time'] = datetime.now()
            results['duration'] = (results['end_time'] - start_time).total_seconds()
            logger.info(f"Backup of {target.base_local_path} finished in {results['duration']:.2f} seconds")

        return results

    def get_backup_summary(self, results: Dict[str, Any]) -> Dict[str, Any]:
        """Generate summary of backup results.

        Args:
            results: Result of ``run_backup``

        Returns:
            Summary dictionary
        """
        return {
            'status': results.get('status'),
            'dry_run': self.config.sync_options.dry_run,
            'total_files_processed': results.get('files_processed', 0),
            'total_files_uploaded': results.get('files_uploaded', 0),
            'total_files_skipped': results.get('files_skipped', 0),
            'total_tags_updated': results.get('tags_updated', 0),
            'total_files_ignored': results.get('files_ignored', 0),
            'total_bytes_transferred': results.get('bytes_transferred', 0),
            'total_errors': len(results.get('errors', [])),
            'backup_time': datetime.now().isoformat()
        }
