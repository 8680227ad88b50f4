"""Cloud storage authentication handling."""

import logging
from typing import Optional

import boto3
from botocore.config import Config as BotocoreConfig

logger = logging.getLogger(__name__)

class AWSAuth:
    """Handle AWS authentication and S3 client creation."""

    def __init__(
        self,
        profile_name: Optional[str] = None,
        region: Optional[str] = None,
        accelerate: bool = False,
    ):
        """Initialize AWS authentication.

        Args:
            profile_name: Shared config profile to load credentials from
            region: AWS region (default chain when None)
            accelerate: Use the S3 Transfer Acceleration endpoint
        """
        self.profile_name = profile_name
        self.region = region
        self.accelerate = accelerate
        self._s3_client = None

    def get_session(self) -> boto3.Session:
        """Create a boto3 session for the configured profile.

        Without a profile, credentials come from the default chain
        (environment, shared config, instance profile, etc.).
        """
        return boto3.Session(profile_name=self.profile_name, region_name=self.region)

    def get_s3_client(self):
        """Get authenticated S3 client.

        Returns:
            boto3 S3 client
        """
        if self._s3_client is None:
            config = None
            if self.accelerate:
                config = BotocoreConfig(s3={"use_accelerate_endpoint": True})
            self._s3_client = self.get_session().client('s3', config=config)
            logger.debug(
                f"Created S3 client (profile={self.profile_name or 'default'}, "
                f"accelerate={self.accelerate})"
            )

        return self._s3_client
