"""
Object Storage Service for product and category images.

Works against any S3-compatible endpoint (MinIO locally, AWS S3 or
DigitalOcean Spaces in deployment). Rows store the object key; public URLs
are resolved from S3_PUBLIC_URL.
"""
import json
import logging
import mimetypes
from typing import Optional

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app
from werkzeug.datastructures import FileStorage

from storefront.exceptions import BusinessLogicError

logger = logging.getLogger(__name__)


class StorageService:
    """
    S3-compatible object storage.

    Usage:
        storage = get_storage_service()
        key = storage.upload_file(file, 'products/abc.jpg')
        storage.delete_file(key)
    """

    def __init__(self):
        cfg = current_app.config
        self.bucket = cfg['S3_BUCKET']
        self.public_url = cfg['S3_PUBLIC_URL']
        self.client = boto3.client(
            's3',
            endpoint_url=cfg['S3_ENDPOINT'],
            aws_access_key_id=cfg['S3_ACCESS_KEY'],
            aws_secret_access_key=cfg['S3_SECRET_KEY'],
            region_name=cfg['S3_REGION'],
            config=BotoConfig(signature_version='s3v4')
        )
        self._ensure_bucket_exists()

    def _ensure_bucket_exists(self):
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') != '404':
                logger.error(f"[STORAGE] ✗ Failed to check bucket: {e}")
                raise
            self.client.create_bucket(Bucket=self.bucket)
            policy = {
                "Version": "2012-10-17",
                "Statement": [{
                    "Effect": "Allow",
                    "Principal": {"AWS": "*"},
                    "Action": "s3:GetObject",
                    "Resource": f"arn:aws:s3:::{self.bucket}/*"
                }]
            }
            self.client.put_bucket_policy(Bucket=self.bucket, Policy=json.dumps(policy))
            logger.info(f"[STORAGE] ✓ Bucket '{self.bucket}' created with public-read policy")

    def upload_file(self, file: FileStorage, object_name: str, content_type: Optional[str] = None) -> str:
        """
        Upload a file and return its object key.

        Raises:
            BusinessLogicError: If the file is missing, too large or of a disallowed type
            ClientError, BotoCoreError: If the upload fails
        """
        self._validate_file(file)
        if not content_type:
            content_type = file.content_type or mimetypes.guess_type(file.filename)[0] or 'application/octet-stream'

        file.seek(0)
        try:
            self.client.upload_fileobj(
                file.stream,
                self.bucket,
                object_name,
                ExtraArgs={'ContentType': content_type, 'ACL': 'public-read'}
            )
        except (ClientError, BotoCoreError) as e:
            logger.exception(f"[STORAGE] ✗ Upload failed: {e}")
            raise
        logger.info(f"[STORAGE] ✓ Uploaded '{object_name}'")
        return object_name

    def delete_file(self, object_name: str) -> bool:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=object_name)
            logger.info(f"[STORAGE] ✓ Deleted '{object_name}'")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.exception(f"[STORAGE] ✗ Delete failed: {e}")
            return False

    def get_public_url(self, object_name: str) -> str:
        return f"{self.public_url}/{self.bucket}/{object_name}"

    def _validate_file(self, file: FileStorage):
        if not file or not file.filename:
            raise BusinessLogicError('No file provided')

        max_size = current_app.config.get('MAX_UPLOAD_SIZE', 2 * 1024 * 1024)
        file.seek(0, 2)
        file_size = file.tell()
        file.seek(0)
        if file_size > max_size:
            raise BusinessLogicError(f"File too large. Maximum {max_size / (1024 * 1024):.1f}MB")

        allowed_types = current_app.config.get('ALLOWED_MIME_TYPES', set())
        if allowed_types and file.content_type not in allowed_types:
            raise BusinessLogicError(f"File type not allowed: {file.content_type}")


_storage_service = None


def get_storage_service() -> StorageService:
    """Get or create the StorageService singleton."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
