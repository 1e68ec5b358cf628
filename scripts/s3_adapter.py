"""Thin S3 adapter used by the publish script.

This wraps boto3 S3 interactions so we can swap in test adapters during unit tests.
Uploads use `upload_file` (which handles multipart uploads); deletions are
batched through `delete_objects`.
"""
from pathlib import Path
from typing import Any, Dict, List, Sequence

import boto3
from boto3.s3.transfer import TransferConfig

# delete_objects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000


class S3Adapter:
    """Thin S3 adapter used by the publish script.

    The adapter exposes exactly what a mirror sync needs: list the bucket with
    ETags, upload files and delete keys. It configures a TransferConfig for
    multipart uploads when a file exceeds `multipart_threshold`.
    """

    def __init__(self, region: str | None = None, *, multipart_threshold: int = 8 * 1024 * 1024, transfer_config_kwargs: Dict[str, Any] | None = None):
        """Create an adapter.

        Args:
            region: AWS region for the S3 client.
            multipart_threshold: file size in bytes above which multipart uploads are used.
            transfer_config_kwargs: optional kwargs forwarded to boto3.s3.transfer.TransferConfig.
        """
        self.region = region
        self._client = None
        self.multipart_threshold = int(multipart_threshold)
        self.transfer_config_kwargs = dict(transfer_config_kwargs or {})

    def _ensure_client(self):
        if self._client is None:
            self._client = boto3.client('s3', region_name=self.region) if self.region else boto3.client('s3')
        return self._client

    def list_objects(self, bucket: str, prefix: str = "") -> Dict[str, str]:
        """Return object key to ETag for every object under `prefix`."""
        client = self._ensure_client()
        paginator = client.get_paginator('list_objects_v2')
        objects: Dict[str, str] = {}
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for obj in page.get('Contents', []):
                objects[obj['Key']] = obj['ETag']
        return objects

    def upload_file(self, file_path: Path, bucket: str, key: str, extra_args: Dict[str, Any] | None = None) -> None:
        """Upload a file to S3 using boto3's upload_file.

        When the file size is >= multipart_threshold a TransferConfig is created and
        passed to `upload_file` to control multipart behavior. For smaller files the
        default upload path is used.
        """
        extra = extra_args or {}
        size = Path(file_path).stat().st_size
        client = self._ensure_client()

        if size >= self.multipart_threshold:
            cfg_kwargs = dict(self.transfer_config_kwargs)
            cfg_kwargs.setdefault('multipart_threshold', self.multipart_threshold)
            client.upload_file(str(file_path), bucket, key, ExtraArgs=extra, Config=TransferConfig(**cfg_kwargs))
        else:
            client.upload_file(str(file_path), bucket, key, ExtraArgs=extra)

    def delete_objects(self, bucket: str, keys: Sequence[str]) -> List[str]:
        """Delete keys in batches; returns the keys S3 reported as errors."""
        client = self._ensure_client()
        failed: List[str] = []
        keys = list(keys)
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            response = client.delete_objects(
                Bucket=bucket,
                Delete={'Objects': [{'Key': k} for k in batch], 'Quiet': True},
            )
            failed.extend(err['Key'] for err in response.get('Errors', []))
        return failed
