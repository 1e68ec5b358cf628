"""Publishing of staged build output to the frontend bucket.

Publishing mirrors the staged directory into the bucket: new and changed
files are uploaded, objects absent from the build are deleted, and the whole
CloudFront distribution is invalidated afterwards. An empty staging result
skips publishing entirely so that a broken build can never empty the bucket.
"""

import hashlib
import logging
import mimetypes
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .outputs import PUBLISH_ENVIRONMENT, DeployedOutputs, OutputKey
from .staging import StagingResult, list_files

logger = logging.getLogger(__name__)

INVALIDATION_PATHS = ["/*"]


@dataclass
class SyncPlan:
    """Operations needed to make a bucket an exact mirror of a directory."""
    uploads: List[Tuple[Path, str]] = field(default_factory=list)
    deletes: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.uploads and not self.deletes


@dataclass
class PublishResult:
    skipped: bool
    plan: Optional[SyncPlan] = None
    invalidation_id: Optional[str] = None


def _md5(path: Path) -> str:
    digest = hashlib.md5(usedforsecurity=False)
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def plan_sync(local_dir: Path, remote_etags: Mapping[str, str]) -> SyncPlan:
    """Compare a local directory with the bucket listing.

    Args:
        local_dir: Directory whose contents the bucket must mirror.
        remote_etags: Object key to ETag for every object in the bucket.
    """
    local_dir = Path(local_dir)
    plan = SyncPlan()
    local_keys = list_files(local_dir)

    for key in local_keys:
        path = local_dir / key
        # Multipart ETags ("<md5>-<parts>") never equal a plain MD5, so those objects re-upload.
        etag = remote_etags.get(key, "").strip('"')
        if etag and etag == _md5(path):
            plan.unchanged.append(key)
        else:
            plan.uploads.append((path, key))

    local = set(local_keys)
    plan.deletes = sorted(key for key in remote_etags if key not in local)
    return plan


def apply_sync(plan: SyncPlan, adapter, bucket: str, dry_run: bool = True) -> None:
    """Execute a sync plan through an S3 adapter."""
    for path, key in plan.uploads:
        if dry_run:
            print(f"DRY RUN: upload {path} -> s3://{bucket}/{key}")
            continue
        content_type, _ = mimetypes.guess_type(key)
        extra = {"ContentType": content_type} if content_type else None
        adapter.upload_file(path, bucket, key, extra_args=extra)

    if plan.deletes:
        if dry_run:
            for key in plan.deletes:
                print(f"DRY RUN: delete s3://{bucket}/{key}")
        else:
            failed = adapter.delete_objects(bucket, plan.deletes)
            if failed:
                raise RuntimeError(f"Failed to delete {len(failed)} objects from {bucket}: {', '.join(failed[:10])}")

    logger.info(
        f"Synced s3://{bucket}: {len(plan.uploads)} uploaded, {len(plan.deletes)} deleted, "
        f"{len(plan.unchanged)} unchanged{' (dry run)' if dry_run else ''}"
    )


def invalidate_all(
    distribution_id: str,
    client=None,
    dry_run: bool = True,
    paths: Sequence[str] = INVALIDATION_PATHS,
) -> Optional[str]:
    """Invalidate cached paths on a CloudFront distribution.

    Returns:
        The invalidation id, or None for a dry run.
    """
    if dry_run:
        print(f"DRY RUN: invalidate {', '.join(paths)} on distribution {distribution_id}")
        return None

    if client is None:
        import boto3

        client = boto3.client("cloudfront")

    response: Dict[str, Any] = client.create_invalidation(
        DistributionId=distribution_id,
        InvalidationBatch={
            "Paths": {"Quantity": len(paths), "Items": list(paths)},
            "CallerReference": f"publish-{int(time.time() * 1000)}",
        },
    )
    invalidation_id = response["Invalidation"]["Id"]
    logger.info(f"Created invalidation {invalidation_id} on distribution {distribution_id}")
    return invalidation_id


def publish_build_output(
    staging: StagingResult,
    outputs: DeployedOutputs,
    adapter,
    cloudfront_client=None,
    dry_run: bool = True,
) -> PublishResult:
    """Mirror staged output into the bucket and invalidate the distribution.

    When staging found nothing the bucket is left untouched and the result is
    marked as skipped.
    """
    if not staging.found:
        logger.warning("No staged build output; skipping publish and invalidation")
        return PublishResult(skipped=True)

    remote = adapter.list_objects(outputs.bucket_name)
    plan = plan_sync(staging.output_dir, remote)
    apply_sync(plan, adapter, outputs.bucket_name, dry_run=dry_run)
    invalidation_id = invalidate_all(outputs.distribution_id, client=cloudfront_client, dry_run=dry_run)
    return PublishResult(skipped=False, plan=plan, invalidation_id=invalidation_id)


def publish_commands(region: str) -> List[str]:
    """Render the publish step as CodeBuild shell commands.

    The commands run inside the staged output directory. The sync and the
    invalidation are guarded so an empty directory leaves the bucket as is.
    """
    bucket_var = PUBLISH_ENVIRONMENT[OutputKey.BUCKET_NAME]
    distribution_var = PUBLISH_ENVIRONMENT[OutputKey.DISTRIBUTION_ID]
    paths = " ".join(f'"{p}"' for p in INVALIDATION_PATHS)
    return [
        "ls -al",
        f"export AWS_REGION={region}",
        (
            'if [ -z "$(ls -A .)" ]; then '
            'echo "No build output to publish; skipping sync and invalidation"; '
            "else "
            f'echo "Syncing to bucket: ${bucket_var}" && '
            f"aws s3 sync . s3://${bucket_var} --region $AWS_REGION --delete --exact-timestamps && "
            f"aws cloudfront create-invalidation --distribution-id ${distribution_var} "
            f"--paths {paths} --region $AWS_REGION; "
            "fi"
        ),
    ]
