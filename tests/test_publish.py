import hashlib
from pathlib import Path

import pytest

from frontend_site.outputs import DeployedOutputs
from frontend_site.publish import (
    apply_sync,
    invalidate_all,
    plan_sync,
    publish_build_output,
    publish_commands,
)
from frontend_site.staging import list_files, stage_build_output

CANDIDATES = [".next/out", "out", "dist"]
OUTPUTS = DeployedOutputs(bucket_name="frontend-bucket", distribution_id="E2EXAMPLE")


def _etag(content: bytes) -> str:
    return f'"{hashlib.md5(content).hexdigest()}"'


class InMemoryBucket:
    """Stand-in for S3Adapter backed by a dict of key -> bytes."""

    def __init__(self, objects=None):
        self.objects = dict(objects or {})
        self.uploaded = []
        self.delete_failures = []

    def list_objects(self, bucket):
        return {key: _etag(body) for key, body in self.objects.items()}

    def upload_file(self, file_path, bucket, key, extra_args=None):
        self.objects[key] = Path(file_path).read_bytes()
        self.uploaded.append((key, extra_args))

    def delete_objects(self, bucket, keys):
        for key in keys:
            self.objects.pop(key, None)
        return list(self.delete_failures)


class RecordingCloudFront:
    def __init__(self):
        self.calls = []

    def create_invalidation(self, **kwargs):
        self.calls.append(kwargs)
        return {"Invalidation": {"Id": "I2J3EXAMPLE"}}


def _write(root: Path, rel: str, content: bytes) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


def test_plan_sync_uploads_deletes_and_skips_unchanged(tmp_path):
    _write(tmp_path, "index.html", b"new index")
    _write(tmp_path, "app.js", b"same")
    _write(tmp_path, "assets/logo.svg", b"<svg/>")

    remote = {
        "index.html": _etag(b"old index"),
        "app.js": _etag(b"same"),
        "stale.js": _etag(b"gone"),
    }

    plan = plan_sync(tmp_path, remote)

    assert sorted(key for _, key in plan.uploads) == ["assets/logo.svg", "index.html"]
    assert plan.unchanged == ["app.js"]
    assert plan.deletes == ["stale.js"]
    assert not plan.is_empty


def test_plan_sync_reuploads_multipart_objects(tmp_path):
    _write(tmp_path, "big.bin", b"payload")
    plan = plan_sync(tmp_path, {"big.bin": '"d41d8cd98f00b204e9800998ecf8427e-3"'})
    assert [key for _, key in plan.uploads] == ["big.bin"]


def test_plan_sync_identical_is_empty(tmp_path):
    _write(tmp_path, "index.html", b"same")
    plan = plan_sync(tmp_path, {"index.html": _etag(b"same")})
    assert plan.is_empty


def test_publish_mirrors_out_directory_exactly(tmp_path):
    """Bucket content after publish equals the file set of the build's out/ directory."""
    _write(tmp_path, "out/index.html", b"<html>v2</html>")
    _write(tmp_path, "out/about/index.html", b"about")
    _write(tmp_path, "out/_next/static/chunk.js", b"chunk")

    bucket = InMemoryBucket({
        "index.html": b"<html>v1</html>",
        "old/page.html": b"removed in v2",
        "_next/static/chunk.js": b"chunk",
    })
    cloudfront = RecordingCloudFront()

    staging = stage_build_output(tmp_path, CANDIDATES)
    result = publish_build_output(staging, OUTPUTS, bucket, cloudfront_client=cloudfront, dry_run=False)

    expected = list_files(tmp_path / "out")
    assert sorted(bucket.objects) == expected
    for key in expected:
        assert bucket.objects[key] == (tmp_path / "out" / key).read_bytes()

    assert not result.skipped
    assert result.plan.deletes == ["old/page.html"]
    assert result.plan.unchanged == ["_next/static/chunk.js"]
    assert result.invalidation_id == "I2J3EXAMPLE"
    assert cloudfront.calls[0]["DistributionId"] == "E2EXAMPLE"
    assert cloudfront.calls[0]["InvalidationBatch"]["Paths"] == {"Quantity": 1, "Items": ["/*"]}


def test_publish_without_build_output_leaves_bucket_unchanged(tmp_path):
    _write(tmp_path, "package.json", b"{}")
    original = {"index.html": b"live", "app.js": b"live js"}
    bucket = InMemoryBucket(original)
    cloudfront = RecordingCloudFront()

    staging = stage_build_output(tmp_path, CANDIDATES)
    result = publish_build_output(staging, OUTPUTS, bucket, cloudfront_client=cloudfront, dry_run=False)

    assert result.skipped
    assert result.plan is None
    assert bucket.objects == original
    assert bucket.uploaded == []
    assert cloudfront.calls == []


def test_dry_run_does_not_touch_bucket(tmp_path, capsys):
    _write(tmp_path, "dist/index.html", b"new")
    bucket = InMemoryBucket({"stale.html": b"old"})
    cloudfront = RecordingCloudFront()

    staging = stage_build_output(tmp_path, CANDIDATES)
    result = publish_build_output(staging, OUTPUTS, bucket, cloudfront_client=cloudfront, dry_run=True)

    assert bucket.objects == {"stale.html": b"old"}
    assert cloudfront.calls == []
    assert result.invalidation_id is None
    out = capsys.readouterr().out
    assert "DRY RUN: upload" in out
    assert "DRY RUN: delete s3://frontend-bucket/stale.html" in out
    assert "DRY RUN: invalidate /*" in out


def test_uploads_carry_content_type(tmp_path):
    _write(tmp_path, "index.html", b"<html/>")
    _write(tmp_path, "LICENSE", b"text")
    bucket = InMemoryBucket()

    apply_sync(plan_sync(tmp_path, {}), bucket, "frontend-bucket", dry_run=False)

    extras = dict(bucket.uploaded)
    assert extras["index.html"] == {"ContentType": "text/html"}
    assert extras["LICENSE"] is None


def test_failed_deletes_raise(tmp_path):
    bucket = InMemoryBucket({"stale.js": b"x"})
    bucket.delete_failures = ["stale.js"]

    with pytest.raises(RuntimeError, match="Failed to delete 1 objects"):
        apply_sync(plan_sync(tmp_path, bucket.list_objects("b")), bucket, "frontend-bucket", dry_run=False)


def test_invalidate_all_dry_run_returns_none():
    cloudfront = RecordingCloudFront()
    assert invalidate_all("E2EXAMPLE", client=cloudfront, dry_run=True) is None
    assert cloudfront.calls == []


def test_publish_commands_guard_empty_output():
    commands = publish_commands("us-east-2")

    assert "export AWS_REGION=us-east-2" in commands
    guarded = commands[-1]
    assert guarded.startswith('if [ -z "$(ls -A .)" ]; then')
    assert "aws s3 sync . s3://$FRONTEND_BUCKET_NAME --region $AWS_REGION --delete --exact-timestamps" in guarded
    assert 'create-invalidation --distribution-id $CLOUDFRONT_DISTRIBUTION_ID --paths "/*"' in guarded
    # The sync only runs in the else branch
    assert guarded.index("skipping") < guarded.index("aws s3 sync")
    assert guarded.endswith("fi")


def test_files_left_from_previous_staging_are_not_published(tmp_path):
    _write(tmp_path, "build-output/stale-from-last-build.js", b"old")
    _write(tmp_path, "out/index.html", b"<html/>")
    bucket = InMemoryBucket({"stale-from-last-build.js": b"old"})

    staging = stage_build_output(tmp_path, CANDIDATES)
    result = publish_build_output(staging, OUTPUTS, bucket, cloudfront_client=RecordingCloudFront(), dry_run=False)

    assert sorted(bucket.objects) == ["index.html"]
    assert result.plan.deletes == ["stale-from-last-build.js"]
