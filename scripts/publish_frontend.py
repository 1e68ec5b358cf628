"""Publish a locally built frontend to the deployed bucket.

This script does what the pipeline's build and publish steps do, for operators
who need to push a build by hand:
1. Stage the first recognized build output directory
2. Resolve the bucket name and distribution id from the stack outputs
3. Mirror the staged files into the bucket (uploads and deletions)
4. Invalidate every CloudFront path

It defaults to dry-run mode and requires an explicit --apply flag to change
the bucket.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List

# Add src and the repository root to path for config access
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT))

from frontend_site.config import load_config
from frontend_site.outputs import DeployedOutputs, fetch_stack_outputs
from frontend_site.publish import publish_build_output
from frontend_site.staging import BuildOutputNotFound, stage_build_output
from deployer_guard import require_deploy_allowed_or_exit
from scripts.s3_adapter import S3Adapter


def main(argv: List[str] | None = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Publish a built frontend to S3 and invalidate CloudFront")
    parser.add_argument(
        "--environment",
        default=os.getenv("ENVIRONMENT", "prod"),
        help="Target environment (default: prod)"
    )
    parser.add_argument(
        "--workdir",
        type=Path,
        default=Path("."),
        help="Frontend checkout containing the build output (default: .)"
    )
    parser.add_argument(
        "--stack-name",
        default=None,
        help="Infrastructure stack to read outputs from (default: from config)"
    )
    parser.add_argument("--bucket", default=None, help="Bucket name, skipping the stack output lookup")
    parser.add_argument("--distribution-id", default=None, help="Distribution id, skipping the stack output lookup")
    parser.add_argument(
        "--require-output",
        action="store_true",
        help="Fail when no build output directory is found (default: skip publishing)"
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Actually sync and invalidate (default: dry-run)"
    )

    args = parser.parse_args(argv)

    config = load_config(args.environment)
    logging.basicConfig(level=config.logging.level, format="%(levelname)s %(name)s: %(message)s")

    dry_run = not args.apply
    if args.apply:
        require_deploy_allowed_or_exit("Publishing replaces the bucket contents. Confirm by setting DEPLOY_CONFIRM")

    try:
        staging = stage_build_output(
            args.workdir,
            config.build.output_candidates,
            config.build.output_directory,
            require_output=args.require_output or config.build.require_output,
        )
        if not staging.found:
            print("⚠️  No build output found; nothing published")
            return
        print(f"📦 Staged {len(staging.files)} files from {staging.source}")

        if args.bucket and args.distribution_id:
            outputs = DeployedOutputs(bucket_name=args.bucket, distribution_id=args.distribution_id)
        else:
            outputs = fetch_stack_outputs(args.stack_name or config.stacks.infrastructure, config.aws.region)
        print(f"🎯 Bucket: {outputs.bucket_name}, distribution: {outputs.distribution_id}")
        print(f"🔒 Mode: {'APPLY' if not dry_run else 'DRY-RUN'}")

        result = publish_build_output(staging, outputs, S3Adapter(config.aws.region), dry_run=dry_run)

        plan = result.plan
        print(f"  ➤ {len(plan.uploads)} to upload, {len(plan.deletes)} to delete, {len(plan.unchanged)} unchanged")
        if dry_run:
            print("\n💡 Use --apply flag to publish")
        else:
            print(f"\n🎉 Published; invalidation {result.invalidation_id}")

    except BuildOutputNotFound as e:
        print(f"❌ {e}")
        sys.exit(1)
    except Exception as e:
        print(f"❌ Publish failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
