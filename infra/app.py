"""CDK App entry point for the frontend pipeline."""

import logging
import os
import sys
from pathlib import Path

# Make the repository root and src/ importable when run by the CDK CLI
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT))

from aws_cdk import App, Environment
from frontend_site.config import is_aws_deploy_allowed, load_config

from infra.pipeline_stack import PipelineStack

logger = logging.getLogger(__name__)


def main():
    """Main CDK app entry point."""
    app = App()

    # Load configuration
    env_name = os.getenv("ENVIRONMENT", "prod")
    config = load_config(env_name)

    logging.basicConfig(level=config.logging.level, format="%(levelname)s %(name)s: %(message)s")

    # Synthesis never deploys; this only reminds operators running it locally
    if not is_aws_deploy_allowed():
        logger.info("ALLOW_AWS_DEPLOY not set. Synthesizing templates only.")

    PipelineStack(
        app,
        config.stacks.pipeline,
        config=config,
        env=Environment(
            account=config.aws.account_id,
            region=config.aws.region
        ),
        description="Pipeline for BAPS AI Frontend"
    )

    app.synth()


if __name__ == "__main__":
    main()
