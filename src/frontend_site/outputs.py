"""Typed access to the infrastructure stack outputs.

The infrastructure stack exports its values as CloudFormation outputs. Inside
the pipeline they reach the publish step as environment variables (see
``PUBLISH_ENVIRONMENT``); outside the pipeline ``fetch_stack_outputs`` reads
them back from CloudFormation.
"""

import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class OutputKey:
    """CloudFormation output keys declared by the infrastructure stack."""
    BUCKET_NAME = "BucketName"
    DISTRIBUTION_ID = "DistributionId"
    DISTRIBUTION_DOMAIN_NAME = "DistributionDomainName"
    WEB_ACL_ARN = "WebACLArn"
    FRONTEND_URL = "FrontendUrl"
    CLOUDFRONT_URL = "CloudFrontUrl"


# Environment variable names the publish step reads, keyed by output.
PUBLISH_ENVIRONMENT = {
    OutputKey.BUCKET_NAME: "FRONTEND_BUCKET_NAME",
    OutputKey.DISTRIBUTION_ID: "CLOUDFRONT_DISTRIBUTION_ID",
}


def export_name(stack_name: str, output_key: str) -> str:
    return f"{stack_name}:{output_key}"


class MissingStackOutput(LookupError):
    """Raised when a required output is absent from a deployed stack."""


class DeployedOutputs(BaseModel):
    """Outputs of a deployed infrastructure stack."""
    model_config = ConfigDict(frozen=True)

    bucket_name: str
    distribution_id: str
    distribution_domain_name: Optional[str] = None
    web_acl_arn: Optional[str] = None
    frontend_url: Optional[str] = None
    cloudfront_url: Optional[str] = None

    def as_environment(self) -> Dict[str, str]:
        """Environment variables matching what the pipeline publish step receives."""
        return {
            PUBLISH_ENVIRONMENT[OutputKey.BUCKET_NAME]: self.bucket_name,
            PUBLISH_ENVIRONMENT[OutputKey.DISTRIBUTION_ID]: self.distribution_id,
        }


_FIELDS = {
    OutputKey.BUCKET_NAME: "bucket_name",
    OutputKey.DISTRIBUTION_ID: "distribution_id",
    OutputKey.DISTRIBUTION_DOMAIN_NAME: "distribution_domain_name",
    OutputKey.WEB_ACL_ARN: "web_acl_arn",
    OutputKey.FRONTEND_URL: "frontend_url",
    OutputKey.CLOUDFRONT_URL: "cloudfront_url",
}

_REQUIRED = (OutputKey.BUCKET_NAME, OutputKey.DISTRIBUTION_ID)


def parse_stack_outputs(outputs: Iterable[Mapping[str, Any]]) -> DeployedOutputs:
    """Build ``DeployedOutputs`` from the ``Outputs`` list of ``describe_stacks``.

    Unknown output keys are ignored.

    Raises:
        MissingStackOutput: If the bucket name or distribution id is missing.
    """
    by_key = {o["OutputKey"]: o["OutputValue"] for o in outputs}

    missing = [key for key in _REQUIRED if key not in by_key]
    if missing:
        raise MissingStackOutput(f"Stack outputs missing: {', '.join(missing)}")

    values = {field: by_key[key] for key, field in _FIELDS.items() if key in by_key}
    return DeployedOutputs(**values)


def fetch_stack_outputs(stack_name: str, region: Optional[str] = None, client=None) -> DeployedOutputs:
    """Read the outputs of a deployed stack from CloudFormation.

    Args:
        stack_name: CloudFormation stack name.
        region: AWS region for the client (ignored when ``client`` is given).
        client: Optional pre-built CloudFormation client (used by tests).
    """
    if client is None:
        import boto3

        client = boto3.client("cloudformation", region_name=region) if region else boto3.client("cloudformation")

    response = client.describe_stacks(StackName=stack_name)
    stacks = response.get("Stacks", [])
    if not stacks:
        raise MissingStackOutput(f"Stack not found: {stack_name}")

    logger.info(f"Read {len(stacks[0].get('Outputs', []))} outputs from stack {stack_name}")
    return parse_stack_outputs(stacks[0].get("Outputs", []))
