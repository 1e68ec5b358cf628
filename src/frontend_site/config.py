"""Configuration management for the frontend deployment.

This module provides a centralized configuration loader that:
1. Reads the YAML file for the requested environment
2. Applies environment variable overrides
3. Returns an immutable, validated configuration object

The loaded ``Config`` is passed explicitly into the CDK stacks and scripts;
nothing reads it as module-level state.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent.parent / "config"
DEFAULT_ENVIRONMENT = "prod"


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class AWSConfig(_FrozenModel):
    """Target account and regions."""
    account_id: str
    region: str = "us-east-2"
    certificate_region: str = "us-east-1"


class DomainConfig(_FrozenModel):
    """Custom domain, hosted zone and TLS certificate."""
    domain_name: str
    hosted_zone_id: str
    certificate_arn: str

    @property
    def certificate_region(self) -> str:
        # arn:aws:acm:<region>:<account>:certificate/<id>
        parts = self.certificate_arn.split(":")
        return parts[3] if len(parts) > 3 else ""


class SourceRepository(_FrozenModel):
    """A GitHub repository and the branch the pipeline tracks."""
    repo: str
    branch: str = "main"


class GitHubConfig(_FrozenModel):
    """GitHub sources reached through a CodeStar connection."""
    owner: str
    connection_arn: str
    cdk: SourceRepository
    frontend: SourceRepository

    @property
    def cdk_repo_string(self) -> str:
        return f"{self.owner}/{self.cdk.repo}"

    @property
    def frontend_repo_string(self) -> str:
        return f"{self.owner}/{self.frontend.repo}"


class StackNames(_FrozenModel):
    pipeline: str
    infrastructure: str


class ResourceNames(_FrozenModel):
    pipeline_name: str
    bucket_name_prefix: str
    waf_name: str


class BuildConfig(_FrozenModel):
    """Frontend build output handling."""
    output_candidates: List[str] = [".next/out", "out", "dist"]
    output_directory: str = "build-output"
    # When true, a build without any recognized output directory fails the
    # pipeline instead of silently skipping the publish.
    require_output: bool = False

    @field_validator("output_candidates")
    @classmethod
    def _candidates_present_and_unique(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("output_candidates must list at least one directory")
        if len(set(value)) != len(value):
            raise ValueError(f"output_candidates contains duplicates: {value}")
        return value


class LoggingConfig(_FrozenModel):
    """Logging configuration."""
    level: str = "INFO"


class Config(_FrozenModel):
    """Main configuration object."""
    environment: str = DEFAULT_ENVIRONMENT
    app_name: str = "baps-ai-frontend"
    aws: AWSConfig
    domain: DomainConfig
    github: GitHubConfig
    stacks: StackNames
    resources: ResourceNames
    build: BuildConfig = BuildConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def _certificate_in_cloudfront_region(self) -> "Config":
        if self.domain.certificate_region != self.aws.certificate_region:
            raise ValueError(
                f"Certificate {self.domain.certificate_arn} must be issued in "
                f"{self.aws.certificate_region} to be used by CloudFront"
            )
        return self

    @property
    def bucket_name(self) -> str:
        return f"{self.resources.bucket_name_prefix}-{self.aws.account_id}-{self.aws.region}"

    @property
    def frontend_url(self) -> str:
        return f"https://{self.domain.domain_name}"


def load_config(environment: Optional[str] = None, config_dir: Optional[Path] = None) -> Config:
    """Load configuration from YAML files and environment variables.

    Args:
        environment: Environment name. If None, uses the ENVIRONMENT env var.
        config_dir: Directory holding ``<environment>.yml`` files.

    Returns:
        Loaded configuration object.

    Raises:
        FileNotFoundError: If configuration file doesn't exist.
        pydantic.ValidationError: If configuration is invalid.
    """
    env = environment or os.getenv("ENVIRONMENT", DEFAULT_ENVIRONMENT)

    config_file = Path(config_dir or DEFAULT_CONFIG_DIR) / f"{env}.yml"
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    with open(config_file, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    config_data = _apply_env_overrides(config_data)

    return Config(**config_data)


def _apply_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration data."""
    # AWS overrides
    if os.getenv("AWS_ACCOUNT_ID"):
        config_data.setdefault("aws", {})["account_id"] = os.getenv("AWS_ACCOUNT_ID")
    if os.getenv("AWS_REGION"):
        config_data.setdefault("aws", {})["region"] = os.getenv("AWS_REGION")

    # Domain overrides
    if os.getenv("DOMAIN_NAME"):
        config_data.setdefault("domain", {})["domain_name"] = os.getenv("DOMAIN_NAME")
    if os.getenv("HOSTED_ZONE_ID"):
        config_data.setdefault("domain", {})["hosted_zone_id"] = os.getenv("HOSTED_ZONE_ID")
    if os.getenv("CERTIFICATE_ARN"):
        config_data.setdefault("domain", {})["certificate_arn"] = os.getenv("CERTIFICATE_ARN")

    # Source overrides
    if os.getenv("CODESTAR_CONNECTION_ARN"):
        config_data.setdefault("github", {})["connection_arn"] = os.getenv("CODESTAR_CONNECTION_ARN")
    if os.getenv("CDK_GITHUB_BRANCH"):
        config_data.setdefault("github", {}).setdefault("cdk", {})["branch"] = os.getenv("CDK_GITHUB_BRANCH")
    if os.getenv("FRONTEND_GITHUB_BRANCH"):
        config_data.setdefault("github", {}).setdefault("frontend", {})["branch"] = os.getenv(
            "FRONTEND_GITHUB_BRANCH"
        )

    # Build overrides
    require_output = os.getenv("REQUIRE_BUILD_OUTPUT")
    if require_output:
        config_data.setdefault("build", {})["require_output"] = require_output.lower() in ("1", "true", "yes")

    if os.getenv("LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = os.getenv("LOG_LEVEL")

    return config_data


def is_aws_deploy_allowed() -> bool:
    """Check if AWS deployments are allowed (safety flag)."""
    return os.getenv("ALLOW_AWS_DEPLOY", "").lower() in ("1", "true", "yes")
