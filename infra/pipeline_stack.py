"""Frontend Pipeline CDK Stack.

This stack creates the CDK pipeline that deploys the frontend:
- Two GitHub sources (this repository and the frontend application)
- Synth step building the CDK app from this repository
- Deploy stage provisioning the infrastructure stack
- Frontend build as the stage's pre step
- Bucket sync and CloudFront invalidation as the stage's post step

The publish step reads the bucket name and distribution id from the deploy
stage's outputs, so it can only run after the infrastructure exists.
"""

from typing import Optional

from aws_cdk import (
    CfnOutput,
    Environment,
    Stack,
    Stage,
    pipelines,
)
from aws_cdk import (
    aws_codebuild as codebuild,
)
from aws_cdk import (
    aws_codepipeline as codepipeline,
)
from aws_cdk import (
    aws_iam as iam,
)
from aws_cdk import (
    aws_logs as logs,
)
from constructs import Construct

from frontend_site.config import Config
from frontend_site.publish import publish_commands
from frontend_site.staging import staging_commands

from infra.infrastructure_stack import InfrastructureStack

BUILD_IMAGE = codebuild.LinuxArmBuildImage.AMAZON_LINUX_2023_STANDARD_3_0


class DeployStage(Stage):
    """Deployable unit wrapping the infrastructure stack."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: Config,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.infrastructure_stack = InfrastructureStack(
            self, "Infrastructure",
            config=config,
            stack_name=config.stacks.infrastructure,
        )


class PipelineStack(Stack):
    """CDK Stack for the frontend build and deploy pipeline."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: Config,
        **kwargs
    ) -> None:
        """Initialize the Pipeline Stack.

        Args:
            scope: CDK scope
            construct_id: Stack identifier
            config: Loaded deployment configuration
            **kwargs: Additional stack arguments
        """
        super().__init__(scope, construct_id, **kwargs)

        self.config = config

        # Sources: both repositories go through the same CodeStar connection
        self.cdk_source = self._create_source(config.github.cdk_repo_string, config.github.cdk.branch)
        self.frontend_source = self._create_source(
            config.github.frontend_repo_string, config.github.frontend.branch
        )

        self.log_group = self._create_log_group()
        self.pipeline = self._create_pipeline()
        self.build_step = self._create_build_step()

        # Infrastructure is provisioned before anything is published
        self.deploy_stage = DeployStage(
            self, "Deploy",
            config=config,
            env=Environment(account=config.aws.account_id, region=config.aws.region),
        )
        stage_deployment = self.pipeline.add_stage(self.deploy_stage)

        self.publish_step: Optional[pipelines.CodeBuildStep] = None
        if self.build_step.primary_output:
            self.publish_step = self._create_publish_step(self.build_step.primary_output)
            stage_deployment.add_post(self.publish_step)

        stage_deployment.add_pre(self.build_step)

        # Build the pipeline to access underlying resources
        self.pipeline.build_pipeline()

        CfnOutput(
            self, "PipelineUrl",
            value=(
                f"https://{config.aws.region}.console.aws.amazon.com/codesuite/codepipeline/pipelines/"
                f"{self.pipeline.pipeline.pipeline_name}/view"
            ),
            description="CodePipeline Console URL",
        )

    def _create_source(self, repo_string: str, branch: str) -> pipelines.CodePipelineSource:
        return pipelines.CodePipelineSource.connection(
            repo_string,
            branch,
            connection_arn=self.config.github.connection_arn,
        )

    def _create_log_group(self) -> logs.LogGroup:
        """Create CloudWatch log group for CodeBuild logs."""
        return logs.LogGroup(
            self, "CodeBuildLogs",
            log_group_name=f"/aws/codebuild/{self.config.resources.pipeline_name}",
            retention=logs.RetentionDays.ONE_MONTH,
        )

    def _create_pipeline(self) -> pipelines.CodePipeline:
        """Create the pipeline with its self-synth step and CodeBuild defaults."""
        return pipelines.CodePipeline(
            self, "BAPSAI-Frontend-Pipeline",
            pipeline_name=self.config.resources.pipeline_name,
            pipeline_type=codepipeline.PipelineType.V2,
            synth=pipelines.ShellStep(
                "Synth",
                input=self.cdk_source,
                install_commands=[
                    "npm install -g aws-cdk",
                    "pip install -e .",
                ],
                commands=[
                    "cdk synth",
                ],
                primary_output_directory="cdk.out",
            ),
            code_build_defaults=pipelines.CodeBuildOptions(
                build_environment=codebuild.BuildEnvironment(build_image=BUILD_IMAGE),
                logging=codebuild.LoggingOptions(
                    cloud_watch=codebuild.CloudWatchLoggingOptions(log_group=self.log_group)
                ),
                role_policy=[
                    iam.PolicyStatement(
                        actions=[
                            "secretsmanager:GetSecretValue",
                            "secretsmanager:DescribeSecret",
                        ],
                        resources=["*"],
                    )
                ],
            ),
            cross_account_keys=False,
        )

    def _create_build_step(self) -> pipelines.CodeBuildStep:
        """Create the frontend build step producing the normalized output directory."""
        build = self.config.build
        return pipelines.CodeBuildStep(
            "BuildFrontendArtifacts",
            input=self.frontend_source,
            build_environment=codebuild.BuildEnvironment(build_image=BUILD_IMAGE),
            install_commands=[
                "npm ci",
            ],
            commands=[
                'echo "Building frontend app..."',
                "npm run build",
                *staging_commands(build.output_candidates, build.output_directory, build.require_output),
            ],
            primary_output_directory=build.output_directory,
            role_policy_statements=[
                iam.PolicyStatement(
                    actions=["ssm:GetParameter", "ssm:GetParameters"],
                    resources=["*"],
                )
            ],
        )

    def _create_publish_step(self, build_output: pipelines.FileSet) -> pipelines.CodeBuildStep:
        """Create the step syncing build output to the bucket and invalidating CloudFront."""
        outputs = self.deploy_stage.infrastructure_stack.stack_outputs
        bucket_arn = f"arn:aws:s3:::{self.config.bucket_name}"
        return pipelines.CodeBuildStep(
            "PublishFrontendArtifacts",
            input=build_output,
            env_from_cfn_outputs=outputs.as_environment(),
            commands=publish_commands(self.config.aws.region),
            role_policy_statements=[
                iam.PolicyStatement(
                    actions=["s3:PutObject", "s3:DeleteObject", "s3:ListBucket", "s3:GetObject"],
                    resources=[bucket_arn, f"{bucket_arn}/*"],
                ),
                iam.PolicyStatement(
                    actions=["cloudfront:CreateInvalidation"],
                    resources=["*"],
                ),
            ],
            build_environment=codebuild.BuildEnvironment(build_image=BUILD_IMAGE),
        )
