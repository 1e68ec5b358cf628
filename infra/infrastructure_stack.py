"""Frontend Infrastructure CDK Stack.

This stack creates the resources that serve the static frontend:
- Private, versioned S3 bucket holding the built site
- CloudFront distribution reading the bucket through origin access control
- CLOUDFRONT-scope WAF web ACL associated with the distribution
- Route 53 alias record for the custom domain

The distribution is created disabled. Traffic is only served once it is
switched on explicitly after the first publish.
"""

from typing import Dict

from aws_cdk import (
    CfnOutput,
    Duration,
    RemovalPolicy,
    Stack,
    Tags,
)
from aws_cdk import (
    aws_certificatemanager as acm,
)
from aws_cdk import (
    aws_cloudfront as cloudfront,
)
from aws_cdk import (
    aws_cloudfront_origins as origins,
)
from aws_cdk import (
    aws_route53 as route53,
)
from aws_cdk import (
    aws_route53_targets as route53_targets,
)
from aws_cdk import (
    aws_s3 as s3,
)
from aws_cdk import (
    aws_wafv2 as wafv2,
)
from constructs import Construct

from frontend_site.config import Config
from frontend_site.outputs import PUBLISH_ENVIRONMENT, OutputKey, export_name

from infra.firewall import CLOUDFRONT_SCOPE, build_rules, visibility

SPA_FALLBACK_PAGE = "/index.html"
SPA_FALLBACK_TTL = Duration.minutes(5)
NONCURRENT_VERSION_EXPIRATION = Duration.days(30)


class InfrastructureOutputs:
    """Outputs the pipeline hands to the publish step."""

    def __init__(self, bucket_name: CfnOutput, distribution_id: CfnOutput) -> None:
        self.bucket_name = bucket_name
        self.distribution_id = distribution_id

    def as_environment(self) -> Dict[str, CfnOutput]:
        """Map environment variable names to outputs, for ``env_from_cfn_outputs``."""
        return {
            PUBLISH_ENVIRONMENT[OutputKey.BUCKET_NAME]: self.bucket_name,
            PUBLISH_ENVIRONMENT[OutputKey.DISTRIBUTION_ID]: self.distribution_id,
        }


class InfrastructureStack(Stack):
    """CDK Stack for the static frontend hosting infrastructure."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: Config,
        **kwargs
    ) -> None:
        """Initialize the Infrastructure Stack.

        Args:
            scope: CDK scope
            construct_id: Stack identifier
            config: Loaded deployment configuration
            **kwargs: Additional stack arguments
        """
        super().__init__(scope, construct_id, **kwargs)

        self.config = config

        # Storage
        self.bucket = self._create_bucket()

        # Edge protection and delivery
        self.web_acl = self._create_web_acl()
        self.distribution = self._create_distribution()
        self.web_acl_association = self._associate_web_acl()

        # DNS
        self.alias_record = self._create_alias_record()

        self.stack_outputs = self._create_outputs()

        self._apply_tags()

    def _create_bucket(self) -> s3.Bucket:
        """Create the private bucket holding the built frontend."""
        return s3.Bucket(
            self, "FrontendBucket",
            bucket_name=self.config.bucket_name,
            versioned=True,
            removal_policy=RemovalPolicy.RETAIN,
            auto_delete_objects=False,
            encryption=s3.BucketEncryption.S3_MANAGED,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            lifecycle_rules=[
                s3.LifecycleRule(
                    id="DeleteOldVersions",
                    enabled=True,
                    noncurrent_version_expiration=NONCURRENT_VERSION_EXPIRATION,
                )
            ],
        )

    def _create_web_acl(self) -> wafv2.CfnWebACL:
        """Create the web ACL. CloudFront web ACLs are global (CLOUDFRONT scope)."""
        return wafv2.CfnWebACL(
            self, "WebACL",
            name=self.config.resources.waf_name,
            scope=CLOUDFRONT_SCOPE,
            default_action=wafv2.CfnWebACL.DefaultActionProperty(allow={}),
            visibility_config=visibility("BAPSAI-CloudFront-WebACL-Metrics"),
            rules=build_rules(),
        )

    def _create_distribution(self) -> cloudfront.Distribution:
        """Create the distribution fronting the bucket on the custom domain."""
        # Imported by ARN; the certificate lives in us-east-1 regardless of the stack region
        certificate = acm.Certificate.from_certificate_arn(
            self, "Certificate", self.config.domain.certificate_arn
        )

        # Client-side routes resolve to index.html instead of surfacing S3 errors
        error_responses = [
            cloudfront.ErrorResponse(
                http_status=status,
                response_http_status=200,
                response_page_path=SPA_FALLBACK_PAGE,
                ttl=SPA_FALLBACK_TTL,
            )
            for status in (403, 404)
        ]

        return cloudfront.Distribution(
            self, "Distribution",
            default_behavior=cloudfront.BehaviorOptions(
                origin=origins.S3BucketOrigin.with_origin_access_control(self.bucket),
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                allowed_methods=cloudfront.AllowedMethods.ALLOW_GET_HEAD_OPTIONS,
                cached_methods=cloudfront.CachedMethods.CACHE_GET_HEAD_OPTIONS,
                compress=True,
                cache_policy=cloudfront.CachePolicy.CACHING_OPTIMIZED,
                response_headers_policy=cloudfront.ResponseHeadersPolicy.SECURITY_HEADERS,
            ),
            default_root_object="index.html",
            domain_names=[self.config.domain.domain_name],
            certificate=certificate,
            error_responses=error_responses,
            price_class=cloudfront.PriceClass.PRICE_CLASS_ALL,
            enabled=False,
            comment="BAPS AI Frontend Distribution",
        )

    def _associate_web_acl(self) -> wafv2.CfnWebACLAssociation:
        return wafv2.CfnWebACLAssociation(
            self, "WebACLAssociation",
            resource_arn=self.distribution.distribution_arn,
            web_acl_arn=self.web_acl.attr_arn,
        )

    def _create_alias_record(self) -> route53.ARecord:
        """Point the custom domain at the distribution."""
        hosted_zone = route53.HostedZone.from_hosted_zone_attributes(
            self, "HostedZone",
            zone_name=self.config.domain.domain_name,
            hosted_zone_id=self.config.domain.hosted_zone_id,
        )

        return route53.ARecord(
            self, "AliasRecord",
            zone=hosted_zone,
            record_name=self.config.domain.domain_name,
            target=route53.RecordTarget.from_alias(
                route53_targets.CloudFrontTarget(self.distribution)
            ),
        )

    def _create_outputs(self) -> InfrastructureOutputs:
        """Create stack outputs; bucket name and distribution id are exported for the pipeline."""
        bucket_name = CfnOutput(
            self, OutputKey.BUCKET_NAME,
            value=self.bucket.bucket_name,
            export_name=export_name(self.stack_name, OutputKey.BUCKET_NAME),
        )

        distribution_id = CfnOutput(
            self, OutputKey.DISTRIBUTION_ID,
            value=self.distribution.distribution_id,
            export_name=export_name(self.stack_name, OutputKey.DISTRIBUTION_ID),
        )

        CfnOutput(
            self, OutputKey.DISTRIBUTION_DOMAIN_NAME,
            value=self.distribution.distribution_domain_name,
            description="CloudFront Distribution Domain Name",
        )

        CfnOutput(
            self, OutputKey.WEB_ACL_ARN,
            value=self.web_acl.attr_arn,
            description="WAF Web ACL ARN",
        )

        CfnOutput(
            self, OutputKey.FRONTEND_URL,
            value=self.config.frontend_url,
            description="Frontend URL",
        )

        CfnOutput(
            self, OutputKey.CLOUDFRONT_URL,
            value=f"https://{self.distribution.distribution_domain_name}",
            description="CloudFront Distribution URL",
        )

        return InfrastructureOutputs(bucket_name=bucket_name, distribution_id=distribution_id)

    def _apply_tags(self) -> None:
        """Apply consistent tags to all resources."""
        tags = {
            "Application": self.config.app_name,
            "Environment": self.config.environment,
            "ManagedBy": "CDK"
        }

        for key, value in tags.items():
            Tags.of(self).add(key, value)
