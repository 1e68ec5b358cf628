"""Policy checks over a synthesized CloudFormation template.

Each check takes the template as a plain dict (``Template.to_json()`` or the
JSON file in ``cdk.out``) and returns a list of findings; an empty list means
the template passes. ``scripts/deploy_frontend.py`` runs these before a
deployment.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Tuple

logger = logging.getLogger(__name__)

REQUIRED_MANAGED_RULES = ("AWSManagedRulesCommonRuleSet", "AWSManagedRulesKnownBadInputsRuleSet")

_PUBLIC_ACCESS_FLAGS = ("BlockPublicAcls", "BlockPublicPolicy", "IgnorePublicAcls", "RestrictPublicBuckets")


@dataclass(frozen=True)
class Finding:
    check: str
    resource: str
    message: str

    def __str__(self) -> str:
        return f"[{self.check}] {self.resource}: {self.message}"


def _resources(template: Dict[str, Any], resource_type: str) -> Iterable[Tuple[str, Dict[str, Any]]]:
    for logical_id, resource in template.get("Resources", {}).items():
        if resource.get("Type") == resource_type:
            yield logical_id, resource.get("Properties", {})


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else [value]


def _is_public_principal(principal: Any) -> bool:
    if principal == "*":
        return True
    if isinstance(principal, dict):
        return any("*" in _as_list(v) for v in principal.values())
    return False


def check_bucket_private(template: Dict[str, Any]) -> List[Finding]:
    """Every bucket blocks public access and no bucket policy allows anonymous access."""
    findings = []
    for logical_id, props in _resources(template, "AWS::S3::Bucket"):
        block = props.get("PublicAccessBlockConfiguration", {})
        open_flags = [flag for flag in _PUBLIC_ACCESS_FLAGS if block.get(flag) is not True]
        if open_flags:
            findings.append(Finding("bucket-private", logical_id, f"public access not blocked: {', '.join(open_flags)}"))

    for logical_id, props in _resources(template, "AWS::S3::BucketPolicy"):
        for statement in props.get("PolicyDocument", {}).get("Statement", []):
            if statement.get("Effect") == "Allow" and _is_public_principal(statement.get("Principal")):
                findings.append(Finding("bucket-private", logical_id, "bucket policy allows a public principal"))
    return findings


def check_origin_access_control(template: Dict[str, Any]) -> List[Finding]:
    """S3 origins are read through origin access control, never anonymously."""
    findings = []
    has_oac = any(True for _ in _resources(template, "AWS::CloudFront::OriginAccessControl"))

    for logical_id, props in _resources(template, "AWS::CloudFront::Distribution"):
        for origin in props.get("DistributionConfig", {}).get("Origins", []):
            if "S3OriginConfig" not in origin:
                continue
            if not origin.get("OriginAccessControlId") or not has_oac:
                findings.append(
                    Finding("origin-access-control", logical_id, f"origin {origin.get('Id')} has no origin access control")
                )

    for logical_id, props in _resources(template, "AWS::S3::BucketPolicy"):
        for statement in props.get("PolicyDocument", {}).get("Statement", []):
            principal = statement.get("Principal") or {}
            if not isinstance(principal, dict) or "cloudfront.amazonaws.com" not in _as_list(principal.get("Service")):
                continue
            condition = statement.get("Condition", {})
            if "AWS:SourceArn" not in condition.get("StringEquals", {}):
                findings.append(
                    Finding("origin-access-control", logical_id, "CloudFront grant is not scoped to a distribution")
                )
    return findings


def check_alias_targets_distribution(template: Dict[str, Any]) -> List[Finding]:
    """Alias records point at the domain name of a distribution in the same template."""
    findings = []
    distributions = {logical_id for logical_id, _ in _resources(template, "AWS::CloudFront::Distribution")}

    for logical_id, props in _resources(template, "AWS::Route53::RecordSet"):
        alias = props.get("AliasTarget")
        if not alias:
            continue
        target = alias.get("DNSName", {})
        get_att = target.get("Fn::GetAtt") if isinstance(target, dict) else None
        if not get_att or get_att[0] not in distributions or get_att[1] != "DomainName":
            findings.append(
                Finding("alias-target", logical_id, f"alias target {target} is not a distribution domain name")
            )
    return findings


def check_waf_rules(template: Dict[str, Any]) -> List[Finding]:
    """Web ACL priorities are unique and the mandatory managed rule groups are present."""
    findings = []
    for logical_id, props in _resources(template, "AWS::WAFv2::WebACL"):
        rules = props.get("Rules", [])
        priorities = [rule.get("Priority") for rule in rules]
        duplicates = sorted({p for p in priorities if priorities.count(p) > 1})
        if duplicates:
            findings.append(Finding("waf-rules", logical_id, f"duplicate rule priorities: {duplicates}"))

        by_name = {rule.get("Name"): rule for rule in rules}
        for name in REQUIRED_MANAGED_RULES:
            rule = by_name.get(name)
            if rule is None:
                findings.append(Finding("waf-rules", logical_id, f"managed rule group {name} missing"))
            elif rule.get("OverrideAction") != {"None": {}}:
                findings.append(Finding("waf-rules", logical_id, f"managed rule group {name} overrides its actions"))
    return findings


def check_distribution_disabled(template: Dict[str, Any]) -> List[Finding]:
    """Distributions are provisioned disabled and must be switched on explicitly."""
    return [
        Finding("distribution-disabled", logical_id, "distribution is enabled")
        for logical_id, props in _resources(template, "AWS::CloudFront::Distribution")
        if props.get("DistributionConfig", {}).get("Enabled") is not False
    ]


ALL_CHECKS: Tuple[Callable[[Dict[str, Any]], List[Finding]], ...] = (
    check_bucket_private,
    check_origin_access_control,
    check_alias_targets_distribution,
    check_waf_rules,
    check_distribution_disabled,
)


def run_all_checks(template: Dict[str, Any]) -> List[Finding]:
    findings: List[Finding] = []
    for check in ALL_CHECKS:
        findings.extend(check(template))
    for finding in findings:
        logger.warning(str(finding))
    return findings
