"""WAF rule definitions for the CloudFront web ACL.

The web ACL allows by default and layers AWS managed rule groups on top.
Rules are evaluated in ascending priority order, so priorities must be unique.

Only the common rule set and the known-bad-inputs rule set are declared. A
Linux rule set and a per-IP rate limit have been discussed but are not part
of the policy.
"""

from dataclasses import dataclass
from typing import List, Sequence

from aws_cdk import aws_wafv2 as wafv2

CLOUDFRONT_SCOPE = "CLOUDFRONT"


@dataclass(frozen=True)
class ManagedRule:
    """A managed rule group reference placed at a given priority."""
    name: str
    priority: int
    metric_name: str
    vendor_name: str = "AWS"


# https://docs.aws.amazon.com/waf/latest/developerguide/aws-managed-rule-groups-baseline.html
DEFAULT_MANAGED_RULES = (
    ManagedRule(name="AWSManagedRulesCommonRuleSet", priority=1, metric_name="CommonRuleSet"),
    ManagedRule(name="AWSManagedRulesKnownBadInputsRuleSet", priority=2, metric_name="KnownBadInputs"),
)


def validate_priorities(rules: Sequence[ManagedRule]) -> None:
    """Raise ValueError when rule priorities or names collide."""
    seen_priorities = {}
    seen_names = set()
    for rule in rules:
        if rule.priority in seen_priorities:
            raise ValueError(
                f"Rule {rule.name} reuses priority {rule.priority} of {seen_priorities[rule.priority]}"
            )
        if rule.name in seen_names:
            raise ValueError(f"Duplicate rule name: {rule.name}")
        seen_priorities[rule.priority] = rule.name
        seen_names.add(rule.name)


def visibility(metric_name: str) -> wafv2.CfnWebACL.VisibilityConfigProperty:
    return wafv2.CfnWebACL.VisibilityConfigProperty(
        sampled_requests_enabled=True,
        cloud_watch_metrics_enabled=True,
        metric_name=metric_name,
    )


def build_rules(rules: Sequence[ManagedRule] = DEFAULT_MANAGED_RULES) -> List[wafv2.CfnWebACL.RuleProperty]:
    """Convert managed rule references into web ACL rules, ordered by priority.

    Override action ``none`` keeps each group's own block/count decisions.
    """
    validate_priorities(rules)
    return [
        wafv2.CfnWebACL.RuleProperty(
            name=rule.name,
            priority=rule.priority,
            override_action=wafv2.CfnWebACL.OverrideActionProperty(none={}),
            statement=wafv2.CfnWebACL.StatementProperty(
                managed_rule_group_statement=wafv2.CfnWebACL.ManagedRuleGroupStatementProperty(
                    vendor_name=rule.vendor_name,
                    name=rule.name,
                )
            ),
            visibility_config=visibility(rule.metric_name),
        )
        for rule in sorted(rules, key=lambda r: r.priority)
    ]
