"""Allowlist matching — decides whether a detected change is tolerated."""

from __future__ import annotations

from regionguard.models.allowlist import AllowlistRule, RuleValue
from regionguard.models.change import Change, Decision, Evidence


def matches_value(rule_value: RuleValue, actual: str) -> bool:
    if not rule_value or rule_value == "*":
        return True
    if isinstance(rule_value, list):
        return actual in rule_value
    return rule_value == actual


def rule_matches(rule: AllowlistRule, change: Change) -> bool:
    return (
        matches_value(rule.page, change.page)
        and matches_value(rule.device, change.device)
        and matches_value(rule.mode, change.mode)
        and matches_value(rule.region, change.region)
        and matches_value(rule.type, change.type)
    )


def is_allowed(change: Change, rules: list[AllowlistRule]) -> bool:
    return any(rule_matches(rule, change) for rule in rules)


def classify(change: Change, rules: list[AllowlistRule], evidence: Evidence | None = None) -> Decision:
    return Decision(change=change, allowed=is_allowed(change, rules), evidence=evidence or Evidence())
