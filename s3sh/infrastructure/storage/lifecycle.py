"""
Wire format for bucket lifecycle configurations.

Translates LifecycleRule values into the dictionaries boto3 expects for
put_bucket_lifecycle_configuration, and merges a new rule into the set a
bucket already has. Rules are keyed by ID: putting a rule whose ID already
exists replaces it in place of being duplicated.
"""

from typing import Any, Iterable, Optional, Union

from ...core.lifecycle.models import LifecycleRule

WireRule = dict[str, Any]


def serialize_rule(rule: LifecycleRule) -> WireRule:
    """Build the boto3 representation of one rule."""
    wire: WireRule = {
        "ID": rule.id,
        "Status": rule.status.value,
        "Filter": {"Prefix": rule.prefix or ""},
    }
    if rule.transitions:
        wire["Transitions"] = [
            {"Days": t.days, "StorageClass": t.storage_class.value}
            for t in rule.transitions
        ]
    if rule.expiration_days is not None:
        wire["Expiration"] = {"Days": rule.expiration_days}
    return wire


def to_wire_rules(rules: Iterable[Union[LifecycleRule, WireRule]]) -> list[WireRule]:
    """Serialize any LifecycleRule in a mixed list; pass wire rules through."""
    return [
        serialize_rule(rule) if isinstance(rule, LifecycleRule) else rule
        for rule in rules
    ]


def merge_rule_set(existing: Iterable[WireRule], rule: LifecycleRule) -> list[WireRule]:
    """
    Replace the rule with the same ID, or append the new one.

    Rules we don't model (noncurrent-version expiry, tag filters, ...)
    come back from the service as wire dicts and are passed through
    untouched so putting the merged set doesn't drop them.
    """
    merged = [r for r in existing if r.get("ID") != rule.id]
    merged.append(serialize_rule(rule))
    return merged


def rule_prefix(wire: WireRule) -> Optional[str]:
    """
    Find the prefix filter of a wire rule, wherever the service put it.

    Older configurations use a top-level Prefix; newer ones nest it in
    Filter or Filter.And.
    """
    if "Prefix" in wire:
        return wire["Prefix"] or None
    rule_filter = wire.get("Filter") or {}
    if "Prefix" in rule_filter:
        return rule_filter["Prefix"] or None
    conjunction = rule_filter.get("And") or {}
    return conjunction.get("Prefix") or None
