"""
Lifecycle rule builder.

Turns loosely-typed command-line input into a validated LifecycleRule.
Parsing happens once at the boundary: the transitions JSON is decoded into
a strict shape with Pydantic, then the remaining checks run on typed values.

The builder is pure. It returns a RuleResult rather than raising, so every
rejection path is an ordinary return value with a ValidationErrorKind.
"""

import logging
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..flags import parse_flag
from .models import (
    LifecycleRule,
    RuleResult,
    RuleStatus,
    StorageClass,
    Transition,
    ValidationErrorKind,
)

logger = logging.getLogger(__name__)


class TransitionInput(BaseModel):
    """Shape of one element of the --transitions JSON array."""
    model_config = ConfigDict(extra="forbid")

    days: StrictInt
    storage_class: StrictStr


_TRANSITIONS_ADAPTER = TypeAdapter(list[TransitionInput])


def parse_transitions(raw: Optional[str]) -> Union[list[Transition], str]:
    """
    Decode the transitions JSON into Transition values.

    Returns the list on success, or an error message string. None or blank
    text means no transitions.
    """
    if raw is None or not raw.strip():
        return []

    try:
        items = _TRANSITIONS_ADAPTER.validate_json(raw)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "input"
        return f"Invalid transitions JSON at {location}: {first['msg']}"

    transitions = []
    for index, item in enumerate(items):
        if item.days < 0:
            return f"Transition {index} has negative days ({item.days})"
        name = item.storage_class.strip()
        if not name:
            return f"Transition {index} has an empty storage_class"
        try:
            storage_class = StorageClass(name.upper())
        except ValueError:
            allowed = ", ".join(c.value for c in StorageClass)
            return f"Invalid storage class: {name} (expected one of {allowed})"
        transitions.append(Transition(days=item.days, storage_class=storage_class))

    return transitions


def parse_status(raw: Union[str, bool, None]) -> Optional[RuleStatus]:
    """Map a boolean-like token to a RuleStatus. None if unrecognized."""
    if raw is None:
        return RuleStatus.ENABLED
    if isinstance(raw, bool):
        return RuleStatus.ENABLED if raw else RuleStatus.DISABLED

    flag = parse_flag(str(raw))
    if flag is None:
        return None
    return RuleStatus.ENABLED if flag else RuleStatus.DISABLED


def parse_expiration(raw: Union[int, str, None]) -> Union[Optional[int], str]:
    """
    Parse the expiration day count.

    Returns the int (or None when absent), or an error message string.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return f"Expiration must be an integer, got {raw!r}"
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            raw = int(text)
        except ValueError:
            return f"Expiration must be an integer, got {text!r}"
    if not isinstance(raw, int):
        return f"Expiration must be an integer, got {raw!r}"
    if raw < 0:
        return f"Expiration days cannot be negative ({raw})"
    return raw


def build_rule(
    raw_id: Optional[str],
    raw_transitions_json: Optional[str],
    raw_expiration: Union[int, str, None] = None,
    raw_prefix: Optional[str] = None,
    raw_status: Union[str, bool, None] = None,
) -> RuleResult:
    """
    Build a validated lifecycle rule from raw user input.

    Checks run in a fixed order so the reported error is deterministic:
    id, transitions shape, status, expiration shape, duplicate days,
    expiration ordering, and finally the empty-rule check.

    Args:
        raw_id: Rule identifier, required
        raw_transitions_json: JSON array of {"days", "storage_class"} objects
        raw_expiration: Days until expiry (int or integer text), optional
        raw_prefix: Key prefix filter; empty means the whole bucket
        raw_status: Boolean-like token; absent means enabled

    Returns:
        RuleResult holding either the rule or a ValidationError
    """
    rule_id = (raw_id or "").strip()
    if not rule_id:
        return RuleResult.failure(ValidationErrorKind.MISSING_ID, "Rule id is required")

    transitions = parse_transitions(raw_transitions_json)
    if isinstance(transitions, str):
        return RuleResult.failure(ValidationErrorKind.MALFORMED_TRANSITIONS, transitions)

    status = parse_status(raw_status)
    if status is None:
        return RuleResult.failure(
            ValidationErrorKind.INVALID_STATUS,
            f"Invalid status {raw_status!r}: expected true/false or enabled/disabled",
        )

    expiration = parse_expiration(raw_expiration)
    if isinstance(expiration, str):
        return RuleResult.failure(ValidationErrorKind.INVALID_EXPIRATION, expiration)

    transitions.sort(key=lambda t: t.days)
    for earlier, later in zip(transitions, transitions[1:]):
        if earlier.days == later.days:
            return RuleResult.failure(
                ValidationErrorKind.DUPLICATE_TRANSITION_DAY,
                f"Two transitions share day {later.days} "
                f"({earlier.storage_class.value}, {later.storage_class.value})",
            )

    if expiration is not None and transitions:
        last_day = transitions[-1].days
        if expiration <= last_day:
            return RuleResult.failure(
                ValidationErrorKind.INVALID_EXPIRATION,
                f"Expiration ({expiration} days) must be later than the last "
                f"transition ({last_day} days)",
            )

    if not transitions and expiration is None:
        return RuleResult.failure(
            ValidationErrorKind.EMPTY_RULE,
            "Rule has neither transitions nor an expiration",
        )

    rule = LifecycleRule(
        id=rule_id,
        status=status,
        prefix=raw_prefix or None,
        transitions=tuple(transitions),
        expiration_days=expiration,
    )

    logger.debug(
        "Built lifecycle rule",
        extra={
            "rule_id": rule.id,
            "transition_count": len(rule.transitions),
            "expiration_days": rule.expiration_days,
        }
    )

    return RuleResult.success(rule)
