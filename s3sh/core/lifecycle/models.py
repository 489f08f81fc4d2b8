"""
Domain models for bucket lifecycle rules.

These models are the strict internal representation of a lifecycle rule.
Raw command-line input never reaches them directly; the builder parses and
validates first, then assembles one of these.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class StorageClass(Enum):
    """Storage tiers an object can transition into. Values are wire names."""
    STANDARD_IA = "STANDARD_IA"
    ONEZONE_IA = "ONEZONE_IA"
    INTELLIGENT_TIERING = "INTELLIGENT_TIERING"
    GLACIER = "GLACIER"
    GLACIER_IR = "GLACIER_IR"
    DEEP_ARCHIVE = "DEEP_ARCHIVE"


class RuleStatus(Enum):
    ENABLED = "Enabled"
    DISABLED = "Disabled"


class ValidationErrorKind(Enum):
    """Why a lifecycle rule was rejected."""
    MISSING_ID = "missing_id"
    MALFORMED_TRANSITIONS = "malformed_transitions"
    INVALID_EXPIRATION = "invalid_expiration"
    DUPLICATE_TRANSITION_DAY = "duplicate_transition_day"
    EMPTY_RULE = "empty_rule"
    INVALID_STATUS = "invalid_status"


@dataclass(frozen=True)
class Transition:
    """
    Move matching objects to a cheaper tier after a number of days.

    Frozen because transitions are values: two transitions with the same
    day and tier are the same transition.
    """
    days: int
    storage_class: StorageClass

    def __post_init__(self) -> None:
        if self.days < 0:
            raise ValueError("Transition days cannot be negative")


@dataclass(frozen=True)
class LifecycleRule:
    """
    A validated lifecycle rule, ready to be serialized for the service.

    Invariants (enforced here as a last line; the builder reports them
    as ValidationError values before construction):
    - id is non-empty
    - transitions are strictly ascending by days
    - expiration, when set, is later than the last transition
    - at least one of transitions / expiration is present
    """
    id: str
    status: RuleStatus = RuleStatus.ENABLED
    prefix: Optional[str] = None
    transitions: tuple[Transition, ...] = ()
    expiration_days: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.id.strip():
            raise ValueError("Rule id cannot be empty")
        days = [t.days for t in self.transitions]
        if any(later <= earlier for earlier, later in zip(days, days[1:])):
            raise ValueError("Transitions must be strictly ascending by days")
        if self.expiration_days is not None:
            if self.expiration_days < 0:
                raise ValueError("Expiration days cannot be negative")
            if days and self.expiration_days <= days[-1]:
                raise ValueError("Expiration must come after the last transition")
        if not self.transitions and self.expiration_days is None:
            raise ValueError("Rule must have transitions or an expiration")

    @property
    def is_enabled(self) -> bool:
        return self.status == RuleStatus.ENABLED

    @property
    def max_transition_days(self) -> Optional[int]:
        return self.transitions[-1].days if self.transitions else None


@dataclass(frozen=True)
class ValidationError:
    """
    A rejected lifecycle input.

    This is a value, not an exception. The builder returns it inside a
    RuleResult so callers branch on the result instead of catching.
    """
    kind: ValidationErrorKind
    message: str

    def __str__(self) -> str:
        return self.message


class LifecycleValidationFailed(Exception):
    """Raised at the command boundary when a RuleResult carries an error."""

    def __init__(self, error: ValidationError) -> None:
        super().__init__(error.message)
        self.error = error

    @property
    def kind(self) -> ValidationErrorKind:
        return self.error.kind


@dataclass(frozen=True)
class RuleResult:
    """Outcome of build_rule: exactly one of rule / error is set."""
    rule: Optional[LifecycleRule] = None
    error: Optional[ValidationError] = None

    def __post_init__(self) -> None:
        if (self.rule is None) == (self.error is None):
            raise ValueError("RuleResult needs exactly one of rule or error")

    @classmethod
    def success(cls, rule: LifecycleRule) -> "RuleResult":
        return cls(rule=rule)

    @classmethod
    def failure(cls, kind: ValidationErrorKind, message: str) -> "RuleResult":
        return cls(error=ValidationError(kind=kind, message=message))

    @property
    def ok(self) -> bool:
        return self.rule is not None

    def unwrap(self) -> LifecycleRule:
        """Return the rule, or raise LifecycleValidationFailed."""
        if self.error is not None:
            raise LifecycleValidationFailed(self.error)
        return self.rule
