"""
Lifecycle rule construction and validation.
"""

from .builder import build_rule
from .models import (
    LifecycleRule,
    LifecycleValidationFailed,
    RuleResult,
    RuleStatus,
    StorageClass,
    Transition,
    ValidationError,
    ValidationErrorKind,
)

__all__ = [
    "build_rule",
    "LifecycleRule",
    "LifecycleValidationFailed",
    "RuleResult",
    "RuleStatus",
    "StorageClass",
    "Transition",
    "ValidationError",
    "ValidationErrorKind",
]
