"""Padmap mapping subsystem."""

from padmap.mapping.engine import DispatchEngine
from padmap.mapping.rule import (
    ConflictingSourceRule,
    ForwardTarget,
    KeyboardTarget,
    MappingRule,
    RuleError,
    SelfTargetingRule,
)
from padmap.mapping.table import RuleTable

__all__ = [
    "MappingRule",
    "KeyboardTarget",
    "ForwardTarget",
    "RuleError",
    "ConflictingSourceRule",
    "SelfTargetingRule",
    "RuleTable",
    "DispatchEngine",
]
