"""Data models for rulegraph."""

from .results import EvaluationResult, RuleOutcome, RuleRecord, TargetResult
from .rules import (
    BaselineResource,
    Expression,
    ResourceDocument,
    Rule,
    RuleLevel,
    RuleResource,
)
from .targets import IdentifiableTarget, TargetObject

__all__ = [
    # Targets
    "IdentifiableTarget",
    "TargetObject",
    # Rules
    "Rule",
    "RuleLevel",
    "Expression",
    "RuleResource",
    "BaselineResource",
    "ResourceDocument",
    # Results
    "RuleOutcome",
    "RuleRecord",
    "TargetResult",
    "EvaluationResult",
]
