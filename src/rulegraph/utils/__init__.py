"""Utility functions and exceptions."""

from .exceptions import (
    BaselineNotFoundError,
    CyclicDependencyError,
    DependencyError,
    DuplicateIdentifierError,
    InputFormatError,
    RuleDefinitionError,
    RuleGraphError,
    TargetStateError,
    TraversalProtocolError,
    UnresolvedDependencyError,
    UseAfterDisposeError,
    ValidationError,
)

__all__ = [
    "RuleGraphError",
    "ValidationError",
    "RuleDefinitionError",
    "InputFormatError",
    "DependencyError",
    "DuplicateIdentifierError",
    "UnresolvedDependencyError",
    "CyclicDependencyError",
    "UseAfterDisposeError",
    "TargetStateError",
    "TraversalProtocolError",
    "BaselineNotFoundError",
]
