"""Core components: rule loading, condition evaluation and input reading."""

from .baseline import Baseline
from .conditions import MISSING, compile_expression, evaluate, resolve_field
from .loader import RuleLoader, RuleSet
from .reader import InputReader

__all__ = [
    "Baseline",
    "RuleLoader",
    "RuleSet",
    "InputReader",
    "MISSING",
    "compile_expression",
    "evaluate",
    "resolve_field",
]
