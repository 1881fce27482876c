"""Execution engine for rule evaluation."""

from .runner import RuleRunner

__all__ = ["RuleRunner"]
