"""Dependency management for rule ordering."""

from .graph import DependencyGraph, DependencyTarget, TargetState

__all__ = [
    "DependencyGraph",
    "DependencyTarget",
    "TargetState",
]
