"""Pytest configuration and shared fixtures.

Fixtures are organized by category:
- Document fixtures: Rule, baseline and input documents written to tmp_path
- Rule fixtures: In-memory rules built from plain callables
- Infrastructure fixtures: Logging reset between tests
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import structlog

from src.rulegraph.models.rules import Rule, RuleLevel
from src.rulegraph.models.targets import TargetObject
from src.rulegraph.observability.logger import clear_all_context

# =============================================================================
# Document Fixtures
# =============================================================================

STORAGE_RULES_YAML = """\
apiVersion: rulegraph/v1
kind: Rule
metadata:
  name: Storage.Exists
spec:
  synopsis: Object must declare a type
  condition:
    field: type
    exists: true
---
apiVersion: rulegraph/v1
kind: Rule
metadata:
  name: Storage.Encrypted
spec:
  synopsis: Storage must be encrypted
  recommend: Enable encryption at rest
  dependsOn: [Storage.Exists]
  where:
    field: type
    equals: storage
  condition:
    field: properties.encryption.enabled
    equals: true
---
apiVersion: rulegraph/v1
kind: Rule
metadata:
  name: Storage.KeyRotation
spec:
  synopsis: Encryption keys must rotate at least every 90 days
  level: warning
  dependsOn: [Storage.Encrypted]
  where:
    field: type
    equals: storage
  condition:
    field: properties.encryption.rotationDays
    lessOrEquals: 90
---
apiVersion: rulegraph/v1
kind: Rule
metadata:
  name: Tags.Owner
spec:
  synopsis: Objects must name an owner
  condition:
    field: tags.owner
    exists: true
---
apiVersion: rulegraph/v1
kind: Baseline
metadata:
  name: Encryption
spec:
  synopsis: Encryption rules only
  rule:
    include: [Storage.KeyRotation]
"""

RESOURCES_YAML = """\
name: storage-ok
type: storage
tags: {owner: platform}
properties:
  encryption: {enabled: true, rotationDays: 30}
---
name: storage-plain
type: storage
tags: {owner: data}
properties:
  encryption: {enabled: false}
---
name: vm-01
type: vm
"""


@pytest.fixture
def rules_file(tmp_path: Path) -> Path:
    """Rule file with a three-level dependency chain, one independent rule and a baseline."""
    path = tmp_path / "rules" / "storage.yaml"
    path.parent.mkdir()
    path.write_text(STORAGE_RULES_YAML)
    return path


@pytest.fixture
def resources_file(tmp_path: Path) -> Path:
    """Input file with a passing, a failing and a not-applicable object."""
    path = tmp_path / "inputs" / "resources.yaml"
    path.parent.mkdir()
    path.write_text(RESOURCES_YAML)
    return path


# =============================================================================
# Rule Fixtures
# =============================================================================


@pytest.fixture
def make_rule() -> Callable[..., Rule]:
    """Factory for in-memory rules.

    Example:
        def test_something(make_rule):
            rule = make_rule("B", lambda obj: obj["ok"], depends_on=["A"])
    """

    def _make(
        rule_id: str,
        condition: Callable[[Any], bool] | None = None,
        depends_on: list[str] | None = None,
        where: Callable[[Any], bool] | None = None,
        level: RuleLevel = RuleLevel.ERROR,
    ) -> Rule:
        return Rule(
            id=rule_id,
            condition=condition or (lambda obj: True),
            depends_on=tuple(depends_on or ()),
            where=where,
            level=level,
            synopsis=f"{rule_id} synopsis",
        )

    return _make


@pytest.fixture
def make_target() -> Callable[..., TargetObject]:
    """Factory for in-memory target objects."""

    def _make(value: Any, name: str = "target") -> TargetObject:
        return TargetObject(value=value, name=name)

    return _make


# =============================================================================
# Infrastructure Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset structlog, stdlib handlers and bound log context so tests don't leak configuration."""
    yield
    clear_all_context()
    structlog.reset_defaults()

    root = logging.getLogger()
    for handler in root.handlers[:]:
        # Handlers installed by configure_logging; pytest's own are subclasses
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(logging.WARNING)
