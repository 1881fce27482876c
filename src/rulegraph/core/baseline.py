"""Baselines: named selections of rules."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from ..constants import API_VERSION
from ..models.rules import Rule

logger = structlog.get_logger(__name__)


@dataclass
class Baseline:
    """
    A named, ordered selection of rules.

    Attributes:
        name: Baseline name
        include: Rules to run, in the order given; empty means all rules
        exclude: Rules to leave out
        synopsis: Short description
        source: File the baseline was loaded from
        obsolete: Baseline is kept for compatibility; selecting it logs a warning
        configuration: Free-form values carried with the baseline
        annotations: Free-form metadata
        api_version: apiVersion of the source document
    """

    name: str
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    synopsis: str | None = None
    source: str | None = None
    obsolete: bool = False
    configuration: dict[str, Any] = field(default_factory=dict)
    annotations: dict[str, Any] = field(default_factory=dict)
    api_version: str = API_VERSION

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a Baseline resource document.

        The result loads back to an equal baseline. Optional fields are left
        out when unset; ``source`` is not part of the document.

        Returns:
            Dict with apiVersion, kind, metadata and spec
        """
        metadata: dict[str, Any] = {"name": self.name}
        if self.annotations:
            metadata["annotations"] = dict(self.annotations)

        spec: dict[str, Any] = {}
        if self.synopsis is not None:
            spec["synopsis"] = self.synopsis
        if self.obsolete:
            spec["obsolete"] = True
        spec["rule"] = {"include": list(self.include), "exclude": list(self.exclude)}
        if self.configuration:
            spec["configuration"] = dict(self.configuration)

        return {
            "apiVersion": self.api_version,
            "kind": "Baseline",
            "metadata": metadata,
            "spec": spec,
        }

    def select(self, rules: Sequence[Rule]) -> list[Rule]:
        """
        Select and order rules for a run.

        Included rules are ordered by their position in ``include`` (input
        order when ``include`` is empty), excluded rules are dropped. Rules
        the selection depends on, directly or transitively, are added ahead
        of it in input order, even when excluded, so that every dependency
        can be resolved by the graph.

        Args:
            rules: All loaded rules

        Returns:
            Rules to hand to the dependency graph
        """
        by_id = {rule.id: rule for rule in rules}
        excluded = set(self.exclude)

        if self.include:
            unknown = [name for name in self.include if name not in by_id]
            if unknown:
                logger.warning("Baseline includes unknown rules", baseline=self.name, rules=unknown)
            selected = [
                by_id[name]
                for name in dict.fromkeys(self.include)
                if name in by_id and name not in excluded
            ]
        else:
            selected = [rule for rule in rules if rule.id not in excluded]

        selected_ids = {rule.id for rule in selected}
        required: set[str] = set()
        pending = [dependency for rule in selected for dependency in rule.depends_on]

        while pending:
            dependency = pending.pop()
            if dependency in selected_ids or dependency in required or dependency not in by_id:
                continue
            required.add(dependency)
            pending.extend(by_id[dependency].depends_on)

        if required & excluded:
            logger.info(
                "Excluded rules kept as dependencies of the selection",
                baseline=self.name,
                rules=sorted(required & excluded),
            )

        pulled = [rule for rule in rules if rule.id in required]

        logger.debug(
            "Baseline applied",
            baseline=self.name,
            selected=len(selected),
            dependencies=len(pulled),
        )
        return pulled + selected
