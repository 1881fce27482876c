"""Result types for rule evaluation."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .rules import RuleLevel


class RuleOutcome(str, Enum):
    """Outcome of evaluating one rule against one target object."""

    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"
    NONE = "none"  # Precondition did not match, rule does not apply
    SKIPPED = "skipped"  # A dependency failed, rule was not evaluated

    @property
    def is_success(self) -> bool:
        """Whether dependents of a rule with this outcome may run."""
        return self in (RuleOutcome.PASS, RuleOutcome.NONE)


@dataclass
class RuleRecord:
    """
    Result of evaluating a single rule.

    Attributes:
        rule_id: Rule identifier
        target_name: Name of the target object
        outcome: Evaluation outcome
        level: Rule severity
        synopsis: Rule synopsis
        reason: Why the rule was skipped (skipped records only)
        error_message: Exception text (error records only)
        duration_ms: Time spent in the rule body
        metadata: Additional metadata
    """

    rule_id: str
    target_name: str
    outcome: RuleOutcome
    level: RuleLevel = RuleLevel.ERROR
    synopsis: str | None = None
    reason: str | None = None
    error_message: str | None = None
    duration_ms: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.outcome.is_success


@dataclass
class TargetResult:
    """
    All rule records produced for one target object.

    Attributes:
        target_name: Name of the target object
        source: File the object came from
        records: Rule records in evaluation order, skipped records last
    """

    target_name: str
    source: str | None = None
    records: list[RuleRecord] = field(default_factory=list)

    def count(self, outcome: RuleOutcome) -> int:
        """
        Count records with the given outcome.

        Args:
            outcome: The outcome to count.

        Returns:
            int: Number of matching records.
        """
        return sum(1 for record in self.records if record.outcome == outcome)

    @property
    def outcome(self) -> RuleOutcome:
        """
        Aggregate outcome for the target object.

        Returns:
            RuleOutcome: ERROR if any rule errored, FAIL if any failed,
            SKIPPED if any were skipped, PASS if any passed, NONE otherwise.
        """
        for outcome in (RuleOutcome.ERROR, RuleOutcome.FAIL, RuleOutcome.SKIPPED):
            if self.count(outcome):
                return outcome
        if self.count(RuleOutcome.PASS):
            return RuleOutcome.PASS
        return RuleOutcome.NONE


@dataclass
class EvaluationResult:
    """
    Overall result of an evaluation run.

    Attributes:
        results: Per target object results
        rule_count: Number of rules that were scheduled
        aborted: Whether the run stopped early (fail-fast)
        started_at: Start timestamp
        completed_at: Completion timestamp
    """

    results: list[TargetResult] = field(default_factory=list)
    rule_count: int = 0
    aborted: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def count(self, outcome: RuleOutcome) -> int:
        """
        Count records with the given outcome across all target objects.

        Args:
            outcome: The outcome to count.

        Returns:
            int: Number of matching records.
        """
        return sum(result.count(outcome) for result in self.results)

    @property
    def total_records(self) -> int:
        return sum(len(result.records) for result in self.results)

    @property
    def passed(self) -> int:
        return self.count(RuleOutcome.PASS)

    @property
    def failed(self) -> int:
        return self.count(RuleOutcome.FAIL)

    @property
    def errors(self) -> int:
        return self.count(RuleOutcome.ERROR)

    @property
    def skipped(self) -> int:
        return self.count(RuleOutcome.SKIPPED)

    @property
    def not_applicable(self) -> int:
        return self.count(RuleOutcome.NONE)

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def success_rate(self) -> float:
        """
        Calculate pass rate as percentage of evaluated (pass/fail/error) records.

        Returns:
            float: Success rate percentage (0.0 to 100.0).
        """
        evaluated = self.passed + self.failed + self.errors
        if evaluated == 0:
            return 0.0
        return (self.passed / evaluated) * 100

    @property
    def is_complete_success(self) -> bool:
        """
        Check if no rule failed, errored or was skipped.

        Returns:
            bool: True if the run was clean, False otherwise.
        """
        return not self.aborted and self.failed == 0 and self.errors == 0 and self.skipped == 0

    def get_summary(self) -> str:
        """
        Get a human-readable summary.

        Returns:
            str: Summary string with counts and success rate.
        """
        return (
            f"{len(self.results)} target(s), {self.rule_count} rule(s): "
            f"{self.passed} passed, {self.failed} failed, {self.errors} errors, "
            f"{self.skipped} skipped, {self.not_applicable} not applicable "
            f"({self.success_rate:.1f}% success rate)"
        )
