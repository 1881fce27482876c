"""Rule runner: evaluates rules against target objects in dependency order."""

import time
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

import structlog

from ..config import ExecutionConfig, FailurePolicy
from ..dependency.graph import DependencyGraph, TargetState
from ..models.results import EvaluationResult, RuleOutcome, RuleRecord, TargetResult
from ..models.rules import Rule
from ..models.targets import TargetObject
from ..observability.logger import LogContext
from ..observability.metrics import MetricsCollector

logger = structlog.get_logger(__name__)


class RuleRunner:
    """
    Evaluate a rule set against a stream of target objects.

    Execution Strategy:
    1. One dependency graph per run, built up front
       - Duplicate ids and cycles fail before any rule runs
       - Closed when the run ends, on every exit path

    2. One ordered traversal per target object
       - Dependencies are evaluated before dependents
       - A failed or errored rule skips its dependents for that object only
       - Independent rules keep running unless the policy is fail-fast
    """

    def __init__(
        self,
        rules: Sequence[Rule],
        config: ExecutionConfig | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """
        Initialize the runner.

        Args:
            rules: Rules in scheduling order
            config: Execution settings (defaults apply when omitted)
            metrics: Optional collector; one is created when metrics are enabled
        """
        self.rules = list(rules)
        self.config = config or ExecutionConfig()

        if metrics is None and self.config.enable_metrics:
            metrics = MetricsCollector()
        self.metrics = metrics

    def run(self, targets: Iterable[TargetObject]) -> EvaluationResult:
        """
        Evaluate every rule against every target object.

        Args:
            targets: Target objects, consumed lazily

        Returns:
            EvaluationResult with one TargetResult per evaluated object

        Raises:
            DependencyError: If the rules can't be scheduled (duplicate names,
                cycles, unknown dependsOn entries)
        """
        result = EvaluationResult(rule_count=len(self.rules), started_at=datetime.now(timezone.utc))

        logger.info(
            "Starting evaluation",
            rules=len(self.rules),
            failure_policy=self.config.failure_policy.value,
        )

        with DependencyGraph(self.rules) as graph:
            for target in targets:
                with LogContext(target_name=target.name):
                    target_result, stopped = self._evaluate_target(graph, target)
                result.results.append(target_result)

                if stopped:
                    result.aborted = True
                    logger.warning("Evaluation stopped (fail-fast)", target_name=target.name)
                    break

        result.completed_at = datetime.now(timezone.utc)

        if self.metrics:
            self.metrics.record_run(len(result.results), len(self.rules))

        logger.info(
            "Evaluation complete",
            duration_seconds=f"{result.duration_seconds:.2f}",
            targets=len(result.results),
            passed=result.passed,
            failed=result.failed,
            errors=result.errors,
            skipped=result.skipped,
            aborted=result.aborted,
        )
        return result

    def _evaluate_target(
        self, graph: DependencyGraph[Rule], target: TargetObject
    ) -> tuple[TargetResult, bool]:
        """
        Run one traversal for a single target object.

        Args:
            graph: Dependency graph over the run's rules
            target: Object to evaluate

        Returns:
            The object's result and whether the run must stop
        """
        target_result = TargetResult(target_name=target.name, source=target.source)
        traversal = graph.ordered_traversal()

        try:
            for item in traversal:
                record = self._evaluate_rule(item.value, target)
                target_result.records.append(record)

                if record.is_success:
                    item.mark_passed()
                    continue

                item.mark_failed()
                if self.config.failure_policy is FailurePolicy.FAIL_FAST:
                    return target_result, True
        finally:
            traversal.close()

        target_result.records.extend(self._skipped_records(graph, target))

        logger.info(
            "Target evaluated",
            outcome=target_result.outcome.value,
            records=len(target_result.records),
        )
        return target_result, False

    def _evaluate_rule(self, rule: Rule, target: TargetObject) -> RuleRecord:
        """
        Evaluate one rule. Exceptions raised by the rule become ERROR records.

        Args:
            rule: Rule to evaluate
            target: Object to evaluate it against

        Returns:
            RuleRecord with outcome and timing
        """
        error_message = None
        start_time = time.perf_counter()

        try:
            if rule.where is not None and not rule.where(target.value):
                outcome = RuleOutcome.NONE
            elif rule.condition(target.value):
                outcome = RuleOutcome.PASS
            else:
                outcome = RuleOutcome.FAIL
        except Exception as e:
            outcome = RuleOutcome.ERROR
            error_message = f"{type(e).__name__}: {e}"
            logger.error("Rule raised an exception", rule=rule.id, error=error_message)

        duration_ms = (time.perf_counter() - start_time) * 1000

        if self.metrics:
            self.metrics.count_rule(rule.id, outcome.value)
            self.metrics.record_latency(rule.id, duration_ms)

        logger.debug("Rule evaluated", rule=rule.id, outcome=outcome.value)

        metadata = {}
        if outcome == RuleOutcome.FAIL and rule.recommend:
            metadata["recommend"] = rule.recommend

        return RuleRecord(
            rule_id=rule.id,
            target_name=target.name,
            outcome=outcome,
            level=rule.level,
            synopsis=rule.synopsis,
            error_message=error_message,
            duration_ms=duration_ms,
            metadata=metadata,
        )

    def _skipped_records(self, graph: DependencyGraph[Rule], target: TargetObject) -> list[RuleRecord]:
        """Build SKIPPED records, in rule order, for rules blocked by a failed dependency."""
        records = []
        for rule in self.rules:
            node = graph.get(rule.id)
            if node.state is not TargetState.SKIPPED:
                continue

            blocked_by = node.blocked_by
            verb = "failed" if graph.get(blocked_by).state is TargetState.FAILED else "was skipped"  # type: ignore[arg-type]
            records.append(
                RuleRecord(
                    rule_id=rule.id,
                    target_name=target.name,
                    outcome=RuleOutcome.SKIPPED,
                    level=rule.level,
                    synopsis=rule.synopsis,
                    reason=f"Dependency {blocked_by} {verb}",
                    metadata={"blocked_by": blocked_by},
                )
            )

            if self.metrics:
                self.metrics.count_rule(rule.id, RuleOutcome.SKIPPED.value)

        if records:
            logger.debug("Rules skipped due to dependency failure", count=len(records))
        return records
