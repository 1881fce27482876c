"""Unit tests for RuleRunner."""

import pytest

from src.rulegraph.config import ExecutionConfig, FailurePolicy
from src.rulegraph.execution.runner import RuleRunner
from src.rulegraph.models.results import RuleOutcome
from src.rulegraph.observability.metrics import MetricsCollector
from src.rulegraph.utils.exceptions import CyclicDependencyError, UnresolvedDependencyError


def outcomes(target_result):
    return {record.rule_id: record.outcome for record in target_result.records}


class TestRuleRunner:
    """Test RuleRunner class."""

    def test_all_rules_pass(self, make_rule, make_target):
        """Test a clean run."""
        rules = [make_rule("A"), make_rule("B", depends_on=["A"])]

        result = RuleRunner(rules).run([make_target({})])

        assert result.passed == 2
        assert result.is_complete_success
        assert [r.rule_id for r in result.results[0].records] == ["A", "B"]
        assert result.started_at is not None
        assert result.completed_at >= result.started_at

    def test_dependencies_run_first(self, make_rule, make_target):
        """Test that rules run after the rules they depend on, whatever the input order."""
        rules = [make_rule("C", depends_on=["B"]), make_rule("B", depends_on=["A"]), make_rule("A")]

        result = RuleRunner(rules).run([make_target({})])

        assert [r.rule_id for r in result.results[0].records] == ["A", "B", "C"]

    def test_failure_skips_dependents(self, make_rule, make_target):
        """Test that a failed rule skips its dependents and their dependents."""
        rules = [
            make_rule("A", condition=lambda obj: False),
            make_rule("B", depends_on=["A"]),
            make_rule("C", depends_on=["B"]),
            make_rule("D"),
        ]

        result = RuleRunner(rules).run([make_target({})])
        records = {r.rule_id: r for r in result.results[0].records}

        assert outcomes(result.results[0]) == {
            "A": RuleOutcome.FAIL,
            "B": RuleOutcome.SKIPPED,
            "C": RuleOutcome.SKIPPED,
            "D": RuleOutcome.PASS,
        }
        assert records["B"].reason == "Dependency A failed"
        assert records["B"].metadata == {"blocked_by": "A"}
        assert records["C"].reason == "Dependency B was skipped"
        assert records["C"].duration_ms is None
        # Skipped records come after evaluated ones
        assert [r.rule_id for r in result.results[0].records] == ["A", "D", "B", "C"]

    def test_skips_are_per_target(self, make_rule, make_target):
        """Test that a failure for one object does not skip rules for the next."""
        rules = [make_rule("A", condition=lambda obj: obj["ok"]), make_rule("B", depends_on=["A"])]

        result = RuleRunner(rules).run([make_target({"ok": False}, "bad"), make_target({"ok": True}, "good")])

        assert outcomes(result.results[0]) == {"A": RuleOutcome.FAIL, "B": RuleOutcome.SKIPPED}
        assert outcomes(result.results[1]) == {"A": RuleOutcome.PASS, "B": RuleOutcome.PASS}

    def test_not_applicable_does_not_block(self, make_rule, make_target):
        """Test that a rule whose precondition is false lets dependents run."""
        rules = [
            make_rule("A", condition=lambda obj: False, where=lambda obj: False),
            make_rule("B", depends_on=["A"]),
        ]

        result = RuleRunner(rules).run([make_target({})])

        assert outcomes(result.results[0]) == {"A": RuleOutcome.NONE, "B": RuleOutcome.PASS}
        assert result.not_applicable == 1

    def test_exception_becomes_error(self, make_rule, make_target):
        """Test that a raising rule is recorded as ERROR and skips dependents."""
        rules = [
            make_rule("A", condition=lambda obj: obj["missing"]),
            make_rule("B", depends_on=["A"]),
            make_rule("C"),
        ]

        result = RuleRunner(rules).run([make_target({})])
        error = result.results[0].records[0]

        assert error.outcome is RuleOutcome.ERROR
        assert error.error_message == "KeyError: 'missing'"
        assert outcomes(result.results[0])["B"] is RuleOutcome.SKIPPED
        assert outcomes(result.results[0])["C"] is RuleOutcome.PASS
        assert result.results[0].outcome is RuleOutcome.ERROR

    def test_recommend_on_failure(self, make_rule, make_target):
        rule = make_rule("A", condition=lambda obj: obj["ok"])
        rule.recommend = "Set ok"

        result = RuleRunner([rule]).run([make_target({"ok": False}), make_target({"ok": True})])

        assert result.results[0].records[0].metadata == {"recommend": "Set ok"}
        assert result.results[1].records[0].metadata == {}

    def test_fail_fast_stops_run(self, make_rule, make_target):
        """Test that fail-fast stops at the first failure."""
        rules = [make_rule("A", condition=lambda obj: obj["ok"]), make_rule("B")]
        config = ExecutionConfig(failure_policy=FailurePolicy.FAIL_FAST)

        result = RuleRunner(rules, config).run(
            [make_target({"ok": True}, "first"), make_target({"ok": False}, "second"), make_target({"ok": True}, "third")]
        )

        assert result.aborted is True
        assert [t.target_name for t in result.results] == ["first", "second"]
        assert outcomes(result.results[1]) == {"A": RuleOutcome.FAIL}
        assert not result.is_complete_success

    def test_targets_are_consumed_lazily(self, make_rule, make_target):
        """Test that fail-fast does not read objects past the failure."""
        consumed = []

        def stream():
            for name in ("first", "second", "third"):
                consumed.append(name)
                yield make_target({"ok": name != "first"}, name)

        config = ExecutionConfig(failure_policy="fail_fast")
        RuleRunner([make_rule("A", condition=lambda obj: obj["ok"])], config).run(stream())

        assert consumed == ["first"]

    def test_no_targets(self, make_rule):
        result = RuleRunner([make_rule("A")]).run([])

        assert result.results == []
        assert result.rule_count == 1

    def test_cycle_raises_before_evaluation(self, make_rule, make_target):
        """Test that cyclic rules are rejected before any rule runs."""
        called = []
        rules = [
            make_rule("A", condition=lambda obj: called.append("A") or True, depends_on=["B"]),
            make_rule("B", depends_on=["A"]),
        ]

        with pytest.raises(CyclicDependencyError):
            RuleRunner(rules).run([make_target({})])

        assert called == []

    def test_unknown_dependency(self, make_rule, make_target):
        rules = [make_rule("A", depends_on=["Ghost"])]

        with pytest.raises(UnresolvedDependencyError):
            RuleRunner(rules).run([make_target({})])


class TestRunnerMetrics:
    """Test metrics recorded by RuleRunner."""

    def test_metrics_enabled_by_default(self, make_rule):
        assert isinstance(RuleRunner([make_rule("A")]).metrics, MetricsCollector)

    def test_metrics_disabled(self, make_rule):
        assert RuleRunner([make_rule("A")], ExecutionConfig(enable_metrics=False)).metrics is None

    def test_outcomes_are_counted(self, make_rule, make_target):
        """Test that every record, including skipped ones, is counted."""
        metrics = MetricsCollector()
        rules = [make_rule("A", condition=lambda obj: obj["ok"]), make_rule("B", depends_on=["A"])]

        RuleRunner(rules, metrics=metrics).run([make_target({"ok": False}), make_target({"ok": True})])

        assert metrics.outcome_totals() == {"fail": 1, "skipped": 1, "pass": 2}
        summary = metrics.get_summary()
        assert summary["gauges"] == {"run_targets": 2.0, "run_rules": 2.0}
        assert summary["timings"]["rule_evaluation_duration_ms[rule=A]"]["count"] == 2
        assert summary["timings"]["rule_evaluation_duration_ms[rule=B]"]["count"] == 1

