"""Evaluation Report Generator.

Renders an EvaluationResult as JSON, YAML or a rich console table.
"""

import json
from pathlib import Path
from typing import Any

import structlog
import yaml
from rich.console import Console
from rich.table import Table

from ..models.results import EvaluationResult, RuleOutcome, RuleRecord

logger = structlog.get_logger(__name__)

REPORT_FORMATS = ("json", "yaml")

_OUTCOME_STYLES = {
    RuleOutcome.PASS: "green",
    RuleOutcome.FAIL: "red",
    RuleOutcome.ERROR: "bold red",
    RuleOutcome.NONE: "dim",
    RuleOutcome.SKIPPED: "yellow",
}


class ReportGenerator:
    """
    Generate reports for evaluation runs.

    Features:
    - Plain dict export (machine readable, stable key order)
    - JSON and YAML files or strings
    - Rich table output for terminals
    """

    def __init__(self, show_skipped: bool = True) -> None:
        """
        Initialize Report Generator.

        Args:
            show_skipped: Include SKIPPED records in table output
        """
        self.show_skipped = show_skipped

    def to_dict(self, result: EvaluationResult, metrics: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Convert a result to plain data.

        Args:
            result: Evaluation result
            metrics: Optional metrics summary to embed

        Returns:
            Dict with ``summary``, ``targets`` and optionally ``metrics``
        """
        report: dict[str, Any] = {
            "summary": {
                "targets": len(result.results),
                "rules": result.rule_count,
                "records": result.total_records,
                "passed": result.passed,
                "failed": result.failed,
                "errors": result.errors,
                "skipped": result.skipped,
                "not_applicable": result.not_applicable,
                "success_rate": round(result.success_rate, 2),
                "aborted": result.aborted,
                "started_at": result.started_at.isoformat() if result.started_at else None,
                "completed_at": result.completed_at.isoformat() if result.completed_at else None,
                "duration_seconds": result.duration_seconds,
            },
            "targets": [
                {
                    "name": target.target_name,
                    "source": target.source,
                    "outcome": target.outcome.value,
                    "records": [self._record_to_dict(record) for record in target.records],
                }
                for target in result.results
            ],
        }
        if metrics:
            report["metrics"] = metrics
        return report

    @staticmethod
    def _record_to_dict(record: RuleRecord) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rule": record.rule_id,
            "outcome": record.outcome.value,
            "level": record.level.value,
        }
        if record.synopsis:
            data["synopsis"] = record.synopsis
        if record.reason:
            data["reason"] = record.reason
        if record.error_message:
            data["error"] = record.error_message
        if record.duration_ms is not None:
            data["duration_ms"] = round(record.duration_ms, 3)
        if record.metadata:
            data["metadata"] = dict(record.metadata)
        return data

    def dumps(self, result: EvaluationResult, fmt: str, metrics: dict[str, Any] | None = None) -> str:
        """
        Serialize a result.

        Args:
            result: Evaluation result
            fmt: "json" or "yaml"
            metrics: Optional metrics summary to embed

        Returns:
            Serialized report

        Raises:
            ValueError: For unsupported formats
        """
        data = self.to_dict(result, metrics)
        if fmt == "json":
            return json.dumps(data, indent=2)
        if fmt == "yaml":
            return yaml.safe_dump(data, sort_keys=False)
        raise ValueError(f"Unsupported report format: {fmt} (expected one of {', '.join(REPORT_FORMATS)})")

    def write(
        self,
        result: EvaluationResult,
        fmt: str,
        output_path: Path,
        metrics: dict[str, Any] | None = None,
    ) -> None:
        """
        Write a JSON or YAML report to disk.

        Args:
            result: Evaluation result
            fmt: "json" or "yaml"
            output_path: Output file path; parent directories are created
            metrics: Optional metrics summary to embed
        """
        content = self.dumps(result, fmt, metrics)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8")

        logger.info("Report written", path=str(output_path), format=fmt)

    def build_table(self, result: EvaluationResult) -> Table:
        """Build a rich table with one row per rule record."""
        table = Table(title="Rule Results")
        table.add_column("Target", style="cyan")
        table.add_column("Rule")
        table.add_column("Outcome")
        table.add_column("Level")
        table.add_column("Detail")

        for target in result.results:
            for record in target.records:
                if record.outcome == RuleOutcome.SKIPPED and not self.show_skipped:
                    continue
                style = _OUTCOME_STYLES[record.outcome]
                table.add_row(
                    target.target_name,
                    record.rule_id,
                    f"[{style}]{record.outcome.value.upper()}[/{style}]",
                    record.level.value,
                    record.error_message or record.reason or record.synopsis or "",
                )
        return table

    def render_table(self, result: EvaluationResult, console: Console | None = None) -> None:
        """
        Print the results table and a summary line.

        Args:
            result: Evaluation result
            console: Console to print to (a new stdout console by default)
        """
        console = console or Console()
        console.print(self.build_table(result))

        summary_style = "green" if result.is_complete_success else "red"
        console.print(f"[{summary_style}]{result.get_summary()}[/{summary_style}]")
        if result.aborted:
            console.print("[yellow]Run stopped early (fail-fast)[/yellow]")
