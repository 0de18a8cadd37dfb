from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from autoheal.core.exceptions import AIUnavailable, ExecutionFailure, HealingProtocolFailure
from autoheal.execution.classifier import RunSummary, classify_failures, parse_run_summary
from autoheal.execution.healer import HealingPatch

log = logging.getLogger(__name__)


class ExecutionOutcome(str, Enum):
    PASSED = "passed"
    HEALED_AND_PASSED = "healed-and-passed"
    FAILED = "failed"
    HEALED_STILL_FAILING = "healed-still-failing"
    HEALING_FAILED = "healing-failed"


@dataclass(slots=True)
class ExecutionAttempt:
    number: int
    passed: int
    failed: int
    total: int
    exit_code: int
    output: str
    healing_applied: bool
    categories: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.failed == 0 and self.exit_code == 0


@dataclass(slots=True)
class ExecutionReport:
    script_path: str
    outcome: ExecutionOutcome
    attempts: list[ExecutionAttempt]
    patches: list[HealingPatch] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome in (ExecutionOutcome.PASSED, ExecutionOutcome.HEALED_AND_PASSED)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def healing_applied(self) -> bool:
        return bool(self.patches)

    @property
    def diagnostics(self) -> list[str]:
        seen: list[str] = []
        for attempt in self.attempts:
            for category in attempt.categories:
                if category not in seen:
                    seen.append(category)
        return seen


class SelfHealingExecutionLoop:
    """Runs a test script, heals it on failure, and stops after a fixed attempt budget."""

    def __init__(self, runner, healer, *, max_attempts: int = 2, artifact_manager=None) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.runner = runner
        self.healer = healer
        self.max_attempts = max_attempts
        self.artifact_manager = artifact_manager

    def run(self, script_path: str | Path, requirements: str = "") -> ExecutionReport:
        path = Path(script_path)
        report = ExecutionReport(script_path=str(path), outcome=ExecutionOutcome.FAILED, attempts=[])
        for number in range(1, self.max_attempts + 1):
            log.info("Attempt %d/%d for %s", number, self.max_attempts, path)
            result = self.runner.run(path)
            output = result.output
            summary: RunSummary = parse_run_summary(output)
            analysis = classify_failures(output)
            attempt = ExecutionAttempt(
                number=number,
                passed=summary.passed,
                failed=summary.failed,
                total=summary.total,
                exit_code=result.exit_code,
                output=output,
                healing_applied=report.healing_applied,
                categories=[category.value for category in analysis.categories],
            )
            report.attempts.append(attempt)
            if self.artifact_manager is not None:
                self.artifact_manager.write_run_log(f"{path.stem}_attempt_{number}", output)

            if attempt.succeeded:
                report.outcome = (
                    ExecutionOutcome.HEALED_AND_PASSED if report.healing_applied else ExecutionOutcome.PASSED
                )
                log.info("%d/%d tests passed on attempt %d", summary.passed, summary.total, number)
                return report

            log.info("Attempt %d failed: %d/%d tests failed", number, summary.failed, summary.total)
            if number >= self.max_attempts:
                report.outcome = (
                    ExecutionOutcome.HEALED_STILL_FAILING if report.healing_applied else ExecutionOutcome.FAILED
                )
                report.error = f"Tests failed after {number} attempts"
                log.info("Max attempts reached, returning failure")
                raise ExecutionFailure(report.error, report)

            try:
                patch = self.healer.heal(
                    path.read_text(encoding="utf-8"),
                    output,
                    analysis,
                    requirements,
                    attempt=number,
                )
            except HealingProtocolFailure as exc:
                report.outcome = ExecutionOutcome.HEALING_FAILED
                report.error = str(exc)
                exc.report = report
                raise
            except AIUnavailable as exc:
                report.outcome = ExecutionOutcome.HEALING_FAILED
                report.error = f"Self-healing failed: {exc}"
                raise ExecutionFailure(report.error, report) from exc

            path.write_text(patch.code, encoding="utf-8")
            report.patches.append(patch)
            log.info("Saved healed script %s (%s)", path, "; ".join(patch.fixes_applied) or "no fixes listed")
