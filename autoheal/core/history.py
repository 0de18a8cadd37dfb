from __future__ import annotations

import logging
import threading
from collections import Counter

from autoheal.core.metadata import HealingRecord, HealingStatistics, Locator

log = logging.getLogger(__name__)


class HealingHistory:
    """Append-only record of healing outcomes, optionally persisted."""

    def __init__(self, audit_logger=None) -> None:
        self.audit_logger = audit_logger
        self._lock = threading.Lock()
        self._records: list[HealingRecord] = audit_logger.read() if audit_logger else []
        if self._records:
            log.info("Loaded %d healing records", len(self._records))

    @property
    def records(self) -> list[HealingRecord]:
        with self._lock:
            return list(self._records)

    def record(self, record: HealingRecord) -> HealingRecord:
        with self._lock:
            self._records.append(record)
        if self.audit_logger is not None:
            try:
                self.audit_logger.write(record)
            except OSError as exc:
                log.error("Failed to save healing history: %s", exc)
        log.info(
            "Healing recorded for '%s': %s -> %s (%s)",
            record.element_description,
            record.old_locator,
            record.new_locator,
            record.strategy,
        )
        return record

    def find_previous_heal(self, description: str, old_locator: Locator) -> HealingRecord | None:
        """Returns the most recent successful heal of this exact description and locator."""

        wanted = description.strip().casefold()
        with self._lock:
            for record in reversed(self._records):
                if (
                    record.success
                    and record.new_locator is not None
                    and record.old_locator == old_locator
                    and record.element_description.strip().casefold() == wanted
                ):
                    return record
        return None

    def statistics(self) -> HealingStatistics:
        records = self.records
        total = len(records)
        successful = sum(1 for record in records if record.success)
        return HealingStatistics(
            total=total,
            successful=successful,
            failed=total - successful,
            success_rate=round(successful / total * 100, 2) if total else 0.0,
            strategy_counts=dict(Counter(record.strategy for record in records)),
        )

    def recommendations(self, limit: int = 5) -> list[str]:
        failures = Counter(
            record.old_locator.value
            for record in self.records
            if not record.success and record.old_locator is not None
        )
        return [
            f"Review selector `{selector}` (failed {count} times) - consider a more robust locator strategy"
            for selector, count in failures.most_common(limit)
        ]

    def render_report(self, recent: int = 10) -> str:
        stats = self.statistics()
        lines = [
            "# Self-Healing Report",
            "",
            "## Statistics",
            f"- Total Healing Attempts: {stats.total}",
            f"- Successful Healings: {stats.successful}",
            f"- Failed Healings: {stats.failed}",
            f"- Success Rate: {stats.success_rate:.2f}%",
            "",
            "## Healing Strategies Used",
        ]
        lines.extend(f"- {strategy}: {count}" for strategy, count in stats.strategy_counts.items())
        lines.extend(["", "## Recent Healing Events"])
        for record in reversed(self.records[-recent:]):
            lines.extend(
                [
                    "",
                    f"### {record.element_description}",
                    f"- Status: {'Success' if record.success else 'Failed'}",
                    f"- Old Selector: `{record.old_locator or 'N/A'}`",
                    f"- New Selector: `{record.new_locator or 'N/A'}`",
                    f"- Strategy: {record.strategy}",
                    f"- Confidence: {record.confidence * 100:.0f}%",
                    f"- Date: {record.timestamp}",
                ]
            )
        lines.extend(["", "## Recommendations"])
        recommendations = self.recommendations() or ["No significant issues detected. Continue monitoring."]
        lines.extend(f"- {item}" for item in recommendations)
        return "\n".join(lines) + "\n"
