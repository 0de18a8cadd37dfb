from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class FailureCategory(str, Enum):
    SELECTOR_TIMEOUT = "selector-timeout"
    SELECTOR_NOT_FOUND = "selector-not-found"
    STRICT_MODE = "strict-mode-violation"
    TEXT_MISMATCH = "text-mismatch"
    NAVIGATION_TIMEOUT = "navigation-timeout"
    STYLE_ASSERTION = "style-assertion-mismatch"


PATTERNS = {
    FailureCategory.SELECTOR_TIMEOUT: re.compile(
        r"Timeout.*waiting for (selector|locator)|TimeoutException.*(element|locator|selector)",
        re.IGNORECASE,
    ),
    FailureCategory.SELECTOR_NOT_FOUND: re.compile(
        r"locator\('([^']+)'\).*not found|NoSuchElementException|Unable to locate element|ElementNotResolvable",
        re.IGNORECASE,
    ),
    FailureCategory.STRICT_MODE: re.compile(r"strict mode violation.*resolved to (\d+) elements", re.IGNORECASE),
    FailureCategory.TEXT_MISMATCH: re.compile(
        r"expected.*to contain.*but received|AssertionError: assert .+ in .+",
        re.IGNORECASE,
    ),
    FailureCategory.NAVIGATION_TIMEOUT: re.compile(
        r"Navigation|net::ERR_|timeout.*navigation|Timeout.*goto|page load timeout",
        re.IGNORECASE,
    ),
    FailureCategory.STYLE_ASSERTION: re.compile(r"toHaveCSS|font-size|font-family|value_of_css_property"),
}

# Order used to pick a single headline category for the healer.
PRIMARY_ORDER = (
    FailureCategory.STRICT_MODE,
    FailureCategory.NAVIGATION_TIMEOUT,
    FailureCategory.SELECTOR_TIMEOUT,
    FailureCategory.SELECTOR_NOT_FOUND,
    FailureCategory.STYLE_ASSERTION,
    FailureCategory.TEXT_MISMATCH,
)


@dataclass(slots=True)
class FailureAnalysis:
    lines: dict[FailureCategory, list[str]] = field(default_factory=dict)

    @property
    def categories(self) -> list[FailureCategory]:
        return [category for category in FailureCategory if self.lines.get(category)]

    @property
    def primary(self) -> str:
        for category in PRIMARY_ORDER:
            if self.lines.get(category):
                return category.value
        return "unknown"

    def as_payload(self) -> dict[str, list[str]]:
        return {category.value: list(self.lines[category]) for category in self.categories}


@dataclass(frozen=True, slots=True)
class RunSummary:
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration: float = 0.0

    @property
    def total(self) -> int:
        return self.passed + self.failed


def classify_failures(output: str) -> FailureAnalysis:
    """Best-effort categorisation of raw runner output; unmatched lines are ignored."""

    analysis = FailureAnalysis()
    for raw_line in (output or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        for category, pattern in PATTERNS.items():
            if pattern.search(line):
                analysis.lines.setdefault(category, []).append(line)
    return analysis


def parse_run_summary(output: str) -> RunSummary:
    if not output:
        return RunSummary()
    duration = re.search(r"\bin (\d+(?:\.\d+)?)s\b", output) or re.search(r"\((\d+(?:\.\d+)?)s\)", output)
    return RunSummary(
        passed=_count(r"(\d+) passed", output),
        failed=_count(r"(\d+) failed", output),
        skipped=_count(r"(\d+) skipped", output),
        duration=float(duration.group(1)) if duration else 0.0,
    )


def _count(pattern: str, output: str) -> int:
    matches = re.findall(pattern, output)
    return int(matches[-1]) if matches else 0
