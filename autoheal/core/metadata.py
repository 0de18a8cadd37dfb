from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Union

from selenium.webdriver.common.by import By

CSS = "css"
XPATH = "xpath"


def infer_selector_type(selector: str) -> str:
    stripped = selector.strip()
    if stripped.startswith("/") or stripped.startswith("("):
        return XPATH
    return CSS


@dataclass(frozen=True, slots=True)
class Locator:
    kind: str
    value: str

    @classmethod
    def css(cls, value: str) -> Locator:
        return cls(CSS, value)

    @classmethod
    def xpath(cls, value: str) -> Locator:
        return cls(XPATH, value)

    @classmethod
    def from_selector(cls, selector: str) -> Locator:
        """Builds a locator from a raw selector, inferring CSS or XPath."""

        stripped = selector.strip()
        return cls(infer_selector_type(stripped), stripped)

    @property
    def by(self) -> str:
        return By.XPATH if self.kind == XPATH else By.CSS_SELECTOR

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Found:
    element: Any
    locator: Locator
    match_count: int = 1


@dataclass(frozen=True, slots=True)
class NotFound:
    locator: Locator
    reason: str = "timeout"


ProbeResult = Union[Found, NotFound]


@dataclass(frozen=True, slots=True)
class StrategyMatch:
    strategy: str
    found: Found

    @property
    def locator(self) -> Locator:
        return self.found.locator

    @property
    def element(self) -> Any:
        return self.found.element


@dataclass(frozen=True, slots=True)
class AISuggestion:
    primary_locator: Locator | None
    fallback_locators: tuple[Locator, ...] = ()
    confidence: float = 0.0
    diagnosis: str | None = None
    reasoning: str = ""

    @property
    def candidates(self) -> list[Locator]:
        ordered = [self.primary_locator] if self.primary_locator else []
        ordered.extend(self.fallback_locators)
        return ordered


@dataclass(frozen=True, slots=True)
class ScreenshotAnalysis:
    matches: bool
    confidence: float
    observations: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class FailureDiagnosis:
    root_cause: str
    category: str
    recommendations: list[str] = field(default_factory=list)
    is_flaky: bool = False
    confidence: float = 0.0


@dataclass(slots=True)
class HealingRecord:
    element_description: str
    old_locator: Locator | None
    new_locator: Locator | None
    strategy: str
    success: bool
    confidence: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "element_description": self.element_description,
            "old_selector": self.old_locator.value if self.old_locator else None,
            "new_selector": self.new_locator.value if self.new_locator else None,
            "strategy": self.strategy,
            "success": self.success,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> HealingRecord:
        old_selector = payload.get("old_selector")
        new_selector = payload.get("new_selector")
        return cls(
            element_description=payload["element_description"],
            old_locator=Locator.from_selector(old_selector) if old_selector else None,
            new_locator=Locator.from_selector(new_selector) if new_selector else None,
            strategy=payload.get("strategy", "unknown"),
            success=bool(payload.get("success")),
            confidence=float(payload.get("confidence") or 0.0),
            timestamp=payload.get("timestamp") or datetime.now(UTC).isoformat(),
        )


@dataclass(frozen=True, slots=True)
class HealingStatistics:
    total: int
    successful: int
    failed: int
    success_rate: float
    strategy_counts: dict[str, int]
