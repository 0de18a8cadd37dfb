from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from selenium.common.exceptions import WebDriverException

from autoheal.config.schema import ResolverSettings
from autoheal.core.cache import ResolutionCache
from autoheal.core.exceptions import AIUnavailable, ElementNotResolvable, ResolutionCancelled
from autoheal.core.history import HealingHistory
from autoheal.core.metadata import AISuggestion, Found, HealingRecord, HealingStatistics, Locator
from autoheal.core.probe import LocatorProbe
from autoheal.core.strategies import StrategyPipeline, default_strategies

log = logging.getLogger(__name__)

AI_GENERATED = "ai-generated"
HISTORY_BASED = "history-based"
FAILED = "failed"
HISTORY_CONFIDENCE = 0.8


@dataclass(slots=True)
class _Resolution:
    description: str
    timeout_ms: int
    enable_ai: bool
    enable_self_healing: bool
    cancel_event: threading.Event | None
    attempted: list[str] = field(default_factory=list)
    evicted: Locator | None = None
    last_locator: Locator | None = None
    ai_error: Exception | None = None

    def checkpoint(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ResolutionCancelled(f"Resolution of '{self.description}' was cancelled")


class SelfHealingResolver:
    """Resolves natural-language element descriptions to live elements.

    Stages run strictly in order: cached locator, deterministic strategies,
    AI primary suggestion, AI fallbacks, then self-healing of a locator that
    was evicted during this resolution. The first visible match wins and is
    cached; every AI-assisted outcome is appended to the healing history.
    Resolutions are serialized per resolver because they share one page.
    """

    def __init__(
        self,
        driver,
        settings: ResolverSettings | None = None,
        *,
        adapter=None,
        history: HealingHistory | None = None,
        cache: ResolutionCache | None = None,
        pipeline: StrategyPipeline | None = None,
        artifact_manager=None,
    ) -> None:
        self.driver = driver
        self.settings = settings or ResolverSettings()
        self.adapter = adapter
        self.history = history if history is not None else HealingHistory()
        self.cache = cache if cache is not None else ResolutionCache()
        self.probe = LocatorProbe(driver, poll_interval=self.settings.poll_interval_seconds)
        self.pipeline = pipeline or StrategyPipeline(
            self.probe,
            default_strategies(self.settings.test_id_attribute),
        )
        self.artifact_manager = artifact_manager
        self._lock = threading.RLock()

    def resolve(
        self,
        description: str,
        *,
        timeout_ms: int | None = None,
        enable_ai: bool | None = None,
        enable_self_healing: bool | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Any:
        state = _Resolution(
            description=description,
            timeout_ms=self.settings.timeout_ms if timeout_ms is None else timeout_ms,
            enable_ai=self.settings.enable_ai if enable_ai is None else enable_ai,
            enable_self_healing=(
                self.settings.enable_self_healing if enable_self_healing is None else enable_self_healing
            ),
            cancel_event=cancel_event,
        )
        log.info("Finding element: %s", description)
        with self._lock:
            for stage in (self._from_cache, self._from_strategies, self._from_ai, self._from_self_heal):
                state.checkpoint()
                element = stage(state)
                if element is not None:
                    return element
            return self._exhausted(state)

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_healing_statistics(self) -> HealingStatistics:
        return self.history.statistics()

    def _from_cache(self, state: _Resolution) -> Any:
        cached = self.cache.get(state.description)
        if cached is None:
            return None
        state.attempted.append("cache")
        found = self._probe(state, cached, state.timeout_ms)
        if found is not None:
            log.info("Element found using cached selector: %s", cached)
            return found.element
        log.warning("Cached selector %s failed, evicting it for: %s", cached, state.description)
        self.cache.evict(state.description)
        state.evicted = cached
        return None

    def _from_strategies(self, state: _Resolution) -> Any:
        state.attempted.extend(strategy.name for strategy in self.pipeline.strategies)
        match = self.pipeline.resolve(state.description, state.timeout_ms)
        if match is None:
            return None
        self.cache.put(state.description, match.locator)
        return match.element

    def _from_ai(self, state: _Resolution) -> Any:
        if not state.enable_ai or self.adapter is None:
            return None
        state.attempted.append("ai-suggestion")
        try:
            suggestion = self.adapter.suggest(self._capture_page(state.description), state.description)
        except AIUnavailable as exc:
            log.error("AI finding failed for '%s': %s", state.description, exc)
            state.ai_error = exc
            return None
        found = self._first_found(state, suggestion.candidates, state.timeout_ms)
        if found is None:
            return None
        if found.locator != suggestion.primary_locator:
            log.info("Element found using fallback selector: %s", found.locator)
        return self._healed(state, found, AI_GENERATED, suggestion.confidence)

    def _from_self_heal(self, state: _Resolution) -> Any:
        if not state.enable_self_healing or state.evicted is None:
            return None
        log.info("Attempting self-healing for: %s", state.description)
        state.attempted.append("healing-history")
        previous = self.history.find_previous_heal(state.description, state.evicted)
        if previous is not None:
            log.info("Found similar healing case, trying selector: %s", previous.new_locator)
            found = self._probe(state, previous.new_locator, self.settings.healing_timeout_ms)
            if found is not None:
                return self._healed(state, found, HISTORY_BASED, HISTORY_CONFIDENCE)
        if not state.enable_ai or self.adapter is None:
            return None
        state.checkpoint()
        state.attempted.append("ai-healing")
        try:
            suggestion: AISuggestion = self.adapter.heal(
                self._capture_page(state.description),
                state.evicted,
                state.description,
            )
        except AIUnavailable as exc:
            log.error("Self-healing error for '%s': %s", state.description, exc)
            state.ai_error = exc
            return None
        if suggestion.diagnosis:
            log.info("Healing diagnosis for '%s': %s", state.description, suggestion.diagnosis)
        found = self._first_found(state, suggestion.candidates, self.settings.healing_timeout_ms)
        if found is None:
            return None
        log.info("Self-healing successful with: %s", found.locator)
        return self._healed(state, found, AI_GENERATED, suggestion.confidence)

    def _exhausted(self, state: _Resolution) -> Any:
        self.history.record(
            HealingRecord(
                element_description=state.description,
                old_locator=state.evicted,
                new_locator=None,
                strategy=FAILED,
                success=False,
                confidence=0.0,
            )
        )
        raise ElementNotResolvable(state.description, state.attempted, state.last_locator, state.ai_error)

    def _healed(self, state: _Resolution, found: Found, strategy: str, confidence: float) -> Any:
        self.cache.put(state.description, found.locator)
        self.history.record(
            HealingRecord(
                element_description=state.description,
                old_locator=state.evicted,
                new_locator=found.locator,
                strategy=strategy,
                success=True,
                confidence=confidence,
            )
        )
        return found.element

    def _first_found(self, state: _Resolution, candidates: list[Locator], timeout_ms: int) -> Found | None:
        for locator in candidates:
            found = self._probe(state, locator, timeout_ms)
            if found is not None:
                return found
        return None

    def _probe(self, state: _Resolution, locator: Locator, timeout_ms: int) -> Found | None:
        state.last_locator = locator
        result = self.probe.probe(locator, timeout_ms)
        return result if isinstance(result, Found) else None

    def _capture_page(self, description: str) -> str:
        try:
            page_source = self.driver.page_source
        except WebDriverException as exc:
            log.warning("Could not read page source for '%s': %s", description, exc)
            return ""
        if self.artifact_manager is not None:
            timestamp = self.artifact_manager.timestamp()
            self.artifact_manager.write_dom_snapshot(description, page_source, timestamp)
            screenshot_path = self.artifact_manager.screenshot_path(description, timestamp)
            try:
                self.driver.save_screenshot(str(screenshot_path))
            except WebDriverException as exc:
                log.warning("Could not capture screenshot for '%s': %s", description, exc)
        return page_source
