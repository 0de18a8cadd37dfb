from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from autoheal.core.exceptions import AIProtocolError, AIUnavailable, SelectorValidationError
from autoheal.core.metadata import AISuggestion, FailureDiagnosis, Locator, ScreenshotAnalysis
from autoheal.llm.parser import ParseFailure, extract_json_payload, parse_locator
from autoheal.llm.prompts import (
    SYSTEM_PROMPT,
    build_failure_prompt,
    build_heal_prompt,
    build_screenshot_prompt,
    build_suggest_prompt,
)
from autoheal.utils.markup import excerpt_markup

log = logging.getLogger(__name__)

VISION_FALLBACK = ScreenshotAnalysis(
    matches=True,
    confidence=0.5,
    observations=["Vision analysis skipped - provider has no vision capability"],
)


class _Response(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    confidence: float = 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value: Any) -> float:
        if value is None:
            return 0.0
        return min(max(float(value), 0.0), 1.0)


class SuggestResponse(_Response):
    primary_selector: str | None = Field(default=None, alias="primarySelector")
    fallback_selectors: list[str] = Field(default_factory=list, alias="fallbackSelectors")
    reasoning: str = ""


class HealResponse(_Response):
    diagnosis: str = ""
    new_selectors: list[str] = Field(default_factory=list, alias="newSelectors")
    robust_strategy: str = Field(default="", alias="robustStrategy")


class ScreenshotResponse(_Response):
    matches: bool
    observations: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class FailureResponse(_Response):
    root_cause: str = Field(alias="rootCause")
    category: str = "unknown"
    recommendations: list[str] = Field(default_factory=list)
    is_flaky: bool = Field(default=False, alias="isFlaky")


class AISuggestionAdapter:
    """Turns page markup and an element description into selector suggestions."""

    def __init__(
        self,
        client,
        *,
        max_markup_chars: int = 10000,
        max_tokens: int = 1000,
        temperature: float = 0.1,
    ) -> None:
        self.client = client
        self.max_markup_chars = max_markup_chars
        self.max_tokens = max_tokens
        self.temperature = temperature

    def suggest(self, page_markup: str, description: str) -> AISuggestion:
        log.info("AI finding element: %s", description)
        prompt = build_suggest_prompt(excerpt_markup(page_markup, self.max_markup_chars), description)
        response = self._request(prompt, SuggestResponse)
        primary = [response.primary_selector] if response.primary_selector else []
        locators = self._locators(primary + response.fallback_selectors)
        suggestion = AISuggestion(
            primary_locator=locators[0] if locators else None,
            fallback_locators=locators[1:],
            confidence=response.confidence,
            reasoning=response.reasoning,
        )
        log.info("AI suggested %s with %.2f confidence", suggestion.primary_locator, suggestion.confidence)
        return suggestion

    def heal(self, page_markup: str, failed_locator: Locator, description: str) -> AISuggestion:
        log.info("AI self-healing for: %s (failed %s)", description, failed_locator)
        prompt = build_heal_prompt(
            excerpt_markup(page_markup, self.max_markup_chars),
            failed_locator.value,
            description,
        )
        response = self._request(prompt, HealResponse)
        locators = self._locators(response.new_selectors)
        return AISuggestion(
            primary_locator=locators[0] if locators else None,
            fallback_locators=locators[1:],
            confidence=response.confidence,
            diagnosis=response.diagnosis,
            reasoning=response.robust_strategy,
        )

    def analyze_screenshot(self, screenshot: bytes, expected_state: str) -> ScreenshotAnalysis:
        try:
            supports_vision = self.client.supports_vision
        except AIUnavailable as exc:
            log.warning("Vision analysis skipped: %s", exc)
            return VISION_FALLBACK
        if not supports_vision:
            log.warning("Vision analysis not supported by %s - skipping", self.client.provider_name)
            return VISION_FALLBACK
        try:
            text = self.client.complete_with_image(
                build_screenshot_prompt(expected_state),
                screenshot,
                max_tokens=self.max_tokens,
            )
        except AIUnavailable:
            raise
        except Exception as exc:
            raise AIUnavailable(f"Screenshot analysis failed: {exc}") from exc
        response = self._validate(text, ScreenshotResponse)
        log.info("Visual validation: %s (%.2f confidence)", "PASS" if response.matches else "FAIL", response.confidence)
        return ScreenshotAnalysis(
            matches=response.matches,
            confidence=response.confidence,
            observations=response.observations,
            issues=response.issues,
            suggestions=response.suggestions,
        )

    def analyze_failure(self, test_name: str, error_text: str) -> FailureDiagnosis | None:
        """Best-effort diagnosis of a failed test; never raises."""

        try:
            response = self._request(build_failure_prompt(test_name, error_text[:4000]), FailureResponse)
        except AIUnavailable as exc:
            log.error("Failure analysis error: %s", exc)
            return None
        return FailureDiagnosis(
            root_cause=response.root_cause,
            category=response.category,
            recommendations=response.recommendations,
            is_flaky=response.is_flaky,
            confidence=response.confidence,
        )

    def _request(self, prompt: str, model: type[_Response]):
        try:
            text = self.client.complete(
                prompt,
                system=SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except AIUnavailable:
            raise
        except Exception as exc:
            raise AIUnavailable(f"AI backend call failed: {exc}") from exc
        return self._validate(text, model)

    @staticmethod
    def _validate(text: str, model: type[_Response]):
        parsed = extract_json_payload(text)
        if isinstance(parsed, ParseFailure):
            raise AIProtocolError(f"AI response could not be parsed: {parsed.error}", parsed.raw_text)
        try:
            return model.model_validate(parsed.value)
        except ValidationError as exc:
            raise AIProtocolError(f"AI response has an unexpected shape: {exc}", text) from exc

    @staticmethod
    def _locators(selectors: list[str]) -> tuple[Locator, ...]:
        locators: list[Locator] = []
        for selector in selectors:
            try:
                locator = parse_locator(selector)
            except SelectorValidationError as exc:
                log.warning("Dropping unusable AI selector %r: %s", selector, exc)
                continue
            if locator not in locators:
                locators.append(locator)
        return tuple(locators)
