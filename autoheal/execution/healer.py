from __future__ import annotations

import ast
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from autoheal.core.exceptions import AIUnavailable, HealingProtocolFailure
from autoheal.execution.classifier import FailureAnalysis
from autoheal.llm.parser import ParsedPayload, extract_json_payload, strip_code_fences
from autoheal.llm.prompts import (
    ANALYSIS_MARKERS,
    SCRIPT_HEALER_SYSTEM_PROMPT,
    build_regeneration_prompt,
    build_script_heal_prompt,
    fixes_for,
)

log = logging.getLogger(__name__)

_PYTHON_TEST = re.compile(r"^\s*(async\s+)?def test", re.MULTILINE)


@dataclass(slots=True)
class HealingPatch:
    code: str
    categories: list[str]
    fixes_applied: list[str]
    regenerated: bool = False
    analysis: dict[str, Any] = field(default_factory=dict)


def looks_like_analysis(text: str) -> bool:
    """Detects diagnosis-shaped JSON returned where code was requested."""

    stripped = text.strip()
    return stripped.startswith("{") and any(marker in stripped for marker in ANALYSIS_MARKERS)


class ScriptHealer:
    """Asks the AI backend to patch a failing test script and insists on runnable code."""

    def __init__(self, client, *, language: str = "python", max_tokens: int = 3000) -> None:
        self.client = client
        self.language = language
        self.max_tokens = max_tokens

    def heal(
        self,
        script: str,
        failure_output: str,
        analysis: FailureAnalysis,
        requirements: str = "",
        attempt: int = 1,
    ) -> HealingPatch:
        categories = [category.value for category in analysis.categories]
        log.info("Healing script (attempt %d) for categories: %s", attempt, ", ".join(categories) or "unknown")
        response = self._complete(
            build_script_heal_prompt(
                script=script,
                failure_output=failure_output,
                categories=categories,
                failure_lines=analysis.as_payload(),
                requirements=requirements,
                attempt=attempt,
                language=self.language,
            )
        )
        code, payload = self._extract_code(response)
        patch = HealingPatch(code=code or "", categories=categories, fixes_applied=fixes_for(categories), analysis=payload)
        if code and self.is_runnable(code):
            return patch

        log.warning("Healer returned analysis instead of code, requesting a strict regeneration")
        analysis_text = json.dumps(payload, indent=2) if payload else response
        regenerated = self._complete(
            build_regeneration_prompt(
                analysis=analysis_text,
                categories=categories,
                requirements=requirements,
                language=self.language,
            )
        )
        code, _ = self._extract_code(regenerated)
        if not code or not self.is_runnable(code):
            raise HealingProtocolFailure(
                "Healer persistently returns analysis instead of runnable code",
                raw_text=regenerated.strip(),
            )
        patch.code = code
        patch.regenerated = True
        return patch

    def is_runnable(self, code: str) -> bool:
        if looks_like_analysis(code):
            return False
        if self.language == "javascript":
            return "test(" in code or "test.describe(" in code
        try:
            ast.parse(code)
        except SyntaxError:
            return False
        return bool(_PYTHON_TEST.search(code))

    def _complete(self, prompt: str) -> str:
        try:
            return self.client.complete(
                prompt,
                system=SCRIPT_HEALER_SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
                temperature=0.1,
            )
        except AIUnavailable:
            raise
        except Exception as exc:
            raise AIUnavailable(f"Healer call failed: {exc}") from exc

    @staticmethod
    def _extract_code(response: str) -> tuple[str | None, dict[str, Any]]:
        """Returns (code, analysis payload) from a healer response."""

        body = response.strip()
        if not body.startswith("{"):
            body = strip_code_fences(body)
        if body.startswith("{"):
            parsed = extract_json_payload(body)
            if isinstance(parsed, ParsedPayload):
                payload = parsed.value
                if isinstance(payload.get("fixedCode"), str):
                    return strip_code_fences(payload["fixedCode"]), payload
                solutions = payload.get("solutions")
                if isinstance(solutions, list) and solutions:
                    first = solutions[0]
                    code = first.get("code") if isinstance(first, dict) else first
                    if isinstance(code, str):
                        return strip_code_fences(code), payload
                return None, payload
        return body, {}
