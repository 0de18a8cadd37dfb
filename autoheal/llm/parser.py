from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Union

from autoheal.core.exceptions import SelectorValidationError
from autoheal.core.metadata import Locator, infer_selector_type

_FENCED_BLOCK = re.compile(r"```[a-zA-Z]*\s*\n?(.*?)```", re.DOTALL)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(frozen=True, slots=True)
class ParsedPayload:
    value: dict[str, Any]
    ok: bool = True


@dataclass(frozen=True, slots=True)
class ParseFailure:
    error: str
    raw_text: str
    ok: bool = False


ParseResult = Union[ParsedPayload, ParseFailure]


def strip_code_fences(text: str) -> str:
    """Returns the body of the first fenced block, or the text without stray fences."""

    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    return re.sub(r"```[a-zA-Z]*\n?", "", text).strip()


def extract_json_payload(text: str) -> ParseResult:
    """Extracts a JSON object from model output that may be wrapped in markdown."""

    if not text or not text.strip():
        return ParseFailure(error="empty response", raw_text=text or "")
    candidate = text.strip()
    if not candidate.startswith("{"):
        candidate = strip_code_fences(candidate)
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(candidate)
        if not match:
            return ParseFailure(error="no JSON object found", raw_text=text)
        try:
            value = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            return ParseFailure(error=f"invalid JSON: {exc.msg}", raw_text=text)
    if not isinstance(value, dict):
        return ParseFailure(error=f"expected a JSON object, got {type(value).__name__}", raw_text=text)
    return ParsedPayload(value=value)


def parse_selector_response(response: str) -> tuple[str, str]:
    selector = response.strip()
    if not selector:
        raise SelectorValidationError("LLM returned an empty selector", response)
    if "\n" in selector or "\r" in selector:
        raise SelectorValidationError("LLM returned a multiline selector", response)
    if "```" in selector:
        raise SelectorValidationError("LLM returned markdown instead of a selector", response)
    return selector, infer_selector_type(selector)


def parse_locator(response: str) -> Locator:
    selector, selector_type = parse_selector_response(response)
    return Locator(selector_type, selector)
