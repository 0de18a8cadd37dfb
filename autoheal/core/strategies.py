from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

from autoheal.core.metadata import Found, Locator, StrategyMatch

log = logging.getLogger(__name__)

_UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_LOWER = "abcdefghijklmnopqrstuvwxyz"
_SKIPPED = "self::script or self::style or self::noscript or self::template"
# String values include script text, so only script-free subtrees outside <head> count as rendered.
_RENDERED = f"not(ancestor-or-self::*[{_SKIPPED} or self::head]) and not(self::html) and not(.//*[{_SKIPPED}])"
_QUOTED = re.compile(r"'([^']+)'|\"([^\"]+)\"")

ROLE_SELECTORS = {
    "button": "button, [role='button'], input[type='submit'], input[type='button'], input[type='reset']",
    "link": "a[href], [role='link']",
    "textbox": (
        "input:not([type]), input[type='text'], input[type='email'], input[type='password'], "
        "input[type='search'], input[type='tel'], input[type='url'], input[type='number'], "
        "textarea, [role='textbox']"
    ),
    "checkbox": "input[type='checkbox'], [role='checkbox']",
    "radio": "input[type='radio'], [role='radio']",
    "combobox": "select, [role='combobox']",
}


def xpath_literal(value: str) -> str:
    """Quotes a string for use inside an XPath expression."""

    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    return "concat(" + ", \"'\", ".join(f"'{part}'" for part in parts) + ")"


def css_attribute_equals(attribute: str, value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'[{attribute}="{escaped}"]'


def _case_tables(text: str) -> tuple[str, str]:
    """ASCII case pairs plus those of any non-ASCII letters in ``text``.

    XPath 1.0 has no lower-case(), so translate() only folds the letters
    listed in its tables.
    """

    upper, lower = _UPPER, _LOWER
    for char in dict.fromkeys(text):
        if char.isascii():
            continue
        big, small = char.upper(), char.lower()
        if big != small and len(big) == 1 and len(small) == 1 and big not in upper:
            upper += big
            lower += small
    return upper, lower


def _lowered(expression: str, text: str = "") -> str:
    upper, lower = _case_tables(text)
    return f"translate({expression}, '{upper}', '{lower}')"


class Strategy(ABC):
    """Turns a natural-language description into candidate locators."""

    name = "unknown"

    @abstractmethod
    def candidates(self, description: str) -> list[Locator]:
        raise NotImplementedError


class ByTextStrategy(Strategy):
    name = "by-text"

    @staticmethod
    def search_text(description: str) -> str:
        match = _QUOTED.search(description)
        if match:
            return match.group(1) or match.group(2)
        return description.strip()

    def candidates(self, description: str) -> list[Locator]:
        text = self.search_text(description).lower()
        if not text:
            return []
        # Whole string value, innermost element only.
        rendered = (
            f"[{_RENDERED}]"
            f"[contains({_lowered('normalize-space(.)', text)}, {xpath_literal(text)})]"
        )
        return [Locator.xpath(f"//*{rendered}[not(.//*{rendered})]")]


class ByRoleStrategy(Strategy):
    name = "by-role"

    def candidates(self, description: str) -> list[Locator]:
        lowered = description.lower()
        return [Locator.css(selector) for role, selector in ROLE_SELECTORS.items() if role in lowered]


class ByPlaceholderStrategy(Strategy):
    name = "by-placeholder"

    def candidates(self, description: str) -> list[Locator]:
        if "placeholder" not in description.lower():
            return []
        return [Locator.css(css_attribute_equals("placeholder", description))]


class ByLabelStrategy(Strategy):
    name = "by-label"

    def candidates(self, description: str) -> list[Locator]:
        text = description.strip().lower()
        if not text:
            return []
        literal = xpath_literal(text)
        label = f"//label[contains({_lowered('normalize-space(.)', text)}, {literal})]"
        control = "*[self::input or self::textarea or self::select]"
        return [
            Locator.xpath(f"//{control}[@id = {label}/@for]"),
            Locator.xpath(f"{label}//{control}"),
            Locator.xpath(f"//*[contains({_lowered('@aria-label', text)}, {literal})]"),
        ]


class ByTestIdStrategy(Strategy):
    name = "by-test-id"

    def __init__(self, attribute: str = "data-testid") -> None:
        self.attribute = attribute

    @staticmethod
    def identifiers(description: str) -> list[str]:
        stripped = description.strip()
        derived = [
            re.sub(r"\s+", "-", stripped.lower()),
            re.sub(r"\s+", "_", stripped.lower()),
            re.sub(r"\s+", "", stripped),
        ]
        unique: list[str] = []
        for item in derived:
            if item and item not in unique:
                unique.append(item)
        return unique

    def candidates(self, description: str) -> list[Locator]:
        return [Locator.css(css_attribute_equals(self.attribute, item)) for item in self.identifiers(description)]


def default_strategies(test_id_attribute: str = "data-testid") -> list[Strategy]:
    return [
        ByTextStrategy(),
        ByRoleStrategy(),
        ByPlaceholderStrategy(),
        ByLabelStrategy(),
        ByTestIdStrategy(test_id_attribute),
    ]


class StrategyPipeline:
    """Runs the deterministic strategies in priority order; first visible match wins."""

    def __init__(self, probe, strategies: list[Strategy] | None = None) -> None:
        self.probe = probe
        self.strategies = strategies if strategies is not None else default_strategies()

    def resolve(self, description: str, timeout_ms: int) -> StrategyMatch | None:
        for strategy in self.strategies:
            try:
                candidates = strategy.candidates(description)
            except Exception as exc:
                log.debug("Strategy %s failed for '%s': %s", strategy.name, description, exc)
                continue
            for locator in candidates:
                result = self.probe.probe(locator, timeout_ms)
                if isinstance(result, Found):
                    log.info("Element '%s' found by %s: %s", description, strategy.name, locator)
                    return StrategyMatch(strategy=strategy.name, found=result)
        return None
