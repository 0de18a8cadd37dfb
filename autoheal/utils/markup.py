from __future__ import annotations

import re

TRUNCATION_MARKER = "...[truncated]"

_NOISE = re.compile(r"<(script|style|noscript)\b[^>]*>.*?</\1>", re.DOTALL | re.IGNORECASE)


def strip_noise(page_source: str) -> str:
    """Drops script and style bodies, which never hold a locator target."""

    return _NOISE.sub("", page_source)


def excerpt_markup(page_source: str, max_chars: int = 10000) -> str:
    markup = strip_noise(page_source or "")
    if len(markup) <= max_chars:
        return markup
    return f"{markup[:max_chars]} {TRUNCATION_MARKER}"
