from __future__ import annotations


class HealingError(RuntimeError):
    """Base class for every error raised by the resolution and healing core."""


class ElementNotResolvable(HealingError):
    """Raised when cache, strategies, AI suggestions and healing all fail."""

    def __init__(
        self,
        description: str,
        attempted: list[str],
        last_locator=None,
        ai_error: Exception | None = None,
    ) -> None:
        self.description = description
        self.attempted = list(attempted)
        self.last_locator = last_locator
        self.ai_error = ai_error
        message = f"Could not resolve element '{description}' after: {', '.join(self.attempted) or 'nothing'}"
        if last_locator is not None:
            message += f" (last tried {last_locator})"
        if ai_error is not None:
            message += f"; AI backend unavailable: {ai_error}"
        super().__init__(message)


class ResolutionCancelled(HealingError):
    """Raised when a caller abandons a resolution between stages."""


class AIUnavailable(HealingError):
    """Raised when the AI backend cannot be reached or refuses the request."""


class AIProtocolError(AIUnavailable):
    """Raised when the AI backend answers with output that cannot be parsed."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


class SelectorValidationError(AIProtocolError):
    """Raised when an LLM returns an unusable selector."""


class VisionUnsupported(AIUnavailable):
    """Raised when the active provider cannot analyse images."""


class ExecutionFailure(HealingError):
    """Raised when a generated script still fails after the attempt budget."""

    def __init__(self, message: str, report=None) -> None:
        super().__init__(message)
        self.report = report


class HealingProtocolFailure(HealingError):
    """Raised when the healer keeps returning analysis instead of runnable code."""

    def __init__(self, message: str, raw_text: str = "", report=None) -> None:
        super().__init__(message)
        self.raw_text = raw_text
        self.report = report
