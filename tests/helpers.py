from __future__ import annotations

from pathlib import Path

from selenium.common.exceptions import InvalidSelectorException

from autoheal.core.metadata import AISuggestion, Locator
from autoheal.execution.runner import ProcessResult
from autoheal.llm.client import CompletionClient


class FakeElement:
    """Minimal stand-in for a Selenium WebElement."""

    def __init__(self, name: str, text: str = "", displayed: bool = True) -> None:
        self.name = name
        self.text = text
        self.displayed = displayed
        self.value = ""
        self.clicks = 0
        self.fail_next: Exception | None = None

    def is_displayed(self) -> bool:
        return self.displayed

    def click(self) -> None:
        self._maybe_fail()
        self.clicks += 1

    def clear(self) -> None:
        self.value = ""

    def send_keys(self, value: str) -> None:
        self._maybe_fail()
        self.value += value

    def _maybe_fail(self) -> None:
        if self.fail_next is not None:
            failure, self.fail_next = self.fail_next, None
            raise failure

    def __repr__(self) -> str:
        return f"FakeElement({self.name!r})"


class FakeDriver:
    """A page whose content is the set of locators that currently match something."""

    def __init__(self, page_source: str = "<html><body><main>fixture</main></body></html>") -> None:
        self.page_source = page_source
        self.queries: list[tuple[str, str]] = []
        self.invalid: set[str] = set()
        self.visited: list[str] = []
        self.screenshots: list[str] = []
        self.ready_state = "complete"
        self.page_load_timeout: float | None = None
        self._elements: dict[tuple[str, str], list[FakeElement]] = {}

    def place(self, locator: Locator, *elements: FakeElement) -> None:
        self._elements[(locator.by, locator.value)] = list(elements)

    def remove(self, locator: Locator) -> None:
        self._elements.pop((locator.by, locator.value), None)

    def queried(self, locator: Locator) -> bool:
        return (locator.by, locator.value) in self.queries

    def find_elements(self, by: str, value: str) -> list[FakeElement]:
        self.queries.append((by, value))
        if value in self.invalid:
            raise InvalidSelectorException(f"invalid selector: {value}")
        return list(self._elements.get((by, value), []))

    def save_screenshot(self, path: str) -> bool:
        Path(path).write_bytes(b"\x89PNG fake")
        self.screenshots.append(path)
        return True

    def get_screenshot_as_png(self) -> bytes:
        return b"\x89PNG fake"

    def get(self, url: str) -> None:
        self.visited.append(url)

    def set_page_load_timeout(self, seconds: float) -> None:
        self.page_load_timeout = seconds

    def execute_script(self, script: str):
        if "readyState" in script:
            return self.ready_state
        return None


class FakeSuggestionAdapter:
    """Records calls and returns canned AI suggestions."""

    def __init__(
        self,
        suggestion: AISuggestion | None = None,
        healing: AISuggestion | None = None,
        error: Exception | None = None,
        heal_error: Exception | None = None,
    ) -> None:
        self.suggestion = suggestion or AISuggestion(primary_locator=None)
        self.healing = healing or AISuggestion(primary_locator=None)
        self.error = error
        self.heal_error = heal_error
        self.suggest_calls: list[str] = []
        self.heal_calls: list[tuple[str, Locator]] = []

    def suggest(self, page_markup: str, description: str) -> AISuggestion:
        self.suggest_calls.append(description)
        if self.error is not None:
            raise self.error
        return self.suggestion

    def heal(self, page_markup: str, failed_locator: Locator, description: str) -> AISuggestion:
        self.heal_calls.append((description, failed_locator))
        if self.heal_error is not None:
            raise self.heal_error
        return self.healing


class FakeCompletionClient(CompletionClient):
    provider_name = "fake"

    def __init__(self, responses=(), *, supports_vision: bool = False, image_responses=()) -> None:
        self.responses = list(responses)
        self.image_responses = list(image_responses)
        self.supports_vision = supports_vision
        self.prompts: list[str] = []
        self.image_prompts: list[str] = []

    def complete(self, prompt, *, system=None, max_tokens=1000, temperature=0.1) -> str:
        self.prompts.append(prompt)
        return self._next(self.responses)

    def complete_with_image(self, prompt: str, image: bytes, *, max_tokens: int = 1000) -> str:
        self.image_prompts.append(prompt)
        return self._next(self.image_responses)

    @staticmethod
    def _next(queue: list):
        if not queue:
            raise AssertionError("FakeCompletionClient ran out of responses")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeRunner:
    """Replays process results and remembers the script body of every run."""

    def __init__(self, results: list[ProcessResult]) -> None:
        self.results = list(results)
        self.scripts: list[str] = []

    def run(self, script_path) -> ProcessResult:
        self.scripts.append(Path(script_path).read_text(encoding="utf-8"))
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


def passing(count: int = 1) -> ProcessResult:
    return ProcessResult(stdout=f"{count} passed in 0.42s", stderr="", exit_code=0)


def failing(output: str, failed: int = 1, passed: int = 0) -> ProcessResult:
    summary = f"{failed} failed, {passed} passed in 1.10s" if passed else f"{failed} failed in 1.10s"
    return ProcessResult(stdout=f"{output}\n{summary}", stderr="", exit_code=1)
