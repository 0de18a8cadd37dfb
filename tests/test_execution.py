from __future__ import annotations

import json
import sys

import pytest

from autoheal.core.exceptions import AIUnavailable, ExecutionFailure, HealingProtocolFailure
from autoheal.execution.classifier import FailureCategory, classify_failures, parse_run_summary
from autoheal.execution.healer import ScriptHealer, looks_like_analysis
from autoheal.execution.loop import ExecutionOutcome, SelfHealingExecutionLoop
from autoheal.execution.runner import ScriptRunner
from tests.helpers import FakeCompletionClient, FakeRunner, failing, passing

BROKEN_SCRIPT = '''from selenium.webdriver.common.by import By


def test_login(driver):
    driver.find_element(By.CSS_SELECTOR, "button.login").click()
'''

HEALED_SCRIPT = '''from selenium.webdriver.common.by import By


def test_login(driver):
    driver.find_elements(By.CSS_SELECTOR, "button.login")[0].click()
'''

STRICT_FAILURE = "Error: strict mode violation: locator('button.login') resolved to 2 elements"

ANALYSIS_ONLY = json.dumps(
    {
        "Root Cause Analysis": "button.login matches two buttons",
        "Specific Fix": "use the first match",
        "Prevention Strategy": "add data-testid attributes",
    }
)


@pytest.fixture()
def script(tmp_path):
    path = tmp_path / "test_login.py"
    path.write_text(BROKEN_SCRIPT, encoding="utf-8")
    return path


def test_classifier_reads_common_failure_lines():
    output = "\n".join(
        [
            STRICT_FAILURE,
            "TimeoutError: Timeout 30000ms exceeded while waiting for selector '#go'",
            "selenium.common.exceptions.NoSuchElementException: Message: Unable to locate element",
            "page.goto: net::ERR_CONNECTION_REFUSED",
            "E   AssertionError: assert 'Welcome' in 'Sign in'",
            "everything else is noise",
        ]
    )

    analysis = classify_failures(output)

    assert analysis.categories == [
        FailureCategory.SELECTOR_TIMEOUT,
        FailureCategory.SELECTOR_NOT_FOUND,
        FailureCategory.STRICT_MODE,
        FailureCategory.TEXT_MISMATCH,
        FailureCategory.NAVIGATION_TIMEOUT,
    ]
    assert analysis.primary == "strict-mode-violation"
    assert analysis.as_payload()["strict-mode-violation"] == [STRICT_FAILURE]


def test_unmatched_output_has_no_categories():
    analysis = classify_failures("something odd happened")
    assert analysis.categories == []
    assert analysis.primary == "unknown"


def test_run_summary_parses_pytest_and_playwright_output():
    pytest_summary = parse_run_summary("FAILED test_a.py::test_x\n1 failed, 2 passed, 1 skipped in 0.53s")
    assert (pytest_summary.passed, pytest_summary.failed, pytest_summary.skipped) == (2, 1, 1)
    assert pytest_summary.total == 3
    assert pytest_summary.duration == 0.53

    playwright_summary = parse_run_summary("Running 2 tests\n  2 passed (3.1s)")
    assert playwright_summary.passed == 2
    assert playwright_summary.duration == 3.1
    assert parse_run_summary("").total == 0


def test_runner_substitutes_the_script_path(tmp_path):
    runner = ScriptRunner([sys.executable, "-c", "import sys; print(sys.argv[1])", "{script}"])
    target = tmp_path / "test_x.py"

    assert runner.build_command(target)[-1] == str(target)
    result = runner.run(target)
    assert result.exit_code == 0
    assert result.stdout.strip() == str(target)


def test_runner_reports_timeouts(tmp_path):
    runner = ScriptRunner([sys.executable, "-c", "import time; time.sleep(5)", "{script}"], timeout_seconds=0.5)

    result = runner.run(tmp_path / "test_x.py")

    assert result.timed_out is True
    assert result.exit_code == -1


def test_healer_extracts_fixed_code():
    client = FakeCompletionClient([json.dumps({"fixedCode": HEALED_SCRIPT})])

    patch = ScriptHealer(client).heal(BROKEN_SCRIPT, STRICT_FAILURE, classify_failures(STRICT_FAILURE))

    assert patch.code == HEALED_SCRIPT.strip()
    assert patch.regenerated is False
    assert patch.categories == ["strict-mode-violation"]
    assert patch.fixes_applied
    assert STRICT_FAILURE in client.prompts[0]


@pytest.mark.parametrize("fence", ["```", "```JSON", "```json"])
def test_healer_accepts_fenced_fixed_code(fence):
    client = FakeCompletionClient([f"{fence}\n{json.dumps({'fixedCode': HEALED_SCRIPT})}\n```"] * 2)

    patch = ScriptHealer(client).heal(BROKEN_SCRIPT, STRICT_FAILURE, classify_failures(STRICT_FAILURE))

    assert patch.code == HEALED_SCRIPT.strip()
    assert patch.regenerated is False
    assert len(client.prompts) == 1


def test_healer_accepts_fixed_code_that_is_itself_fenced():
    client = FakeCompletionClient([json.dumps({"fixedCode": f"```python\n{HEALED_SCRIPT}```"})])

    patch = ScriptHealer(client).heal(BROKEN_SCRIPT, STRICT_FAILURE, classify_failures(STRICT_FAILURE))

    assert patch.code == HEALED_SCRIPT.strip()
    assert len(client.prompts) == 1


def test_healer_regenerates_once_when_given_analysis():
    client = FakeCompletionClient([ANALYSIS_ONLY, f"```python\n{HEALED_SCRIPT}```"])

    patch = ScriptHealer(client).heal(BROKEN_SCRIPT, STRICT_FAILURE, classify_failures(STRICT_FAILURE))

    assert patch.regenerated is True
    assert patch.code == HEALED_SCRIPT.strip()
    assert len(client.prompts) == 2
    assert "button.login matches two buttons" in client.prompts[1]


def test_healer_gives_up_when_analysis_persists():
    client = FakeCompletionClient([ANALYSIS_ONLY, ANALYSIS_ONLY, HEALED_SCRIPT])

    with pytest.raises(HealingProtocolFailure) as error_info:
        ScriptHealer(client).heal(BROKEN_SCRIPT, STRICT_FAILURE, classify_failures(STRICT_FAILURE))

    assert len(client.prompts) == 2
    assert looks_like_analysis(error_info.value.raw_text)


def test_healer_checks_javascript_tests():
    healer = ScriptHealer(FakeCompletionClient(), language="javascript")
    assert healer.is_runnable("test('login', async ({ page }) => {});")
    assert not healer.is_runnable("const x = 1;")
    assert not ScriptHealer(FakeCompletionClient()).is_runnable("def helper(:\n")


def test_strict_mode_failure_is_healed_and_rerun(script, artifacts):
    runner = FakeRunner([failing(STRICT_FAILURE), passing(1)])
    client = FakeCompletionClient([json.dumps({"fixedCode": HEALED_SCRIPT})])
    loop = SelfHealingExecutionLoop(runner, ScriptHealer(client), max_attempts=2, artifact_manager=artifacts)

    report = loop.run(script, requirements="log in as a standard user")

    assert report.outcome is ExecutionOutcome.HEALED_AND_PASSED
    assert report.success is True
    assert report.attempt_count == 2
    assert report.healing_applied is True
    assert report.diagnostics == ["strict-mode-violation"]
    assert runner.scripts == [BROKEN_SCRIPT, HEALED_SCRIPT.strip()]
    assert script.read_text(encoding="utf-8") == HEALED_SCRIPT.strip()
    assert len(list(artifacts.run_log_root.glob("*.log"))) == 2


def test_passing_script_is_not_healed(script):
    client = FakeCompletionClient()
    report = SelfHealingExecutionLoop(FakeRunner([passing(3)]), ScriptHealer(client)).run(script)

    assert report.outcome is ExecutionOutcome.PASSED
    assert report.attempts[0].passed == 3
    assert client.prompts == []


def test_attempts_are_bounded_even_when_healing_keeps_failing(script):
    runner = FakeRunner([failing(STRICT_FAILURE)])
    client = FakeCompletionClient([json.dumps({"fixedCode": HEALED_SCRIPT})] * 5)
    loop = SelfHealingExecutionLoop(runner, ScriptHealer(client), max_attempts=3)

    with pytest.raises(ExecutionFailure) as error_info:
        loop.run(script)

    report = error_info.value.report
    assert len(runner.scripts) == 3
    assert len(client.prompts) == 2
    assert report.outcome is ExecutionOutcome.HEALED_STILL_FAILING
    assert report.attempt_count == 3


def test_single_attempt_budget_never_heals(script):
    client = FakeCompletionClient()

    with pytest.raises(ExecutionFailure) as error_info:
        SelfHealingExecutionLoop(FakeRunner([failing(STRICT_FAILURE)]), ScriptHealer(client), max_attempts=1).run(script)

    assert error_info.value.report.outcome is ExecutionOutcome.FAILED
    assert client.prompts == []


def test_protocol_failure_carries_the_report(script):
    client = FakeCompletionClient([ANALYSIS_ONLY, ANALYSIS_ONLY])
    loop = SelfHealingExecutionLoop(FakeRunner([failing(STRICT_FAILURE)]), ScriptHealer(client))

    with pytest.raises(HealingProtocolFailure) as error_info:
        loop.run(script)

    assert error_info.value.report.outcome is ExecutionOutcome.HEALING_FAILED
    assert script.read_text(encoding="utf-8") == BROKEN_SCRIPT


def test_unreachable_healer_ends_the_loop(script):
    client = FakeCompletionClient([AIUnavailable("connection refused")])
    loop = SelfHealingExecutionLoop(FakeRunner([failing(STRICT_FAILURE)]), ScriptHealer(client))

    with pytest.raises(ExecutionFailure) as error_info:
        loop.run(script)

    assert error_info.value.report.outcome is ExecutionOutcome.HEALING_FAILED
    assert "connection refused" in error_info.value.report.error


def test_attempt_budget_must_be_positive():
    with pytest.raises(ValueError):
        SelfHealingExecutionLoop(FakeRunner([passing()]), ScriptHealer(FakeCompletionClient()), max_attempts=0)
