from __future__ import annotations

import json
from typing import Any

SYSTEM_PROMPT = """You are a web automation expert who writes Selenium selectors.
Rules:
1. Use only elements present in the provided HTML.
2. Do not invent tags, attributes, text, or hierarchy.
3. Prefer a CSS selector when it uniquely identifies the intended element.
4. If a CSS selector cannot safely identify the element, return a valid XPath.
5. Always respond with valid JSON only, no additional text."""

SCRIPT_HEALER_SYSTEM_PROMPT = "You are a test healing expert. You repair failing browser test scripts."

ANALYSIS_MARKERS = (
    '"Root Cause Analysis"',
    '"Specific Fix"',
    '"Prevention Strategy"',
    '"rootCause"',
    '"preventiveMeasures"',
)

CATEGORY_FIXES = {
    "strict-mode-violation": "Take the first match for every locator that resolves to multiple elements",
    "navigation-timeout": "Increase the navigation timeout to 30000ms",
    "style-assertion-mismatch": "Remove exact CSS value assertions, check visibility or existence instead",
    "selector-timeout": "Use more reliable selectors with proper wait conditions",
    "selector-not-found": "Use more reliable selectors with proper wait conditions",
    "text-mismatch": "Use flexible text matching (contains, not exact match)",
}


def build_suggest_prompt(markup_excerpt: str, description: str) -> str:
    return f"""Analyze the following HTML and provide the best CSS selector or XPath for the element described.

HTML Content:
{markup_excerpt}

Element Description: {description}

Provide your response in JSON format with the following structure:
{{
  "primarySelector": "css selector or xpath",
  "selectorType": "css or xpath",
  "fallbackSelectors": ["alternative selector 1", "alternative selector 2"],
  "confidence": 0.95,
  "reasoning": "why this selector was chosen"
}}"""


def build_heal_prompt(markup_excerpt: str, failed_selector: str, description: str) -> str:
    return f"""The element selector "{failed_selector}" no longer works.

HTML Content:
{markup_excerpt}

Original element description: {description}
Failed selector: {failed_selector}

Analyze the HTML and suggest:
1. Why the selector might have failed
2. New selector(s) that should work
3. More robust selector strategies

Response format:
{{
  "diagnosis": "reason for failure",
  "newSelectors": ["selector1", "selector2"],
  "robustStrategy": "recommendation for future-proof selectors",
  "confidence": 0.85
}}"""


def build_screenshot_prompt(expected_state: str) -> str:
    return f"""Analyze this screenshot and determine if it matches the expected state: "{expected_state}"

Provide your response in JSON format:
{{
  "matches": true,
  "confidence": 0.95,
  "observations": ["what you see in the image"],
  "issues": ["any problems or discrepancies"],
  "suggestions": ["recommendations if state doesn't match"]
}}"""


def build_failure_prompt(test_name: str, error_text: str) -> str:
    return f"""A test has failed. Analyze the failure and provide actionable insights.

Test Name: {test_name}
Error: {error_text}

Provide analysis in JSON:
{{
  "rootCause": "likely cause of failure",
  "category": "element_not_found/timeout/assertion_failed/network_error/etc",
  "recommendations": ["how to fix"],
  "isFlaky": false,
  "confidence": 0.9
}}"""


def fixes_for(categories: list[str]) -> list[str]:
    fixes: list[str] = []
    for category in categories:
        fix = CATEGORY_FIXES.get(category)
        if fix and fix not in fixes:
            fixes.append(fix)
    return fixes


def build_script_heal_prompt(
    *,
    script: str,
    failure_output: str,
    categories: list[str],
    failure_lines: dict[str, list[str]],
    requirements: str,
    attempt: int,
    language: str,
) -> str:
    payload: dict[str, Any] = {
        "attempt": attempt,
        "language": language,
        "failure_categories": categories,
        "failure_lines": failure_lines,
        "error_excerpt": failure_output[:1000],
        "requirements": requirements,
    }
    fixes = "\n".join(f"- {fix}" for fix in fixes_for(categories)) or "- Make the failing steps robust"
    return f"""Analyze this test failure and return a fixed version of the test script.

Failure context:
{json.dumps(payload, indent=2, sort_keys=True)}

Fixes to apply:
{fixes}

Failing script:
{script}

Return JSON: {{"fixedCode": "the complete fixed {language} test file"}}"""


def build_regeneration_prompt(
    *,
    analysis: str,
    categories: list[str],
    requirements: str,
    language: str,
) -> str:
    fixes = "\n".join(f"- {fix}" for fix in fixes_for(categories)) or "- Make the failing steps robust"
    return f"""You are a test code generator. Based on this test failure analysis, generate a COMPLETE, WORKING {language} test file.

FAILURE ANALYSIS:
{analysis}

ORIGINAL TEST REQUIREMENTS:
{requirements}

CRITICAL FIXES TO APPLY:
{fixes}

CRITICAL: Return ONLY executable {language} code. Do NOT return JSON analysis, markdown or explanations.
The file must contain every import and at least one test function.

Generate the fixed test file now:"""
