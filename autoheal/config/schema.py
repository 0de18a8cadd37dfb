from __future__ import annotations

import sys

from pydantic import BaseModel, Field, field_validator

SUPPORTED_BROWSERS = {"chrome", "firefox"}
SUPPORTED_PROVIDERS = {"openai", "anthropic", "gemini", "local", "disabled"}
SUPPORTED_LANGUAGES = {"python", "javascript"}


class EnvironmentConfig(BaseModel):
    base_url: str = ""
    browser: str = "chrome"
    headless: bool = True
    page_load_timeout_seconds: int = Field(default=30, ge=1)

    @field_validator("browser")
    @classmethod
    def validate_browser(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in SUPPORTED_BROWSERS:
            raise ValueError(f"Unsupported browser: {value}")
        return normalized


class ResolverSettings(BaseModel):
    timeout_ms: int = Field(default=30000, ge=0)
    healing_timeout_ms: int = Field(default=5000, ge=0)
    enable_ai: bool = True
    enable_self_healing: bool = True
    test_id_attribute: str = "data-testid"
    poll_interval_seconds: float = Field(default=0.2, gt=0)
    max_markup_chars: int = Field(default=10000, gt=0)
    history_path: str | None = None


class LLMSettings(BaseModel):
    provider: str = "openai"
    model: str | None = None
    base_url: str | None = None
    timeout_seconds: float = Field(default=30, gt=0)
    max_tokens: int = Field(default=1000, gt=0)
    temperature: float = Field(default=0.1, ge=0, le=2)

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported LLM provider: {value}")
        return normalized


class ExecutionSettings(BaseModel):
    max_attempts: int = Field(default=2, ge=1)
    command: list[str] = Field(default_factory=lambda: [sys.executable, "-m", "pytest", "{script}", "-q"])
    timeout_seconds: float = Field(default=600, gt=0)
    script_language: str = "python"
    cwd: str | None = None

    @field_validator("command")
    @classmethod
    def validate_command(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("command must not be empty")
        if not any("{script}" in part for part in value):
            raise ValueError("command must contain a {script} placeholder")
        return value

    @field_validator("script_language")
    @classmethod
    def validate_language(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported script language: {value}")
        return normalized


class FrameworkConfig(BaseModel):
    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    artifacts_root: str = "artifacts"
