from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from autoheal.config.schema import FrameworkConfig
from autoheal.core.actions import SafeActions
from autoheal.core.history import HealingHistory
from autoheal.core.resolver import SelfHealingResolver
from autoheal.execution.healer import ScriptHealer
from autoheal.execution.loop import SelfHealingExecutionLoop
from autoheal.execution.runner import ScriptRunner
from autoheal.llm.adapter import AISuggestionAdapter
from autoheal.llm.client import CompletionClient, LazyCompletionClient
from autoheal.logging.artifacts import ArtifactManager
from autoheal.logging.audit import HealingAuditLogger


@dataclass(slots=True)
class FrameworkRuntime:
    driver: object
    client: CompletionClient
    adapter: AISuggestionAdapter
    artifact_manager: ArtifactManager
    history: HealingHistory
    resolver: SelfHealingResolver
    actions: SafeActions


def configure_logging(level: int | str = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_runtime(config: FrameworkConfig, driver, client: CompletionClient | None = None) -> FrameworkRuntime:
    """Wires one resolver session around an already started driver."""

    completion_client = client or LazyCompletionClient(config.llm)
    artifact_manager = ArtifactManager(config.artifacts_root)
    audit_logger = None
    if config.resolver.history_path:
        history_path = Path(config.resolver.history_path)
        audit_logger = HealingAuditLogger(history_path.parent, history_path.name)
    history = HealingHistory(audit_logger)
    adapter = AISuggestionAdapter(
        completion_client,
        max_markup_chars=config.resolver.max_markup_chars,
        max_tokens=config.llm.max_tokens,
        temperature=config.llm.temperature,
    )
    resolver = SelfHealingResolver(
        driver,
        config.resolver,
        adapter=adapter,
        history=history,
        artifact_manager=artifact_manager,
    )
    return FrameworkRuntime(
        driver=driver,
        client=completion_client,
        adapter=adapter,
        artifact_manager=artifact_manager,
        history=history,
        resolver=resolver,
        actions=SafeActions(driver, resolver, adapter),
    )


def build_execution_loop(
    config: FrameworkConfig,
    client: CompletionClient | None = None,
    artifact_manager: ArtifactManager | None = None,
) -> SelfHealingExecutionLoop:
    settings = config.execution
    healer = ScriptHealer(
        client or LazyCompletionClient(config.llm),
        language=settings.script_language,
    )
    runner = ScriptRunner(settings.command, cwd=settings.cwd, timeout_seconds=settings.timeout_seconds)
    return SelfHealingExecutionLoop(
        runner,
        healer,
        max_attempts=settings.max_attempts,
        artifact_manager=artifact_manager or ArtifactManager(config.artifacts_root),
    )
