from __future__ import annotations

import pytest

from autoheal.config.schema import ResolverSettings
from autoheal.core.history import HealingHistory
from autoheal.core.resolver import SelfHealingResolver
from autoheal.logging.artifacts import ArtifactManager
from tests.helpers import FakeDriver


@pytest.fixture()
def artifacts(tmp_path):
    manager = ArtifactManager(tmp_path / "artifacts")
    manager.reset()
    return manager


@pytest.fixture()
def driver():
    return FakeDriver()


@pytest.fixture()
def resolver_settings():
    return ResolverSettings(timeout_ms=0, healing_timeout_ms=0, poll_interval_seconds=0.01)


@pytest.fixture()
def make_resolver(driver, resolver_settings):
    def factory(adapter=None, history=None, **kwargs):
        return SelfHealingResolver(
            driver,
            resolver_settings,
            adapter=adapter,
            history=history if history is not None else HealingHistory(),
            **kwargs,
        )

    return factory
