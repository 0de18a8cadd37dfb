from __future__ import annotations

import json
from pathlib import Path

from autoheal.config.schema import FrameworkConfig


class ConfigLoader:
    """Loads and validates the JSON framework configuration."""

    @staticmethod
    def load(path: str | Path) -> FrameworkConfig:
        config_path = Path(path)
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return FrameworkConfig.model_validate(payload)
