from __future__ import annotations

import re
import shutil
from datetime import UTC, datetime
from pathlib import Path


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", value.strip().lower()).strip("_")
    return slug[:60] or "element"


class ArtifactManager:
    """Files written around AI-assisted resolution and script execution.

    DOM snapshots and screenshots are captured before every AI call made by
    the resolver; the execution loop writes one run log per attempt. Every
    file is named ``<utc timestamp>_<slug>.<ext>`` so captures taken for the
    same element sort together.
    """

    def __init__(self, root: str | Path = "artifacts") -> None:
        self.root = Path(root)
        self.dom_root = self.root / "dom_snapshots"
        self.screenshot_root = self.root / "screenshots"
        self.run_log_root = self.root / "run_logs"
        for directory in self._directories():
            directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def timestamp() -> str:
        # Microseconds keep captures from back-to-back attempts apart.
        return datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")

    def write_dom_snapshot(self, label: str, page_source: str, timestamp: str | None = None) -> Path:
        path = self._named(self.dom_root, label, "html", timestamp)
        path.write_text(page_source, encoding="utf-8")
        return path

    def screenshot_path(self, label: str, timestamp: str | None = None) -> Path:
        return self._named(self.screenshot_root, label, "png", timestamp)

    def write_run_log(self, label: str, output: str, timestamp: str | None = None) -> Path:
        path = self._named(self.run_log_root, label, "log", timestamp)
        path.write_text(output, encoding="utf-8")
        return path

    def reset(self) -> Path:
        """Removes every capture, keeping the directory layout."""

        for directory in self._directories():
            if directory.exists():
                shutil.rmtree(directory)
            directory.mkdir(parents=True)
        return self.root

    def _named(self, directory: Path, label: str, extension: str, timestamp: str | None) -> Path:
        return directory / f"{timestamp or self.timestamp()}_{slugify(label)}.{extension}"

    def _directories(self) -> tuple[Path, ...]:
        return (self.dom_root, self.screenshot_root, self.run_log_root)
