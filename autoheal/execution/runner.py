from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProcessResult:
    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False

    @property
    def output(self) -> str:
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


class ScriptRunner:
    """Runs a generated test script in a separate process."""

    def __init__(self, command: list[str], cwd: str | Path | None = None, timeout_seconds: float = 600) -> None:
        self.command = list(command)
        self.cwd = cwd
        self.timeout_seconds = timeout_seconds

    def build_command(self, script_path: str | Path) -> list[str]:
        return [part.replace("{script}", str(script_path)) for part in self.command]

    def run(self, script_path: str | Path) -> ProcessResult:
        command = self.build_command(script_path)
        log.info("Executing: %s", " ".join(command))
        try:
            completed = subprocess.run(
                command,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            log.warning("Script %s timed out after %ss", script_path, self.timeout_seconds)
            return ProcessResult(
                stdout=_decode(exc.stdout),
                stderr=_decode(exc.stderr) or f"Timed out after {self.timeout_seconds}s",
                exit_code=-1,
                timed_out=True,
            )
        except OSError as exc:
            log.error("Could not start %s: %s", command[0], exc)
            return ProcessResult(stdout="", stderr=str(exc), exit_code=-1)
        return ProcessResult(stdout=completed.stdout, stderr=completed.stderr, exit_code=completed.returncode)


def _decode(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
