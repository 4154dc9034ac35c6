from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(slots=True, frozen=True)
class ProcessResult:
    """Captured outcome of one external tool invocation."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessLaunchError(RuntimeError):
    """The tool could not be started at all (missing binary, permissions)."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"failed to launch {command}: {reason}")
        self.command = command
        self.reason = reason


class ProcessTimeoutError(RuntimeError):
    """The tool ran longer than allowed and was killed."""

    def __init__(self, command: str, timeout_s: float, stderr: str = "") -> None:
        super().__init__(f"{command} timed out after {timeout_s:g}s")
        self.command = command
        self.timeout_s = timeout_s
        self.stderr = stderr


class ProcessRunner(Protocol):
    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        input_text: str | None = None,
        timeout_s: float | None = None,
    ) -> ProcessResult: ...


class SubprocessRunner:
    """Runs tools with :func:`subprocess.run`, draining both pipes before returning.

    A non-zero exit status is handed back to the caller; only launch failures and
    timeouts raise.
    """

    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        input_text: str | None = None,
        timeout_s: float | None = None,
    ) -> ProcessResult:
        argv = [command, *args]
        stdin = None if input_text is not None else subprocess.DEVNULL
        try:
            # subprocess.run kills and reaps the child itself when the timeout fires.
            proc = subprocess.run(
                argv,
                input=input_text,
                stdin=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                timeout=timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProcessTimeoutError(command, exc.timeout, _as_text(exc.stderr)) from exc
        except OSError as exc:
            raise ProcessLaunchError(command, exc.strerror or str(exc)) from exc
        return ProcessResult(stdout=proc.stdout or "", stderr=proc.stderr or "", exit_code=proc.returncode)


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def binary_available(name: str) -> bool:
    return shutil.which(name) is not None


__all__ = [
    "ProcessResult",
    "ProcessLaunchError",
    "ProcessTimeoutError",
    "ProcessRunner",
    "SubprocessRunner",
    "binary_available",
]
