"""Running generated commands and judging whether they produced anything."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

logger = logging.getLogger("llmffmpeg.executor")

# ffmpeg can exit 0 while writing nothing useful. These phrases vary between
# ffmpeg releases, so the set is extended from config rather than fixed.
DEFAULT_SILENT_FAILURE_PHRASES: tuple[str, ...] = (
    "Nothing was written into output file",
    "Output file is empty, nothing was encoded",
    "Output file #0 does not contain any stream",
)

EXIT_NOT_RUN = 127
EXIT_INTERRUPTED = 130


@dataclass(frozen=True)
class ExecutionOutcome:
    exit_code: int
    output: str
    succeeded: bool


def extend_phrases(extra: Iterable[str]) -> tuple[str, ...]:
    """Default silent-failure phrases followed by any new ones from ``extra``."""
    out = list(DEFAULT_SILENT_FAILURE_PHRASES)
    for p in extra:
        if p and p not in out:
            out.append(p)
    return tuple(out)


def is_silent_failure(output: str, phrases: Iterable[str] = DEFAULT_SILENT_FAILURE_PHRASES) -> bool:
    return any(p in output for p in phrases)


def make_outcome(
    exit_code: int,
    output: str,
    phrases: Iterable[str] = DEFAULT_SILENT_FAILURE_PHRASES,
) -> ExecutionOutcome:
    succeeded = exit_code == 0 and not is_silent_failure(output, phrases)
    return ExecutionOutcome(exit_code=exit_code, output=output, succeeded=succeeded)


def execute_command(
    command: str,
    *,
    echo: Optional[Callable[[str], None]] = None,
    log_path: Optional[Path] = None,
    phrases: Iterable[str] = DEFAULT_SILENT_FAILURE_PHRASES,
) -> ExecutionOutcome:
    """Execute a shell command, streaming combined output to ``echo``.

    The full output is kept for the outcome and, when ``log_path`` is set,
    written there for later inspection. Ctrl-C stops the child process and
    is reported as a failed run rather than propagated.
    """
    chunks: list[str] = []
    try:
        with subprocess.Popen(
            command,
            shell=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
            errors="replace",
        ) as proc:
            try:
                if proc.stdout:
                    for line in proc.stdout:
                        chunks.append(line)
                        if echo:
                            echo(line)
                rc = proc.wait()
            except KeyboardInterrupt:
                proc.terminate()
                proc.wait()
                chunks.append("\nInterrupted by user.\n")
                rc = EXIT_INTERRUPTED
    except OSError as e:
        logger.error("Error executing command: %s", e)
        chunks.append(f"Error executing command: {e}\n")
        rc = EXIT_NOT_RUN

    output = "".join(chunks)
    if log_path is not None:
        _write_log(log_path, command, rc, output)
    return make_outcome(rc, output, phrases)


def _write_log(path: Path, command: str, rc: int, output: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"$ {command}\n{output}\n[exit {rc}]\n", encoding="utf-8")
    except OSError as e:
        logger.warning("Could not write execution log %s: %s", path, e)
