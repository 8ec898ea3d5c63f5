from __future__ import annotations

from typing import Optional

from .probe import FileSummary

FILENAME_TOKEN = "{filename}"
NO_FILENAME = "the input file"

FILE_ANALYSIS_HEADER = "FILE ANALYSIS:"
PREVIOUS_ERROR_HEADER = "PREVIOUS ERROR:"
TASK_HEADER = "TASK:"
COMMAND_MARKER = "COMMAND:"

PREVIOUS_ERROR_HINT = (
    "The last command failed with the output above. "
    "Write a corrected command that avoids this error."
)

EXPLAIN_PROMPT = """Explain what the following ffmpeg command does.
Go through it option by option in plain language, then say what file(s) it will write.
Keep it short; use a bulleted list.

{command}
"""


def build_prompt(
    template: str,
    filename: Optional[str],
    request: str,
    file_summary: Optional[FileSummary] = None,
    error_context: Optional[str] = None,
) -> str:
    """Compose the generation prompt.

    Sections are always in this order: template, file analysis, previous
    error, task. The optional sections are omitted entirely when their
    input is missing.
    """
    parts = [template.replace(FILENAME_TOKEN, filename or NO_FILENAME).rstrip()]

    if file_summary is not None:
        parts.append(f"{FILE_ANALYSIS_HEADER}\n{file_summary.render()}")

    if error_context:
        parts.append(f"{PREVIOUS_ERROR_HEADER}\n{error_context.rstrip()}\n\n{PREVIOUS_ERROR_HINT}")

    parts.append(f"{TASK_HEADER} {request}")
    parts.append(COMMAND_MARKER)
    return "\n\n".join(parts)


def build_explain_prompt(command: str) -> str:
    return EXPLAIN_PROMPT.format(command=command)
