"""Pull a single command line out of free-form model output.

Models wrap answers inconsistently (fences, prose, "Here is the command:"),
so extraction tries a short list of independent strategies in order and
takes the first line any of them picks. The picked line then has to look
like an invocation of the tool, otherwise extraction fails and the raw
text is handed back for display.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

DEFAULT_TOKEN = "ffmpeg"

_OPTION_RE = re.compile(r"\s-{1,2}[A-Za-z]")


@dataclass(frozen=True)
class CandidateCommand:
    text: str


@dataclass(frozen=True)
class ExtractionFailure:
    raw: str
    reason: str


ExtractionResult = Union[CandidateCommand, ExtractionFailure]
Strategy = Callable[[Sequence[str], str], Optional[str]]


def line_starting_with_token(lines: Sequence[str], token: str) -> Optional[str]:
    for line in lines:
        if line.strip().startswith(token):
            return line
    return None


def line_containing_token(lines: Sequence[str], token: str) -> Optional[str]:
    # "Run: `ffmpeg -i a.mp4 b.mp3` now" -> "ffmpeg -i a.mp4 b.mp3"
    for line in lines:
        idx = line.find(token)
        if idx != -1:
            return line[idx:].split("`", 1)[0]
    return None


def first_nonempty_line(lines: Sequence[str], token: str) -> Optional[str]:
    for line in lines:
        if line.strip():
            return line
    return None


STRATEGIES: tuple[Strategy, ...] = (
    line_starting_with_token,
    line_containing_token,
    first_nonempty_line,
)


def validate(text: str, token: str = DEFAULT_TOKEN) -> bool:
    """True if text invokes ``token`` with at least one option."""
    if not re.match(re.escape(token) + r"\s", text):
        return False
    return _OPTION_RE.search(text) is not None


def extract(
    raw: str,
    token: str = DEFAULT_TOKEN,
    strategies: Sequence[Strategy] = STRATEGIES,
) -> ExtractionResult:
    lines = raw.splitlines()
    for strategy in strategies:
        picked = strategy(lines, token)
        if picked is None:
            continue
        text = picked.strip()
        if validate(text, token):
            return CandidateCommand(text)
        return ExtractionFailure(raw=raw, reason=f"no valid {token} command found in model response")
    return ExtractionFailure(raw=raw, reason="model response was empty")
