"""Map ffmpeg failure output to a suggestion the operator can act on."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence


class ErrorKind(Enum):
    FILE_NOT_FOUND = "file-not-found"
    INVALID_DATA = "invalid-data"
    SUBTITLE_CONTAINER = "subtitle-container"
    CONTAINER_CODEC = "container-codec"
    CODEC_NOT_FOUND = "codec-not-found"
    PERMISSION_DENIED = "permission-denied"
    STREAM_SPECIFIER = "stream-specifier"
    OUTPUT_EXISTS = "output-exists"
    UNRECOGNIZED_OPTION = "unrecognized-option"
    ARGUMENT_SPLITTING = "argument-splitting"
    NO_OUTPUT = "no-output"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Diagnosis:
    kind: ErrorKind
    suggestion: str


@dataclass(frozen=True)
class Rule:
    kind: ErrorKind
    matches: Callable[[str], bool]
    suggestion: str


def _contains(*needles: str) -> Callable[[str], bool]:
    lowered = tuple(n.lower() for n in needles)
    return lambda text: any(n in text.lower() for n in lowered)


def _regex(pattern: str) -> Callable[[str], bool]:
    rx = re.compile(pattern, re.IGNORECASE)
    return lambda text: rx.search(text) is not None


_SUBTITLE_CODECS = r"(subrip|srt|ass|ssa|webvtt|mov_text|dvd_subtitle|dvb_subtitle|hdmv_pgs_subtitle)"

# Order matters: the container rules must run before CODEC_NOT_FOUND, whose
# pattern also matches "codec not currently supported in container".
RULES: tuple[Rule, ...] = (
    Rule(
        ErrorKind.FILE_NOT_FOUND,
        _contains("No such file or directory"),
        "The input file was not found. Check the file name and path "
        "(quote names that contain spaces).",
    ),
    Rule(
        ErrorKind.INVALID_DATA,
        _contains("Invalid data found when processing input"),
        "ffmpeg could not read the input. The file may be corrupt, incomplete, "
        "or not a media file.",
    ),
    Rule(
        ErrorKind.SUBTITLE_CONTAINER,
        lambda text: (
            "Subtitle encoding currently only possible from text to text or bitmap to bitmap" in text
            or re.search(
                r"codec " + _SUBTITLE_CODECS + r".*not currently supported in container",
                text,
                re.IGNORECASE,
            ) is not None
        ),
        "The subtitle format is not supported by the output container. "
        "For MP4 use '-c:s mov_text', keep MKV as the output, or drop subtitles with '-sn'.",
    ),
    Rule(
        ErrorKind.CONTAINER_CODEC,
        _contains("not currently supported in container", "Could not find tag for codec"),
        "A stream's codec is not allowed in the chosen container. Re-encode that "
        "stream (e.g. '-c:a aac') or choose a different output format.",
    ),
    Rule(
        ErrorKind.CODEC_NOT_FOUND,
        _regex(r"unknown (en|de)coder|(en|de)coder .*not found|codec .*not (found|currently supported)"),
        "The requested codec is not available in this ffmpeg build. Check "
        "'ffmpeg -encoders' and pick one that is listed (e.g. libx264, aac).",
    ),
    Rule(
        ErrorKind.PERMISSION_DENIED,
        _contains("Permission denied"),
        "Permission denied. Write the output to a directory you own, or check the file permissions.",
    ),
    Rule(
        ErrorKind.STREAM_SPECIFIER,
        _regex(r"stream specifier .* matches no streams|invalid stream specifier"),
        "A '-map' or stream specifier refers to a stream the input does not have. "
        "Check the stream list in the file analysis.",
    ),
    Rule(
        ErrorKind.OUTPUT_EXISTS,
        _contains("already exists. Overwrite", "already exists. Exiting"),
        "The output file already exists. Add '-y' to overwrite it or choose another name.",
    ),
    Rule(
        ErrorKind.UNRECOGNIZED_OPTION,
        _contains("Unrecognized option"),
        "The command uses an option this ffmpeg version does not know. "
        "It may be misspelled or need a newer ffmpeg.",
    ),
    Rule(
        ErrorKind.ARGUMENT_SPLITTING,
        _contains("Error splitting the argument list"),
        "ffmpeg could not parse the arguments. Check quoting, and that every option has its value.",
    ),
    Rule(
        ErrorKind.NO_OUTPUT,
        _contains(
            "Nothing was written into output file",
            "Output file is empty, nothing was encoded",
            "does not contain any stream",
        ),
        "No valid streams were written. The stream selection or filters probably "
        "excluded everything; check '-map', '-vn'/'-an' and the time range.",
    ),
)

GENERIC_SUGGESTION = "Inspect the output above for the first error ffmpeg reported."


def classify(text: str, rules: Sequence[Rule] = RULES) -> Diagnosis:
    """First matching rule wins; otherwise a generic suggestion."""
    for rule in rules:
        if rule.matches(text):
            return Diagnosis(rule.kind, rule.suggestion)
    return Diagnosis(ErrorKind.UNKNOWN, GENERIC_SUGGESTION)
