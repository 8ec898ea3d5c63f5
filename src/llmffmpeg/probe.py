"""Summarise a media file from ffmpeg's own diagnostic output.

``ffmpeg -i FILE`` with no output prints the container and stream layout
to stderr and exits non-zero. That is enough context for the model, and it
avoids depending on ffprobe being installed next to ffmpeg.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger("llmffmpeg.probe")

PROBE_FILENAME = "file_info.txt"

_DURATION_RE = re.compile(r"Duration:\s*([^,\s]+)")
_STREAM_RE = re.compile(r"Stream #\S+?:\s*(Video|Audio|Subtitle):\s*(.+)$")


@dataclass(frozen=True)
class FileSummary:
    duration: Optional[str] = None
    video_streams: tuple[str, ...] = ()
    audio_streams: tuple[str, ...] = ()
    subtitle_streams: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.duration or self.video_streams or self.audio_streams or self.subtitle_streams)

    def render(self) -> str:
        """Human-readable block; fields that are absent are left out."""
        lines: list[str] = []
        if self.duration:
            lines.append(f"Duration: {self.duration}")
        for title, streams in (
            ("Video streams", self.video_streams),
            ("Audio streams", self.audio_streams),
            ("Subtitle streams", self.subtitle_streams),
        ):
            if streams:
                lines.append(f"{title}:")
                lines.extend(f"  - {s}" for s in streams)
        return "\n".join(lines)


def parse_probe_output(text: str) -> Optional[FileSummary]:
    """Parse ffmpeg's stderr into a FileSummary, or None if nothing was found."""
    duration: Optional[str] = None
    streams: dict[str, list[str]] = {"Video": [], "Audio": [], "Subtitle": []}

    for line in text.splitlines():
        line = line.strip()
        if duration is None:
            m = _DURATION_RE.search(line)
            if m and m.group(1) != "N/A":
                duration = m.group(1)
                continue
        m = _STREAM_RE.search(line)
        if m:
            streams[m.group(1)].append(m.group(2).strip())

    summary = FileSummary(
        duration=duration,
        video_streams=tuple(streams["Video"]),
        audio_streams=tuple(streams["Audio"]),
        subtitle_streams=tuple(streams["Subtitle"]),
    )
    return None if summary.is_empty else summary


def probe(
    path: Optional[str],
    *,
    ffmpeg: str = "ffmpeg",
    scratch_dir: Optional[Path] = None,
    timeout: float = 30,
) -> Optional[FileSummary]:
    """Inspect ``path`` with ffmpeg. Missing or unreadable files give None."""
    if not path or not Path(path).is_file():
        return None

    try:
        proc = subprocess.run(
            [ffmpeg, "-hide_banner", "-i", str(path)],
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("Could not inspect %s: %s", path, e)
        return None

    # inspection-only calls always exit non-zero; the metadata is on stderr
    raw = proc.stderr or ""
    if scratch_dir is not None:
        try:
            scratch_dir.mkdir(parents=True, exist_ok=True)
            (scratch_dir / PROBE_FILENAME).write_text(raw, encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write probe output to %s: %s", scratch_dir, e)

    summary = parse_probe_output(raw)
    if summary is None:
        logger.info("No stream information recognised for %s", path)
    return summary
