"""Bounded log of commands that ran successfully."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
UNKNOWN_FILE = "unknown"

_LINE_RE = re.compile(r'^\[(?P<ts>[^\]]+)\] (?P<file>.*?): "(?P<request>.*)" -> (?P<command>.*)$')


@dataclass(frozen=True)
class HistoryRecord:
    timestamp: datetime
    target_file: Optional[str]
    request: str
    command: str

    def format_line(self) -> str:
        ts = self.timestamp.strftime(TIMESTAMP_FORMAT)
        target = self.target_file or UNKNOWN_FILE
        # one record per line
        request = " ".join(self.request.splitlines())
        command = " ".join(self.command.splitlines())
        return f'[{ts}] {target}: "{request}" -> {command}'

    @classmethod
    def parse(cls, line: str) -> Optional["HistoryRecord"]:
        m = _LINE_RE.match(line.rstrip("\n"))
        if not m:
            return None
        try:
            ts = datetime.strptime(m.group("ts"), TIMESTAMP_FORMAT)
        except ValueError:
            return None
        target = m.group("file")
        return cls(
            timestamp=ts,
            target_file=None if target == UNKNOWN_FILE else target,
            request=m.group("request"),
            command=m.group("command"),
        )


class HistoryStore:
    """Append-only text file holding at most ``limit`` records, oldest dropped first."""

    def __init__(self, path: Path, limit: int = 50):
        if limit < 1:
            raise ValueError(f"History limit must be >= 1, got {limit}")
        self.path = Path(path)
        self.limit = limit

    def lines(self) -> list[str]:
        if not self.path.exists():
            return []
        text = self.path.read_text(encoding="utf-8", errors="replace")
        return [line for line in text.splitlines() if line.strip()]

    def records(self) -> list[HistoryRecord]:
        out = []
        for line in self.lines():
            rec = HistoryRecord.parse(line)
            if rec is not None:
                out.append(rec)
        return out

    def append(self, record: HistoryRecord) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(record.format_line() + "\n")
        self._trim()

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

    def _trim(self) -> None:
        lines = self.lines()
        if len(lines) <= self.limit:
            return
        keep = lines[-self.limit:]
        self.path.write_text("\n".join(keep) + "\n", encoding="utf-8")
