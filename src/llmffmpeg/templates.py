"""Prompt templates: user files first, then the ones shipped with the package."""

from __future__ import annotations

import importlib.resources
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from .config import AppConfig, DEFAULT_TEMPLATE_DIR

MAX_TEMPLATE_BYTES = 256 * 1024


@dataclass(frozen=True)
class Template:
    name: str
    source: Literal["user", "builtin", "path"]
    path: Optional[Path]
    text: str


def _builtin_dir():
    return importlib.resources.files("llmffmpeg").joinpath("builtin_templates")


def _looks_like_path(spec: str) -> bool:
    if spec.startswith(("~", ".", os.sep)):
        return True
    return ("/" in spec) or ("\\" in spec)


def _read_text_file(p: Path) -> str:
    if not p.exists():
        raise FileNotFoundError(str(p))
    if not p.is_file():
        raise ValueError(f"Template path is not a regular file: {p}")
    size = p.stat().st_size
    if size > MAX_TEMPLATE_BYTES:
        raise ValueError(f"Template file too large ({size} bytes): {p}")
    return p.read_text(encoding="utf-8", errors="replace")


def list_templates(template_dir: Path | None = None) -> dict[str, list[str]]:
    """Available template names grouped by source ("user" / "builtin")."""
    td = template_dir or DEFAULT_TEMPLATE_DIR

    user_names: set[str] = set()
    if td.is_dir():
        for p in td.iterdir():
            if p.is_file():
                user_names.add(p.name.removesuffix(".txt"))

    builtin_names: set[str] = set()
    try:
        for entry in _builtin_dir().iterdir():
            if entry.is_file() and entry.name.endswith(".txt"):
                builtin_names.add(entry.name.removesuffix(".txt"))
    except (FileNotFoundError, ModuleNotFoundError):
        pass

    return {
        "user": sorted(user_names),
        "builtin": sorted(builtin_names),
    }


def load_template(spec: str, template_dir: Path | None = None) -> Template:
    """
    Load a prompt template.

    Resolution:
      - If spec looks like a path, read it (``~`` expanded, relative to cwd).
      - Else treat it as a name:
          1) user dir (~/.llm-ffmpeg/templates or template_dir), NAME then NAME.txt
          2) templates shipped in the package, NAME.txt
    """
    if not spec or not spec.strip():
        raise ValueError("Empty template spec")

    spec = spec.strip()
    td = template_dir or DEFAULT_TEMPLATE_DIR

    if _looks_like_path(spec):
        p = Path(spec).expanduser()
        p = p if p.is_absolute() else (Path.cwd() / p)
        return Template(name=p.name, source="path", path=p, text=_read_text_file(p))

    for cand in (td / spec, td / f"{spec}.txt"):
        if cand.is_file():
            return Template(name=spec, source="user", path=cand, text=_read_text_file(cand))

    try:
        entry = _builtin_dir() / f"{spec}.txt"
        if entry.is_file():
            data = entry.read_bytes()
            if len(data) > MAX_TEMPLATE_BYTES:
                raise ValueError(f"Built-in template too large: {spec}")
            return Template(name=spec, source="builtin", path=None, text=data.decode("utf-8", errors="replace"))
    except (FileNotFoundError, ModuleNotFoundError):
        pass

    avail = list_templates(td)
    raise ValueError(
        f"Template '{spec}' not found. "
        f"User templates in {td}: {', '.join(avail['user']) or '(none)'}; "
        f"Built-ins: {', '.join(avail['builtin']) or '(none)'}."
    )


def resolve_template(cfg: AppConfig) -> Template:
    """Return the Template named by cfg.template (cached)."""
    return _cached_template(str(cfg.template_dir), cfg.template)


@lru_cache(maxsize=16)
def _cached_template(template_dir_str: str, name: str) -> Template:
    return load_template(name, Path(template_dir_str))
