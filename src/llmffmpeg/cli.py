from __future__ import annotations

import argparse
import logging
import os
import shlex
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

import pyperclip

from . import __version__
from .config import AppConfig, DEFAULT_CONFIG_PATH, resolve_config, save_config
from .history import HistoryStore
from .llm import LLMError, build_client, list_models, verify_connection
from .session import SessionController, State
from .templates import list_templates, resolve_template
from .ui import TerminalUI

logger = logging.getLogger("llmffmpeg")

FEEDBACK_HISTFILE = Path.home() / ".llm-ffmpeg" / "feedback_history"

EPILOG = """examples:
  llm-ffmpeg video.mp4 "convert to MP3"
  llm-ffmpeg movie.mkv "clip from 1:30 to 2:45"
  llm-ffmpeg "extract first 30 seconds from input.mp4"
  llm-ffmpeg --setup

at the prompt: [y] run  [n] copy to clipboard  [e] explain  [r] refine  [s] history
after a failure: [f] auto-fix  [r] refine manually  [q] quit
"""


class EnvironmentCheckError(RuntimeError):
    """A required external tool is missing."""


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="llm-ffmpeg",
        description="Turn a plain-language request into an ffmpeg command, then run, refine or fix it.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument(
        "words",
        nargs="*",
        metavar="[FILE] REQUEST",
        help="Optional input file followed by the request. Extra words are joined into one request.",
    )
    p.add_argument("-m", "--model", type=str, default=None,
                   help="Model to use. Defaults LLM_FFMPEG_MODEL, config file, then a provider default.")
    p.add_argument("--api-key", type=str, default=None,
                   help="OpenAI API key. Defaults LLM_FFMPEG_OPENAI_API_KEY.")
    p.add_argument("--bearer-token", type=str, default=None,
                   help="Bearer token for a compatible endpoint. Defaults LLM_FFMPEG_BEARER_TOKEN.")
    p.add_argument("--url", type=str, default=None,
                   help="Base URL for an OpenAI-compatible API. Defaults LLM_FFMPEG_LLM_API_URL then http://localhost:11434")
    p.add_argument("--provider", choices=("openai", "compat"), default=None,
                   help="Force the provider instead of inferring it from --api-key/--url.")
    p.add_argument("--template", type=str, default=None, help="Prompt template name or path")
    p.add_argument("--template-dir", type=Path, default=None, help="Override ~/.llm-ffmpeg/templates")
    p.add_argument("--history-limit", type=int, default=None, help="How many history entries to keep (default 50)")

    p.add_argument("--setup", action="store_true", help="Check dependencies and configuration, then exit")
    p.add_argument("--list-models", action="store_true", help="List models offered by the endpoint and exit")
    p.add_argument("--list-templates", action="store_true", help="List available prompt templates and exit")
    p.add_argument("--history", action="store_true", help="Show recent successful commands and exit")
    p.add_argument("--clear-history", action="store_true", help="Delete the command history and exit")
    p.add_argument("--save-config", action="store_true",
                   help="Write the resolved non-secret settings to ~/.llm-ffmpeg/config.env and exit")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def _strip_token(tok: str) -> str:
    return tok.strip("\"'").rstrip(".,;:!?")


def guess_target_file(request: str, is_file: Callable[[str], bool] = os.path.isfile) -> Optional[str]:
    """First word of the request that names an existing file, if any."""
    try:
        tokens = shlex.split(request)
    except ValueError:
        tokens = request.split()
    for tok in tokens:
        cand = _strip_token(tok)
        if cand and is_file(cand):
            return cand
    return None


def split_arguments(
    words: Sequence[str],
    is_file: Callable[[str], bool] = os.path.isfile,
) -> tuple[Optional[str], str]:
    """Return (target_file, request) from the positional words.

    - one word: the request; the target is guessed from it
    - two words: FILE REQUEST
    - more: FILE REQUEST... if the first names an existing file, otherwise
      everything is one request
    """
    words = [w for w in words if w.strip()]
    if not words:
        return None, ""
    if len(words) == 1:
        return guess_target_file(words[0], is_file), words[0]
    if len(words) == 2:
        return words[0], words[1]
    if is_file(words[0]):
        return words[0], " ".join(words[1:])
    request = " ".join(words)
    return guess_target_file(request, is_file), request


def check_environment(cfg: AppConfig) -> str:
    """Return the resolved ffmpeg path or raise EnvironmentCheckError."""
    path = shutil.which(cfg.ffmpeg)
    if not path:
        raise EnvironmentCheckError(
            f"'{cfg.ffmpeg}' not found in PATH. Install ffmpeg (e.g. 'brew install ffmpeg' "
            "or 'apt install ffmpeg') or set ffmpeg=/path/to/ffmpeg in the config file."
        )
    return path


def _ffmpeg_version(path: str) -> str:
    try:
        proc = subprocess.run([path, "-version"], capture_output=True, text=True, timeout=10)
    except (OSError, subprocess.TimeoutExpired) as e:
        return f"(could not run: {e})"
    first = (proc.stdout or "").splitlines()
    return first[0] if first else "(unknown version)"


def run_setup(cfg: AppConfig, ui: TerminalUI) -> int:
    """Dependency and configuration report. Returns an exit code."""
    ok = True

    try:
        path = check_environment(cfg)
        ui.success(f"ffmpeg:    {path}  {_ffmpeg_version(path)}")
    except EnvironmentCheckError as e:
        ui.error(f"ffmpeg:    {e}")
        ok = False

    where = cfg.base_url or "api.openai.com"
    try:
        verify_connection(build_client(cfg))
        ui.success(f"LLM:       {cfg.provider} at {where}, model {cfg.model}")
    except LLMError as e:
        ui.error(f"LLM:       {e}")
        ok = False

    try:
        tpl = resolve_template(cfg)
        ui.success(f"template:  {tpl.name} ({tpl.source})")
    except (ValueError, FileNotFoundError) as e:
        ui.error(f"template:  {e}")
        ok = False

    try:
        pyperclip.paste()
        ui.success("clipboard: available")
    except pyperclip.PyperclipException:
        ui.warn("clipboard: unavailable (commands will not be copied)")

    ui.info(f"config:    {DEFAULT_CONFIG_PATH}{'' if DEFAULT_CONFIG_PATH.exists() else ' (not present)'}")
    ui.info(f"history:   {cfg.history_path} (last {cfg.history_limit} commands)")
    ui.info(f"scratch:   {cfg.scratch_dir}")
    return 0 if ok else 1


def main(argv: Optional[Sequence[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = resolve_config(args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        raise SystemExit(1)

    if args.list_templates:
        avail = list_templates(cfg.template_dir)
        print("User templates:")
        for n in avail["user"]:
            print(f"  {n}")
        print("Built-in templates:")
        for n in avail["builtin"]:
            print(f"  {n}")
        raise SystemExit(0)

    if args.history:
        lines = HistoryStore(cfg.history_path, cfg.history_limit).lines()
        if not lines:
            print("No history yet.")
        for line in lines:
            print(line)
        raise SystemExit(0)

    if args.clear_history:
        HistoryStore(cfg.history_path, cfg.history_limit).clear()
        print("History cleared.")
        raise SystemExit(0)

    if args.save_config:
        print(f"Configuration saved to {save_config(cfg)}")
        raise SystemExit(0)

    if args.setup:
        raise SystemExit(run_setup(cfg, TerminalUI()))

    if args.list_models:
        try:
            for name in list_models(build_client(cfg)):
                print(name)
        except LLMError as e:
            print(str(e), file=sys.stderr)
            raise SystemExit(1)
        raise SystemExit(0)

    target_file, request = split_arguments(args.words)
    if not request:
        parser.print_usage(sys.stderr)
        print("llm-ffmpeg: error: a request is required (see --help)", file=sys.stderr)
        raise SystemExit(1)

    ui = TerminalUI(feedback_history=FEEDBACK_HISTFILE)
    try:
        check_environment(cfg)
        template = resolve_template(cfg).text
        client = build_client(cfg)
    except (EnvironmentCheckError, LLMError, ValueError, FileNotFoundError) as e:
        ui.error(str(e))
        raise SystemExit(1)

    if target_file and not Path(target_file).exists():
        ui.warn(f"{target_file} not found; generating without file analysis.")

    controller = SessionController(
        cfg,
        client,
        ui,
        template=template,
        history=HistoryStore(cfg.history_path, cfg.history_limit),
    )
    state = controller.run(request, target_file)
    logger.debug("session ended in %s", state.value)
    raise SystemExit(0 if state is State.SUCCEEDED else 1)


if __name__ == "__main__":
    main()
