"""The generate -> present -> execute-or-refine -> recover loop.

``transition`` is a pure function over (State, Session, event). The
``SessionController`` performs the one blocking side effect each state
needs (LLM call, menu read, execution...), turns its result into an event,
and feeds it to ``transition`` until a terminal state is reached.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

import pyperclip

from .config import AppConfig
from .diagnose import classify
from .executor import ExecutionOutcome, execute_command
from .extract import CandidateCommand, ExtractionFailure, extract
from .history import HistoryRecord, HistoryStore
from .llm import LLMError, explain_command, generate_command
from .probe import FileSummary, probe
from .prompt import build_prompt

logger = logging.getLogger("llmffmpeg.session")

RESPONSE_FILENAME = "response.txt"
EXECUTION_LOG_FILENAME = "execution.log"

MAIN_MENU = "Run it? [y]es / [n]o, copy / [e]xplain / [r]efine / [s]how history: "
FAILURE_MENU = "[f] auto-fix / [r] refine manually / [q] quit: "


class State(Enum):
    GENERATING = "generating"
    PRESENTING = "presenting"
    EXECUTING = "executing"
    EXPLAINING = "explaining"
    SHOWING_HISTORY = "showing-history"
    REFINING = "refining"
    RECOVERING = "recovering"
    FIXING = "fixing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    QUIT = "quit"


TERMINAL_STATES = frozenset({State.SUCCEEDED, State.FAILED, State.QUIT})


@dataclass(frozen=True)
class Session:
    user_request: str
    target_file: Optional[str] = None
    error_context: Optional[str] = None
    file_summary: Optional[FileSummary] = None
    probed: bool = False
    candidate: Optional[CandidateCommand] = None
    last_output: Optional[str] = None
    failure: Optional[str] = None


# events

@dataclass(frozen=True)
class Probed:
    summary: Optional[FileSummary]


@dataclass(frozen=True)
class Generated:
    candidate: CandidateCommand


@dataclass(frozen=True)
class GenerationFailed:
    message: str


@dataclass(frozen=True)
class Choice:
    key: str


@dataclass(frozen=True)
class Feedback:
    text: str


@dataclass(frozen=True)
class Executed:
    outcome: ExecutionOutcome


@dataclass(frozen=True)
class Returned:
    """A non-consuming action (explain, history) finished."""


@dataclass(frozen=True)
class Interrupted:
    """Operator hit Ctrl-C / Ctrl-D at a prompt."""


Event = Union[Probed, Generated, GenerationFailed, Choice, Feedback, Executed, Returned, Interrupted]


class InvalidTransition(RuntimeError):
    def __init__(self, state: State, event: Event):
        super().__init__(f"No transition from {state.value} on {type(event).__name__}")
        self.state = state
        self.event = event


_MAIN_MENU_TARGETS = {
    "y": State.EXECUTING,
    "n": State.SUCCEEDED,
    "e": State.EXPLAINING,
    "r": State.REFINING,
    "s": State.SHOWING_HISTORY,
}


def append_feedback(request: str, tag: str, feedback: str) -> str:
    return f"{request}. {tag}: {feedback}"


def bind_executable(command: str, token: str, executable: str) -> str:
    """Run the configured binary in place of a bare leading ``token``."""
    if executable == token or not command.startswith(token):
        return command
    return shlex.quote(executable) + command[len(token):]


def transition(state: State, session: Session, event: Event) -> tuple[State, Session]:
    if state in TERMINAL_STATES:
        raise InvalidTransition(state, event)

    if isinstance(event, Interrupted):
        return State.QUIT, session

    if state is State.GENERATING:
        if isinstance(event, Probed):
            return State.GENERATING, replace(session, file_summary=event.summary, probed=True)
        if isinstance(event, Generated):
            return State.PRESENTING, replace(session, candidate=event.candidate, failure=None)
        if isinstance(event, GenerationFailed):
            return State.FAILED, replace(session, failure=event.message)

    elif state is State.PRESENTING:
        if isinstance(event, Choice):
            return _MAIN_MENU_TARGETS.get(event.key, State.PRESENTING), session

    elif state in (State.EXPLAINING, State.SHOWING_HISTORY):
        if isinstance(event, Returned):
            return State.PRESENTING, session

    elif state is State.REFINING:
        if isinstance(event, Feedback):
            text = event.text.strip()
            if not text:
                return State.PRESENTING, session
            request = append_feedback(session.user_request, "Also", text)
            return State.GENERATING, replace(session, user_request=request, candidate=None)

    elif state is State.EXECUTING:
        if isinstance(event, Executed):
            if event.outcome.succeeded:
                return State.SUCCEEDED, session
            return State.RECOVERING, replace(session, last_output=event.outcome.output)

    elif state is State.RECOVERING:
        if isinstance(event, Choice):
            if event.key == "f":
                return State.GENERATING, replace(session, error_context=session.last_output, candidate=None)
            if event.key == "r":
                return State.FIXING, session
            if event.key == "q":
                return State.QUIT, session
            return State.RECOVERING, session

    elif state is State.FIXING:
        if isinstance(event, Feedback):
            text = event.text.strip()
            if not text:
                return State.RECOVERING, session
            request = append_feedback(session.user_request, "Fix", text)
            return State.GENERATING, replace(
                session, user_request=request, error_context=session.last_output, candidate=None
            )

    raise InvalidTransition(state, event)


ProbeFn = Callable[..., Optional[FileSummary]]
ExecuteFn = Callable[..., ExecutionOutcome]


class SessionController:
    """Drives one Session from its first generation to a terminal state."""

    def __init__(
        self,
        cfg: AppConfig,
        client,
        ui,
        *,
        template: str,
        history: HistoryStore,
        probe_fn: ProbeFn = probe,
        execute_fn: ExecuteFn = execute_command,
        copy_fn: Callable[[str], None] = pyperclip.copy,
    ):
        self.cfg = cfg
        self.client = client
        self.ui = ui
        self.template = template
        self.history = history
        self.probe_fn = probe_fn
        self.execute_fn = execute_fn
        self.copy_fn = copy_fn
        self.state = State.GENERATING
        self.session: Optional[Session] = None

    def run(self, request: str, target_file: Optional[str] = None) -> State:
        self.state = State.GENERATING
        self.session = Session(user_request=request, target_file=target_file)

        while self.state not in TERMINAL_STATES:
            try:
                event = self._perform(self.state, self.session)
            except (EOFError, KeyboardInterrupt):
                self.ui.warn("\nCancelled.")
                event = Interrupted()
            logger.debug("%s + %s", self.state.value, type(event).__name__)
            self.state, self.session = transition(self.state, self.session, event)

        return self.state

    # one side effect per state

    def _perform(self, state: State, session: Session) -> Event:
        handler = {
            State.GENERATING: self._generate,
            State.PRESENTING: self._present,
            State.EXECUTING: self._execute,
            State.EXPLAINING: self._explain,
            State.SHOWING_HISTORY: self._show_history,
            State.REFINING: self._refine,
            State.RECOVERING: self._recover,
            State.FIXING: self._fix,
        }[state]
        return handler(session)

    def _generate(self, session: Session) -> Event:
        if not session.probed:
            summary = self.probe_fn(
                session.target_file, ffmpeg=self.cfg.ffmpeg, scratch_dir=self.cfg.scratch_dir
            )
            if summary is not None:
                self.ui.info(f"Analyzed {session.target_file}")
            return Probed(summary)

        prompt = build_prompt(
            self.template,
            session.target_file,
            session.user_request,
            file_summary=session.file_summary,
            error_context=session.error_context,
        )
        self.ui.info("Generating command..." if session.error_context is None else "Generating a fix...")
        try:
            raw = generate_command(prompt, self.client, self.cfg.model)
        except LLMError as e:
            self.ui.error(str(e))
            return GenerationFailed(str(e))

        self._write_scratch(RESPONSE_FILENAME, raw)
        result = extract(raw, token=self.cfg.token)
        if isinstance(result, ExtractionFailure):
            self.ui.error(f"Could not extract a command: {result.reason}")
            self.ui.warn("Model response was:")
            self.ui.echo(result.raw + "\n")
            self.ui.warn("Try rephrasing the request or use a different model (-m).")
            return GenerationFailed(result.raw)
        return Generated(result)

    def _present(self, session: Session) -> Event:
        self.ui.show_command(session.candidate.text)
        key = self.ui.ask(MAIN_MENU).strip().lower()[:1]
        if key == "n":
            self._copy(session.candidate.text)
        elif key not in _MAIN_MENU_TARGETS:
            self.ui.warn("Please answer y, n, e, r or s.")
        return Choice(key)

    def _copy(self, command: str) -> None:
        try:
            self.copy_fn(command)
        except pyperclip.PyperclipException as e:
            logger.info("Clipboard unavailable: %s", e)
            self.ui.info("Command not executed.")
            return
        self.ui.info("Command not executed. Copied to clipboard.")

    def _explain(self, session: Session) -> Event:
        try:
            text = explain_command(session.candidate.text, self.client, self.cfg.model)
        except LLMError as e:
            self.ui.error(str(e))
            return Returned()
        self.ui.echo(text + "\n")
        return Returned()

    def _show_history(self, session: Session) -> Event:
        lines = self.history.lines()
        if not lines:
            self.ui.info("No history yet.")
        else:
            self.ui.page("\n".join(lines) + "\n")
        return Returned()

    def _refine(self, session: Session) -> Event:
        return Feedback(self.ui.ask("What should change? "))

    def _execute(self, session: Session) -> Event:
        command = session.candidate.text
        self.ui.info(f"\nExecuting: {command}\n")
        outcome = self.execute_fn(
            bind_executable(command, self.cfg.token, self.cfg.ffmpeg),
            echo=self.ui.echo,
            log_path=self.cfg.scratch_dir / EXECUTION_LOG_FILENAME,
            phrases=self.cfg.silent_failure_phrases,
        )
        if outcome.succeeded:
            self.history.append(
                HistoryRecord(
                    timestamp=datetime.now(),
                    target_file=session.target_file,
                    request=session.user_request,
                    command=command,
                )
            )
            self.ui.success("Done.")
            return Executed(outcome)

        if outcome.exit_code == 0:
            self.ui.error("ffmpeg exited 0 but produced no usable output.")
        else:
            self.ui.error(f"Command failed (exit {outcome.exit_code}).")
        diagnosis = classify(outcome.output)
        self.ui.warn(f"Suggestion: {diagnosis.suggestion}")
        return Executed(outcome)

    def _recover(self, session: Session) -> Event:
        key = self.ui.ask(FAILURE_MENU).strip().lower()[:1]
        if key not in ("f", "r", "q"):
            self.ui.warn("Please answer f, r or q.")
        return Choice(key)

    def _fix(self, session: Session) -> Event:
        return Feedback(self.ui.ask("Describe the fix: "))

    def _write_scratch(self, name: str, text: str) -> Optional[Path]:
        path = self.cfg.scratch_dir / name
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write %s: %s", path, e)
            return None
        return path
