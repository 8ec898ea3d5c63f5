"""Shared fixtures: a scripted terminal, a fake OpenAI client and a config
whose persisted state lives under tmp_path."""

from types import SimpleNamespace

import pytest

from llmffmpeg.config import AppConfig


class ScriptedUI:
    """Stands in for TerminalUI. ``answers`` are returned by ask() in order;
    an exception instance in the list is raised instead."""

    def __init__(self, answers=()):
        self.answers = list(answers)
        self.asked = []
        self.messages = []
        self.commands = []
        self.echoed = []
        self.paged = []

    def ask(self, message):
        self.asked.append(message)
        if not self.answers:
            raise EOFError
        answer = self.answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer

    def info(self, text):
        self.messages.append(("info", text))

    def success(self, text):
        self.messages.append(("success", text))

    def warn(self, text):
        self.messages.append(("warn", text))

    def error(self, text):
        self.messages.append(("error", text))

    def show_command(self, command):
        self.commands.append(command)

    def echo(self, line):
        self.echoed.append(line)

    def page(self, text):
        self.paged.append(text)

    def text(self, level=None):
        return "\n".join(t for lvl, t in self.messages if level is None or lvl == level)


class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


class FakeModels:
    def __init__(self, ids=(), error=None):
        self.ids = list(ids)
        self.error = error

    def list(self):
        if self.error:
            raise self.error
        return [SimpleNamespace(id=i) for i in self.ids]


class FakeClient:
    def __init__(self, replies=(), model_ids=(), models_error=None):
        self.completions = FakeCompletions(replies)
        self.chat = SimpleNamespace(completions=self.completions)
        self.models = FakeModels(model_ids, models_error)
        self.base_url = "http://localhost:11434/v1"

    @property
    def prompts(self):
        """User-role contents sent so far, in order."""
        return [c["messages"][-1]["content"] for c in self.completions.calls]


@pytest.fixture
def cfg(tmp_path):
    return AppConfig(
        model="test-model",
        provider="compat",
        base_url="http://localhost:11434/v1",
        openai_api_key=None,
        bearer_token=None,
        history_path=tmp_path / "history",
        scratch_dir=tmp_path / "scratch",
        template_dir=tmp_path / "templates",
    )


@pytest.fixture
def make_ui():
    return ScriptedUI


@pytest.fixture
def make_client():
    return FakeClient
