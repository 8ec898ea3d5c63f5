from __future__ import annotations

from pathlib import Path
from typing import Optional

import pygments
from prompt_toolkit import PromptSession
from prompt_toolkit import print_formatted_text as print
from prompt_toolkit.formatted_text import HTML, PygmentsTokens
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.styles import Style
from pygments.lexers.shell import BashLexer
from pypager.pager import Pager
from pypager.source import StringSource

command_style = Style.from_dict(
    {
        "prompt": "ansicyan bold",
        "pygments.name.builtin": "ansigreen bold",
        "pygments.text": "ansigreen",
        "pygments.literal.string": "#aaffaa",
        "pygments.literal.string.double": "#aaffaa",
        "pygments.literal.string.single": "#aaffaa",
        "pygments.operator": "ansiyellow",
        "pygments.punctuation": "ansiyellow",
    }
)


class TerminalUI:
    """Operator-facing input and colored output."""

    def __init__(self, feedback_history: Optional[Path] = None):
        if feedback_history:
            feedback_history.parent.mkdir(parents=True, exist_ok=True)
            history = FileHistory(str(feedback_history))
        else:
            history = InMemoryHistory()
        self.session = PromptSession(history=history)

    def ask(self, message: str) -> str:
        """Read one line. EOFError/KeyboardInterrupt propagate to the caller."""
        return self.session.prompt(HTML("<prompt>{}</prompt>").format(message), style=command_style)

    def info(self, text: str) -> None:
        print(HTML("<ansiblue>{}</ansiblue>").format(text))

    def success(self, text: str) -> None:
        print(HTML("<ansigreen>{}</ansigreen>").format(text))

    def warn(self, text: str) -> None:
        print(HTML("<ansiyellow>{}</ansiyellow>").format(text))

    def error(self, text: str) -> None:
        print(HTML("<ansired>{}</ansired>").format(text))

    def show_command(self, command: str) -> None:
        tokens = list(pygments.lex(command, lexer=BashLexer()))
        print(HTML("\n<b>--- Generated ffmpeg command ---</b>"))
        print(PygmentsTokens(tokens), style=command_style, end="")
        print(HTML("<b>--------------------------------</b>"))

    def echo(self, line: str) -> None:
        print(line, end="")

    def page(self, text: str) -> None:
        pager = Pager()
        pager.add_source(StringSource(text))
        pager.run()
