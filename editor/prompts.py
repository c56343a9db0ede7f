"""
editor/prompts.py -- User confirmation and notification seam for the editor.

The editor never blocks on a dialog itself. It asks a Prompt for a decision
and hands it messages to show, so a terminal, a GUI or a test can each
supply their own.
"""

from typing import Callable, Protocol


class Prompt(Protocol):
    def confirm(self, message: str) -> bool: ...

    def notify(self, message: str) -> None: ...


class ConsolePrompt:
    """Terminal prompt. Anything other than y/yes counts as no."""

    def __init__(self, input_fn: Callable[[str], str] = input, output_fn: Callable[[str], None] = print) -> None:
        self._input = input_fn
        self._output = output_fn

    def confirm(self, message: str) -> bool:
        answer = self._input(f"{message} [y/N] ")
        return answer.strip().lower() in ("y", "yes")

    def notify(self, message: str) -> None:
        self._output(message)


class AutoConfirmPrompt:
    """Answers yes to everything. For scripted runs (main.py --yes)."""

    def __init__(self, output_fn: Callable[[str], None] = print) -> None:
        self._output = output_fn

    def confirm(self, message: str) -> bool:
        return True

    def notify(self, message: str) -> None:
        self._output(message)
