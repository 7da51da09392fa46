"""Terminal prompts backed by rich."""

from __future__ import annotations

from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt


class RichItemChooser:
    """Numbered single-choice list. Returns the chosen label."""

    def __init__(self, console: Optional[Console] = None, message: str = "Select a target"):
        self.console = console or Console(stderr=True)
        self.message = message

    def choose(self, labels: Sequence[str]) -> str:
        if not labels:
            raise ValueError("no options to choose from")
        self.console.print()
        for i, label in enumerate(labels, 1):
            self.console.print(f"  [cyan]{i:>3}[/cyan]  {escape(label)}", highlight=False)
        choice = Prompt.ask(
            f"\n[cyan]{self.message}[/cyan]",
            choices=[str(i) for i in range(1, len(labels) + 1)],
            show_choices=False,
            console=self.console,
        )
        return labels[int(choice) - 1]


class RichNamePrompter:
    """Asks for a favorite name until a non-empty one is given."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    def prompt_name(self) -> str:
        while True:
            name = Prompt.ask("[cyan]Favorite name[/cyan]", console=self.console).strip()
            if name:
                return name
            self.console.print("[yellow]A name is required[/yellow]")
