"""Interactive prompts.

The pipeline talks to the user only through a :class:`Prompter`.  The
default :class:`ConsolePrompter` uses ``rich.prompt``; tests substitute a
scripted prompter.  Empty directory names are rejected inside the prompt loop
itself (rich re-asks on :class:`~rich.prompt.InvalidResponse`), so they never
reach the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import IO

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, InvalidResponse, Prompt

from startoff.profile import ProjectType
from startoff.utils import console as default_console


EMPTY_NAME_MESSAGE = "[prompt.invalid]Directory name must not be empty!"


class DirectoryNamePrompt(Prompt):
    """Free-text prompt that refuses empty (or whitespace-only) answers."""

    def process_response(self, value: str) -> str:
        name = super().process_response(value)
        if len(name) < 1:
            raise InvalidResponse(EMPTY_NAME_MESSAGE)
        return name

    def on_validate_error(self, value: str, error: InvalidResponse) -> None:
        self.console.bell()
        super().on_validate_error(value, error)


class Prompter(ABC):
    """Source of the user's answers during profile collection."""

    @abstractmethod
    def choose_project_type(self, default: ProjectType = ProjectType.PC) -> ProjectType:
        """Single choice between the supported project types."""

    @abstractmethod
    def ask_directory_name(self, default: str) -> str:
        """Free-text directory name; never returns an empty string."""

    @abstractmethod
    def confirm_overwrite(self, directory_name: str) -> bool:
        """Yes/no confirmation for reusing an existing directory (default no)."""


class ConsolePrompter(Prompter):
    """Prompter backed by ``rich.prompt`` on the terminal."""

    def __init__(self, console: Console | None = None, stream: IO[str] | None = None) -> None:
        self.console = console or default_console
        self.stream = stream

    def choose_project_type(self, default: ProjectType = ProjectType.PC) -> ProjectType:
        for project_type in ProjectType:
            self.console.print(f"  [cyan]{project_type.value}[/cyan]  {escape(project_type.label)}")
        answer = Prompt.ask(
            "Please choose the use for your project",
            choices=[t.value for t in ProjectType],
            default=default.value,
            console=self.console,
            stream=self.stream,
        )
        return ProjectType(answer)

    def ask_directory_name(self, default: str) -> str:
        return DirectoryNamePrompt.ask(
            "Please enter the directory name for your project",
            default=default if default else ...,
            console=self.console,
            stream=self.stream,
        )

    def confirm_overwrite(self, directory_name: str) -> bool:
        return Confirm.ask(
            f"[yellow]Directory [bold]{escape(directory_name)}[/bold] exists.[/yellow] "
            "Use this directory anyway? [dim]CAUTION! Files may be overwritten.[/dim]",
            default=False,
            console=self.console,
            stream=self.stream,
        )
