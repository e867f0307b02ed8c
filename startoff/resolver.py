"""Destination directory resolution.

Asks for a directory name, checks whether it already exists under the
destination root and, if it does, asks for permission to reuse it.  A refusal
restarts the cycle with the fixed fallback name as the new default.  The flow
is an explicit loop over :class:`ResolveState` so the stack stays flat however
many times the user refuses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from startoff.config import DEFAULT_FALLBACK_DIR
from startoff.prompts import Prompter


class ResolveState(Enum):
    ASK_NAME = "ask_name"
    CHECK_EXISTS = "check_exists"
    CONFIRM_OVERWRITE = "confirm_overwrite"
    DONE = "done"


@dataclass(frozen=True)
class OverwriteDecision:
    """Answer to a single overwrite confirmation."""

    accepted: bool


class DestinationResolver:
    """Produces a user-approved directory name under a destination root."""

    def __init__(self, prompter: Prompter, fallback_name: str = DEFAULT_FALLBACK_DIR) -> None:
        self.prompter = prompter
        self.fallback_name = fallback_name

    def ask_directory_name(self, default_name: str) -> str:
        return self.prompter.ask_directory_name(default_name)

    @staticmethod
    def check_exists(destination_root: str | Path, name: str) -> bool:
        """Return ``True`` if ``<destination_root>/<name>`` already exists."""
        return (Path(destination_root) / name).exists()

    def ask_overwrite(self, name: str) -> OverwriteDecision:
        return OverwriteDecision(accepted=self.prompter.confirm_overwrite(name))

    def resolve(self, destination_root: str | Path, default_name: str) -> str:
        """Run the ask/check/confirm cycle until a name is accepted.

        Returns a name that either does not exist yet under
        *destination_root* or that the user agreed to reuse.
        """
        state = ResolveState.ASK_NAME
        default = default_name
        name = ""

        while state is not ResolveState.DONE:
            if state is ResolveState.ASK_NAME:
                name = self.ask_directory_name(default).strip()
                # Blank answers are re-asked, whatever prompter produced them.
                state = ResolveState.CHECK_EXISTS if name else ResolveState.ASK_NAME

            elif state is ResolveState.CHECK_EXISTS:
                if self.check_exists(destination_root, name):
                    state = ResolveState.CONFIRM_OVERWRITE
                else:
                    state = ResolveState.DONE

            elif state is ResolveState.CONFIRM_OVERWRITE:
                if self.ask_overwrite(name).accepted:
                    state = ResolveState.DONE
                else:
                    default = self.fallback_name
                    state = ResolveState.ASK_NAME

        return name
