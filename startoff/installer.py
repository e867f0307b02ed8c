"""Dependency installation hand-off.

Runs the configured package-manager command (``npm install`` by default)
inside the generated project.  Output streams straight to the terminal.
Every failure is advisory: it raises :class:`InstallationWarning` and the
generated tree is left untouched.
"""

from __future__ import annotations

from pathlib import Path

from startoff.errors import InstallationWarning
from startoff.utils import run_command


class DependencyInstaller:
    """Invokes an external installer in the project directory."""

    def __init__(self, command: list[str] | None = None, timeout: int = 600) -> None:
        self.command = list(command) if command else ["npm", "install"]
        self.timeout = timeout

    @property
    def display_command(self) -> str:
        return " ".join(self.command)

    async def install(self, project_root: str | Path) -> None:
        """Run the installer with ``cwd=project_root``.

        Raises:
            InstallationWarning: If the executable is missing, the command
                times out, or it exits non-zero.
        """
        try:
            returncode, _, stderr = await run_command(
                self.command,
                cwd=project_root,
                timeout=self.timeout,
                capture=False,
            )
        except FileNotFoundError as exc:
            raise InstallationWarning(
                f"'{self.command[0]}' was not found; run '{self.display_command}' "
                f"in {project_root} yourself"
            ) from exc

        if returncode == -1:
            raise InstallationWarning(stderr or f"'{self.display_command}' timed out", returncode)
        if returncode != 0:
            raise InstallationWarning(
                f"'{self.display_command}' exited with code {returncode}", returncode
            )
