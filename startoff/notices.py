"""Console notices printed around the pipeline.

Welcome banner, environment info, update check and the final success box.
None of these affect the pipeline's outcome; the update check in particular
swallows every network or parse problem and simply reports nothing.
"""

from __future__ import annotations

import os
import platform
import re

import httpx
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from startoff.utils import console as default_console


HOMEPAGE = "https://github.com/ziwen-wang/generator-vite-startoff"
PYPI_URL = "https://pypi.org/pypi/{package}/json"


class UpdateInfo(BaseModel):
    """A newer release than the running one."""

    current: str
    latest: str


def print_welcome(version: str, console: Console | None = None) -> None:
    out = console or default_console
    out.print()
    out.print(
        Panel(
            f"Welcome to [bold]startoff[/bold] [dim](v{version})[/dim]\n"
            "[yellow]Create a Vite + Vue 3 frontend project from a template.[/yellow]\n"
            f"[dim]{HOMEPAGE}[/dim]",
            border_style="green",
            expand=False,
            padding=(1, 2),
        )
    )


def print_env_info(console: Console | None = None) -> None:
    out = console or default_console
    out.print("[dim]Environment Info:[/dim]")
    out.print(f"[dim]Python\t{platform.python_version()}[/dim]")
    out.print(f"[dim]PWD\t{escape(os.getcwd())}[/dim]")


def _version_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version.split("+")[0])[:3])


async def check_for_update(
    current: str,
    package: str = "startoff",
    timeout: float = 3.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> UpdateInfo | None:
    """Ask PyPI for the latest release of *package*.

    Returns:
        ``UpdateInfo`` when a newer version exists, otherwise ``None``
        (including when PyPI cannot be reached).
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(PYPI_URL.format(package=package))
            response.raise_for_status()
            latest = response.json()["info"]["version"]
    except (httpx.HTTPError, ValueError, KeyError, TypeError):
        return None

    if _version_key(latest) > _version_key(current):
        return UpdateInfo(current=current, latest=latest)
    return None


def print_update_notice(info: UpdateInfo, package: str = "startoff", console: Console | None = None) -> None:
    out = console or default_console
    out.print(
        Panel(
            "[black on yellow] WARN [/black on yellow]  startoff is not the latest release.\n\n"
            f"[dim]current {info.current} -> latest[/dim] [green]{info.latest}[/green]\n"
            f"[dim]Upgrade with[/dim] pip install -U {package}",
            border_style="yellow",
            expand=False,
            padding=(1, 2),
        )
    )
    out.bell()


def print_success_box(directory_name: str, console: Console | None = None) -> None:
    out = console or default_console
    out.print()
    out.print(
        Panel(
            "Project created successfully! Now you can enter "
            f"[green]{escape(directory_name)}[/green] and start to code.",
            border_style="white",
            expand=False,
            padding=(1, 2),
        )
    )
