"""Staging tree materialization.

Walks the fetched template depth-first and writes every regular file under
the project directory, substituting project variables such as ``{{ dirName }}``
into both the relative path and the file content.  Binary files (anything
that is not UTF-8 text) and files matching the ``copy_only`` globs are copied
byte-for-byte.  The first failure aborts the walk.
"""

from __future__ import annotations

import asyncio
import re
import shutil
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

from jinja2 import Environment, TemplateSyntaxError

from startoff.errors import MaterializationError
from startoff.profile import ProjectProfile


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Substitutes project variables into template text.

    Only interpolations that consist of a single name known to the context,
    such as ``{{ dirName }}``, are replaced.  Every other interpolation,
    including Vue expressions like ``{{ item.name }}`` or ``{{ $t('x') }}``,
    is left byte-for-byte.  Each candidate is tokenized with the Jinja2 lexer
    so that delimiter and whitespace-control handling match Jinja's own.
    """

    def __init__(self, variable_start: str = "{{", variable_end: str = "}}") -> None:
        self.env = Environment(
            autoescape=False,
            keep_trailing_newline=True,
            variable_start_string=variable_start,
            variable_end_string=variable_end,
        )
        self._interpolation = re.compile(
            re.escape(variable_start) + r".*?" + re.escape(variable_end), re.DOTALL
        )

    def needs_render(self, text: str) -> bool:
        """Whether *text* contains a variable delimiter at all."""
        return self.env.variable_start_string in text

    def variable_name(self, interpolation: str) -> str | None:
        """Return the bare name in *interpolation*, or ``None`` for anything else."""
        try:
            tokens = [
                (kind, value)
                for _, kind, value in self.env.lex(interpolation)
                if kind != "whitespace"
            ]
        except TemplateSyntaxError:
            return None
        if len(tokens) != 3:
            return None
        (begin, _), (kind, name), (end, _) = tokens
        if (begin, kind, end) != ("variable_begin", "name", "variable_end"):
            return None
        return name

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        """Replace known-name interpolations in *template_string*."""
        if not self.needs_render(template_string):
            return template_string

        def substitute(match: re.Match[str]) -> str:
            name = self.variable_name(match.group(0))
            if name is None or name not in context:
                return match.group(0)
            return str(context[name])

        return self._interpolation.sub(substitute, template_string)


# ---------------------------------------------------------------------------
# TreeMaterializer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileEntry:
    """A regular file discovered in the staging tree."""

    source_path: Path
    relative_path: PurePosixPath


class TreeMaterializer:
    """Copies a staging tree into the project directory with substitution."""

    def __init__(
        self,
        renderer: TemplateRenderer | None = None,
        copy_only: Sequence[str] = (),
    ) -> None:
        self.renderer = renderer or TemplateRenderer()
        self.copy_only = list(copy_only)

    # -- Walking -----------------------------------------------------------

    def iter_entries(self, staging_root: str | Path) -> Iterator[FileEntry]:
        """Yield every regular file under *staging_root*, depth-first, by name."""
        root = Path(staging_root)
        yield from self._walk(root, root)

    def _walk(self, path: Path, root: Path) -> Iterator[FileEntry]:
        if path.is_dir():
            for child in sorted(path.iterdir(), key=lambda p: p.name):
                yield from self._walk(child, root)
            return
        yield FileEntry(
            source_path=path,
            relative_path=PurePosixPath(path.relative_to(root).as_posix()),
        )

    # -- Destination -------------------------------------------------------

    def destination_for(
        self, entry: FileEntry, destination_root: str | Path, context: dict[str, Any]
    ) -> Path:
        """Render the entry's relative path and join it onto *destination_root*."""
        rendered = PurePosixPath(
            self.renderer.render_string(entry.relative_path.as_posix(), context)
        )
        if rendered.is_absolute() or ".." in rendered.parts or not rendered.parts:
            raise MaterializationError(
                f"Rendered path {str(rendered)!r} escapes the project directory",
                path=str(entry.relative_path),
            )
        return Path(destination_root).joinpath(*rendered.parts)

    def is_copy_only(self, relative_path: PurePosixPath) -> bool:
        return any(relative_path.match(pattern) for pattern in self.copy_only)

    # -- Public API --------------------------------------------------------

    async def materialize(
        self,
        staging_root: str | Path,
        destination_root: str | Path,
        profile: ProjectProfile,
    ) -> list[Path]:
        """Render every staged file into *destination_root*.

        Returns:
            Written file paths, in walk order.

        Raises:
            MaterializationError: On the first read or write failure, or on a
                rendered path that leaves *destination_root*.
        """
        staging = Path(staging_root)
        if not staging.is_dir():
            raise MaterializationError(
                f"Staging tree {staging} does not exist", path=str(staging)
            )

        context = profile.template_context()
        written: list[Path] = []
        try:
            for entry in self.iter_entries(staging):
                target = self.destination_for(entry, destination_root, context)
                await asyncio.to_thread(self._write_entry, entry, target, context)
                written.append(target)
        except OSError as exc:
            raise MaterializationError(
                f"Cannot copy {exc.filename or staging}: {exc.strerror or exc}",
                path=str(exc.filename or ""),
                cause=exc,
            ) from exc
        return written

    def _write_entry(self, entry: FileEntry, target: Path, context: dict[str, Any]) -> None:
        data = entry.source_path.read_bytes()
        if not self.is_copy_only(entry.relative_path):
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError:
                pass
            else:
                data = self.renderer.render_string(text, context).encode("utf-8")

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        shutil.copymode(entry.source_path, target)

