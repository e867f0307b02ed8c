"""Shared pytest fixtures for the startoff test suite.

Provides reusable fixtures for:
- Scripted prompters and recording progress observers
- Sample staging trees and zipped template archives
- httpx mock transports serving those archives
"""

from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from startoff.errors import PipelineStage, ScaffoldWarning
from startoff.pipeline import PipelineResult, ProgressObserver
from startoff.profile import ProjectType
from startoff.prompts import Prompter


# ---------------------------------------------------------------------------
# Prompting
# ---------------------------------------------------------------------------


class ScriptedPrompter(Prompter):
    """Prompter that replays canned answers and records what it was asked."""

    def __init__(
        self,
        project_type: ProjectType = ProjectType.PC,
        names: list[str | None] | None = None,
        overwrites: list[bool] | None = None,
    ) -> None:
        self.project_type = project_type
        self.names = list(names or [])
        self.overwrites = list(overwrites or [])
        self.type_calls = 0
        self.name_defaults: list[str] = []
        self.overwrite_names: list[str] = []

    def choose_project_type(self, default: ProjectType = ProjectType.PC) -> ProjectType:
        self.type_calls += 1
        return self.project_type

    def ask_directory_name(self, default: str) -> str:
        self.name_defaults.append(default)
        if not self.names:
            raise AssertionError(f"Unexpected directory prompt (default {default!r})")
        answer = self.names.pop(0)
        # Mirror the console prompt: an empty answer takes the default.
        return answer if answer is not None else default

    def confirm_overwrite(self, directory_name: str) -> bool:
        self.overwrite_names.append(directory_name)
        if not self.overwrites:
            raise AssertionError(f"Unexpected overwrite prompt for {directory_name!r}")
        return self.overwrites.pop(0)


class RecordingObserver(ProgressObserver):
    """Observer that keeps every notification as a ``(hook, stage, payload)`` tuple."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any, Any]] = []
        self.result: PipelineResult | None = None

    def stage_started(self, stage: PipelineStage, detail: str) -> None:
        self.events.append(("started", stage, detail))

    def stage_finished(self, stage: PipelineStage, detail: str) -> None:
        self.events.append(("finished", stage, detail))

    def stage_skipped(self, stage: PipelineStage, reason: str) -> None:
        self.events.append(("skipped", stage, reason))

    def stage_warned(self, stage: PipelineStage, warning: ScaffoldWarning) -> None:
        self.events.append(("warned", stage, warning))

    def stage_failed(self, stage: PipelineStage, error: BaseException) -> None:
        self.events.append(("failed", stage, error))

    def pipeline_finished(self, result: PipelineResult) -> None:
        self.result = result

    def hooks_for(self, stage: PipelineStage) -> list[str]:
        return [hook for hook, s, _ in self.events if s is stage]


@pytest.fixture
def recording_observer() -> RecordingObserver:
    return RecordingObserver()


# ---------------------------------------------------------------------------
# Template trees and archives
# ---------------------------------------------------------------------------

SAMPLE_TEMPLATE: dict[str, str | bytes] = {
    "package.json": '{\n  "name": "{{dirName}}",\n  "private": true\n}\n',
    "index.html": "<title>{{ dirName }}</title>\n",
    "src/index.html": "<h1>{{dirName}}</h1>\n",
    "src/App.vue": "<template>\n  <p>{{ msg }}</p>\n</template>\n",
    "src/main.ts": "import { createApp } from 'vue'\n",
    "public/favicon.ico": b"\x00\x00\x01\x00\xff\xfe\x89binary",
    ".gitignore": "node_modules\ndist\n",
}


def write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    """Write ``{relative_path: content}`` under *root* and return *root*."""
    for rel, content in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_bytes(content.encode("utf-8"))
    return root


def make_archive(files: dict[str, str | bytes], top_level: str | None = "template-master") -> bytes:
    """Build an in-memory zip laid out like a GitHub branch archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        if top_level:
            archive.writestr(f"{top_level}/", "")
        for rel, content in files.items():
            name = f"{top_level}/{rel}" if top_level else rel
            archive.writestr(name, content)
    return buffer.getvalue()


def relative_files(root: Path) -> set[str]:
    """Every regular file under *root* as a posix relative path."""
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()}


@pytest.fixture
def staging_tree(tmp_path: Path) -> Path:
    """A staging tree holding :data:`SAMPLE_TEMPLATE`."""
    return write_tree(tmp_path / "staging", SAMPLE_TEMPLATE)


@pytest.fixture
def template_archive() -> bytes:
    """Zipped :data:`SAMPLE_TEMPLATE` with a GitHub-style top-level folder."""
    return make_archive(SAMPLE_TEMPLATE)


@pytest.fixture
def archive_transport(template_archive: bytes) -> Callable[..., httpx.MockTransport]:
    """Factory for a transport that serves *template_archive* for ``.zip`` URLs.

    Requests are appended to the returned transport's ``requests`` list.
    """

    def _factory(payload: bytes | None = None, status_code: int = 200) -> httpx.MockTransport:
        body = template_archive if payload is None else payload
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path.endswith(".zip"):
                return httpx.Response(status_code, content=body)
            return httpx.Response(404)

        transport = httpx.MockTransport(handler)
        transport.requests = requests  # type: ignore[attr-defined]
        return transport

    return _factory
