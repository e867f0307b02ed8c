"""Unit tests for TemplateFetcher (startoff.fetcher).

Network traffic is served by ``httpx.MockTransport``; archives are built in
memory.

Tests cover:
- Successful download and extraction (top-level folder stripped)
- Leftover staging trees are replaced
- HTTP 404 / 500, connection errors and timeouts raise FetchError
- Corrupt archives, escaping members and unwritable staging paths raise FetchError
- File permission bits are carried over
"""

from __future__ import annotations

import io
import sys
import zipfile
from pathlib import Path

import httpx
import pytest

from conftest import SAMPLE_TEMPLATE, make_archive, relative_files
from startoff.errors import FetchError, PipelineStage
from startoff.fetcher import TemplateFetcher, _archive_root
from startoff.profile import TemplateReference


REFERENCE = TemplateReference.parse("ziwen-wang/vant-vue3-template-h5")


def _raising_transport(exc_type: type[httpx.TransportError]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_type("simulated", request=request)

    return httpx.MockTransport(handler)


# ---------------------------------------------------------------------------
# Success path
# ---------------------------------------------------------------------------


class TestFetchSuccess:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_extracts_into_staging(self, tmp_path: Path, archive_transport):
        transport = archive_transport()
        staging = tmp_path / "my-app" / ".tmp"

        count = await TemplateFetcher(transport=transport).fetch(REFERENCE, staging)

        assert count == len(SAMPLE_TEMPLATE)
        assert relative_files(staging) == set(SAMPLE_TEMPLATE)
        assert (staging / "src" / "index.html").read_text() == "<h1>{{dirName}}</h1>\n"
        assert (staging / "public" / "favicon.ico").read_bytes() == SAMPLE_TEMPLATE["public/favicon.ico"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_requests_archive_url(self, tmp_path: Path, archive_transport):
        transport = archive_transport()
        await TemplateFetcher(transport=transport).fetch(REFERENCE, tmp_path / ".tmp")

        assert [str(r.url) for r in transport.requests] == [REFERENCE.archive_url]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_archive_without_top_level_folder(self, tmp_path: Path, archive_transport):
        payload = make_archive({"a.txt": "a", "b/c.txt": "c"}, top_level=None)
        staging = tmp_path / ".tmp"

        await TemplateFetcher(transport=archive_transport(payload)).fetch(REFERENCE, staging)

        assert relative_files(staging) == {"a.txt", "b/c.txt"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_leftover_staging_is_replaced(self, tmp_path: Path, archive_transport):
        staging = tmp_path / ".tmp"
        (staging / "stale").mkdir(parents=True)
        (staging / "stale" / "old.txt").write_text("old")

        await TemplateFetcher(transport=archive_transport()).fetch(REFERENCE, staging)

        assert not (staging / "stale").exists()
        assert relative_files(staging) == set(SAMPLE_TEMPLATE)

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
    async def test_executable_bit_preserved(self, tmp_path: Path, archive_transport):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            info = zipfile.ZipInfo("repo-master/scripts/run.sh")
            info.external_attr = 0o755 << 16
            archive.writestr(info, "#!/bin/sh\n")
        staging = tmp_path / ".tmp"

        await TemplateFetcher(transport=archive_transport(buffer.getvalue())).fetch(REFERENCE, staging)

        assert (staging / "scripts" / "run.sh").stat().st_mode & 0o777 == 0o755


# ---------------------------------------------------------------------------
# Failure path
# ---------------------------------------------------------------------------


class TestFetchFailures:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_not_found(self, tmp_path: Path, archive_transport):
        staging = tmp_path / ".tmp"
        with pytest.raises(FetchError, match="not found") as excinfo:
            await TemplateFetcher(transport=archive_transport(status_code=404)).fetch(REFERENCE, staging)
        assert excinfo.value.stage is PipelineStage.FETCHING
        assert not staging.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_server_error(self, tmp_path: Path, archive_transport):
        with pytest.raises(FetchError, match="HTTP 500") as excinfo:
            await TemplateFetcher(transport=archive_transport(status_code=500)).fetch(
                REFERENCE, tmp_path / ".tmp"
            )
        assert isinstance(excinfo.value.cause, httpx.HTTPStatusError)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_connection_error(self, tmp_path: Path):
        staging = tmp_path / ".tmp"
        fetcher = TemplateFetcher(transport=_raising_transport(httpx.ConnectError))
        with pytest.raises(FetchError, match="Cannot download") as excinfo:
            await fetcher.fetch(REFERENCE, staging)
        assert isinstance(excinfo.value.cause, httpx.ConnectError)
        assert not staging.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path: Path):
        fetcher = TemplateFetcher(timeout=2.5, transport=_raising_transport(httpx.ReadTimeout))
        with pytest.raises(FetchError, match="Timed out after 2.5s"):
            await fetcher.fetch(REFERENCE, tmp_path / ".tmp")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_corrupt_archive(self, tmp_path: Path, archive_transport):
        fetcher = TemplateFetcher(transport=archive_transport(b"this is not a zip"))
        with pytest.raises(FetchError, match="not a valid zip"):
            await fetcher.fetch(REFERENCE, tmp_path / ".tmp")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_member_escaping_staging(self, tmp_path: Path, archive_transport):
        payload = make_archive({"ok.txt": "ok", "../../evil.txt": "evil"})
        fetcher = TemplateFetcher(transport=archive_transport(payload))
        with pytest.raises(FetchError, match="escapes"):
            await fetcher.fetch(REFERENCE, tmp_path / "proj" / ".tmp")
        assert not (tmp_path / "evil.txt").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unwritable_staging(self, tmp_path: Path, archive_transport):
        blocker = tmp_path / "my-app"
        blocker.write_text("a file where the project directory should be")
        with pytest.raises(FetchError, match="Cannot write"):
            await TemplateFetcher(transport=archive_transport()).fetch(REFERENCE, blocker / ".tmp")


# ---------------------------------------------------------------------------
# _archive_root
# ---------------------------------------------------------------------------


class TestArchiveRoot:
    @pytest.mark.unit
    def test_single_folder(self):
        assert _archive_root(["repo-master/", "repo-master/a.txt", "repo-master/b/c"]) == "repo-master"

    @pytest.mark.unit
    def test_multiple_tops(self):
        assert _archive_root(["a.txt", "b/c.txt"]) == ""

    @pytest.mark.unit
    def test_single_file_is_not_a_root(self):
        assert _archive_root(["README.md"]) == ""

    @pytest.mark.unit
    def test_empty(self):
        assert _archive_root([]) == ""
