"""Template download.

Fetches the zip archive of a template repository and unpacks it into the
staging directory.  GitHub archives wrap everything in a single
``<repo>-<ref>/`` folder, which is stripped so the staging root mirrors the
repository root.  A single attempt is made; retrying means re-running the
whole pipeline.
"""

from __future__ import annotations

import asyncio
import io
import shutil
import zipfile
from pathlib import Path, PurePosixPath

import httpx

from startoff.errors import FetchError
from startoff.profile import TemplateReference


class TemplateFetcher:
    """Downloads template archives over HTTP with ``httpx.AsyncClient``."""

    def __init__(
        self,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` configured with our timeout."""
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
            follow_redirects=True,
            transport=self.transport,
        )

    async def fetch(self, reference: TemplateReference, staging_path: str | Path) -> int:
        """Download *reference* and unpack it into *staging_path*.

        A leftover staging directory from an interrupted run is replaced.

        Returns:
            Number of files written to the staging tree.

        Raises:
            FetchError: On network failure, timeout, unknown reference,
                corrupt archive, or a write failure under *staging_path*.
        """
        payload = await self._download(reference)
        staging = Path(staging_path)
        try:
            await asyncio.to_thread(_prepare_staging, staging)
            return await asyncio.to_thread(_extract_archive, payload, staging)
        except zipfile.BadZipFile as exc:
            raise FetchError(
                f"Archive from {reference.archive_url} is not a valid zip file", exc
            ) from exc
        except OSError as exc:
            raise FetchError(f"Cannot write template into {staging}: {exc}", exc) from exc

    async def _download(self, reference: TemplateReference) -> bytes:
        url = reference.archive_url
        buffer = io.BytesIO()
        try:
            async with self._client() as client:
                async with client.stream("GET", url) as response:
                    if response.status_code == 404:
                        raise FetchError(
                            f"Template {reference.display_url} (ref '{reference.ref}') not found"
                        )
                    response.raise_for_status()
                    async for chunk in response.aiter_bytes():
                        buffer.write(chunk)
        except httpx.TimeoutException as exc:
            raise FetchError(f"Timed out after {self.timeout}s downloading {url}", exc) from exc
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"{url} returned HTTP {exc.response.status_code}", exc
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Cannot download {url}: {exc}", exc) from exc
        return buffer.getvalue()


# ---------------------------------------------------------------------------
# Internal helpers (run in a worker thread)
# ---------------------------------------------------------------------------


def _prepare_staging(staging: Path) -> None:
    if staging.exists():
        shutil.rmtree(staging)
    staging.mkdir(parents=True)


def _archive_root(names: list[str]) -> str:
    """Return the single top-level folder shared by every member, or ``""``."""
    tops = {PurePosixPath(n).parts[0] for n in names if PurePosixPath(n).parts}
    if len(tops) != 1:
        return ""
    root = tops.pop()
    if all(n.startswith(root + "/") for n in names):
        return root
    return ""


def _extract_archive(payload: bytes, staging: Path) -> int:
    written = 0
    with zipfile.ZipFile(io.BytesIO(payload)) as archive:
        members = archive.infolist()
        root = _archive_root([m.filename for m in members])
        for info in members:
            parts = PurePosixPath(info.filename).parts
            if root:
                parts = parts[1:]
            if not parts:
                continue
            if PurePosixPath(info.filename).is_absolute() or ".." in parts:
                raise FetchError(f"Archive member {info.filename!r} escapes the staging root")

            target = staging.joinpath(*parts)
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            with archive.open(info) as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
            mode = (info.external_attr >> 16) & 0o777
            if mode:
                target.chmod(mode)
            written += 1
    return written
