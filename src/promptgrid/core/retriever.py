"""Artifact retrieval with per-artifact failure containment.

The backend only reports *where* the generated images live.
:class:`ArtifactRetriever` downloads them concurrently and returns the ones
that arrived intact, in the order the backend reported them.

Failure Policy
--------------
Each reference is independent.  A network error, a non-2xx status, an empty
body, or bytes that Pillow cannot identify as an image drops *that*
reference only; the failure is logged at WARNING with the filename, URL and
reason.  There are no retries and nothing is raised to the caller, so a batch
of N requested images can legitimately come back with fewer than N.

Filtering Policy
----------------
Selected by ``PROMPTGRID_ARTIFACT_FILTER``:

- ``"all"`` (default): download every reference the backend reports.
- ``"png"``: download only references declared as ``image/png``; others are
  discarded before any request is made.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from io import BytesIO
from typing import Protocol

import httpx
from PIL import Image, UnidentifiedImageError

from promptgrid.core.backend import cookie_header
from promptgrid.core.config import PromptGridConfig
from promptgrid.core.errors import ArtifactFetchError
from promptgrid.core.models import RemoteArtifactRef, RetrievedArtifact
from promptgrid.core.session import SessionState

logger = logging.getLogger(__name__)

PNG_MIME = "image/png"


class ArtifactFetcher(Protocol):
    """Downloads the bytes behind a URL."""

    async def fetch_bytes(self, url: str) -> bytes: ...


def host_matches(host: str, domains: Sequence[str]) -> bool:
    """Return ``True`` if *host* is one of *domains* or a subdomain of one.

    Entries may be written as ``example.com``, ``.example.com`` or
    ``*.example.com``; all three match the domain and its subdomains.
    """
    host = host.lower().rstrip(".")
    if not host:
        return False
    for domain in domains:
        domain = domain.lower().lstrip("*").strip(".")
        if domain and (host == domain or host.endswith("." + domain)):
            return True
    return False


class HttpArtifactFetcher:
    """:class:`ArtifactFetcher` backed by a shared ``httpx.AsyncClient``.

    Generated-image URLs are usually only reachable with the same session
    cookies used for generation.  The backend reply is untrusted, so the
    cookies are only attached for hosts in ``cookie_domains`` or the backend
    host itself; any other URL is fetched without them.
    """

    def __init__(
        self,
        config: PromptGridConfig,
        session: SessionState,
        http: httpx.AsyncClient,
    ) -> None:
        self._config = config
        self._session = session
        self._http = http
        self._cookie_domains = [*config.cookie_domains, httpx.URL(config.backend_url).host]

    def _headers_for(self, url: str) -> dict[str, str]:
        try:
            host = httpx.URL(url).host
        except httpx.InvalidURL:
            return {}
        if not host_matches(host, self._cookie_domains):
            logger.debug("Not sending session cookies to %s.", host)
            return {}
        return cookie_header(self._session.cookies)

    async def fetch_bytes(self, url: str) -> bytes:
        try:
            resp = await self._http.get(
                url,
                headers=self._headers_for(url),
                timeout=self._config.fetch_timeout,
            )
        except httpx.TimeoutException as e:
            raise ArtifactFetchError(url, f"timed out after {self._config.fetch_timeout:g}s") from e
        except httpx.HTTPError as e:
            raise ArtifactFetchError(url, f"request failed: {e}") from e

        if not resp.is_success:
            raise ArtifactFetchError(url, f"HTTP {resp.status_code}")
        return resp.content


def verify_image_bytes(data: bytes) -> None:
    """Check that *data* decodes as an image.

    Raises:
        ValueError: If the bytes are empty or not a recognisable image.
    """
    if not data:
        raise ValueError("empty body")
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        # PIL raises SyntaxError for some truncated/corrupt headers.
        raise ValueError(f"not a decodable image ({e})") from e


class ArtifactRetriever:
    """Concurrently download remote artifacts, tolerating partial failure.

    Attributes:
        _fetcher (ArtifactFetcher):
            Performs the individual downloads.
        _filter (str):
            ``"all"`` or ``"png"`` (see module docstring).
        _semaphore_size (int):
            Maximum downloads in flight for a single :meth:`retrieve` call.
    """

    def __init__(
        self,
        fetcher: ArtifactFetcher,
        *,
        artifact_filter: str = "all",
        max_concurrent_fetches: int = 4,
    ) -> None:
        if artifact_filter not in ("all", "png"):
            raise ValueError(f"Unknown artifact filter: {artifact_filter!r}")
        self._fetcher = fetcher
        self._filter = artifact_filter
        self._semaphore_size = max(1, max_concurrent_fetches)

    @classmethod
    def from_config(cls, config: PromptGridConfig, fetcher: ArtifactFetcher) -> ArtifactRetriever:
        return cls(
            fetcher,
            artifact_filter=config.artifact_filter,
            max_concurrent_fetches=config.max_concurrent_fetches,
        )

    def select(self, refs: Sequence[RemoteArtifactRef]) -> list[RemoteArtifactRef]:
        """Apply the filtering policy, preserving order."""
        if self._filter == "all":
            return list(refs)

        selected = []
        for ref in refs:
            if ref.mime_type.lower() == PNG_MIME:
                selected.append(ref)
            else:
                logger.debug("Skipping %s (%s): not %s.", ref.filename, ref.mime_type, PNG_MIME)
        return selected

    async def retrieve(self, refs: Sequence[RemoteArtifactRef]) -> list[RetrievedArtifact]:
        """Download every selected reference.

        Args:
            refs: Artifact references in backend order.

        Returns:
            One :class:`RetrievedArtifact` per successful download, in the
            same relative order as *refs*.  May be empty.
        """
        selected = self.select(refs)
        if not selected:
            return []

        semaphore = asyncio.Semaphore(self._semaphore_size)
        results = await asyncio.gather(*(self._retrieve_one(ref, semaphore) for ref in selected))
        retrieved = [r for r in results if r is not None]

        failed = len(selected) - len(retrieved)
        if failed:
            logger.warning("Retrieved %d of %d artifact(s); %d failed.", len(retrieved), len(selected), failed)
        return retrieved

    async def _retrieve_one(
        self,
        ref: RemoteArtifactRef,
        semaphore: asyncio.Semaphore,
    ) -> RetrievedArtifact | None:
        async with semaphore:
            try:
                data = await self._fetcher.fetch_bytes(ref.url)
                await asyncio.to_thread(verify_image_bytes, data)
            except ArtifactFetchError as e:
                logger.warning("Failed to download %s from %s: %s", ref.filename, ref.url, e.reason)
                return None
            except ValueError as e:
                logger.warning("Failed to decode %s from %s: %s", ref.filename, ref.url, e)
                return None
            except Exception:
                # Any other fetcher failure is still contained to this artifact.
                logger.exception("Unexpected error downloading %s from %s", ref.filename, ref.url)
                return None
        return RetrievedArtifact.from_ref(ref, data)
