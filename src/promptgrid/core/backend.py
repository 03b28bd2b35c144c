"""Client for the external image-generation backend.

The backend is a remote service that accepts a prompt plus optional
reference images and replies with *references* to the generated images
(URLs that still have to be downloaded) and some conversation metadata.

Wire Contract
-------------
Request: ``POST {backend_url}`` as ``multipart/form-data`` with a ``prompt``
field and zero or more ``files`` parts.  The session cookies are sent in the
``Cookie`` header.

Reply (JSON)::

    {
      "images": [
        {"url": "...", "filename": "...", "mime": "image/png",
         "dimensions": [1024, 1024]}
      ],
      "conversationId": "c_...",
      "responseId": "r_...",
      "modelName": "..."
    }

The reply is treated as untrusted.  :func:`parse_backend_reply` accepts a
few common aliases (``title``, ``mimeType``, ``width``/``height``, ``cid``,
``rid``, ``model``), skips image entries without a usable URL, and leaves
every metadata field ``None`` unless the backend supplied a string for it.
"""

from __future__ import annotations

import logging
import mimetypes
from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from promptgrid.core.config import PromptGridConfig
from promptgrid.core.errors import BackendError
from promptgrid.core.models import BackendResult, ReferenceImage, RemoteArtifactRef
from promptgrid.core.session import SessionState

logger = logging.getLogger(__name__)

# Longest slice of an error body echoed back in BackendError messages.
_ERROR_SNIPPET_LIMIT = 300


class GenerationBackend(Protocol):
    """Anything that can turn a prompt into remote artifact references."""

    async def generate(
        self,
        prompt: str,
        reference_images: Sequence[ReferenceImage],
    ) -> BackendResult: ...


def cookie_header(cookies: dict[str, str]) -> dict[str, str]:
    """Render a cookie jar as request headers (empty jar, no header)."""
    if not cookies:
        return {}
    return {"Cookie": "; ".join(f"{name}={value}" for name, value in cookies.items())}


def _opt_str(payload: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _positive_int(value: Any) -> int | None:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return None


def _parse_dimensions(entry: dict[str, Any]) -> tuple[int, int] | None:
    dims = entry.get("dimensions")
    if isinstance(dims, (list, tuple)) and len(dims) == 2:
        w, h = _positive_int(dims[0]), _positive_int(dims[1])
        if w and h:
            return (w, h)
        return None
    w, h = _positive_int(entry.get("width")), _positive_int(entry.get("height"))
    if w and h:
        return (w, h)
    return None


def _parse_image_entry(entry: Any, index: int) -> RemoteArtifactRef | None:
    if not isinstance(entry, dict):
        logger.warning("Skipping image entry %d: not an object.", index)
        return None

    url = entry.get("url")
    if not isinstance(url, str) or not url.strip():
        logger.warning("Skipping image entry %d: missing url.", index)
        return None

    filename = _opt_str(entry, "filename", "title") or f"image-{index + 1}.png"
    mime = _opt_str(entry, "mime", "mimeType", "mime_type")
    if mime is None:
        mime = mimetypes.guess_type(filename)[0] or "image/png"

    return RemoteArtifactRef(
        url=url.strip(),
        filename=filename,
        mime_type=mime,
        dimensions=_parse_dimensions(entry),
    )


def parse_backend_reply(payload: Any) -> BackendResult:
    """Validate a decoded backend reply and build a :class:`BackendResult`.

    Args:
        payload: The decoded JSON body.

    Returns:
        The parsed result.  ``images`` keeps the backend's order.

    Raises:
        BackendError: If the payload is not a JSON object.
    """
    if not isinstance(payload, dict):
        raise BackendError("Backend reply is not a JSON object")

    raw_images = payload.get("images")
    if not isinstance(raw_images, list):
        raw_images = []

    images = [
        ref
        for ref in (_parse_image_entry(entry, i) for i, entry in enumerate(raw_images))
        if ref is not None
    ]
    return BackendResult(
        images=images,
        conversation_id=_opt_str(payload, "conversationId", "conversation_id", "cid"),
        response_id=_opt_str(payload, "responseId", "response_id", "rid"),
        model_name=_opt_str(payload, "modelName", "model_name", "model"),
    )


class GenerationClient:
    """HTTP implementation of :class:`GenerationBackend`.

    Attributes:
        _config (PromptGridConfig):
            Supplies ``backend_url`` and ``backend_timeout``.
        _session (SessionState):
            Source of the cookies sent with every call.
        _http (httpx.AsyncClient):
            Shared connection pool, owned by the application lifespan.
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

    async def generate(
        self,
        prompt: str,
        reference_images: Sequence[ReferenceImage],
    ) -> BackendResult:
        """Submit a generation request.

        Args:
            prompt: The composed prompt.
            reference_images: Images uploaded alongside the prompt.

        Returns:
            The parsed backend reply.

        Raises:
            BackendError: On transport failure, timeout, non-2xx status, or
                an undecodable reply.  ``auth_failure`` is set for 401/403.
        """
        files = [("files", (img.filename, img.data, img.mime_type)) for img in reference_images]
        logger.info(
            "Calling backend (prompt length=%d, reference images=%d).",
            len(prompt),
            len(files),
        )

        try:
            resp = await self._http.post(
                self._config.backend_url,
                data={"prompt": prompt},
                files=files or None,
                headers=cookie_header(self._session.cookies),
                timeout=self._config.backend_timeout,
            )
        except httpx.TimeoutException as e:
            raise BackendError(f"Generation request timed out after {self._config.backend_timeout:g}s") from e
        except httpx.HTTPError as e:
            raise BackendError(f"Generation request failed: {e}") from e

        if resp.status_code in (401, 403):
            raise BackendError(
                f"Backend rejected the session (HTTP {resp.status_code})",
                auth_failure=True,
            )
        if not resp.is_success:
            snippet = resp.text[:_ERROR_SNIPPET_LIMIT].strip()
            message = f"Backend returned HTTP {resp.status_code}"
            raise BackendError(f"{message}: {snippet}" if snippet else message)

        try:
            payload = resp.json()
        except ValueError as e:
            raise BackendError("Backend returned invalid JSON") from e

        result = parse_backend_reply(payload)
        logger.info(
            "Backend returned %d image reference(s) (conversation=%s).",
            len(result.images),
            result.conversation_id,
        )
        return result
