"""Async HTTP client for the PromptGrid REST API.

Mirrors what the browser frontend does with ``fetch``: check the session,
trigger login, and submit generation requests as multipart forms.  Used by
:class:`~promptgrid.ui.submission.SubmissionController` and handy for
scripting against a running server.

Usage
-----
::

    async with PromptGridClient("http://127.0.0.1:7860") as client:
        status = await client.check_auth()
        result = await client.generate("a lighthouse at dusk", aspect_ratio="16:9")
        for image in result.images:
            data = decode_image(image)
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Sequence

import httpx

from promptgrid.api.models import AuthStatus, GeneratedImage, GenerationResult, LoginResponse
from promptgrid.core.models import ReferenceImage

# Generation can take minutes; the server bounds its own calls.
DEFAULT_TIMEOUT = httpx.Timeout(300.0, connect=10.0)


class ApiRequestError(Exception):
    """A non-2xx response from the PromptGrid API.

    Attributes:
        status_code: HTTP status of the response.
        message: The server's ``error`` message, or ``"Error {status}"``.
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def decode_image(image: GeneratedImage) -> bytes:
    """Decode the transport form of a generated image back to raw bytes.

    Raises:
        ValueError: If the payload is not valid base64.
    """
    try:
        return base64.b64decode(image.base64, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload for {image.filename}") from e


class PromptGridClient:
    """Thin async wrapper around the PromptGrid endpoints."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:7860",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> PromptGridClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def check_auth(self) -> AuthStatus:
        resp = await self._http.get("/api/status")
        return AuthStatus.model_validate(self._json(resp))

    async def login(self) -> LoginResponse:
        resp = await self._http.get("/api/login")
        return LoginResponse.model_validate(self._json(resp))

    async def generate(
        self,
        prompt: str,
        files: Sequence[ReferenceImage] | None = None,
        aspect_ratio: str | None = None,
        resolution: str | None = None,
    ) -> GenerationResult:
        """Submit a generation request.

        Args:
            prompt: The prompt text.
            files: Optional reference images.
            aspect_ratio: Optional aspect ratio hint, omitted when empty.
            resolution: Optional resolution selector, omitted when empty.

        Returns:
            The parsed :class:`GenerationResult`.

        Raises:
            ApiRequestError: For any non-2xx response.
            httpx.HTTPError: For transport failures.
        """
        form: dict[str, str] = {"prompt": prompt}
        if aspect_ratio:
            form["aspectRatio"] = aspect_ratio
        if resolution:
            form["resolution"] = resolution
        parts = [("images", (f.filename, f.data, f.mime_type)) for f in files or ()]

        resp = await self._http.post("/api/generate", data=form, files=parts or None)
        return GenerationResult.model_validate(self._json(resp))

    @staticmethod
    def _json(resp: httpx.Response) -> dict:
        try:
            data = resp.json()
        except ValueError:
            data = None
        if not resp.is_success:
            message = data.get("error") if isinstance(data, dict) else None
            raise ApiRequestError(resp.status_code, message or f"Error {resp.status_code}")
        if not isinstance(data, dict):
            raise ApiRequestError(resp.status_code, "Malformed response from server")
        return data
