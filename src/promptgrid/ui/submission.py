"""Submission state machine for the image grid client.

The browser page (``static/js/app.js``) and this module implement the same
small state machine; this one is what scripts and tests drive.

States
------
::

    IDLE ──submit──▶ SUBMITTING ──▶ SUCCESS ─┐
                          │                  ├──▶ IDLE
                          └───────▶ FAILED ──┘

- A submission with a blank prompt, or while one is already in flight, is
  ignored.
- **SUCCESS with images**: every image is decoded and inserted at the front
  of :attr:`SubmissionController.display` (most recent first).  The empty
  state placeholder is hidden for good.
- **SUCCESS without images**: a "No images returned" notification.
- **FAILED**: a notification with the error message, then the session check
  is re-run so an expired session shows the login banner again.

Notifications disappear after :data:`NOTIFICATION_SECONDS` and a newer one
replaces the current one.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

import httpx

from promptgrid.api.models import GenerationResult
from promptgrid.core.models import ReferenceImage
from promptgrid.ui.api_client import ApiRequestError, PromptGridClient, decode_image

logger = logging.getLogger(__name__)

NOTIFICATION_SECONDS = 5.0


class SubmissionPhase(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class DisplayedImage:
    """A decoded image in the grid."""

    filename: str
    mime: str
    data: bytes
    dimensions: tuple[int, int] | None = None

    @property
    def caption(self) -> str:
        """Overlay text, e.g. ``"image-1.png • 1024×1024"``."""
        if self.dimensions:
            return f"{self.filename} • {self.dimensions[0]}×{self.dimensions[1]}"
        return self.filename


@dataclass(frozen=True)
class Notification:
    message: str
    expires_at: float


class SubmissionController:
    """Drive submissions against a :class:`PromptGridClient`.

    Attributes:
        phase (SubmissionPhase):
            Current state; ``SUBMITTING`` only while a request is in flight.
        last_outcome (SubmissionPhase | None):
            ``SUCCESS`` or ``FAILED`` for the most recent completed submission.
        display (list[DisplayedImage]):
            Images shown in the grid, most recent first.
        empty_state_visible (bool):
            Whether the placeholder is shown; never comes back once hidden.
        auth_required (bool):
            Whether the login banner should be visible.
    """

    def __init__(
        self,
        client: PromptGridClient,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._clock = clock
        self._in_flight = False
        self._login_busy = False
        self._notification: Notification | None = None

        self.phase = SubmissionPhase.IDLE
        self.last_outcome: SubmissionPhase | None = None
        self.display: list[DisplayedImage] = []
        self.empty_state_visible = True
        self.auth_required = False

    # -- Notifications ------------------------------------------------------

    def notify(self, message: str) -> None:
        """Show *message*, replacing any current notification."""
        self._notification = Notification(message, self._clock() + NOTIFICATION_SECONDS)

    @property
    def notification(self) -> str | None:
        """The visible notification text, or ``None`` once it has expired."""
        if self._notification is None:
            return None
        if self._clock() >= self._notification.expires_at:
            self._notification = None
            return None
        return self._notification.message

    # -- Session ------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        return self._in_flight

    async def check_auth_status(self) -> None:
        """Refresh :attr:`auth_required`; silently ignored if the server is down."""
        try:
            status = await self._client.check_auth()
        except (httpx.HTTPError, ApiRequestError) as e:
            logger.debug("Status check failed: %s", e)
            return
        self.auth_required = not status.authenticated

    async def login(self) -> bool:
        """Trigger interactive login.  Returns ``True`` on success."""
        if self._login_busy:
            return False
        self._login_busy = True
        try:
            result = await self._client.login()
        except (httpx.HTTPError, ApiRequestError):
            self.notify("Login request failed")
            return False
        finally:
            self._login_busy = False

        if result.success:
            self.auth_required = False
            return True
        self.notify(result.error or "Login failed")
        return False

    # -- Submission ---------------------------------------------------------

    async def submit(
        self,
        prompt: str,
        files: Sequence[ReferenceImage] | None = None,
        aspect_ratio: str | None = None,
        resolution: str | None = None,
    ) -> GenerationResult | None:
        """Submit a prompt.

        Returns:
            The result on success; ``None`` when the call was ignored or
            failed (see :attr:`last_outcome`).
        """
        text = (prompt or "").strip()
        if not text or self._in_flight:
            return None

        self._in_flight = True
        self.phase = SubmissionPhase.SUBMITTING
        try:
            result = await self._client.generate(text, files, aspect_ratio, resolution)
            decoded = [
                DisplayedImage(
                    filename=img.filename,
                    mime=img.mime,
                    data=decode_image(img),
                    dimensions=tuple(img.dimensions) if img.dimensions and len(img.dimensions) == 2 else None,
                )
                for img in result.images
            ]
        except (ApiRequestError, httpx.HTTPError, ValueError) as e:
            self.last_outcome = SubmissionPhase.FAILED
            self.notify(str(e) or "Request failed")
            await self.check_auth_status()
            return None
        finally:
            self._in_flight = False
            self.phase = SubmissionPhase.IDLE

        self.last_outcome = SubmissionPhase.SUCCESS
        if not decoded:
            self.notify("No images returned")
            return result

        self.empty_state_visible = False
        for image in decoded:
            self.display.insert(0, image)
        return result
