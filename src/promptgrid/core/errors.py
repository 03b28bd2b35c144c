"""Error taxonomy for the generation pipeline.

Request-level errors carry the HTTP status code they map to at the API
boundary.  The FastAPI application renders any :class:`PromptGridError` as
``{"error": message}`` with that status.

=====================  ======  ============================================
Error                  Status  Raised when
=====================  ======  ============================================
``InvalidRequest``     400     Prompt missing/blank, too many reference images
``Unauthenticated``    401     No session and the restore attempt failed
``BackendError``       500     The generation call itself failed
``InternalError``      500     Anything else unexpected
=====================  ======  ============================================

:class:`ArtifactFetchError` is different: it describes a single failed
artifact download and never leaves the
:class:`~promptgrid.core.retriever.ArtifactRetriever`.
"""

from __future__ import annotations


class PromptGridError(Exception):
    """Base class for request-level failures.

    Attributes:
        message: Human-readable message returned to the caller.
        status_code: HTTP status code used at the API boundary.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequest(PromptGridError):
    """The request is malformed; no collaborator has been called."""

    status_code = 400


class Unauthenticated(PromptGridError):
    """No usable session could be obtained without interactive login."""

    status_code = 401

    def __init__(self, message: str = "Not authenticated. Call GET /api/login first.") -> None:
        super().__init__(message)


class BackendError(PromptGridError):
    """The generation backend failed; the underlying message is passed through.

    Attributes:
        auth_failure: ``True`` when the backend rejected the session cookies,
            so the cached session should be dropped.
    """

    status_code = 500

    def __init__(self, message: str, *, auth_failure: bool = False) -> None:
        super().__init__(message)
        self.auth_failure = auth_failure


class InternalError(PromptGridError):
    """Unexpected failure inside the pipeline."""

    status_code = 500

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)


class ArtifactFetchError(Exception):
    """A single artifact could not be downloaded or decoded."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason
