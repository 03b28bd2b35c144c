"""The generation request pipeline.

:class:`GenerationPipeline` sequences one request through every stage::

    session check ─▶ compose prompt ─▶ backend call ─▶ retrieve ─▶ assemble

Each stage awaits the previous one; only artifact retrieval fans out
internally.  The pipeline keeps no state between requests: the only shared
mutable object it touches is the :class:`~promptgrid.core.session.SessionState`.

Failure mapping
---------------
- No usable session and restore failed → :class:`Unauthenticated`.  The
  backend is never called and interactive login is never started here.
- Any backend failure → :class:`BackendError` with the underlying message.
  If the backend rejected the session, the cookies it was sent are dropped
  so ``GET /api/status`` reports the expiry.  Cookies replaced by a login or
  restore while the request was in flight are kept.
- Individual artifact failures are absorbed by the retriever.
"""

from __future__ import annotations

import logging

from promptgrid.api.models import GenerationResult
from promptgrid.api.prompt_builder import build_prompt
from promptgrid.core.assembler import assemble_result
from promptgrid.core.backend import GenerationBackend
from promptgrid.core.errors import BackendError, Unauthenticated
from promptgrid.core.models import GenerationRequest
from promptgrid.core.retriever import ArtifactRetriever
from promptgrid.core.session import SessionState

logger = logging.getLogger(__name__)


class GenerationPipeline:
    """Run generation requests against the configured collaborators."""

    def __init__(
        self,
        session: SessionState,
        backend: GenerationBackend,
        retriever: ArtifactRetriever,
    ) -> None:
        self._session = session
        self._backend = backend
        self._retriever = retriever

    async def ensure_session(self) -> None:
        """Make sure a usable session exists, restoring it if needed.

        Raises:
            Unauthenticated: If no session exists and restoring failed.
        """
        if self._session.has_session():
            return
        logger.info("No session in memory; attempting restore.")
        if not await self._session.restore_session():
            raise Unauthenticated()

    async def run(self, request: GenerationRequest) -> GenerationResult:
        """Process one generation request end to end.

        Args:
            request: The validated request.

        Returns:
            The assembled result.  ``images`` may be empty.

        Raises:
            Unauthenticated: See :meth:`ensure_session`.
            BackendError: If the generation call fails.
        """
        await self.ensure_session()

        prompt = build_prompt(request.prompt_text, request.aspect_ratio, request.resolution)

        sent_cookies = self._session.cookies
        try:
            backend_result = await self._backend.generate(prompt, request.reference_images)
        except BackendError as e:
            if e.auth_failure:
                self._session.invalidate(sent_cookies)
            raise
        except Exception as e:
            raise BackendError(str(e) or type(e).__name__) from e

        artifacts = await self._retriever.retrieve(backend_result.images)
        logger.info(
            "Generation finished: %d of %d image(s) retrieved.",
            len(artifacts),
            len(backend_result.images),
        )
        return assemble_result(artifacts, backend_result)
