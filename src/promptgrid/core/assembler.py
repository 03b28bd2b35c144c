"""Turn retrieved artifacts into the response returned to the caller."""

from __future__ import annotations

import base64
from collections.abc import Sequence

from promptgrid.api.models import GeneratedImage, GenerationMetadata, GenerationResult
from promptgrid.core.models import BackendResult, RetrievedArtifact


def encode_artifact(artifact: RetrievedArtifact) -> GeneratedImage:
    """Encode one artifact's bytes as standard base64."""
    return GeneratedImage(
        filename=artifact.filename,
        mime=artifact.mime_type,
        dimensions=list(artifact.dimensions) if artifact.dimensions else None,
        base64=base64.b64encode(artifact.data).decode("ascii"),
    )


def assemble_result(
    artifacts: Sequence[RetrievedArtifact],
    backend_result: BackendResult,
) -> GenerationResult:
    """Build the :class:`GenerationResult` for a finished request.

    Metadata is copied verbatim from the backend result; absent values stay
    ``None``.  An empty *artifacts* sequence yields ``images == []``.
    """
    return GenerationResult(
        images=[encode_artifact(a) for a in artifacts],
        metadata=GenerationMetadata(
            conversation_id=backend_result.conversation_id,
            response_id=backend_result.response_id,
            model_name=backend_result.model_name,
        ),
    )
