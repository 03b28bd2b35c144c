"""Domain types passed between the pipeline stages.

These are plain frozen dataclasses rather than Pydantic models: they never
cross the HTTP boundary directly (see :mod:`promptgrid.api.models` for the
wire schema) and several of them carry raw bytes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from promptgrid.core.errors import InvalidRequest

# Hard upper bound on reference images per request.
MAX_REFERENCE_IMAGES = 10

# Resolution selectors understood by the prompt composer.
RESOLUTIONS = ("1024", "2048")


@dataclass(frozen=True)
class ReferenceImage:
    """An uploaded reference image, held in memory for one request."""

    data: bytes
    filename: str
    mime_type: str


@dataclass(frozen=True)
class GenerationRequest:
    """A validated generation request.

    Construction fails with :class:`InvalidRequest` when the prompt is blank
    or too many reference images are attached, so an instance is always
    safe to hand to the pipeline.

    Attributes:
        prompt_text: The user's prompt, forwarded verbatim.  Only its
            stripped form is checked for emptiness.
        aspect_ratio: Optional aspect-ratio hint such as ``"16:9"``.
        resolution: Optional resolution selector (``"1024"`` or ``"2048"``;
            other values are carried but ignored by the composer).
        reference_images: Uploaded reference images, in upload order.
    """

    prompt_text: str
    aspect_ratio: str | None = None
    resolution: str | None = None
    reference_images: tuple[ReferenceImage, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not (self.prompt_text or "").strip():
            raise InvalidRequest("Missing 'prompt' field")
        if len(self.reference_images) > MAX_REFERENCE_IMAGES:
            raise InvalidRequest(
                f"At most {MAX_REFERENCE_IMAGES} reference images are allowed, "
                f"got {len(self.reference_images)}"
            )
        # Frozen dataclass: normalise through object.__setattr__.
        object.__setattr__(self, "aspect_ratio", self.aspect_ratio or None)
        object.__setattr__(self, "resolution", self.resolution or None)
        object.__setattr__(self, "reference_images", tuple(self.reference_images))


@dataclass(frozen=True)
class RemoteArtifactRef:
    """A generated image known only by its remote location."""

    url: str
    filename: str
    mime_type: str
    dimensions: tuple[int, int] | None = None


@dataclass(frozen=True)
class RetrievedArtifact:
    """A generated image whose bytes have been downloaded."""

    filename: str
    mime_type: str
    dimensions: tuple[int, int] | None
    data: bytes

    @classmethod
    def from_ref(cls, ref: RemoteArtifactRef, data: bytes) -> RetrievedArtifact:
        return cls(
            filename=ref.filename,
            mime_type=ref.mime_type,
            dimensions=ref.dimensions,
            data=data,
        )


@dataclass(frozen=True)
class BackendResult:
    """Structured reply of the generation backend.

    Metadata fields are ``None`` whenever the backend did not supply them.
    """

    images: list[RemoteArtifactRef] = field(default_factory=list)
    conversation_id: str | None = None
    response_id: str | None = None
    model_name: str | None = None
