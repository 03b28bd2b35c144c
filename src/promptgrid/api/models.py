"""Pydantic response models for the PromptGrid API.

These models define the JSON schema for every API endpoint.  FastAPI uses
them for serialisation and OpenAPI documentation generation.  The incoming
``POST /api/generate`` payload is multipart form data, so it is parsed by the
route itself into a :class:`~promptgrid.core.models.GenerationRequest`.

Field names are snake_case in Python and camelCase on the wire; every alias
is declared explicitly.

Models
------
GeneratedImage
    One generated image, base64-encoded.
GenerationMetadata
    Conversation identifiers reported by the backend.
GenerationResult
    Response body of ``POST /api/generate``.
AuthStatus
    Response body of ``GET /api/status``.
LoginResponse
    Response body of ``GET /api/login``.
ErrorResponse
    Body of every non-2xx response.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GeneratedImage(BaseModel):
    """A single generated image ready for transport.

    Attributes:
        filename: Name reported by the backend.
        mime: Declared MIME type, needed by the client to rebuild a Blob.
        dimensions: ``[width, height]`` when known, otherwise ``None``.
        base64: Standard base64 encoding of the image bytes.
    """

    filename: str = Field(..., description="Image filename reported by the backend.")
    mime: str = Field(..., description="Declared MIME type (e.g. 'image/png').")
    dimensions: list[int] | None = Field(
        default=None,
        description="[width, height] in pixels, or null when unknown.",
    )
    base64: str = Field(..., description="Standard base64 of the image bytes.")


class GenerationMetadata(BaseModel):
    """Backend conversation metadata, passed through verbatim."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    conversation_id: str | None = Field(default=None, alias="conversationId")
    response_id: str | None = Field(default=None, alias="responseId")
    model_name: str | None = Field(default=None, alias="modelName")


class GenerationResult(BaseModel):
    """Response body for ``POST /api/generate``.

    ``images`` may be empty: the backend produced nothing, or every download
    failed.  That is still a successful response.
    """

    images: list[GeneratedImage] = Field(default_factory=list)
    metadata: GenerationMetadata = Field(default_factory=GenerationMetadata)


class AuthStatus(BaseModel):
    """Response body for ``GET /api/status``."""

    model_config = ConfigDict(populate_by_name=True)

    authenticated: bool
    login_in_progress: bool = Field(default=False, alias="loginInProgress")


class LoginResponse(BaseModel):
    """Response body for ``GET /api/login``."""

    success: bool
    error: str | None = None


class CompiledPrompt(BaseModel):
    """Response body for ``POST /api/prompt/compile``."""

    compiled_prompt: str


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str
