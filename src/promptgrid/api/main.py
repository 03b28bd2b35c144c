"""PromptGrid — FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
The application follows a stateless REST pattern:

- **Configuration** comes from :data:`~promptgrid.core.config.config`
  (``PROMPTGRID_*`` environment variables).
- **Session state** is a single :class:`~promptgrid.core.session.SessionState`
  created at startup and shared by all requests.
- **Image generation** is delegated to the external backend through
  :class:`~promptgrid.core.pipeline.GenerationPipeline`, which also downloads
  the generated images and encodes them for transport.
- **Nothing is persisted**: images are returned inline as base64 and the
  browser keeps them for the lifetime of the page.
- **The HTML page** is served as a raw ``HTMLResponse``; all dynamic data is
  fetched by the frontend via ``/api/config`` and ``/api/status``.

Endpoints
---------
========  ========================  ======================================
Method    Path                      Purpose
========  ========================  ======================================
GET       ``/``                     Serve the main HTML page
GET       ``/api/config``           Aspect ratios, resolutions, limits
GET       ``/api/status``           Session / login state
GET       ``/api/login``            Run the external interactive login
POST      ``/api/generate``         Generate images (multipart form)
POST      ``/api/prompt/compile``   Preview the composed prompt
========  ========================  ======================================

Error Responses
---------------
Every non-2xx response has the body ``{"error": "<message>"}``:
400 for a missing prompt or too many files, 401 when no session can be
restored, 500 for backend or internal failures.

Usage
-----
CLI (installed entry point)::

    promptgrid

Direct invocation::

    python -m promptgrid.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from promptgrid import __version__
from promptgrid.api.models import (
    AuthStatus,
    CompiledPrompt,
    ErrorResponse,
    GenerationResult,
    LoginResponse,
)
from promptgrid.api.prompt_builder import build_prompt
from promptgrid.core.backend import GenerationClient
from promptgrid.core.config import config
from promptgrid.core.errors import BackendError, InternalError, InvalidRequest, PromptGridError
from promptgrid.core.models import RESOLUTIONS, GenerationRequest, ReferenceImage
from promptgrid.core.pipeline import GenerationPipeline
from promptgrid.core.retriever import ArtifactRetriever, HttpArtifactFetcher
from promptgrid.core.session import SessionState

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Application lifecycle — session and HTTP client setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Creates the shared :class:`SessionState` and tries to restore it from
        the cookie store, then wires the generation pipeline around a single
        ``httpx.AsyncClient`` connection pool.  Everything is stored on
        ``app.state``.

    On shutdown:
        Closes the HTTP connection pool.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    session = SessionState(config)
    if await session.restore_session():
        logger.info("Existing session restored at startup.")
    else:
        logger.info("No session available; log in via GET /api/login.")

    http = httpx.AsyncClient(follow_redirects=True)
    backend = GenerationClient(config, session, http)
    retriever = ArtifactRetriever.from_config(config, HttpArtifactFetcher(config, session, http))

    app.state.session = session
    app.state.pipeline = GenerationPipeline(session, backend, retriever)

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    await http.aclose()
    logger.info("HTTP client closed on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="PromptGrid",
    description="Prompt-to-image front end for an external image generation backend.",
    version=__version__,
    lifespan=lifespan,
)

# Allow cross-origin requests so the frontend can be served from a different
# port during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount the static directory so that CSS and JS are served directly by
# FastAPI at ``/static/...``.
app.mount("/static", StaticFiles(directory=str(config.static_dir)), name="static")


# ---------------------------------------------------------------------------
# Error rendering: every failure becomes {"error": message}.
# ---------------------------------------------------------------------------


@app.exception_handler(PromptGridError)
async def promptgrid_error_handler(request: Request, exc: PromptGridError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query"))
        message = f"Invalid '{field}' field: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


# ---------------------------------------------------------------------------
# Upload helper.
# ---------------------------------------------------------------------------


async def _read_uploads(files: list[UploadFile]) -> tuple[ReferenceImage, ...]:
    """Read uploaded reference images into memory.

    Args:
        files: Multipart file parts, in upload order.

    Returns:
        Immutable reference images.  Parts without content are skipped
        (browsers send one empty part when no file was picked).
    """
    images: list[ReferenceImage] = []
    for upload in files:
        data = await upload.read()
        if not data and not upload.filename:
            continue
        images.append(
            ReferenceImage(
                data=data,
                filename=upload.filename or "image",
                mime_type=upload.content_type or "application/octet-stream",
            )
        )
    return tuple(images)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse)
async def index() -> HTMLResponse:
    """Serve the main application HTML page.

    Reads ``templates/index.html`` and returns it directly.

    Raises:
        HTTPException: 404 if ``index.html`` is not found.
    """
    index_path = config.templates_dir / "index.html"
    if index_path.exists():
        return HTMLResponse(content=index_path.read_text(encoding="utf-8"))
    raise HTTPException(status_code=404, detail="index.html not found")


@app.get("/api/config")
async def get_config() -> dict:
    """Return the options the frontend needs to build its controls.

    Returns:
        Dictionary with keys ``version``, ``aspectRatios``, ``resolutions``,
        and ``maxReferenceImages``.
    """
    return {
        "version": __version__,
        "aspectRatios": list(config.aspect_ratios),
        "resolutions": list(RESOLUTIONS),
        "maxReferenceImages": config.max_reference_images,
    }


@app.get("/api/status", response_model=AuthStatus)
async def get_status(request: Request) -> AuthStatus:
    """Report whether a usable session exists and whether login is running."""
    session: SessionState = request.app.state.session
    return AuthStatus(
        authenticated=session.has_session(),
        login_in_progress=session.login_in_progress,
    )


@app.get("/api/login", response_model=LoginResponse, response_model_exclude_none=True)
async def login(request: Request) -> LoginResponse:
    """Run the external interactive login and reload the session.

    Returns:
        ``{"success": true}`` or ``{"success": false, "error": "..."}``.
    """
    session: SessionState = request.app.state.session
    result = await session.login()
    return LoginResponse(success=result.success, error=result.error)


@app.post(
    "/api/generate",
    response_model=GenerationResult,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def generate_images(
    request: Request,
    prompt: str | None = Form(default=None),
    aspectRatio: str | None = Form(default=None),
    resolution: str | None = Form(default=None),
    images: list[UploadFile] | None = File(default=None),
) -> GenerationResult:
    """Generate images for a prompt.

    This endpoint:

    1. Rejects a missing/blank prompt or too many files (400) before any
       collaborator is touched.
    2. Restores the session if needed (401 if that fails).
    3. Composes the prompt and calls the backend (500 on failure).
    4. Downloads the generated images, dropping any that fail.
    5. Returns them base64-encoded with the backend metadata.

    Returns:
        :class:`GenerationResult`; ``images`` may be empty.

    Raises:
        PromptGridError: Rendered as ``{"error": ...}`` by the exception
            handler with the matching status code.
    """
    if not prompt or not prompt.strip():
        raise InvalidRequest("Missing 'prompt' field")

    uploads = images or []
    if len(uploads) > config.max_reference_images:
        raise InvalidRequest(
            f"At most {config.max_reference_images} reference images are allowed, got {len(uploads)}"
        )

    gen_request = GenerationRequest(
        prompt_text=prompt,
        aspect_ratio=aspectRatio,
        resolution=resolution,
        reference_images=await _read_uploads(uploads),
    )

    pipeline: GenerationPipeline = request.app.state.pipeline
    try:
        return await pipeline.run(gen_request)
    except BackendError as e:
        logger.error("Generation error: %s", e.message)
        raise
    except PromptGridError:
        raise
    except Exception as e:
        logger.exception("Unexpected error while generating images.")
        raise InternalError() from e


@app.post("/api/prompt/compile", response_model=CompiledPrompt)
async def compile_prompt(
    prompt: str | None = Form(default=None),
    aspectRatio: str | None = Form(default=None),
    resolution: str | None = Form(default=None),
) -> CompiledPrompt:
    """Preview the composed prompt without generating anything.

    Returns:
        ``{"compiled_prompt": "..."}``.
    """
    if not prompt or not prompt.strip():
        raise InvalidRequest("Missing 'prompt' field")
    return CompiledPrompt(compiled_prompt=build_prompt(prompt, aspectRatio, resolution))


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~promptgrid.core.config.config`
    (``PROMPTGRID_SERVER_HOST``, ``PROMPTGRID_SERVER_PORT``,
    ``PROMPTGRID_LOG_LEVEL``).  Defaults to ``0.0.0.0:7860``.

    This function is registered as the ``promptgrid`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "promptgrid.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
