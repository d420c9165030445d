"""imagedrop - FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance, the ingestion and retrieval routes, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Storage** is an in-memory :class:`~imagedrop.core.store.ObjectStore`
  created in the lifespan and kept on ``app.state.store``.  Nothing is
  persisted; a restart empties it.
- **Normalization** of image payloads is done by
  :func:`~imagedrop.core.formats.normalize` before anything is stored.
- **Enrichment** of images runs in detached tasks owned by the
  :class:`~imagedrop.core.enrichment.EnrichmentRunner` on
  ``app.state.runner``.  Uploads answer before analysis finishes.
- **Auxiliary routes** (health, images directory, mock weather, echo) live in
  :mod:`imagedrop.api.auxiliary`.
- **Viewer pages** and the images directory are served by ``StaticFiles``.

Endpoints
---------
========  ================================  ===================================
Method    Path                              Purpose
========  ================================  ===================================
POST      ``/api/display-image``            Store an image, analyze in background
POST      ``/api/display-image-raw``        Store a raw-body image (diagnostics)
POST      ``/api/analyze-image``            Store a raw-body image, analyze inline
GET       ``/api/image/{id}``               Single image record
GET       ``/api/image/{id}/analysis``      Analysis state of an image
GET       ``/api/gallery``                  All images, newest first
POST      ``/api/text``                     Store a text
GET       ``/api/text/{id}``                Single text record
GET       ``/api/texts``                    All texts, newest first
POST      ``/api/data``                     Store a generic key/value pair
GET       ``/api/data/{key}``               Read a generic value
========  ================================  ===================================

Usage
-----
CLI (installed entry point)::

    imagedrop

Direct invocation::

    python -m imagedrop.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pydantic
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from imagedrop import __version__
from imagedrop.api.auxiliary import router as auxiliary_router
from imagedrop.api.models import DataEntryRequest, DisplayImageRequest, TextSubmission
from imagedrop.core.analysis import build_analyzer
from imagedrop.core.config import config
from imagedrop.core.enrichment import EnrichmentRunner
from imagedrop.core.errors import ImagedropError, MissingPayload, NotFoundError, ValidationError
from imagedrop.core.formats import NormalizedPayload, normalize
from imagedrop.core.gallery import list_images, list_texts
from imagedrop.core.store import (
    ANALYSIS_PENDING,
    GENERIC_NAMESPACE,
    IMAGE_NAMESPACE,
    TEXT_NAMESPACE,
    ObjectStore,
)

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100

# ---------------------------------------------------------------------------
# Application lifecycle: store and enrichment runner.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the process-scoped store and enrichment runner.

    On shutdown unfinished enrichment tasks are abandoned, not awaited.  Their
    results are lost together with the store.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    store = ObjectStore()
    app.state.store = store
    app.state.runner = EnrichmentRunner(store, build_analyzer(config))
    logger.info("Object store and enrichment runner initialised.")

    yield

    app.state.runner.abandon()
    logger.info(f"Shutting down; discarding {len(store)} stored object(s).")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="imagedrop",
    description="Ephemeral image and text drop with background image analysis.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ImagedropError)
async def handle_imagedrop_error(request: Request, exc: ImagedropError) -> JSONResponse:
    """Render domain errors as ``{"error": ...}`` with their status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(auxiliary_router)


# ---------------------------------------------------------------------------
# Request helpers.
# ---------------------------------------------------------------------------


def _store(request: Request) -> ObjectStore:
    return request.app.state.store


def _runner(request: Request) -> EnrichmentRunner:
    return request.app.state.runner


async def read_raw_body(request: Request) -> str:
    """Read the request body as text, enforcing ``max_body_bytes``.

    Raises:
        HTTPException: 413 if the body exceeds the configured ceiling.
    """
    limit = config.max_body_bytes
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise HTTPException(status_code=413, detail="Request body too large")

    body = await request.body()
    if len(body) > limit:
        raise HTTPException(status_code=413, detail="Request body too large")
    return body.decode("utf-8", errors="replace")


def _view_url(request: Request, page: str, record_id: str) -> str:
    return f"{request.base_url}{page}?id={record_id}"


def _store_image(
    store: ObjectStore,
    normalized: NormalizedPayload,
    *,
    width=None,
    height=None,
    analysis: str | None = None,
) -> str:
    return store.put(
        IMAGE_NAMESPACE,
        normalized.data_url,
        metadata={
            "width": width or "auto",
            "height": height or "auto",
            "format": normalized.format.value,
        },
        analysis=analysis,
    )


# ---------------------------------------------------------------------------
# Image routes.
# ---------------------------------------------------------------------------


@app.post("/api/display-image")
async def display_image(req: DisplayImageRequest, request: Request) -> dict:
    """Store an image and start its analysis in the background.

    ``data`` may be a data URL, bare base64 or a JSON envelope string; it is
    normalized before storage.  The response is sent without waiting for the
    analysis, whose progress can be followed via
    ``GET /api/image/{id}/analysis``.

    Returns:
        Dictionary with ``success``, ``imageId`` and ``viewUrl``.

    Raises:
        ValidationError: 400 if ``data`` is missing or not a string.
        MissingDataField: 400 if ``data`` is JSON without a ``data`` field.
    """
    if not req.data:
        raise ValidationError("Missing required parameter: data (base64 image)")
    if not isinstance(req.data, str):
        raise ValidationError("Invalid parameter: data must be a string")

    normalized = normalize(req.data)
    logger.info(
        f"Received image ({normalized.format.value}, {len(req.data)} chars, "
        f"{req.width or 'auto'}x{req.height or 'auto'})"
    )

    store = _store(request)
    image_id = _store_image(
        store, normalized, width=req.width, height=req.height, analysis=ANALYSIS_PENDING
    )
    _runner(request).schedule(image_id, normalized.data_url)

    return {
        "success": True,
        "imageId": image_id,
        "viewUrl": _view_url(request, "view-image.html", image_id),
    }


@app.post("/api/display-image-raw")
async def display_image_raw(request: Request) -> dict:
    """Store an image sent as the raw request body, without analysis.

    Meant for diagnosing clients: the response reports the detected format
    and previews of both the received body and the stored data URL.

    Raises:
        MissingPayload: 400 if the body is empty.
        MissingDataField: 400 if the body is JSON without a ``data`` field.
    """
    raw = await read_raw_body(request)
    normalized = normalize(raw)
    logger.info(f"Received raw image ({normalized.format.value}, {len(raw)} chars)")

    image_id = _store_image(_store(request), normalized)
    return {
        "success": True,
        "imageId": image_id,
        "viewUrl": _view_url(request, "view-image.html", image_id),
        "detectedFormat": normalized.format.value,
        "receivedLength": len(raw),
        "storedLength": len(normalized.data_url),
        "receivedPreview": raw[:PREVIEW_LENGTH],
        "storedPreview": normalized.data_url[:PREVIEW_LENGTH],
    }


@app.post("/api/analyze-image")
async def analyze_image(request: Request) -> dict:
    """Store a raw-body image and analyze it before answering.

    An analysis failure does not fail the request: the image is stored and
    viewable either way, and the error text is returned as ``analysis``.
    """
    raw = await read_raw_body(request)
    normalized = normalize(raw)

    image_id = _store_image(_store(request), normalized, analysis=ANALYSIS_PENDING)
    analysis = await _runner(request).analyze_now(image_id, normalized.data_url)

    return {
        "success": True,
        "imageId": image_id,
        "viewUrl": _view_url(request, "view-image.html", image_id),
        "detectedFormat": normalized.format.value,
        "analysis": analysis,
    }


@app.get("/api/image/{image_id}")
async def get_image(image_id: str, request: Request) -> dict:
    """Return a stored image record.

    Raises:
        NotFoundError: 404 if no image has this id.
    """
    record = _store(request).get(IMAGE_NAMESPACE, image_id)
    if record is None:
        raise NotFoundError("Image not found")
    return record.to_dict()


@app.get("/api/image/{image_id}/analysis")
async def get_image_analysis(image_id: str, request: Request) -> dict:
    """Return only the analysis of an image and where it is in its lifecycle.

    ``status`` is ``absent`` (never analyzed), ``in-progress`` or
    ``settled``.

    Raises:
        NotFoundError: 404 if no image has this id.
    """
    record = _store(request).get(IMAGE_NAMESPACE, image_id)
    if record is None:
        raise NotFoundError("Image not found")
    return {"id": image_id, "analysis": record.analysis, "status": record.analysis_status}


@app.get("/api/gallery")
async def get_gallery(request: Request) -> dict:
    """Return every stored image, newest first."""
    images = list_images(_store(request))
    return {"total": len(images), "images": [record.to_dict() for record in images]}


# ---------------------------------------------------------------------------
# Text routes.
# ---------------------------------------------------------------------------


def _parse_text(raw: str) -> tuple[str, str | None]:
    """Split a text upload into ``(text, title)``.

    JSON bodies of the form ``{"text": ..., "title": ...}`` are unwrapped;
    anything else is taken verbatim as the text.
    """
    try:
        submission = TextSubmission.model_validate_json(raw)
    except pydantic.ValidationError:
        return raw, None
    return submission.text, submission.title


@app.post("/api/text")
async def submit_text(request: Request) -> dict:
    """Store a text sent as the raw body or as ``{"text", "title"}`` JSON.

    Raises:
        MissingPayload: 400 if there is no text.
    """
    raw = await read_raw_body(request)
    text, title = _parse_text(raw)
    if not text.strip():
        raise MissingPayload("No text received")

    text_id = _store(request).put(TEXT_NAMESPACE, text, metadata={"title": title})
    logger.info(f"Stored text {text_id} ({len(text)} chars)")
    return {
        "success": True,
        "textId": text_id,
        "viewUrl": _view_url(request, "view-text.html", text_id),
    }


@app.get("/api/text/{text_id}")
async def get_text(text_id: str, request: Request) -> dict:
    """Return a stored text record.

    Raises:
        NotFoundError: 404 if no text has this id.
    """
    record = _store(request).get(TEXT_NAMESPACE, text_id)
    if record is None:
        raise NotFoundError("Text not found")
    return record.to_dict()


@app.get("/api/texts")
async def get_texts(request: Request) -> dict:
    """Return every stored text, newest first."""
    texts = list_texts(_store(request))
    return {"total": len(texts), "texts": [record.to_dict() for record in texts]}


# ---------------------------------------------------------------------------
# Generic key/value routes.
# ---------------------------------------------------------------------------


@app.post("/api/data")
async def store_data(req: DataEntryRequest, request: Request) -> dict:
    """Store an arbitrary JSON value under a caller-chosen key.

    Keys share the flat store with images and texts; writing an existing key
    replaces its value.

    Raises:
        ValidationError: 400 if ``key`` or ``value`` is absent.
    """
    logger.info(f"POST /api/data key={req.key!r}")
    if not req.key or not req.has_value:
        raise ValidationError("Both key and value are required")

    _store(request).put(GENERIC_NAMESPACE, req.value, record_id=str(req.key))
    return {"message": "Data stored successfully", "key": req.key, "value": req.value}


@app.get("/api/data/{key}")
async def get_data(key: str, request: Request) -> dict:
    """Return the value stored under *key*.

    Raises:
        NotFoundError: 404 if nothing is stored under *key*.
    """
    record = _store(request).get(GENERIC_NAMESPACE, key)
    if record is None:
        raise NotFoundError(f"No data found for key: {key}")
    return {"key": key, "value": record.payload}


# ---------------------------------------------------------------------------
# Static files.  Mounted last so the API routes above take precedence.
# ---------------------------------------------------------------------------
app.mount("/images", StaticFiles(directory=str(config.images_dir)), name="images")
app.mount("/", StaticFiles(directory=str(config.public_dir), html=True), name="public")


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~imagedrop.core.config.config`
    (``IMAGEDROP_SERVER_HOST``, ``IMAGEDROP_SERVER_PORT``,
    ``IMAGEDROP_LOG_LEVEL``).  Defaults to ``0.0.0.0:3000``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"Server is running on port {config.server_port}")
    logger.info(f"Health check: http://localhost:{config.server_port}/health")

    uvicorn.run(
        "imagedrop.api.main:app",
        host=config.server_host,
        port=config.server_port,
        log_level=config.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
