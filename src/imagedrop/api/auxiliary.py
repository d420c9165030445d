"""Auxiliary routes: health, images directory, image cards, mock weather, echo.

None of these routes touch the object store.  The images directory routes
describe files in :attr:`~imagedrop.core.config.ImagedropConfig.images_dir`,
which is served statically under ``/images``.  The weather and forecast
routes return random data for client development.
"""

from __future__ import annotations

import json
import logging
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import quote

from fastapi import APIRouter, Request
from PIL import Image

from imagedrop.core.config import config
from imagedrop.core.errors import ImagedropError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auxiliary"])

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg"})
FORECAST_HOURS = 24


def _image_url(request: Request, filename: str) -> str:
    return f"{request.base_url}images/{quote(filename)}"


def _modified(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).isoformat()


def _resolve_image(filename: str) -> Path:
    """Resolve *filename* inside the images directory.

    Raises:
        NotFoundError: If the file does not exist or lies outside the
            images directory.
    """
    images_dir = config.images_dir.resolve()
    path = (images_dir / filename).resolve()
    if images_dir not in path.parents or not path.is_file():
        raise NotFoundError(
            "Image not found",
            details=f"{filename} does not exist in the images directory",
        )
    return path


@router.get("/health")
async def health() -> dict:
    """Report that the server is up."""
    return {"status": "OK", "message": "Server is running"}


@router.get("/api/images")
async def list_image_files(request: Request) -> dict:
    """List image files in the images directory with their size and mtime."""
    try:
        files = sorted(p for p in config.images_dir.iterdir() if p.is_file())
    except OSError as e:
        raise ImagedropError("Failed to read images directory", details=str(e)) from e

    images = []
    for path in files:
        if path.suffix.lower() not in IMAGE_EXTENSIONS:
            continue
        entry = {"filename": path.name, "url": _image_url(request, path.name)}
        try:
            entry["size"] = path.stat().st_size
            entry["lastModified"] = _modified(path)
        except OSError:
            entry["error"] = "Could not get file stats"
        images.append(entry)

    return {"images": images}


@router.get("/api/images/{filename}")
async def get_image_file(filename: str, request: Request) -> dict:
    """Describe one file in the images directory.

    ``width`` and ``height`` are included when Pillow can read the file
    (raster formats only).

    Raises:
        NotFoundError: 404 if the file does not exist.
    """
    path = _resolve_image(filename)
    info = {
        "filename": filename,
        "url": _image_url(request, filename),
        "size": path.stat().st_size,
        "lastModified": _modified(path),
        "type": path.suffix.lower().lstrip("."),
    }
    try:
        with Image.open(path) as img:
            info["width"], info["height"] = img.size
    except OSError:
        logger.debug(f"Pillow cannot read {filename}; dimensions omitted")
    return info


@router.get("/api/dain/image")
async def dain_image(
    request: Request,
    filename: str | None = None,
    aspectRatio: str = "wide",
    title: str | None = None,
    description: str | None = None,
) -> dict:
    """Return an image card payload for a file in the images directory.

    Raises:
        ValidationError: 400 if ``filename`` is missing.
        NotFoundError: 404 if the file does not exist.
    """
    if not filename:
        raise ValidationError("Missing required parameter: filename")

    path = _resolve_image(filename)
    image_url = _image_url(request, filename)
    title = title or filename
    description = description or "Image from server"
    aspect_ratio = aspectRatio or "wide"

    return {
        "success": True,
        "image": {
            "url": image_url,
            "filename": filename,
            "title": title,
            "description": description,
            "aspectRatio": aspect_ratio,
            "fullPath": str(path),
        },
        "usage": {
            "dainExample": (
                f'const imageCard = new ImageCardUIBuilder({{ imageUrl: "{image_url}" }})\n'
                f'  .title("{title}")\n'
                f'  .description("{description}")\n'
                f'  .aspectRatio("{aspect_ratio}")\n'
                "  .build();"
            )
        },
    }


def _coordinates(latitude: str | None, longitude: str | None, location_name: str | None) -> dict:
    if not latitude or not longitude or not location_name:
        raise ValidationError(
            "Missing required parameters. Please provide latitude, longitude, and locationName."
        )
    try:
        return {"latitude": float(latitude), "longitude": float(longitude)}
    except ValueError as e:
        raise ValidationError("latitude and longitude must be numbers") from e


def _mock_conditions() -> dict:
    return {
        "temperature": round(random.uniform(0, 30), 1),
        "windSpeed": round(random.uniform(0, 20), 1),
        "humidity": round(random.uniform(0, 100), 1),
    }


@router.get("/api/weather")
async def weather(
    latitude: str | None = None,
    longitude: str | None = None,
    locationName: str | None = None,
) -> dict:
    """Return mock current weather for a location."""
    coordinates = _coordinates(latitude, longitude, locationName)
    return {
        **_mock_conditions(),
        "locationName": locationName,
        "coordinates": coordinates,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/api/forecast")
async def forecast(
    latitude: str | None = None,
    longitude: str | None = None,
    locationName: str | None = None,
) -> dict:
    """Return a mock hourly forecast for the next 24 hours."""
    coordinates = _coordinates(latitude, longitude, locationName)
    now = datetime.now(timezone.utc)
    return {
        "locationName": locationName,
        "coordinates": coordinates,
        "forecasts": [
            {"time": (now + timedelta(hours=hour)).isoformat(), **_mock_conditions()}
            for hour in range(FORECAST_HOURS)
        ],
    }


async def _echo(request: Request) -> dict:
    raw = (await request.body()).decode("utf-8", errors="replace")
    try:
        body = json.loads(raw) if raw else {}
    except ValueError:
        body = raw
    headers = dict(request.headers)
    logger.info(f"POST {request.url.path} received")
    logger.info(f"Headers: {headers}")
    logger.info(f"Body: {body}")
    return {"headers": headers, "body": body}


@router.post("/api/log-post")
async def log_post(request: Request) -> dict:
    """Log a request's headers and body and echo them back."""
    return {"message": "Request logged successfully", "receivedData": await _echo(request)}


@router.post("/")
async def root_post(request: Request) -> dict:
    """Echo a POST to the root path."""
    return {"message": "Root POST request received", "receivedData": await _echo(request)}
