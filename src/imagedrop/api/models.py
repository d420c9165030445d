"""Pydantic request models for the imagedrop API.

Required fields are declared optional on purpose.  The original clients
expect a ``400`` with a readable ``error`` message when a field is missing,
not FastAPI's ``422`` validation report, so the route handlers check presence
themselves and raise :class:`~imagedrop.core.errors.ValidationError`.

Models
------
DisplayImageRequest
    Payload for ``POST /api/display-image``.
DataEntryRequest
    Payload for ``POST /api/data``.
TextSubmission
    JSON form of a ``POST /api/text`` body.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class DisplayImageRequest(BaseModel):
    """Request body for the ``POST /api/display-image`` endpoint.

    Attributes:
        width: Display width hint.  Defaults to ``"auto"``.
        height: Display height hint.  Defaults to ``"auto"``.
        data: Image as a data URL, bare base64 or JSON envelope string.
    """

    width: int | str | None = Field(
        default=None,
        description="Display width hint (pixels or CSS value).",
    )
    height: int | str | None = Field(
        default=None,
        description="Display height hint (pixels or CSS value).",
    )
    data: Any = Field(
        default=None,
        description="Image payload string (required).",
    )


class DataEntryRequest(BaseModel):
    """Request body for the ``POST /api/data`` endpoint.

    ``value`` may legitimately be ``null``; only its absence is an error, so
    presence is checked through ``model_fields_set``.
    """

    key: int | str | None = Field(
        default=None,
        description="Key to store the value under (required). Numbers are stored as strings.",
    )
    value: Any = Field(
        default=None,
        description="Arbitrary JSON value (required, may be null).",
    )

    @property
    def has_value(self) -> bool:
        return "value" in self.model_fields_set


class TextSubmission(BaseModel):
    """JSON form of a text upload."""

    text: str
    title: str | None = None
