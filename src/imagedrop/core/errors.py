"""Error taxonomy for imagedrop.

Every domain failure derives from :class:`ImagedropError`, which carries the
HTTP status the API layer should answer with and an optional mapping of extra
details rendered next to the message.

``MissingPayload``, ``MissingDataField`` and ``ValidationError`` are raised
before anything is written to the store.  ``AnalysisError`` is raised by the
analysis capability and converted into a settled ``analysis`` value by the
enrichment runner, so it normally never reaches a client.
"""

from __future__ import annotations

from typing import Any


class ImagedropError(Exception):
    """Base class for all imagedrop errors."""

    status_code = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body used by the API error handler."""
        return {"error": self.message, **self.details}


class MissingPayload(ImagedropError):
    """The request carried no payload at all."""

    status_code = 400

    def __init__(self, message: str = "No data received"):
        super().__init__(message)


class MissingDataField(ImagedropError):
    """A JSON payload parsed but holds no usable ``data`` field.

    The parsed document is kept on the exception (and in the error body) so
    the sender can see what the server actually received.
    """

    status_code = 400

    def __init__(self, parsed: Any):
        super().__init__("JSON payload has no usable 'data' field", received=parsed)
        self.parsed = parsed


class NotFoundError(ImagedropError):
    """Lookup miss by id or key."""

    status_code = 404


class ValidationError(ImagedropError):
    """A required request field is missing or malformed."""

    status_code = 400


class AnalysisError(ImagedropError):
    """The external image analysis capability failed.

    Covers network failures, quota errors, rejected images and missing
    credentials alike.
    """

    status_code = 502
