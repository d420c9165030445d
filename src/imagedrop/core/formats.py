"""Payload format detection and normalization.

Image producers are inconsistent: some POST a ready ``data:`` URL, some a
bare base64 string, some a JSON envelope with a ``data`` field.  The
:func:`normalize` function accepts all of them and produces the canonical
embedded data URL that the store keeps and browsers render.

Detection is ordered and the first match wins:

1. ``data:`` prefix -> ``data-url``, kept unchanged.
2. First 100 characters within the base64 alphabet -> ``base64-only``,
   wrapped with the PNG data URL prefix.
3. Parses as strict JSON with a string ``data`` field -> ``json``; the inner
   value is kept if it is already a data URL, otherwise wrapped.  ``NaN``,
   ``Infinity``, overflowing numbers and nesting too deep to decode do not
   count as JSON.
4. Anything else -> ``unknown``, wrapped on a best-effort basis.

The detector never checks that the base64 actually decodes to an image.  A
malformed payload is stored as-is and the browser rendering the data URL is
the final judge.  The only rejection besides empty input is a JSON document
without a usable ``data`` field, since nothing salvageable exists there.
"""

from __future__ import annotations

import json
import math
import re
from enum import Enum
from typing import NamedTuple

from imagedrop.core.errors import MissingDataField, MissingPayload

DATA_URL_PREFIX = "data:"
PNG_DATA_URL_PREFIX = "data:image/png;base64,"

# Only the head of the payload is sampled; long bodies are not scanned.
BASE64_SAMPLE_LENGTH = 100
_BASE64_SAMPLE_PATTERN = re.compile(r"^[A-Za-z0-9+/=]+$")


class PayloadFormat(str, Enum):
    """Source encoding detected for an inbound payload."""

    DATA_URL = "data-url"
    BASE64 = "base64-only"
    JSON = "json"
    UNKNOWN = "unknown"


class NormalizedPayload(NamedTuple):
    """Result of :func:`normalize`."""

    data_url: str
    format: PayloadFormat


def _reject_constant(name: str):
    raise ValueError(f"Non-standard JSON constant: {name}")


def _finite_float(literal: str) -> float:
    value = float(literal)
    if math.isinf(value):
        raise ValueError(f"JSON number out of range: {literal}")
    return value


def looks_like_base64(raw: str) -> bool:
    """Check whether the first 100 characters of *raw* are base64-safe."""
    return bool(_BASE64_SAMPLE_PATTERN.match(raw[:BASE64_SAMPLE_LENGTH]))


def wrap_as_data_url(value: str) -> str:
    """Return *value* as a data URL, adding the PNG prefix when it has none."""
    if value.startswith(DATA_URL_PREFIX):
        return value
    return PNG_DATA_URL_PREFIX + value


def _decode(raw: bytes | str) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


def normalize(raw: bytes | str) -> NormalizedPayload:
    """Classify *raw* and convert it to the canonical data URL form.

    Args:
        raw: Request body or field value, as text or undecoded bytes.

    Returns:
        The canonical data URL and the detected source format.

    Raises:
        MissingPayload: If *raw* is empty or whitespace only.
        MissingDataField: If *raw* is JSON without a non-empty string
            ``data`` field.  The parsed document is attached.
    """
    text = _decode(raw or "")
    if not text.strip():
        raise MissingPayload()

    if text.startswith(DATA_URL_PREFIX):
        return NormalizedPayload(text, PayloadFormat.DATA_URL)

    if looks_like_base64(text):
        return NormalizedPayload(PNG_DATA_URL_PREFIX + text, PayloadFormat.BASE64)

    try:
        parsed = json.loads(text, parse_constant=_reject_constant, parse_float=_finite_float)
    except (ValueError, RecursionError):
        return NormalizedPayload(PNG_DATA_URL_PREFIX + text, PayloadFormat.UNKNOWN)

    inner = parsed.get("data") if isinstance(parsed, dict) else None
    if not isinstance(inner, str) or not inner:
        raise MissingDataField(parsed)

    return NormalizedPayload(wrap_as_data_url(inner), PayloadFormat.JSON)
