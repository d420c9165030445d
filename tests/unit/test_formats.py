"""Tests for imagedrop.core.formats — payload detection and normalization.

Tests cover:
- Each detection branch in priority order.
- The 100-character base64 sampling window.
- JSON envelopes with and without a usable ``data`` field.
- Empty input rejection.
"""

from __future__ import annotations

import json

import pytest

from imagedrop.core.errors import MissingDataField, MissingPayload
from imagedrop.core.formats import (
    PNG_DATA_URL_PREFIX,
    PayloadFormat,
    looks_like_base64,
    normalize,
    wrap_as_data_url,
)


class TestDataUrl:
    """Inputs that already carry the data: prefix."""

    @pytest.mark.parametrize(
        "raw",
        [
            "data:image/jpeg;base64,/9j/4AAQSkZJRg==",
            "data:image/png;base64,not really base64 at all {}",
            "data:",
        ],
    )
    def test_passed_through_unchanged(self, raw):
        """A data URL is returned exactly as received."""
        result = normalize(raw)
        assert result.data_url == raw
        assert result.format is PayloadFormat.DATA_URL

    def test_bytes_input_decoded(self):
        """Bytes are decoded before detection."""
        result = normalize(b"data:image/gif;base64,R0lGOD")
        assert result.data_url == "data:image/gif;base64,R0lGOD"
        assert result.format is PayloadFormat.DATA_URL


class TestBareBase64:
    """Inputs whose first 100 characters are in the base64 alphabet."""

    def test_png_base64_wrapped(self, png_base64):
        """Bare base64 gets the PNG data URL prefix."""
        result = normalize(png_base64)
        assert result.data_url == PNG_DATA_URL_PREFIX + png_base64
        assert result.format is PayloadFormat.BASE64

    def test_exactly_sample_length(self):
        """An input of exactly 100 base64 characters is detected."""
        raw = "A" * 100
        result = normalize(raw)
        assert result.format is PayloadFormat.BASE64
        assert result.data_url.endswith(raw)

    def test_only_first_100_characters_sampled(self):
        """Characters after the sampling window are not checked."""
        raw = "B" * 100 + "!!! not base64 {}"
        result = normalize(raw)
        assert result.format is PayloadFormat.BASE64
        assert result.data_url == PNG_DATA_URL_PREFIX + raw

    def test_invalid_character_inside_window(self):
        """A non-alphabet character within the window breaks detection."""
        assert not looks_like_base64("A" * 99 + "-")

    def test_short_base64(self):
        """Inputs shorter than the window are checked in full."""
        assert looks_like_base64("iVBORw0KG")
        assert normalize("iVBORw0KG").format is PayloadFormat.BASE64


class TestJsonEnvelope:
    """JSON documents carrying the image in a data field."""

    def test_bare_base64_inside_json_wrapped(self, png_base64):
        """A base64 data field gets the PNG prefix."""
        result = normalize(json.dumps({"data": png_base64}))
        assert result.data_url == PNG_DATA_URL_PREFIX + png_base64
        assert result.format is PayloadFormat.JSON

    def test_data_url_inside_json_kept(self):
        """A data URL data field is returned unchanged."""
        inner = "data:image/jpeg;base64,/9j/4AAQ"
        result = normalize(json.dumps({"data": inner, "width": 10}))
        assert result.data_url == inner
        assert result.format is PayloadFormat.JSON

    def test_missing_data_field(self):
        """JSON without a data field is rejected with the parsed document."""
        with pytest.raises(MissingDataField) as exc_info:
            normalize(json.dumps({"image": "abc"}))
        assert exc_info.value.parsed == {"image": "abc"}
        assert exc_info.value.to_dict()["received"] == {"image": "abc"}
        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize("value", [{"nested": "abc"}, ["abc"], 42, None, ""])
    def test_unusable_data_field(self, value):
        """Non-string or empty data fields are rejected."""
        with pytest.raises(MissingDataField):
            normalize(json.dumps({"data": value}))

    def test_json_array_rejected(self):
        """A JSON document that is not an object has no data field."""
        with pytest.raises(MissingDataField):
            normalize('[{"data": "abc"}]')


class TestUnknown:
    """Inputs matching no other rule."""

    def test_best_effort_wrap(self):
        """Unrecognised text is wrapped without validation."""
        raw = "{not json at all"
        result = normalize(raw)
        assert result.data_url == PNG_DATA_URL_PREFIX + raw
        assert result.format is PayloadFormat.UNKNOWN

    def test_url_safe_base64_is_unknown(self):
        """URL-safe base64 characters fall outside the accepted alphabet."""
        result = normalize("abc-def_ghi")
        assert result.format is PayloadFormat.UNKNOWN

    @pytest.mark.parametrize(
        "raw",
        ['{"x": NaN}', '{"x": Infinity}', "-Infinity", '{"x": 1e999}'],
    )
    def test_non_standard_numbers_are_not_json(self, raw):
        """Tokens outside strict JSON are not parsed into non-finite floats."""
        result = normalize(raw)
        assert result.data_url == PNG_DATA_URL_PREFIX + raw
        assert result.format is PayloadFormat.UNKNOWN

    def test_deep_nesting_is_not_json(self):
        raw = "[" * 100_000
        result = normalize(raw)
        assert result.format is PayloadFormat.UNKNOWN
        assert len(result.data_url) == len(PNG_DATA_URL_PREFIX) + len(raw)


class TestEmptyInput:
    """Empty payloads are rejected before detection."""

    @pytest.mark.parametrize("raw", ["", b"", "   \n", None])
    def test_missing_payload(self, raw):
        with pytest.raises(MissingPayload):
            normalize(raw)


def test_wrap_as_data_url():
    assert wrap_as_data_url("abc") == PNG_DATA_URL_PREFIX + "abc"
    assert wrap_as_data_url("data:text/plain,hi") == "data:text/plain,hi"


def test_format_values_are_wire_tags():
    assert [f.value for f in PayloadFormat] == ["data-url", "base64-only", "json", "unknown"]
