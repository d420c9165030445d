"""Image analysis capability.

The enrichment runner only depends on :class:`ImageAnalyzer`.  The production
implementation, :class:`GeminiImageAnalyzer`, sends the image as inline
base64 data to the Gemini ``generateContent`` REST endpoint and returns the
text of the reply.

Every failure surfaces as :class:`~imagedrop.core.errors.AnalysisError`: a
missing API key, a data URL that cannot be split into MIME type and base64
data, transport errors, non-2xx responses and replies without text.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

import httpx

from imagedrop.core.config import ImagedropConfig
from imagedrop.core.errors import AnalysisError

logger = logging.getLogger(__name__)

_DATA_URL_PATTERN = re.compile(
    r"^data:(?P<mime>[^;,]*)(?P<params>(;[^;,]*)*),(?P<data>.*)$",
    re.DOTALL,
)


def split_data_url(data_url: str) -> tuple[str, str]:
    """Split a base64 data URL into ``(mime_type, base64_data)``.

    Raises:
        AnalysisError: If *data_url* is not a base64 data URL.
    """
    match = _DATA_URL_PATTERN.match(data_url)
    if not match or ";base64" not in match.group("params"):
        raise AnalysisError("Image is not a base64 data URL")
    mime_type = match.group("mime") or "image/png"
    return mime_type, match.group("data")


class ImageAnalyzer(ABC):
    """Abstract image analysis capability."""

    @abstractmethod
    async def analyze(self, data_url: str) -> str:
        """Return a textual description of the image in *data_url*.

        Raises:
            AnalysisError: On any failure.
        """
        ...


class GeminiImageAnalyzer(ImageAnalyzer):
    """Describe images with a Gemini multimodal model."""

    def __init__(
        self,
        api_key: str | None,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        prompt: str = "Describe this image in detail.",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._prompt = prompt
        self._timeout = timeout
        self._transport = transport

    async def analyze(self, data_url: str) -> str:
        if not self._api_key:
            raise AnalysisError("Gemini API key is not configured")

        mime_type, data = split_data_url(data_url)
        body = {
            "contents": [
                {
                    "parts": [
                        {"text": self._prompt},
                        {"inline_data": {"mime_type": mime_type, "data": data}},
                    ]
                }
            ]
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self._base_url}/models/{self._model}:generateContent",
                    params={"key": self._api_key},
                    json=body,
                )
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as e:
            raise AnalysisError(
                f"Analysis service returned {e.response.status_code}: {_error_message(e.response)}"
            ) from e
        except httpx.HTTPError as e:
            raise AnalysisError(f"Analysis request failed: {e}") from e
        except ValueError as e:
            raise AnalysisError("Analysis service returned invalid JSON") from e

        return _extract_text(payload)


def _error_message(resp: httpx.Response) -> str:
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return resp.text or resp.reason_phrase


def _extract_text(payload: dict) -> str:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        raise AnalysisError("Analysis response contained no candidates") from e

    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict)).strip()
    if not text:
        raise AnalysisError("Analysis response contained no text")
    return text


def build_analyzer(config: ImagedropConfig) -> ImageAnalyzer:
    """Create the analyzer described by *config*."""
    if not config.gemini_api_key:
        logger.warning("No Gemini API key configured; image analysis will fail")
    return GeminiImageAnalyzer(
        api_key=config.gemini_api_key,
        model=config.gemini_model,
        base_url=config.gemini_base_url,
        prompt=config.analysis_prompt,
        timeout=config.analysis_timeout,
    )
