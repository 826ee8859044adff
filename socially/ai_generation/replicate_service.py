"""
Integration with Replicate for single illustration requests.
"""

from __future__ import annotations

import base64
import logging
import os
from collections.abc import Iterable as IterableABC
from typing import Any

import replicate

from socially.common import (
    FatalError,
    GenerationCancelled,
    GenerationError,
    MissingCredentialsError,
    RateLimited,
    TransientError,
)

from .cancellation import RunCancellation
from .request_builders import BackendRequest

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = "image/webp"
_FATAL_STATUSES = frozenset({401, 403})


def sniff_image_mime(data: bytes) -> str:
    """Guess the MIME type of encoded image bytes from their magic number."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_IMAGE_MIME


def to_data_uri(data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{sniff_image_mime(data)};base64,{encoded}"


async def decode_image_output(raw: Any) -> str:
    """
    Turn raw Replicate output into a displayable image reference.

    Only the first element of a sequence is used. Strings (URLs) pass through;
    binary streams are drained completely, in order, and returned as a data URI.
    """
    if isinstance(raw, (list, tuple)):
        if not raw:
            raise TransientError("Image model returned an empty output list.")
        raw = raw[0]

    if raw is None:
        raise TransientError("Image model returned no output.")

    if isinstance(raw, str):
        return raw

    if isinstance(raw, (bytes, bytearray)):
        data = bytes(raw)
    elif hasattr(raw, "__aiter__"):
        data = b"".join([bytes(chunk) async for chunk in raw])
    elif hasattr(raw, "read"):
        data = bytes(raw.read())
    elif isinstance(raw, IterableABC):
        chunks = list(raw)
        if chunks and all(isinstance(chunk, str) for chunk in chunks):
            return "".join(chunks)
        data = b"".join(bytes(chunk) for chunk in chunks)
    else:
        return str(raw)

    if not data:
        raise TransientError("Image model returned an empty stream.")
    return to_data_uri(data)


def _status_of(exc: BaseException) -> int | None:
    status = getattr(exc, "status", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_backend_error(exc: BaseException) -> GenerationError:
    """Map a client exception onto the retry taxonomy."""
    status = _status_of(exc)
    message = str(exc) or type(exc).__name__
    if status == 429:
        return RateLimited(message, status=status)
    if status in _FATAL_STATUSES:
        return FatalError(message, status=status)
    return TransientError(message, status=status)


class ReplicateImageGenerator:
    """
    Issues one image generation call per :class:`BackendRequest`.

    Parameters
    ----------
    api_token:
        Replicate API token. Falls back to ``REPLICATE_API_TOKEN`` environment variable.
    client:
        Optional pre-configured :class:`replicate.Client`. Mainly useful for testing.
    """

    def __init__(
        self,
        *,
        api_token: str | None = None,
        client: replicate.Client | None = None,
    ) -> None:
        self._api_token = api_token or os.getenv("REPLICATE_API_TOKEN")
        if not self._api_token and not client:
            raise MissingCredentialsError(
                "Replicate API token is required. Set REPLICATE_API_TOKEN or pass api_token."
            )

        self._client = client or replicate.Client(api_token=self._api_token)

    async def request(
        self,
        backend_request: BackendRequest,
        *,
        cancellation: RunCancellation | None = None,
    ) -> str:
        """
        Generate one image and return its URL or data URI.

        Raises
        ------
        RateLimited, TransientError, FatalError
            Classified backend failures.
        GenerationCancelled
            When ``cancellation`` fires before the call completes.
        """
        call = self._run_and_decode(backend_request)
        if cancellation is None:
            return await call
        if cancellation.cancelled:
            call.close()
            cancellation.raise_if_cancelled()
        return await cancellation.guard(call)

    async def _run_and_decode(self, backend_request: BackendRequest) -> str:
        try:
            output = await self._client.async_run(
                backend_request.model_id,
                input=backend_request.input,
            )
            return await decode_image_output(output)
        except (GenerationCancelled, GenerationError):
            raise
        except Exception as exc:
            classified = classify_backend_error(exc)
            logger.debug(
                "Replicate call for %s failed with %s: %s",
                backend_request.model_id,
                type(classified).__name__,
                exc,
            )
            raise classified from exc
