import asyncio
import base64
import io

import pytest

from socially.ai_generation import ReplicateImageGenerator, RunCancellation, adapt, decode_image_output
from socially.ai_generation.replicate_service import classify_backend_error, sniff_image_mime
from socially.common import (
    FatalError,
    GenerationCancelled,
    MissingCredentialsError,
    RateLimited,
    TransientError,
)

PNG_HEADER = b"\x89PNG\r\n\x1a\n"


class FakeClient:
    def __init__(self, output=None, error: Exception | None = None, block: bool = False) -> None:
        self.output = output
        self.error = error
        self.block = block
        self.calls: list[tuple[str, dict]] = []

    async def async_run(self, model_id, input):
        self.calls.append((model_id, input))
        if self.block:
            await asyncio.Event().wait()
        if self.error is not None:
            raise self.error
        return self.output


class StatusError(Exception):
    def __init__(self, message: str, status: int) -> None:
        super().__init__(message)
        self.status = status


class FakeResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code


class ResponseError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.response = FakeResponse(status_code)


class AsyncChunks:
    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = list(chunks)

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)


def _request():
    return adapt("google/nano-banana", "A cartoon illustration of a child waiting in line")


def _generate(client: FakeClient, cancellation: RunCancellation | None = None) -> str:
    generator = ReplicateImageGenerator(client=client)
    return asyncio.run(generator.request(_request(), cancellation=cancellation))


def test_url_output_passes_through():
    client = FakeClient(output="https://replicate.delivery/out.webp")

    assert _generate(client) == "https://replicate.delivery/out.webp"
    assert client.calls[0][0] == "google/nano-banana"
    assert client.calls[0][1]["prompt"].startswith("A cartoon illustration")


def test_only_first_list_element_is_used():
    client = FakeClient(output=["https://img.test/first.png", "https://img.test/second.png"])

    assert _generate(client) == "https://img.test/first.png"


def test_async_stream_is_drained_in_order_into_data_uri():
    chunks = [PNG_HEADER, b"chunk-one", b"chunk-two"]

    result = asyncio.run(decode_image_output(AsyncChunks(chunks)))

    assert result.startswith("data:image/png;base64,")
    payload = base64.b64decode(result.split(",", 1)[1])
    assert payload == b"".join(chunks)


def test_file_like_output_is_read():
    result = asyncio.run(decode_image_output([io.BytesIO(b"\xff\xd8\xff\xe0jpeg-bytes")]))

    assert result.startswith("data:image/jpeg;base64,")


def test_empty_output_is_transient():
    with pytest.raises(TransientError):
        _generate(FakeClient(output=[]))
    with pytest.raises(TransientError):
        asyncio.run(decode_image_output(AsyncChunks([])))


def test_sniffed_mime_defaults_to_webp():
    assert sniff_image_mime(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
    assert sniff_image_mime(b"GIF89a...") == "image/gif"
    assert sniff_image_mime(b"unknown") == "image/webp"


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (StatusError("Too many requests", 429), RateLimited),
        (StatusError("Internal error", 500), TransientError),
        (StatusError("Unauthorized", 401), FatalError),
        (StatusError("Forbidden", 403), FatalError),
        (ResponseError(429), RateLimited),
        (ConnectionError("reset by peer"), TransientError),
    ],
)
def test_backend_errors_are_classified(error, expected):
    with pytest.raises(expected) as excinfo:
        _generate(FakeClient(error=error))

    assert type(excinfo.value) is expected
    assert excinfo.value.__cause__ is error


def test_classification_keeps_status():
    classified = classify_backend_error(StatusError("slow down", 429))

    assert classified.status == 429
    assert "slow down" in str(classified)


def test_missing_token_is_fatal(monkeypatch):
    monkeypatch.delenv("REPLICATE_API_TOKEN", raising=False)

    with pytest.raises(MissingCredentialsError):
        ReplicateImageGenerator()


def test_already_cancelled_run_makes_no_call():
    client = FakeClient(output="https://img.test/never.png")

    async def scenario():
        cancellation = RunCancellation()
        cancellation.cancel()
        generator = ReplicateImageGenerator(client=client)
        await generator.request(_request(), cancellation=cancellation)

    with pytest.raises(GenerationCancelled):
        asyncio.run(scenario())
    assert client.calls == []


def test_in_flight_call_is_abandoned_on_cancel():
    client = FakeClient(block=True)

    async def scenario():
        cancellation = RunCancellation()
        asyncio.get_running_loop().call_later(0.01, cancellation.cancel)
        generator = ReplicateImageGenerator(client=client)
        await generator.request(_request(), cancellation=cancellation)

    with pytest.raises(GenerationCancelled):
        asyncio.run(scenario())
    assert len(client.calls) == 1
