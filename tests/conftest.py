from __future__ import annotations

import inspect
import os
from typing import Any, Callable

import pytest

# litellm fetches its model cost map over the network at import time; use the bundled copy.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from socially.ai_generation import BackendRequest, RetryConfig, RetryPolicy
from socially.common import ChatResult
from socially.story_generation import Panel, StoryPage

Responder = Callable[[BackendRequest], Any]


class FakeImageGenerator:
    """Stands in for ReplicateImageGenerator; the responder returns a URL or an exception."""

    def __init__(self, responder: Responder | None = None) -> None:
        self.requests: list[BackendRequest] = []
        self._responder = responder or (lambda request: f"https://img.test/{len(self.requests)}")

    async def request(self, backend_request: BackendRequest, *, cancellation=None) -> str:
        if cancellation is not None:
            cancellation.raise_if_cancelled()
        self.requests.append(backend_request)
        result = self._responder(backend_request)
        if inspect.isawaitable(result):
            result = await (cancellation.guard(result) if cancellation is not None else result)
        if isinstance(result, BaseException):
            raise result
        return result

    @property
    def prompts(self) -> list[str]:
        return [request.prompt for request in self.requests]


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float, cancellation=None) -> None:
        if cancellation is not None:
            cancellation.raise_if_cancelled()
        self.delays.append(seconds)


class FakeCompletion:
    def __init__(self, text: str) -> None:
        self.text = text
        self.calls: list[dict[str, Any]] = []

    async def __call__(self, **kwargs: Any) -> ChatResult:
        self.calls.append(kwargs)
        return ChatResult(text=self.text, raw=None)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def instant_retry(recording_sleep: RecordingSleep) -> RetryPolicy:
    return RetryPolicy(RetryConfig(), sleep=recording_sleep, jitter=lambda low, high: 0.0)


def standard_page(prompt: str, *, include: bool | None = None, text: str = "Page") -> StoryPage:
    return StoryPage(text=text, layout="standard", image_prompt=prompt, include_main_character=include)


def grid_page(*prompts: str, text: str = "Grid page") -> StoryPage:
    return StoryPage(
        text=text,
        layout="grid",
        panels=[Panel(image_prompt=prompt, caption=f"Caption {prompt}") for prompt in prompts],
    )
