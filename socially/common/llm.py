"""
Async chat completion through LiteLLM, used for story text generation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Sequence

from litellm import acompletion

ChatMessage = Mapping[str, Any]

# Long-form story prompts can take a while on hosted open-weight models.
DEFAULT_TIMEOUT_SECONDS = 120.0

logger = logging.getLogger(__name__)


@dataclass
class ChatResult:
    """
    Text of the first completion choice plus the provider's raw response.

    ``finish_reason`` is ``"length"`` when the model ran out of output tokens,
    which usually means the JSON page list is truncated.
    """

    text: str
    raw: Any
    finish_reason: str | None = None


CompletionCallable = Callable[..., Awaitable[ChatResult]]


def _field(container: Any, name: str) -> Any:
    if isinstance(container, Mapping):
        return container.get(name)
    return getattr(container, name, None)


def _content_text(content: Any) -> str:
    # Some providers return a list of typed parts instead of a plain string.
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, Sequence):
        return "".join(str(_field(part, "text") or "") for part in content)
    return str(content)


async def call_chat_completion(
    *,
    model: str,
    messages: Sequence[ChatMessage],
    temperature: float | None = None,
    max_tokens: int | None = None,
    api_key: str | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    **extra_kwargs: Any,
) -> ChatResult:
    """
    Await LiteLLM's ``acompletion`` and return the first choice's text.

    Raises
    ------
    ValueError
        When the response carries no choices.
    """
    options = {
        "temperature": temperature,
        "max_tokens": max_tokens,
        "api_key": api_key,
    }
    payload: dict[str, Any] = {"model": model, "messages": list(messages), "timeout": timeout}
    payload.update({key: value for key, value in options.items() if value is not None})
    payload.update(extra_kwargs)

    response = await acompletion(**payload)

    choices = _field(response, "choices") or []
    if not choices:
        raise ValueError(f"Completion from {model} contained no choices.")
    choice = choices[0]
    text = _content_text(_field(_field(choice, "message"), "content")).strip()
    finish_reason = _field(choice, "finish_reason")

    usage = _field(response, "usage")
    if usage is not None:
        logger.debug(
            "Completion from %s used %s prompt / %s completion tokens",
            model,
            _field(usage, "prompt_tokens"),
            _field(usage, "completion_tokens"),
        )
    if finish_reason == "length":
        logger.warning("Completion from %s stopped at the token limit; output may be truncated.", model)

    return ChatResult(text=text, raw=response, finish_reason=finish_reason)
