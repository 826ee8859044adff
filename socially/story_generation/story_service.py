"""
Service layer producing paged social narratives via LiteLLM-compatible models.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from socially.common import (
    ChatResult,
    CompletionCallable,
    DebugLogSink,
    FatalError,
    MissingCredentialsError,
    StoryParseError,
    call_chat_completion,
)

from .pages import StoryPage
from .parsing import parse_story_pages
from .profile import StoryRequest
from .prompting import StoryPrompt, build_story_prompt

DEFAULT_STORY_MODEL = "replicate/meta/meta-llama-3-70b-instruct"

logger = logging.getLogger(__name__)


class SocialNarrativeGenerator:
    """
    Turns a :class:`StoryRequest` into an ordered list of :class:`StoryPage` objects.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        completion_fn: CompletionCallable | None = None,
        debug_log: DebugLogSink | None = None,
    ) -> None:
        self._api_key = (
            api_key
            or os.getenv("SOCIALLY_STORY_API_KEY")
            or os.getenv("REPLICATE_API_TOKEN")
            or os.getenv("LITELLM_API_KEY")
        )
        self._model = (
            model
            or os.getenv("SOCIALLY_STORY_MODEL")
            or os.getenv("LITELLM_MODEL")
            or DEFAULT_STORY_MODEL
        )
        self._completion_fn: CompletionCallable = completion_fn or call_chat_completion
        self._debug_log = debug_log

    @property
    def model(self) -> str:
        """Return the default model identifier in use."""
        return self._model

    async def generate_pages(
        self,
        request: StoryRequest,
        *,
        run_id: str | None = None,
        temperature: float = 0.7,
        max_output_tokens: int = 1024,
        **response_kwargs: Any,
    ) -> list[StoryPage]:
        """
        Invoke the configured text model and parse its output into pages.

        Raises
        ------
        MissingCredentialsError
            When no API key is configured and no custom completion function was given.
        FatalError
            When the text model call itself fails.
        StoryParseError
            When the model output does not contain a usable page list.
        """
        if self._api_key is None and self._completion_fn is call_chat_completion:
            raise MissingCredentialsError(
                "Story model API key is not configured. Set REPLICATE_API_TOKEN or SOCIALLY_STORY_API_KEY."
            )

        model = request.story_model or self._model
        prompt: StoryPrompt = build_story_prompt(request)

        if run_id and self._debug_log is not None:
            self._debug_log.emit_prompt(run_id, "STORY_GENERATION", prompt.as_log_record(model))

        logger.info("Generating story with model %s", model)
        try:
            result: ChatResult = await self._completion_fn(
                model=model,
                messages=[
                    {"role": "system", "content": prompt.system},
                    {"role": "user", "content": prompt.user},
                ],
                temperature=temperature,
                max_tokens=max_output_tokens,
                api_key=self._api_key,
                **response_kwargs,
            )
        except Exception as exc:
            raise FatalError(f"Failed to generate story text: {exc}") from exc

        if not result.text:
            raise StoryParseError("Story model response did not contain any text content.")

        logger.debug("Raw story model output: %s", result.text)
        return parse_story_pages(result.text)
