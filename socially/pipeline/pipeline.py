"""
Orchestrates the full Socially pipeline from a story request to illustrated pages.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from socially.ai_generation import (
    ReplicateImageGenerator,
    RetryConfig,
    RetryPolicy,
    RunCancellation,
)
from socially.common import CompletionCallable, DebugLogSink, new_run_id
from socially.story_generation import SocialNarrativeGenerator, StoryPage, StoryRequest

from .illustrator import ProgressCallback, StoryIllustrator
from .slots import collect_image_slots

SnapshotRenderer = Callable[["StoryPackage"], bytes]

logger = logging.getLogger(__name__)


@dataclass
class StoryPackage:
    """Aggregated output of one Socially run."""

    request: StoryRequest
    run_id: str
    pages: list[StoryPage]

    @property
    def image_model(self) -> str:
        return self.request.image_model

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "request": self.request.to_dict(),
            "pages": [page.to_dict() for page in self.pages],
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "StoryPackage":
        if "request" not in payload:
            raise ValueError("Story package payload must include 'request'.")
        if "pages" not in payload:
            raise ValueError("Story package payload must include 'pages'.")

        request = StoryRequest.from_mapping(payload["request"])
        pages_payload = payload.get("pages") or []
        if not isinstance(pages_payload, list):
            raise ValueError("Story package 'pages' must be a list.")

        pages = [StoryPage.from_mapping(entry) for entry in pages_payload]
        run_id = str(payload.get("run_id") or "").strip() or new_run_id()
        return cls(request=request, run_id=run_id, pages=pages)

    @classmethod
    def from_yaml(cls, source: str | Path) -> "StoryPackage":
        path = Path(source)
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if not isinstance(data, Mapping):
            raise ValueError("Story package YAML must deserialize to a mapping.")
        return cls.from_dict(data)


class SociallyOrchestrator:
    """
    High-level coordinator chaining story text generation and illustration.
    """

    def __init__(
        self,
        *,
        story_generator: SocialNarrativeGenerator | None = None,
        illustrator: StoryIllustrator | None = None,
        image_generator: ReplicateImageGenerator | None = None,
        retry_config: RetryConfig | None = None,
        debug_log: DebugLogSink | None = None,
        story_model: str | None = None,
        story_api_key: str | None = None,
        completion_fn: CompletionCallable | None = None,
        snapshot_renderer: SnapshotRenderer | None = None,
    ) -> None:
        self._debug_log = debug_log
        self._story_generator = story_generator or SocialNarrativeGenerator(
            api_key=story_api_key,
            model=story_model,
            completion_fn=completion_fn,
            debug_log=debug_log,
        )
        self._illustrator = illustrator or StoryIllustrator(
            image_generator=image_generator,
            retry_policy=RetryPolicy(retry_config),
            debug_log=debug_log,
        )
        self._snapshot_renderer = snapshot_renderer
        self._cancellation: RunCancellation | None = None

    @property
    def illustrator(self) -> StoryIllustrator:
        return self._illustrator

    def cancel(self) -> None:
        """Abort the run in flight. Safe to call repeatedly or when idle."""
        if self._cancellation is not None:
            self._cancellation.cancel()
        self._illustrator.cancel()

    async def run(
        self,
        request: StoryRequest,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> StoryPackage:
        """
        Generate the story text, then illustrate every slot.

        Raises
        ------
        GenerationCancelled
            When :meth:`cancel` is called before the run finishes.
        FatalError
            When story text generation fails (bad output, missing credentials).
        """
        run_id = new_run_id()
        cancellation = RunCancellation()
        self._cancellation = cancellation

        try:
            self._notify(progress_callback, "story:generating", run_id=run_id)
            pages = await cancellation.guard(
                self._story_generator.generate_pages(request, run_id=run_id)
            )
            self._notify(
                progress_callback,
                "story:generated",
                total_pages=len(pages),
                total_slots=len(collect_image_slots(pages)),
            )

            illustrated = await self._illustrator.illustrate(
                pages,
                request.image_model,
                request.visual_description,
                run_id=run_id,
                cancellation=cancellation,
                progress_callback=progress_callback,
            )

            package = StoryPackage(request=request, run_id=run_id, pages=illustrated)
            await self._save_debug_snapshot(package)
            self._notify(progress_callback, "pipeline:complete", total_pages=len(illustrated))
            return package
        finally:
            self._cancellation = None
            if self._debug_log is not None:
                await self._debug_log.drain()

    async def regenerate_image(
        self,
        package: StoryPackage,
        page_index: int,
        panel_index: int | None = None,
        *,
        prompt: str,
    ) -> str:
        """Regenerate one slot of a finished package in place."""
        return await self._illustrator.regenerate_slot(
            package.pages,
            page_index,
            panel_index,
            prompt,
            package.image_model,
            package.request.visual_description,
            run_id=package.run_id,
        )

    async def _save_debug_snapshot(self, package: StoryPackage) -> None:
        if self._debug_log is None or self._snapshot_renderer is None:
            return
        try:
            pdf_bytes = await asyncio.to_thread(self._snapshot_renderer, package)
        except Exception:
            logger.exception("Failed to render debug snapshot for run %s.", package.run_id)
            return
        await asyncio.to_thread(self._debug_log.save_document, package.run_id, pdf_bytes)

    @staticmethod
    def _notify(
        callback: ProgressCallback | None,
        stage: str,
        **payload: Any,
    ) -> None:
        if callback is not None:
            callback(stage, payload)
