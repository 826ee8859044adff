"""
Anchor/fan-out illustration of a story's page/panel tree.

The first slot is rendered alone to produce the anchor image. For models that
keep characters consistent through a reference image, the anchor is then
handed, by value, to every remaining slot, which all render concurrently.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Sequence

from socially.ai_generation import (
    ReplicateImageGenerator,
    RetryPolicy,
    RunCancellation,
    adapt,
    uses_reference_rewriting,
)
from socially.common import DebugLogSink, GenerationCancelled, RegenerationFailed
from socially.story_generation import StoryPage

from .slots import ImageSlot, assign_image, collect_image_slots, current_image, slot_at

ProgressCallback = Callable[[str, dict[str, Any]], None]

logger = logging.getLogger(__name__)


class IllustrationState(str, Enum):
    IDLE = "idle"
    ANCHOR_PENDING = "anchor_pending"
    FAN_OUT_PENDING = "fan_out_pending"
    DONE = "done"
    CANCELLED = "cancelled"


_IN_FLIGHT = (IllustrationState.ANCHOR_PENDING, IllustrationState.FAN_OUT_PENDING)


class StoryIllustrator:
    """
    Runs the illustration stage for one story at a time.

    ``state``, ``status``, ``anchor_image`` and ``pages`` describe the run in
    progress and are reset together by :meth:`cancel`.
    """

    def __init__(
        self,
        *,
        image_generator: ReplicateImageGenerator | None = None,
        retry_policy: RetryPolicy | None = None,
        debug_log: DebugLogSink | None = None,
    ) -> None:
        self._image_generator = image_generator or ReplicateImageGenerator()
        self._retry_policy = retry_policy or RetryPolicy()
        self._debug_log = debug_log
        self._cancellation: RunCancellation | None = None

        self.state = IllustrationState.IDLE
        self.status = ""
        self.anchor_image: str | None = None
        self.pages: list[StoryPage] | None = None

    def cancel(self) -> None:
        """Cancel the run in flight, if any, and clear run-scoped state. Idempotent."""
        if self._cancellation is not None:
            self._cancellation.cancel()
        if self.state in _IN_FLIGHT:
            self.state = IllustrationState.CANCELLED
        self.status = ""
        self.anchor_image = None
        self.pages = None

    async def illustrate(
        self,
        story_pages: Sequence[StoryPage],
        model_id: str,
        visual_description: str | None = None,
        *,
        run_id: str | None = None,
        cancellation: RunCancellation | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> list[StoryPage]:
        """
        Return a copy of ``story_pages`` with every slot's ``image_url`` filled in.

        The input pages are never mutated. Slots whose retries run out receive
        the placeholder image.

        Raises
        ------
        GenerationCancelled
            When the run is cancelled; nothing further is written.
        """
        cancellation = cancellation or RunCancellation()
        self._cancellation = cancellation
        pages = copy.deepcopy(list(story_pages))
        self.pages = pages
        self.anchor_image = None

        slots = collect_image_slots(pages)
        try:
            cancellation.raise_if_cancelled()
            if slots:
                anchor_slot, *remaining = slots
                await self._render_anchor(
                    pages,
                    anchor_slot,
                    model_id,
                    visual_description,
                    run_id=run_id,
                    cancellation=cancellation,
                    progress_callback=progress_callback,
                )
                await self._fan_out(
                    pages,
                    remaining,
                    model_id,
                    visual_description,
                    anchor_image=self.anchor_image,
                    run_id=run_id,
                    cancellation=cancellation,
                    progress_callback=progress_callback,
                )
            cancellation.raise_if_cancelled()
        except (GenerationCancelled, asyncio.CancelledError):
            logger.info("Generation cancelled.")
            self.cancel()
            self.state = IllustrationState.CANCELLED
            self._notify(progress_callback, "illustration:cancelled")
            raise

        self.state = IllustrationState.DONE
        self.status = ""
        self._notify(progress_callback, "illustration:complete", total_slots=len(slots))
        return pages

    async def regenerate_slot(
        self,
        pages: Sequence[StoryPage],
        page_index: int,
        panel_index: int | None,
        new_prompt: str,
        model_id: str,
        visual_description: str | None = None,
        *,
        run_id: str | None = None,
    ) -> str:
        """
        Re-render one existing slot from ``new_prompt``, editing on top of its current image.

        The slot's own image is the reference. When it has none, the run's
        anchor is used, or for a reloaded package the image in its first
        slot. On success the slot's ``image_url`` and ``image_prompt`` are
        replaced in ``pages``.

        Raises
        ------
        RegenerationFailed
            When retries are exhausted; the slot keeps its previous image.
        """
        slot = replace(slot_at(pages, page_index, panel_index), prompt=new_prompt)
        reference = current_image(pages, slot)
        if reference is None or self._retry_policy.is_placeholder(reference):
            reference = self.anchor_image or self._stored_anchor(pages, model_id)

        cancellation = RunCancellation()
        self._cancellation = cancellation
        image_url = await self._render(
            slot,
            model_id,
            visual_description,
            reference_image=reference,
            run_id=run_id,
            cancellation=cancellation,
        )
        if self._retry_policy.is_placeholder(image_url):
            raise RegenerationFailed(f"Failed to regenerate image for {slot.label}.")

        assign_image(pages, slot, image_url, prompt=new_prompt)
        return image_url

    def _stored_anchor(self, pages: Sequence[StoryPage], model_id: str) -> str | None:
        # A package reloaded from disk has no live anchor; its first slot holds it.
        if not uses_reference_rewriting(model_id):
            return None
        slots = collect_image_slots(pages)
        if not slots:
            return None
        image_url = current_image(pages, slots[0])
        if image_url is None or self._retry_policy.is_placeholder(image_url):
            return None
        return image_url

    async def _render_anchor(
        self,
        pages: list[StoryPage],
        anchor_slot: ImageSlot,
        model_id: str,
        visual_description: str | None,
        *,
        run_id: str | None,
        cancellation: RunCancellation,
        progress_callback: ProgressCallback | None,
    ) -> None:
        self.state = IllustrationState.ANCHOR_PENDING
        self.status = "Creating the main character..."
        self._notify(progress_callback, "illustration:anchor", label=anchor_slot.label)

        image_url = await self._render(
            anchor_slot,
            model_id,
            visual_description,
            reference_image=None,
            run_id=run_id,
            cancellation=cancellation,
        )
        cancellation.raise_if_cancelled()
        assign_image(pages, anchor_slot, image_url)
        self._notify(progress_callback, "illustration:slot_done", label=anchor_slot.label)

        if uses_reference_rewriting(model_id) and not self._retry_policy.is_placeholder(image_url):
            self.anchor_image = image_url

    async def _fan_out(
        self,
        pages: list[StoryPage],
        slots: Sequence[ImageSlot],
        model_id: str,
        visual_description: str | None,
        *,
        anchor_image: str | None,
        run_id: str | None,
        cancellation: RunCancellation,
        progress_callback: ProgressCallback | None,
    ) -> None:
        self.state = IllustrationState.FAN_OUT_PENDING
        self.status = f"Illustrating remaining scenes ({len(slots)} images)..."
        self._notify(progress_callback, "illustration:fan_out", total_slots=len(slots))

        async def render_into(slot: ImageSlot, reference: str | None) -> None:
            image_url = await self._render(
                slot,
                model_id,
                visual_description,
                reference_image=reference,
                run_id=run_id,
                cancellation=cancellation,
            )
            cancellation.raise_if_cancelled()
            assign_image(pages, slot, image_url)
            self._notify(progress_callback, "illustration:slot_done", label=slot.label)

        tasks: list[asyncio.Task[None]] = []
        try:
            for slot in slots:
                cancellation.raise_if_cancelled()
                tasks.append(asyncio.create_task(render_into(slot, anchor_image)))
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _render(
        self,
        slot: ImageSlot,
        model_id: str,
        visual_description: str | None,
        *,
        reference_image: str | None,
        run_id: str | None,
        cancellation: RunCancellation,
    ) -> str:
        backend_request = adapt(
            model_id,
            slot.prompt,
            reference_image=reference_image,
            visual_description=visual_description,
            include_main_character=slot.include_main_character,
        )

        async def attempt() -> str:
            cancellation.raise_if_cancelled()
            if run_id and self._debug_log is not None:
                self._debug_log.emit_prompt(run_id, "IMAGE_GENERATION", backend_request.debug_record())
            return await self._image_generator.request(backend_request, cancellation=cancellation)

        return await self._retry_policy.with_retry(attempt, slot.label, cancellation=cancellation)

    @staticmethod
    def _notify(
        callback: ProgressCallback | None,
        stage: str,
        **payload: Any,
    ) -> None:
        if callback is not None:
            callback(stage, payload)
