"""
Image slots derived from the page/panel tree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from socially.story_generation import StoryPage


@dataclass(frozen=True)
class ImageSlot:
    """One unit of image generation: a whole page, or one panel of a grid page."""

    page_index: int
    panel_index: int | None
    prompt: str
    include_main_character: bool

    @property
    def label(self) -> str:
        if self.panel_index is None:
            return f"page {self.page_index + 1}"
        return f"page {self.page_index + 1} (panel {self.panel_index + 1})"


def _page_slots(page_index: int, page: StoryPage) -> list[ImageSlot]:
    if page.is_grid:
        return [
            ImageSlot(
                page_index=page_index,
                panel_index=panel_index,
                prompt=panel.image_prompt,
                include_main_character=panel.includes_main_character,
            )
            for panel_index, panel in enumerate(page.panels)
        ]
    return [
        ImageSlot(
            page_index=page_index,
            panel_index=None,
            prompt=page.image_prompt,
            include_main_character=page.includes_main_character,
        )
    ]


def collect_image_slots(pages: Sequence[StoryPage]) -> list[ImageSlot]:
    """
    Every slot with a prompt, in document order. The first element is the anchor slot.

    A page or panel without an ``image_prompt`` has nothing to render and gets no slot.
    """
    slots: list[ImageSlot] = []
    for page_index, page in enumerate(pages):
        slots.extend(slot for slot in _page_slots(page_index, page) if slot.prompt.strip())
    return slots


def slot_at(pages: Sequence[StoryPage], page_index: int, panel_index: int | None = None) -> ImageSlot:
    """Look up an existing slot, raising ``IndexError`` for positions outside the tree."""
    if not 0 <= page_index < len(pages):
        raise IndexError(f"Page index {page_index} is out of range for {len(pages)} pages.")
    page = pages[page_index]
    for slot in _page_slots(page_index, page):
        if slot.panel_index == panel_index:
            return slot
    if panel_index is None:
        raise IndexError(f"Page {page_index + 1} is a grid page; a panel index is required.")
    raise IndexError(f"Panel index {panel_index} does not exist on page {page_index + 1}.")


def current_image(pages: Sequence[StoryPage], slot: ImageSlot) -> str | None:
    page = pages[slot.page_index]
    if slot.panel_index is None:
        return page.image_url
    return page.panels[slot.panel_index].image_url


def assign_image(
    pages: Sequence[StoryPage],
    slot: ImageSlot,
    image_url: str,
    *,
    prompt: str | None = None,
) -> None:
    """Write a finished slot. ``prompt`` is only given by single-slot regeneration."""
    page = pages[slot.page_index]
    target = page if slot.panel_index is None else page.panels[slot.panel_index]
    target.image_url = image_url
    if prompt is not None:
        target.image_prompt = prompt
