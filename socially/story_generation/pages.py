"""
Page/panel tree returned by the story text provider and filled in with illustrations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

LAYOUT_STANDARD = "standard"
LAYOUT_GRID = "grid"


def _optional_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
        return None
    return bool(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _image_url_from(data: Mapping[str, Any]) -> str | None:
    return _optional_text(data.get("imageUrl") or data.get("image_url"))


@dataclass
class Panel:
    """One captioned image inside a grid page."""

    image_prompt: str = ""
    caption: str | None = None
    include_main_character: bool | None = None
    image_url: str | None = None

    @property
    def includes_main_character(self) -> bool:
        # Only an explicit ``False`` disables character consistency.
        return self.include_main_character is not False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Panel":
        return cls(
            image_prompt=str(data.get("image_prompt") or "").strip(),
            caption=_optional_text(data.get("caption")),
            include_main_character=_optional_bool(data.get("include_main_character")),
            image_url=_image_url_from(data),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"image_prompt": self.image_prompt}
        if self.caption is not None:
            payload["caption"] = self.caption
        if self.include_main_character is not None:
            payload["include_main_character"] = self.include_main_character
        if self.image_url is not None:
            payload["imageUrl"] = self.image_url
        return payload


@dataclass
class StoryPage:
    """
    A single page of the narrative.

    ``standard`` pages carry one ``image_prompt``; ``grid`` pages carry ``panels``.
    """

    text: str = ""
    layout: str = LAYOUT_STANDARD
    image_prompt: str = ""
    include_main_character: bool | None = None
    image_url: str | None = None
    panels: list[Panel] = field(default_factory=list)

    @property
    def includes_main_character(self) -> bool:
        return self.include_main_character is not False

    @property
    def is_grid(self) -> bool:
        """True when the page is rendered as panels rather than a single image."""
        return self.layout == LAYOUT_GRID and bool(self.panels)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "StoryPage":
        if not isinstance(data, Mapping):
            raise ValueError(f"Invalid page payload: {data!r}")

        layout = str(data.get("layout") or LAYOUT_STANDARD).strip().lower()
        if layout != LAYOUT_GRID:
            layout = LAYOUT_STANDARD

        raw_panels = data.get("panels") or []
        if not isinstance(raw_panels, list):
            raise ValueError(f"Page panels must be a list, got {raw_panels!r}")

        panels: list[Panel] = []
        for entry in raw_panels:
            if not isinstance(entry, Mapping):
                raise ValueError(f"Invalid panel payload: {entry!r}")
            panels.append(Panel.from_mapping(entry))

        return cls(
            text=str(data.get("text") or "").strip(),
            layout=layout,
            image_prompt=str(data.get("image_prompt") or "").strip(),
            include_main_character=_optional_bool(data.get("include_main_character")),
            image_url=_image_url_from(data),
            panels=panels,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"text": self.text, "layout": self.layout}
        if self.image_prompt:
            payload["image_prompt"] = self.image_prompt
        if self.include_main_character is not None:
            payload["include_main_character"] = self.include_main_character
        if self.image_url is not None:
            payload["imageUrl"] = self.image_url
        if self.panels:
            payload["panels"] = [panel.to_dict() for panel in self.panels]
        return payload
