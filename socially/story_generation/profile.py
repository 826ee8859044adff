"""
Structured representation of the child/context information gathered for a story request.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

DEFAULT_ART_STYLE = "cartoon"
DEFAULT_IMAGE_MODEL = "google/nano-banana"
STORY_MODES = ("standard", "dynamic")


def _normalize_interests(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()

    if isinstance(value, str):
        parts = [item.strip() for item in value.split(",")]
    elif isinstance(value, Sequence):
        parts = [str(item).strip() for item in value]
    else:
        raise TypeError("interests must be a string or sequence of strings.")

    return tuple(filter(None, parts))


def _coerce_optional_str(value: Any) -> str | None:
    if value is None:
        return None

    text = str(value).strip()
    return text or None


def _coerce_optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None

    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected an integer-compatible value for age, got {value!r}") from exc


def _require_str(data: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        text = _coerce_optional_str(data.get(key))
        if text:
            return text
    raise ValueError(f"Story request data must include a non-empty '{keys[0]}' field.")


@dataclass(frozen=True)
class StoryRequest:
    """
    Canonical representation of one social narrative request.

    Attributes
    ----------
    child_name:
        Name of the child the narrative is written for (required).
    age:
        Age in years, if provided.
    gender:
        Gender or pronoun preference.
    target_behavior:
        The situation or routine the narrative should address (required).
    interests:
        Interests woven into the story for engagement.
    visual_description:
        Appearance of the main character, repeated in every image prompt that
        features them (required).
    art_style:
        Illustration style requested from the text model (e.g. ``cartoon``).
    story_mode:
        ``standard`` for one image per page, ``dynamic`` to allow grid pages.
    story_model:
        Optional LiteLLM model identifier overriding the default text model.
    image_model:
        Replicate model identifier used for the illustrations.
    """

    child_name: str
    target_behavior: str
    visual_description: str
    age: int | None = None
    gender: str | None = None
    interests: tuple[str, ...] = ()
    art_style: str = DEFAULT_ART_STYLE
    story_mode: str = "standard"
    story_model: str | None = None
    image_model: str = DEFAULT_IMAGE_MODEL

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "StoryRequest":
        """
        Build a request from a dict-like object (e.g., parsed JSON/YAML).

        Both snake_case keys and the camelCase keys used by the web form are accepted.
        """
        story_mode = (
            _coerce_optional_str(data.get("story_mode") or data.get("storyMode")) or "standard"
        ).lower()
        if story_mode not in STORY_MODES:
            raise ValueError(
                f"story_mode must be one of {', '.join(STORY_MODES)}, received {story_mode!r}."
            )

        return cls(
            child_name=_require_str(data, "child_name", "childName", "name"),
            target_behavior=_require_str(data, "target_behavior", "targetBehavior"),
            visual_description=_require_str(data, "visual_description", "visualDescription"),
            age=_coerce_optional_int(data.get("age")),
            gender=_coerce_optional_str(data.get("gender") or data.get("pronouns")),
            interests=_normalize_interests(data.get("interests")),
            art_style=_coerce_optional_str(data.get("art_style") or data.get("artStyle"))
            or DEFAULT_ART_STYLE,
            story_mode=story_mode,
            story_model=_coerce_optional_str(data.get("story_model") or data.get("storyModel")),
            image_model=_coerce_optional_str(data.get("image_model") or data.get("imageModel"))
            or os.getenv("SOCIALLY_IMAGE_MODEL")
            or DEFAULT_IMAGE_MODEL,
        )

    @classmethod
    def from_file(cls, path: Path | str) -> "StoryRequest":
        """
        Load request data from a YAML or JSON file.
        """
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        suffix = path.suffix.lower()
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(text)
        elif suffix == ".json":
            data = json.loads(text)
        else:
            raise ValueError("Unsupported request file format. Use YAML or JSON.")

        if not isinstance(data, Mapping):
            raise ValueError("Request file must deserialize to a mapping.")
        return cls.from_mapping(data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "child_name": self.child_name,
            "age": self.age,
            "gender": self.gender,
            "target_behavior": self.target_behavior,
            "interests": list(self.interests),
            "visual_description": self.visual_description,
            "art_style": self.art_style,
            "story_mode": self.story_mode,
            "story_model": self.story_model,
            "image_model": self.image_model,
        }

    @property
    def interests_text(self) -> str:
        return ", ".join(self.interests)
