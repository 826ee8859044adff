"""
Model-specific request shaping for Replicate image backends.

Backends disagree on parameter names (``image_input`` vs ``image_urls`` vs
``input_images``) and on which output flags they accept, so each model maps
to its own builder. Models in the reference-rewriting family additionally get
their prompt rewritten by :mod:`socially.ai_generation.prompting` whenever a
reference image is supplied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from .prompting import (
    FALLBACK_ACTION,
    STYLE_ONLY_NEGATIVE_PROMPT,
    STYLE_ONLY_PROMPT_STRENGTH,
    build_style_and_character_prompt,
    build_style_only_prompt,
    extract_art_style,
    extract_character_action,
    extract_scene_description,
    strip_character_phrase,
)

DEFAULT_IMAGE_MODEL = "google/nano-banana"
REFERENCE_FAMILY_PREFIXES = ("google/nano-banana",)


@dataclass(frozen=True)
class BackendRequest:
    """A fully shaped request for one image model call."""

    model_id: str
    input: dict[str, Any] = field(default_factory=dict)
    reference_image: str | None = None
    include_main_character: bool = True

    @property
    def prompt(self) -> str:
        return str(self.input.get("prompt", ""))

    def debug_record(self) -> str:
        return (
            f"Model: {self.model_id}\n"
            f"Reference Image Used: {self.reference_image is not None}\n"
            f"Include Main Character: {self.include_main_character}\n\n"
            f"Prompt:\n{self.prompt}"
        )


def _build_flux_schnell_input(*, prompt: str, reference_image: str | None) -> dict[str, Any]:
    return {
        "prompt": prompt,
        "aspect_ratio": "16:9",
        "output_format": "webp",
        "output_quality": 80,
    }


def _build_nano_banana_input(*, prompt: str, reference_image: str | None) -> dict[str, Any]:
    payload: dict[str, Any] = {"prompt": prompt}
    if reference_image:
        payload["image_input"] = [reference_image]
    return payload


def _build_nano_banana_pro_input(*, prompt: str, reference_image: str | None) -> dict[str, Any]:
    payload: dict[str, Any] = {"prompt": prompt}
    if reference_image:
        payload["image_urls"] = [reference_image]
    return payload


def _build_flux_2_dev_input(*, prompt: str, reference_image: str | None) -> dict[str, Any]:
    # flux-2-dev rejects prompt_strength; references go in input_images.
    payload = _build_flux_schnell_input(prompt=prompt, reference_image=None)
    if reference_image:
        payload["input_images"] = [reference_image]
    return payload


_MODEL_INPUT_BUILDERS: dict[str, Callable[..., dict[str, Any]]] = {
    "black-forest-labs/flux-schnell": _build_flux_schnell_input,
    "google/nano-banana": _build_nano_banana_input,
    "google/nano-banana-pro": _build_nano_banana_pro_input,
    "black-forest-labs/flux-2-dev": _build_flux_2_dev_input,
}


def normalize_model_identifier(model_id: str) -> str:
    """Lower-cased ``owner/model`` without any ``:version`` suffix."""
    normalized = model_id.strip().lower()
    return normalized.split(":", maxsplit=1)[0]


def uses_reference_rewriting(model_id: str) -> bool:
    """True for models that keep characters consistent by chaining a reference image."""
    return normalize_model_identifier(model_id).startswith(REFERENCE_FAMILY_PREFIXES)


def supported_models() -> list[str]:
    return sorted(_MODEL_INPUT_BUILDERS)


def _rewrite_for_reference_family(
    prompt: str,
    *,
    reference_image: str | None,
    visual_description: str | None,
    include_main_character: bool,
) -> tuple[str, dict[str, Any]]:
    if not reference_image:
        if include_main_character:
            return prompt, {}
        return strip_character_phrase(prompt, visual_description) or FALLBACK_ACTION, {}

    style = extract_art_style(prompt)
    if include_main_character:
        action = extract_character_action(prompt, visual_description)
        return build_style_and_character_prompt(action, style), {}

    scene = extract_scene_description(prompt, visual_description)
    extras = {
        "negative_prompt": STYLE_ONLY_NEGATIVE_PROMPT,
        "prompt_strength": STYLE_ONLY_PROMPT_STRENGTH,
    }
    return build_style_only_prompt(scene, style), extras


def adapt(
    model_id: str,
    base_prompt: str,
    *,
    reference_image: str | None = None,
    visual_description: str | None = None,
    include_main_character: bool = True,
) -> BackendRequest:
    """
    Shape a model-agnostic prompt into the request expected by ``model_id``.

    Unknown models fall back to the Flux Schnell payload, which carries no
    reference image field.
    """
    normalized = normalize_model_identifier(model_id)
    builder = _MODEL_INPUT_BUILDERS.get(normalized, _build_flux_schnell_input)

    prompt = base_prompt.strip()
    extras: dict[str, Any] = {}
    if uses_reference_rewriting(normalized):
        prompt, extras = _rewrite_for_reference_family(
            prompt,
            reference_image=reference_image,
            visual_description=visual_description,
            include_main_character=include_main_character,
        )

    payload = builder(prompt=prompt, reference_image=reference_image)
    payload.update(extras)

    return BackendRequest(
        model_id=model_id.strip(),
        input=payload,
        reference_image=reference_image or None,
        include_main_character=include_main_character,
    )
