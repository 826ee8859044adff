"""
Prompt rewriting for image models that keep characters consistent through a reference image.

Story prompts arrive in the shape ``"A <style> illustration of a child with
<visual description> <action> ..."``. Models in the reference-image family
reproduce whatever the reference shows, so the prompt is reduced to the part
that differs from the reference (the action, or the scene) and re-phrased as
an edit instruction. Everything here is a pure string transform.
"""

from __future__ import annotations

import re

DEFAULT_ART_STYLE = "cartoon"
FALLBACK_ACTION = "in the scene"
MIN_EXTRACT_LENGTH = 3

STYLE_ONLY_NEGATIVE_PROMPT = (
    "main character, reference character, clone, duplicate, same person, identical face"
)
STYLE_ONLY_PROMPT_STRENGTH = 0.85

_STYLE_PATTERN = re.compile(r"^A (.*?) illustration", re.IGNORECASE)
_ILLUSTRATION_PREFIX = re.compile(r"^A .*? illustration of ", re.IGNORECASE)
_CHILD_WITH_PREFIX = re.compile(r"^A .*? illustration of a child with ", re.IGNORECASE)
_CHILD_GENERIC_PREFIX = re.compile(r"^A .*? illustration of a child (with .*?)? ", re.IGNORECASE)
_LEADING_CHILD = re.compile(r"^(?:a|the) child(?: with)?\s+", re.IGNORECASE)
_LEADING_PUNCTUATION = re.compile(r"^[,.\s]+")
_LEADING_RELATIVE = re.compile(r"^(who is|that is)\s+", re.IGNORECASE)
_ACTION_PATTERN = re.compile(
    r"(?:playing|sitting|standing|walking|running|looking|holding|talking|listening|"
    r"waiting|feeling|being) .*",
    re.IGNORECASE,
)


def extract_art_style(prompt: str) -> str:
    """Return the ``<style>`` of a leading ``"A <style> illustration"``, else ``cartoon``."""
    match = _STYLE_PATTERN.match(prompt.strip())
    if match and match.group(1).strip():
        return match.group(1).strip()
    return DEFAULT_ART_STYLE


def _tidy(text: str) -> str:
    text = re.sub(r"\s{2,}", " ", text)
    text = re.sub(r"\s+([,.;:!?])", r"\1", text)
    return _LEADING_PUNCTUATION.sub("", text).strip()


def strip_character_phrase(text: str, visual_description: str | None) -> str:
    """
    Remove every occurrence of the visual description, ignoring case.

    Removal repeats until nothing matches, because collapsing the gap left by
    one occurrence can join its neighbours into another.
    """
    if not visual_description or not visual_description.strip():
        return text
    pattern = re.compile(re.escape(visual_description.strip()), re.IGNORECASE)
    text = _tidy(pattern.sub(" ", text))
    while pattern.search(text):
        text = _tidy(pattern.sub(" ", text))
    return text


def _accept(candidate: str | None) -> str | None:
    if candidate is None:
        return None
    candidate = candidate.strip()
    return candidate if len(candidate) >= MIN_EXTRACT_LENGTH else None


def extract_scene_description(prompt: str, visual_description: str | None = None) -> str:
    """
    Residual scene for a panel that must not show the main character.

    Strips the ``"A <style> illustration of "`` prefix, a leading ``"a child"``
    and any leaked visual description.
    """
    scene = _ILLUSTRATION_PREFIX.sub("", prompt.strip(), count=1)
    scene = _LEADING_CHILD.sub("", scene, count=1)
    scene = strip_character_phrase(scene, visual_description)
    return _accept(_tidy(scene)) or FALLBACK_ACTION


def _action_without_description(prompt: str, visual_description: str) -> str | None:
    remainder = _CHILD_WITH_PREFIX.sub("", prompt, count=1)
    remainder = strip_character_phrase(remainder, visual_description)
    remainder = _LEADING_PUNCTUATION.sub("", remainder)
    remainder = _LEADING_RELATIVE.sub("", remainder)
    return _accept(remainder)


def _action_from_verbs(prompt: str) -> str | None:
    match = _ACTION_PATTERN.search(prompt)
    return _accept(match.group(0)) if match else None


def _action_after_prefix(prompt: str) -> str | None:
    remainder = _CHILD_GENERIC_PREFIX.sub("", prompt, count=1)
    if len(remainder) < len(prompt):
        return _accept(remainder)
    return None


def extract_character_action(prompt: str, visual_description: str | None = None) -> str:
    """
    What the main character is doing, with their appearance removed.

    Tries, in order: subtracting the visual description, the action-verb
    vocabulary, a generic prefix strip. Never returns fewer than three
    characters; falls back to ``"in the scene"``.
    """
    prompt = prompt.strip()
    candidates = []
    if visual_description and visual_description.strip():
        candidates.append(lambda: _action_without_description(prompt, visual_description))
    candidates.append(lambda: _action_from_verbs(prompt))
    candidates.append(lambda: _action_after_prefix(prompt))

    for candidate in candidates:
        action = candidate()
        if action:
            return action
    return FALLBACK_ACTION


def build_style_only_prompt(scene: str, style: str) -> str:
    return (
        f"{scene.rstrip(' .')}. The image must be in the exact same {style} art style as the provided "
        "reference image, but it must feature DIFFERENT characters. Do not include the main "
        "character from the reference. Focus on the scene description."
    )


def build_style_and_character_prompt(action: str, style: str) -> str:
    return f"A {style} picture in the same style as this, with the same character {action}"
