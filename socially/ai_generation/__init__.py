"""
AI image generation package for Socially.
"""

from .cancellation import RunCancellation
from .prompting import (
    extract_art_style,
    extract_character_action,
    extract_scene_description,
)
from .replicate_service import ReplicateImageGenerator, decode_image_output
from .request_builders import (
    DEFAULT_IMAGE_MODEL,
    BackendRequest,
    adapt,
    uses_reference_rewriting,
)
from .retry import PLACEHOLDER_IMAGE_URL, RetryConfig, RetryPolicy

__all__ = [
    "BackendRequest",
    "DEFAULT_IMAGE_MODEL",
    "PLACEHOLDER_IMAGE_URL",
    "ReplicateImageGenerator",
    "RetryConfig",
    "RetryPolicy",
    "RunCancellation",
    "adapt",
    "decode_image_output",
    "extract_art_style",
    "extract_character_action",
    "extract_scene_description",
    "uses_reference_rewriting",
]
