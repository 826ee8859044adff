"""
End-to-end orchestration for Socially story and image generation.
"""

from .illustrator import IllustrationState, StoryIllustrator
from .pipeline import SociallyOrchestrator, StoryPackage
from .slots import ImageSlot, collect_image_slots

__all__ = [
    "IllustrationState",
    "ImageSlot",
    "SociallyOrchestrator",
    "StoryIllustrator",
    "StoryPackage",
    "collect_image_slots",
]
