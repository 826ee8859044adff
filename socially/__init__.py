"""
Socially package exposing social narrative generation, illustration, and PDF tooling.
"""

from .pdf_generation import StorybookPDFBuilder
from .pipeline import (
    IllustrationState,
    SociallyOrchestrator,
    StoryIllustrator,
    StoryPackage,
)
from .story_generation import StoryRequest

__all__ = [
    "IllustrationState",
    "SociallyOrchestrator",
    "StoryIllustrator",
    "StoryPackage",
    "StoryRequest",
    "StorybookPDFBuilder",
]
