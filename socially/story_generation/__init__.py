"""
Story generation utilities for crafting paged social narratives.
"""

from .pages import LAYOUT_GRID, LAYOUT_STANDARD, Panel, StoryPage
from .parsing import extract_json_payload, parse_story_pages
from .profile import StoryRequest
from .prompting import StoryPrompt, build_story_prompt
from .story_service import SocialNarrativeGenerator

__all__ = [
    "LAYOUT_GRID",
    "LAYOUT_STANDARD",
    "Panel",
    "StoryPage",
    "StoryRequest",
    "StoryPrompt",
    "build_story_prompt",
    "extract_json_payload",
    "parse_story_pages",
    "SocialNarrativeGenerator",
]
