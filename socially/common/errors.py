"""
Error taxonomy shared by the Socially story and illustration pipelines.
"""

from __future__ import annotations


class SociallyError(Exception):
    """Base class for every error raised by Socially."""


class GenerationError(SociallyError):
    """
    A request to a generative backend failed.

    ``status`` carries the backend HTTP status when one was reported.
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimited(GenerationError):
    """The backend throttled the request (HTTP 429)."""


class TransientError(GenerationError):
    """A retryable backend failure (non-429 4xx/5xx, model errors, empty output)."""


class FatalError(GenerationError):
    """A failure that retrying the same request will not fix."""


class MissingCredentialsError(FatalError):
    """No API token was configured for a backend."""


class StoryParseError(FatalError):
    """The story text provider returned output that could not be parsed into pages."""


class GenerationCancelled(SociallyError):
    """The run was cancelled by the user. Never replaced with a placeholder."""


class RegenerationFailed(SociallyError):
    """Regenerating a single slot exhausted its retries; the previous image was kept."""
