"""
Recover the page list from free-form text model output.

Models are asked for a bare JSON array but often wrap it in prose or markdown,
or return a single object. The first balanced ``[...]`` that decodes to a list
wins; otherwise the first balanced ``{...}`` is wrapped into a one-element list.
"""

from __future__ import annotations

import json
from typing import Any, Iterator

from socially.common import StoryParseError

from .pages import StoryPage


def _balanced_spans(text: str, opener: str, closer: str) -> Iterator[str]:
    """
    Yield every balanced ``opener ... closer`` substring, ordered by start position.

    Brackets inside JSON string literals are ignored.
    """
    start = text.find(opener)
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == opener:
                depth += 1
            elif char == closer:
                depth -= 1
                if depth == 0:
                    yield text[start : index + 1]
                    break
        start = text.find(opener, start + 1)


def extract_json_payload(raw_text: str) -> list[Any]:
    """
    Return the decoded JSON list embedded in ``raw_text``.

    Raises
    ------
    StoryParseError
        When no array or object can be decoded.
    """
    text = raw_text.strip()

    for candidate in _balanced_spans(text, "[", "]"):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, list):
            return parsed

    for candidate in _balanced_spans(text, "{", "}"):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return [parsed]

    raise StoryParseError("Failed to parse story response as JSON.")


def parse_story_pages(raw_text: str) -> list[StoryPage]:
    """
    Parse text model output into story pages.

    An empty page list or a malformed page entry is fatal for the run.
    """
    payload = extract_json_payload(raw_text)
    if not payload:
        raise StoryParseError("Story response did not contain any pages.")

    try:
        return [StoryPage.from_mapping(entry) for entry in payload]
    except ValueError as exc:
        raise StoryParseError(str(exc)) from exc
