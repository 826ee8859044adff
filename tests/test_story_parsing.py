import pytest

from socially.common import StoryParseError
from socially.story_generation import Panel, StoryPage, extract_json_payload, parse_story_pages


def test_array_wrapped_in_prose_is_recovered():
    pages = parse_story_pages('Here you go:\n[{"text":"A","image_prompt":"p"}]\nEnjoy!')

    assert pages == [StoryPage(text="A", layout="standard", image_prompt="p")]


def test_markdown_fenced_array():
    raw = '```json\n[{"text": "One", "image_prompt": "a"}, {"text": "Two", "image_prompt": "b"}]\n```'

    assert [page.text for page in parse_story_pages(raw)] == ["One", "Two"]


def test_single_object_is_wrapped_into_a_list():
    pages = parse_story_pages('Sure! {"text": "Only page", "image_prompt": "scene"} Hope it helps.')

    assert len(pages) == 1
    assert pages[0].text == "Only page"


def test_bracketed_prose_before_the_array_is_skipped():
    raw = 'Note [draft version]: [{"text": "Real", "image_prompt": "scene"}]'

    assert parse_story_pages(raw)[0].text == "Real"


def test_brackets_inside_strings_do_not_break_matching():
    raw = '[{"text": "I can say [hello] and smile.", "image_prompt": "a child waving ]"}]'

    page = parse_story_pages(raw)[0]

    assert page.text == "I can say [hello] and smile."
    assert page.image_prompt == "a child waving ]"


def test_grid_pages_and_inclusion_flags():
    raw = """[
      {"text": "Lunch time", "layout": "standard", "include_main_character": false,
       "image_prompt": "A cartoon illustration of a lunch tray"},
      {"text": "I can pick", "layout": "grid", "panels": [
        {"caption": "Apple", "image_prompt": "an apple", "include_main_character": false},
        {"caption": "Me eating", "image_prompt": "a child eating"}
      ]}
    ]"""

    first, second = parse_story_pages(raw)

    assert not first.includes_main_character
    assert not first.is_grid
    assert second.is_grid
    assert second.panels == [
        Panel(image_prompt="an apple", caption="Apple", include_main_character=False),
        Panel(image_prompt="a child eating", caption="Me eating"),
    ]
    assert second.panels[1].includes_main_character


def test_grid_layout_without_panels_is_not_a_grid():
    page = parse_story_pages('[{"text": "x", "layout": "grid", "image_prompt": "p"}]')[0]

    assert not page.is_grid


def test_unknown_layout_becomes_standard():
    page = parse_story_pages('[{"text": "x", "layout": "collage", "image_prompt": "p"}]')[0]

    assert page.layout == "standard"


@pytest.mark.parametrize(
    "raw",
    [
        "I'm sorry, I can't write that story.",
        '[{"text": "unterminated"',
        "[]",
        "",
    ],
)
def test_unusable_output_is_a_parse_error(raw):
    with pytest.raises(StoryParseError):
        parse_story_pages(raw)


def test_non_object_entries_are_rejected():
    with pytest.raises(StoryParseError):
        parse_story_pages('["just a string"]')


def test_extract_prefers_arrays_over_objects():
    assert extract_json_payload('{"a": 1} and [1, 2]') == [1, 2]


def test_page_round_trips_through_dict():
    page = StoryPage(
        text="t",
        layout="grid",
        panels=[Panel(image_prompt="p", caption="c", image_url="https://img.test/1.png")],
    )

    data = page.to_dict()

    assert data["panels"][0]["imageUrl"] == "https://img.test/1.png"
    assert StoryPage.from_mapping(data) == page
