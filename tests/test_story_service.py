import asyncio

import pytest

from socially.common import DebugLogSink, FatalError, MissingCredentialsError, StoryParseError, llm
from socially.common.debug_log import PROMPTS_FILENAME
from socially.story_generation import SocialNarrativeGenerator, StoryRequest, build_story_prompt

from .conftest import FakeCompletion

STORY_JSON = (
    '[{"text": "I go to school.", "include_main_character": true, '
    '"image_prompt": "A cartoon illustration of a child with red boots walking to school"}]'
)


def _request(**overrides) -> StoryRequest:
    data = {
        "childName": "Sam",
        "age": "6",
        "targetBehavior": "waiting in line",
        "visualDescription": "red boots and a yellow raincoat",
        "interests": "trains, dinosaurs",
    }
    data.update(overrides)
    return StoryRequest.from_mapping(data)


def test_request_accepts_camel_case_keys(monkeypatch):
    monkeypatch.delenv("SOCIALLY_IMAGE_MODEL", raising=False)

    request = _request()

    assert request.child_name == "Sam"
    assert request.age == 6
    assert request.interests == ("trains", "dinosaurs")
    assert request.story_mode == "standard"
    assert request.image_model == "google/nano-banana"


def test_request_rejects_missing_fields_and_unknown_modes():
    with pytest.raises(ValueError):
        StoryRequest.from_mapping({"child_name": "Sam", "target_behavior": "sharing"})
    with pytest.raises(ValueError):
        _request(storyMode="epic")


def test_request_loads_from_yaml(tmp_path):
    path = tmp_path / "request.yaml"
    path.write_text(
        "child_name: Noa\ntarget_behavior: brushing teeth\nvisual_description: short black hair\n"
        "story_mode: dynamic\nimage_model: google/nano-banana-pro\n",
        encoding="utf-8",
    )

    request = StoryRequest.from_file(path)

    assert request.story_mode == "dynamic"
    assert request.image_model == "google/nano-banana-pro"


def test_standard_prompt_embeds_description_and_style():
    prompt = build_story_prompt(_request(artStyle="watercolor"))

    assert "child named Sam" in prompt.user
    assert "6-year-old" in prompt.user
    assert "red boots and a yellow raincoat" in prompt.user
    assert "art style: watercolor" in prompt.user
    assert '"grid"' not in prompt.user
    assert "valid JSON" in prompt.system


def test_dynamic_prompt_offers_grid_layout():
    prompt = build_story_prompt(_request(storyMode="dynamic"))

    assert '"layout": "grid"' in prompt.user
    assert '"panels"' in prompt.user


def test_generate_pages_parses_completion_and_logs_prompt(tmp_path):
    completion = FakeCompletion(f"Here is the story:\n{STORY_JSON}")
    sink = DebugLogSink(tmp_path)
    generator = SocialNarrativeGenerator(
        api_key="test-key",
        model="openai/gpt-4o-mini",
        completion_fn=completion,
        debug_log=sink,
    )

    pages = asyncio.run(generator.generate_pages(_request(), run_id="run-1"))

    assert [page.text for page in pages] == ["I go to school."]
    call = completion.calls[0]
    assert call["model"] == "openai/gpt-4o-mini"
    assert call["api_key"] == "test-key"
    assert [message["role"] for message in call["messages"]] == ["system", "user"]
    log = (tmp_path / "run-1" / PROMPTS_FILENAME).read_text(encoding="utf-8")
    assert "[STORY_GENERATION]" in log
    assert "Model: openai/gpt-4o-mini" in log


def test_request_model_overrides_generator_default():
    completion = FakeCompletion(STORY_JSON)
    generator = SocialNarrativeGenerator(api_key="k", model="default/model", completion_fn=completion)

    asyncio.run(generator.generate_pages(_request(storyModel="other/model")))

    assert completion.calls[0]["model"] == "other/model"


def test_missing_api_key_is_fatal(monkeypatch):
    for name in ("SOCIALLY_STORY_API_KEY", "REPLICATE_API_TOKEN", "LITELLM_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    generator = SocialNarrativeGenerator()

    with pytest.raises(MissingCredentialsError):
        asyncio.run(generator.generate_pages(_request()))


def test_completion_failure_is_fatal():
    async def failing_completion(**kwargs):
        raise ConnectionError("provider unreachable")

    generator = SocialNarrativeGenerator(api_key="k", completion_fn=failing_completion)

    with pytest.raises(FatalError) as excinfo:
        asyncio.run(generator.generate_pages(_request()))
    assert "provider unreachable" in str(excinfo.value)


def test_empty_or_unparseable_text_is_a_parse_error():
    for text in ("", "No JSON here, sorry."):
        generator = SocialNarrativeGenerator(api_key="k", completion_fn=FakeCompletion(text))
        with pytest.raises(StoryParseError):
            asyncio.run(generator.generate_pages(_request()))


def test_chat_completion_flattens_content_parts(monkeypatch):
    captured = {}

    async def fake_acompletion(**kwargs):
        captured.update(kwargs)
        return {
            "choices": [
                {
                    "message": {"content": [{"type": "text", "text": "[{\"text\": "}, {"type": "text", "text": "\"A\"}]"}]},
                    "finish_reason": "stop",
                }
            ],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5},
        }

    monkeypatch.setattr(llm, "acompletion", fake_acompletion)

    result = asyncio.run(
        llm.call_chat_completion(model="m", messages=[{"role": "user", "content": "hi"}], temperature=None)
    )

    assert result.text == '[{"text": "A"}]'
    assert result.finish_reason == "stop"
    assert "temperature" not in captured
    assert captured["timeout"] == llm.DEFAULT_TIMEOUT_SECONDS


def test_chat_completion_without_choices_is_an_error(monkeypatch):
    async def fake_acompletion(**kwargs):
        return {"choices": []}

    monkeypatch.setattr(llm, "acompletion", fake_acompletion)

    with pytest.raises(ValueError):
        asyncio.run(llm.call_chat_completion(model="m", messages=[]))
