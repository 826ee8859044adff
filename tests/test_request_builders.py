from socially.ai_generation import adapt, uses_reference_rewriting
from socially.ai_generation.prompting import STYLE_ONLY_NEGATIVE_PROMPT, STYLE_ONLY_PROMPT_STRENGTH
from socially.ai_generation.request_builders import normalize_model_identifier, supported_models

VISUAL = "blonde curly hair and red glasses"
PROMPT = f"A watercolor illustration of a child with {VISUAL} playing with blocks on the rug"
ANCHOR = "https://img.test/anchor.webp"


def _all_text(payload: dict) -> str:
    return " ".join(str(value) for value in payload.values())


def test_flux_schnell_payload_has_output_flags_and_no_reference():
    request = adapt("black-forest-labs/flux-schnell", PROMPT, reference_image=ANCHOR)

    assert request.input == {
        "prompt": PROMPT,
        "aspect_ratio": "16:9",
        "output_format": "webp",
        "output_quality": 80,
    }


def test_nano_banana_puts_reference_in_image_input():
    request = adapt("google/nano-banana", PROMPT, reference_image=ANCHOR, visual_description=VISUAL)

    assert request.input["image_input"] == [ANCHOR]
    assert "aspect_ratio" not in request.input
    assert "output_format" not in request.input
    assert request.reference_image == ANCHOR


def test_nano_banana_pro_puts_reference_in_image_urls():
    request = adapt("google/nano-banana-pro", PROMPT, reference_image=ANCHOR)

    assert request.input["image_urls"] == [ANCHOR]
    assert "image_input" not in request.input


def test_flux_2_dev_uses_input_images_without_prompt_strength():
    request = adapt("black-forest-labs/flux-2-dev", PROMPT, reference_image=ANCHOR)

    assert request.input["input_images"] == [ANCHOR]
    assert request.input["aspect_ratio"] == "16:9"
    assert "prompt_strength" not in request.input
    assert request.prompt == PROMPT


def test_version_suffix_and_case_are_ignored_for_builder_lookup():
    request = adapt("Google/Nano-Banana:0123abcd", PROMPT, reference_image=ANCHOR)

    assert request.input["image_input"] == [ANCHOR]
    assert request.model_id == "Google/Nano-Banana:0123abcd"
    assert normalize_model_identifier(" Google/Nano-Banana:0123abcd ") == "google/nano-banana"


def test_unknown_model_falls_back_to_flux_schnell_payload():
    request = adapt("someone/new-model", PROMPT, reference_image=ANCHOR)

    assert request.input["output_quality"] == 80
    assert request.prompt == PROMPT


def test_reference_family_membership():
    assert uses_reference_rewriting("google/nano-banana")
    assert uses_reference_rewriting("google/nano-banana-pro")
    assert not uses_reference_rewriting("black-forest-labs/flux-2-dev")
    assert "google/nano-banana" in supported_models()


def test_reference_family_without_reference_keeps_prompt():
    request = adapt("google/nano-banana", PROMPT, visual_description=VISUAL)

    assert request.prompt == PROMPT
    assert "image_input" not in request.input
    assert request.reference_image is None


def test_reference_family_rewrites_to_same_character_instruction():
    request = adapt("google/nano-banana", PROMPT, reference_image=ANCHOR, visual_description=VISUAL)

    assert request.prompt == (
        "A watercolor picture in the same style as this, with the same character "
        "playing with blocks on the rug"
    )
    assert VISUAL not in request.prompt


def test_excluded_character_gets_style_only_prompt_and_negative_prompt():
    prompt = f"A watercolor illustration of classmates and a child with {VISUAL} at the lunch table"
    request = adapt(
        "google/nano-banana",
        prompt,
        reference_image=ANCHOR,
        visual_description=VISUAL,
        include_main_character=False,
    )

    assert "DIFFERENT characters" in request.prompt
    assert "watercolor art style" in request.prompt
    assert request.input["negative_prompt"] == STYLE_ONLY_NEGATIVE_PROMPT
    assert request.input["prompt_strength"] == STYLE_ONLY_PROMPT_STRENGTH
    assert VISUAL not in _all_text(request.input).lower()
    assert not request.include_main_character


def test_excluded_character_without_reference_still_scrubs_description():
    prompt = f"A cartoon illustration of a teacher talking to a child with {VISUAL}"
    request = adapt(
        "google/nano-banana",
        prompt,
        visual_description=VISUAL,
        include_main_character=False,
    )

    assert VISUAL not in request.prompt.lower()
    assert "negative_prompt" not in request.input


def test_debug_record_mentions_model_and_flags():
    request = adapt("google/nano-banana", PROMPT, reference_image=ANCHOR, visual_description=VISUAL)

    record = request.debug_record()

    assert "Model: google/nano-banana" in record
    assert "Reference Image Used: True" in record
    assert "Include Main Character: True" in record
    assert record.endswith(request.prompt)


def test_excluded_character_never_reassembles_the_description():
    prompt = "A cartoon illustration of a red red hat hat in the park"

    for reference in (None, ANCHOR):
        request = adapt(
            "google/nano-banana",
            prompt,
            reference_image=reference,
            visual_description="red hat",
            include_main_character=False,
        )

        assert "red hat" not in request.prompt.lower()
        assert "red hat" not in _all_text(request.input).lower()
        assert "in the park" in request.prompt
