"""
Prompt construction utilities for the social narrative text generation step.
"""

from __future__ import annotations

from dataclasses import dataclass

from .profile import StoryRequest

SYSTEM_PROMPT = (
    "You are an expert in writing Social Narratives for children with autism. "
    "You strictly follow the sentence ratio and positive, first-person phrasing rules. "
    "You always output valid JSON."
)

NARRATIVE_GUIDELINES = """STRICT GUIDELINES (Social Narrative format):

1. **Perspective**: Write in the **FIRST PERSON** ("I", "My"). NEVER use "You".

2. **Sentence Types & Ratio (CRITICAL)**:
   - You must use a ratio of **2 to 5 Descriptive/Perspective sentences** for every **1 Directive sentence**.
   - **Descriptive**: Factual statements (who, what, where, why). "My school has a playground."
   - **Perspective**: Describes thoughts/feelings of others. "My teacher likes it when I listen."
   - **Affirmative**: Expresses a shared value. "This is okay." "It is important to stay safe."
   - **Directive**: Gentle guidance on behavior. "I can try to..." "I will work on..."

3. **Tone & Phrasing**:
   - **POSITIVE**: Define what to do, not what NOT to do.
   - **GENTLE**: Use "I can", "I will try", "One thing I can do is".
   - **AVOID**: "I must", "I should", "I have to", "Always", "Never".
   - **LITERAL**: Avoid metaphors or idioms (e.g., "piece of cake"). Be concrete.

4. **Structure**:
   - **Title**: Clear and descriptive.
   - **Introduction**: Set the scene with Descriptive sentences.
   - **Body**: Explain the perspective of others and *why* things happen.
   - **Conclusion**: Gentle Directive and Affirmative sentences.

Format the output as a JSON array of objects."""


@dataclass(frozen=True)
class StoryPrompt:
    """
    Container for the system and user prompts passed to the text model.
    """

    system: str
    user: str

    def as_log_record(self, model: str) -> str:
        return f"Model: {model}\n\nSystem Prompt: {self.system}\n\nUser Prompt:\n{self.user}"


def _standard_layout_instructions(request: StoryRequest) -> str:
    return f"""Each object represents a page with a "text" field and a "image_prompt" field.
Add a field "include_main_character" (boolean). Set to false for POV shots or when focusing on other characters.

The "image_prompt" should be a detailed description of the scene for an image generator, using the art style: {request.art_style}.

IMPORTANT:
- If "include_main_character" is true, the image_prompt MUST include: "{request.visual_description}".
- If "include_main_character" is false, DO NOT include the character description.

Example format:
[
  {{
    "text": "Once upon a time...",
    "include_main_character": true,
    "image_prompt": "A {request.art_style} illustration of a child with {request.visual_description} playing with toys..."
  }}
]

Return ONLY the JSON array. Do not include markdown formatting or extra text."""


def _dynamic_layout_instructions(request: StoryRequest) -> str:
    return f"""For each page, choose a layout: "standard" (one image) or "grid" (multiple images).
- Use "standard" for general story scenes.
- Use "grid" when listing options, examples, steps, or feelings (e.g., "I can do X, Y, or Z").

Structure for "standard" page:
{{
  "text": "Page text...",
  "layout": "standard",
  "include_main_character": true,
  "image_prompt": "Description of the scene..."
}}
Set "include_main_character" to false for POV shots or when focusing on other characters.

Structure for "grid" page:
{{
  "text": "Page text...",
  "layout": "grid",
  "panels": [
    {{
      "caption": "Short caption 1",
      "include_main_character": true,
      "image_prompt": "Description for panel 1..."
    }},
    {{
      "caption": "Short caption 2",
      "include_main_character": false,
      "image_prompt": "Description for panel 2..."
    }}
  ]
}}

IMPORTANT:
- If "include_main_character" is true, the image_prompt MUST include: "{request.visual_description}".
- If "include_main_character" is false, DO NOT include the character description. Describe the scene/others.
- Every image prompt MUST specify the art style: {request.art_style}.

Return ONLY the JSON array."""


def build_story_prompt(request: StoryRequest) -> StoryPrompt:
    """
    Build the prompt pair used to solicit a paged social narrative from the text model.
    """
    age_text = f"{request.age}-year-old " if request.age is not None else ""
    header_lines = [
        f"Write a Social Narrative for a {age_text}child named {request.child_name}.",
        f"Target Situation: {request.target_behavior}",
        f"Interests: {request.interests_text or 'not specified'}",
    ]
    if request.gender:
        header_lines.append(f"Gender/pronouns: {request.gender}")

    if request.story_mode == "dynamic":
        layout_instructions = _dynamic_layout_instructions(request)
    else:
        layout_instructions = _standard_layout_instructions(request)

    user_prompt = "\n".join(header_lines) + "\n\n" + NARRATIVE_GUIDELINES + "\n\n" + layout_instructions
    return StoryPrompt(system=SYSTEM_PROMPT, user=user_prompt)
