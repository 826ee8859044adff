"""
CLI example to run the complete Socially pipeline end-to-end.

Usage:
    python scripts/run_full_pipeline.py \
        --request story_request.yaml \
        --output social_story.yaml \
        --pdf social_story.pdf

Press Ctrl+C while images are generating to cancel the run cleanly.

Environment variables:
    REPLICATE_API_TOKEN     - required for image generation (and the default text model)
    SOCIALLY_STORY_MODEL    - optional LiteLLM text model override
    SOCIALLY_IMAGE_MODEL    - optional Replicate image model override
    SOCIALLY_DEBUG_LOG_DIR  - where per-run debug logs are written (default: debug_logs)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict

from tqdm.auto import tqdm

# Ensure project root is on the Python path when running as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from socially import SociallyOrchestrator, StorybookPDFBuilder, StoryRequest  # noqa: E402
from socially.common import (  # noqa: E402
    DebugLogSink,
    FatalError,
    GenerationCancelled,
    MissingCredentialsError,
)


class ProgressTracker:
    """
    Provides user-friendly command-line progress updates for the Socially pipeline.
    """

    def __init__(self) -> None:
        self._image_bar: tqdm | None = None

    def __call__(self, stage: str, payload: Dict[str, Any]) -> None:
        match stage:
            case "story:generating":
                self._write(f"[1/3] Writing your story (run {payload.get('run_id')})...")
            case "story:generated":
                total_pages = payload.get("total_pages", 0)
                total_slots = payload.get("total_slots", 0)
                self._write(
                    f"[1/3] Story ready: {total_pages} pages, {total_slots} illustrations."
                )
                self._image_bar = tqdm(total=total_slots, desc="Illustrations", unit="image")
            case "illustration:anchor":
                self._write(f"[2/3] Creating the main character ({payload.get('label')})...")
            case "illustration:fan_out":
                self._write(
                    f"[2/3] Illustrating remaining scenes ({payload.get('total_slots', 0)} images)..."
                )
            case "illustration:slot_done":
                if self._image_bar is not None:
                    self._image_bar.set_description(str(payload.get("label", "Illustrations")))
                    self._image_bar.update(1)
            case "illustration:cancelled":
                self._write("Generation cancelled.")
                self.close()
            case "pipeline:complete":
                self._write("[3/3] Pipeline complete.")
                self.close()

    def close(self) -> None:
        if self._image_bar is not None:
            self._image_bar.close()
            self._image_bar = None

    @staticmethod
    def _write(message: str) -> None:
        tqdm.write(message)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the full Socially generation pipeline.")
    parser.add_argument(
        "--request",
        default=None,
        help="Path to a story request YAML/JSON file. Individual flags override its values.",
    )
    parser.add_argument("--child-name", default=None, help="Child's name.")
    parser.add_argument("--age", default=None, help="Child's age in years.")
    parser.add_argument("--target-behavior", default=None, help="Target situation or routine.")
    parser.add_argument("--gender", default=None, help="Gender or pronouns used in the story text.")
    parser.add_argument("--interests", default=None, help="Comma-separated interests.")
    parser.add_argument(
        "--visual-description",
        default=None,
        help="Main character appearance used for character consistency.",
    )
    parser.add_argument("--art-style", default=None, help="Art style (default: cartoon).")
    parser.add_argument(
        "--story-mode",
        choices=("standard", "dynamic"),
        default=None,
        help="standard: one image per page; dynamic: allow multi-panel grid pages.",
    )
    parser.add_argument("--story-model", default=None, help="LiteLLM text model override.")
    parser.add_argument("--image-model", default=None, help="Replicate image model override.")
    parser.add_argument(
        "--output",
        default="social_story.yaml",
        help="Output YAML file to store the story and illustration references.",
    )
    parser.add_argument("--pdf", default=None, help="Optional PDF output path.")
    parser.add_argument(
        "--debug-log-dir",
        default=None,
        help="Directory for per-run debug logs (default: $SOCIALLY_DEBUG_LOG_DIR or debug_logs).",
    )
    parser.add_argument(
        "--no-debug-log",
        action="store_true",
        help="Disable the per-run prompt log and PDF snapshot.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def build_request(args: argparse.Namespace) -> StoryRequest:
    data: Dict[str, Any] = {}
    if args.request:
        data.update(StoryRequest.from_file(args.request).to_dict())

    overrides = {
        "child_name": args.child_name,
        "age": args.age,
        "target_behavior": args.target_behavior,
        "gender": args.gender,
        "interests": args.interests,
        "visual_description": args.visual_description,
        "art_style": args.art_style,
        "story_mode": args.story_mode,
        "story_model": args.story_model,
        "image_model": args.image_model,
    }
    data.update({key: value for key, value in overrides.items() if value is not None})
    return StoryRequest.from_mapping(data)


async def run_pipeline(args: argparse.Namespace, request: StoryRequest) -> int:
    debug_log = None if args.no_debug_log else DebugLogSink(args.debug_log_dir)
    pdf_builder = StorybookPDFBuilder()
    try:
        orchestrator = SociallyOrchestrator(
            debug_log=debug_log,
            snapshot_renderer=pdf_builder.build_bytes,
        )
    except MissingCredentialsError as exc:
        print(f"Configuration error: {exc}")
        return 1
    tracker = ProgressTracker()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
    except NotImplementedError:
        pass

    try:
        package = await orchestrator.run(request, progress_callback=tracker)
    except GenerationCancelled:
        return 130
    except FatalError as exc:
        tqdm.write(f"Something went wrong while creating the story: {exc}")
        return 1
    finally:
        tracker.close()

    output_path = Path(args.output)
    output_path.write_text(package.to_yaml(), encoding="utf-8")
    print(f"Saved story package to {output_path}")

    if args.pdf:
        pdf_builder.build(package, args.pdf)
        print(f"Rendered story PDF to {args.pdf}")
    return 0


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    request = build_request(args)
    return asyncio.run(run_pipeline(args, request))


if __name__ == "__main__":
    raise SystemExit(main())
