"""
Regenerate a single illustration of a saved story package.

The slot's current image is used as the reference, so the new prompt edits on
top of what is already rendered.

Usage:
    python scripts/regenerate_image.py \
        --package social_story.yaml \
        --page 3 --panel 2 \
        --prompt "edit this image so that the child is smiling"

Pages and panels are numbered from 1. Omit --panel for standard pages.

Environment variables:
    REPLICATE_API_TOKEN  - required unless you pass --api-token
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from socially import SociallyOrchestrator, StoryIllustrator, StoryPackage  # noqa: E402
from socially.ai_generation import ReplicateImageGenerator  # noqa: E402
from socially.common import DebugLogSink, MissingCredentialsError, RegenerationFailed  # noqa: E402


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Regenerate one illustration of a Socially story package via Replicate."
    )
    parser.add_argument("--package", required=True, help="Story package YAML to update.")
    parser.add_argument("--page", type=int, required=True, help="Page number (1-based).")
    parser.add_argument(
        "--panel",
        type=int,
        default=None,
        help="Panel number (1-based) for grid pages.",
    )
    parser.add_argument("--prompt", required=True, help="New prompt for the illustration.")
    parser.add_argument(
        "--output",
        default=None,
        help="Where to write the updated package (default: overwrite --package).",
    )
    parser.add_argument(
        "--api-token",
        default=None,
        help="Optional Replicate API token override (otherwise uses environment variable).",
    )
    return parser.parse_args(argv)


async def regenerate(args: argparse.Namespace, package: StoryPackage) -> str:
    illustrator = StoryIllustrator(
        image_generator=ReplicateImageGenerator(api_token=args.api_token),
        debug_log=DebugLogSink(),
    )
    orchestrator = SociallyOrchestrator(illustrator=illustrator)
    panel_index = args.panel - 1 if args.panel is not None else None
    return await orchestrator.regenerate_image(
        package,
        args.page - 1,
        panel_index,
        prompt=args.prompt,
    )


def main(argv: list[str]) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    package = StoryPackage.from_yaml(args.package)

    print("Regenerating illustration with the following parameters:")
    print(f"  Page   : {args.page}")
    print(f"  Panel  : {args.panel if args.panel is not None else '-'}")
    print(f"  Prompt : {args.prompt}")
    print(f"  Model  : {package.image_model}")

    try:
        image_url = asyncio.run(regenerate(args, package))
    except (RegenerationFailed, MissingCredentialsError, IndexError) as exc:
        print(f"Failed to regenerate image: {exc}")
        return 1

    output_path = Path(args.output or args.package)
    output_path.write_text(package.to_yaml(), encoding="utf-8")
    print(f"\nNew image: {image_url[:80]}{'...' if len(image_url) > 80 else ''}")
    print(f"Saved updated package to {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
