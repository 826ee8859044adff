"""
Render a saved Socially story package into a printable PDF.

Usage:
    python scripts/render_story_pdf.py social_story.yaml
    python scripts/render_story_pdf.py social_story.yaml -o out/story.pdf --page-size square

Without ``--output`` the PDF is written next to the package with a ``.pdf`` suffix.
Pass ``--debug-snapshot`` to also store the document in the run's debug log directory.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from socially import StoryPackage, StorybookPDFBuilder  # noqa: E402
from socially.ai_generation import PLACEHOLDER_IMAGE_URL  # noqa: E402
from socially.common import DebugLogSink  # noqa: E402
from socially.pdf_generation import PAGE_SIZES  # noqa: E402
from socially.pipeline import collect_image_slots  # noqa: E402
from socially.pipeline.slots import current_image  # noqa: E402


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render a Socially story package as a PDF.")
    parser.add_argument("package", type=Path, help="Story package YAML written by run_full_pipeline.py.")
    parser.add_argument("-o", "--output", type=Path, default=None, help="PDF path (default: <package>.pdf).")
    parser.add_argument(
        "--page-size",
        choices=sorted(PAGE_SIZES),
        default="a4-landscape",
        help="Page format (default: a4-landscape).",
    )
    parser.add_argument("--margin-mm", type=float, default=14.0, help="Page margin in millimetres.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Seconds to wait for each remote illustration download.",
    )
    parser.add_argument(
        "--debug-snapshot",
        action="store_true",
        help="Also save the PDF as story.pdf under the package's debug log run directory.",
    )
    return parser.parse_args(argv)


def count_missing_illustrations(package: StoryPackage) -> int:
    missing = 0
    for slot in collect_image_slots(package.pages):
        if current_image(package.pages, slot) in (None, PLACEHOLDER_IMAGE_URL):
            missing += 1
    return missing


def main(argv: list[str]) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)

    try:
        package = StoryPackage.from_yaml(args.package)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Could not read story package {args.package}: {exc}")
        return 1

    missing = count_missing_illustrations(package)
    if missing:
        print(f"Note: {missing} illustration(s) are missing or failed and will render as empty frames.")

    builder = StorybookPDFBuilder(
        page_size=PAGE_SIZES[args.page_size],
        margin_mm=args.margin_mm,
        request_timeout=args.timeout,
    )
    output_path = args.output or args.package.with_suffix(".pdf")
    pdf_bytes = builder.build_bytes(package)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(pdf_bytes)
    print(f"Rendered {len(package.pages)} pages to {output_path}")

    if args.debug_snapshot:
        snapshot = DebugLogSink().save_document(package.run_id, pdf_bytes)
        if snapshot is not None:
            print(f"Saved debug snapshot to {snapshot}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
