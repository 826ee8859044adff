"""
High-level utilities for rendering Socially story packages into printable PDFs.
"""

from __future__ import annotations

import base64
import binascii
import logging
import math
import os
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Optional, Sequence

import requests
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, LETTER, landscape
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch, mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas
from reportlab.platypus import Frame, Paragraph

from socially.pipeline.pipeline import StoryPackage
from socially.story_generation import StoryPage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageLayoutConfig:
    page_background: colors.Color
    image_background: colors.Color
    cover_background: colors.Color
    accent_color: colors.Color
    text_color: colors.Color
    caption_color: colors.Color


DEFAULT_LAYOUT = PageLayoutConfig(
    page_background=colors.HexColor("#FAFAFA"),
    image_background=colors.HexColor("#E4E4E7"),
    cover_background=colors.HexColor("#18181B"),
    accent_color=colors.HexColor("#6366F1"),
    text_color=colors.HexColor("#18181B"),
    caption_color=colors.HexColor("#52525B"),
)


PAGE_SIZES = {
    "a4-landscape": landscape(A4),
    "letter-landscape": landscape(LETTER),
    "square": (8 * inch, 8 * inch),
}

# Share of the usable page height given to illustrations.
IMAGE_AREA_RATIO = 0.66


class StorybookPDFBuilder:
    """
    Render Socially story packages into printable PDFs.

    The builder creates a cover page followed by one page per story page:
    ``standard`` pages show a single illustration above the text, ``grid``
    pages show their panels in a captioned grid above the text.
    """

    def __init__(
        self,
        *,
        page_size: tuple[float, float] = PAGE_SIZES["a4-landscape"],
        margin_mm: float = 14.0,
        layout: PageLayoutConfig = DEFAULT_LAYOUT,
        request_timeout: float = 30.0,
    ) -> None:
        self.page_size = page_size
        self.margin = margin_mm * mm
        self.layout = layout
        self.request_timeout = request_timeout
        self._image_cache: dict[str, Optional[ImageReader]] = {}

        self.body_font, self.body_bold_font = register_story_fonts()

        self.title_style = ParagraphStyle(
            name="StoryTitle",
            fontName="Helvetica-Bold",
            fontSize=30,
            leading=36,
            alignment=TA_CENTER,
            textColor=colors.white,
            spaceAfter=14,
        )
        self.subtitle_style = ParagraphStyle(
            name="StorySubtitle",
            fontName="Helvetica",
            fontSize=16,
            leading=20,
            alignment=TA_CENTER,
            textColor=colors.white,
            spaceAfter=12,
        )
        self.body_style = ParagraphStyle(
            name="Body",
            fontName=self.body_font,
            fontSize=20,
            leading=28,
            alignment=TA_CENTER,
            textColor=self.layout.text_color,
        )
        self.caption_style = ParagraphStyle(
            name="PanelCaption",
            fontName=self.body_bold_font,
            fontSize=12,
            leading=15,
            alignment=TA_CENTER,
            textColor=self.layout.caption_color,
        )
        self.footer_style = ParagraphStyle(
            name="Footer",
            fontName="Helvetica-Oblique",
            fontSize=10,
            leading=12,
            alignment=TA_CENTER,
            textColor=self.layout.caption_color,
        )

    def build_from_yaml(self, package_path: Path | str, output_path: Path | str) -> None:
        package = StoryPackage.from_yaml(package_path)
        self.build(package, output_path)

    def build(self, package: StoryPackage, output_path: Path | str) -> None:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with output_file.open("wb") as handle:
            self._render(package, handle)

    def build_bytes(self, package: StoryPackage) -> bytes:
        """Render ``package`` and return the PDF document as bytes."""
        buffer = BytesIO()
        self._render(package, buffer)
        return buffer.getvalue()

    def _render(self, package: StoryPackage, target: BinaryIO) -> None:
        pdf = canvas.Canvas(target, pagesize=self.page_size)
        pdf.setTitle(f"{package.request.child_name}'s Social Story")
        width, height = self.page_size

        self._draw_cover_page(pdf, package, width, height)

        for index, page in enumerate(package.pages, start=1):
            self._draw_story_page(pdf, package, page, index, width, height)

        pdf.save()

    # ------------------------------------------------------------------ cover rendering

    def _draw_cover_page(
        self,
        pdf: canvas.Canvas,
        package: StoryPackage,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.cover_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        request = package.request
        frame = Frame(
            self.margin,
            self.margin,
            width - 2 * self.margin,
            height - 2 * self.margin,
            showBoundary=0,
        )

        intro = [
            Paragraph(_escape(f"{request.child_name}'s Story"), self.title_style),
            Paragraph(_escape(request.target_behavior), self.subtitle_style),
        ]
        if request.interests:
            intro.append(
                Paragraph(_escape(f"Featuring: {request.interests_text}"), self.subtitle_style)
            )

        frame.addFromList(intro, pdf)
        pdf.showPage()

    # ------------------------------------------------------------------ story pages

    def _draw_story_page(
        self,
        pdf: canvas.Canvas,
        package: StoryPackage,
        page: StoryPage,
        page_number: int,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.page_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        usable_width = width - 2 * self.margin
        usable_height = height - 2 * self.margin - 24
        image_height = usable_height * IMAGE_AREA_RATIO
        image_top = height - self.margin
        image_bottom = image_top - image_height

        if page.is_grid:
            self._draw_panel_grid(pdf, page, self.margin, image_bottom, usable_width, image_height)
        else:
            self._draw_image_box(
                pdf, page.image_url, self.margin, image_bottom, usable_width, image_height
            )

        text_frame = Frame(
            self.margin,
            self.margin + 24,
            usable_width,
            image_bottom - self.margin - 24 - 8,
            showBoundary=0,
        )
        text_frame.addFromList([Paragraph(_escape(page.text), self.body_style)], pdf)

        footer_text = f"Page {page_number} • {package.request.child_name}'s Story"
        self._draw_footer(pdf, footer_text, width)
        pdf.showPage()

    def _draw_panel_grid(
        self,
        pdf: canvas.Canvas,
        page: StoryPage,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> None:
        count = len(page.panels)
        columns = min(count, 3)
        rows = math.ceil(count / columns)
        gutter = 8.0
        caption_height = 18.0
        cell_width = (width - gutter * (columns - 1)) / columns
        cell_height = (height - gutter * (rows - 1)) / rows

        for index, panel in enumerate(page.panels):
            row, column = divmod(index, columns)
            cell_x = x + column * (cell_width + gutter)
            cell_y = y + height - (row + 1) * cell_height - row * gutter
            has_caption = bool(panel.caption)
            image_y = cell_y + (caption_height if has_caption else 0)
            image_h = cell_height - (caption_height if has_caption else 0)
            self._draw_image_box(pdf, panel.image_url, cell_x, image_y, cell_width, image_h)
            if has_caption:
                caption_frame = Frame(
                    cell_x,
                    cell_y,
                    cell_width,
                    caption_height,
                    leftPadding=0,
                    rightPadding=0,
                    topPadding=2,
                    bottomPadding=0,
                    showBoundary=0,
                )
                caption_frame.addFromList(
                    [Paragraph(_escape(panel.caption or ""), self.caption_style)], pdf
                )

    def _draw_image_box(
        self,
        pdf: canvas.Canvas,
        image_url: str | None,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> None:
        pdf.saveState()
        pdf.setFillColor(self.layout.image_background)
        pdf.roundRect(x, y, width, height, 10, stroke=0, fill=1)
        pdf.restoreState()

        image_reader = self._fetch_image(image_url) if image_url else None
        if image_reader is None:
            return

        img_width, img_height = image_reader.getSize()
        scale = min(width / img_width, height / img_height)
        draw_width = img_width * scale
        draw_height = img_height * scale
        pdf.drawImage(
            image_reader,
            x + (width - draw_width) / 2,
            y + (height - draw_height) / 2,
            draw_width,
            draw_height,
            preserveAspectRatio=True,
            mask="auto",
        )

    # ------------------------------------------------------------------ helpers

    def _draw_footer(self, pdf: canvas.Canvas, text: str, width: float) -> None:
        footer_frame = Frame(
            self.margin,
            10,
            width - 2 * self.margin,
            20,
            showBoundary=0,
        )
        footer_frame.addFromList([Paragraph(_escape(text), self.footer_style)], pdf)

    def _fetch_image(self, url: str) -> Optional[ImageReader]:
        if url not in self._image_cache:
            self._image_cache[url] = self._load_image(url)
        return self._image_cache[url]

    def _load_image(self, url: str) -> Optional[ImageReader]:
        if url.startswith("data:"):
            _, _, encoded = url.partition(",")
            try:
                return ImageReader(BytesIO(base64.b64decode(encoded)))
            except (binascii.Error, OSError, ValueError):
                return None

        try:
            response = requests.get(url, timeout=self.request_timeout)
            response.raise_for_status()
            return ImageReader(BytesIO(response.content))
        except (requests.RequestException, OSError) as exc:
            logger.warning("Could not load illustration %s: %s", url[:80], exc)
            return None


@dataclass(frozen=True)
class FontFamily:
    """A regular/bold font pair and the file names it may be installed under."""

    regular: str
    bold: str
    regular_files: tuple[str, ...]
    bold_files: tuple[str, ...]


# Rounded, high-legibility faces first; Helvetica is the built-in fallback.
STORY_FONT_FAMILIES = (
    FontFamily("Nunito", "Nunito-Bold", ("Nunito-Regular.ttf", "Nunito.ttf"), ("Nunito-Bold.ttf",)),
    FontFamily("Lexend", "Lexend-Bold", ("Lexend-Regular.ttf",), ("Lexend-Bold.ttf",)),
    FontFamily(
        "ComicSansMS",
        "ComicSansMS-Bold",
        ("Comic Sans MS.ttf", "ComicSansMS.ttf"),
        ("Comic Sans MS Bold.ttf", "ComicSansMS-Bold.ttf"),
    ),
)
FALLBACK_FONTS = ("Helvetica", "Helvetica-Bold")


def font_search_roots() -> list[Path]:
    """Directories scanned for story fonts; ``SOCIALLY_FONT_DIR`` is searched first."""
    roots = [
        Path("/usr/share/fonts/truetype"),
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path.home() / ".fonts",
        Path("/Library/Fonts"),
        Path.home() / "Library" / "Fonts",
        Path("C:/Windows/Fonts"),
    ]
    custom = os.getenv("SOCIALLY_FONT_DIR")
    if custom:
        roots.insert(0, Path(custom))
    return roots


def _register(font_name: str, file_names: Sequence[str], roots: Sequence[Path]) -> bool:
    if font_name in pdfmetrics.getRegisteredFontNames():
        return True

    candidates = (root / name for root in roots for name in file_names)
    for font_path in candidates:
        if not font_path.is_file():
            continue
        try:
            pdfmetrics.registerFont(TTFont(font_name, str(font_path)))
        except TTFError:
            logger.debug("Skipping unreadable font file %s", font_path)
            continue
        return True
    return False


def register_story_fonts(roots: Sequence[Path] | None = None) -> tuple[str, str]:
    """Register the first complete family found and return its ``(regular, bold)`` names."""
    roots = list(roots) if roots is not None else font_search_roots()
    for family in STORY_FONT_FAMILIES:
        if _register(family.regular, family.regular_files, roots) and _register(
            family.bold, family.bold_files, roots
        ):
            return family.regular, family.bold
    return FALLBACK_FONTS


def _escape(text: str) -> str:
    """Escape reportlab paragraph markup and keep explicit line breaks."""
    escaped = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    return escaped.replace("\n", "<br/>")
