import logging
import re
from bisect import bisect_right
from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO
from typing import Callable, List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from app.core.config import settings
from app.core.decorator import export_exception
from app.schemas.test_paper import NormalizedDocument, TestContentRequest

logger = logging.getLogger(__name__)

# A4 portrait, the only output page size
A4_WIDTH_MM = 210.0
A4_HEIGHT_MM = 297.0

# Staging surface: 210mm at 96 CSS px per inch, before oversampling
STAGING_WIDTH_PX = round(A4_WIDTH_MM / 25.4 * 96)
STAGING_PADDING_PX = 20
LINE_SPACING = 1.5

TEXT_PRIMARY = "#1F2937"
TEXT_SECONDARY = "#6B7280"
RULE_COLOR = "#2563EB"

IDENTITY_FIELDS = "Name: ______________________________      Roll No: ______________"


@dataclass(frozen=True)
class RenderSettings:
    # Output is always A4; submitted page dimensions only reach the AI prompt
    font_size: float = 12

    @classmethod
    def from_request(cls, request: TestContentRequest) -> "RenderSettings":
        return cls(font_size=request.font_size)


@dataclass(frozen=True)
class PageSlice:
    index: int
    # vertical position of the raster's top edge relative to the page top, in mm
    offset: float
    visible_height: float


@dataclass
class RenderedPaper:
    filename: str
    content: bytes
    page_count: int

    media_type: str = "application/pdf"


# -------------------------
# File naming
# -------------------------
def build_pdf_filename(title: str) -> str:
    stem = re.sub(r"\s+", "_", title.strip())
    return f"{stem or 'test_paper'}.pdf"


# -------------------------
# Fonts
# -------------------------
@lru_cache(maxsize=64)
def load_font(size: int, bold: bool = False) -> ImageFont.ImageFont:
    path = settings.pdf_bold_font_path if bold else settings.pdf_font_path
    if path:
        try:
            return ImageFont.truetype(path, size)
        except OSError as e:
            logger.warning(f"Could not load font {path}: {str(e)}; using default font")
    return ImageFont.load_default(size=size)


def wrap_text(
    text: str,
    font: ImageFont.ImageFont,
    max_width: float,
    measure: Callable[[str, ImageFont.ImageFont], float],
) -> List[str]:
    """Greedy word wrap; words wider than a line are broken by character."""
    lines = []
    for paragraph in text.splitlines() or [""]:
        words = paragraph.split()
        if not words:
            lines.append("")
            continue

        current = ""
        for word in words:
            candidate = f"{current} {word}" if current else word
            if measure(candidate, font) <= max_width:
                current = candidate
                continue

            if current:
                lines.append(current)
            while len(word) > 1 and measure(word, font) > max_width:
                # prefix widths grow with length, so bisect for the longest one that fits
                fitting = bisect_right(
                    range(1, len(word)),
                    max_width,
                    key=lambda length: measure(word[:length], font),
                )
                cut = max(1, fitting)
                lines.append(word[:cut])
                word = word[cut:]
            current = word
        lines.append(current)
    return lines


# -------------------------
# Canvas composition
# -------------------------
class _CanvasComposer:
    """
    Lays the document out top to bottom as a list of draw operations.

    Layout runs against a throwaway 1x1 surface so the final height is known
    before the real staging image is allocated.
    """

    def __init__(self, font_size: float, scale: int):
        self.scale = scale
        self.width = STAGING_WIDTH_PX * scale
        self.padding = STAGING_PADDING_PX * scale
        self.content_width = self.width - 2 * self.padding
        self.y = float(self.padding)
        self.ops: List[Tuple] = []

        base = max(1, round(font_size * scale))
        self.body_font = load_font(base)
        self.section_font = load_font(max(1, round(font_size * 1.25 * scale)), bold=True)
        self.title_font = load_font(max(1, round(font_size * 1.75 * scale)), bold=True)
        self.base_size = base

        self._scratch = Image.new("RGB", (1, 1), "white")
        self._measure_draw = ImageDraw.Draw(self._scratch)

    def close(self):
        self._scratch.close()

    def measure(self, text: str, font: ImageFont.ImageFont) -> float:
        return self._measure_draw.textlength(text, font=font)

    def _line_height(self, font: ImageFont.ImageFont) -> float:
        size = getattr(font, "size", self.base_size)
        return size * LINE_SPACING

    def space(self, amount: float):
        self.y += amount * self.scale

    def paragraph(self, text, font, color=TEXT_PRIMARY, indent=0.0, align="left"):
        height = self._line_height(font)
        for line in wrap_text(text, font, self.content_width - indent, self.measure):
            x = self.padding + indent
            if align == "center":
                x = (self.width - self.measure(line, font)) / 2
            self.ops.append(("text", x, self.y, line, font, color))
            self.y += height

    def numbered(self, number: int, text: str, font, color=TEXT_PRIMARY):
        prefix = f"{number}. "
        prefix_width = self.measure(prefix, font)
        self.ops.append(("text", self.padding, self.y, prefix, font, color))
        self.paragraph(text, font, color=color, indent=prefix_width)

    def rule(self, thickness: float = 2):
        self.space(6)
        self.ops.append(
            ("line", self.padding, self.y, self.width - self.padding, thickness * self.scale)
        )
        self.space(6 + thickness)

    def compose(self, doc: NormalizedDocument, include_answers: bool = False):
        # Title block
        self.paragraph(doc.title, self.title_font, align="center")
        if doc.instructions.strip():
            self.space(4)
            self.paragraph(doc.instructions, self.body_font, color=TEXT_SECONDARY)

        # Identity fields + rule
        self.space(12)
        self.paragraph(IDENTITY_FIELDS, self.body_font)
        self.rule()

        for section in doc.sections:
            self.space(10)
            self.paragraph(section.title, self.section_font)
            self.space(4)
            for question in section.questions:
                self.numbered(question.number, question.text, self.body_font)
                self.space(6)

        if include_answers and doc.has_answers:
            self.space(12)
            self.rule(thickness=1)
            self.paragraph("Answer Key", self.section_font, align="center")
            for section in doc.sections:
                answered = [q for q in section.questions if q.answer]
                if not answered:
                    continue
                self.space(8)
                self.paragraph(section.title, self.section_font)
                for question in answered:
                    self.numbered(question.number, question.answer, self.body_font)

        self.y += self.padding
        return self.ops, max(1, int(round(self.y)))


def rasterize_document(
    doc: NormalizedDocument,
    font_size: float,
    scale: Optional[int] = None,
    include_answers: bool = False,
) -> Image.Image:
    """Draw the whole document onto one tall RGB image. Caller closes it."""
    scale = scale or settings.pdf_oversampling_scale
    composer = _CanvasComposer(font_size, scale)
    try:
        ops, height = composer.compose(doc, include_answers=include_answers)
    finally:
        composer.close()

    image = Image.new("RGB", (composer.width, height), "white")
    try:
        draw = ImageDraw.Draw(image)
        for op in ops:
            if op[0] == "text":
                _, x, y, text, font, color = op
                draw.text((x, y), text, font=font, fill=color)
            else:
                _, x1, y, x2, thickness = op
                draw.line([(x1, y), (x2, y)], fill=RULE_COLOR, width=max(1, round(thickness)))
    except Exception:
        image.close()
        raise
    return image


# -------------------------
# Pagination
# -------------------------
def page_height_for(
    raster_width: int, raster_height: int, page_width: float = A4_WIDTH_MM
) -> float:
    """Height in mm of the raster once scaled to the page width."""
    return page_width / (raster_width / raster_height)


def paginate(img_height: float, page_height: float = A4_HEIGHT_MM) -> List[PageSlice]:
    """
    Cut one tall image into page-height bands.

    Page ``i`` shows the same image shifted up by ``i * page_height``; the
    visible bands add up to ``img_height``. There is always a first page.
    """
    if page_height <= 0:
        raise ValueError("page_height must be positive")

    pages = [PageSlice(index=0, offset=0.0, visible_height=max(0.0, min(img_height, page_height)))]
    remaining = img_height - page_height
    while remaining > 0:
        index = len(pages)
        pages.append(
            PageSlice(
                index=index,
                offset=-page_height * index,
                visible_height=min(remaining, page_height),
            )
        )
        remaining -= page_height
    return pages


# -------------------------
# PDF assembly
# -------------------------
@export_exception
def render_document(
    doc: NormalizedDocument,
    layout: Optional[RenderSettings] = None,
    include_answers: bool = False,
) -> RenderedPaper:
    layout = layout or RenderSettings()
    raster = None
    buffer = BytesIO()
    try:
        raster = rasterize_document(
            doc, layout.font_size, include_answers=include_answers
        )
        img_height = page_height_for(raster.width, raster.height)
        pages = paginate(img_height)

        page_width_pt, page_height_pt = A4
        drawn_height_pt = img_height * mm
        image = ImageReader(raster)

        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle(doc.title)
        for page in pages:
            if page.index:
                pdf.showPage()
            pdf.drawImage(
                image,
                0,
                page_height_pt - page.offset * mm - drawn_height_pt,
                width=page_width_pt,
                height=drawn_height_pt,
            )
        pdf.save()
        content = buffer.getvalue()
    finally:
        if raster is not None:
            raster.close()
        buffer.close()

    logger.info(
        f"Rendered '{doc.title}': {len(pages)} page(s), "
        f"{img_height:.1f}mm tall, {len(content)} bytes"
    )
    return RenderedPaper(
        filename=build_pdf_filename(doc.title),
        content=content,
        page_count=len(pages),
    )
