"""
Rasterizing and paginating test papers into A4 PDFs
"""

import math
import time
from io import BytesIO

import pytest
from PIL import Image
from PyPDF2 import PdfReader

from app.core.decorator import ExportFailed
from app.schemas.test_paper import TestContentRequest as ContentRequest
from app.services.normalizer import normalize
from app.utils import paper_pdf_generator
from app.utils.paper_pdf_generator import (
    A4_HEIGHT_MM,
    RenderSettings,
    _CanvasComposer,
    build_pdf_filename,
    page_height_for,
    paginate,
    rasterize_document,
    render_document,
)


def make_document(title="Algebra Quiz", sections=None, instructions=""):
    if sections is None:
        sections = [{"title": "MCQs", "questions": ["2+2=?"]}]
    request = ContentRequest(testTitle=title, instructions=instructions, sections=sections)
    return normalize(request, None)


def pdf_page_count(content: bytes) -> int:
    return len(PdfReader(BytesIO(content)).pages)


# -------------------------
# paginate
# -------------------------
def test_short_image_fits_on_one_page():
    pages = paginate(100.0)
    assert len(pages) == 1
    assert pages[0].offset == 0
    assert pages[0].visible_height == pytest.approx(100.0)


def test_zero_height_still_produces_a_page():
    pages = paginate(0.0)
    assert len(pages) == 1
    assert pages[0].visible_height == 0


def test_exact_multiple_of_page_height():
    pages = paginate(A4_HEIGHT_MM * 2)
    assert len(pages) == 2
    assert [p.visible_height for p in pages] == [A4_HEIGHT_MM, A4_HEIGHT_MM]


def test_offsets_shift_by_one_page_height():
    pages = paginate(700.0)
    assert [p.index for p in pages] == [0, 1, 2]
    assert [p.offset for p in pages] == pytest.approx([0.0, -297.0, -594.0])
    assert pages[-1].visible_height == pytest.approx(700.0 - 594.0)


@pytest.mark.parametrize("img_height", [1.5, 296.9, 297.1, 1000.0, 2970.5])
def test_visible_bands_cover_the_image(img_height):
    pages = paginate(img_height)
    assert len(pages) == max(1, math.ceil(img_height / A4_HEIGHT_MM))
    assert sum(p.visible_height for p in pages) == pytest.approx(img_height)
    assert all(0 < p.visible_height <= A4_HEIGHT_MM for p in pages)


def test_paginate_rejects_non_positive_page_height():
    with pytest.raises(ValueError):
        paginate(100.0, page_height=0)


def test_page_height_scales_raster_to_page_width():
    assert page_height_for(794, 1588) == pytest.approx(420.0)
    assert page_height_for(1588, 794) == pytest.approx(105.0)


# -------------------------
# naming and composition
# -------------------------
@pytest.mark.parametrize(
    "title, expected",
    [
        ("Algebra Quiz", "Algebra_Quiz.pdf"),
        ("Physics   Mid  Term", "Physics_Mid_Term.pdf"),
        ("  Chemistry\tFinal ", "Chemistry_Final.pdf"),
        ("   ", "test_paper.pdf"),
    ],
)
def test_build_pdf_filename(title, expected):
    assert build_pdf_filename(title) == expected


def test_composer_numbers_questions_under_their_section():
    composer = _CanvasComposer(font_size=12, scale=1)
    try:
        ops, height = composer.compose(make_document())
    finally:
        composer.close()

    texts = [op[3] for op in ops if op[0] == "text"]
    assert texts[0] == "Algebra Quiz"
    assert texts.index("MCQs") < texts.index("1. ") < texts.index("2+2=?")
    assert height > 0


def test_answer_key_only_when_requested_and_available():
    document = make_document()
    composer = _CanvasComposer(font_size=12, scale=1)
    ops, _ = composer.compose(document, include_answers=True)
    composer.close()
    # request-sourced documents carry no answers
    assert "Answer Key" not in [op[3] for op in ops if op[0] == "text"]


def test_rasterize_uses_oversampled_staging_width():
    image = rasterize_document(make_document(), font_size=12, scale=2)
    try:
        assert image.mode == "RGB"
        assert image.width == paper_pdf_generator.STAGING_WIDTH_PX * 2
        assert image.height > 0
    finally:
        image.close()


def test_long_words_are_wrapped_within_the_line():
    composer = _CanvasComposer(font_size=12, scale=1)
    try:
        lines = paper_pdf_generator.wrap_text(
            "x" * 400, composer.body_font, 200, composer.measure
        )
        assert len(lines) > 1
        assert all(composer.measure(line, composer.body_font) <= 200 for line in lines)
    finally:
        composer.close()


def test_very_long_token_wraps_quickly_at_full_scale():
    composer = _CanvasComposer(font_size=12, scale=2)
    word = "x" * 5000
    try:
        started = time.perf_counter()
        lines = paper_pdf_generator.wrap_text(
            word, composer.body_font, composer.content_width, composer.measure
        )
        elapsed = time.perf_counter() - started

        assert elapsed < 5
        assert "".join(lines) == word
        assert all(
            composer.measure(line, composer.body_font) <= composer.content_width
            for line in lines
        )
    finally:
        composer.close()


def test_question_with_long_url_renders():
    url = "https://example.com/" + "a1b2c3d4" * 500
    paper = render_document(
        make_document(sections=[{"title": "Links", "questions": [f"Open {url} and summarise it."]}])
    )
    assert paper.page_count >= 1


# -------------------------
# render_document
# -------------------------
def test_algebra_quiz_renders_single_page_pdf():
    paper = render_document(make_document(), RenderSettings(font_size=12))

    assert paper.filename == "Algebra_Quiz.pdf"
    assert paper.media_type == "application/pdf"
    assert paper.content.startswith(b"%PDF")
    assert paper.page_count == 1
    assert pdf_page_count(paper.content) == 1


def test_document_without_sections_still_renders():
    paper = render_document(make_document(sections=[]))
    assert paper.page_count >= 1
    assert pdf_page_count(paper.content) == paper.page_count


def test_long_paper_spans_ceil_of_height_pages():
    questions = [f"Question number {i}: explain the result in detail." for i in range(150)]
    document = make_document(sections=[{"title": "Long Questions", "questions": questions}])

    image = rasterize_document(document, font_size=12)
    try:
        expected = math.ceil(page_height_for(image.width, image.height) / A4_HEIGHT_MM)
    finally:
        image.close()

    paper = render_document(document, RenderSettings(font_size=12))
    assert paper.page_count > 2
    assert paper.page_count == expected
    assert pdf_page_count(paper.content) == expected


def test_rasterize_failure_becomes_export_failed(monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("canvas allocation failed")

    monkeypatch.setattr(paper_pdf_generator, "rasterize_document", broken)

    with pytest.raises(ExportFailed) as exc_info:
        render_document(make_document())
    assert "canvas allocation failed" in exc_info.value.message
    assert exc_info.value.status_code == 500


def test_staging_raster_is_released_when_pdf_assembly_fails(monkeypatch):
    staged = Image.new("RGB", (10, 10), "white")
    closed = []
    original_close = staged.close

    def tracking_close():
        closed.append(True)
        original_close()

    staged.close = tracking_close

    def broken_paginate(*args, **kwargs):
        raise ValueError("bad page geometry")

    monkeypatch.setattr(paper_pdf_generator, "rasterize_document", lambda *a, **k: staged)
    monkeypatch.setattr(paper_pdf_generator, "paginate", broken_paginate)

    with pytest.raises(ExportFailed):
        render_document(make_document())
    assert closed == [True]


def test_submitted_page_dimensions_do_not_change_the_a4_output():
    request = ContentRequest(
        testTitle="Algebra Quiz",
        sections=[{"title": "MCQs", "questions": ["2+2=?"]}],
        fontSize=14,
        pageWidthCm=10,
        pageHeightCm=15,
    )
    layout = RenderSettings.from_request(request)
    assert layout == RenderSettings(font_size=14)

    paper = render_document(normalize(request, None), layout)
    box = PdfReader(BytesIO(paper.content)).pages[0].mediabox
    assert float(box.width) == pytest.approx(595.2756, abs=0.01)
    assert float(box.height) == pytest.approx(841.8898, abs=0.01)
