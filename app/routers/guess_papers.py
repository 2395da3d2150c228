"""
AI generated guess papers: practice templates with questions and answers
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.limiter import limiter
from app.routers.test_paper import paper_file_response
from app.schemas.guess_paper import GuessPaperRequest, GuessPaperTemplate
from app.schemas.shaped_result import Structured
from app.schemas.test_paper import SectionInput, ShapedSection, TestContentRequest
from app.services.normalizer import normalize
from app.services.paper_pipeline import PaperPipeline
from app.services.saved_test import SavedTestService
from app.utils.ai_component.service import AIService, get_ai_service
from app.utils.paper_pdf_generator import RenderSettings

router = APIRouter(prefix="/guess-papers", tags=["Guess Papers"])


@router.post("/generate", response_model=GuessPaperTemplate)
async def generate_guess_paper(
    payload: GuessPaperRequest,
    ai: AIService = Depends(get_ai_service),
):
    """
    Generate a guess paper template for a subject and difficulty.

    Unlike test papers there is nothing to fall back to, so AI failures
    are returned to the caller as 502 responses.
    """
    return await ai.generate_guess_paper(payload.subject, payload.difficulty)


@router.post("/export")
@limiter.limit(settings.export_rate_limit)
async def export_guess_paper(
    request: Request,
    background_tasks: BackgroundTasks,
    template: GuessPaperTemplate,
    font_size: float = Query(12, ge=1, le=72),
    include_answers: bool = Query(True),
    db: Session = Depends(get_db),
):
    """Render a guess paper template to PDF, answer key included by default."""
    content = TestContentRequest(
        title=template.title,
        instructions=template.introduction,
        sections=[
            SectionInput(title=s.title, questions=s.questions)
            for s in template.sections
            if s.title and s.questions and all(q.strip() for q in s.questions)
        ],
        font_size=font_size,
    )
    document = normalize(
        content,
        Structured(
            title=template.title,
            sections=tuple(
                ShapedSection(title=s.title, questions=s.questions, answers=s.answers)
                for s in template.sections
            ),
        ),
    )

    pipeline = PaperPipeline(store=SavedTestService(db))
    export = await pipeline.export(
        document,
        RenderSettings(font_size=font_size),
        include_answers=include_answers,
    )
    return paper_file_response(export, background_tasks)
