import logging
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool

from app.core.decorator import ExternalCallFailed
from app.models.saved_test import SavedTest
from app.schemas.shaped_result import Missing, ShapedResult
from app.schemas.test_paper import NormalizedDocument, TestContentRequest
from app.services.normalizer import normalize
from app.services.saved_test import SavedTestService
from app.utils.paper_pdf_generator import RenderedPaper, RenderSettings, render_document

logger = logging.getLogger(__name__)

AI_UNAVAILABLE_NOTICE = "AI layout service unavailable; the paper was built from the submitted content."


@dataclass
class PaperExport:
    document: NormalizedDocument
    paper: RenderedPaper
    record: Optional[SavedTest] = None
    notices: List[str] = field(default_factory=list)


class PaperPipeline:
    """
    shape -> normalize -> render -> persist, one stage after the other.

    A failed AI call degrades to the submitted content with a notice.
    ExportFailed from the render stage propagates and nothing is persisted.
    """

    def __init__(self, ai=None, store: Optional[SavedTestService] = None):
        self.ai = ai
        self.store = store

    async def shape(self, request: TestContentRequest, notices: List[str]) -> ShapedResult:
        if self.ai is None:
            return Missing("no AI service attached")
        try:
            return await self.ai.shape_test_content(request)
        except ExternalCallFailed as e:
            logger.warning(f"Content shaping failed, falling back: {e.message}")
            notices.append(AI_UNAVAILABLE_NOTICE)
            return Missing(e.message)

    async def prepare(self, request: TestContentRequest, notices: List[str]) -> NormalizedDocument:
        result = await self.shape(request, notices)
        return normalize(request, result)

    async def run(
        self, request: TestContentRequest, include_answers: bool = False
    ) -> PaperExport:
        notices: List[str] = []
        document = await self.prepare(request, notices)
        return await self.export(
            document,
            RenderSettings.from_request(request),
            include_answers=include_answers,
            notices=notices,
        )

    async def export(
        self,
        document: NormalizedDocument,
        layout: RenderSettings,
        include_answers: bool = False,
        notices: Optional[List[str]] = None,
    ) -> PaperExport:
        paper = await run_in_threadpool(
            render_document, document, layout, include_answers
        )

        record = None
        if self.store is not None:
            record = self.store.append(document.title)
            logger.info(f"Saved test record {record.id} for '{document.title}'")

        return PaperExport(
            document=document,
            paper=paper,
            record=record,
            notices=list(notices or []),
        )
