import logging
from typing import Iterable, List, Optional, Sequence

from app.schemas.shaped_result import FreeText, Missing, ShapedResult, Structured
from app.schemas.test_paper import (
    NormalizedDocument,
    NormalizedSection,
    NumberedQuestion,
    SectionInput,
    ShapedSection,
    TestContentRequest,
)

logger = logging.getLogger(__name__)


def _number_questions(
    questions: Sequence[str], answers: Optional[Sequence[str]] = None
) -> List[NumberedQuestion]:
    answers = answers or []
    numbered = []
    for idx, text in enumerate(questions):
        answer = answers[idx] if idx < len(answers) else None
        numbered.append(
            NumberedQuestion(
                number=idx + 1,
                text=text,
                answer=answer if answer and answer.strip() else None,
            )
        )
    return numbered


def _sections_from_request(sections: Iterable[SectionInput]) -> List[NormalizedSection]:
    return [
        NormalizedSection(title=s.title, questions=_number_questions(s.questions))
        for s in sections
    ]


def _sections_from_result(sections: Iterable[ShapedSection]) -> List[NormalizedSection]:
    """Keep every external section that still has a question to ask."""
    normalized = []
    for section in sections:
        answers = section.answers or []
        kept = [
            (q, answers[i] if i < len(answers) else "")
            for i, q in enumerate(section.questions)
            if q and q.strip()
        ]
        if not kept:
            logger.debug(f"Dropping empty external section '{section.title}'")
            continue
        questions = [q for q, _ in kept]
        answers = [a for _, a in kept]
        normalized.append(
            NormalizedSection(
                title=section.title,
                questions=_number_questions(questions, answers),
            )
        )
    return normalized


def normalize(
    request: TestContentRequest, result: Optional[ShapedResult]
) -> NormalizedDocument:
    """
    Reconcile the AI result against the submitted content.

    Each field falls back to the request on its own: a usable external title
    does not drag in empty external sections, and vice versa. Never raises.
    """
    fallback = NormalizedDocument(
        title=request.title,
        instructions=request.instructions,
        sections=_sections_from_request(request.sections),
    )

    if result is None or isinstance(result, Missing):
        if result is not None and result.reason:
            logger.info(f"Using submitted content only: {result.reason}")
        return fallback

    if isinstance(result, FreeText):
        logger.info(
            f"AI returned a free-text layout ({len(result.text)} chars); "
            "keeping submitted sections"
        )
        return fallback

    if not isinstance(result, Structured):
        logger.warning(f"Unknown shaped result {type(result).__name__}; ignoring it")
        return fallback

    document = fallback.model_copy()

    if result.title and result.title.strip():
        document.title = result.title
        document.title_source = "external"

    external_sections = _sections_from_result(result.sections or ())
    if external_sections:
        document.sections = external_sections
        document.sections_source = "external"
    else:
        logger.info("AI returned no usable sections; keeping submitted sections")

    return document
