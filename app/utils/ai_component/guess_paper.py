import logging

from pydantic import ValidationError

from app.core.decorator import ExternalSchemaMismatch
from app.schemas.guess_paper import GuessPaperTemplate
from app.utils.prompts import GUESS_PAPER_SYSTEM_MESSAGE, get_guess_paper_prompt

logger = logging.getLogger(__name__)


class GuessPaperMixin:
    async def generate_guess_paper(
        self, subject: str, difficulty: str = "medium"
    ) -> GuessPaperTemplate:
        """
        Generate a guess paper template (sections of questions with answers)

        Args:
            subject: Subject of the paper, e.g. "physics"
            difficulty: easy, medium or hard

        Returns:
            Validated GuessPaperTemplate
        """
        response_text = await self.generate_completion(
            prompt=get_guess_paper_prompt(subject, difficulty),
            system_message=GUESS_PAPER_SYSTEM_MESSAGE,
            temperature=0.7,
            max_tokens=8000,
        )
        data = self._extract_json_from_response(response_text)

        try:
            return GuessPaperTemplate.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Invalid guess paper response: {str(e)}")
            raise ExternalSchemaMismatch(
                "AI returned a guess paper that does not match the template schema"
            ) from e
