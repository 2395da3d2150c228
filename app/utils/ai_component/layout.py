import logging
from typing import Optional

from pydantic import ValidationError

from app.core.config import settings
from app.core.decorator import ExternalSchemaMismatch
from app.schemas.shaped_result import FreeText, Missing, ShapedResult, Structured
from app.schemas.test_paper import (
    OptimizedLayoutResponse,
    StructuredContentResponse,
    TestContentRequest,
)
from app.utils.prompts import (
    LAYOUT_SYSTEM_MESSAGE,
    get_optimize_layout_prompt,
    get_structure_test_prompt,
)

logger = logging.getLogger(__name__)


class PaperLayoutMixin:
    async def shape_test_content(
        self, request: TestContentRequest, mode: Optional[str] = None
    ) -> ShapedResult:
        """
        Send the submitted test to the AI and classify what comes back

        Args:
            request: The submitted test content
            mode: "structured" (sections + answers) or "optimized_layout" (free text);
                  defaults to the AI_SHAPING_MODE setting

        Returns:
            Missing, FreeText or Structured

        Raises:
            ExternalCallFailed: If the AI call itself fails
        """
        mode = mode or settings.ai_shaping_mode
        if mode == "optimized_layout":
            prompt = get_optimize_layout_prompt(request)
        else:
            prompt = get_structure_test_prompt(request)

        response_text = await self.generate_completion(
            prompt=prompt,
            system_message=LAYOUT_SYSTEM_MESSAGE,
            temperature=0.3,
            max_tokens=8000,
        )
        return self.parse_shaped_result(response_text)

    def parse_shaped_result(self, response_text: str) -> ShapedResult:
        if not response_text or not response_text.strip():
            return Missing("AI returned an empty response")

        try:
            data = self._extract_json_from_response(response_text)
        except ExternalSchemaMismatch as e:
            logger.info(f"AI reply is not JSON, treating it as free text: {e.message}")
            return FreeText(response_text)

        if not isinstance(data, dict):
            logger.warning(f"AI reply has unexpected JSON type {type(data).__name__}")
            return Missing("AI response does not match the declared schema")

        if "optimizedLayout" in data or "optimized_layout" in data:
            try:
                layout = OptimizedLayoutResponse.model_validate(data)
                return FreeText(layout.optimized_layout)
            except ValidationError as e:
                logger.warning(f"Invalid optimized layout response: {str(e)}")
                return Missing("AI response does not match the declared schema")

        try:
            payload = StructuredContentResponse.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Invalid structured test response: {str(e)}")
            return Missing("AI response does not match the declared schema")

        return Structured(title=payload.test_title, sections=tuple(payload.sections))
