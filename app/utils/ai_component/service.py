from app.utils.ai_component.base import BaseAIService
from app.utils.ai_component.guess_paper import GuessPaperMixin
from app.utils.ai_component.layout import PaperLayoutMixin


class AIService(
    BaseAIService,
    PaperLayoutMixin,
    GuessPaperMixin,
):
    """
    Service to interact with the AI API
    Combines all functionality from mixins
    """

    pass


# Create singleton instance
ai_service = AIService()


def get_ai_service() -> AIService:
    return ai_service
