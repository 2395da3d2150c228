import json
import logging
import re
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from app.core.config import settings
from app.core.decorator import ExternalCallFailed, ExternalSchemaMismatch

logger = logging.getLogger(__name__)


class BaseAIService:
    """Base Service to interact with an OpenAI-compatible chat completion API"""

    def __init__(self):
        self.api_key = settings.ai_api_key
        self.api_endpoint = settings.ai_api_endpoint
        self.model = settings.ai_model

        # OpenAI SDK has built-in retry logic, connection pooling, and timeout handling
        self.client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=(
                self.api_endpoint.replace("/chat/completions", "")
                if self.api_endpoint
                else None
            ),
            timeout=settings.ai_timeout,
            max_retries=settings.ai_max_retries,
        )

        # Validate configuration
        if not self.api_key:
            logger.warning(
                "AI_API_KEY not configured. Papers will be exported from submitted content only."
            )
        if not self.api_endpoint:
            logger.warning("AI_API_ENDPOINT not configured.")

    async def close(self):
        """Close the OpenAI client and release resources"""
        await self.client.close()

    def is_configured(self) -> bool:
        """Check if AI service is properly configured"""
        return bool(self.api_key and self.api_endpoint and self.model)

    def _extract_json_from_response(self, text: str) -> Any:
        """
        Extract and parse JSON from AI response that may contain markdown formatting

        Args:
            text: Raw text response from AI that may contain ```json``` markers

        Returns:
            Parsed JSON object (dict or list)

        Raises:
            ExternalSchemaMismatch: If JSON parsing fails
        """
        try:
            # Pattern matches ```json\n{...}\n``` or ```\n{...}\n```
            json_pattern = r"```(?:json)?\s*\n?([\s\S]*?)\n?```"
            match = re.search(json_pattern, text)

            if match:
                json_text = match.group(1).strip()
            else:
                json_text = text.strip()

            return json.loads(json_text)

        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse JSON from AI response: {str(e)}")
            logger.debug(f"Full response: {text}")

            if not text.strip().endswith("}") and not text.strip().endswith("]"):
                raise ExternalSchemaMismatch(
                    "AI response was incomplete (missing closing bracket)"
                )

            raise ExternalSchemaMismatch(f"Failed to parse AI response as JSON: {str(e)}")

    async def _make_request(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> Dict:
        """
        Make a chat completion request

        Args:
            messages: List of message dictionaries with 'role' and 'content'
            temperature: Controls randomness (0.0 to 2.0)
            max_tokens: Maximum tokens in response

        Returns:
            API response dictionary

        Raises:
            ExternalCallFailed: If the service is not configured or the request fails
        """
        if not self.is_configured():
            raise ExternalCallFailed(
                "AI service is not configured. Please check API key, endpoint and model."
            )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            return response.model_dump()

        except Exception as e:
            error_msg = str(e)
            logger.error(f"AI API request error: {error_msg}")

            if "timeout" in error_msg.lower():
                raise ExternalCallFailed("AI service request timed out", 504) from e
            elif "rate limit" in error_msg.lower():
                raise ExternalCallFailed("AI service rate limit exceeded", 429) from e
            elif (
                "authentication" in error_msg.lower() or "api key" in error_msg.lower()
            ):
                raise ExternalCallFailed("Invalid AI API key", 401) from e
            else:
                raise ExternalCallFailed(
                    f"Failed to connect to AI service: {error_msg}"
                ) from e

    async def generate_completion(
        self,
        prompt: str,
        system_message: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate a text completion

        Args:
            prompt: The user prompt
            system_message: Optional system message to set context
            temperature: Controls randomness (0.0 to 2.0)
            max_tokens: Maximum tokens in response

        Returns:
            Generated text response (may be empty)
        """
        messages = []

        if system_message:
            messages.append({"role": "system", "content": system_message})

        messages.append({"role": "user", "content": prompt})

        response = await self._make_request(
            messages=messages, temperature=temperature, max_tokens=max_tokens
        )

        try:
            message = response["choices"][0]["message"]

            # Reasoning models keep their thought process in reasoning_content
            reasoning = message.get("reasoning_content")
            if reasoning:
                logger.debug(f"Model reasoning: {reasoning[:500]}...")

            completion = message.get("content") or ""
            return completion.strip()

        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Failed to parse AI response: {str(e)}")
            logger.debug(f"Response structure: {response}")
            raise ExternalCallFailed(
                f"Failed to parse AI response. Model: {self.model}, Error: {str(e)}"
            ) from e
