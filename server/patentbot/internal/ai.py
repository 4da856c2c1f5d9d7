from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Dict, List, Optional

from openai import APIStatusError, AsyncOpenAI, OpenAIError

from patentbot.internal.settings import get_settings

logger = logging.getLogger(__name__)


RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."
CREDITS_DEPLETED_MESSAGE = "AI credits depleted. Please add credits."


class AIGatewayError(Exception):
    """Gateway failure already translated to the HTTP status the client should see"""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @classmethod
    def from_status(cls, status_code: int, fallback: str = "AI service unavailable") -> "AIGatewayError":
        if status_code == 429:
            return cls(RATE_LIMIT_MESSAGE, 429)
        if status_code == 402:
            return cls(CREDITS_DEPLETED_MESSAGE, 402)
        return cls(fallback, 500)


def get_ai_gateway(
    model: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
) -> AIGateway:
    settings = get_settings()
    api_key = api_key or settings.ai_gateway_api_key
    if not api_key:
        raise AIGatewayError("AI_GATEWAY_API_KEY is not configured")
    return AIGateway(
        api_key,
        model or settings.ai_model,
        base_url or settings.ai_gateway_url,
        image_model=settings.ai_image_model,
    )


class AIGateway:
    """
    Thin async client for the OpenAI-compatible AI gateway

    Every method converts gateway HTTP errors into AIGatewayError so route
    handlers never see provider-specific exceptions.
    """

    def __init__(self, api_key: str, model: str, base_url: str, image_model: str | None = None):
        self.model = model
        self.image_model = image_model or model
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
        fallback_error: str = "AI analysis failed",
    ) -> str:
        """
        Run one non-streaming chat completion and return the message text

        Arguments:
        messages -- Chat messages including the system prompt
        fallback_error -- Message used for non rate-limit gateway failures

        Response:
        The completion text; AIGatewayError when the gateway fails or returns nothing
        """
        kwargs: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except APIStatusError as e:
            logger.error(f"AI gateway error: {e.status_code} {e.message}")
            raise AIGatewayError.from_status(e.status_code, fallback_error) from e
        except OpenAIError as e:
            logger.error(f"AI gateway request failed: {e}")
            raise AIGatewayError(fallback_error) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AIGatewayError("No analysis generated")
        return content

    async def open_chat_stream(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.4,
        max_tokens: int = 4000,
    ) -> AsyncGenerator[str, None]:
        """
        Start a streaming completion

        The request is sent before returning so rate-limit and credit errors are
        raised here, while the caller can still answer with a normal error response.

        Response:
        Async generator yielding text deltas
        """
        try:
            stream = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
        except APIStatusError as e:
            logger.error(f"AI gateway error: {e.status_code} {e.message}")
            raise AIGatewayError.from_status(e.status_code) from e
        except OpenAIError as e:
            logger.error(f"AI gateway request failed: {e}")
            raise AIGatewayError("AI service unavailable") from e

        async def deltas() -> AsyncGenerator[str, None]:
            try:
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    content = chunk.choices[0].delta.content
                    if content:
                        yield content
            except OpenAIError as e:
                # Headers are already sent; the client just sees the stream end
                logger.error(f"AI stream interrupted: {e}")

        return deltas()

    async def generate_image(self, prompt: str) -> str:
        """
        Ask the image model for one picture

        Response:
        The image URL (usually a base64 data URL); AIGatewayError if none came back
        """
        try:
            response = await self._client.chat.completions.create(
                model=self.image_model,
                messages=[{"role": "user", "content": prompt}],
                extra_body={"modalities": ["image", "text"]},
            )
        except APIStatusError as e:
            raise AIGatewayError(f"AI image generation error ({e.status_code}): {e.message}", e.status_code) from e
        except OpenAIError as e:
            raise AIGatewayError(f"AI image generation error: {e}") from e

        if not response.choices:
            raise AIGatewayError("No image generated in response")

        # Gateway-specific field, kept by the SDK as an extra attribute
        message = response.choices[0].message
        images = (getattr(message, "model_extra", None) or {}).get("images") or []
        if not isinstance(images, list) or not images:
            raise AIGatewayError("No image generated in response")

        image = images[0]
        image_url = image.get("image_url") if isinstance(image, dict) else None
        url = image_url.get("url") if isinstance(image_url, dict) else image_url
        if not url or not isinstance(url, str):
            logger.error(f"Unexpected image payload: {type(image).__name__}")
            raise AIGatewayError("Unexpected image format in response")
        return url
