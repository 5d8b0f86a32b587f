"""Chat completion client for the AI backend."""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from .config import Settings
from .errors import CompletionError, DecodeError
from .models import ChatCompletionRequest, ChatCompletionResponse, ChatMessage

logger = logging.getLogger(__name__)


class CompletionClient:
    """Client for an OpenAI-compatible ``/chat/completions`` endpoint.

    Works against both the hosted API (bearer key) and a self-hosted
    proxy (no key). Each request carries a single user message.
    """

    def __init__(
        self,
        api_url: str,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.model = model
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "CompletionClient":
        return cls(
            api_url=settings.ai_api_url,
            model=settings.ai_model,
            api_key=settings.completion_api_key,
            timeout=settings.request_timeout,
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    async def complete(self, text: str) -> list[str]:
        """Send ``text`` as a new conversation and return every candidate reply.

        Returns:
            Candidate texts in the backend's order; may be empty.

        Raises:
            httpx.HTTPError: on transport failure or a non-2xx status
            CompletionError: if the backend answered with an error object
            DecodeError: if the body is not a completion response
        """
        request = ChatCompletionRequest(
            model=self.model,
            messages=[ChatMessage(role="user", content=text)],
        )
        logger.debug(f"Sending completion request to {self.api_url}: {text[:100]}")

        response = await self.client.post(self.api_url, json=request.model_dump())
        response.raise_for_status()

        try:
            completion = ChatCompletionResponse.model_validate(response.json())
        except ValidationError as e:
            raise DecodeError(f"Unexpected completion payload: {e.error_count()} error(s)") from e
        except ValueError as e:
            raise DecodeError(f"Completion endpoint returned non-JSON body: {response.text[:200]}") from e

        if completion.error is not None:
            raise CompletionError(f"AI backend error: {completion.error}")

        candidates = completion.candidates()
        logger.debug(f"Received {len(candidates)} candidate(s)")
        return candidates
