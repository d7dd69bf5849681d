"""Base provider interface for AI clients."""

from abc import ABC, abstractmethod

import httpx
from pydantic import BaseModel


class ChatMessage(BaseModel):
    """OpenAI-style chat message."""
    role: str
    content: str


class ChatCompletionRequest(BaseModel):
    """OpenAI-compatible chat completion request."""
    model: str
    messages: list[ChatMessage]
    max_tokens: int | None = None
    temperature: float | None = None


class ChatCompletionResponse(BaseModel):
    """Assistant text plus the model that produced it."""
    model: str
    content: str
    finish_reason: str | None = None


class BaseProvider(ABC):
    """Abstract base class for AI providers.

    A shared `httpx.AsyncClient` may be injected; otherwise one is opened per call.
    """

    def __init__(self, api_key: str, client: httpx.AsyncClient | None = None, timeout: float = 60.0):
        self.api_key = api_key
        self._client = client
        self.timeout = timeout

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider identifier."""
        pass

    @abstractmethod
    async def chat(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """Send chat completion request."""
        pass

    async def _post(self, url: str, headers: dict, payload: dict) -> dict:
        if self._client is not None:
            response = await self._client.post(url, headers=headers, json=payload, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, headers=headers, json=payload)
        response.raise_for_status()
        return response.json()
