"""OpenRouter API provider for multi-model access."""

from .base import (
    BaseProvider,
    ChatCompletionRequest,
    ChatCompletionResponse,
)

OPENROUTER_API_URL = "https://openrouter.ai/api/v1/chat/completions"


class OpenRouterProvider(BaseProvider):
    """OpenRouter API client."""

    @property
    def provider_name(self) -> str:
        return "openrouter"

    def _get_headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "X-Title": "TaskFlow Webhooks",
        }

    async def chat(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        payload = {
            "model": request.model,
            "messages": [{"role": m.role, "content": m.content} for m in request.messages],
        }

        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens

        if request.temperature is not None:
            payload["temperature"] = request.temperature

        data = await self._post(OPENROUTER_API_URL, self._get_headers(), payload)

        choices = data.get("choices") or [{}]
        message = choices[0].get("message") or {}
        return ChatCompletionResponse(
            model=request.model,
            content=message.get("content") or "",
            finish_reason=choices[0].get("finish_reason", "stop"),
        )
