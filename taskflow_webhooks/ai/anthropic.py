"""Anthropic Claude API provider."""

from .base import (
    BaseProvider,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(BaseProvider):
    """Anthropic Claude API client."""

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def _get_headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _convert_messages(self, messages: list[ChatMessage]) -> tuple[str | None, list[dict]]:
        """Convert OpenAI messages to Anthropic format."""
        system_content = None
        anthropic_messages = []

        for msg in messages:
            if msg.role == "system":
                system_content = msg.content
            else:
                role = msg.role if msg.role in ("user", "assistant") else "user"
                anthropic_messages.append({"role": role, "content": msg.content})

        return system_content, anthropic_messages

    async def chat(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        system_content, messages = self._convert_messages(request.messages)

        payload = {
            "model": request.model,
            "messages": messages,
            "max_tokens": request.max_tokens or 1024,
        }

        if system_content:
            payload["system"] = system_content

        if request.temperature is not None:
            payload["temperature"] = request.temperature

        data = await self._post(ANTHROPIC_API_URL, self._get_headers(), payload)

        content = ""
        if data.get("content") and len(data["content"]) > 0:
            content = data["content"][0].get("text", "")

        return ChatCompletionResponse(
            model=request.model,
            content=content,
            finish_reason=data.get("stop_reason", "stop"),
        )
