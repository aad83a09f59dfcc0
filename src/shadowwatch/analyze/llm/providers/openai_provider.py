from __future__ import annotations

from typing import Any, Dict, List

from ....constants import ProviderName
from .base import LLMProvider, RequestEnvelope, ResponseEnvelope, TokenUsage


class OpenAIProvider(LLMProvider):
    """OpenAI Chat Completions API provider."""

    name = ProviderName.OPENAI
    vendor = "OpenAI"

    def _create_client(self, api_key: str) -> Any:
        try:
            from openai import AsyncOpenAI
        except Exception as exc:  # pragma: no cover
            raise RuntimeError("Install `openai` package to use OpenAI provider") from exc
        return AsyncOpenAI(api_key=api_key, timeout=self.transport_timeout())

    @staticmethod
    def build_messages(request: RequestEnvelope) -> List[Dict[str, str]]:
        # OpenAI takes the system prompt inline as the first message.
        messages: List[Dict[str, str]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.extend({"role": m.role, "content": m.content} for m in request.messages)
        return messages

    async def _send(self, client: Any, request: RequestEnvelope) -> ResponseEnvelope:
        model = request.model or self.config.model
        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": self.build_messages(request),
            "max_completion_tokens": request.max_tokens,
        }
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await client.chat.completions.create(**kwargs)

        text = ""
        finish_reason = None
        choices = getattr(response, "choices", None) or []
        if choices:
            first = choices[0]
            message = getattr(first, "message", None)
            text = (getattr(message, "content", "") if message is not None else "") or ""
            finish_reason = getattr(first, "finish_reason", None)

        usage = getattr(response, "usage", None)
        prompt_tokens = int(getattr(usage, "prompt_tokens", 0) or 0) if usage else 0
        completion_tokens = int(getattr(usage, "completion_tokens", 0) or 0) if usage else 0
        total_tokens = int(getattr(usage, "total_tokens", 0) or 0) if usage else 0

        return ResponseEnvelope(
            content=text,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=total_tokens or prompt_tokens + completion_tokens,
            ),
            response_id=getattr(response, "id", None),
            model=getattr(response, "model", None) or model,
            finish_reason=finish_reason,
            provider=self.name.value,
        )
