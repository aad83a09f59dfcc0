from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from ....constants import ProviderName
from .base import LLMProvider, RequestEnvelope, ResponseEnvelope, TokenUsage


class AnthropicProvider(LLMProvider):
    """Anthropic Messages API provider."""

    name = ProviderName.CLAUDE
    vendor = "Claude"

    def _create_client(self, api_key: str) -> Any:
        try:
            import anthropic
        except Exception as exc:  # pragma: no cover
            raise RuntimeError("Install `anthropic` package to use Claude provider") from exc
        return anthropic.AsyncAnthropic(api_key=api_key, timeout=self.transport_timeout())

    @staticmethod
    def split_system(request: RequestEnvelope) -> Tuple[Optional[str], List[Dict[str, str]]]:
        """Anthropic wants the system prompt as a separate field, not a message."""
        system_parts = [request.system] if request.system else []
        messages: List[Dict[str, str]] = []
        for message in request.messages:
            if message.role == "system":
                system_parts.append(message.content)
                continue
            role = "assistant" if message.role == "assistant" else "user"
            messages.append({"role": role, "content": message.content})
        system = "\n\n".join(part for part in system_parts if part) or None
        return system, messages

    async def _send(self, client: Any, request: RequestEnvelope) -> ResponseEnvelope:
        model = request.model or self.config.model
        system, messages = self.split_system(request)
        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": request.max_tokens,
        }
        if system:
            kwargs["system"] = system
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature

        response = await client.messages.create(**kwargs)

        # content is a list of blocks; use the first one carrying text.
        text = ""
        for block in getattr(response, "content", None) or []:
            block_text = getattr(block, "text", None)
            if block_text:
                text = block_text
                break

        usage = getattr(response, "usage", None)
        input_tokens = int(getattr(usage, "input_tokens", 0) or 0) if usage else 0
        output_tokens = int(getattr(usage, "output_tokens", 0) or 0) if usage else 0

        return ResponseEnvelope(
            content=text,
            usage=TokenUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            response_id=getattr(response, "id", None),
            model=getattr(response, "model", None) or model,
            finish_reason=getattr(response, "stop_reason", None),
            provider=self.name.value,
        )
