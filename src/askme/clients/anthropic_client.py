from typing import List

from ..clients.base import LLMClient
from ..models.request import FinalResponse, ModelInfo, Request
from ..streaming.decoders import AnthropicStreamDecoder

ANTHROPIC_VERSION = "2023-06-01"
# Room left for the answer when extended thinking is enabled
MIN_ANSWER_TOKENS = 1024


class AnthropicClient(LLMClient):
    """Client for the Anthropic Messages API (fixed endpoint)."""
    CLASS_NAME = "anthropic"
    FIXED_URL = "https://api.anthropic.com/v1"
    API_KEY_ENV_VARS = ("ANTHROPIC_API_KEY",)
    REQUIRES_API_KEY = True

    def _chat_url(self, request: Request) -> str:
        return f"{self.base_url}/messages"

    def _models_url(self) -> str:
        return f"{self.base_url}/models"

    def _next_models_url(self, data: dict) -> str | None:
        if data.get("has_more") and data.get("last_id"):
            return f"{self._models_url()}?after_id={data['last_id']}"
        return None

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _build_payload(self, request: Request, stream: bool) -> dict:
        max_tokens = self.service.max_tokens or self.settings.MAX_TOKENS
        payload = {
            "model": request.model,
            "messages": [{"role": "user", "content": request.user_message}],
            "max_tokens": max_tokens,
            "stream": stream,
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        budget = self.service.thinking_budget
        if budget and not request.suppress_reasoning:
            payload["thinking"] = {"type": "enabled", "budget_tokens": budget}
            payload["max_tokens"] = max(max_tokens, budget + MIN_ANSWER_TOKENS)
        return payload

    def _parse_response(self, data: dict) -> FinalResponse:
        text_parts = []
        thinking_parts = []
        for block in data["content"]:
            if block["type"] == "text":
                text_parts.append(block["text"])
            elif block["type"] == "thinking":
                thinking_parts.append(block["thinking"])
        if not text_parts and not thinking_parts:
            raise KeyError("content has no text block")
        reasoning = "".join(thinking_parts)
        return FinalResponse(text="".join(text_parts), reasoning=reasoning or None)

    def create_decoder(self) -> AnthropicStreamDecoder:
        return AnthropicStreamDecoder()

    def _parse_models(self, data: dict) -> List[ModelInfo]:
        return [
            ModelInfo(name=entry["id"], description=entry.get("display_name") or "")
            for entry in data["data"]
        ]
