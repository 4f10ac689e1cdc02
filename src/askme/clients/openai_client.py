import logging
from typing import List

import httpx

from ..clients.base import LLMClient
from ..models.request import FinalResponse, ModelInfo, Request
from ..streaming.decoders import OpenAIStreamDecoder

logger = logging.getLogger(__name__)


class OpenAIClient(LLMClient):
    """Client for OpenAI and OpenAI-compatible chat completion endpoints."""
    CLASS_NAME = "openai"
    DEFAULT_URL = "https://api.openai.com"
    API_KEY_ENV_VARS = ("OPENAI_API_KEY",)

    def _api_key_required(self) -> bool:
        # Self-hosted OpenAI-compatible servers often run without a key
        return httpx.URL(self.base_url).host == httpx.URL(self.DEFAULT_URL).host

    def _api_root(self) -> str:
        # Accept both "https://host" and "https://host/v1" as the configured url
        if self.base_url.endswith("/v1"):
            return self.base_url
        return f"{self.base_url}/v1"

    def _chat_url(self, request: Request) -> str:
        return f"{self._api_root()}/chat/completions"

    def _models_url(self) -> str:
        return f"{self._api_root()}/models"

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_payload(self, request: Request, stream: bool) -> dict:
        return {
            "model": request.model,
            "messages": request.to_api_messages(),
            "stream": stream,
        }

    def _parse_response(self, data: dict) -> FinalResponse:
        message = data["choices"][0]["message"]
        content = message.get("content") or ""
        reasoning = message.get("reasoning_content") or message.get("reasoning")
        if logger.isEnabledFor(logging.DEBUG):
            usage = data.get("usage")
            if usage:
                logger.debug(f"OpenAI Tokens: Prompt={usage.get('prompt_tokens')}, "
                             f"Completion={usage.get('completion_tokens')}, Total={usage.get('total_tokens')}")
        return FinalResponse(text=content, reasoning=reasoning or None)

    def create_decoder(self) -> OpenAIStreamDecoder:
        return OpenAIStreamDecoder()

    def _parse_models(self, data: dict) -> List[ModelInfo]:
        return [
            ModelInfo(name=entry["id"], description=entry.get("owned_by") or "")
            for entry in data["data"]
        ]
