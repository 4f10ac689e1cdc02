from typing import List
from urllib.parse import urlencode

from ..clients.base import LLMClient
from ..errors import AuthError, ProviderError
from ..models.request import FinalResponse, ModelInfo, Request
from ..streaming.decoders import GeminiStreamDecoder


class GeminiClient(LLMClient):
    """Client for the Google Gemini generateContent API.

    The endpoint is fixed; a ``url`` in the service config is ignored. Gemini
    replies carry no separate reasoning channel, so every token is answer text.
    """
    CLASS_NAME = "gemini"
    FIXED_URL = "https://generativelanguage.googleapis.com/v1beta"
    API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")
    REQUIRES_API_KEY = True
    SPLIT_THINK_TAGS = False

    def _chat_url(self, request: Request) -> str:
        return f"{self.base_url}/models/{request.model}:generateContent"

    def _stream_url(self, request: Request) -> str:
        return f"{self.base_url}/models/{request.model}:streamGenerateContent?alt=sse"

    def _models_url(self) -> str:
        return f"{self.base_url}/models"

    def _next_models_url(self, data: dict) -> str | None:
        token = data.get("nextPageToken")
        if not token:
            return None
        return f"{self._models_url()}?{urlencode({'pageToken': token})}"

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    def _classify_error(self, status: int, error: dict) -> type[ProviderError]:
        # A rejected key comes back as HTTP 400 INVALID_ARGUMENT
        reasons = {detail.get("reason") for detail in error.get("details") or [] if isinstance(detail, dict)}
        if ("API_KEY_INVALID" in reasons or error.get("status") == "PERMISSION_DENIED"
                or "api key not valid" in str(error.get("message", "")).lower()):
            return AuthError
        return super()._classify_error(status, error)

    def _build_payload(self, request: Request, stream: bool) -> dict:
        payload = {
            "contents": [{
                "role": "user",
                "parts": [{"text": request.user_message}],
            }],
        }
        if request.system_prompt:
            payload["system_instruction"] = {"parts": [{"text": request.system_prompt}]}
        return payload

    def _parse_response(self, data: dict) -> FinalResponse:
        candidates = data.get("candidates")
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise ProviderError(f"Prompt blocked by Gemini: {block_reason}")
            raise KeyError("candidates")
        parts = candidates[0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
        return FinalResponse(text=text)

    def create_decoder(self) -> GeminiStreamDecoder:
        return GeminiStreamDecoder()

    def _parse_models(self, data: dict) -> List[ModelInfo]:
        models = []
        for entry in data.get("models", []):
            name = entry["name"]
            if name.startswith("models/"):
                name = name[len("models/"):]
            models.append(ModelInfo(name=name, description=entry.get("displayName") or ""))
        return models
