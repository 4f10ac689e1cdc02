import logging
from typing import List

from askme.clients.base import LLMClient
from askme.models.request import FinalResponse, ModelInfo, Request
from askme.streaming.decoders import OllamaStreamDecoder

logger = logging.getLogger(__name__)


class OllamaClient(LLMClient):
    CLASS_NAME = "ollama"
    DEFAULT_URL = "http://localhost:11434"
    API_KEY_ENV_VARS = ("OLLAMA_API_KEY",)

    def _chat_url(self, request: Request) -> str:
        return f"{self.base_url}/api/chat"

    def _models_url(self) -> str:
        return f"{self.base_url}/api/tags"

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
        message = data["message"]
        content = message["content"]
        if not isinstance(content, str):
            raise TypeError("message.content is not a string")
        # Thinking models report their reasoning next to the content
        thinking = message.get("thinking") or data.get("thinking")
        if logger.isEnabledFor(logging.DEBUG) and "eval_count" in data:
            logger.debug(f"Ollama Tokens: Prompt={data.get('prompt_eval_count')}, Completion={data.get('eval_count')}")
        return FinalResponse(text=content, reasoning=thinking or None)

    def create_decoder(self) -> OllamaStreamDecoder:
        return OllamaStreamDecoder()

    def _parse_models(self, data: dict) -> List[ModelInfo]:
        models = []
        for entry in data["models"]:
            details = entry.get("details") or {}
            description = ", ".join(
                str(details[key]) for key in ("family", "parameter_size", "quantization_level") if details.get(key)
            )
            models.append(ModelInfo(name=entry["name"], description=description))
        return models
