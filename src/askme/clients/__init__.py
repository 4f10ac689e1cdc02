from typing import Dict, Optional, Type

import httpx

from ..errors import NotFoundError
from ..utils.config import ServiceClass, ServiceConfig, Settings
from .anthropic_client import AnthropicClient
from .base import LLMClient
from .gemini_client import GeminiClient
from .ollama_client import OllamaClient
from .openai_client import OpenAIClient

CLIENT_CLASSES: Dict[str, Type[LLMClient]] = {
    ServiceClass.OPENAI.value: OpenAIClient,
    ServiceClass.OLLAMA.value: OllamaClient,
    ServiceClass.GEMINI.value: GeminiClient,
    ServiceClass.ANTHROPIC.value: AnthropicClient,
}


def create_client(name: str, service: ServiceConfig, settings: Optional[Settings] = None,
                  http_client: Optional[httpx.AsyncClient] = None) -> LLMClient:
    """Build the client for a configured service."""
    client_cls = CLIENT_CLASSES.get(service.class_)
    if client_cls is None:
        valid = ", ".join(CLIENT_CLASSES)
        raise NotFoundError(f"Unknown class '{service.class_}' for service '{name}'. Valid classes: {valid}")
    return client_cls(name, service, settings=settings, http_client=http_client)


__all__ = ['LLMClient', 'OpenAIClient', 'OllamaClient', 'GeminiClient', 'AnthropicClient',
           'CLIENT_CLASSES', 'create_client']
