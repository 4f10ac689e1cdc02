import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import httpx

from .clients import CLIENT_CLASSES, create_client
from .clients.base import LLMClient
from .errors import ConfigError, NotFoundError
from .model_lister import list_service_models
from .models.request import ModelInfo, Request, Token
from .processing.response import ProcessedResponse, ResponseProcessor
from .utils.config import ConfigModel, ServiceConfig, Settings

logger = logging.getLogger(__name__)


@dataclass
class Selection:
    """The service, model and system prompt chosen for one run."""
    service_name: str
    service: ServiceConfig
    model: str
    system_prompt: str | None


def resolve_system_prompt(config: ConfigModel, service_name: str, service: ServiceConfig,
                          prompt_override: str | None = None) -> str | None:
    """Pick the system prompt text for a run.

    A prompt given on the command line is looked up by name and used as
    literal text when no such name exists. Prompts referenced from the config
    file (the service's ``system_prompt``, then ``default_prompt``) must name
    an entry of ``system_prompts``.
    """
    if prompt_override:
        if prompt_override in config.system_prompts:
            return config.system_prompts[prompt_override]
        logger.debug("System prompt override is not a known name; using it as literal text")
        return prompt_override
    if service.system_prompt:
        return config.resolve_prompt_name(service.system_prompt, f"Service '{service_name}'")
    if config.default_prompt:
        return config.resolve_prompt_name(config.default_prompt, "default_prompt")
    return None


def _check_class(service_name: str, service: ServiceConfig) -> None:
    if service.class_ not in CLIENT_CLASSES:
        valid = ", ".join(CLIENT_CLASSES)
        raise NotFoundError(f"Unknown class '{service.class_}' for service '{service_name}'. Valid classes: {valid}")


def select_service(config: ConfigModel, service_name: str | None = None, model: str | None = None,
                   prompt: str | None = None) -> Selection:
    """Resolve service, model and system prompt before any network call."""
    name, service = config.get_service(service_name)
    _check_class(name, service)
    resolved_model = model or service.model
    if not resolved_model:
        raise ConfigError(f"No model configured for service '{name}'. Set 'model' in the config or use --model.")
    system_prompt = resolve_system_prompt(config, name, service, prompt)
    return Selection(service_name=name, service=service, model=resolved_model, system_prompt=system_prompt)


def client_for_service(config: ConfigModel, service_name: str | None, settings: Optional[Settings] = None,
                       http_client: Optional[httpx.AsyncClient] = None) -> LLMClient:
    """Client for a service without choosing a model or prompt (used for listing)."""
    name, service = config.get_service(service_name)
    return create_client(name, service, settings=settings, http_client=http_client)


class AskMe:
    """One configured service, ready to answer a single prompt."""

    def __init__(self, config: ConfigModel, settings: Optional[Settings] = None, service_name: str | None = None,
                 model: str | None = None, system_prompt: str | None = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.settings = settings or Settings()
        self.selection = select_service(config, service_name, model, system_prompt)
        self.client: LLMClient = create_client(
            self.selection.service_name, self.selection.service, settings=self.settings, http_client=http_client
        )
        logger.debug(f"Using service '{self.service_name}' ({self.selection.service.class_}), model '{self.model}'")

    @property
    def service_name(self) -> str:
        return self.selection.service_name

    @property
    def model(self) -> str:
        return self.selection.model

    @property
    def system_prompt(self) -> str | None:
        return self.selection.system_prompt

    def build_request(self, user_message: str, stream: bool = True, suppress_reasoning: bool = False) -> Request:
        return Request(
            model=self.model,
            user_message=user_message,
            system_prompt=self.system_prompt,
            stream=stream,
            suppress_reasoning=suppress_reasoning,
        )

    async def ask(self, user_message: str, stream: bool = True, suppress_reasoning: bool = False,
                  on_token: Optional[Callable[[Token], None]] = None) -> ProcessedResponse:
        """Send the prompt and process the reply.

        ``on_token`` is called with every kept token as soon as it is
        available, which lets the caller print a streamed reply live.
        """
        request = self.build_request(user_message, stream=stream, suppress_reasoning=suppress_reasoning)
        processor = ResponseProcessor(suppress_reasoning=suppress_reasoning)
        if not request.stream:
            response = await self.client.complete(request)
            return processor.consume_final(response, on_token=on_token)
        tokens = self.client.stream(request)
        try:
            return await processor.consume(tokens, on_token=on_token)
        finally:
            await tokens.aclose()

    async def list_models(self) -> List[ModelInfo]:
        return await list_service_models(self.client)
