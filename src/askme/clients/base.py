import json
import logging
import os
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional

import httpx

from ..errors import (
    AuthError,
    ProtocolError,
    ProviderError,
    ProviderNotFoundError,
    RateLimitedError,
    TransportError,
    UnsupportedError,
)
from ..models.request import FinalResponse, ModelInfo, Request, Token
from ..streaming.decoders import StreamDecoder, decode_stream
from ..streaming.think import ThinkTagSplitter, split_think_tags
from ..utils.config import ServiceConfig, Settings

logger = logging.getLogger(__name__)


class LLMClient(ABC):
    """Abstract base class for provider clients.

    A client is built from one configured service. Subclasses describe their
    wire format (endpoints, headers, payload, response schema and stream
    decoder); this class owns the HTTP exchange and error mapping.
    """
    CLASS_NAME: str = ""
    DEFAULT_URL: Optional[str] = None
    FIXED_URL: Optional[str] = None
    API_KEY_ENV_VARS: tuple[str, ...] = ()
    REQUIRES_API_KEY = False
    SPLIT_THINK_TAGS = True
    SUPPORTS_MODEL_LISTING = True

    def __init__(self, name: str, service: ServiceConfig, settings: Optional[Settings] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.name = name
        self.service = service
        self.settings = settings or Settings()
        self._http_client = http_client
        self.api_key = service.api_key or self._get_api_key()
        if self.FIXED_URL is not None:
            if service.url:
                logger.debug(f"Service '{name}' ({self.CLASS_NAME}) ignores configured url {service.url}")
            self.base_url = self.FIXED_URL
        else:
            self.base_url = (service.url or self.DEFAULT_URL or "").rstrip('/')
        if self._api_key_required() and not self.api_key:
            raise self._error(AuthError, f"API key required for {self.CLASS_NAME} service '{name}'. "
                              f"Set 'api_key' in the config or {' / '.join(self.API_KEY_ENV_VARS)}.")

    def _get_api_key(self) -> str | None:
        for var in self.API_KEY_ENV_VARS:
            value = os.getenv(var)
            if value:
                return value
        return None

    def _api_key_required(self) -> bool:
        return self.REQUIRES_API_KEY

    # ---- Wire format hooks ----

    @abstractmethod
    def _chat_url(self, request: Request) -> str:
        ...

    def _stream_url(self, request: Request) -> str:
        return self._chat_url(request)

    @abstractmethod
    def _headers(self) -> dict:
        ...

    @abstractmethod
    def _build_payload(self, request: Request, stream: bool) -> dict:
        ...

    @abstractmethod
    def _parse_response(self, data: dict) -> FinalResponse:
        """Decode a non-streamed reply. Raise KeyError/TypeError/ValueError on schema mismatch."""

    @abstractmethod
    def create_decoder(self) -> StreamDecoder:
        ...

    def _models_url(self) -> str:
        raise UnsupportedError("Model listing is not supported")

    def _parse_models(self, data: dict) -> List[ModelInfo]:
        raise UnsupportedError("Model listing is not supported")

    # ---- Operations ----

    async def complete(self, request: Request) -> FinalResponse:
        """Send ``request`` and return the whole reply."""
        payload = self._build_payload(request, stream=False)
        url = self._chat_url(request)
        self._log_request(url, payload)
        async with self._session() as http:
            try:
                response = await http.post(url, json=payload, headers=self._headers())
            except httpx.RequestError as e:
                raise self._transport_error(e) from e
            self._raise_for_status(response)
            data = self._json_body(response)
        result = self._parse_with(self._parse_response, data)
        if self.SPLIT_THINK_TAGS and not result.reasoning:
            text, reasoning = split_think_tags(result.text)
            result = FinalResponse(text=text, reasoning=reasoning)
        return result

    async def stream(self, request: Request) -> AsyncIterator[Token]:
        """Send ``request`` and yield tokens as they arrive, ending with a final token.

        Closing the generator early closes the underlying connection.
        """
        payload = self._build_payload(request, stream=True)
        url = self._stream_url(request)
        self._log_request(url, payload)
        splitter = ThinkTagSplitter() if self.SPLIT_THINK_TAGS else None
        async with self._session() as http:
            try:
                async with http.stream("POST", url, json=payload, headers=self._headers()) as response:
                    if response.is_error:
                        await response.aread()
                        self._raise_for_status(response)
                    async for token in decode_stream(self.create_decoder(), response.aiter_bytes()):
                        if splitter is None or token.is_reasoning:
                            yield token
                        elif token.is_final:
                            for pending in splitter.flush():
                                yield pending
                            yield token
                        else:
                            for split in splitter.feed(token.text):
                                yield split
            except httpx.RequestError as e:
                raise self._transport_error(e) from e
            except ProviderError as e:
                raise e.with_context(self.name, self.CLASS_NAME)

    async def list_models(self) -> List[ModelInfo]:
        """Return the models the service offers."""
        if not self.SUPPORTS_MODEL_LISTING or not self.service.list_models:
            raise self._error(UnsupportedError, "Model listing is not supported by this service")
        url = self._models_url()
        async with self._session() as http:
            try:
                response = await http.get(url, headers=self._headers())
            except httpx.RequestError as e:
                raise self._transport_error(e) from e
            if response.status_code in (404, 405, 501):
                raise self._error(UnsupportedError, f"Endpoint {url} does not offer model listing "
                                                    f"(HTTP {response.status_code})")
            self._raise_for_status(response)
            data = self._json_body(response)
            models = self._parse_with(self._parse_models, data)
            next_url = self._next_models_url(data)
            while next_url:
                try:
                    response = await http.get(next_url, headers=self._headers())
                except httpx.RequestError as e:
                    raise self._transport_error(e) from e
                self._raise_for_status(response)
                data = self._json_body(response)
                models.extend(self._parse_with(self._parse_models, data))
                next_url = self._next_models_url(data)
        return models

    def _next_models_url(self, data: dict) -> str | None:
        return None

    def _parse_with(self, parser, data: Any):
        try:
            return parser(data)
        except ProviderError as e:
            raise e.with_context(self.name, self.CLASS_NAME)
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise self._error(ProtocolError, f"Unexpected response format: {e!r}") from e

    # ---- HTTP helpers ----

    @asynccontextmanager
    async def _session(self):
        if self._http_client is not None:
            yield self._http_client
            return
        timeout = httpx.Timeout(self.settings.REQUEST_TIMEOUT, connect=self.settings.CONNECT_TIMEOUT)
        async with httpx.AsyncClient(timeout=timeout) as http:
            yield http

    def _raise_for_status(self, response: httpx.Response) -> None:
        if not response.is_error:
            return
        status = response.status_code
        detail = self._error_detail(response)
        error_cls = self._classify_error(status, self._error_body(response))
        if error_cls is AuthError:
            message = f"Authentication failed (HTTP {status}): {detail}"
        elif error_cls is ProviderNotFoundError:
            message = f"Model or endpoint not found (HTTP {status}): {detail}"
        elif error_cls is RateLimitedError:
            message = f"Rate limited (HTTP {status}): {detail}"
        else:
            message = f"{self.CLASS_NAME} API error: HTTP {status}: {detail}"
        raise self._error(error_cls, message, status)

    def _classify_error(self, status: int, error: dict) -> type[ProviderError]:
        """Pick the error class for a failed HTTP exchange.

        ``error`` is the ``error`` object of the JSON body, or an empty dict.
        Providers that report failures with unusual status codes override this.
        """
        if status in (401, 403):
            return AuthError
        if status == 404:
            return ProviderNotFoundError
        if status == 429:
            return RateLimitedError
        return ProviderError

    @staticmethod
    def _error_body(response: httpx.Response) -> dict:
        try:
            body = json.loads(response.text)
        except ValueError:
            return {}
        error = body.get("error") if isinstance(body, dict) else None
        return error if isinstance(error, dict) else {}

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        text = response.text
        try:
            body = json.loads(text)
        except ValueError:
            return text.strip()[:500] or response.reason_phrase
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
        return text.strip()[:500]

    def _json_body(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise self._error(ProtocolError, f"Response is not valid JSON: {e}") from e

    def _error(self, error_cls, message: str, status_code: int | None = None) -> ProviderError:
        return error_cls(message, service=self.name, provider_class=self.CLASS_NAME, status_code=status_code)

    def _transport_error(self, exc: httpx.RequestError) -> TransportError:
        try:
            target = exc.request.url
        except RuntimeError:
            # the request is only attached once httpx has started sending it
            target = self.base_url
        return self._error(TransportError, f"Request to {target} failed: {exc.__class__.__name__}: {exc}")

    def _log_request(self, url: str, payload: dict) -> None:
        logger.info(f"Querying {self.CLASS_NAME} service '{self.name}': POST {url} "
                    f"(model={payload.get('model', '-')}, stream={payload.get('stream', '-')})")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"{self.CLASS_NAME} request payload: {json.dumps(payload)}")
