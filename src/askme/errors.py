"""Error types raised by askme.

Everything the tool reports to the user derives from ``AskmeError``. Provider
failures carry the service name and class so a message can be diagnosed
without rerunning the request.
"""


class AskmeError(Exception):
    """Base class for all errors reported by askme."""


class ConfigError(AskmeError):
    """Missing or malformed configuration, or an unresolved reference."""


class NotFoundError(AskmeError):
    """Unknown service, model, class or endpoint."""


class ExtractionError(AskmeError):
    """No JSON payload could be extracted from a reply."""


class ProviderError(AskmeError):
    """A provider call failed."""

    def __init__(self, message: str, service: str | None = None, provider_class: str | None = None,
                 status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.service = service
        self.provider_class = provider_class
        self.status_code = status_code

    def with_context(self, service: str, provider_class: str) -> "ProviderError":
        """Fill in the service context if it is not already set."""
        if self.service is None:
            self.service = service
        if self.provider_class is None:
            self.provider_class = provider_class
        return self

    def __str__(self) -> str:
        if self.service and self.provider_class:
            return f"[{self.service} ({self.provider_class})] {self.message}"
        if self.service:
            return f"[{self.service}] {self.message}"
        return self.message


class AuthError(ProviderError):
    """Invalid or missing API key."""


class RateLimitedError(ProviderError):
    """The provider rejected the request because of rate limits."""


class UnsupportedError(ProviderError):
    """The provider or endpoint does not offer the requested capability."""


class TransportError(ProviderError):
    """Network or connection failure."""


class ProtocolError(ProviderError):
    """The provider response did not match the expected schema."""


# NotFound is raised both for configuration lookups and provider responses
class ProviderNotFoundError(ProviderError, NotFoundError):
    """The provider answered that the model or endpoint does not exist."""
