"""Incremental decoders for provider streaming responses.

A decoder is fed raw byte chunks exactly as they come off the socket and
returns the canonical tokens contained in every event completed so far.
Bytes are held back until a full line is available, so an event is never
decoded from a fragment: a chunk boundary inside a multi-byte character or
inside a JSON object only delays decoding until the rest arrives. A newline
byte never occurs inside a multi-byte UTF-8 sequence, which makes splitting
on it before decoding safe.

Two framings are supported: Server-Sent Events (OpenAI, Gemini, Anthropic)
and one JSON object per line (Ollama).
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterable, AsyncIterator, List

from ..errors import (
    AuthError,
    ProtocolError,
    ProviderError,
    ProviderNotFoundError,
    RateLimitedError,
)
from ..models.request import Token

logger = logging.getLogger(__name__)


class MalformedEvent(ValueError):
    """An event that cannot be decoded; it is skipped."""


class StreamDecoder(ABC):
    """Base class: line buffering, end-of-stream and corruption policy."""

    def __init__(self):
        self._buffer = b""
        self.finished = False
        self.valid_events = 0
        self.skipped_events = 0

    def feed(self, chunk: bytes) -> List[Token]:
        """Add a chunk and return the tokens of every completed event."""
        if not chunk or self.finished:
            return []
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b"\n")
        tokens: List[Token] = []
        for raw in lines:
            if self.finished:
                break
            tokens.extend(self._process_raw_line(raw))
        return tokens

    def finish(self) -> List[Token]:
        """Signal that the connection closed and flush what is left."""
        if self.finished:
            return []
        tokens: List[Token] = []
        if self._buffer:
            raw, self._buffer = self._buffer, b""
            tokens.extend(self._process_raw_line(raw))
        if not self.finished:
            tokens.extend(self._flush())
        if not self.finished:
            self._check_valid_events()
            logger.warning("Stream closed without an end-of-stream marker; the reply may be truncated")
            tokens.append(self._end())
        return tokens

    def _process_raw_line(self, raw: bytes) -> List[Token]:
        try:
            line = raw.rstrip(b"\r").decode("utf-8")
        except UnicodeDecodeError as e:
            self._skip(f"invalid UTF-8 in stream line: {e}")
            return []
        return self._process_line(line)

    @abstractmethod
    def _process_line(self, line: str) -> List[Token]:
        ...

    def _flush(self) -> List[Token]:
        return []

    def _skip(self, reason: str) -> None:
        self.skipped_events += 1
        logger.debug(f"Skipping malformed stream event: {reason}")

    def _check_valid_events(self) -> None:
        if not self.valid_events:
            self.finished = True
            detail = f" ({self.skipped_events} malformed events skipped)" if self.skipped_events else ""
            raise ProtocolError(f"Stream ended without any valid event{detail}")

    def _end(self) -> Token:
        self._check_valid_events()
        self.finished = True
        return Token.final()

    def _load_json(self, data: str) -> Any:
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            raise MalformedEvent(f"invalid JSON: {e}") from e

    def _decode_event(self, handler, *args) -> List[Token]:
        """Run ``handler`` on one event, applying the skip-and-continue policy."""
        try:
            tokens = handler(*args)
        except MalformedEvent as e:
            self._skip(str(e))
            return []
        except (AttributeError, TypeError) as e:
            # a field with an unexpected type somewhere inside the event
            self._skip(f"unexpected event shape: {e}")
            return []
        return tokens


class SSEDecoder(StreamDecoder):
    """Server-Sent Events framing: ``event:``/``data:`` fields, blank-line dispatch."""

    def __init__(self):
        super().__init__()
        self._event_name: str | None = None
        self._data_lines: List[str] = []

    def _process_line(self, line: str) -> List[Token]:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            # comment, used as keep-alive
            return []
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            self._event_name = value
        elif field == "data":
            self._data_lines.append(value)
        return []

    def _flush(self) -> List[Token]:
        return self._dispatch()

    def _dispatch(self) -> List[Token]:
        if not self._data_lines:
            self._event_name = None
            return []
        event_name, data = self._event_name, "\n".join(self._data_lines)
        self._event_name, self._data_lines = None, []
        return self._decode_event(self._handle_event, event_name, data)

    @abstractmethod
    def _handle_event(self, event_name: str | None, data: str) -> List[Token]:
        ...


class NDJSONDecoder(StreamDecoder):
    """One JSON object per line."""

    def _process_line(self, line: str) -> List[Token]:
        if not line.strip():
            return []
        return self._decode_event(self._handle_line, line)

    def _handle_line(self, line: str) -> List[Token]:
        obj = self._load_json(line)
        if not isinstance(obj, dict):
            raise MalformedEvent("expected a JSON object")
        return self._handle_object(obj)

    @abstractmethod
    def _handle_object(self, obj: dict) -> List[Token]:
        ...


def error_from_payload(message: str, error_type: str | None = None) -> ProviderError:
    """Map an error reported inside a response body to the error taxonomy."""
    kind = (error_type or "").lower()
    text = message.lower()
    if "auth" in kind or "permission" in kind or "api key" in text:
        return AuthError(message)
    if "rate_limit" in kind or "resource_exhausted" in kind or "rate limit" in text:
        return RateLimitedError(message)
    if "not_found" in kind or "not found" in text:
        return ProviderNotFoundError(message)
    return ProviderError(message)


def _error_details(err: Any) -> tuple[str, str | None]:
    if isinstance(err, dict):
        message = err.get("message") or json.dumps(err)
        error_type = err.get("type") or err.get("status") or err.get("code")
        return str(message), str(error_type) if error_type is not None else None
    return str(err), None


class OpenAIStreamDecoder(SSEDecoder):
    """Chat completion chunks, terminated by ``data: [DONE]``."""

    DONE = "[DONE]"

    def _handle_event(self, event_name: str | None, data: str) -> List[Token]:
        if data.strip() == self.DONE:
            return [self._end()]
        chunk = self._load_json(data)
        if not isinstance(chunk, dict):
            raise MalformedEvent("expected a JSON object")
        if "error" in chunk:
            raise error_from_payload(*_error_details(chunk["error"]))
        choices = chunk.get("choices")
        if not isinstance(choices, list):
            raise MalformedEvent("chunk has no 'choices' list")
        self.valid_events += 1
        tokens: List[Token] = []
        for choice in choices:
            delta = choice.get("delta") if isinstance(choice, dict) else None
            if not isinstance(delta, dict):
                continue
            reasoning = delta.get("reasoning_content") or delta.get("reasoning")
            if isinstance(reasoning, str) and reasoning:
                tokens.append(Token.reasoning(reasoning))
            content = delta.get("content")
            if isinstance(content, str) and content:
                tokens.append(Token.answer(content))
        return tokens


class OllamaStreamDecoder(NDJSONDecoder):
    """Ollama /api/chat lines; the line with ``done: true`` ends the stream."""

    def _handle_object(self, obj: dict) -> List[Token]:
        if "error" in obj:
            raise error_from_payload(*_error_details(obj["error"]))
        message = obj.get("message")
        if message is None and "done" not in obj:
            raise MalformedEvent("line has neither 'message' nor 'done'")
        if message is not None and not isinstance(message, dict):
            raise MalformedEvent("'message' is not an object")
        self.valid_events += 1
        tokens: List[Token] = []
        if message:
            thinking = message.get("thinking")
            if isinstance(thinking, str) and thinking:
                tokens.append(Token.reasoning(thinking))
            content = message.get("content")
            if isinstance(content, str) and content:
                tokens.append(Token.answer(content))
        if obj.get("done") is True:
            tokens.append(self._end())
        return tokens


class GeminiStreamDecoder(SSEDecoder):
    """streamGenerateContent with ``alt=sse``.

    Gemini has no terminating event; the chunk whose candidate carries a
    ``finishReason`` is the last one.
    """

    def _handle_event(self, event_name: str | None, data: str) -> List[Token]:
        chunk = self._load_json(data)
        if not isinstance(chunk, dict):
            raise MalformedEvent("expected a JSON object")
        if "error" in chunk:
            raise error_from_payload(*_error_details(chunk["error"]))
        candidates = chunk.get("candidates")
        if candidates is None:
            block_reason = (chunk.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise ProviderError(f"Prompt blocked by Gemini: {block_reason}")
            if "usageMetadata" in chunk:
                self.valid_events += 1
                return []
            raise MalformedEvent("chunk has no 'candidates'")
        if not isinstance(candidates, list):
            raise MalformedEvent("'candidates' is not a list")
        tokens: List[Token] = []
        finished = False
        if candidates:
            candidate = candidates[0]
            parts = (candidate.get("content") or {}).get("parts") or []
            for part in parts:
                text = part.get("text") if isinstance(part, dict) else None
                if isinstance(text, str) and text:
                    tokens.append(Token.answer(text))
            finished = bool(candidate.get("finishReason"))
        self.valid_events += 1
        if finished:
            tokens.append(self._end())
        return tokens


class AnthropicStreamDecoder(SSEDecoder):
    """Messages API event stream, terminated by ``message_stop``."""

    IGNORED_EVENTS = {"message_start", "content_block_stop", "message_delta", "ping"}

    def _handle_event(self, event_name: str | None, data: str) -> List[Token]:
        event = self._load_json(data)
        if not isinstance(event, dict):
            raise MalformedEvent("expected a JSON object")
        event_type = event.get("type") or event_name
        if event_type == "error":
            raise error_from_payload(*_error_details(event.get("error")))
        if event_type == "message_stop":
            self.valid_events += 1
            return [self._end()]
        if event_type in self.IGNORED_EVENTS:
            self.valid_events += 1
            return []
        if event_type == "content_block_start":
            block = event.get("content_block")
            if not isinstance(block, dict):
                raise MalformedEvent("content_block_start without 'content_block'")
            self.valid_events += 1
            return self._block_tokens(block.get("type"), block.get("text") or block.get("thinking"))
        if event_type == "content_block_delta":
            delta = event.get("delta")
            if not isinstance(delta, dict):
                raise MalformedEvent("content_block_delta without 'delta'")
            self.valid_events += 1
            delta_type = delta.get("type")
            if delta_type == "text_delta":
                return self._block_tokens("text", delta.get("text"))
            if delta_type == "thinking_delta":
                return self._block_tokens("thinking", delta.get("thinking"))
            return []
        raise MalformedEvent(f"unknown event type {event_type!r}")

    @staticmethod
    def _block_tokens(block_type: str | None, text: Any) -> List[Token]:
        if not isinstance(text, str) or not text:
            return []
        if block_type == "thinking":
            return [Token.reasoning(text)]
        if block_type == "text":
            return [Token.answer(text)]
        return []


async def decode_stream(decoder: StreamDecoder, chunks: AsyncIterable[bytes]) -> AsyncIterator[Token]:
    """Feed ``chunks`` through ``decoder``, stopping after the final token."""
    async for chunk in chunks:
        for token in decoder.feed(chunk):
            yield token
            if token.is_final:
                return
    for token in decoder.finish():
        yield token
