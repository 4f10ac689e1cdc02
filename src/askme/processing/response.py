from dataclasses import dataclass
from typing import AsyncIterable, Callable, Optional

from ..models.request import FinalResponse, Token


@dataclass
class ProcessedResponse:
    """Answer text and, unless suppressed, the reasoning that came with it."""
    answer: str
    reasoning: str | None = None


def tokens_from_response(response: FinalResponse) -> list[Token]:
    tokens = []
    if response.reasoning:
        tokens.append(Token.reasoning(response.reasoning))
    if response.text:
        tokens.append(Token.answer(response.text))
    tokens.append(Token.final())
    return tokens


class ResponseProcessor:
    """Accumulates a token sequence into answer and reasoning text.

    With ``suppress_reasoning`` set, reasoning tokens are dropped before
    accumulation and never reach the caller.
    """

    def __init__(self, suppress_reasoning: bool = False):
        self.suppress_reasoning = suppress_reasoning
        self._answer: list[str] = []
        self._reasoning: list[str] = []
        self.finished = False

    def feed(self, token: Token) -> Optional[Token]:
        """Accumulate ``token``; return it if it was kept."""
        if token.is_final:
            self.finished = True
            return None
        if token.is_reasoning:
            if self.suppress_reasoning:
                return None
            self._reasoning.append(token.text)
        else:
            self._answer.append(token.text)
        return token

    async def consume(self, tokens: AsyncIterable[Token],
                      on_token: Optional[Callable[[Token], None]] = None) -> ProcessedResponse:
        async for token in tokens:
            kept = self.feed(token)
            if kept is not None and on_token is not None:
                on_token(kept)
        return self.result()

    def consume_final(self, response: FinalResponse,
                      on_token: Optional[Callable[[Token], None]] = None) -> ProcessedResponse:
        """Treat a non-streamed reply as a one-element token sequence."""
        for token in tokens_from_response(response):
            kept = self.feed(token)
            if kept is not None and on_token is not None:
                on_token(kept)
        return self.result()

    @property
    def answer(self) -> str:
        return "".join(self._answer)

    @property
    def reasoning(self) -> str | None:
        if self.suppress_reasoning:
            return None
        text = "".join(self._reasoning)
        return text or None

    def result(self) -> ProcessedResponse:
        return ProcessedResponse(answer=self.answer, reasoning=self.reasoning)
