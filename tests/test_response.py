import asyncio

import pytest

from askme.models.request import FinalResponse, Token
from askme.processing.response import ResponseProcessor, tokens_from_response

TOKENS = [
    Token.reasoning("first "),
    Token.answer("Hello"),
    Token.reasoning("second"),
    Token.answer(", world"),
    Token.final(),
]


async def _aiter(items):
    for item in items:
        yield item


def test_accumulates_answer_and_reasoning():
    result = asyncio.run(ResponseProcessor().consume(_aiter(TOKENS)))
    assert result.answer == "Hello, world"
    assert result.reasoning == "first second"


def test_suppressed_reasoning_never_reaches_caller():
    emitted = []
    processor = ResponseProcessor(suppress_reasoning=True)
    result = asyncio.run(processor.consume(_aiter(TOKENS), on_token=emitted.append))
    assert result.answer == "Hello, world"
    assert result.reasoning is None
    assert emitted == [Token.answer("Hello"), Token.answer(", world")]


def test_final_token_is_not_forwarded():
    emitted = []
    processor = ResponseProcessor()
    asyncio.run(processor.consume(_aiter(TOKENS), on_token=emitted.append))
    assert processor.finished
    assert not any(token.is_final for token in emitted)


def test_no_reasoning_gives_none():
    processor = ResponseProcessor()
    processor.feed(Token.answer("only"))
    assert processor.result().reasoning is None


@pytest.mark.parametrize("suppress,expected_reasoning", [(False, "why"), (True, None)])
def test_consume_final(suppress, expected_reasoning):
    result = ResponseProcessor(suppress_reasoning=suppress).consume_final(FinalResponse("because", "why"))
    assert result.answer == "because"
    assert result.reasoning == expected_reasoning


def test_tokens_from_response():
    assert tokens_from_response(FinalResponse("text")) == [Token.answer("text"), Token.final()]
    assert tokens_from_response(FinalResponse("", "r")) == [Token.reasoning("r"), Token.final()]
