"""Splitting of inline ``<think>...</think>`` reasoning out of answer text.

Some models served through OpenAI-compatible or Ollama endpoints emit their
reasoning inline, wrapped in tags, instead of in a dedicated field. The tags
can be split across stream fragments, so text that could be the start of a
tag is held back until the next fragment decides it.
"""

from typing import List

from ..models.request import Token

OPEN_TAG = "<think>"
CLOSE_TAG = "</think>"


def _partial_tag_suffix(text: str, tag: str) -> int:
    """Length of the longest suffix of ``text`` that is a proper prefix of ``tag``."""
    for size in range(min(len(tag) - 1, len(text)), 0, -1):
        if text.endswith(tag[:size]):
            return size
    return 0


class ThinkTagSplitter:
    """Turns answer text containing think tags into answer and reasoning tokens."""

    def __init__(self):
        self._pending = ""
        self._in_think = False

    def feed(self, text: str) -> List[Token]:
        self._pending += text
        tokens: List[Token] = []
        while self._pending:
            tag = CLOSE_TAG if self._in_think else OPEN_TAG
            index = self._pending.find(tag)
            if index >= 0:
                self._emit(tokens, self._pending[:index])
                self._pending = self._pending[index + len(tag):]
                self._in_think = not self._in_think
                continue
            keep = _partial_tag_suffix(self._pending, tag)
            cut = len(self._pending) - keep
            self._emit(tokens, self._pending[:cut])
            self._pending = self._pending[cut:]
            break
        return tokens

    def flush(self) -> List[Token]:
        tokens: List[Token] = []
        self._emit(tokens, self._pending)
        self._pending = ""
        return tokens

    def _emit(self, tokens: List[Token], text: str) -> None:
        if not text:
            return
        tokens.append(Token.reasoning(text) if self._in_think else Token.answer(text))


def split_think_tags(text: str) -> tuple[str, str | None]:
    """Split a complete reply into ``(answer, reasoning)``."""
    splitter = ThinkTagSplitter()
    tokens = splitter.feed(text) + splitter.flush()
    answer = "".join(t.text for t in tokens if not t.is_reasoning)
    reasoning = "".join(t.text for t in tokens if t.is_reasoning)
    if not reasoning:
        return text, None
    return answer.strip(), reasoning.strip()
