from .decoders import (
    AnthropicStreamDecoder,
    GeminiStreamDecoder,
    NDJSONDecoder,
    OllamaStreamDecoder,
    OpenAIStreamDecoder,
    SSEDecoder,
    StreamDecoder,
    decode_stream,
)
from .think import ThinkTagSplitter, split_think_tags

__all__ = [
    'StreamDecoder', 'SSEDecoder', 'NDJSONDecoder',
    'OpenAIStreamDecoder', 'OllamaStreamDecoder', 'GeminiStreamDecoder', 'AnthropicStreamDecoder',
    'decode_stream', 'ThinkTagSplitter', 'split_think_tags',
]
