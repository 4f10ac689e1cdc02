import asyncio
import json

import httpx
import pytest

from askme.core import AskMe, client_for_service, resolve_system_prompt, select_service
from askme.clients import OllamaClient, OpenAIClient
from askme.errors import ConfigError, NotFoundError
from askme.models.request import Token
from askme.utils.config import ConfigModel, ServiceConfig


@pytest.fixture
def config():
    return ConfigModel(
        default_service="local",
        default_prompt="terse",
        system_prompts={"terse": "Be brief.", "poet": "Answer in verse.", "pirate": "Talk like a pirate."},
        services={
            "local": ServiceConfig(class_="ollama", model="llama3"),
            "cloud": ServiceConfig(class_="openai", model="gpt-4o-mini", api_key="sk-test",
                                   system_prompt="pirate"),
            "bare": ServiceConfig(class_="ollama"),
            "odd": ServiceConfig(class_="mistral", model="large"),
        },
    )


def test_select_default_service(config):
    selection = select_service(config)
    assert selection.service_name == "local"
    assert selection.model == "llama3"
    assert selection.system_prompt == "Be brief."


def test_select_named_service_uses_its_prompt(config):
    selection = select_service(config, service_name="cloud")
    assert selection.service_name == "cloud"
    assert selection.model == "gpt-4o-mini"
    assert selection.system_prompt == "Talk like a pirate."


def test_model_override(config):
    assert select_service(config, model="qwen3").model == "qwen3"


def test_prompt_override_by_name(config):
    assert select_service(config, prompt="poet").system_prompt == "Answer in verse."


def test_prompt_override_literal_text(config):
    selection = select_service(config, prompt="You are a test oracle.")
    assert selection.system_prompt == "You are a test oracle."


def test_no_prompt_configured():
    config = ConfigModel(default_service="s", services={"s": ServiceConfig(class_="ollama", model="m")})
    assert select_service(config).system_prompt is None


def test_unresolved_service_prompt_is_config_error():
    config = ConfigModel(
        default_service="s",
        services={"s": ServiceConfig(class_="ollama", model="m", system_prompt="gone")},
    )
    with pytest.raises(ConfigError, match="Service 's' references unknown system prompt 'gone'"):
        select_service(config)


def test_unresolved_service_prompt_is_ignored_with_override():
    config = ConfigModel(
        default_service="s",
        services={"s": ServiceConfig(class_="ollama", model="m", system_prompt="gone")},
    )
    assert select_service(config, prompt="literal").system_prompt == "literal"


def test_missing_model_is_config_error(config):
    with pytest.raises(ConfigError, match="No model configured for service 'bare'"):
        select_service(config, service_name="bare")
    assert select_service(config, service_name="bare", model="llama3").model == "llama3"


def test_unknown_service(config):
    with pytest.raises(NotFoundError, match="Service 'nope' not found"):
        select_service(config, service_name="nope")


def test_unknown_class(config):
    with pytest.raises(NotFoundError, match="Unknown class 'mistral'"):
        select_service(config, service_name="odd")


def test_resolve_system_prompt_default_prompt(config):
    _, service = config.get_service("local")
    assert resolve_system_prompt(config, "local", service) == "Be brief."


def test_client_for_service_needs_no_model(config):
    client = client_for_service(config, "bare")
    assert isinstance(client, OllamaClient)
    assert client.name == "bare"


def test_askme_builds_client_for_selection(config, settings):
    askme = AskMe(config, settings=settings, service_name="cloud")
    assert isinstance(askme.client, OpenAIClient)
    request = askme.build_request("hello", stream=False, suppress_reasoning=True)
    assert request.model == "gpt-4o-mini"
    assert request.system_prompt == "Talk like a pirate."
    assert request.user_message == "hello"
    assert request.stream is False
    assert request.suppress_reasoning is True


def _ollama_stream_handler(seen):
    lines = [
        {"message": {"role": "assistant", "content": "", "thinking": "Let me think."}, "done": False},
        {"message": {"role": "assistant", "content": "Hello"}, "done": False},
        {"message": {"role": "assistant", "content": " there"}, "done": False},
        {"message": {"role": "assistant", "content": ""}, "done": True},
    ]
    body = "".join(json.dumps(line) + "\n" for line in lines).encode()

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, content=body)
    return handler


def test_ask_streams_through_selected_service(config, settings, mock_http):
    """Config selection, request construction and streaming end to end."""
    seen = []
    askme = AskMe(config, settings=settings, model="qwen3", http_client=mock_http(_ollama_stream_handler(seen)))
    emitted = []
    result = asyncio.run(askme.ask("Say hello", on_token=emitted.append))

    assert result.answer == "Hello there"
    assert result.reasoning == "Let me think."
    assert seen[0]["model"] == "qwen3"
    assert seen[0]["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Say hello"},
    ]
    assert emitted == [Token.reasoning("Let me think."), Token.answer("Hello"), Token.answer(" there")]


def test_ask_suppresses_reasoning(config, settings, mock_http):
    askme = AskMe(config, settings=settings, http_client=mock_http(_ollama_stream_handler([])))
    emitted = []
    result = asyncio.run(askme.ask("Say hello", suppress_reasoning=True, on_token=emitted.append))
    assert result.answer == "Hello there"
    assert result.reasoning is None
    assert all(not token.is_reasoning for token in emitted)


def test_ask_without_streaming(config, settings, mock_http):
    def handler(request):
        body = json.loads(request.content)
        assert body["stream"] is False
        return httpx.Response(200, json={"message": {"role": "assistant", "content": "<think>hmm</think>Done."}})

    askme = AskMe(config, settings=settings, http_client=mock_http(handler))
    emitted = []
    result = asyncio.run(askme.ask("Go", stream=False, on_token=emitted.append))
    assert result.answer == "Done."
    assert result.reasoning == "hmm"
    assert emitted == [Token.reasoning("hmm"), Token.answer("Done.")]
