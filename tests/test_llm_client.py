import json
import logging

import httpx
import pytest
import respx

from convo.core.settings import Settings
from convo.llm.client import ChatModelClient, ModelUnavailableError, ProviderConnectionError
from convo.models.schemas import Message, ValidationReason

BASE_URL = "http://provider.test/v1"


def _settings(**overrides):
    values = dict(
        base_url=BASE_URL,
        api_key="sk-test",
        model="test-model",
        fallback_model="fallback-model",
        timeout_sec=5,
        max_history_length=5,
    )
    values.update(overrides)
    return Settings(**values)


def _models(*names):
    return httpx.Response(200, json={"object": "list", "data": [{"id": name, "object": "model"} for name in names]})


def _completion(message):
    return httpx.Response(200, json={"id": "chatcmpl-1", "choices": [{"index": 0, "message": message, "finish_reason": "stop"}]})


@pytest.fixture
def client():
    model_client = ChatModelClient(settings=_settings())
    yield model_client
    model_client.close()


@respx.mock
def test_detect_configured_model(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("other", "test-model"))

    detection = client.detect_model()

    assert detection.provider_up is True
    assert detection.model_available is True
    assert detection.selected_model == "test-model"
    assert detection.fallback_used is False
    assert "configured model" in detection.reason


@respx.mock
def test_detect_fallback_model(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("fallback-model"))

    detection = client.detect_model()

    assert detection.selected_model == "fallback-model"
    assert detection.fallback_used is True


@respx.mock
def test_detect_first_listed_model_when_nothing_configured_is_served(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("qwen2.5-7b-instruct", "llama-3.1-8b"))

    detection = client.detect_model()

    assert detection.selected_model == "qwen2.5-7b-instruct"
    assert detection.fallback_used is True


@respx.mock
def test_detect_no_models(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models())

    detection = client.detect_model()

    assert detection.provider_up is True
    assert detection.model_available is False
    assert detection.selected_model is None
    assert "serves no models" in detection.reason


@respx.mock
def test_detect_provider_down(client):
    respx.get(f"{BASE_URL}/models").mock(side_effect=httpx.ConnectError("Connection refused"))

    detection = client.detect_model()

    assert detection.provider_up is False
    assert detection.model_available is False
    assert "Could not connect to chat provider" in detection.reason


@respx.mock
def test_chat_sends_history_and_records_reply(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("test-model"))
    route = respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=_completion({"role": "assistant", "content": "Hello, how can I help you?"})
    )

    result = client.chat(
        "s1",
        [Message(role="system", content="Be brief."), Message(role="user", content="Hi")],
    )

    assert result.message == Message(role="assistant", content="Hello, how can I help you?")
    assert result.added.admitted == 2
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "test-model"
    assert body["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Hi"},
    ]
    assert [m.role for m in client.store.get("s1")] == ["system", "user", "assistant"]


@respx.mock
def test_chat_sends_trimmed_history_with_anchor(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("test-model"))
    route = respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=_completion({"role": "assistant", "content": "ok"})
    )
    client.store.add("long", Message(role="system", content="rules"))

    for i in range(6):
        client.chat("long", [Message(role="user", content=f"question {i}")])

    body = json.loads(route.calls.last.request.content)
    assert len(body["messages"]) == 5
    assert body["messages"][0] == {"role": "system", "content": "rules"}
    assert body["messages"][-1] == {"role": "user", "content": "question 5"}
    assert len(client.store.get("long")) == 5


@respx.mock
def test_chat_skips_invalid_inbound_messages(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("test-model"))
    route = respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=_completion({"role": "assistant", "content": "ok"})
    )

    result = client.chat("s2", [Message(role="tool", content="orphan"), Message(role="user", content="Hi")])

    assert result.added.admitted == 1
    assert result.added.skipped[0].reason == ValidationReason.MISSING_TOOL_CALL_ID
    body = json.loads(route.calls.last.request.content)
    assert body["messages"] == [{"role": "user", "content": "Hi"}]


@respx.mock
def test_chat_records_tool_call_reply(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("test-model"))
    respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=_completion(
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [{"id": "call_1", "type": "function", "function": {"name": "get_time", "arguments": ""}}],
            }
        )
    )

    result = client.chat("tools", [Message(role="user", content="What time is it?")])

    assert result.message.tool_calls[0].function.name == "get_time"
    stored = client.store.get("tools")[-1]
    assert stored.tool_calls[0].id == "call_1"


@respx.mock
def test_chat_connection_error(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("test-model"))
    respx.post(f"{BASE_URL}/chat/completions").mock(side_effect=httpx.ConnectError("Connection refused"))

    with pytest.raises(ProviderConnectionError, match="Could not connect to chat provider"):
        client.chat("s3", [Message(role="user", content="Hi")])


@respx.mock
def test_chat_timeout_error(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("test-model"))
    respx.post(f"{BASE_URL}/chat/completions").mock(side_effect=httpx.TimeoutException("Timeout"))

    with pytest.raises(ProviderConnectionError, match="timed out"):
        client.chat("s4", [Message(role="user", content="Hi")])


@respx.mock
def test_chat_http_error(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("test-model"))
    respx.post(f"{BASE_URL}/chat/completions").mock(return_value=httpx.Response(500, text="boom"))

    with pytest.raises(ProviderConnectionError, match="HTTP error: 500"):
        client.chat("s5", [Message(role="user", content="Hi")])


@respx.mock
def test_chat_unexpected_response_format(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("test-model"))
    respx.post(f"{BASE_URL}/chat/completions").mock(return_value=httpx.Response(200, json={"choices": []}))

    with pytest.raises(ProviderConnectionError, match="Unexpected response format"):
        client.chat("s6", [Message(role="user", content="Hi")])


@respx.mock
def test_chat_without_available_model_leaves_history_untouched(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models())

    with pytest.raises(ModelUnavailableError):
        client.chat("s7", [Message(role="user", content="Hi")])

    assert client.store.get("s7") == []


@respx.mock
def test_chat_with_provider_down_raises_connection_error(client):
    respx.get(f"{BASE_URL}/models").mock(side_effect=httpx.ConnectError("Connection refused"))

    with pytest.raises(ProviderConnectionError):
        client.chat("s8", [Message(role="user", content="Hi")])


def test_no_authorization_header_without_api_key():
    model_client = ChatModelClient(settings=_settings(api_key=None))

    assert "Authorization" not in model_client.client.headers
    model_client.close()


def test_store_uses_configured_history_length():
    model_client = ChatModelClient(settings=_settings(max_history_length=0))

    assert model_client.store.max_history_length == 0
    model_client.close()


@respx.mock
def test_chat_non_object_body_is_a_provider_error(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("test-model"))
    respx.post(f"{BASE_URL}/chat/completions").mock(return_value=httpx.Response(200, json=[1, 2]))

    with pytest.raises(ProviderConnectionError, match="Unexpected response format"):
        client.chat("s9", [Message(role="user", content="Hi")])


@respx.mock
def test_detect_non_object_models_body(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=httpx.Response(200, json=["test-model"]))

    detection = client.detect_model()

    assert detection.provider_up is True
    assert detection.model_available is False
    assert detection.selected_model is None


@respx.mock
def test_detect_reason_names_listed_models(client):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("a", "b", "fallback-model"))

    detection = client.detect_model()

    assert "3 model(s) listed" in detection.reason
    assert "'test-model' not listed" in detection.reason


@respx.mock
def test_chat_invalid_reply_is_not_returned_without_being_recorded(client, caplog):
    respx.get(f"{BASE_URL}/models").mock(return_value=_models("test-model"))
    respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=_completion(
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [{"type": "function", "function": {"name": "get_time", "arguments": ""}}],
            }
        )
    )

    with caplog.at_level(logging.ERROR, logger="convo.llm.client"):
        with pytest.raises(ProviderConnectionError, match="tool call at index 0 must have an ID"):
            client.chat("s10", [Message(role="user", content="What time is it?")])

    assert [m.role for m in client.store.get("s10")] == ["user"]
    assert any("was not recorded" in r.getMessage() for r in caplog.records)
