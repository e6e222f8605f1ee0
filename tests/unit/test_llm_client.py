"""
Unit tests for the chat-completions client.
"""

import pytest
import requests
from unittest.mock import Mock
from services.orchestrator.infra.llm_client import HttpLLMClient
from shared.exceptions import NodeExecutionError


def make_client(body=None, error=None):
    session = Mock()
    if error is not None:
        session.post.side_effect = error
    else:
        session.post.return_value.json.return_value = body
    client = HttpLLMClient(api_url="https://llm.example.com/v1/chat", api_key="secret",
                           default_model="default-model", timeout_seconds=3, session=session)
    return client, session


def test_chat_builds_payload_and_reads_usage():
    client, session = make_client({
        "model": "m-1",
        "choices": [{"message": {"content": "hello"}}],
        "usage": {"total_tokens": 42},
    })

    response = client.chat([{"role": "user", "content": "hi"}], {"temperature": 0.2, "maxTokens": 10})

    assert response.text == "hello"
    assert response.tokens_used == 42
    assert response.model == "m-1"
    kwargs = session.post.call_args[1]
    assert kwargs["json"] == {
        "model": "default-model",
        "messages": [{"role": "user", "content": "hi"}],
        "temperature": 0.2,
        "max_tokens": 10,
    }
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["timeout"] == 3


def test_generate_text_wraps_prompt():
    client, session = make_client({"choices": [{"message": {"content": "ok"}}]})

    response = client.generate_text("say ok", {"model": "other"})

    assert response.text == "ok"
    assert response.tokens_used == 0
    payload = session.post.call_args[1]["json"]
    assert payload["model"] == "other"
    assert payload["messages"] == [{"role": "user", "content": "say ok"}]


def test_timeout_maps_to_node_error():
    client, _ = make_client(error=requests.exceptions.Timeout())

    with pytest.raises(NodeExecutionError, match="timed out"):
        client.chat([{"role": "user", "content": "hi"}])


def test_request_failure_maps_to_node_error():
    client, _ = make_client(error=requests.exceptions.ConnectionError("down"))

    with pytest.raises(NodeExecutionError, match="LLM request failed"):
        client.chat([{"role": "user", "content": "hi"}])


def test_missing_message_is_an_error():
    client, _ = make_client({"choices": []})

    with pytest.raises(NodeExecutionError, match="did not contain a message"):
        client.chat([{"role": "user", "content": "hi"}])
