"""Tests for the LLM client and Copilot bridge."""

import pytest
import requests

from conftest import FakeLLM
from pwtgen.core import llm_client
from pwtgen.core.config import Settings
from pwtgen.core.errors import ConfigurationError, GenerationFailure
from pwtgen.core.llm_client import CopilotClient, LLMClient


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self.payload


def test_complete_strips_content():
    client = LLMClient(Settings(), llm=FakeLLM("  code here \n"))
    assert client.complete("prompt") == "code here"


def test_complete_wraps_errors():
    client = LLMClient(Settings(), llm=FakeLLM(ValueError("rate limited")))
    with pytest.raises(GenerationFailure) as excinfo:
        client.complete("prompt")
    assert excinfo.value.phase == "generation"


def test_copilot_bridge_request(monkeypatch):
    sent = {}

    def fake_post(url, json, timeout):
        sent.update(url=url, json=json, timeout=timeout)
        return FakeResponse({"content": "test code"})

    monkeypatch.setattr(llm_client.requests, "post", fake_post)

    response = CopilotClient("http://localhost:3030/", temperature=0.2).invoke("hello")

    assert response.content == "test code"
    assert sent["url"] == "http://localhost:3030/api/copilot/chat"
    assert sent["json"] == {"messages": [{"role": "user", "content": "hello"}], "temperature": 0.2}
    assert sent["timeout"] == 120


def test_copilot_bridge_error(monkeypatch):
    def refused(url, json, timeout):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(llm_client.requests, "post", refused)
    client = LLMClient(Settings(llm_provider="copilot"))

    with pytest.raises(GenerationFailure, match="Copilot bridge error"):
        client.complete("hello")


def test_empty_bridge_url_falls_back_to_azure(monkeypatch):
    built = []
    monkeypatch.setattr(llm_client, "_build_azure", lambda settings: built.append(settings) or FakeLLM("azure"))

    client = LLMClient(Settings(copilot_bridge_url=""))

    assert client.complete("hi") == "azure"
    assert len(built) == 1


def test_azure_requires_variables():
    client = LLMClient(Settings(llm_provider="azure"))
    with pytest.raises(ConfigurationError, match="AZURE_OPENAI_ENDPOINT"):
        client.complete("hi")
