"""Tests for the Jira ticket source."""

import pytest
import requests

from pwtgen.core.config import Settings
from pwtgen.core.errors import ConfigurationError
from pwtgen.sources import jira
from pwtgen.sources.jira import (
    JiraClient,
    JiraRequestError,
    adf_to_text,
    extract_acceptance_criteria,
    parse_acceptance_criteria,
)

ADF_DESCRIPTION = {
    "type": "doc",
    "content": [
        {"type": "paragraph", "content": [{"type": "text", "text": "Buyer opens the orders page."}]},
        {
            "type": "bulletList",
            "content": [
                {"type": "listItem", "content": [
                    {"type": "paragraph", "content": [{"type": "text", "text": "Verify the table loads"}]},
                ]},
                {"type": "listItem", "content": [
                    {"type": "paragraph", "content": [{"type": "text", "text": "Check paging works"}]},
                ]},
            ],
        },
        {"type": "paragraph", "content": [
            {"type": "text", "text": "Line one"},
            {"type": "hardBreak"},
            {"type": "text", "text": "Line two"},
        ]},
    ],
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload


def client():
    return JiraClient("https://acme.atlassian.net/", "qa@acme.com", "token")


def test_adf_to_text():
    text = adf_to_text(ADF_DESCRIPTION)

    assert text.splitlines() == [
        "Buyer opens the orders page.",
        "• Verify the table loads",
        "• Check paging works",
        "Line one",
        "Line two",
    ]


def test_adf_to_text_plain_and_empty():
    assert adf_to_text("already text") == "already text"
    assert adf_to_text(None) == ""
    assert adf_to_text({"type": "doc"}) == ""


def test_parse_acceptance_criteria_patterns():
    text = "Given a buyer\nWhen they submit\nThen an order exists\n1. Numbered item\n- Bullet item"

    criteria = parse_acceptance_criteria(text)

    assert "a buyer" in criteria
    assert "an order exists" in criteria
    assert "Numbered item" in criteria
    assert "Bullet item" in criteria


def test_acceptance_criteria_are_deduplicated_in_order():
    custom = "Verify totals\nVerify totals\nCheck tax"
    criteria = extract_acceptance_criteria("Verify totals", custom)
    assert criteria == ["totals", "tax"]


def test_missing_configuration():
    with pytest.raises(ConfigurationError) as excinfo:
        JiraClient("", "qa@acme.com", "")
    assert "JIRA_BASE_URL" in str(excinfo.value)
    assert "JIRA_API_TOKEN" in str(excinfo.value)
    assert "JIRA_EMAIL" not in str(excinfo.value)


def test_from_settings_requires_credentials():
    with pytest.raises(ConfigurationError):
        JiraClient.from_settings(Settings())


def test_get_ticket(monkeypatch):
    calls = []

    def fake_get(url, **kwargs):
        calls.append((url, kwargs))
        return FakeResponse(payload={
            "key": "PROJ-5",
            "fields": {
                "summary": "List orders",
                "description": ADF_DESCRIPTION,
                "assignee": {"displayName": "Sam Lee"},
                "status": {"name": "In Progress"},
                "priority": None,
                "customfield_10000": "Ensure export works",
            },
        })

    monkeypatch.setattr(jira.requests, "get", fake_get)

    ticket = client().get_ticket("PROJ-5")

    assert calls[0][0] == "https://acme.atlassian.net/rest/api/3/issue/PROJ-5"
    assert "customfield_10000" in calls[0][1]["params"]["fields"]
    assert ticket.summary == "List orders"
    assert ticket.assignee == "Sam Lee"
    assert ticket.status == "In Progress"
    assert ticket.priority is None
    assert ticket.acceptance_criteria[0] == "export works"
    assert "the table loads" in ticket.acceptance_criteria
    assert ticket.description.startswith("Buyer opens the orders page.")


@pytest.mark.parametrize("status,message", [
    (401, "HTTP 401"),
    (404, "HTTP 404"),
    (500, "failed 500"),
])
def test_error_statuses(monkeypatch, status, message):
    monkeypatch.setattr(jira.requests, "get", lambda url, **kw: FakeResponse(status, text="boom"))

    with pytest.raises(JiraRequestError) as excinfo:
        client().get_ticket("PROJ-404")
    assert message in str(excinfo.value)


def test_network_error(monkeypatch):
    def broken(url, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(jira.requests, "get", broken)

    with pytest.raises(JiraRequestError):
        client().test_connection()


def test_connection(monkeypatch):
    monkeypatch.setattr(jira.requests, "get", lambda url, **kw: FakeResponse(payload={"displayName": "QA Bot"}))
    assert client().test_connection()["displayName"] == "QA Bot"
