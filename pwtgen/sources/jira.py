import logging
import re
from typing import Any, Dict, List, Optional

import requests
from requests.auth import HTTPBasicAuth

from ..core.config import Settings
from ..core.errors import ConfigurationError
from ..core.models import Ticket

logger = logging.getLogger(__name__)

ISSUE_FIELDS = "summary,description,assignee,status,priority"

_CRITERIA_PATTERNS = [
    re.compile(r"\b(?:Given|When|Then|And|But)\s+(.+?)(?=\n|$)", re.IGNORECASE),
    re.compile(r"\b(?:Verify|Check|Ensure|Confirm)\s+(.+?)(?=\n|$)", re.IGNORECASE),
    re.compile(r"^\s*[-•*]\s+(.+?)(?=\n|$)", re.MULTILINE),
    re.compile(r"^\s*\d+\.\s+(.+?)(?=\n|$)", re.MULTILINE),
]


class JiraRequestError(RuntimeError):
    """Raised when Jira answers with an error status or cannot be reached."""


def adf_to_text(content: Any) -> str:
    """Flatten an Atlassian document (or plain string) into text."""
    if isinstance(content, str):
        return content
    if isinstance(content, dict) and content.get("content"):
        return _adf_nodes(content["content"]).strip()
    return ""


def _adf_nodes(nodes: List[Dict[str, Any]]) -> str:
    text = ""
    for node in nodes or []:
        kind = node.get("type")
        children = node.get("content")
        if kind == "text":
            text += node.get("text", "")
        elif kind == "hardBreak":
            text += "\n"
        elif kind == "paragraph" and children:
            text += _adf_nodes(children) + "\n"
        elif kind == "listItem" and children:
            text += "• " + _adf_nodes(children).strip() + "\n"
        elif children:
            text += _adf_nodes(children)
    return text


def parse_acceptance_criteria(text: str) -> List[str]:
    criteria: List[str] = []
    for pattern in _CRITERIA_PATTERNS:
        for match in pattern.finditer(text or ""):
            value = (match.group(1) or "").strip()
            if value:
                criteria.append(value)
    return criteria


def extract_acceptance_criteria(description: str, custom_field: Any = None) -> List[str]:
    criteria: List[str] = []
    if custom_field:
        custom_text = adf_to_text(custom_field)
        if custom_text:
            criteria.extend(parse_acceptance_criteria(custom_text))
    criteria.extend(parse_acceptance_criteria(description))
    return list(dict.fromkeys(criteria))


class JiraClient:
    def __init__(self, base_url: str, email: str, api_token: str,
                 acceptance_field: str = "customfield_10000", timeout: int = 30):
        missing = [name for name, val in [
            ("JIRA_BASE_URL", base_url),
            ("JIRA_EMAIL", email),
            ("JIRA_API_TOKEN", api_token),
        ] if not val]
        if missing:
            raise ConfigurationError(
                "Missing Jira environment variables: " + ", ".join(missing)
                + ". Set them in a .env file or process environment."
            )
        self.api_url = f"{base_url.rstrip('/')}/rest/api/3"
        self.auth = HTTPBasicAuth(email, api_token)
        self.headers = {"Accept": "application/json"}
        self.acceptance_field = acceptance_field
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "JiraClient":
        settings.require_jira()
        return cls(settings.jira_base_url, settings.jira_email, settings.jira_api_token,
                   acceptance_field=settings.jira_acceptance_field)

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        url = f"{self.api_url}{path}"
        try:
            response = requests.get(url, headers=self.headers, auth=self.auth, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise JiraRequestError(f"Jira request network error: {exc}") from exc

        if response.status_code == 401:
            raise JiraRequestError("Jira rejected the credentials (HTTP 401). Check JIRA_EMAIL and JIRA_API_TOKEN.")
        if response.status_code == 404:
            raise JiraRequestError(f"Jira resource not found (HTTP 404): {path}")
        if response.status_code != 200:
            snippet = response.text[:500].replace("\n", " ")
            raise JiraRequestError(f"Jira request failed {response.status_code}: {snippet}")
        return response.json()

    def test_connection(self) -> Dict[str, Any]:
        me = self._get("/myself")
        logger.info("[Jira] Connection successful as %s", me.get("displayName") or me.get("emailAddress"))
        return me

    def get_ticket(self, key: str) -> Ticket:
        logger.info("[Jira] Fetching ticket: %s", key)
        issue = self._get(f"/issue/{key}", params={"fields": f"{ISSUE_FIELDS},{self.acceptance_field}"})
        fields = issue.get("fields") or {}
        description = adf_to_text(fields.get("description"))

        def _name(field: str, attr: str) -> Optional[str]:
            value = fields.get(field)
            return value.get(attr) if isinstance(value, dict) else None

        return Ticket(
            key=issue.get("key", key),
            summary=fields.get("summary") or "",
            description=description,
            acceptance_criteria=extract_acceptance_criteria(description, fields.get(self.acceptance_field)),
            assignee=_name("assignee", "displayName"),
            status=_name("status", "name"),
            priority=_name("priority", "name"),
        )
