"""Append what developers did during interactive generation back into the knowledge base.

Each writer appends a fenced record to a markdown file under the knowledge
base, so the next ingest picks it up as retrievable context.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from ..core.models import Ticket

logger = logging.getLogger(__name__)

MAPPING_LOG = Path("workflows") / "card-test-mapping.md"
SELECTORS_LOG = Path("selectors") / "discovered-selectors.md"
TEST_DATA_LOG = Path("fixtures") / "discovered-test-data.md"
VALIDATION_LOG = Path("workflows") / "card-validation.md"

EXCERPT_LENGTH = 200

_SELECTOR = re.compile(
    r"page\.(?:getBy(?:Role|Label|Text|TestId|Placeholder|AltText|Title)|locator)\((?:[^()]|\([^()]*\))*\)"
)
_LITERAL_INPUT = re.compile(
    r"(page\.[^\n;]*?)\.(fill|type|pressSequentially|selectOption)\(\s*(['\"])(.*?)\3\s*\)"
)


def _append(kb_root: Path, rel: Path, text: str) -> Path:
    path = Path(kb_root) / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(text)
    logger.info("[KnowledgeLog] Appended to %s", path)
    return path


def _stamp() -> str:
    return datetime.now().isoformat(timespec="seconds")


def extract_selectors(code: str) -> List[str]:
    return list(dict.fromkeys(m.group(0) for m in _SELECTOR.finditer(code or "")))


def extract_test_data(code: str) -> List[Dict[str, str]]:
    """Literal values typed or selected in the code, paired with the target locator."""
    found: List[Dict[str, str]] = []
    seen = set()
    for match in _LITERAL_INPUT.finditer(code or ""):
        target, action, _, value = match.groups()
        key = (target, value)
        if not value or key in seen:
            continue
        seen.add(key)
        found.append({"target": target.strip(), "action": action, "value": value})
    return found


def append_intervention_record(
    kb_root: Path,
    ticket: Ticket,
    output_path: str,
    step_index: int,
    code: str,
) -> Path:
    text = (
        "\n---\n"
        f"Card: {ticket.key}\n"
        f"Summary: {ticket.summary}\n"
        f"Details: {(ticket.description or '')[:EXCERPT_LENGTH]}\n"
        f"Test File: {output_path}\n"
        f"Intervention Step: {step_index + 1}\n"
        f"Intervention Code: {code[:EXCERPT_LENGTH]}\n"
        "---\n"
    )
    return _append(kb_root, MAPPING_LOG, text)


def append_discovered_selectors(kb_root: Path, ticket: Ticket, code: str) -> Optional[Path]:
    selectors = extract_selectors(code)
    if not selectors:
        return None
    lines = [f"\n## {ticket.key}: {ticket.summary} ({_stamp()})", "```typescript", *selectors, "```", ""]
    return _append(kb_root, SELECTORS_LOG, "\n".join(lines))


def append_discovered_test_data(kb_root: Path, ticket: Ticket, code: str) -> Optional[Path]:
    entries = extract_test_data(code)
    if not entries:
        return None
    lines = [f"\n## {ticket.key}: {ticket.summary} ({_stamp()})"]
    lines.extend(f"- `{e['target']}` {e['action']}: `{e['value']}`" for e in entries)
    lines.append("")
    return _append(kb_root, TEST_DATA_LOG, "\n".join(lines))


def append_card_validation(
    kb_root: Path,
    ticket: Ticket,
    output_path: str,
    accepted: int,
    edited: int,
    skipped: int,
    confidence: float,
    notes: str = "",
) -> Path:
    text = (
        "\n---\n"
        f"Card: {ticket.key}\n"
        f"Summary: {ticket.summary}\n"
        f"Test File: {output_path}\n"
        f"Validated: {_stamp()}\n"
        f"Steps accepted: {accepted}, edited: {edited}, skipped: {skipped}\n"
        f"Confidence: {round(confidence * 100)}%\n"
        + (f"Notes: {notes}\n" if notes else "")
        + "---\n"
    )
    return _append(kb_root, VALIDATION_LOG, text)
