"""Merge reviewed steps (and optional manual recordings) into one Playwright test file."""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from ..core.models import Step, Ticket
from ..generators.code_utils import PLAYWRIGHT_IMPORT, collapse_playwright_imports
from ..recorder.codegen_recorder import extract_script_body

logger = logging.getLogger(__name__)

# Steps that would nest a declaration inside the generated test body
_STRUCTURAL = re.compile(
    r"^(?:import\s|test\.describe\s*\(|test\s*\(|test\.beforeEach\s*\(|test\.afterEach\s*\()"
)

DEDUP_PREFIX_LENGTH = 40
MANUAL_HEADER = "// Manual steps recorded (dev intervention):"
_TEST_END = "\n  });\n\n  test.afterEach("


def _quote(text: str) -> str:
    return text.replace("\\", "\\\\").replace("'", "\\'").replace("\n", " ")


def _indent(code: str, spaces: int) -> str:
    pad = " " * spaces
    return "\n".join(pad + line if line.strip() else "" for line in code.splitlines())


def _squash(text: str) -> str:
    return " ".join(text.split())


def is_structural(code: str) -> bool:
    return bool(_STRUCTURAL.match(code.lstrip()))


def merge_steps(
    steps: List[Step],
    ticket: Ticket,
    base_url: str = "",
    login_code: Optional[str] = None,
) -> str:
    bodies = []
    for step in steps:
        if not step.code or is_structural(step.code):
            logger.debug("[Merge] Dropping structural step %d", step.index + 1)
            continue
        bodies.append(step.code.strip())

    setup = []
    if base_url:
        setup.append(f"await page.goto('{base_url}');")
        setup.append("await page.waitForLoadState('networkidle');")
    if login_code and login_code.strip():
        setup.append(login_code.strip())

    title = _quote(f"{ticket.key}: {ticket.summary}")
    parts = [
        PLAYWRIGHT_IMPORT,
        "",
        f"test.describe('{title}', () => {{",
        "  test.beforeEach(async ({ page }) => {",
        _indent("\n".join(setup), 4),
        "  });",
        "",
        f"  test('{_quote(ticket.summary)}', async ({{ page }}) => {{",
        _indent("\n\n".join(bodies), 4),
        "  });",
        "",
        "  test.afterEach(async ({ page }, testInfo) => {",
        "    if (testInfo.status !== testInfo.expectedStatus) {",
        "      await page.screenshot({ path: `screenshots/${testInfo.title}.png`, fullPage: true });",
        "    }",
        "  });",
        "});",
        "",
    ]
    merged = "\n".join(part for part in parts if part is not None)
    return collapse_playwright_imports(merged) + "\n"


def clean_manual_code(manual: str) -> str:
    cleaned = extract_script_body(manual)
    cleaned = re.sub(r"^[ \t]*\n", "", cleaned, flags=re.MULTILINE).strip()
    return cleaned or manual.strip()


def append_manual_steps(merged: str, manual: str) -> str:
    """Add recorded manual steps to the test body unless their opening text is already present."""
    cleaned = clean_manual_code(manual)
    if not cleaned:
        return merged
    # Compare with whitespace collapsed; merged bodies are re-indented
    prefix = _squash(cleaned)[:DEDUP_PREFIX_LENGTH]
    if prefix in _squash(merged):
        logger.info("[Merge] Manual steps already present in merged script; skipping")
        return merged

    block = "\n\n" + _indent(f"{MANUAL_HEADER}\n{cleaned}", 4)
    position = merged.find(_TEST_END)
    if position == -1:
        return merged.rstrip("\n") + block + "\n"
    return merged[:position] + block + merged[position:]
