"""Tests for prompt assembly and generated-code cleanup."""

from pwtgen.core.config import Settings
from pwtgen.core.models import GenerationRequest, RetrievalContext, Ticket
from pwtgen.generators.code_utils import (
    PLAYWRIGHT_IMPORT,
    clean_generated_code,
    collapse_playwright_imports,
    js_string,
)
from pwtgen.generators.prompt_builder import (
    INLINE_ONLY_NOTE,
    PAGE_OBJECT_INSTRUCTION,
    SYSTEM_POLICY,
    build_prompt,
    format_context,
    format_ticket,
)


def _request(**kw):
    ticket = kw.pop("ticket", Ticket(key="PROJ-1", summary="User can log in", description="Login page",
                                     acceptance_criteria=["user sees dashboard", "error on bad password"]))
    return GenerationRequest(ticket=ticket, environment=kw.pop("environment", "qa"),
                             output_path="tests/proj-1.spec.ts", **kw)


def test_sections_appear_in_order():
    settings = Settings(environment_urls={"qa": "https://qa.example.com/"})
    contexts = [RetrievalContext(id="a", content="page.getByLabel('Email')", type="selector", score=0.876)]

    prompt = build_prompt(_request(), contexts, settings)

    positions = [prompt.index(marker) for marker in (
        SYSTEM_POLICY[:40], "AVAILABLE CONTEXT:", "JIRA TICKET:", "CONFIGURATION:", "INSTRUCTIONS:",
    )]
    assert positions == sorted(positions)
    assert "[SELECTOR] (score: 0.88)" in prompt
    assert "Environment: qa" in prompt
    assert '"https://qa.example.com"' in prompt
    assert "Page Objects: disabled" in prompt
    assert prompt.rstrip().endswith(INLINE_ONLY_NOTE)


def test_empty_context_section_is_omitted():
    prompt = build_prompt(_request(), [], Settings())
    assert "AVAILABLE CONTEXT:" not in prompt
    assert "\n\n\n\n" not in prompt


def test_page_object_instruction():
    prompt = build_prompt(_request(page_object_pattern=True), [], Settings())
    assert PAGE_OBJECT_INSTRUCTION in prompt
    assert "Page Objects: enabled" in prompt
    assert INLINE_ONLY_NOTE not in prompt


def test_context_blocks_are_separated():
    text = format_context([
        RetrievalContext(id="a", content="one", type="workflow", score=0.5),
        RetrievalContext(id="b", content="two", type="pattern", score=0.25),
    ])
    assert text == "AVAILABLE CONTEXT:\n[WORKFLOW] (score: 0.50)\none\n\n---\n\n[PATTERN] (score: 0.25)\ntwo"


def test_ticket_without_optional_fields():
    text = format_ticket(Ticket(key="PROJ-2", summary="Checkout"))
    assert text == "JIRA TICKET:\nKey: PROJ-2\nSummary: Checkout"


def test_ticket_lists_acceptance_criteria():
    text = format_ticket(_request().ticket)
    assert "Acceptance Criteria:\n- user sees dashboard\n- error on bad password" in text


def test_clean_generated_code_strips_fences_and_adds_import():
    raw = "```typescript\nimport { test, expect } from '@playwright/test';\ntest('x', async () => {});\n```"

    code = clean_generated_code(raw)

    assert code.startswith(PLAYWRIGHT_IMPORT)
    assert "```" not in code
    assert code.count("@playwright/test") == 1


def test_extra_playwright_names_join_the_single_import():
    raw = (
        "import { test, expect, Page } from '@playwright/test';\n"
        "import type { Locator } from '@playwright/test';\n"
        "test('x', async ({ page }) => {});"
    )

    code = clean_generated_code(raw)

    assert code.count("@playwright/test") == 1
    assert code.startswith("import { expect, test, Page, type Locator } from '@playwright/test';")


def test_fixture_file_keeps_its_own_test_declaration():
    raw = (
        "import { test as base, expect } from '@playwright/test';\n"
        "const test = base.extend({});\n"
        "test('x', async ({ page }) => {});"
    )

    code = clean_generated_code(raw)

    assert code.startswith("import { expect, test as base } from '@playwright/test';")
    assert code.count("@playwright/test") == 1


def test_clean_generated_code_is_idempotent():
    once = clean_generated_code("test('x', async () => {});")
    assert clean_generated_code(once) == once


def test_collapse_keeps_first_playwright_import():
    code = f"{PLAYWRIGHT_IMPORT}\nconst a = 1;\nimport {{ test }} from '@playwright/test';\nconst b = 2;"
    assert collapse_playwright_imports(code) == f"{PLAYWRIGHT_IMPORT}\nconst a = 1;\nconst b = 2;"


def test_js_string_escapes_quotes():
    assert js_string("it's") == "'it\\'s'"
