"""Assemble the single generation prompt sent to the code model."""

from __future__ import annotations

from typing import List, Optional

from langchain_core.prompts import PromptTemplate

from ..core.config import Settings
from ..core.models import GenerationRequest, RetrievalContext, Ticket

SYSTEM_POLICY = """You are an expert Playwright test generator. Generate robust, non-flaky E2E tests based on Jira tickets and provided context.

CRITICAL REQUIREMENTS:
1. Use ONLY selectors and patterns from the provided context - never hallucinate selectors
2. Implement proper waiting strategies with expect() assertions
3. Do NOT use page object pattern or external imports unless explicitly specified in the context or configuration. Prefer inline Playwright code for all actions.
4. Include proper error handling and retry logic
5. Generate TypeScript code with proper imports
6. Use environment variables for URLs and credentials
7. Follow Playwright best practices for stability

SELECTOR PRIORITY (use in this order):
1. data-testid attributes
2. role-based locators (getByRole)
3. label-based locators (getByLabel)
4. text-based locators (getByText) - only for unique text
5. CSS selectors - only as last resort

WAITING STRATEGY:
- Use expect(locator).toBeVisible() instead of waitForSelector
- Use expect(locator).toHaveText() for text verification
- Use page.waitForLoadState('networkidle') after navigation
- Implement auto-retry with proper timeouts"""

CONFIG_TEMPLATE = PromptTemplate(
    input_variables=["environment", "page_objects", "base_url"],
    template=(
        "CONFIGURATION:\n"
        "Environment: {environment}\n"
        "Page Objects: {page_objects}\n"
        'Base URL: Use the selected environment\'s base URL directly (e.g., "{base_url}") '
        "instead of process.env.TEST_BASE_URL"
    ),
)

INSTRUCTIONS = """INSTRUCTIONS:
Generate a complete Playwright test that:
1. Follows the ticket requirements exactly
2. Uses only the selectors/patterns from the provided context
3. Includes comprehensive assertions for each step
4. Handles authentication using environment variables
5. Is resilient to timing issues and UI changes
6. Use the test.step structure for each logical step in the test
7. For login flows, always use getByRole for email, password, and login fields/buttons as shown in the best practices context
8. For invalid login, verify error message and do not redirect
9. Do NOT include any test.afterEach or screenshot logic.

Return ONLY the TypeScript test code, no explanations, no markdown code fences."""

PAGE_OBJECT_INSTRUCTION = "Implements proper page object pattern and includes comprehensive assertions for each step"
INLINE_ONLY_NOTE = "IMPORTANT: Do NOT use page object pattern or external imports. All code should be inline in the test file."

CONTEXT_SEPARATOR = "\n\n---\n\n"


def format_context(contexts: List[RetrievalContext]) -> str:
    if not contexts:
        return ""
    blocks = [f"[{ctx.type.upper()}] (score: {ctx.score:.2f})\n{ctx.content}" for ctx in contexts]
    return "AVAILABLE CONTEXT:\n" + CONTEXT_SEPARATOR.join(blocks)


def format_ticket(ticket: Ticket) -> str:
    lines = ["JIRA TICKET:", f"Key: {ticket.key}", f"Summary: {ticket.summary}"]
    if ticket.description and ticket.description.strip():
        lines.append(f"Description: {ticket.description}")
    if ticket.acceptance_criteria:
        lines.append("Acceptance Criteria:")
        lines.extend(f"- {criterion}" for criterion in ticket.acceptance_criteria)
    return "\n".join(lines)


def format_configuration(request: GenerationRequest, settings: Settings) -> str:
    return CONFIG_TEMPLATE.format(
        environment=request.environment,
        page_objects="enabled" if request.page_object_pattern else "disabled",
        base_url=settings.base_url(request.environment),
    )


def format_instructions(page_object_pattern: bool) -> str:
    if page_object_pattern:
        return INSTRUCTIONS.replace("Includes comprehensive assertions for each step", PAGE_OBJECT_INSTRUCTION)
    return f"{INSTRUCTIONS}\n\n{INLINE_ONLY_NOTE}"


def build_prompt(
    request: GenerationRequest,
    contexts: List[RetrievalContext],
    settings: Optional[Settings] = None,
) -> str:
    """Return the full prompt; sections appear in a fixed order and empty ones are left out."""
    settings = settings or Settings()
    sections = [
        SYSTEM_POLICY,
        format_context(contexts),
        format_ticket(request.ticket),
        format_configuration(request, settings),
        format_instructions(request.page_object_pattern),
    ]
    return "\n\n".join(section for section in sections if section)


def build_optimize_prompt(code: str) -> str:
    return (
        "Optimize and clean up the following Playwright test code. Ensure it is production-ready, "
        "error-free, and follows best practices. Return ONLY TypeScript code, no markdown or explanations."
        f"\n\n{code}"
    )
