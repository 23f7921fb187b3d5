"""Tests for test generation, persistence and the service layer."""

import json

import pytest

from conftest import FakeLLM, FakeRecorder, ScriptedDecisions, make_session, recorded_script
from pwtgen.core.errors import ConfigurationError, GenerationFailure, PersistenceError
from pwtgen.core.llm_client import LLMClient
from pwtgen.core.models import Credentials, GenerationRequest, Ticket
from pwtgen.generators.code_utils import PLAYWRIGHT_IMPORT
from pwtgen.generators.test_generator import TestGenerator, extract_test_name, write_test_file
from pwtgen.intervention.knowledge_log import MAPPING_LOG, SELECTORS_LOG, TEST_DATA_LOG, VALIDATION_LOG
from pwtgen.intervention.workflow import StepAction, StepDecision, edit_capture_path
from pwtgen.services.generation_service import generate_interactive, generate_test

LLM_CODE = """```typescript
import { test, expect } from '@playwright/test';

test.describe('PROJ-3', () => {
  test.beforeEach(async ({ page }) => {
    await page.goto('/');
  });

  test('login', async ({ page }) => {
    await test.step('Sign in', async () => {
      await page.getByRole('button', { name: 'Login' }).click();
    });
    await test.step('Check dashboard', async () => {
      await expect(page.getByText('Dashboard')).toBeVisible();
    });
  });
});
```"""


def make_request(tmp_path, **kw):
    ticket = kw.pop("ticket", Ticket(key="PROJ-3", summary="Dashboard shows recent orders"))
    return GenerationRequest(
        ticket=ticket,
        environment=kw.pop("environment", "qa"),
        output_path=str(tmp_path / "out" / "proj-3.spec.ts"),
        **kw,
    )


def test_extract_test_name():
    assert extract_test_name("User can't log-in with an EXPIRED password today!") == "user cant login with an expired"


def test_write_test_file_picks_unique_names(tmp_path):
    target = tmp_path / "a.spec.ts"

    first = write_test_file(target, "one")
    second = write_test_file(target, "two")
    third = write_test_file(target, "three")

    assert first == target
    assert second.name == "a.spec-1.ts"
    assert third.name == "a.spec-2.ts"
    assert target.read_text(encoding="utf-8") == "one"


def test_write_test_file_overwrite(tmp_path):
    target = tmp_path / "a.spec.ts"
    write_test_file(target, "one")

    assert write_test_file(target, "two", overwrite=True) == target
    assert target.read_text(encoding="utf-8") == "two"


def test_write_test_file_refuses_directory(tmp_path):
    with pytest.raises(PersistenceError) as excinfo:
        write_test_file(tmp_path, "content")
    assert excinfo.value.phase == "persistence"
    assert str(excinfo.value).startswith("persistence failed:")


def test_generate_writes_clean_code(tmp_path, settings):
    session = make_session(settings, LLM_CODE)

    result = generate_test(session, make_request(tmp_path))

    written = (tmp_path / "out" / "proj-3.spec.ts").read_text(encoding="utf-8")
    assert result.file_path == str(tmp_path / "out" / "proj-3.spec.ts")
    assert written == result.content
    assert written.startswith(PLAYWRIGHT_IMPORT)
    assert "```" not in written
    assert 0.0 <= result.confidence <= 1.0
    assert len(result.rag_contexts) == 1
    assert result.to_dict()["testName"] == "dashboard shows recent orders"


def test_dry_run_writes_nothing(tmp_path, settings):
    session = make_session(settings, LLM_CODE)

    result = generate_test(session, make_request(tmp_path, dry_run=True))

    assert not (tmp_path / "out").exists()
    assert result.content.startswith(PLAYWRIGHT_IMPORT)


def test_prompt_includes_ticket_and_context(tmp_path, settings):
    llm = FakeLLM(LLM_CODE)
    session = make_session(settings)
    session.llm = LLMClient(settings, llm=llm)

    generate_test(session, make_request(tmp_path, dry_run=True))

    assert "Key: PROJ-3" in llm.prompts[0]
    assert "content 0" in llm.prompts[0]


def test_empty_model_output_is_fatal(tmp_path, settings):
    session = make_session(settings, "   ")
    with pytest.raises(GenerationFailure):
        generate_test(session, make_request(tmp_path))


def test_model_error_is_wrapped(tmp_path, settings):
    session = make_session(settings, RuntimeError("Copilot bridge error: refused"))
    with pytest.raises(GenerationFailure) as excinfo:
        generate_test(session, make_request(tmp_path))
    assert "refused" in excinfo.value.cause


def test_invalid_request_is_rejected(tmp_path, settings):
    session = make_session(settings, LLM_CODE)
    with pytest.raises(ConfigurationError):
        generate_test(session, make_request(tmp_path, environment="moon"))


def test_login_steps_prepended_for_log_in_as(tmp_path, settings):
    session = make_session(settings, LLM_CODE)
    ticket = Ticket(key="PROJ-3", summary="Log in as a buyer and open orders")
    request = make_request(tmp_path, ticket=ticket, dry_run=True, credentials=Credentials("buyer@example.com", "s3cret"))

    result = generate_test(session, request)

    assert "await page.goto('https://qa.example.com/login');" in result.content
    assert ".fill('buyer@example.com');" in result.content
    assert result.content.index("/login") < result.content.index("Sign in")


def test_credentials_resolution_order(tmp_path, settings):
    fixture = settings.knowledge_base_dir / "fixtures" / "test-users.json"
    fixture.parent.mkdir(parents=True)
    fixture.write_text(json.dumps({"validUsers": [{"email": "fixture@example.com", "password": "pw"}]}), encoding="utf-8")
    generator = TestGenerator(settings, None, None)
    request = make_request(tmp_path)

    assert generator.resolve_credentials(request) == ("'fixture@example.com'", "'pw'")

    with_env = TestGenerator(settings.with_overrides(test_email="e", test_password="p"), None, None)
    assert with_env.resolve_credentials(request) == ("process.env.TEST_EMAIL!", "process.env.TEST_PASSWORD!")

    explicit = make_request(tmp_path, credentials=Credentials("me@example.com", "x"))
    assert with_env.resolve_credentials(explicit) == ("'me@example.com'", "'x'")


def test_best_practices_added_for_login_tickets(tmp_path, settings):
    doc = settings.knowledge_base_dir / "patterns" / "playwright-best-practices.md"
    doc.parent.mkdir(parents=True)
    doc.write_text("Use getByRole for login fields", encoding="utf-8")
    generator = make_session(settings).generator()
    ticket = Ticket(key="PROJ-4", summary="Invalid login shows an error message")

    contexts = generator.retrieve_context(make_request(tmp_path, ticket=ticket))

    assert contexts[-1].id == "best-practices"
    assert contexts[-1].score == 1.0


def test_optimize_keeps_first_version_on_failure(tmp_path, settings):
    session = make_session(settings, RuntimeError("timeout"))
    generator = session.generator()

    assert generator.optimize("original code") == "original code"


def test_optimize_pass_when_enabled(tmp_path, settings):
    optimized = LLM_CODE.replace("Dashboard", "Overview")
    session = make_session(settings.with_overrides(optimize_generated_code=True), LLM_CODE, optimized)

    result = generate_test(session, make_request(tmp_path, dry_run=True))

    assert "Overview" in result.content


def test_interactive_generation_updates_knowledge_base(tmp_path, settings):
    recorded = "await page.getByLabel('Email').fill('buyer@example.com');"
    recorder = FakeRecorder(recorded_script(recorded))
    session = make_session(settings, LLM_CODE, recorder=recorder)
    decisions = ScriptedDecisions(
        reviews={0: StepDecision(StepAction.EDIT)},
        replace_index=0,
        confirms=[False, True, True, True, True],
    )
    request = make_request(tmp_path)

    result = generate_interactive(session, request, decisions)

    final = tmp_path / "out" / "proj-3.spec.ts"
    assert result.generated.file_path == str(final)
    assert final.read_text(encoding="utf-8") == result.generated.content
    assert recorded in result.generated.content
    assert result.generated.content.startswith(PLAYWRIGHT_IMPORT)

    kb = settings.knowledge_base_dir
    for rel in (MAPPING_LOG, SELECTORS_LOG, TEST_DATA_LOG, VALIDATION_LOG):
        assert (kb / rel).exists()
    assert len(result.knowledge_updates) == 4
    assert "Intervention Step: 1" in (kb / MAPPING_LOG).read_text(encoding="utf-8")
    assert "buyer@example.com" in (kb / TEST_DATA_LOG).read_text(encoding="utf-8")

    payload = result.to_dict()
    assert payload["steps"][0]["developerModified"] is True
    assert payload["knowledgeUpdates"] == result.knowledge_updates


def test_interactive_generation_keeps_existing_file(tmp_path, settings):
    existing = tmp_path / "out" / "proj-3.spec.ts"
    existing.parent.mkdir(parents=True)
    existing.write_text("// hand written", encoding="utf-8")
    session = make_session(settings, LLM_CODE)

    result = generate_interactive(session, make_request(tmp_path), ScriptedDecisions())

    assert existing.read_text(encoding="utf-8") == "// hand written"
    assert result.generated.file_path.endswith("proj-3.spec-1.ts")


def test_codegen_edit_never_touches_an_existing_test_file(tmp_path, settings):
    existing = tmp_path / "out" / "proj-3.spec.ts"
    existing.parent.mkdir(parents=True)
    existing.write_text("// hand written", encoding="utf-8")
    recorder = FakeRecorder(recorded_script("await page.click('#recorded');"))
    session = make_session(settings, LLM_CODE, recorder=recorder)
    decisions = ScriptedDecisions(reviews={0: StepDecision(StepAction.EDIT)}, replace_index=0)
    request = make_request(tmp_path)

    result = generate_interactive(session, request, decisions)

    assert existing.read_text(encoding="utf-8") == "// hand written"
    assert recorder.calls[0][1] == str(edit_capture_path(request.output_path))
    assert result.generated.file_path.endswith("proj-3.spec-1.ts")
    assert "await page.click('#recorded');" in result.generated.content


def test_missing_llm_configuration_fails_before_retrieval(tmp_path, settings):
    session = make_session(settings.with_overrides(llm_provider="azure"), LLM_CODE)
    session.llm = LLMClient(session.settings)

    with pytest.raises(ConfigurationError, match="AZURE_OPENAI_ENDPOINT"):
        generate_test(session, make_request(tmp_path))
    with pytest.raises(ConfigurationError):
        generate_interactive(session, make_request(tmp_path), ScriptedDecisions())

    assert session.embedder.calls == []
    assert not (tmp_path / "out").exists()
