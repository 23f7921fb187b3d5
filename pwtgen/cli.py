"""Command line entry point for the Playwright test generator.

Usage:
    # Create .env and the knowledge-base folders
    pwtgen init

    # Check Jira credentials and environment URLs
    pwtgen validate

    # Index the knowledge base into the vector store
    pwtgen embed

    # Generate a test from a Jira ticket, reviewing each step
    pwtgen generate --ticket PROJ-123 --env qa --output tests/proj-123.spec.ts --interactive

    # Record a flow with Playwright codegen
    pwtgen record --env qa --output tests/recorded.spec.ts
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .core.config import ENV_TEMPLATE, ENV_URL_VARS, ENVIRONMENTS, Settings
from .core.errors import ConfigurationError, PwtgenError
from .core.models import Credentials, GenerationRequest, Step, Ticket
from .ingestion.articles import fetch_articles
from .intervention.workflow import StepAction, StepDecision, StepReviewRequested
from .recorder.codegen_recorder import CodegenRecorder, inject_navigation_wait
from .retrieval.engine import ThresholdCascadeStrategy
from .services.generation_service import (
    GenerationSession,
    build_article_index,
    generate_interactive,
    generate_test,
    ingest_knowledge_base,
)
from .sources.jira import JiraClient, JiraRequestError

logger = logging.getLogger(__name__)

KB_FOLDERS = ("selectors", "workflows", "patterns", "fixtures")

_ACTIONS = {
    "a": StepAction.ACCEPT,
    "e": StepAction.EDIT,
    "s": StepAction.SKIP,
    "d": StepAction.DEBUG,
}


class ConsoleDecisionProvider:
    """Answers intervention prompts from the terminal."""

    def __init__(self, read=input, write=print):
        self.read = read
        self.write = write

    def review(self, event: StepReviewRequested) -> StepDecision:
        step = event.step
        self.write("\n" + "=" * 60)
        self.write(f"Step {step.index + 1}/{event.total}: {step.description}")
        self.write("=" * 60)
        self.write(step.code)
        while True:
            choice = self.read("[a]ccept, [e]dit, [s]kip, [d]ebug? ").strip().lower()[:1] or "a"
            action = _ACTIONS.get(choice)
            if action is None:
                self.write("Please answer a, e, s or d.")
                continue
            if action is StepAction.EDIT:
                return StepDecision(action, self._read_code())
            return StepDecision(action)

    def _read_code(self) -> Optional[str]:
        self.write("Type replacement code and finish with an empty line.")
        self.write("Leave it empty to record the step with Playwright codegen instead.")
        lines: List[str] = []
        while True:
            line = self.read("")
            if not line.strip():
                break
            lines.append(line)
        return "\n".join(lines) or None

    def choose_step_to_replace(self, steps: List[Step], captured: str) -> int:
        self.write("\nRecorded code:\n" + captured)
        for step in steps:
            self.write(f"  {step.index + 1}. {step.description}")
        answer = self.read("Which step should the recording replace? ").strip()
        try:
            return int(answer) - 1
        except ValueError:
            return -1

    def wait_for_resume(self, step: Step) -> None:
        self.read(f"Debugging step {step.index + 1}. Press ENTER to continue...")

    def confirm(self, message: str, default: bool = False) -> bool:
        hint = "[Y/n]" if default else "[y/N]"
        answer = self.read(f"{message} {hint} ").strip().lower()
        if not answer:
            return default
        return answer.startswith("y")


# ---------------- Commands ----------------
def cmd_init(args: argparse.Namespace) -> int:
    env_file = Path(args.env_file)
    if env_file.exists() and not args.force:
        print(f"{env_file} already exists (use --force to overwrite)")
    else:
        env_file.write_text(ENV_TEMPLATE, encoding="utf-8")
        print(f"Wrote {env_file}")

    kb = Path(args.knowledge_base)
    for folder in KB_FOLDERS:
        (kb / folder).mkdir(parents=True, exist_ok=True)
    print(f"Knowledge base folders ready under {kb}")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    ok = True

    try:
        settings.require_llm()
        print(f"LLM provider: {settings.llm_provider}")
    except ConfigurationError as exc:
        print(f"LLM: {exc.cause}")
        ok = False

    for env in ENVIRONMENTS:
        url = settings.base_url(env)
        print(f"  {env:<8} {url or '(not set: ' + ENV_URL_VARS[env] + ')'}")

    if args.skip_jira:
        return 0 if ok else 1
    try:
        me = JiraClient.from_settings(settings).test_connection()
        print(f"Jira: connected as {me.get('displayName') or me.get('emailAddress')}")
    except (ConfigurationError, JiraRequestError) as exc:
        print(f"Jira: {exc}")
        ok = False
    return 0 if ok else 1


def cmd_embed(args: argparse.Namespace) -> int:
    session = GenerationSession.create()
    report = ingest_knowledge_base(session)
    print(f"Indexed {report.indexed} documents" + (" (seeded defaults)" if report.seeded else ""))
    for warning in report.warnings:
        print(f"  warning: {warning}")
    return 0


def cmd_embed_articles(args: argparse.Namespace) -> int:
    session = GenerationSession.create()
    articles_path = Path(args.articles)
    if args.fetch:
        refs = json.loads(Path(args.fetch).read_text(encoding="utf-8"))
        fetch_articles(refs, articles_path)
    out = Path(args.out) if args.out else None
    store = build_article_index(session, articles_path, out)
    print(f"Embedded {len(store)} articles")
    return 0


def _print_contexts(contexts) -> None:
    print(json.dumps([c.to_dict() for c in contexts], indent=2))


def cmd_query(args: argparse.Namespace) -> int:
    session = GenerationSession.create()
    strategy = ThresholdCascadeStrategy(session.index, session.embedder, session.settings)
    _print_contexts(strategy.query(args.text, top_k=args.top_k, min_score=args.min_score))
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    session = GenerationSession.create()
    _print_contexts(session.keyword_engine().retrieve(args.text, args.top_n))
    return 0


def _load_ticket(args: argparse.Namespace, settings: Settings) -> Ticket:
    if args.ticket_file:
        data = json.loads(Path(args.ticket_file).read_text(encoding="utf-8"))
        return Ticket(
            key=data.get("key", ""),
            summary=data.get("summary", ""),
            description=data.get("description", ""),
            acceptance_criteria=list(data.get("acceptanceCriteria") or data.get("acceptance_criteria") or []),
        )
    return JiraClient.from_settings(settings).get_ticket(args.ticket)


def cmd_generate(args: argparse.Namespace) -> int:
    session = GenerationSession.create()
    ticket = _load_ticket(args, session.settings)
    output = args.output or f"tests/{ticket.key.lower()}.spec.ts"
    credentials = Credentials(args.email, args.password) if args.email and args.password else None
    request = GenerationRequest(
        ticket=ticket,
        environment=args.env,
        output_path=output,
        page_object_pattern=args.page_objects,
        overwrite=args.overwrite,
        dry_run=args.dry_run,
        credentials=credentials,
    )

    if args.interactive:
        result = generate_interactive(session, request, ConsoleDecisionProvider())
        generated = result.generated
        for failure in result.intervention.failures:
            print(f"  warning: {failure}")
        for path in result.knowledge_updates:
            print(f"  knowledge base updated: {path}")
    else:
        generated = generate_test(session, request)

    if args.dry_run:
        print(generated.content)
    else:
        print(f"Test written to {generated.file_path}")
    print(f"Confidence: {round(generated.confidence * 100)}% ({len(generated.rag_contexts)} contexts)")
    return 0


def cmd_record(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    url = args.url or settings.require_base_url(args.env)
    recorder = CodegenRecorder(timeout=settings.recorder_timeout)
    code = recorder.record(url, args.output)
    Path(args.output).write_text(inject_navigation_wait(code, url), encoding="utf-8")
    print(f"Recording saved to {args.output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pwtgen",
        description="Generate Playwright tests from Jira tickets using a retrieval-augmented LLM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", action="store_true", help="Verbose output")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="Write a .env template and create knowledge-base folders")
    p.add_argument("--env-file", default=".env")
    p.add_argument("--knowledge-base", default="knowledge-base")
    p.add_argument("--force", action="store_true", help="Overwrite an existing .env")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("validate", help="Check configuration and the Jira connection")
    p.add_argument("--skip-jira", action="store_true")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("embed", help="Index the knowledge base into the vector store")
    p.set_defaults(func=cmd_embed)

    p = sub.add_parser("embed-articles", help="Embed the keyword article corpus")
    p.add_argument("--articles", default="knowledge-base/articles.json")
    p.add_argument("--fetch", metavar="REFS_JSON", help="Fetch articles listed in this file first")
    p.add_argument("--out", default=None)
    p.set_defaults(func=cmd_embed_articles)

    p = sub.add_parser("query", help="Query the vector store with the threshold cascade")
    p.add_argument("text")
    p.add_argument("--top-k", type=int, default=None)
    p.add_argument("--min-score", type=float, default=None)
    p.set_defaults(func=cmd_query)

    p = sub.add_parser("search", help="Keyword-boosted search over embedded articles")
    p.add_argument("text")
    p.add_argument("--top-n", type=int, default=5)
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("generate", help="Generate a Playwright test for a ticket")
    source = p.add_mutually_exclusive_group(required=True)
    source.add_argument("--ticket", help="Jira ticket key, e.g. PROJ-123")
    source.add_argument("--ticket-file", help="JSON file with key, summary, description, acceptanceCriteria")
    p.add_argument("--env", choices=ENVIRONMENTS, default="test")
    p.add_argument("--output", default=None)
    p.add_argument("--overwrite", action="store_true")
    p.add_argument("--dry-run", action="store_true", help="Print the test instead of writing it")
    p.add_argument("--page-objects", action="store_true", help="Ask for the page-object pattern")
    p.add_argument("--interactive", action="store_true", help="Review every step before saving")
    p.add_argument("--email", default=None, help="Login email written into the test")
    p.add_argument("--password", default=None)
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("record", help="Record a flow with Playwright codegen")
    p.add_argument("--env", choices=ENVIRONMENTS, default="test")
    p.add_argument("--url", default=None, help="Start URL (defaults to the environment base URL)")
    p.add_argument("--output", required=True)
    p.set_defaults(func=cmd_record)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        return args.func(args)
    except PwtgenError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except JiraRequestError as exc:
        print(f"Error: jira failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
