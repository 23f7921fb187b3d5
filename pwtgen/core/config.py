"""Runtime settings resolved from the process environment and ``.env``."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigurationError

ENVIRONMENTS: Tuple[str, ...] = ("test", "qa", "staging", "prod", "local")

# Environment key -> variable holding its base URL
ENV_URL_VARS: Dict[str, str] = {
    "test": "TWO_TEST_BASE_URL",
    "qa": "QA_BASE_URL",
    "staging": "SMOKE_BASE_URL",
    "prod": "PROD_BASE_URL",
    "local": "LOCAL_BASE_URL",
}

DEFAULT_BOOST_KEYWORDS: Tuple[str, ...] = (
    "workflow",
    "playwright",
    "automation",
    "test",
    "login",
    "order",
    "approval",
    "checkbox",
    "hover",
    "business action",
)


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    knowledge_base_dir: Path = Path("knowledge-base")
    vector_db_path: str = "./vector_store"
    collection_name: str = "knowledge_base"
    article_embeddings_path: Path = Path("knowledge-base/article_embeddings.json")

    jira_base_url: Optional[str] = None
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None
    jira_acceptance_field: str = "customfield_10000"

    llm_provider: str = "copilot"
    copilot_bridge_url: str = "http://localhost:3030"
    llm_temperature: float = 0.1
    azure_openai_endpoint: Optional[str] = None
    azure_openai_key: Optional[str] = None
    azure_openai_deployment: str = "GPT-4o"
    openai_api_version: Optional[str] = None

    environment_urls: Dict[str, str] = field(default_factory=dict)

    top_k: int = 15
    min_score: float = 0.3
    fallback_min_score: float = 0.1
    keyword_boost: float = 0.15
    test_pattern_boost: float = 0.2
    boost_keywords: Tuple[str, ...] = DEFAULT_BOOST_KEYWORDS

    optimize_generated_code: bool = False
    recorder_timeout: int = 600
    test_email: Optional[str] = None
    test_password: Optional[str] = None

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        kb_dir = Path(os.getenv("KNOWLEDGE_BASE_DIR", "knowledge-base"))
        keywords = os.getenv("RAG_BOOST_KEYWORDS")
        return cls(
            knowledge_base_dir=kb_dir,
            vector_db_path=os.getenv("VECTOR_DB_PATH", "./vector_store"),
            collection_name=os.getenv("VECTOR_COLLECTION", "knowledge_base"),
            article_embeddings_path=Path(
                os.getenv("ARTICLE_EMBEDDINGS_PATH", str(kb_dir / "article_embeddings.json"))
            ),
            jira_base_url=os.getenv("JIRA_BASE_URL"),
            jira_email=os.getenv("JIRA_EMAIL"),
            jira_api_token=os.getenv("JIRA_API_TOKEN"),
            jira_acceptance_field=os.getenv("JIRA_ACCEPTANCE_FIELD", "customfield_10000"),
            llm_provider=os.getenv("LLM_PROVIDER", "copilot").strip().lower(),
            copilot_bridge_url=os.getenv("COPILOT_BRIDGE_URL", "http://localhost:3030"),
            llm_temperature=_env_float("LLM_TEMPERATURE", 0.1),
            azure_openai_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT"),
            azure_openai_key=os.getenv("AZURE_OPENAI_KEY"),
            azure_openai_deployment=os.getenv("AZURE_OPENAI_DEPLOYMENT", "GPT-4o"),
            openai_api_version=os.getenv("OPENAI_API_VERSION"),
            environment_urls={env: os.getenv(var, "") for env, var in ENV_URL_VARS.items()},
            top_k=_env_int("RAG_TOP_K", 15),
            min_score=_env_float("RAG_MIN_SCORE", 0.3),
            fallback_min_score=_env_float("RAG_FALLBACK_MIN_SCORE", 0.1),
            keyword_boost=_env_float("RAG_KEYWORD_BOOST", 0.15),
            test_pattern_boost=_env_float("RAG_TEST_PATTERN_BOOST", 0.2),
            boost_keywords=tuple(k.strip() for k in keywords.split(",") if k.strip())
            if keywords
            else DEFAULT_BOOST_KEYWORDS,
            optimize_generated_code=_env_flag("GENERATION_OPTIMIZE"),
            recorder_timeout=_env_int("RECORDER_TIMEOUT", 600),
            test_email=os.getenv("TEST_EMAIL"),
            test_password=os.getenv("TEST_PASSWORD"),
        )

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **changes)

    def base_url(self, environment: str) -> str:
        """Resolve the base URL for an environment key; unknown keys give ``""``."""
        if environment not in ENVIRONMENTS:
            return ""
        return (self.environment_urls.get(environment) or "").rstrip("/")

    def require_base_url(self, environment: str) -> str:
        url = self.base_url(environment)
        if not url:
            var = ENV_URL_VARS.get(environment, "<unknown environment>")
            raise ConfigurationError(
                f"No base URL configured for environment '{environment}'. Set {var} in .env or the process environment."
            )
        return url

    def require_jira(self) -> None:
        missing = [name for name, val in [
            ("JIRA_BASE_URL", self.jira_base_url),
            ("JIRA_EMAIL", self.jira_email),
            ("JIRA_API_TOKEN", self.jira_api_token),
        ] if not val]
        if missing:
            raise ConfigurationError(
                "Missing Jira environment variables: " + ", ".join(missing)
                + ". Set them in a .env file or process environment."
            )

    def require_llm(self) -> None:
        if self.llm_provider == "copilot":
            if not self.copilot_bridge_url:
                raise ConfigurationError("COPILOT_BRIDGE_URL is empty")
            return
        if self.llm_provider == "azure":
            missing = self.missing_azure_vars()
            if missing:
                raise ConfigurationError(f"Missing Azure OpenAI env vars: {', '.join(missing)}")
            return
        raise ConfigurationError(f"Unknown LLM_PROVIDER '{self.llm_provider}' (expected copilot or azure)")

    def missing_azure_vars(self) -> List[str]:
        return [name for name, val in [
            ("OPENAI_API_VERSION", self.openai_api_version),
            ("AZURE_OPENAI_ENDPOINT", self.azure_openai_endpoint),
            ("AZURE_OPENAI_KEY", self.azure_openai_key),
        ] if not val]


ENV_TEMPLATE = """# Jira Configuration
JIRA_BASE_URL=https://your-company.atlassian.net
JIRA_EMAIL=your-email@company.com
JIRA_API_TOKEN=your-api-token

# LLM Configuration (copilot bridge or azure)
LLM_PROVIDER=copilot
COPILOT_BRIDGE_URL=http://localhost:3030
OPENAI_API_VERSION=
AZURE_OPENAI_ENDPOINT=
AZURE_OPENAI_KEY=
AZURE_OPENAI_DEPLOYMENT=GPT-4o

# Application URLs
TWO_TEST_BASE_URL=https://test.your-app.com
QA_BASE_URL=https://qa.your-app.com
SMOKE_BASE_URL=https://staging.your-app.com
PROD_BASE_URL=https://your-app.com
LOCAL_BASE_URL=http://localhost:4200

# Test Credentials (use test accounts only)
TEST_EMAIL=test-user@example.com
TEST_PASSWORD=test-password

# Retrieval tuning
RAG_MIN_SCORE=0.3
RAG_FALLBACK_MIN_SCORE=0.1
RAG_KEYWORD_BOOST=0.15
RAG_TEST_PATTERN_BOOST=0.2
"""
