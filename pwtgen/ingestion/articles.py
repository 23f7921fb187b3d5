"""Flat article corpus used by the keyword-boosted retrieval path.

Articles are fetched over HTTP, tagged with domain vocabulary, embedded once,
and persisted as a JSON list of ``{title, url, content, tags, embedding}``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List

import requests

from ..core.embeddings import EmbeddingProvider
from ..core.errors import EmbeddingError

logger = logging.getLogger(__name__)

TAG_PATTERNS = [
    re.compile(r"selector:\s*([^\s]+)", re.IGNORECASE),
    re.compile(r"workflow", re.IGNORECASE),
    re.compile(r"playwright", re.IGNORECASE),
    re.compile(r"order", re.IGNORECASE),
    re.compile(r"spot", re.IGNORECASE),
    re.compile(r"approval", re.IGNORECASE),
    re.compile(r"dubbed", re.IGNORECASE),
    re.compile(r"checkbox", re.IGNORECASE),
    re.compile(r"hover", re.IGNORECASE),
    re.compile(r"POC", re.IGNORECASE),
    re.compile(r"test", re.IGNORECASE),
    re.compile(r"automation", re.IGNORECASE),
    re.compile(r"business action", re.IGNORECASE),
]

# Business-action synonyms added as tags when the key word appears
SYNONYMS: Dict[str, List[str]] = {
    "order": ["spot", "qo", "quick order", "purchase order"],
    "approve": ["confirm", "accept", "validate"],
    "email": ["notification", "message", "mail"],
    "assign": ["allocate", "set", "designate"],
    "login": ["sign in", "authenticate"],
}


@dataclass
class Article:
    title: str
    url: str
    content: str = ""
    tags: List[str] = field(default_factory=list)
    embedding: List[float] = field(default_factory=list)

    @property
    def raw_text(self) -> str:
        return f"{self.title}\n{self.content}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def extract_tags(text: str) -> List[str]:
    tags: List[str] = []
    for pattern in TAG_PATTERNS:
        tags.extend(m.group(0).lower() for m in pattern.finditer(text))
    lowered = text.lower()
    for key, words in SYNONYMS.items():
        if key in lowered:
            tags.extend(words)
    return list(dict.fromkeys(tags))


def normalize_content(text: str) -> str:
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"(test code:|example:)", "", text, flags=re.IGNORECASE)
    return text.strip()


def fetch_articles(article_refs: Iterable[Dict[str, str]], out_path: Path, timeout: int = 30) -> List[Article]:
    """Download each ``{title, url}`` reference; failed fetches keep empty content."""
    results: List[Article] = []
    for ref in article_refs:
        title, url = ref.get("title", ""), ref.get("url", "")
        try:
            resp = requests.get(url, timeout=timeout)
            resp.raise_for_status()
            content = resp.text
            logger.info("[Articles] Fetched: %s", title)
        except requests.RequestException as exc:
            logger.warning("[Articles] Failed to fetch: %s (%s): %s", title, url, exc)
            content = ""
        results.append(Article(title=title, url=url, content=content))

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps([a.to_dict() for a in results], indent=2), encoding="utf-8")
    logger.info("[Articles] Saved %d articles to %s", len(results), out_path)
    return results


def load_articles(path: Path) -> List[Article]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return [
        Article(title=item.get("title", ""), url=item.get("url", ""), content=item.get("content", "") or "")
        for item in data
    ]


class ArticleEmbeddingStore:
    """Ordered, in-memory list of embedded articles backed by a JSON file."""

    def __init__(self, articles: List[Article] | None = None):
        self.articles: List[Article] = list(articles or [])

    def __len__(self) -> int:
        return len(self.articles)

    def __iter__(self):
        return iter(self.articles)

    @classmethod
    def load(cls, path: Path) -> "ArticleEmbeddingStore":
        path = Path(path)
        if not path.exists():
            logger.warning("[Articles] Embedding file %s not found; store is empty", path)
            return cls()
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls([
            Article(
                title=item.get("title", ""),
                url=item.get("url", ""),
                content=item.get("content", "") or "",
                tags=list(item.get("tags") or []),
                embedding=[float(v) for v in item.get("embedding") or []],
            )
            for item in data
        ])

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps([a.to_dict() for a in self.articles], indent=2), encoding="utf-8")
        logger.info("[Articles] Embeddings saved to %s", path)
        return path


def embed_articles(articles: Iterable[Article], embedder: EmbeddingProvider) -> ArticleEmbeddingStore:
    store = ArticleEmbeddingStore()
    for article in articles:
        tags = extract_tags(article.content)
        text = normalize_content(f"{article.title}\n{article.content}\n{' '.join(tags)}")
        try:
            vector = embedder.embed(text)
        except EmbeddingError as exc:
            logger.warning("[Articles] Skipping %s: %s", article.title, exc.cause)
            continue
        store.articles.append(Article(
            title=article.title,
            url=article.url,
            content=article.content,
            tags=tags,
            embedding=vector,
        ))
        logger.info("[Articles] Embedded: %s [tags: %s]", article.title, ", ".join(tags))
    return store
