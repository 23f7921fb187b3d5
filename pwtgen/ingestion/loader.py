# loader.py
"""Walk the knowledge-base tree and turn each supported file into a Document."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterator, List, Tuple

from ..core.models import Document, DocumentType

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".md", ".txt", ".ts", ".js", ".json", ".yml", ".yaml")

_DELIMITER = re.compile(r"---\s*\n")
_META_LINE = re.compile(r"^(\w+):\s*(.*)$")

# First matching directory wins
_TYPE_BY_DIR = (
    ("/selectors/", DocumentType.SELECTOR),
    ("/workflows/", DocumentType.WORKFLOW),
    ("/patterns/", DocumentType.PATTERN),
)


def is_supported(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def walk_knowledge_base(root: Path) -> Iterator[Path]:
    """Yield every file under ``root`` in sorted directory-walk order."""
    try:
        entries = sorted(os.scandir(root), key=lambda e: e.name)
    except OSError as exc:
        logger.warning("[Loader] Could not read directory %s: %s", root, exc)
        return
    for entry in entries:
        path = Path(entry.path)
        if entry.is_dir():
            yield from walk_knowledge_base(path)
        else:
            yield path


def strip_front_matter(src: str) -> Tuple[str, Dict[str, str]]:
    if src.startswith("---"):
        parts = _DELIMITER.split(src)
        if len(parts) >= 3:
            meta: Dict[str, str] = {}
            for line in parts[1].split("\n"):
                match = _META_LINE.match(line)
                if match:
                    meta[match.group(1)] = match.group(2).strip()
            return "---\n".join(parts[2:]).strip(), meta
    return src.strip(), {}


def infer_type(path) -> DocumentType:
    posix = Path(path).as_posix()
    for marker, doc_type in _TYPE_BY_DIR:
        if marker in posix:
            return doc_type
    return DocumentType.FIXTURE


def load_documents(root: Path) -> List[Document]:
    root = Path(root)
    docs: List[Document] = []
    for path in walk_knowledge_base(root):
        if not is_supported(path):
            continue
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("[Loader] Failed to read file %s: %s", path, exc)
            continue
        text, meta = strip_front_matter(content)
        doc_type = infer_type(path)
        doc_id = path.as_posix()
        docs.append(Document(id=doc_id, text=text, type=doc_type, meta={**meta, "file": doc_id, "type": doc_type.value}))
    logger.info("[Loader] Loaded %d documents from %s", len(docs), root)
    return docs
