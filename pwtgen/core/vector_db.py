# vector_db.py
import argparse
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import chromadb

from .embeddings import EmbeddingProvider
from .errors import EmbeddingError, IngestionPartialFailure
from .models import Document, IngestReport

logger = logging.getLogger(__name__)

_SCALAR_TYPES = (str, int, float, bool)


@dataclass
class IndexHit:
    id: str
    content: str
    score: float
    metadata: Dict[str, Any]


def _flatten(field: Any) -> List[Any]:
    if field is None:
        return []
    if isinstance(field, list):
        if field and isinstance(field[0], list):
            return field[0]
        return field
    return []


def _clean_metadata(meta: Dict[str, Any]) -> Dict[str, Any]:
    # Chroma only stores scalar, non-null metadata values
    cleaned: Dict[str, Any] = {}
    for key, value in meta.items():
        if value is None:
            continue
        cleaned[str(key)] = value if isinstance(value, _SCALAR_TYPES) else json.dumps(value, ensure_ascii=False)
    return cleaned


class VectorDBClient:
    """Persisted ``(vector, metadata)`` store answering nearest-neighbour queries.

    Similarity is cosine; scores are reported as ``1 - cosine_distance`` so they
    fall in ``[-1, 1]``. Items are never mutated after insertion, only replaced
    wholesale by :meth:`rebuild`.
    """

    def __init__(
        self,
        path: str = "./vector_store",
        collection_name: str = "knowledge_base",
        embedder: Optional[EmbeddingProvider] = None,
        client: Any = None,
    ):
        self.path = path
        self.collection_name = collection_name
        self.embedder = embedder or EmbeddingProvider()
        self.client = client if client is not None else chromadb.PersistentClient(path=path)
        self.collection = self._open_collection()

    # ---------------- Open / recreate ----------------
    def _create_collection(self):
        return self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )

    def _open_collection(self):
        try:
            return self._create_collection()
        except Exception as exc:  # noqa: BLE001
            logger.warning("[VectorDB] Recreating collection '%s' after open error: %s", self.collection_name, exc)
            self._drop_collection()
            return self._create_collection()

    def _drop_collection(self) -> None:
        try:
            self.client.delete_collection(self.collection_name)
        except Exception as exc:  # noqa: BLE001
            logger.debug("[VectorDB] delete_collection(%s) ignored: %s", self.collection_name, exc)

    # ---------------- Rebuild (ingest) ----------------
    def rebuild(self, documents: Iterable[Document]) -> IngestReport:
        """Destroy the index and insert every document that embeds successfully."""
        self._drop_collection()
        self.collection = self._create_collection()

        indexed = 0
        failures: List[IngestionPartialFailure] = []
        for seq, doc in enumerate(documents):
            try:
                vector = self.embedder.embed(doc.text)
            except EmbeddingError as exc:
                failure = IngestionPartialFailure(doc.id, exc.cause)
                logger.warning("[VectorDB] Failed to embed document %s: %s", doc.id, exc.cause)
                failures.append(failure)
                continue
            metadata = _clean_metadata({
                **doc.meta,
                "id": doc.id,
                "content": doc.text,
                "type": doc.type.value,
                "file": doc.meta.get("file", doc.id),
                "seq": seq,
            })
            self.collection.add(
                ids=[doc.id],
                embeddings=[vector],
                documents=[doc.text],
                metadatas=[metadata],
            )
            indexed += 1

        logger.info("[VectorDB] Indexed %d documents (%d failed)", indexed, len(failures))
        return IngestReport(indexed=indexed, failures=failures)

    # ---------------- Query ----------------
    def query(self, vector: List[float], top_k: int = 15) -> List[IndexHit]:
        total = self.count()
        if total == 0:
            return []
        results = self.collection.query(
            query_embeddings=[vector],
            n_results=max(1, min(top_k, total)),
            include=["documents", "metadatas", "distances"],
        )
        ids = _flatten(results.get("ids"))
        documents = _flatten(results.get("documents"))
        metadatas = _flatten(results.get("metadatas"))
        distances = _flatten(results.get("distances"))

        hits: List[IndexHit] = []
        for i, doc_id in enumerate(ids):
            meta = metadatas[i] if i < len(metadatas) and isinstance(metadatas[i], dict) else {}
            content = documents[i] if i < len(documents) and documents[i] is not None else meta.get("content", "")
            distance = distances[i] if i < len(distances) else 1.0
            hits.append(IndexHit(id=str(meta.get("id", doc_id)), content=str(content), score=1.0 - float(distance), metadata=dict(meta)))
        # Equal scores keep insertion order
        hits.sort(key=lambda hit: (-hit.score, int(hit.metadata.get("seq", 0))))
        return hits

    # ---------------- Count ----------------
    def count(self) -> int:
        return int(self.collection.count())

    # ---------------- List all ----------------
    def list_all(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Return up to `limit` documents with metadata for inspection."""
        results = self.collection.get(limit=limit, include=["documents", "metadatas"])
        ids = _flatten(results.get("ids"))
        documents = _flatten(results.get("documents"))
        metadatas = _flatten(results.get("metadatas"))
        docs = []
        for i, doc_id in enumerate(ids):
            docs.append({
                "id": doc_id,
                "content": documents[i] if i < len(documents) else None,
                "metadata": metadatas[i] if i < len(metadatas) and isinstance(metadatas[i], dict) else {},
            })
        docs.sort(key=lambda d: int(d["metadata"].get("seq", 0)))
        return docs

    # ---------------- Delete all ----------------
    def delete_all(self) -> None:
        self._drop_collection()
        self.collection = self._create_collection()
        logger.info("[VectorDB] Cleared collection '%s'", self.collection_name)


def _cli_list(client: VectorDBClient, args: argparse.Namespace) -> int:
    records = client.list_all(limit=args.limit)
    print(json.dumps({"results": records}, ensure_ascii=False))
    return 0


def _cli_count(client: VectorDBClient, args: argparse.Namespace) -> int:
    print(json.dumps({"count": client.count()}))
    return 0


def _cli_query(client: VectorDBClient, args: argparse.Namespace) -> int:
    vector = client.embedder.embed(args.query)
    hits = client.query(vector, top_k=args.top_k)
    print(json.dumps({"results": [hit.__dict__ for hit in hits]}, ensure_ascii=False))
    return 0


def _cli_delete(client: VectorDBClient, args: argparse.Namespace) -> int:
    client.delete_all()
    print(json.dumps({"status": "ok"}))
    return 0


def main_cli(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Knowledge-base vector index command line interface.")
    parser.add_argument("--path", default=os.getenv("VECTOR_DB_PATH", "./vector_store"), help="Path to vector DB.")
    parser.add_argument("--collection", default=os.getenv("VECTOR_COLLECTION", "knowledge_base"), help="Collection name.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    query_parser = subparsers.add_parser("query", help="Raw nearest-neighbour query (no threshold cascade).")
    query_parser.add_argument("query", help="Natural language query string.")
    query_parser.add_argument("--top-k", type=int, default=5, help="Number of results to return.")

    list_parser = subparsers.add_parser("list", help="List documents for inspection.")
    list_parser.add_argument("--limit", type=int, default=20, help="Limit number of documents.")

    subparsers.add_parser("count", help="Number of indexed items.")
    subparsers.add_parser("delete", help="Delete every indexed item.")

    args = parser.parse_args(argv)
    client = VectorDBClient(path=args.path, collection_name=args.collection)

    if args.command == "query":
        return _cli_query(client, args)
    if args.command == "list":
        return _cli_list(client, args)
    if args.command == "count":
        return _cli_count(client, args)
    if args.command == "delete":
        return _cli_delete(client, args)
    parser.error("Unknown command")
    return 1


if __name__ == "__main__":
    try:
        raise SystemExit(main_cli())
    except Exception as exc:
        print(json.dumps({"error": str(exc)}))
        raise SystemExit(1)
