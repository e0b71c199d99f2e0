"""
Chroma vector store wrapper for askhub.

Dual-mode client:
- If env CHROMA_HTTP_URL is set -> use HttpClient (thin client; no default EF)
- Else -> use PersistentClient (we still set embedding_function=None)

Embeddings are always supplied explicitly (from E5). Similarity is reported as
1 - cosine distance.

build_where_filter() turns RetrievalFilters into a Chroma-style 'where' dict;
the BM25 store evaluates the same dict, so both searches see the same subset.
"""

from __future__ import annotations

import importlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import numpy as np

from askhub.config import load_config
from askhub.metadata.schema import RetrievalFilters


def topic_flag(topic: str) -> str:
    """Metadata key used to mark a chunk as tagged with a topic."""
    return f"topic_{topic}"


def build_where_filter(filters: Optional[RetrievalFilters]) -> Optional[Dict[str, Any]]:
    """
    Build a Chroma 'where' dict:
    - topics: any-of, via boolean topic_<name> flags ($or)
    - document_types: $in on document_type
    - language: equality
    """
    if filters is None or filters.is_empty():
        return None

    clauses: List[Dict[str, Any]] = []
    if filters.topics:
        topic_clauses = [{topic_flag(t): True} for t in filters.topics]
        clauses.append(topic_clauses[0] if len(topic_clauses) == 1 else {"$or": topic_clauses})
    if filters.document_types:
        clauses.append({"document_type": {"$in": list(filters.document_types)}})
    if filters.language:
        clauses.append({"language": filters.language})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


@dataclass
class ChromaVectorStore:
    persist_dir: Path
    collection_name: str = "askhub_chunks"
    distance: str = "cosine"

    _client: Optional[Any] = None
    _collection: Optional[Any] = None

    def _ensure_client(self):
        if self._client is not None:
            return self._client

        chromadb = importlib.import_module("chromadb")
        http_url = os.getenv("CHROMA_HTTP_URL", "").strip()

        if http_url:
            parsed = urlparse(http_url)
            host = parsed.hostname or "localhost"
            port = parsed.port or 8000
            self._client = chromadb.HttpClient(host=host, port=port)
            return self._client

        self.persist_dir.mkdir(parents=True, exist_ok=True)
        self._client = chromadb.PersistentClient(path=str(self.persist_dir))
        return self._client

    def _ensure_collection(self):
        if self._collection is not None:
            return self._collection
        client = self._ensure_client()
        self._collection = client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": self.distance},
            embedding_function=None,
        )
        return self._collection

    @staticmethod
    def _as_lists(embeddings: Sequence[Sequence[float]]) -> List[List[float]]:
        return np.asarray(embeddings, dtype="float32").tolist()

    # ---- Writes ----

    def upsert(
        self,
        *,
        ids: Sequence[str],
        documents: Sequence[str],
        metadatas: Sequence[Dict[str, Any]],
        embeddings: Sequence[Sequence[float]],
    ) -> None:
        if not ids:
            return
        if not (len(ids) == len(documents) == len(metadatas) == len(embeddings)):
            raise ValueError("Lengths of ids, documents, metadatas, and embeddings must match.")
        self._ensure_collection().upsert(
            ids=list(ids),
            documents=list(documents),
            metadatas=list(metadatas),
            embeddings=self._as_lists(embeddings),
        )

    def delete(self, ids: Sequence[str]) -> None:
        if ids:
            self._ensure_collection().delete(ids=list(ids))

    # ---- Reads ----

    def query(
        self,
        *,
        query_embedding: Sequence[float],
        where: Optional[Dict[str, Any]] = None,
        top_k: int = 5,
    ) -> List[Dict[str, Any]]:
        """Nearest neighbours; items carry id, document, metadata, distance, similarity."""
        q = np.asarray(query_embedding, dtype="float32")
        if q.ndim == 1:
            q = q[None, :]

        kwargs: Dict[str, Any] = dict(
            query_embeddings=q.tolist(),
            n_results=int(top_k),
            include=["metadatas", "documents", "distances"],
        )
        if where:
            kwargs["where"] = where

        res = self._ensure_collection().query(**kwargs)

        ids = (res.get("ids") or [[]])[0]
        docs = (res.get("documents") or [[]])[0]
        metas = (res.get("metadatas") or [[]])[0]
        dists = (res.get("distances") or [[]])[0]

        out: List[Dict[str, Any]] = []
        for i, _id in enumerate(ids):
            dist = float(dists[i]) if i < len(dists) and dists[i] is not None else 1.0
            out.append({
                "id": _id,
                "document": docs[i] if i < len(docs) else None,
                "metadata": metas[i] if i < len(metas) else {},
                "distance": dist,
                "similarity": 1.0 - dist,
            })
        return out

    def get(
        self,
        *,
        ids: Optional[Sequence[str]] = None,
        where: Optional[Dict[str, Any]] = None,
        include_embeddings: bool = False,
    ) -> List[Dict[str, Any]]:
        include = ["metadatas", "documents"]
        if include_embeddings:
            include.append("embeddings")
        kwargs: Dict[str, Any] = {"include": include}
        if ids is not None:
            kwargs["ids"] = list(ids)
        if where:
            kwargs["where"] = where

        res = self._ensure_collection().get(**kwargs)
        got_ids = list(res.get("ids") or [])
        docs = res.get("documents")
        metas = res.get("metadatas")
        embs = res.get("embeddings") if include_embeddings else None

        out: List[Dict[str, Any]] = []
        for i, _id in enumerate(got_ids):
            item: Dict[str, Any] = {
                "id": _id,
                "document": docs[i] if docs is not None and i < len(docs) else None,
                "metadata": metas[i] if metas is not None and i < len(metas) else {},
            }
            if embs is not None and i < len(embs) and embs[i] is not None:
                item["embedding"] = [float(x) for x in embs[i]]
            out.append(item)
        return out

    def count(self) -> int:
        return int(self._ensure_collection().count())

    @classmethod
    def from_config(cls) -> "ChromaVectorStore":
        cfg = load_config()
        return cls(
            persist_dir=cfg.chroma_persist_directory,
            collection_name=cfg.chroma_collection_name,
            distance="cosine",
        )
