"""
Chunk persistence gateway.

Writes every chunk to the BM25 store (lexical search + per-document record)
and chunks that carry an embedding to Chroma (vector search). Reads come
back as Chunk objects.

Metadata layout shared by both stores:
  document_id, document_type, language, topics ("a,b"), topic_<name>: True,
  source_section, char_start, char_end, page_number (when set),
  created_at, updated_at (ISO-8601)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from askhub.config import load_config
from askhub.errors import StoreError
from askhub.metadata.schema import Chunk, RetrievalFilters
from askhub.metadata.validation import require_valid_chunks
from askhub.retrieval.bm25 import BM25Store
from askhub.retrieval.vector_chroma import ChromaVectorStore, build_where_filter, topic_flag
from askhub.utils.ids import stable_chunk_id

logger = logging.getLogger("askhub.retrieval.chunk_store")

ScoredChunk = Tuple[Chunk, float]


def chunk_to_metadata(chunk: Chunk) -> Dict[str, Any]:
    meta: Dict[str, Any] = {
        "document_id": chunk.document_id,
        "document_type": chunk.document_type,
        "language": chunk.language,
        "topics": ",".join(chunk.topics),
        "source_section": chunk.source_section,
        "char_start": int(chunk.char_start),
        "char_end": int(chunk.char_end),
        "created_at": chunk.created_at.isoformat(),
        "updated_at": chunk.updated_at.isoformat(),
    }
    for t in chunk.topics:
        meta[topic_flag(t)] = True
    if chunk.page_number is not None:
        meta["page_number"] = int(chunk.page_number)
    return meta


def _parse_ts(v: Any) -> datetime:
    if isinstance(v, str) and v:
        try:
            return datetime.fromisoformat(v)
        except ValueError:
            logger.debug("Unparseable timestamp %r; using now", v)
    return datetime.now(timezone.utc)


def chunk_from_record(
    chunk_id: str,
    text: str,
    meta: Mapping[str, Any],
    embedding: Optional[Sequence[float]] = None,
) -> Chunk:
    topics = tuple(t for t in str(meta.get("topics") or "").split(",") if t)
    page = meta.get("page_number")
    return Chunk(
        id=chunk_id,
        document_id=str(meta.get("document_id", "")),
        content=text or "",
        source_section=str(meta.get("source_section", "")),
        char_start=int(meta.get("char_start", 0)),
        char_end=int(meta.get("char_end", 0)),
        document_type=str(meta.get("document_type", "")),
        language=str(meta.get("language", "")),
        topics=topics,
        embedding=[float(x) for x in embedding] if embedding is not None else None,
        page_number=int(page) if page is not None else None,
        created_at=_parse_ts(meta.get("created_at")),
        updated_at=_parse_ts(meta.get("updated_at")),
    )


@dataclass
class ChunkStore:
    vectors: ChromaVectorStore
    lexical: BM25Store
    embedding_dim: int = 768

    # ---- writes ----

    def store(self, chunks: Sequence[Chunk]) -> List[Chunk]:
        """
        Validate and persist chunks, keeping the input order. Chunks without an
        id get a stable id derived from (document_id, char span), so storing the
        same span again overwrites it in both stores. Returns the stored chunks
        (ids assigned).

        Raises ValidationError for any invalid chunk (nothing is written) and
        StoreError when either backend rejects the write.
        """
        if not chunks:
            return []
        require_valid_chunks(chunks, embedding_dim=self.embedding_dim)

        now = datetime.now(timezone.utc)
        stored: List[Chunk] = []
        created = 0
        for c in chunks:
            if c.id:
                stored.append(replace(c, updated_at=now))
            else:
                cid = stable_chunk_id(document_id=c.document_id, char_start=c.char_start, char_end=c.char_end)
                stored.append(replace(c, id=cid, created_at=now, updated_at=now))
                created += 1

        try:
            self._write_vectors(stored)
            # A chunk stored without an embedding must not leave a stale vector behind
            stale = [c.id for c in stored if c.embedding is None]
            if stale:
                self.vectors.delete(stale)

            self.lexical.upsert_many(
                ids=[c.id for c in stored],
                texts=[c.content for c in stored],
                metadatas=[chunk_to_metadata(c) for c in stored],
            )
            self.lexical.save()
        except Exception as e:
            raise StoreError(
                "Failed to store chunks",
                details={"chunks": len(stored), "error": str(e)},
            ) from e

        logger.info(
            "Stored %d chunks (%d new ids, %d with embeddings)",
            len(stored), created, sum(1 for c in stored if c.embedding is not None),
        )
        return stored

    def _write_vectors(self, chunks: Sequence[Chunk]) -> None:
        with_vec = [c for c in chunks if c.embedding is not None]
        if not with_vec:
            return
        self.vectors.upsert(
            ids=[c.id for c in with_vec],
            documents=[c.content for c in with_vec],
            metadatas=[chunk_to_metadata(c) for c in with_vec],
            embeddings=[c.embedding for c in with_vec],
        )

    # ---- reads ----

    def get_by_document(self, document_id: str) -> List[Chunk]:
        """All chunks of a document ordered by position, embeddings attached when indexed."""
        entries = self.lexical.find({"document_id": document_id})
        if not entries:
            return []
        ids = [e["id"] for e in entries]
        vec_rows = self.vectors.get(ids=ids, include_embeddings=True)
        emb_by_id = {r["id"]: r.get("embedding") for r in vec_rows}
        chunks = [
            chunk_from_record(e["id"], e["document"], e["metadata"], emb_by_id.get(e["id"]))
            for e in entries
        ]
        return sorted(chunks, key=lambda c: c.char_start)

    def delete_by_document(self, document_id: str) -> int:
        """Remove every chunk of a document from both stores; returns the number removed."""
        try:
            lexical_ids = [e["id"] for e in self.lexical.find({"document_id": document_id})]
            vector_ids = [r["id"] for r in self.vectors.get(where={"document_id": document_id})]
            ids = list(dict.fromkeys(lexical_ids + vector_ids))
            if not ids:
                return 0
            self.vectors.delete(ids)
            self.lexical.delete_many(ids)
            self.lexical.save()
        except Exception as e:
            raise StoreError("Failed to delete chunks", details={"document_id": document_id, "error": str(e)}) from e
        logger.info("Deleted %d chunks of document %s", len(ids), document_id)
        return len(ids)

    def vector_search(
        self,
        embedding: Sequence[float],
        *,
        filters: Optional[RetrievalFilters] = None,
        top_k: int = 5,
    ) -> List[ScoredChunk]:
        """Nearest chunks by cosine similarity (1 - distance), best first."""
        hits = self.vectors.query(query_embedding=embedding, where=build_where_filter(filters), top_k=top_k)
        return [
            (chunk_from_record(h["id"], h.get("document") or "", h.get("metadata") or {}), float(h["similarity"]))
            for h in hits
        ]

    def text_search(
        self,
        query: str,
        *,
        filters: Optional[RetrievalFilters] = None,
        top_k: int = 5,
    ) -> List[ScoredChunk]:
        """BM25 matches with a positive score, best first."""
        lang = filters.language if filters is not None else None
        hits = self.lexical.search(query=query, where=build_where_filter(filters), top_k=top_k, lang_hint=lang)
        return [(chunk_from_record(h["id"], h["document"], h["metadata"]), float(h["score"])) for h in hits]

    def counts(self) -> Dict[str, int]:
        return {"chunks": self.lexical.count(), "vectors": self.vectors.count()}

    @classmethod
    def from_config(cls) -> "ChunkStore":
        cfg = load_config()
        return cls(
            vectors=ChromaVectorStore.from_config(),
            lexical=BM25Store.load_or_create(cfg.bm25_index_dir),
            embedding_dim=cfg.embedding_dim,
        )
