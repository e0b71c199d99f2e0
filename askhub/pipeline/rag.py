"""
End-to-end pipeline used by the CLI and other callers.

AskPipeline wires the components together and exposes three surfaces:

- ingestion   : chunk_document -> generate_embeddings -> store_chunks,
                plus ingest_document() which runs them in order and registers
                the parent document in the catalog.
- query       : retrieve_context -> generate_answer, or chat() for both;
                retrieve_preview() for retrieval only.
- verification: verify_faithfulness and the claim-level helpers.

index_stats() gives a quick health snapshot (counts + on-disk usage).

Components are injected, so tests can substitute fakes; from_config()
builds the production stack (E5 + Chroma + BM25 + llama.cpp).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from askhub.chunking import chunk_document
from askhub.config import load_config
from askhub.embeddings import CachingEmbedder, ChunkEmbedder, E5MultilingualEmbedder, EmbeddingProvider
from askhub.errors import ValidationError
from askhub.generation import AnswerGenerator, LLMProvider, TieredLlamaProvider
from askhub.metadata import (
    Chunk,
    Claim,
    FaithfulnessResult,
    Message,
    RAGResponse,
    RetrievalFilters,
    RetrievedChunk,
    validate_filters,
)
from askhub.retrieval import ChunkStore, DocumentCatalog, DocumentRecord, HybridRetriever
from askhub.verification import FaithfulnessVerifier

logger = logging.getLogger("askhub.pipeline.rag")

CHAT_TOP_K = 5
PREVIEW_SNIPPET_CHARS = 240


# =============================================================================
# Data models returned by the pipeline
# =============================================================================

@dataclass
class IngestResult:
    """Summary returned by ingest_document()."""
    document_id: str
    document_type: str
    language: str
    total_chunks: int
    embedded: int
    replaced: int
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


def _coerce_filters(filters: Optional[RetrievalFilters | Mapping[str, Any]]) -> Optional[RetrievalFilters]:
    if filters is None or isinstance(filters, RetrievalFilters):
        return filters
    return validate_filters(filters)


def _du_bytes(path: Path) -> int:
    """Rough recursive disk usage in bytes."""
    if not path.exists():
        return 0
    if path.is_file():
        return path.stat().st_size
    total = 0
    for root, _dirs, files in os.walk(path):
        for f in files:
            try:
                total += (Path(root) / f).stat().st_size
            except OSError as e:
                logger.debug("Skipping %s in disk usage: %s", f, e)
    return total


# =============================================================================
# Pipeline
# =============================================================================

@dataclass
class AskPipeline:
    store: ChunkStore
    catalog: DocumentCatalog
    embedder: ChunkEmbedder
    retriever: HybridRetriever
    generator: AnswerGenerator
    verifier: FaithfulnessVerifier
    top_k: int = CHAT_TOP_K
    index_paths: Dict[str, Path] = field(default_factory=dict)

    # ---- ingestion ----

    def chunk_document(
        self,
        document_id: str,
        raw_text: str,
        document_type: str,
        language: str = "auto",
        topics: Sequence[str] = (),
    ) -> List[Chunk]:
        return chunk_document(document_id, raw_text, document_type, language, topics)

    def generate_embeddings(self, chunks: Sequence[Chunk]) -> List[Chunk]:
        return self.embedder.embed(chunks)

    def store_chunks(self, chunks: Sequence[Chunk]) -> List[Chunk]:
        return self.store.store(chunks)

    def get_chunks_for_resource(self, document_id: str) -> List[Chunk]:
        return self.store.get_by_document(document_id)

    def delete_chunks_for_resource(self, document_id: str) -> int:
        return self.store.delete_by_document(document_id)

    def ingest_document(
        self,
        *,
        document_id: str,
        raw_text: str,
        document_type: str,
        title: str,
        url: str = "",
        language: str = "auto",
        topics: Sequence[str] = (),
    ) -> IngestResult:
        """
        Replace a document in the index: chunk -> embed -> delete old chunks ->
        store -> register in the catalog. Chunking and embedding errors surface
        before anything is deleted.
        """
        if not (document_id or "").strip():
            raise ValidationError("document_id is required", field="document_id")
        if not (title or "").strip():
            raise ValidationError("title is required", field="title")

        chunks = self.chunk_document(document_id, raw_text, document_type, language, topics)
        embedded = self.generate_embeddings(chunks)
        replaced = self.delete_chunks_for_resource(document_id)
        stored = self.store_chunks(embedded)

        lang = stored[0].language if stored else language
        self.catalog.register(DocumentRecord(
            document_id=document_id,
            title=title.strip(),
            url=url.strip(),
            document_type=document_type,
            language=lang,
            topics=list(stored[0].topics) if stored else list(topics),
        ))
        self.catalog.save()

        result = IngestResult(
            document_id=document_id,
            document_type=document_type,
            language=lang,
            total_chunks=len(stored),
            embedded=sum(1 for c in stored if c.embedding is not None),
            replaced=replaced,
            created_at=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        )
        logger.info(
            "Ingested %s: %d chunks (%d embedded, %d replaced)",
            document_id, result.total_chunks, result.embedded, result.replaced,
        )
        return result

    def remove_document(self, document_id: str) -> int:
        """Delete a document's chunks and its catalog entry."""
        removed = self.delete_chunks_for_resource(document_id)
        if self.catalog.remove(document_id):
            self.catalog.save()
        return removed

    # ---- query ----

    def retrieve_context(
        self,
        query: str,
        top_k: int = CHAT_TOP_K,
        filters: Optional[RetrievalFilters | Mapping[str, Any]] = None,
    ) -> List[RetrievedChunk]:
        return self.retriever.retrieve(query, top_k=top_k, filters=_coerce_filters(filters))

    def generate_answer(
        self,
        query: str,
        context: Sequence[RetrievedChunk],
        history: Optional[Sequence[Message]] = None,
    ) -> RAGResponse:
        return self.generator.generate(query, context, history)

    def chat(
        self,
        query: str,
        session_id: Optional[str] = None,
        filters: Optional[RetrievalFilters | Mapping[str, Any]] = None,
        history: Optional[Sequence[Message]] = None,
    ) -> RAGResponse:
        """Retrieve the top chunks for the query and answer from them."""
        if not (query or "").strip():
            raise ValidationError("Query is required", field="query")
        context = self.retrieve_context(query, self.top_k, filters)
        logger.debug("chat session=%s retrieved=%d", session_id, len(context))
        return self.generate_answer(query, context, history)

    def retrieve_preview(
        self,
        query: str,
        top_k: int = CHAT_TOP_K,
        filters: Optional[RetrievalFilters | Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Retrieval only (no generation): ranked items with snippet and scores."""
        items: List[Dict[str, Any]] = []
        for i, c in enumerate(self.retrieve_context(query, top_k, filters), start=1):
            snippet = c.content.replace("\n", " ").strip()
            if len(snippet) > PREVIEW_SNIPPET_CHARS:
                snippet = snippet[:PREVIEW_SNIPPET_CHARS].rstrip() + "..."
            items.append({
                "rank": i,
                "chunk_id": c.chunk_id,
                "document_id": c.document_id,
                "document_title": c.document_title,
                "section": c.source_section,
                "score": c.score,
                "fused_score": round(c.fused_score, 4),
                "snippet": snippet,
            })
        return items

    # ---- verification ----

    def verify_faithfulness(self, answer: str, sources: Sequence[Any]) -> FaithfulnessResult:
        return self.verifier.verify(answer, sources)

    def extract_claims(self, answer: str) -> List[Claim]:
        return self.verifier.extract_claims(answer)

    def verify_claim(self, claim: str, sources: Sequence[Any]) -> bool:
        return self.verifier.verify_claim(claim, sources)

    def verify_claims_batch(self, claims: Sequence[str], sources: Sequence[Any]) -> Dict[str, bool]:
        return self.verifier.verify_claims_batch(claims, sources)

    def get_faithfulness_score(self, answer: str, sources: Sequence[Any]) -> float:
        return self.verifier.get_faithfulness_score(answer, sources)

    def detect_hallucinations(self, answer: str, sources: Sequence[Any]) -> List[str]:
        return self.verifier.detect_hallucinations(answer, sources)

    # ---- stats ----

    def index_stats(self) -> Dict[str, Any]:
        """Counts (-1 when a store is unavailable) and disk usage of index directories."""
        try:
            vcount = self.store.vectors.count()
        except Exception as e:
            logger.warning("Vector count unavailable: %s", e)
            vcount = -1
        stats: Dict[str, Any] = {
            "documents": len(self.catalog),
            "chunks": self.store.lexical.count(),
            "vectors": vcount,
        }
        for name, path in self.index_paths.items():
            stats[f"{name}_bytes"] = _du_bytes(path)
        return stats

    # ---- factory ----

    @classmethod
    def from_config(cls, *, llm: Optional[LLMProvider] = None) -> "AskPipeline":
        cfg = load_config()
        cfg.validate_for_embeddings()

        base: EmbeddingProvider = E5MultilingualEmbedder(model_name=cfg.embedding_model_name)
        query_embedder: EmbeddingProvider = base
        if cfg.use_embedding_cache:
            query_embedder = CachingEmbedder(base, cache_dir=cfg.emb_cache_dir)

        store = ChunkStore.from_config()
        catalog = DocumentCatalog.load_or_create(cfg.catalog_path)
        llm = llm or TieredLlamaProvider.from_config()

        return cls(
            store=store,
            catalog=catalog,
            embedder=ChunkEmbedder(base, batch_size=cfg.embed_batch_size, batch_delay=cfg.embed_batch_delay),
            retriever=HybridRetriever.from_config(store=store, embedder=query_embedder, catalog=catalog),
            generator=AnswerGenerator.from_config(llm),
            verifier=FaithfulnessVerifier(llm),
            top_k=cfg.top_k,
            index_paths={
                "chroma": cfg.chroma_persist_directory,
                "bm25": cfg.bm25_index_dir,
                "catalog": cfg.catalog_path,
                "emb_cache": cfg.emb_cache_dir,
            },
        )
