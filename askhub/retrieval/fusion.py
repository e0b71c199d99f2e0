"""
Hybrid retrieval with weighted score fusion.

This module combines:
- Vector results from Chroma (cosine similarity = 1 - distance; higher is better)
- Lexical results from BM25 (higher score is better; only positive scores)

Scores are fused additively per chunk id:
    fused(chunk) = weight_vector * similarity + weight_text * text_score
(defaults 0.7 / 0.3). Missing contributions count as 0.

The exposed score is rank based: 1.0 - 0.1 * position in the fused list.
The raw fused value is kept on RetrievedChunk.fused_score.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from askhub.config import load_config
from askhub.embeddings.batch import EmbeddingProvider
from askhub.metadata.schema import Chunk, RetrievalFilters, RetrievedChunk
from askhub.retrieval.catalog import DocumentCatalog
from askhub.retrieval.chunk_store import ChunkStore

logger = logging.getLogger("askhub.retrieval.fusion")

SCORE_STEP = 0.1


def fuse_scores(
    vector_hits: Sequence[Tuple[str, float]],
    text_hits: Sequence[Tuple[str, float]],
    *,
    top_k: int,
    weight_vector: float = 0.7,
    weight_text: float = 0.3,
) -> List[Tuple[str, float]]:
    """
    Fuse (id, score) lists into one list of (id, fused_score), best first,
    truncated to top_k. Ties keep first-seen order (vector hits first).
    """
    scores: Dict[str, float] = {}
    for _id, sim in vector_hits:
        scores[_id] = scores.get(_id, 0.0) + float(sim) * weight_vector
    for _id, s in text_hits:
        scores[_id] = scores.get(_id, 0.0) + float(s) * weight_text
    return sorted(scores.items(), key=lambda kv: kv[1], reverse=True)[:top_k]


def rank_score(position: int) -> float:
    return round(1.0 - SCORE_STEP * position, 4)


@dataclass
class HybridRetriever:
    """
    Orchestrates vector + BM25 retrieval with metadata filters, weighted fusion
    and parent-document enrichment.
    """
    store: ChunkStore
    embedder: EmbeddingProvider
    catalog: DocumentCatalog

    weight_vector: float = 0.7
    weight_text: float = 0.3

    def retrieve(
        self,
        query: str,
        *,
        top_k: int = 5,
        filters: Optional[RetrievalFilters] = None,
    ) -> List[RetrievedChunk]:
        """
        Return up to top_k enriched chunks, best first.
        Retrieval never raises: on any failure the error is logged and [] returned.
        """
        try:
            q_vec = self.embedder.encode_queries([query])[0]
            vec_hits = self.store.vector_search(q_vec, filters=filters, top_k=top_k)
            text_hits = self.store.text_search(query, filters=filters, top_k=top_k)

            by_id: Dict[str, Chunk] = {}
            for chunk, _ in vec_hits:
                by_id.setdefault(chunk.id, chunk)
            for chunk, _ in text_hits:
                by_id.setdefault(chunk.id, chunk)

            fused = fuse_scores(
                [(c.id, s) for c, s in vec_hits],
                [(c.id, s) for c, s in text_hits],
                top_k=top_k,
                weight_vector=self.weight_vector,
                weight_text=self.weight_text,
            )

            docs = self.catalog.get_many(list({by_id[cid].document_id for cid, _ in fused}))
            out: List[RetrievedChunk] = []
            for cid, fused_score in fused:
                chunk = by_id[cid]
                doc = docs.get(chunk.document_id)
                if doc is None:
                    logger.debug("Dropping chunk %s: parent document %s not in catalog", cid, chunk.document_id)
                    continue
                out.append(
                    RetrievedChunk(
                        chunk_id=cid,
                        content=chunk.content,
                        document_id=chunk.document_id,
                        document_title=doc.title,
                        document_url=doc.url,
                        score=rank_score(len(out)),
                        source_section=chunk.source_section,
                        document_type=chunk.document_type,
                        language=chunk.language,
                        topics=list(chunk.topics),
                        page_number=chunk.page_number,
                        fused_score=fused_score,
                    )
                )
        except Exception as e:
            logger.warning("Hybrid retrieval failed for query %r: %s", query[:80], e)
            return []

        logger.debug(
            "Retrieved %d chunks (vector=%d, text=%d, fused=%d)",
            len(out), len(vec_hits), len(text_hits), len(fused),
        )
        return out

    @classmethod
    def from_config(
        cls,
        *,
        store: ChunkStore,
        embedder: EmbeddingProvider,
        catalog: DocumentCatalog,
    ) -> "HybridRetriever":
        cfg = load_config()
        return cls(
            store=store,
            embedder=embedder,
            catalog=catalog,
            weight_vector=cfg.weight_vector,
            weight_text=cfg.weight_text,
        )
