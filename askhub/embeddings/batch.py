"""
Batched embedding of chunks during ingestion.

- Only chunks without an embedding are sent to the provider; chunks that
  already carry one pass through unchanged (safe to re-run).
- Fixed-size batches; calls inside a batch run concurrently on a thread pool,
  batches run one after another with a short delay in between.
- A failure on one chunk is logged and that chunk stays without an embedding.
  Only a provider that cannot be loaded at all raises EmbeddingError.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Protocol, Sequence

import numpy as np

from askhub.errors import EmbeddingError
from askhub.metadata.schema import Chunk

logger = logging.getLogger("askhub.embeddings.batch")


class EmbeddingProvider(Protocol):
    def encode_queries(self, texts: Iterable[str]) -> np.ndarray: ...

    def encode_passages(self, texts: Iterable[str]) -> np.ndarray: ...


@dataclass
class ChunkEmbedder:
    provider: EmbeddingProvider
    batch_size: int = 10
    batch_delay: float = 0.2
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def _warmup(self) -> None:
        warmup = getattr(self.provider, "warmup", None)
        if warmup is None:
            return
        try:
            warmup()
        except Exception as e:
            raise EmbeddingError("Embedding generation failed", details={"error": str(e)}) from e

    def _embed_one(self, chunk: Chunk) -> Chunk:
        vecs = self.provider.encode_passages([chunk.content])
        vec = np.asarray(vecs[0], dtype="float32")
        if vec.size == 0:
            raise ValueError("provider returned an empty embedding")
        return chunk.with_embedding(vec.tolist())

    def embed(self, chunks: Sequence[Chunk]) -> List[Chunk]:
        out = list(chunks)
        pending = [i for i, c in enumerate(out) if not c.embedding]
        if not pending:
            return out

        self._warmup()

        failed = 0
        bs = max(1, int(self.batch_size))
        with ThreadPoolExecutor(max_workers=bs) as ex:
            for b in range(0, len(pending), bs):
                batch = pending[b:b + bs]
                fut2idx = {ex.submit(self._embed_one, out[i]): i for i in batch}
                for fut in as_completed(fut2idx):
                    i = fut2idx[fut]
                    try:
                        out[i] = fut.result()
                    except Exception as e:
                        failed += 1
                        logger.warning(
                            "Embedding generation failed for chunk '%s' of %s: %s",
                            out[i].source_section, out[i].document_id, e,
                        )
                if b + bs < len(pending) and self.batch_delay > 0:
                    self.sleep(self.batch_delay)

        logger.info("Embedded %d/%d chunks (%d failed)", len(pending) - failed, len(pending), failed)
        return out
