"""
Embedding integration for intfloat/multilingual-e5-base.

Key behaviors:
- Formats inputs with the required prefixes:
    query  -> "query: <text>"
    passage-> "passage: <text>"
- L2 normalizes embeddings (recommended for cosine similarity in vector DBs).
- Supports batched encoding and returns numpy arrays.
- No fail-on-import; the model loads lazily on first use.

Usage (example):
    emb = E5MultilingualEmbedder("intfloat/multilingual-e5-base")
    q_vecs = emb.encode_queries(["what does OC4IDS cover?"])
    p_vecs = emb.encode_passages(["The OC4IDS standard ..."])
"""

from __future__ import annotations

import importlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional

import numpy as np


def _resolve_cache_dir() -> Optional[str]:
    """
    Pick a directory for caching downloaded models.
    Priority: SENTENCE_TRANSFORMERS_HOME, HUGGINGFACE_HUB_CACHE, HF_HOME.
    """
    for key in ("SENTENCE_TRANSFORMERS_HOME", "HUGGINGFACE_HUB_CACHE", "HF_HOME"):
        v = os.getenv(key)
        if v and v.strip():
            p = Path(v).expanduser().resolve()
            p.mkdir(parents=True, exist_ok=True)
            return str(p)
    return None


def _l2_normalize(mat: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(mat, axis=1, keepdims=True)
    # Avoid division by zero
    norms[norms == 0] = 1.0
    return mat / norms


@dataclass
class E5MultilingualEmbedder:
    model_name: str = "intfloat/multilingual-e5-base"
    device: Optional[str] = None      # e.g., "cuda", "cpu"; None lets ST pick
    batch_size: int = 32
    normalize: bool = True

    # internal
    _model: Optional[Any] = None

    def _ensure_model(self) -> Any:
        if self._model is None:
            st = importlib.import_module("sentence_transformers")
            kwargs = {"device": self.device}
            cache_dir = _resolve_cache_dir()
            if cache_dir:
                kwargs["cache_folder"] = cache_dir
            hf_token = os.getenv("HF_TOKEN") or None
            if hf_token:
                kwargs["token"] = hf_token
            self._model = st.SentenceTransformer(self.model_name, **kwargs)
        return self._model

    def warmup(self) -> None:
        """Load the model now; raises if it cannot be loaded."""
        self._ensure_model()

    @staticmethod
    def _format_queries(texts: Iterable[str]) -> List[str]:
        return [f"query: {t.strip()}" for t in texts]

    @staticmethod
    def _format_passages(texts: Iterable[str]) -> List[str]:
        return [f"passage: {t.strip()}" for t in texts]

    def _encode(self, formatted: List[str]) -> np.ndarray:
        model = self._ensure_model()
        vecs = model.encode(
            formatted,
            batch_size=self.batch_size,
            convert_to_numpy=True,
            normalize_embeddings=False,  # normalized below
            show_progress_bar=False,
        )
        vecs = np.asarray(vecs, dtype="float32")
        if vecs.ndim == 1:
            vecs = vecs[None, :]
        return _l2_normalize(vecs) if self.normalize else vecs

    def encode_queries(self, texts: Iterable[str]) -> np.ndarray:
        """Encode user queries (with 'query:' prefix). Returns shape (N, D)."""
        return self._encode(self._format_queries(texts))

    def encode_passages(self, texts: Iterable[str]) -> np.ndarray:
        """Encode passages/chunks (with 'passage:' prefix). Returns shape (N, D)."""
        return self._encode(self._format_passages(texts))

    @property
    def dimension(self) -> int:
        return int(self._ensure_model().get_sentence_embedding_dimension())
