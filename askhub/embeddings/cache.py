"""
Disk-based embedding cache for E5-style encoders.

- One float32 .npy file per text, under <root>/<model>/<mode>/<sha1>.npy
- mode is "query" or "passage"; by default only queries are cached, since
  passages are embedded once per ingestion and stored with the chunk anyway.
- Same API as the wrapped embedder (encode_queries / encode_passages / warmup).
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Iterable, List, Optional

import numpy as np

logger = logging.getLogger("askhub.embeddings.cache")


def _cache_key(text: str) -> str:
    return hashlib.sha1((text or "").strip().encode("utf-8", "ignore")).hexdigest()


def _safe_dirname(name: str) -> str:
    return "".join(ch if ch.isalnum() or ch in ("-", "_", ".") else "_" for ch in name)


class CachingEmbedder:
    def __init__(self, base, cache_dir: str | Path, *, cache_passages: bool = False) -> None:
        self.base = base
        self.cache_passages = cache_passages
        root = Path(cache_dir).expanduser().resolve()
        model_name = str(getattr(base, "model_name", "unknown-model"))
        self.model_dir = root / _safe_dirname(model_name)

    def warmup(self) -> None:
        warmup = getattr(self.base, "warmup", None)
        if warmup is not None:
            warmup()

    def _path(self, mode: str, text: str) -> Path:
        return self.model_dir / mode / f"{_cache_key(text)}.npy"

    def _load(self, fp: Path) -> Optional[np.ndarray]:
        if not fp.exists():
            return None
        try:
            return np.load(fp).astype("float32", copy=False)
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable cache entry %s: %s", fp, e)
            return None

    def _encode(self, mode: str, texts: Iterable[str]) -> np.ndarray:
        items = list(texts)
        encode = self.base.encode_queries if mode == "query" else self.base.encode_passages

        slots: List[Optional[np.ndarray]] = [self._load(self._path(mode, t)) for t in items]
        miss_idx = [i for i, v in enumerate(slots) if v is None]
        if miss_idx:
            fresh = np.asarray(encode([items[i] for i in miss_idx]), dtype="float32")
            (self.model_dir / mode).mkdir(parents=True, exist_ok=True)
            for j, i in enumerate(miss_idx):
                slots[i] = fresh[j]
                try:
                    np.save(self._path(mode, items[i]), fresh[j])
                except OSError as e:
                    logger.debug("Could not write cache entry: %s", e)
        if not slots:
            return np.zeros((0, 0), dtype="float32")
        return np.vstack(slots).astype("float32", copy=False)

    def encode_queries(self, queries: Iterable[str]) -> np.ndarray:
        return self._encode("query", queries)

    def encode_passages(self, texts: Iterable[str]) -> np.ndarray:
        if not self.cache_passages:
            return np.asarray(self.base.encode_passages(list(texts)), dtype="float32")
        return self._encode("passage", texts)
