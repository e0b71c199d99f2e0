"""
Embedding utilities.

Provides:
- E5MultilingualEmbedder: SentenceTransformers wrapper for intfloat/multilingual-e5-base
- CachingEmbedder: on-disk cache in front of any encoder
- ChunkEmbedder: batched, fail-soft embedding of chunks at ingestion
"""

from .e5_multilingual import E5MultilingualEmbedder
from .cache import CachingEmbedder
from .batch import ChunkEmbedder, EmbeddingProvider

__all__ = [
    "E5MultilingualEmbedder",
    "CachingEmbedder",
    "ChunkEmbedder",
    "EmbeddingProvider",
]
