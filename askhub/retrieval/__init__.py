from .vector_chroma import ChromaVectorStore, build_where_filter
from .bm25 import BM25Store
from .catalog import DocumentCatalog, DocumentRecord
from .chunk_store import ChunkStore
from .fusion import HybridRetriever, fuse_scores

__all__ = [
    "ChromaVectorStore",
    "build_where_filter",
    "BM25Store",
    "DocumentCatalog",
    "DocumentRecord",
    "ChunkStore",
    "HybridRetriever",
    "fuse_scores",
]
