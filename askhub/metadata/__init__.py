from .schema import (
    CHUNK_STRATEGIES,
    DOCUMENT_TYPES,
    LANGUAGE_CODES,
    TOPICS,
    Chunk,
    ChunkStrategy,
    Citation,
    Claim,
    DocumentType,
    FaithfulnessResult,
    LanguageCode,
    Message,
    RAGResponse,
    RetrievalFilters,
    RetrievedChunk,
    SplitStrategy,
    Topic,
    VerifiedClaim,
)
from .validation import (
    ChunkValidation,
    require_valid_chunks,
    validate_chunk,
    validate_filters,
    validate_ingest_metadata,
)

__all__ = [
    "CHUNK_STRATEGIES",
    "DOCUMENT_TYPES",
    "LANGUAGE_CODES",
    "TOPICS",
    "Chunk",
    "ChunkStrategy",
    "Citation",
    "Claim",
    "DocumentType",
    "FaithfulnessResult",
    "LanguageCode",
    "Message",
    "RAGResponse",
    "RetrievalFilters",
    "RetrievedChunk",
    "SplitStrategy",
    "Topic",
    "VerifiedClaim",
    "ChunkValidation",
    "require_valid_chunks",
    "validate_chunk",
    "validate_filters",
    "validate_ingest_metadata",
]
