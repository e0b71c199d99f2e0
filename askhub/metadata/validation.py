"""
Pydantic-based validation for askhub trust boundaries.

Goals
- Check every Chunk against the schema before it enters the index
  (content bounds per document type, required fields, char span, embedding size).
- Normalize ingestion metadata (document type, language, topics) and retrieval
  filters coming from the CLI or other callers.

Usage
- validate_chunk(chunk, *, embedding_dim=768) -> ChunkValidation
  Never raises; returns ok/errors so callers choose fail-soft or fail-fast.
- validate_ingest_metadata(document_type=..., language=..., topics=..., fixup=False) -> dict
- validate_filters(raw) -> RetrievalFilters
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from askhub.errors import ValidationError
from askhub.metadata.schema import (
    CHUNK_STRATEGIES,
    LANGUAGE_CODES,
    MAX_SECTION_LABEL_CHARS,
    TOPICS,
    Chunk,
    RetrievalFilters,
)

DEFAULT_EMBEDDING_DIM = 768

_slug_re = re.compile(r"[^a-z0-9]+")


def _slug(t: str) -> str:
    s = (t or "").lower().strip()
    s = _slug_re.sub("_", s)
    return s.strip("_")


def _norm_lang(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = str(v).strip().lower()
    aliases = {
        "english": "en", "eng": "en",
        "spanish": "es", "espanol": "es", "español": "es",
        "french": "fr", "francais": "fr", "français": "fr",
        "portuguese": "pt", "portugues": "pt", "português": "pt",
        "ukrainian": "uk",
        "indonesian": "id", "bahasa": "id",
        "vietnamese": "vi",
        "thai": "th",
    }
    v = aliases.get(v, v)
    if v in LANGUAGE_CODES or v == "auto":
        return v
    return None


# ---- chunk model ----

class _ChunkInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    document_id: str
    content: str
    source_section: str
    char_start: int
    char_end: int
    document_type: str
    language: str
    topics: List[str] = []
    embedding: Optional[List[float]] = None
    page_number: Optional[int] = None

    @field_validator("document_id")
    @classmethod
    def _document_id_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("document_id is required")
        return v

    @field_validator("source_section")
    @classmethod
    def _section_bounds(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("source_section is required")
        if len(v) > MAX_SECTION_LABEL_CHARS:
            raise ValueError(f"source_section longer than {MAX_SECTION_LABEL_CHARS} characters")
        return v

    @field_validator("document_type")
    @classmethod
    def _known_type(cls, v: str) -> str:
        if v not in CHUNK_STRATEGIES:
            raise ValueError(f"unknown document_type '{v}'")
        return v

    @field_validator("language")
    @classmethod
    def _known_language(cls, v: str) -> str:
        if v not in LANGUAGE_CODES:
            raise ValueError(f"unsupported language '{v}' (allowed: {', '.join(LANGUAGE_CODES)})")
        return v

    @field_validator("topics")
    @classmethod
    def _known_topics(cls, v: List[str]) -> List[str]:
        bad = [t for t in v if t not in TOPICS]
        if bad:
            raise ValueError(f"unknown topics: {bad}")
        return v

    @field_validator("char_start")
    @classmethod
    def _non_negative_start(cls, v: int) -> int:
        if v < 0:
            raise ValueError("char_start must be >= 0")
        return v

    @field_validator("page_number")
    @classmethod
    def _positive_page(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("page_number must be positive")
        return v

    @field_validator("embedding")
    @classmethod
    def _embedding_dim(cls, v: Optional[List[float]], info: ValidationInfo) -> Optional[List[float]]:
        if v is None:
            return v
        ctx = info.context or {}
        dim = int(ctx.get("embedding_dim", DEFAULT_EMBEDDING_DIM))
        if len(v) != dim:
            raise ValueError(f"embedding has {len(v)} dimensions, expected {dim}")
        return v

    @model_validator(mode="after")
    def _span_and_length(self) -> "_ChunkInput":
        if self.char_end <= self.char_start:
            raise ValueError("char_end must be greater than char_start")
        strategy = CHUNK_STRATEGIES.get(self.document_type)
        if strategy is not None:
            n = len(self.content)
            if n < strategy.min_chars or n > strategy.max_chars:
                raise ValueError(
                    f"content length {n} outside [{strategy.min_chars}, {strategy.max_chars}] "
                    f"for document_type '{self.document_type}'"
                )
        return self


@dataclass
class ChunkValidation:
    ok: bool
    chunk: Optional[Chunk] = None
    errors: List[str] = field(default_factory=list)


def _chunk_payload(chunk: Chunk) -> Dict[str, Any]:
    return {
        "id": chunk.id,
        "document_id": chunk.document_id,
        "content": chunk.content,
        "source_section": chunk.source_section,
        "char_start": chunk.char_start,
        "char_end": chunk.char_end,
        "document_type": chunk.document_type,
        "language": chunk.language,
        "topics": list(chunk.topics),
        "embedding": chunk.embedding,
        "page_number": chunk.page_number,
    }


def validate_chunk(chunk: Chunk, *, embedding_dim: int = DEFAULT_EMBEDDING_DIM) -> ChunkValidation:
    """Check one chunk against the schema. Never raises."""
    try:
        _ChunkInput.model_validate(_chunk_payload(chunk), context={"embedding_dim": embedding_dim})
    except PydanticValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc']) or 'chunk'}: {err['msg']}" for err in e.errors()]
        return ChunkValidation(ok=False, chunk=None, errors=errors)
    return ChunkValidation(ok=True, chunk=chunk)


def require_valid_chunks(chunks: Sequence[Chunk], *, embedding_dim: int = DEFAULT_EMBEDDING_DIM) -> None:
    """Fail-fast variant: raise ValidationError on the first invalid chunk."""
    for i, chunk in enumerate(chunks):
        res = validate_chunk(chunk, embedding_dim=embedding_dim)
        if not res.ok:
            raise ValidationError(
                f"invalid chunk at position {i}: {'; '.join(res.errors)}",
                field="chunks",
                details={"index": i, "chunk_id": chunk.id},
            )


# ---- ingestion metadata ----

def validate_ingest_metadata(
    *,
    document_type: Optional[str],
    language: Optional[str] = None,
    topics: Optional[Sequence[str] | str] = None,
    fixup: bool = False,
) -> Dict[str, Any]:
    """
    Validate and normalize document-level metadata used at ingestion.

    - document_type must be a configured type (no fixup possible).
    - language: supported code or "auto"; with fixup unknown values become "auto".
    - topics: known topics only; with fixup, values are slugged and unknown ones dropped.

    Returns {"document_type": str, "language": str, "topics": list[str]}.
    """
    dt = (document_type or "").strip().lower()
    if dt not in CHUNK_STRATEGIES:
        raise ValidationError(f"Unknown document type: {document_type}", field="document_type")

    lang = _norm_lang(language) if language is not None else "auto"
    if lang is None:
        if not fixup:
            raise ValidationError(
                f"unsupported language '{language}' (allowed: {', '.join(LANGUAGE_CODES)}, auto)",
                field="language",
            )
        lang = "auto"

    if isinstance(topics, str):
        raw_topics = [p for p in topics.split(",")]
    else:
        raw_topics = list(topics or [])

    clean_topics: List[str] = []
    for t in raw_topics:
        t = _slug(str(t)) if fixup else str(t).strip().lower()
        if not t:
            continue
        if t not in TOPICS:
            if fixup:
                continue
            raise ValidationError(f"unknown topic '{t}' (allowed: {', '.join(TOPICS)})", field="topics")
        if t not in clean_topics:
            clean_topics.append(t)

    return {"document_type": dt, "language": lang, "topics": clean_topics}


def validate_filters(raw: Optional[Mapping[str, Any]]) -> RetrievalFilters:
    """Normalize retrieval filters; unknown values are rejected."""
    filters = RetrievalFilters.from_mapping(raw)
    bad_topics = [t for t in filters.topics if t not in TOPICS]
    if bad_topics:
        raise ValidationError(f"unknown topics in filter: {bad_topics}", field="topics")
    bad_types = [t for t in filters.document_types if t not in CHUNK_STRATEGIES]
    if bad_types:
        raise ValidationError(f"unknown document types in filter: {bad_types}", field="document_types")
    if filters.language is not None:
        lang = _norm_lang(filters.language)
        if lang is None or lang == "auto":
            raise ValidationError(f"unsupported language in filter: {filters.language}", field="language")
        if lang != filters.language:
            filters = RetrievalFilters(topics=filters.topics, document_types=filters.document_types, language=lang)
    return filters
