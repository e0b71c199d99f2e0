"""
Domain schema for askhub.

Defines:
- enums for document type, language and topic,
- the per-type chunking table (token budgets + splitting strategy),
- value objects flowing through the pipeline (Chunk, RetrievedChunk,
  Citation, Claim, VerifiedClaim, FaithfulnessResult, RAGResponse),
- retrieval filters.

Chunk objects are created by the chunker and checked by
askhub.metadata.validation.validate_chunk at each trust boundary.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple


class DocumentType(str, Enum):
    assurance_report = "assurance_report"
    guidance = "guidance"
    case_study = "case_study"
    tool = "tool"
    template = "template"
    research = "research"
    news = "news"
    training = "training"
    policy = "policy"


class LanguageCode(str, Enum):
    en = "en"
    es = "es"
    fr = "fr"
    pt = "pt"
    uk = "uk"
    id = "id"
    vi = "vi"
    th = "th"


class Topic(str, Enum):
    climate = "climate"
    gender = "gender"
    local_government = "local_government"
    beneficial_ownership = "beneficial_ownership"
    social_safeguards = "social_safeguards"
    environmental = "environmental"
    procurement = "procurement"
    project_monitoring = "project_monitoring"
    data_standards = "data_standards"
    msg_governance = "msg_governance"
    digital_tools = "digital_tools"
    impact_measurement = "impact_measurement"


class SplitStrategy(str, Enum):
    heading = "heading"
    finding = "finding"
    step = "step"
    narrative = "narrative"


DOCUMENT_TYPES: Tuple[str, ...] = tuple(t.value for t in DocumentType)
LANGUAGE_CODES: Tuple[str, ...] = tuple(l.value for l in LanguageCode)
TOPICS: Tuple[str, ...] = tuple(t.value for t in Topic)

# 1 token ~ 4 characters
CHARS_PER_TOKEN = 4

# Lower bound on chunk content, independent of type
MIN_CHUNK_CHARS = 50
MAX_SECTION_LABEL_CHARS = 500


@dataclass(frozen=True)
class ChunkStrategy:
    min_tokens: int
    max_tokens: int
    strategy: SplitStrategy

    @property
    def min_chars(self) -> int:
        return MIN_CHUNK_CHARS

    @property
    def max_chars(self) -> int:
        return self.max_tokens * CHARS_PER_TOKEN


CHUNK_STRATEGIES: Dict[str, ChunkStrategy] = {
    DocumentType.guidance.value: ChunkStrategy(500, 1000, SplitStrategy.heading),
    DocumentType.assurance_report.value: ChunkStrategy(300, 600, SplitStrategy.finding),
    DocumentType.case_study.value: ChunkStrategy(400, 800, SplitStrategy.narrative),
    DocumentType.tool.value: ChunkStrategy(200, 400, SplitStrategy.step),
    DocumentType.template.value: ChunkStrategy(200, 400, SplitStrategy.step),
    DocumentType.research.value: ChunkStrategy(400, 800, SplitStrategy.narrative),
    DocumentType.news.value: ChunkStrategy(300, 600, SplitStrategy.narrative),
    DocumentType.training.value: ChunkStrategy(300, 600, SplitStrategy.step),
    DocumentType.policy.value: ChunkStrategy(400, 800, SplitStrategy.narrative),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Chunks ---

@dataclass(frozen=True)
class Chunk:
    """A retrievable passage of a parent document."""
    document_id: str
    content: str
    source_section: str
    char_start: int
    char_end: int
    document_type: str
    language: str
    topics: Tuple[str, ...] = ()
    id: Optional[str] = None
    embedding: Optional[List[float]] = None
    page_number: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def with_embedding(self, embedding: Sequence[float]) -> "Chunk":
        return replace(self, embedding=[float(x) for x in embedding])

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["topics"] = list(self.topics)
        d["created_at"] = self.created_at.isoformat()
        d["updated_at"] = self.updated_at.isoformat()
        return d


@dataclass
class RetrievedChunk:
    """A chunk enriched with parent-document metadata; lives for one query."""
    chunk_id: str
    content: str
    document_id: str
    document_title: str
    document_url: str
    score: float
    source_section: str
    document_type: str
    language: str
    topics: List[str] = field(default_factory=list)
    page_number: Optional[int] = None
    fused_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Citation:
    document_id: str
    document_title: str
    chunk_id: str
    excerpt: str
    url: str
    page_number: Optional[int] = None
    section: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Message:
    role: str  # "user" | "assistant"
    content: str


@dataclass
class RAGResponse:
    answer: str
    citations: List[Citation]
    confidence: str  # high | medium | low | uncertain
    follow_up_questions: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "citations": [c.to_dict() for c in self.citations],
            "confidence": self.confidence,
            "follow_up_questions": self.follow_up_questions,
        }


# --- Verification ---

def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass
class Claim:
    statement: str
    confidence: float

    def __post_init__(self) -> None:
        self.confidence = clamp_confidence(self.confidence)


@dataclass
class VerifiedClaim(Claim):
    supported: bool = False
    source_id: Optional[str] = None


@dataclass
class FaithfulnessResult:
    score: float
    claims: List[VerifiedClaim]
    unsupported_claims: List[str]
    confidence: str  # high | medium | low | hallucination
    reasoning: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "claims": [asdict(c) for c in self.claims],
            "unsupported_claims": list(self.unsupported_claims),
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


# --- Filters ---

@dataclass(frozen=True)
class RetrievalFilters:
    topics: Tuple[str, ...] = ()
    document_types: Tuple[str, ...] = ()
    language: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.topics or self.document_types or self.language)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {}
        if self.topics:
            d["topics"] = list(self.topics)
        if self.document_types:
            d["document_types"] = list(self.document_types)
        if self.language:
            d["language"] = self.language
        return d

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "RetrievalFilters":
        if not raw:
            return cls()
        return cls(
            topics=tuple(_parse_list(raw.get("topics"))),
            document_types=tuple(_parse_list(raw.get("document_types"))),
            language=(str(raw.get("language")).strip().lower() or None) if raw.get("language") else None,
        )


def _parse_list(v: Any) -> List[str]:
    """Accept comma-separated string or list/tuple; return clean lowercase list."""
    if not v:
        return []
    if isinstance(v, (list, tuple, set)):
        vals = [str(x) for x in v]
    else:
        vals = str(v).split(",")
    out: List[str] = []
    for x in vals:
        x = x.strip().lower()
        if x and x not in out:
            out.append(x)
    return out
