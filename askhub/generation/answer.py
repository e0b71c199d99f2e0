"""
Answer generation over retrieved chunks.

- No context: the model is told to admit it has no information; confidence is
  'uncertain' and there are no citations.
- Grounded: numbered context in the system prompt, recent history + query as
  messages, heavy tier for broad questions (> 3 chunks or > 200 chars).
- Confidence bucket from the mean chunk score: > 0.8 high, > 0.6 medium,
  > 0.4 low, else uncertain.
- Citations are 1:1 with the retrieved chunks, excerpts <= 200 chars.
- Follow-up questions are best effort; any failure yields [].
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from askhub.config import load_config
from askhub.generation.llama_cpp_runner import HEAVY, LIGHT, LLMProvider
from askhub.generation.post import enforce_citations
from askhub.generation.prompting import (
    FOLLOW_UP_SYSTEM_PROMPT,
    NO_CONTEXT_SYSTEM_PROMPT,
    build_chat_messages,
    build_follow_up_messages,
    build_grounded_system_prompt,
)
from askhub.metadata.schema import Citation, Message, RAGResponse, RetrievedChunk

logger = logging.getLogger("askhub.generation.answer")

EXCERPT_MAX_CHARS = 200
ELLIPSIS = "..."
HEAVY_MIN_CHUNKS = 4
HEAVY_MIN_QUERY_CHARS = 201
MAX_FOLLOW_UPS = 3

_JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


def create_excerpt(content: str, max_length: int = EXCERPT_MAX_CHARS) -> str:
    """
    Content as-is when it fits; otherwise cut at the last word boundary so that
    the excerpt plus the ellipsis stays within max_length.
    """
    if len(content) <= max_length:
        return content
    budget = max_length - len(ELLIPSIS)
    window = content[:budget + 1]
    cut = window.rfind(" ")
    if cut <= 0:
        cut = budget
    return content[:cut].rstrip() + ELLIPSIS


def confidence_bucket(mean_score: float) -> str:
    if mean_score > 0.8:
        return "high"
    if mean_score > 0.6:
        return "medium"
    if mean_score > 0.4:
        return "low"
    return "uncertain"


def select_model_tier(query: str, chunks: Sequence[RetrievedChunk]) -> str:
    if len(chunks) >= HEAVY_MIN_CHUNKS or len(query) >= HEAVY_MIN_QUERY_CHARS:
        return HEAVY
    return LIGHT


def extract_citations(chunks: Sequence[RetrievedChunk]) -> List[Citation]:
    return [
        Citation(
            document_id=c.document_id,
            document_title=c.document_title,
            chunk_id=c.chunk_id,
            excerpt=create_excerpt(c.content),
            url=c.document_url,
            page_number=c.page_number,
            section=c.source_section,
        )
        for c in chunks
    ]


def parse_follow_up_questions(text: str) -> List[str]:
    """First JSON array in the text, strings only, at most three. Raises ValueError if unparseable."""
    m = _JSON_ARRAY_RE.search(text or "")
    if not m:
        return []
    parsed = json.loads(m.group(0))
    if not isinstance(parsed, list):
        return []
    questions = [str(q).strip() for q in parsed if isinstance(q, str) and q.strip()]
    return questions[:MAX_FOLLOW_UPS]


@dataclass
class AnswerGenerator:
    llm: LLMProvider
    history_turns: int = 6
    follow_up_questions: bool = True
    strict_citations: bool = False
    confidence_from_fused_score: bool = False

    def confidence_for(self, chunks: Sequence[RetrievedChunk]) -> str:
        if not chunks:
            return "uncertain"
        if self.confidence_from_fused_score:
            scores = [c.fused_score for c in chunks]
        else:
            scores = [c.score for c in chunks]
        return confidence_bucket(sum(scores) / len(scores))

    def generate(
        self,
        query: str,
        chunks: Sequence[RetrievedChunk],
        history: Optional[Sequence[Message]] = None,
    ) -> RAGResponse:
        """
        Generate a cited answer. Model errors on the main call propagate;
        only follow-up generation is soft-fail.
        """
        if not chunks:
            answer = self.llm.complete([{"role": "user", "content": query}], LIGHT, NO_CONTEXT_SYSTEM_PROMPT)
            logger.info("No context retrieved; answered with the fallback instruction")
            return RAGResponse(answer=answer, citations=[], confidence="uncertain")

        system = build_grounded_system_prompt(chunks)
        messages = build_chat_messages(query, history, history_turns=self.history_turns)
        tier = select_model_tier(query, chunks)

        answer = self.llm.complete(messages, tier, system)
        if self.strict_citations:
            answer = enforce_citations(answer, len(chunks))

        citations = extract_citations(chunks)
        confidence = self.confidence_for(chunks)

        follow_ups: Optional[List[str]] = None
        if self.follow_up_questions:
            follow_ups = self.generate_follow_up_questions(query, answer)

        logger.debug("Answered with %s tier over %d chunks (confidence=%s)", tier, len(chunks), confidence)
        return RAGResponse(
            answer=answer,
            citations=citations,
            confidence=confidence,
            follow_up_questions=follow_ups,
        )

    def generate_follow_up_questions(self, query: str, answer: str) -> List[str]:
        try:
            text = self.llm.complete(build_follow_up_messages(query, answer), LIGHT, FOLLOW_UP_SYSTEM_PROMPT)
            return parse_follow_up_questions(text)
        except Exception as e:
            logger.info("Follow-up question generation failed: %s", e)
            return []

    @classmethod
    def from_config(cls, llm: LLMProvider) -> "AnswerGenerator":
        cfg = load_config()
        return cls(
            llm=llm,
            history_turns=cfg.history_turns,
            follow_up_questions=cfg.follow_up_questions,
            strict_citations=cfg.strict_citations,
            confidence_from_fused_score=cfg.confidence_from_fused_score,
        )
