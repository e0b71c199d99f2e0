"""
Faithfulness verification: does the answer stay within its sources?

verify(answer, sources):
  1. empty answer          -> ValidationError
  2. no sources            -> score 0, 'hallucination', whole answer unsupported
  3. extract claims        -> model first, sentence heuristic as fallback
  4. no claims             -> score 1, 'high' (nothing checkable)
  5. check each claim      -> model answers TRUE / FALSE / UNKNOWN; only TRUE supports
  6. score = supported / total (2 decimals); buckets at 0.9 / 0.7 / 0.4

Sources are any objects exposing `.content` (Chunk, RetrievedChunk) or plain strings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from askhub.errors import ValidationError
from askhub.generation.llama_cpp_runner import LIGHT, LLMProvider
from askhub.generation.prompting import build_claim_verification_prompt
from askhub.metadata.schema import Claim, FaithfulnessResult, VerifiedClaim
from askhub.verification.claims import (
    ClaimExtractor,
    HeuristicClaimExtractor,
    LLMClaimExtractor,
    first_success,
)

logger = logging.getLogger("askhub.verification.faithfulness")

LOW_CLAIM_CONFIDENCE = 0.5


def faithfulness_bucket(score: float) -> str:
    if score >= 0.9:
        return "high"
    if score >= 0.7:
        return "medium"
    if score >= 0.4:
        return "low"
    return "hallucination"


def hallucinations_from(result: FaithfulnessResult) -> List[str]:
    """Unsupported statements; below the hallucination bucket, low-confidence claims are flagged too."""
    if result.confidence == "hallucination":
        return list(result.unsupported_claims)
    return [
        c.statement
        for c in result.claims
        if not c.supported or c.confidence < LOW_CLAIM_CONFIDENCE
    ]


@dataclass
class FaithfulnessVerifier:
    llm: LLMProvider
    tier: str = LIGHT
    extractors: List[ClaimExtractor] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.extractors:
            self.extractors = [LLMClaimExtractor(self.llm, tier=self.tier), HeuristicClaimExtractor()]

    def extract_claims(self, answer: str) -> List[Claim]:
        if not (answer or "").strip():
            return []
        return first_success(self.extractors, answer)

    def verify_claim(self, claim: str, sources: Sequence[Any]) -> bool:
        """True only when the model's reply starts with TRUE; every failure counts as unsupported."""
        if not (claim or "").strip() or not sources:
            return False
        prompt = build_claim_verification_prompt(claim, sources)
        try:
            reply = self.llm.complete([{"role": "user", "content": prompt}], self.tier, None)
        except Exception as e:
            logger.warning("Claim verification failed, treating as unsupported: %s", e)
            return False
        return (reply or "").strip().upper().startswith("TRUE")

    def verify_claims_batch(self, claims: Sequence[str], sources: Sequence[Any]) -> Dict[str, bool]:
        return {claim: self.verify_claim(claim, sources) for claim in claims}

    def verify(self, answer: str, sources: Sequence[Any]) -> FaithfulnessResult:
        if not (answer or "").strip():
            raise ValidationError("Answer text is required for faithfulness verification", field="answer")

        if not sources:
            return FaithfulnessResult(
                score=0.0,
                claims=[],
                unsupported_claims=[answer],
                confidence="hallucination",
                reasoning="No source documents provided for verification",
            )

        claims = self.extract_claims(answer)
        if not claims:
            return FaithfulnessResult(
                score=1.0,
                claims=[],
                unsupported_claims=[],
                confidence="high",
                reasoning="No specific claims to verify",
            )

        verified: List[VerifiedClaim] = []
        unsupported: List[str] = []
        for claim in claims:
            ok = self.verify_claim(claim.statement, sources)
            verified.append(VerifiedClaim(statement=claim.statement, confidence=claim.confidence, supported=ok))
            if not ok:
                unsupported.append(claim.statement)

        supported = len(claims) - len(unsupported)
        score = supported / len(claims)
        result = FaithfulnessResult(
            score=round(score, 2),
            claims=verified,
            unsupported_claims=unsupported,
            confidence=faithfulness_bucket(score),
            reasoning=f"{score * 100:.1f}% of claims ({supported}/{len(claims)}) are supported by provided sources",
        )
        logger.debug("Faithfulness %.2f (%s) over %d claims", result.score, result.confidence, len(claims))
        return result

    def get_faithfulness_score(self, answer: str, sources: Sequence[Any]) -> float:
        return self.verify(answer, sources).score

    def detect_hallucinations(self, answer: str, sources: Sequence[Any]) -> List[str]:
        return hallucinations_from(self.verify(answer, sources))

