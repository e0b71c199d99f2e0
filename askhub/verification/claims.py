"""
Claim extraction as an ordered chain of strategies.

Each strategy returns a list of claims, or None when it cannot produce a
result. first_success() runs them in order and returns the first list.

- LLMClaimExtractor       : asks the model for a JSON array of {statement, confidence}
- HeuristicClaimExtractor : sentence split, > 20 chars, first five, confidence 0.6
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Sequence

from askhub.generation.llama_cpp_runner import LIGHT, LLMProvider
from askhub.generation.prompting import build_claim_extraction_prompt
from askhub.metadata.schema import Claim

logger = logging.getLogger("askhub.verification.claims")

DEFAULT_CLAIM_CONFIDENCE = 0.5
HEURISTIC_CONFIDENCE = 0.6
HEURISTIC_MAX_CLAIMS = 5
MIN_SENTENCE_CHARS = 20

_JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


class ClaimExtractor(Protocol):
    name: str

    def extract(self, answer: str) -> Optional[List[Claim]]: ...


def _coerce_confidence(v: Any) -> float:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return DEFAULT_CLAIM_CONFIDENCE
    return float(v)


def parse_claims(text: str) -> Optional[List[Claim]]:
    """
    Parse a model response into claims. None when no JSON array can be read;
    items without a non-empty string statement are skipped.
    """
    m = _JSON_ARRAY_RE.search(text or "")
    if not m:
        return None
    try:
        parsed = json.loads(m.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, list):
        return None

    claims: List[Claim] = []
    for item in parsed:
        if not isinstance(item, dict):
            continue
        statement = item.get("statement")
        if not isinstance(statement, str) or not statement.strip():
            continue
        claims.append(Claim(statement=statement.strip(), confidence=_coerce_confidence(item.get("confidence"))))
    return claims


@dataclass
class LLMClaimExtractor:
    llm: LLMProvider
    tier: str = LIGHT
    name: str = "llm"

    def extract(self, answer: str) -> Optional[List[Claim]]:
        prompt = build_claim_extraction_prompt(answer)
        try:
            text = self.llm.complete([{"role": "user", "content": prompt}], self.tier, None)
        except Exception as e:
            logger.info("Claim extraction model call failed, falling back: %s", e)
            return None
        claims = parse_claims(text)
        if claims is None:
            logger.info("Claim extraction response was not a JSON array, falling back")
        return claims


@dataclass
class HeuristicClaimExtractor:
    name: str = "heuristic"

    def extract(self, answer: str) -> Optional[List[Claim]]:
        sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(answer or "")]
        sentences = [s for s in sentences if len(s) > MIN_SENTENCE_CHARS]
        return [
            Claim(statement=s, confidence=HEURISTIC_CONFIDENCE)
            for s in sentences[:HEURISTIC_MAX_CLAIMS]
            if not s.startswith("http")
        ]


def first_success(strategies: Sequence[ClaimExtractor], answer: str) -> List[Claim]:
    for strategy in strategies:
        claims = strategy.extract(answer)
        if claims is not None:
            logger.debug("Extracted %d claims with the %s strategy", len(claims), strategy.name)
            return claims
    return []
