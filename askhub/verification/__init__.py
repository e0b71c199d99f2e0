from .claims import (
    ClaimExtractor,
    HeuristicClaimExtractor,
    LLMClaimExtractor,
    first_success,
    parse_claims,
)
from .faithfulness import FaithfulnessVerifier, faithfulness_bucket, hallucinations_from

__all__ = [
    "ClaimExtractor",
    "HeuristicClaimExtractor",
    "LLMClaimExtractor",
    "first_success",
    "parse_claims",
    "FaithfulnessVerifier",
    "faithfulness_bucket",
    "hallucinations_from",
]
