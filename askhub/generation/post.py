"""
Clean up inline numeric citations like [1], [2] in model answers.

What this does:
- Remove citations that point outside the available range.
- Merge adjacent citations (e.g., "[1] [2]" -> "[1][2]").
- Report which context blocks the answer actually cited.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Set


# --- Patterns for citation tokens and fixing spacing between them ---

_CIT_RE = re.compile(r"\[(\d+)\]")               # matches [number]
_ADJ_RE = re.compile(r"\]\s*(?:,?\s*)\[")        # matches "] [", "], [", "]   [", etc.


def _dedupe_preserve_order(nums: Iterable[int]) -> List[int]:
    seen: Set[int] = set()
    out: List[int] = []
    for n in nums:
        if n not in seen:
            seen.add(n)
            out.append(n)
    return out


def cited_indices(text: str) -> List[int]:
    """Unique citation numbers in order of first appearance."""
    return _dedupe_preserve_order(int(m.group(1)) for m in _CIT_RE.finditer(text or ""))


def enforce_citations(answer: str, n_sources: int) -> str:
    """
    Drop any [n] where n < 1 or n > n_sources, then compact adjacent citations
    and collapse the whitespace left behind.
    """
    if not (answer or "").strip():
        return ""

    def _repl(m: re.Match) -> str:
        n = int(m.group(1))
        if n < 1 or n > n_sources:
            return ""
        return m.group(0)

    cleaned = _CIT_RE.sub(_repl, answer)
    cleaned = _ADJ_RE.sub("][", cleaned)
    cleaned = re.sub(r"[ \t]{2,}", " ", cleaned)
    cleaned = re.sub(r"[ \t]+([.,;:!?])", r"\1", cleaned)
    return cleaned.strip()
