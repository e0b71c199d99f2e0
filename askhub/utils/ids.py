"""
Deterministic ID helpers for chunks.

We generate stable IDs from:
  (document_id, char_start, char_end)

so re-ingesting the same document text overwrites the same records instead of
creating duplicates.
"""

from __future__ import annotations

from hashlib import blake2b


def stable_chunk_id(
    *,
    document_id: str,
    char_start: int,
    char_end: int,
    prefix: str = "ck_",
) -> str:
    key = f"{document_id}|{int(char_start)}|{int(char_end)}"
    h = blake2b(key.encode("utf-8"), digest_size=16).hexdigest()
    return f"{prefix}{h}"
