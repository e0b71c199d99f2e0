"""
Expose chunking utilities for splitting catalog documents into passages.

Includes:
- Section: a labelled [start, end) span of the source text
- chunk_by_headings / chunk_by_markers / chunk_by_paragraphs: splitting strategies
- chunk_document: strategy selection + schema validation
"""

from .chunker import (
    Section,
    chunk_by_headings,
    chunk_by_markers,
    chunk_by_paragraphs,
    chunk_document,
    split_sections,
)

__all__ = [
    "Section",
    "chunk_by_headings",
    "chunk_by_markers",
    "chunk_by_paragraphs",
    "chunk_document",
    "split_sections",
]
