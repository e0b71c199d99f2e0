"""
Structure-aware chunking of catalog documents.

The splitting strategy is chosen per document type (see CHUNK_STRATEGIES):
- heading   : markdown headings (#, ##, ###) delimit sections
- finding   : "FINDING <n>: ..." markers delimit sections
- step      : "Step <n>: ..." markers delimit sections
- narrative : blank-line paragraphs accumulated up to the type's token budget

Every section keeps its exact [char_start, char_end) span in the source text;
the span is trimmed so that text[char_start:char_end] == chunk.content.

Functions provided:
- chunk_by_headings / chunk_by_markers / chunk_by_paragraphs: text -> sections
- chunk_document: the ingestion entry point (text -> validated Chunk list)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence, Tuple

from askhub.errors import ValidationError
from askhub.metadata.schema import (
    CHARS_PER_TOKEN,
    CHUNK_STRATEGIES,
    Chunk,
    SplitStrategy,
)
from askhub.metadata.validation import validate_chunk, validate_ingest_metadata
from askhub.utils.lang_detect import detect_lang_tag

logger = logging.getLogger("askhub.chunking.chunker")

MIN_DOCUMENT_CHARS = 100
MIN_SECTION_CHARS = 100
MIN_PARAGRAPH_CHARS = 50

_HEADING_RE = re.compile(r"^(#{1,3})[ \t]+(.+?)[ \t]*$", re.MULTILINE)
_FINDING_RE = re.compile(r"FINDING\s+(\d+):[ \t]*([^\n]+)", re.IGNORECASE)
_STEP_RE = re.compile(r"Step\s+(\d+):[ \t]*([^\n]+)", re.IGNORECASE)

# Blank line (possibly holding spaces/tabs) between paragraphs
_PARA_BREAK = re.compile(r"\n[ \t]*\n\s*")


@dataclass(frozen=True)
class Section:
    """A labelled span of the source text."""
    label: str
    start: int
    end: int

    def text(self, source: str) -> str:
        return source[self.start:self.end]


# ------------------------------
# Span helpers
# ------------------------------

def _trim_span(text: str, start: int, end: int) -> Tuple[int, int]:
    """Shrink [start, end) so it neither starts nor ends with whitespace."""
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def _paragraph_spans(text: str) -> List[Tuple[int, int]]:
    """Trimmed spans of blank-line separated paragraphs."""
    raw: List[Tuple[int, int]] = []
    pos = 0
    for m in _PARA_BREAK.finditer(text):
        raw.append((pos, m.start()))
        pos = m.end()
    raw.append((pos, len(text)))

    out: List[Tuple[int, int]] = []
    for s, e in raw:
        s, e = _trim_span(text, s, e)
        if e > s:
            out.append((s, e))
    return out


# ------------------------------
# Strategies
# ------------------------------

def chunk_by_paragraphs(text: str, *, max_tokens: int) -> List[Section]:
    """
    Greedily accumulate paragraphs (> 50 chars) until the estimated token count
    (span length / 4) would exceed max_tokens; then start a new section with the
    paragraph that overflowed. The trailing section is kept only if > 100 chars.
    """
    paras = [(s, e) for (s, e) in _paragraph_spans(text) if (e - s) > MIN_PARAGRAPH_CHARS]

    sections: List[Section] = []
    cur: Optional[Tuple[int, int]] = None
    for s, e in paras:
        if cur is None:
            cur = (s, e)
            continue
        estimated_tokens = (e - cur[0]) / CHARS_PER_TOKEN
        if estimated_tokens > max_tokens:
            sections.append(Section(f"Section {len(sections) + 1}", cur[0], cur[1]))
            cur = (s, e)
        else:
            cur = (cur[0], e)

    if cur is not None and (cur[1] - cur[0]) > MIN_SECTION_CHARS:
        sections.append(Section(f"Section {len(sections) + 1}", cur[0], cur[1]))
    return sections


def chunk_by_headings(text: str, *, max_tokens: int) -> List[Section]:
    """
    One section per markdown heading (levels 1-3), spanning to the next heading
    or the end of the document. Text before the first heading becomes a
    "Preamble" section. Sections of <= 100 chars are dropped.
    Falls back to paragraph accumulation when no heading section survives.
    """
    matches = list(_HEADING_RE.finditer(text))
    if not matches:
        return chunk_by_paragraphs(text, max_tokens=max_tokens)

    bounds: List[Tuple[str, int, int]] = []
    if matches[0].start() > 0:
        bounds.append(("Preamble", 0, matches[0].start()))
    for i, m in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        bounds.append((m.group(2).strip(), m.start(), end))

    sections: List[Section] = []
    for label, start, end in bounds:
        s, e = _trim_span(text, start, end)
        if (e - s) > MIN_SECTION_CHARS:
            sections.append(Section(label, s, e))

    if not sections:
        return chunk_by_paragraphs(text, max_tokens=max_tokens)
    return sections


def chunk_by_markers(
    text: str,
    *,
    pattern: Pattern[str],
    label_prefix: str,
    max_tokens: int,
) -> List[Section]:
    """
    One section per recurring marker ("FINDING 3: ...", "Step 2: ..."),
    spanning to the next marker or the end of the document.
    Falls back to paragraph accumulation when no marker section survives.
    """
    matches = list(pattern.finditer(text))
    sections: List[Section] = []
    for i, m in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        s, e = _trim_span(text, m.start(), end)
        if (e - s) > MIN_SECTION_CHARS:
            label = f"{label_prefix} {m.group(1)}: {m.group(2).strip()}"
            sections.append(Section(label, s, e))

    if not sections:
        return chunk_by_paragraphs(text, max_tokens=max_tokens)
    return sections


def split_sections(text: str, strategy: SplitStrategy, *, max_tokens: int) -> List[Section]:
    if strategy == SplitStrategy.heading:
        return chunk_by_headings(text, max_tokens=max_tokens)
    if strategy == SplitStrategy.finding:
        return chunk_by_markers(text, pattern=_FINDING_RE, label_prefix="FINDING", max_tokens=max_tokens)
    if strategy == SplitStrategy.step:
        return chunk_by_markers(text, pattern=_STEP_RE, label_prefix="Step", max_tokens=max_tokens)
    return chunk_by_paragraphs(text, max_tokens=max_tokens)


# ------------------------------
# Entry point
# ------------------------------

def chunk_document(
    document_id: str,
    raw_text: str,
    document_type: str,
    language: str,
    topics: Sequence[str] = (),
) -> List[Chunk]:
    """
    Split a raw document into validated chunks.

    Raises ValidationError when the text is shorter than 100 characters (after
    trimming) or the document type has no configured strategy. Chunks failing
    schema validation are dropped; ingestion continues with the valid subset.
    """
    if not raw_text or len(raw_text.strip()) < MIN_DOCUMENT_CHARS:
        raise ValidationError(
            f"Content must be at least {MIN_DOCUMENT_CHARS} characters",
            field="raw_text",
        )

    meta = validate_ingest_metadata(document_type=document_type, language=language, topics=topics)
    strategy = CHUNK_STRATEGIES[meta["document_type"]]

    lang = meta["language"]
    if lang == "auto":
        lang = detect_lang_tag(raw_text)

    sections = split_sections(raw_text, strategy.strategy, max_tokens=strategy.max_tokens)

    chunks: List[Chunk] = []
    for sec in sections:
        candidate = Chunk(
            document_id=document_id,
            content=sec.text(raw_text),
            source_section=sec.label,
            char_start=sec.start,
            char_end=sec.end,
            document_type=meta["document_type"],
            language=lang,
            topics=tuple(meta["topics"]),
        )
        res = validate_chunk(candidate)
        if res.ok:
            chunks.append(candidate)
        else:
            logger.debug("Dropping chunk '%s' of %s: %s", sec.label, document_id, "; ".join(res.errors))

    logger.info(
        "Chunked document %s (%s, %s strategy): %d sections, %d valid chunks",
        document_id, meta["document_type"], strategy.strategy.value, len(sections), len(chunks),
    )
    return chunks
