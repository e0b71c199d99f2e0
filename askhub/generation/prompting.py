"""
Helpers for building prompts for the language model.
Includes:
- format_context_blocks: turn retrieved chunks into a numbered context block
- build_grounded_system_prompt: system instruction with context + citation rules
- NO_CONTEXT_SYSTEM_PROMPT: instruction used when retrieval found nothing
- build_chat_messages: recent history + the new user query
- build_follow_up_messages / build_claim_extraction_prompt / build_claim_verification_prompt
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from askhub.metadata.schema import Message, RetrievedChunk

CONTEXT_SEPARATOR = "\n\n---\n\n"
MAX_VERIFICATION_SOURCES = 5

NO_CONTEXT_SYSTEM_PROMPT = """You are a helpful assistant for an infrastructure transparency knowledge hub.
The user asked a question but no relevant context was found in the knowledge base.
Politely explain that you don't have specific information about this topic and suggest they:
1. Rephrase their question
2. Check the knowledge hub website directly
3. Contact support"""

_GROUNDED_SYSTEM_TEMPLATE = """You are an expert assistant for an infrastructure transparency knowledge hub.

Your role is to answer questions about infrastructure transparency, data standards (especially OC4IDS), procurement, and assurance programs.

CRITICAL RULES:
1. ALWAYS cite your sources using [1], [2], etc. notation
2. ONLY use information from the provided context
3. If the context doesn't fully answer the question, say so
4. Be concise but thorough
5. Use the exact citation numbers matching the context chunks

Context:
{context}

Remember: Every statement must be backed by a citation [N]."""

FOLLOW_UP_SYSTEM_PROMPT = """Based on the user's question and answer, suggest 2-3 relevant follow-up questions.
Return ONLY a JSON array of strings.
Questions should be specific, actionable, and related to the topic."""


def format_context_blocks(chunks: Sequence[RetrievedChunk]) -> str:
    """
    Number chunks [1]..[N] in retrieval order:
        [i] <section> (<document title>)
        <content>
    Blocks are separated by a '---' rule.
    """
    blocks = [
        f"[{i}] {c.source_section} ({c.document_title})\n{c.content}"
        for i, c in enumerate(chunks, start=1)
    ]
    return CONTEXT_SEPARATOR.join(blocks)


def build_grounded_system_prompt(chunks: Sequence[RetrievedChunk]) -> str:
    return _GROUNDED_SYSTEM_TEMPLATE.format(context=format_context_blocks(chunks))


def build_chat_messages(
    query: str,
    history: Optional[Sequence[Message]] = None,
    *,
    history_turns: int = 6,
) -> List[Dict[str, str]]:
    """Keep only the most recent `history_turns` messages, then append the query."""
    messages: List[Dict[str, str]] = []
    if history and history_turns > 0:
        for msg in list(history)[-history_turns:]:
            messages.append({"role": msg.role, "content": msg.content})
    messages.append({"role": "user", "content": query})
    return messages


def build_follow_up_messages(query: str, answer: str) -> List[Dict[str, str]]:
    return [{
        "role": "user",
        "content": f"Question: {query}\n\nAnswer: {answer}\n\nSuggest follow-up questions:",
    }]


def build_claim_extraction_prompt(answer: str) -> str:
    return (
        'Extract factual claims from the following text. Return a JSON array of objects with '
        '"statement" and "confidence" (0-1) fields.\n'
        "Only extract claims that are specific enough to be verifiable against source documents.\n"
        "Return ONLY valid JSON, no markdown or explanation.\n\n"
        f'Text: "{answer}"'
    )


def _source_text(src: Any) -> str:
    if isinstance(src, str):
        return src
    return str(getattr(src, "content", "") or "")


def build_claim_verification_prompt(claim: str, sources: Sequence[Any]) -> str:
    """Uses the first five sources only."""
    source_context = "\n---\n".join(
        f"Source {i}: {_source_text(s)}"
        for i, s in enumerate(list(sources)[:MAX_VERIFICATION_SOURCES], start=1)
    )
    return (
        "Based on the following sources, is the claim TRUE, FALSE, or UNKNOWN?\n"
        "Respond with ONLY one word: TRUE, FALSE, or UNKNOWN\n\n"
        f'Claim: "{claim}"\n\n'
        f"Sources:\n{source_context}"
    )
