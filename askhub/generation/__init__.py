"""
Expose generation-related utilities.

Includes:
- LlamaCppRunner / TieredLlamaProvider: local chat models via llama-cpp-python
- AnswerGenerator: grounded answers with citations and confidence
- prompt builders and citation post-processing
"""

from .llama_cpp_runner import HEAVY, LIGHT, LLMProvider, LlamaCppRunner, TieredLlamaProvider
from .prompting import (
    NO_CONTEXT_SYSTEM_PROMPT,
    build_chat_messages,
    build_grounded_system_prompt,
    format_context_blocks,
)
from .post import cited_indices, enforce_citations
from .answer import (
    AnswerGenerator,
    confidence_bucket,
    create_excerpt,
    extract_citations,
    select_model_tier,
)

__all__ = [
    "HEAVY",
    "LIGHT",
    "LLMProvider",
    "LlamaCppRunner",
    "TieredLlamaProvider",
    "NO_CONTEXT_SYSTEM_PROMPT",
    "build_chat_messages",
    "build_grounded_system_prompt",
    "format_context_blocks",
    "cited_indices",
    "enforce_citations",
    "AnswerGenerator",
    "confidence_bucket",
    "create_excerpt",
    "extract_citations",
    "select_model_tier",
]
