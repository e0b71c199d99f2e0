"""
Pipeline facade for askhub.

Callers use this package as the single entry point instead of importing
deep modules:

    from askhub.pipeline import AskPipeline
    pipe = AskPipeline.from_config()
    pipe.ingest_document(document_id="doc-1", raw_text=text, document_type="guidance", title="...")
    response = pipe.chat("What is OC4IDS?")
"""

from .rag import AskPipeline, IngestResult

__all__ = [
    "AskPipeline",
    "IngestResult",
]
