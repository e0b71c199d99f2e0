"""
askhub CLI

Command-line front end for the knowledge-hub "Ask" pipeline. Every command
prints a JSON document to stdout; errors go to stderr as JSON.

Commands:

  Ingestion / Query
  -----------------
  - add <path> --id DOC --type TYPE --title TITLE [--url URL] [--language L] [--topics a,b]
      Read a UTF-8 text/markdown file, chunk it by document type, embed the
      chunks and index them in BOTH the Chroma vector store and the BM25 store.
      Re-adding the same document id replaces its chunks.

  - ask "<question>" [--topics a,b] [--types t1,t2] [--language L] [--k N]
      Hybrid retrieval + local LLM answer with citations, confidence and
      follow-up questions.

  - preview "<question>" [filters]
      Retrieval only (no generation). Shows ranked chunks, snippets and scores.

  - verify "<answer>" (--document DOC ... | --query "<question>")
      Faithfulness check of an answer against a document's chunks or against
      the chunks retrieved for a question.

  Curation / Observability
  ------------------------
  - show --document DOC       List a document's chunks (section, span, snippet).
  - delete --document DOC     Remove a document's chunks and catalog entry.
  - stats                     Counts and disk usage of the indexes.

Exit codes: 0 ok, 2 invalid input, 1 any other failure.
"""

from __future__ import annotations

# --- LOAD .env EARLY (so HF cache vars take effect before imports) ------------
from pathlib import Path as _PathLike

from dotenv import load_dotenv

load_dotenv(dotenv_path=_PathLike(__file__).resolve().parents[1] / ".env", override=False)
# -----------------------------------------------------------------------------

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from askhub.config import configure_logging, load_config
from askhub.errors import AskHubError, ValidationError
from askhub.metadata import DOCUMENT_TYPES, LANGUAGE_CODES, validate_filters
from askhub.pipeline import AskPipeline
from askhub.verification import hallucinations_from


# -----------------------------------------------------------------------------
# Small helpers
# -----------------------------------------------------------------------------

def _emit(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _fail(action: str, err: Exception) -> int:
    out: Dict[str, Any] = {"action": action, "error": str(err)}
    if isinstance(err, ValidationError) and err.field:
        out["field"] = err.field
    print(json.dumps(out, ensure_ascii=False), file=sys.stderr)
    return 2 if isinstance(err, ValidationError) else 1


def _filters_from_args(args: argparse.Namespace):
    return validate_filters({
        "topics": args.topics,
        "document_types": args.types,
        "language": args.language,
    })


def _snippet(text: str, n: int = 160) -> str:
    s = (text or "").replace("\n", " ").strip()
    return s if len(s) <= n else s[:n].rstrip() + "..."


def _run(action: str, fn: Callable[[AskPipeline], Dict[str, Any]]) -> int:
    try:
        payload = fn(AskPipeline.from_config())
    except (AskHubError, RuntimeError, OSError, ValueError) as e:
        return _fail(action, e)
    _emit({"action": action, **payload})
    return 0


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

def cmd_add(args: argparse.Namespace) -> int:
    path = Path(args.path)
    if not path.exists():
        print(f"ERROR: file not found: {path}", file=sys.stderr)
        return 2
    text = path.read_text(encoding="utf-8")

    def _do(pipe: AskPipeline) -> Dict[str, Any]:
        res = pipe.ingest_document(
            document_id=args.id,
            raw_text=text,
            document_type=args.type,
            title=args.title,
            url=args.url or "",
            language=args.language or "auto",
            topics=[t for t in (args.topics or "").split(",") if t.strip()],
        )
        return {"file": str(path), **res.to_dict()}

    return _run("ingest", _do)


def cmd_ask(args: argparse.Namespace) -> int:
    question = args.question.strip()
    if not question:
        print("ERROR: question cannot be empty", file=sys.stderr)
        return 2

    def _do(pipe: AskPipeline) -> Dict[str, Any]:
        filters = _filters_from_args(args)
        if args.k:
            context = pipe.retrieve_context(question, int(args.k), filters)
            response = pipe.generate_answer(question, context)
        else:
            response = pipe.chat(question, filters=filters)
        return {"question": question, "filters": filters.to_dict(), **response.to_dict()}

    return _run("query", _do)


def cmd_preview(args: argparse.Namespace) -> int:
    question = args.question.strip()
    if not question:
        print("ERROR: question cannot be empty", file=sys.stderr)
        return 2

    def _do(pipe: AskPipeline) -> Dict[str, Any]:
        filters = _filters_from_args(args)
        k = int(args.k or pipe.top_k)
        return {
            "question": question,
            "top_k": k,
            "filters": filters.to_dict(),
            "results": pipe.retrieve_preview(question, k, filters),
        }

    return _run("preview", _do)


def cmd_verify(args: argparse.Namespace) -> int:
    def _do(pipe: AskPipeline) -> Dict[str, Any]:
        if args.document:
            sources: List[Any] = []
            for doc_id in args.document:
                sources.extend(pipe.get_chunks_for_resource(doc_id))
        else:
            sources = pipe.retrieve_context(args.query, pipe.top_k)
        result = pipe.verify_faithfulness(args.answer, sources)
        out = result.to_dict()
        out["sources"] = len(sources)
        if args.hallucinations:
            out["hallucinations"] = hallucinations_from(result)
        return out

    return _run("verify", _do)


def cmd_show(args: argparse.Namespace) -> int:
    def _do(pipe: AskPipeline) -> Dict[str, Any]:
        doc = pipe.catalog.get(args.document)
        chunks = pipe.get_chunks_for_resource(args.document)
        return {
            "document_id": args.document,
            "title": doc.title if doc else None,
            "url": doc.url if doc else None,
            "count": len(chunks),
            "chunks": [
                {
                    "id": c.id,
                    "section": c.source_section,
                    "span": [c.char_start, c.char_end],
                    "language": c.language,
                    "embedded": c.embedding is not None,
                    "snippet": _snippet(c.content),
                }
                for c in chunks
            ],
        }

    return _run("show", _do)


def cmd_delete(args: argparse.Namespace) -> int:
    def _do(pipe: AskPipeline) -> Dict[str, Any]:
        if args.dry_run:
            chunks = pipe.get_chunks_for_resource(args.document)
            return {"document_id": args.document, "dry_run": True, "would_delete": [c.id for c in chunks]}
        return {"document_id": args.document, "deleted": pipe.remove_document(args.document)}

    return _run("delete", _do)


def cmd_stats(_args: argparse.Namespace) -> int:
    return _run("stats", lambda pipe: pipe.index_stats())


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------

def _add_filter_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--topics", type=str, help="Filter by comma-separated topics (any of)")
    p.add_argument("--types", type=str, help="Filter by comma-separated document types")
    p.add_argument("--language", type=str, choices=list(LANGUAGE_CODES), help="Filter by chunk language")
    p.add_argument("--k", type=int, default=None, help="Top-K chunks (default: TOP_K from config)")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="askhub", description="Knowledge-hub question answering with citations")
    sub = p.add_subparsers(dest="cmd", required=True)

    # --- add ---
    pa = sub.add_parser("add", help="Ingest a text/markdown document")
    pa.add_argument("path", help="Path to a UTF-8 text or markdown file")
    pa.add_argument("--id", required=True, help="Document id (re-adding replaces its chunks)")
    pa.add_argument("--type", required=True, choices=list(DOCUMENT_TYPES), help="Document type (selects chunking strategy)")
    pa.add_argument("--title", required=True, help="Document title shown in citations")
    pa.add_argument("--url", type=str, help="Canonical document URL")
    pa.add_argument("--language", type=str, choices=list(LANGUAGE_CODES) + ["auto"], default="auto", help="Document language")
    pa.add_argument("--topics", type=str, help="Comma-separated topics")
    pa.set_defaults(func=cmd_add)

    # --- ask ---
    pq = sub.add_parser("ask", help="Ask a question (retrieval + generation)")
    pq.add_argument("question", help="The question")
    _add_filter_args(pq)
    pq.set_defaults(func=cmd_ask)

    # --- preview ---
    pp = sub.add_parser("preview", help="Preview retrieval results (no generation)")
    pp.add_argument("question", help="The query/question")
    _add_filter_args(pp)
    pp.set_defaults(func=cmd_preview)

    # --- verify ---
    pv = sub.add_parser("verify", help="Check an answer's faithfulness to its sources")
    pv.add_argument("answer", help="Answer text to verify")
    src = pv.add_mutually_exclusive_group(required=True)
    src.add_argument("--document", nargs="+", help="Use these documents' chunks as sources")
    src.add_argument("--query", type=str, help="Use the chunks retrieved for this question as sources")
    pv.add_argument("--hallucinations", action="store_true", help="Also list unsupported or low-confidence claims")
    pv.set_defaults(func=cmd_verify)

    # --- show ---
    pshow = sub.add_parser("show", help="Show the chunks of a document")
    pshow.add_argument("--document", required=True, help="Document id")
    pshow.set_defaults(func=cmd_show)

    # --- delete ---
    pdel = sub.add_parser("delete", help="Delete a document from BOTH vector + BM25 indexes")
    pdel.add_argument("--document", required=True, help="Document id")
    pdel.add_argument("--dry-run", action="store_true", help="Preview what would be deleted")
    pdel.set_defaults(func=cmd_delete)

    # --- stats ---
    ps = sub.add_parser("stats", help="Show index health and disk usage")
    ps.set_defaults(func=cmd_stats)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    configure_logging(load_config())
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
