"""
Parent-document catalog.

Retrieval enriches every chunk with its parent document's title and URL.
Documents are registered at ingestion and persisted as JSONL:
  {"document_id": "...", "title": "...", "url": "...", "document_type": "...", ...}
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger("askhub.retrieval.catalog")


@dataclass
class DocumentRecord:
    document_id: str
    title: str
    url: str = ""
    document_type: Optional[str] = None
    language: Optional[str] = None
    topics: List[str] = field(default_factory=list)
    registered_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass
class DocumentCatalog:
    path: Path = Path("./indexes/catalog/documents.jsonl")

    _docs: Dict[str, DocumentRecord] = field(default_factory=dict)

    def register(self, record: DocumentRecord) -> DocumentRecord:
        """Insert or replace a document; the original registration time is kept."""
        prev = self._docs.get(record.document_id)
        if prev is not None:
            record.registered_at = prev.registered_at
        self._docs[record.document_id] = record
        return record

    def get(self, document_id: str) -> Optional[DocumentRecord]:
        return self._docs.get(document_id)

    def get_many(self, document_ids: Sequence[str]) -> Dict[str, DocumentRecord]:
        return {d: self._docs[d] for d in document_ids if d in self._docs}

    def remove(self, document_id: str) -> bool:
        return self._docs.pop(document_id, None) is not None

    def all(self) -> List[DocumentRecord]:
        return list(self._docs.values())

    def __len__(self) -> int:
        return len(self._docs)

    # ---- persistence ----

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            for rec in self._docs.values():
                f.write(json.dumps(asdict(rec), ensure_ascii=False) + "\n")

    def load(self) -> None:
        self._docs.clear()
        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    raw = json.loads(line)
                    rec = DocumentRecord(**raw)
                except (json.JSONDecodeError, TypeError) as e:
                    logger.warning("Skipping malformed catalog line %d in %s: %s", lineno, self.path, e)
                    continue
                self._docs[rec.document_id] = rec

    @classmethod
    def load_or_create(cls, path: str | Path = "./indexes/catalog/documents.jsonl") -> "DocumentCatalog":
        cat = cls(path=Path(path))
        cat.load()
        return cat
