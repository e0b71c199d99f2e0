"""
BM25 lexical retrieval with multilingual tokenization and metadata filters.

- Uses rank_bm25.BM25Okapi under the hood.
- Idempotent upserts keyed by chunk IDs.
- Language-aware tokenization:
    * lowercasing
    * unicode letters and digits, everything else is a separator
    * small stopword lists for the Latin-script catalog languages
- Metadata filters: the same 'where' dict the Chroma store receives
  ($and, $or, $in, $nin, $eq, $ne and plain equality).
- On-disk persistence (tokens+metadata+text) to ./indexes/bm25/bm25_index.jsonl by default.

The store holds every chunk, with or without an embedding, so it doubles as the
record of what has been indexed for each document.

NOTE: We rebuild the BM25 structure when the corpus changes (fine at catalog scale).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from rank_bm25 import BM25Okapi

from askhub.utils.lang_detect import detect_lang_tag

# ---------------------------
# Tokenization & stopwords
# ---------------------------

# Unicode letters/digits; underscores and punctuation separate tokens
_TOKEN_RE = re.compile(r"[^\W_]+", re.UNICODE)

_STOP_EN = {
    "a","an","the","and","or","but","if","then","else","for","to","of","in","on","at","by","with",
    "from","as","is","are","was","were","be","been","being","it","its","this","that","these","those",
    "i","you","he","she","we","they","them","his","her","their","my","your","our","me","us",
    "not","no","yes","do","does","did","doing","can","could","should","would","may","might","will","shall",
    "about","into","over","under","again","further","there","here","when","where","why","how","what","which","who","whom",
}

_STOP_ES = {
    "el","la","los","las","un","una","unos","unas","y","o","pero","si","de","del","a","al","en","con",
    "por","para","es","son","fue","ser","que","se","su","sus","lo","como","qué","cómo","cuál","este","esta",
}

_STOP_FR = {
    "le","la","les","un","une","des","et","ou","mais","si","de","du","à","au","aux","en","avec","par",
    "pour","est","sont","être","que","qui","se","sa","son","ses","ce","cette","comment","quel","quelle",
}

_STOP_PT = {
    "o","a","os","as","um","uma","e","ou","mas","se","de","do","da","dos","das","em","no","na","com",
    "por","para","é","são","ser","que","seu","sua","como","qual","este","esta",
}

_STOPWORDS = {"en": _STOP_EN, "es": _STOP_ES, "fr": _STOP_FR, "pt": _STOP_PT}


def _choose_stopwords(lang_hint: Optional[str]) -> set[str]:
    lang = (lang_hint or "").lower()[:2]
    return _STOPWORDS.get(lang, set())


def _tokenize(text: str, lang_hint: Optional[str] = None) -> List[str]:
    """Tokenize to unicode words, lowercase, remove stopwords for the hinted language."""
    toks = [m.group(0).lower() for m in _TOKEN_RE.finditer(text or "")]
    sw = _choose_stopwords(lang_hint)
    return [t for t in toks if t not in sw and len(t) > 1]


# ---------------------------
# Filters
# ---------------------------

def _matches_condition(value: Any, cond: Any) -> bool:
    if not isinstance(cond, Mapping):
        return value == cond
    for op, arg in cond.items():
        if op == "$in":
            ok = value in arg
        elif op == "$nin":
            ok = value not in arg
        elif op == "$eq":
            ok = value == arg
        elif op == "$ne":
            ok = value != arg
        else:
            raise ValueError(f"unsupported filter operator: {op}")
        if not ok:
            return False
    return True


def _matches_filter(meta: Mapping[str, Any], where: Optional[Mapping[str, Any]]) -> bool:
    """
    Evaluate a Chroma-style 'where' dict against one metadata record.
    All top-level keys must match (implicit AND).
    """
    if not where:
        return True

    for key, cond in where.items():
        if key == "$and":
            if not all(_matches_filter(meta, c) for c in cond):
                return False
        elif key == "$or":
            if not any(_matches_filter(meta, c) for c in cond):
                return False
        elif not _matches_condition(meta.get(key), cond):
            return False
    return True


# ---------------------------
# BM25 Store
# ---------------------------

@dataclass
class _Entry:
    id: str
    text: str
    tokens: List[str]
    metadata: Dict[str, Any]

    def as_hit(self, score: Optional[float] = None) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "document": self.text, "metadata": self.metadata}
        if score is not None:
            out["score"] = float(score)
        return out


@dataclass
class BM25Store:
    """
    In-memory + on-disk BM25 store.

    Persistence format: JSONL file with entries:
      {"id": "...", "text": "...", "tokens": [...], "metadata": {...}}
    We rebuild BM25Okapi from tokens on load.
    """
    index_dir: Path = Path("./indexes/bm25")
    index_file: str = "bm25_index.jsonl"

    _entries: Dict[str, _Entry] = field(default_factory=dict)     # id -> entry
    _id_list: List[str] = field(default_factory=list)             # order for BM25

    # ---------- Core ops ----------

    def _rebuild(self) -> None:
        self._id_list = list(self._entries.keys())

    def upsert_many(self, *, ids: Sequence[str], texts: Sequence[str], metadatas: Sequence[Mapping[str, Any]]) -> None:
        """
        Add or replace multiple chunks. Tokenization uses the chunk's 'language'
        metadata if present, otherwise falls back to detection.
        """
        if not (len(ids) == len(texts) == len(metadatas)):
            raise ValueError("ids, texts, metadatas must have the same length")

        for i, chunk_id in enumerate(ids):
            text = texts[i] or ""
            meta = dict(metadatas[i] or {})
            lang = meta.get("language")
            if not lang or lang == "auto":
                lang = detect_lang_tag(text)
                meta["language"] = lang
            toks = _tokenize(text, lang_hint=lang)
            self._entries[chunk_id] = _Entry(id=chunk_id, text=text, tokens=toks, metadata=meta)

        self._rebuild()

    def delete_many(self, ids: Sequence[str]) -> int:
        removed = 0
        for chunk_id in ids:
            if self._entries.pop(chunk_id, None) is not None:
                removed += 1
        self._rebuild()
        return removed

    # ---------- Query ----------

    def search(
        self,
        *,
        query: str,
        where: Optional[Mapping[str, Any]] = None,
        top_k: int = 5,
        lang_hint: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run a BM25 search over the (optionally) filtered subset.
        Returns dicts with id, document, metadata and score; only positive
        scores (at least one matching term) are returned.
        """
        if not query.strip() or not self._entries:
            return []

        candidate_ids = [i for i in self._id_list if _matches_filter(self._entries[i].metadata, where)]
        if not candidate_ids:
            return []

        q_lang = lang_hint or detect_lang_tag(query)
        q_tokens = _tokenize(query, lang_hint=q_lang)
        if not q_tokens:
            return []

        # Temporary BM25 over the filtered subset
        corpus = [self._entries[i].tokens or [""] for i in candidate_ids]
        bm25 = BM25Okapi(corpus)
        scores = bm25.get_scores(q_tokens)

        ranked = sorted(
            ((cid, float(s)) for cid, s in zip(candidate_ids, scores) if s > 0),
            key=lambda x: x[1],
            reverse=True,
        )[:top_k]
        return [self._entries[cid].as_hit(score) for cid, score in ranked]

    def get_many(self, ids: Sequence[str]) -> List[Dict[str, Any]]:
        return [self._entries[i].as_hit() for i in ids if i in self._entries]

    def find(self, where: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """All entries matching a metadata filter, in insertion order."""
        return [self._entries[i].as_hit() for i in self._id_list if _matches_filter(self._entries[i].metadata, where)]

    def count(self) -> int:
        return len(self._entries)

    # ---------- Persistence ----------

    @property
    def index_path(self) -> Path:
        return self.index_dir / self.index_file

    def save(self) -> None:
        self.index_dir.mkdir(parents=True, exist_ok=True)
        with self.index_path.open("w", encoding="utf-8") as f:
            for e in self._entries.values():
                rec = {
                    "id": e.id,
                    "text": e.text,
                    "tokens": e.tokens,
                    "metadata": e.metadata,
                }
                f.write(json.dumps(rec, ensure_ascii=False) + "\n")

    def load(self) -> None:
        self._entries.clear()
        if not self.index_path.exists():
            self._rebuild()
            return
        with self.index_path.open("r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                rec = json.loads(line)
                self._entries[rec["id"]] = _Entry(
                    id=rec["id"],
                    text=rec.get("text", ""),
                    tokens=list(rec.get("tokens", [])),
                    metadata=dict(rec.get("metadata", {})),
                )
        self._rebuild()

    # ---------- Convenience ----------

    @classmethod
    def load_or_create(cls, index_dir: str | Path = "./indexes/bm25") -> "BM25Store":
        store = cls(index_dir=Path(index_dir))
        store.load()
        return store
