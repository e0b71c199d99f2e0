"""Test doubles for the embedding provider, the LLM and the Chroma collection."""

import hashlib
import re

import numpy as np

from askhub.retrieval.bm25 import _matches_filter

_WORD_RE = re.compile(r"[^\W_]+", re.UNICODE)


class FakeEmbedder:
    """Bag-of-words hashing embedder: texts sharing words get similar vectors."""

    def __init__(self, dim=768, fail_on=(), warmup_error=None):
        self.model_name = "fake-embedder"
        self.dim = dim
        self.fail_on = tuple(fail_on)
        self.warmup_error = warmup_error
        self.calls = []

    def warmup(self):
        if self.warmup_error is not None:
            raise self.warmup_error

    def _vec(self, text):
        v = np.zeros(self.dim, dtype="float32")
        for w in _WORD_RE.findall(text.lower()):
            h = int(hashlib.md5(w.encode("utf-8")).hexdigest(), 16)
            v[h % self.dim] += 1.0
        n = np.linalg.norm(v)
        if n == 0:
            v[0] = 1.0
            n = 1.0
        return v / n

    def _encode(self, texts):
        texts = list(texts)
        self.calls.append(texts)
        for t in texts:
            if any(marker in t for marker in self.fail_on):
                raise RuntimeError(f"provider rejected: {t[:20]}")
        return np.vstack([self._vec(t) for t in texts]).astype("float32")

    def encode_queries(self, texts):
        return self._encode(texts)

    def encode_passages(self, texts):
        return self._encode(texts)


class FakeLLM:
    """
    Returns scripted replies in order (the last one repeats). A reply may be
    an Exception instance, which is raised, or a callable(messages, tier, system).
    """

    def __init__(self, *replies):
        self.replies = list(replies) or [""]
        self.calls = []

    def complete(self, messages, tier="light", system=None):
        self.calls.append({"messages": list(messages), "tier": tier, "system": system})
        idx = min(len(self.calls) - 1, len(self.replies) - 1)
        reply = self.replies[idx]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(messages, tier, system)
        return reply


class FakeCollection:
    """In-memory stand-in for a chromadb collection (cosine space)."""

    def __init__(self, fail_writes=False):
        self.rows = {}
        self.fail_writes = fail_writes

    def _check(self):
        if self.fail_writes:
            raise RuntimeError("collection unavailable")

    def upsert(self, ids, documents, metadatas, embeddings):
        self._check()
        for i, _id in enumerate(ids):
            self.rows[_id] = (documents[i], dict(metadatas[i]), list(embeddings[i]))

    def delete(self, ids):
        self._check()
        for _id in ids:
            self.rows.pop(_id, None)

    def count(self):
        return len(self.rows)

    def get(self, ids=None, where=None, include=()):
        keys = [i for i in (ids if ids is not None else self.rows) if i in self.rows]
        keys = [k for k in keys if _matches_filter(self.rows[k][1], where)]
        out = {
            "ids": keys,
            "documents": [self.rows[k][0] for k in keys],
            "metadatas": [self.rows[k][1] for k in keys],
        }
        if "embeddings" in include:
            out["embeddings"] = [self.rows[k][2] for k in keys]
        return out

    def query(self, query_embeddings, n_results, include=(), where=None):
        q = np.asarray(query_embeddings[0], dtype="float32")
        scored = []
        for _id, (doc, meta, emb) in self.rows.items():
            if not _matches_filter(meta, where):
                continue
            e = np.asarray(emb, dtype="float32")
            denom = (np.linalg.norm(q) * np.linalg.norm(e)) or 1.0
            scored.append((1.0 - float(np.dot(q, e) / denom), _id, doc, meta))
        scored.sort(key=lambda x: x[0])
        scored = scored[:n_results]
        return {
            "ids": [[s[1] for s in scored]],
            "documents": [[s[2] for s in scored]],
            "metadatas": [[s[3] for s in scored]],
            "distances": [[s[0] for s in scored]],
        }


GUIDANCE_DOC = """Intro text that explains what this guidance covers and who should read it before starting any disclosure work.

## Data disclosure
Procuring entities should publish contract data using the OC4IDS standard so that project information can be compared across agencies and years.

## Assurance process
Independent assurance teams review disclosed data, interview officials and check project sites before writing their findings for the multi-stakeholder group.

## Multi-stakeholder groups
A multi-stakeholder group brings government, industry and civil society together to oversee transparency work and to follow up on assurance findings.
"""
