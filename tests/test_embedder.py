import tempfile
import unittest

import numpy as np

from askhub.embeddings import CachingEmbedder, ChunkEmbedder
from askhub.errors import EmbeddingError
from askhub.metadata import Chunk

from tests.fakes import FakeEmbedder


def _chunks(n, marker_at=None):
    out = []
    for i in range(n):
        text = f"chunk number {i} " + "content " * 10
        if i == marker_at:
            text = "BROKEN " + text
        out.append(Chunk(
            document_id="doc-1", content=text, source_section=f"Section {i + 1}",
            char_start=i * 200, char_end=i * 200 + len(text),
            document_type="news", language="en",
        ))
    return out


class TestChunkEmbedder(unittest.TestCase):
    def test_batches_with_delay_between(self):
        sleeps = []
        emb = ChunkEmbedder(FakeEmbedder(dim=16), batch_size=10, batch_delay=0.2, sleep=sleeps.append)
        out = emb.embed(_chunks(25))
        self.assertEqual(len(out), 25)
        self.assertTrue(all(c.embedding is not None and len(c.embedding) == 16 for c in out))
        # 3 batches -> 2 pauses
        self.assertEqual(sleeps, [0.2, 0.2])

    def test_failed_chunk_keeps_no_embedding(self):
        emb = ChunkEmbedder(FakeEmbedder(dim=16, fail_on=("BROKEN",)), sleep=lambda _s: None)
        with self.assertLogs("askhub.embeddings.batch", level="WARNING"):
            out = emb.embed(_chunks(4, marker_at=2))
        self.assertIsNone(out[2].embedding)
        self.assertEqual(sum(1 for c in out if c.embedding is not None), 3)

    def test_order_preserved(self):
        chunks = _chunks(5)
        out = ChunkEmbedder(FakeEmbedder(dim=16), sleep=lambda _s: None).embed(chunks)
        self.assertEqual([c.source_section for c in out], [c.source_section for c in chunks])

    def test_already_embedded_chunks_are_skipped(self):
        fake = FakeEmbedder(dim=16)
        chunks = [c.with_embedding([1.0] * 16) for c in _chunks(3)]
        out = ChunkEmbedder(fake, sleep=lambda _s: None).embed(chunks)
        self.assertEqual(fake.calls, [])
        self.assertEqual(out[0].embedding, [1.0] * 16)

    def test_unloadable_provider_raises(self):
        emb = ChunkEmbedder(FakeEmbedder(dim=16, warmup_error=OSError("no model")), sleep=lambda _s: None)
        with self.assertRaises(EmbeddingError):
            emb.embed(_chunks(2))


class TestCachingEmbedder(unittest.TestCase):
    def test_query_cache_hits_disk(self):
        base = FakeEmbedder(dim=8)
        with tempfile.TemporaryDirectory() as td:
            cache = CachingEmbedder(base, cache_dir=td)
            first = cache.encode_queries(["what is oc4ids"])
            second = cache.encode_queries(["what is oc4ids"])
            self.assertEqual(len(base.calls), 1)
            np.testing.assert_allclose(first, second)

    def test_passages_not_cached_by_default(self):
        base = FakeEmbedder(dim=8)
        with tempfile.TemporaryDirectory() as td:
            cache = CachingEmbedder(base, cache_dir=td)
            cache.encode_passages(["same text"])
            cache.encode_passages(["same text"])
            self.assertEqual(len(base.calls), 2)


if __name__ == "__main__":
    unittest.main()
