import tempfile
import unittest
from pathlib import Path

from askhub.metadata import RetrievalFilters
from askhub.retrieval import DocumentCatalog, DocumentRecord, HybridRetriever, fuse_scores

from tests.fakes import FakeEmbedder
from tests.test_chunk_store import DIM, embedded_guidance, make_store


class TestFuseScores(unittest.TestCase):
    def test_weighted_sum_and_order(self):
        fused = fuse_scores([("a", 0.9), ("b", 0.8)], [("b", 2.0), ("c", 1.0)], top_k=5)
        scores = dict(fused)
        self.assertAlmostEqual(scores["a"], 0.63)
        self.assertAlmostEqual(scores["b"], 0.8 * 0.7 + 2.0 * 0.3)
        self.assertAlmostEqual(scores["c"], 0.3)
        self.assertEqual([i for i, _ in fused], ["b", "a", "c"])

    def test_presence_in_both_lists_increases_score(self):
        only_vector = dict(fuse_scores([("a", 0.5)], [], top_k=5))["a"]
        both = dict(fuse_scores([("a", 0.5)], [("a", 0.1)], top_k=5))["a"]
        self.assertGreater(both, only_vector)

    def test_top_k_truncation(self):
        fused = fuse_scores([(str(i), i / 10) for i in range(10)], [], top_k=3)
        self.assertEqual([i for i, _ in fused], ["9", "8", "7"])

    def test_custom_weights(self):
        fused = fuse_scores([("a", 1.0)], [("b", 1.0)], top_k=2, weight_vector=0.2, weight_text=0.8)
        self.assertEqual(fused[0][0], "b")


class BrokenEmbedder:
    def encode_queries(self, texts):
        raise ConnectionError("embedding service down")

    def encode_passages(self, texts):
        raise ConnectionError("embedding service down")


class TestHybridRetriever(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        td = self._td.name
        self.store = make_store(td)
        self.store.store(embedded_guidance("doc-1", topics=("procurement",)))
        self.store.store(embedded_guidance("doc-2", topics=("climate",)))
        self.catalog = DocumentCatalog(path=Path(td) / "catalog.jsonl")
        self.catalog.register(DocumentRecord(document_id="doc-1", title="Disclosure Guide", url="https://example.org/1"))
        self.catalog.register(DocumentRecord(document_id="doc-2", title="Climate Guide", url="https://example.org/2"))
        self.retriever = HybridRetriever(store=self.store, embedder=FakeEmbedder(dim=DIM), catalog=self.catalog)

    def tearDown(self):
        self._td.cleanup()

    def test_rank_based_scores_and_enrichment(self):
        res = self.retriever.retrieve("independent assurance teams review disclosed data", top_k=5)
        self.assertEqual(len(res), 5)
        self.assertEqual([r.score for r in res], [1.0, 0.9, 0.8, 0.7, 0.6])
        fused = [r.fused_score for r in res]
        self.assertEqual(fused, sorted(fused, reverse=True))
        self.assertEqual(res[0].source_section, "Assurance process")
        self.assertIn(res[0].document_title, {"Disclosure Guide", "Climate Guide"})
        self.assertTrue(res[0].document_url.startswith("https://example.org/"))

    def test_filters_apply_to_both_searches(self):
        res = self.retriever.retrieve("assurance findings", top_k=5, filters=RetrievalFilters(topics=("climate",)))
        self.assertTrue(res)
        self.assertTrue(all(r.document_id == "doc-2" for r in res))
        self.assertTrue(all(r.topics == ["climate"] for r in res))

    def test_chunks_of_unknown_documents_are_dropped(self):
        self.catalog.remove("doc-2")
        res = self.retriever.retrieve("assurance findings", top_k=8)
        self.assertTrue(res)
        self.assertTrue(all(r.document_id == "doc-1" for r in res))
        self.assertEqual(res[0].score, 1.0)

    def test_failures_degrade_to_empty(self):
        broken = HybridRetriever(store=self.store, embedder=BrokenEmbedder(), catalog=self.catalog)
        with self.assertLogs("askhub.retrieval.fusion", level="WARNING"):
            self.assertEqual(broken.retrieve("anything"), [])

    def test_no_matches_is_empty(self):
        res = self.retriever.retrieve("zzzz", top_k=5, filters=RetrievalFilters(document_types=("news",)))
        self.assertEqual(res, [])


if __name__ == "__main__":
    unittest.main()
