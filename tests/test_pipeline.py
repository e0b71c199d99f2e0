import tempfile
import unittest
from pathlib import Path

from askhub.embeddings import ChunkEmbedder
from askhub.errors import EmbeddingError, ValidationError
from askhub.generation import AnswerGenerator
from askhub.pipeline import AskPipeline
from askhub.retrieval import DocumentCatalog, HybridRetriever
from askhub.verification import FaithfulnessVerifier

from tests.fakes import GUIDANCE_DOC, FakeEmbedder, FakeLLM
from tests.test_chunk_store import DIM, make_store


def make_pipeline(td, llm):
    store = make_store(td)
    catalog = DocumentCatalog(path=Path(td) / "catalog" / "documents.jsonl")
    embedder = FakeEmbedder(dim=DIM)
    return AskPipeline(
        store=store,
        catalog=catalog,
        embedder=ChunkEmbedder(embedder, sleep=lambda _s: None),
        retriever=HybridRetriever(store=store, embedder=embedder, catalog=catalog),
        generator=AnswerGenerator(llm),
        verifier=FaithfulnessVerifier(llm),
        index_paths={"bm25": Path(td) / "bm25", "catalog": catalog.path},
    )


class TestAskPipeline(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.td = self._td.name

    def tearDown(self):
        self._td.cleanup()

    def _ingest(self, pipe, document_id="doc-1"):
        return pipe.ingest_document(
            document_id=document_id,
            raw_text=GUIDANCE_DOC,
            document_type="guidance",
            title="Disclosure Guide",
            url="https://example.org/guide",
            language="en",
            topics=["procurement"],
        )

    def test_ingest_then_chat(self):
        llm = FakeLLM("Publish with OC4IDS [1].", '["What is OC4IDS?"]')
        pipe = make_pipeline(self.td, llm)
        res = self._ingest(pipe)
        self.assertEqual(res.total_chunks, 4)
        self.assertEqual(res.embedded, 4)
        self.assertEqual(res.replaced, 0)
        self.assertEqual(pipe.catalog.get("doc-1").title, "Disclosure Guide")

        answer = pipe.chat("How should procuring entities publish contract data?")
        self.assertEqual(answer.answer, "Publish with OC4IDS [1].")
        self.assertTrue(answer.citations)
        self.assertEqual(answer.citations[0].document_title, "Disclosure Guide")
        self.assertEqual(answer.citations[0].url, "https://example.org/guide")
        self.assertEqual(answer.follow_up_questions, ["What is OC4IDS?"])

    def test_reingest_replaces_chunks(self):
        pipe = make_pipeline(self.td, FakeLLM())
        self._ingest(pipe)
        again = self._ingest(pipe)
        self.assertEqual(again.replaced, 4)
        self.assertEqual(len(pipe.get_chunks_for_resource("doc-1")), 4)

    def test_invalid_document_leaves_index_untouched(self):
        pipe = make_pipeline(self.td, FakeLLM())
        self._ingest(pipe)
        with self.assertRaises(ValidationError):
            pipe.ingest_document(document_id="doc-1", raw_text="tiny", document_type="guidance", title="T")
        self.assertEqual(len(pipe.get_chunks_for_resource("doc-1")), 4)

    def test_embedding_outage_leaves_index_untouched(self):
        pipe = make_pipeline(self.td, FakeLLM())
        self._ingest(pipe)
        pipe.embedder = ChunkEmbedder(
            FakeEmbedder(dim=DIM, warmup_error=RuntimeError("model offline")),
            sleep=lambda _s: None,
        )
        with self.assertRaises(EmbeddingError):
            self._ingest(pipe)
        self.assertEqual(len(pipe.get_chunks_for_resource("doc-1")), 4)
        self.assertEqual(pipe.index_stats()["vectors"], 4)

    def test_empty_query_rejected(self):
        pipe = make_pipeline(self.td, FakeLLM())
        with self.assertRaises(ValidationError):
            pipe.chat("   ")

    def test_no_matching_context_is_uncertain(self):
        llm = FakeLLM("Sorry, I have no information about that.")
        pipe = make_pipeline(self.td, llm)
        self._ingest(pipe)
        res = pipe.chat("anything", filters={"document_types": "news"})
        self.assertEqual(res.confidence, "uncertain")
        self.assertEqual(res.citations, [])

    def test_preview_and_stats(self):
        pipe = make_pipeline(self.td, FakeLLM())
        self._ingest(pipe)
        items = pipe.retrieve_preview("assurance teams", 3)
        self.assertEqual([i["rank"] for i in items], [1, 2, 3])
        self.assertEqual(items[0]["score"], 1.0)
        stats = pipe.index_stats()
        self.assertEqual(stats["documents"], 1)
        self.assertEqual(stats["chunks"], 4)
        self.assertEqual(stats["vectors"], 4)
        self.assertGreater(stats["bm25_bytes"], 0)

    def test_remove_document(self):
        pipe = make_pipeline(self.td, FakeLLM())
        self._ingest(pipe)
        self.assertEqual(pipe.remove_document("doc-1"), 4)
        self.assertIsNone(pipe.catalog.get("doc-1"))
        self.assertEqual(pipe.index_stats()["chunks"], 0)

    def test_verify_against_document_chunks(self):
        llm = FakeLLM('[{"statement": "Assurance teams review data", "confidence": 0.8}]', "TRUE")
        pipe = make_pipeline(self.td, llm)
        self._ingest(pipe)
        sources = pipe.get_chunks_for_resource("doc-1")
        result = pipe.verify_faithfulness("Assurance teams review data.", sources)
        self.assertEqual(result.score, 1.0)
        self.assertEqual(result.confidence, "high")
        self.assertIn("Source 1: Intro text", llm.calls[1]["messages"][0]["content"])


if __name__ == "__main__":
    unittest.main()
