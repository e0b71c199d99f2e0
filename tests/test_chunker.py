import unittest

from askhub.chunking import chunk_by_markers, chunk_by_paragraphs, chunk_document
from askhub.chunking.chunker import _FINDING_RE, _STEP_RE
from askhub.errors import ValidationError
from askhub.metadata import CHUNK_STRATEGIES

from tests.fakes import GUIDANCE_DOC


def _para(word, n=12):
    return " ".join([word] * n) + " " + "detail " * 10


class TestChunkDocument(unittest.TestCase):
    def test_headings_yield_one_chunk_per_section_plus_preamble(self):
        chunks = chunk_document("doc-1", GUIDANCE_DOC, "guidance", "en", ["procurement"])
        labels = [c.source_section for c in chunks]
        self.assertEqual(labels, ["Preamble", "Data disclosure", "Assurance process", "Multi-stakeholder groups"])
        for c in chunks:
            self.assertEqual(c.document_id, "doc-1")
            self.assertEqual(c.language, "en")
            self.assertEqual(c.topics, ("procurement",))

    def test_span_round_trip(self):
        chunks = chunk_document("doc-1", GUIDANCE_DOC, "guidance", "en")
        for c in chunks:
            self.assertGreater(c.char_end, c.char_start)
            self.assertEqual(GUIDANCE_DOC[c.char_start:c.char_end].strip(), c.content)

    def test_content_within_type_bounds(self):
        strategy = CHUNK_STRATEGIES["guidance"]
        for c in chunk_document("doc-1", GUIDANCE_DOC, "guidance", "en"):
            self.assertGreaterEqual(len(c.content), strategy.min_chars)
            self.assertLessEqual(len(c.content), strategy.max_chars)

    def test_short_content_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            chunk_document("doc-1", "too short", "guidance", "en")
        self.assertIn("at least 100 characters", str(ctx.exception))

    def test_unknown_type_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            chunk_document("doc-1", GUIDANCE_DOC, "brochure", "en")
        self.assertEqual(ctx.exception.field, "document_type")

    def test_oversized_section_is_dropped(self):
        big = "## Huge\n" + ("word " * 900)
        text = GUIDANCE_DOC + "\n" + big
        chunks = chunk_document("doc-1", text, "guidance", "en")
        self.assertNotIn("Huge", [c.source_section for c in chunks])
        self.assertEqual(len(chunks), 4)

    def test_findings(self):
        text = "\n\n".join(
            f"FINDING {i}: Issue number {i}\n" + _para(f"finding{i}") for i in range(1, 4)
        )
        chunks = chunk_document("rep-1", text, "assurance_report", "en")
        self.assertEqual(
            [c.source_section for c in chunks],
            ["FINDING 1: Issue number 1", "FINDING 2: Issue number 2", "FINDING 3: Issue number 3"],
        )

    def test_steps(self):
        text = "\n\n".join(f"Step {i}: Do thing {i}\n" + _para(f"step{i}") for i in range(1, 3))
        chunks = chunk_document("tool-1", text, "tool", "en")
        self.assertEqual([c.source_section for c in chunks], ["Step 1: Do thing 1", "Step 2: Do thing 2"])


class TestStrategies(unittest.TestCase):
    def test_paragraph_accumulation_respects_budget(self):
        paras = [_para(f"p{i}", 30) for i in range(6)]
        text = "\n\n".join(paras)
        # ~180-200 chars each -> at most ~2 paragraphs per 100-token section
        sections = chunk_by_paragraphs(text, max_tokens=100)
        self.assertGreater(len(sections), 1)
        for s in sections:
            self.assertLessEqual((s.end - s.start) / 4, 100)
            self.assertTrue(s.label.startswith("Section "))

    def test_paragraph_fallback_when_no_markers(self):
        text = "\n\n".join(_para(f"p{i}") for i in range(3))
        sections = chunk_by_markers(text, pattern=_FINDING_RE, label_prefix="FINDING", max_tokens=600)
        self.assertTrue(sections)
        self.assertTrue(all(s.label.startswith("Section ") for s in sections))

    def test_markers_are_case_insensitive(self):
        text = "step 1: lower case marker\n" + _para("alpha")
        sections = chunk_by_markers(text, pattern=_STEP_RE, label_prefix="Step", max_tokens=400)
        self.assertEqual(sections[0].label, "Step 1: lower case marker")

    def test_short_paragraphs_are_ignored(self):
        text = "tiny\n\n" + _para("alpha") + "\n\nsmall one"
        sections = chunk_by_paragraphs(text, max_tokens=800)
        self.assertEqual(len(sections), 1)
        self.assertNotIn("tiny", sections[0].text(text))


if __name__ == "__main__":
    unittest.main()
