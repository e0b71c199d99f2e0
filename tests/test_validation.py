import unittest

from askhub.errors import ValidationError
from askhub.metadata import Chunk, require_valid_chunks, validate_chunk, validate_filters, validate_ingest_metadata


def _chunk(**over):
    base = dict(
        document_id="doc-1",
        content="x" * 120,
        source_section="Intro",
        char_start=0,
        char_end=120,
        document_type="guidance",
        language="en",
        topics=("climate",),
    )
    base.update(over)
    return Chunk(**base)


class TestValidateChunk(unittest.TestCase):
    def test_valid_chunk(self):
        res = validate_chunk(_chunk())
        self.assertTrue(res.ok)
        self.assertEqual(res.errors, [])

    def test_content_too_short(self):
        res = validate_chunk(_chunk(content="short", char_end=5))
        self.assertFalse(res.ok)
        self.assertTrue(any("content length" in e for e in res.errors))

    def test_content_over_type_limit(self):
        # tool: 400 tokens -> 1600 chars
        res = validate_chunk(_chunk(document_type="tool", content="y" * 1601, char_end=1601))
        self.assertFalse(res.ok)

    def test_span_must_be_increasing(self):
        self.assertFalse(validate_chunk(_chunk(char_start=10, char_end=10)).ok)
        self.assertFalse(validate_chunk(_chunk(char_start=-1)).ok)

    def test_embedding_dimension(self):
        self.assertTrue(validate_chunk(_chunk(embedding=[0.1] * 768)).ok)
        self.assertFalse(validate_chunk(_chunk(embedding=[0.1] * 10)).ok)
        self.assertTrue(validate_chunk(_chunk(embedding=[0.1] * 8), embedding_dim=8).ok)

    def test_unknown_topic_and_language(self):
        self.assertFalse(validate_chunk(_chunk(topics=("weather",))).ok)
        self.assertFalse(validate_chunk(_chunk(language="de")).ok)

    def test_page_number_positive(self):
        self.assertFalse(validate_chunk(_chunk(page_number=0)).ok)
        self.assertTrue(validate_chunk(_chunk(page_number=3)).ok)

    def test_section_label_bounds(self):
        self.assertFalse(validate_chunk(_chunk(source_section="")).ok)
        self.assertFalse(validate_chunk(_chunk(source_section="s" * 501)).ok)

    def test_require_valid_chunks_raises_with_position(self):
        with self.assertRaises(ValidationError) as ctx:
            require_valid_chunks([_chunk(), _chunk(content="bad", char_end=3)])
        self.assertEqual(ctx.exception.details["index"], 1)


class TestIngestMetadata(unittest.TestCase):
    def test_language_alias_and_topics(self):
        meta = validate_ingest_metadata(document_type="Guidance", language="Spanish", topics="climate, gender")
        self.assertEqual(meta, {"document_type": "guidance", "language": "es", "topics": ["climate", "gender"]})

    def test_defaults_to_auto(self):
        self.assertEqual(validate_ingest_metadata(document_type="news")["language"], "auto")

    def test_unknown_topic_strict_vs_fixup(self):
        with self.assertRaises(ValidationError):
            validate_ingest_metadata(document_type="news", topics=["weather"])
        meta = validate_ingest_metadata(document_type="news", topics=["Local Government", "weather"], fixup=True)
        self.assertEqual(meta["topics"], ["local_government"])

    def test_unknown_language(self):
        with self.assertRaises(ValidationError):
            validate_ingest_metadata(document_type="news", language="klingon")


class TestFilters(unittest.TestCase):
    def test_parses_comma_lists(self):
        f = validate_filters({"topics": "climate,gender", "document_types": ["guidance"], "language": "EN"})
        self.assertEqual(f.topics, ("climate", "gender"))
        self.assertEqual(f.document_types, ("guidance",))
        self.assertEqual(f.language, "en")

    def test_empty(self):
        self.assertTrue(validate_filters(None).is_empty())
        self.assertTrue(validate_filters({"topics": None, "document_types": "", "language": None}).is_empty())

    def test_rejects_unknown(self):
        with self.assertRaises(ValidationError):
            validate_filters({"document_types": "brochure"})


if __name__ == "__main__":
    unittest.main()
