import unittest

from askhub.chunking import chunk_document
from askhub.retrieval.bm25 import _tokenize
from askhub.utils.lang_detect import detect_lang_tag

SPANISH_NEWS = (
    "El gobierno municipal publicó hoy los contratos de obras públicas del último año, "
    "incluyendo los montos pagados y los plazos de ejecución de cada proyecto.\n\n"
    "Las organizaciones de la sociedad civil revisarán la información publicada y presentarán "
    "sus recomendaciones al grupo multisectorial durante la próxima reunión trimestral."
)


class TestLanguageDetection(unittest.TestCase):
    def test_supported_language_detected(self):
        self.assertEqual(detect_lang_tag(SPANISH_NEWS), "es")

    def test_unsupported_or_empty_falls_back(self):
        self.assertEqual(detect_lang_tag(""), "en")
        self.assertEqual(detect_lang_tag("12345 !!!", default="fr"), "fr")
        german = "Die Regierung hat heute alle Verträge für öffentliche Bauprojekte veröffentlicht und erklärt."
        self.assertEqual(detect_lang_tag(german), "en")

    def test_auto_language_resolved_at_chunking(self):
        chunks = chunk_document("news-es", SPANISH_NEWS, "news", "auto")
        self.assertTrue(chunks)
        self.assertTrue(all(c.language == "es" for c in chunks))


class TestTokenizer(unittest.TestCase):
    def test_stopwords_follow_language_hint(self):
        toks = _tokenize("Los contratos de la ciudad", lang_hint="es")
        self.assertEqual(toks, ["contratos", "ciudad"])
        # without a hint nothing but single characters is dropped
        self.assertIn("los", _tokenize("Los contratos de la ciudad"))

    def test_punctuation_and_underscores_split(self):
        self.assertEqual(_tokenize("multi_stakeholder, OC4IDS!", lang_hint="en"), ["multi", "stakeholder", "oc4ids"])

    def test_accented_words_kept_whole(self):
        self.assertEqual(_tokenize("Información pública", lang_hint="es"), ["información", "pública"])


if __name__ == "__main__":
    unittest.main()
