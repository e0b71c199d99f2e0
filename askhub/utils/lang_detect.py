"""
Language detection utility for the supported catalog languages.

Returns one of: en, es, fr, pt, uk, id, vi, th.
Falls back to 'en' when detection fails or lands outside that set.
"""

from __future__ import annotations

from langdetect import DetectorFactory, detect
from langdetect.lang_detect_exception import LangDetectException

from askhub.metadata.schema import LANGUAGE_CODES

# Make language detection deterministic across runs
DetectorFactory.seed = 42


def detect_lang_tag(text: str, default: str = "en") -> str:
    try:
        lang = detect(text or "")
    except LangDetectException:
        return default
    if lang in LANGUAGE_CODES:
        return lang
    return default
