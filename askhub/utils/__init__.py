from .lang_detect import detect_lang_tag
from .ids import stable_chunk_id

__all__ = [
    "detect_lang_tag",
    "stable_chunk_id",
]
