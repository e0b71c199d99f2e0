"""
askhub configuration loader.

- Reads environment variables and .env without failing on import.
- Provides a typed Config object with sensible defaults.
- Includes light validators you can call at runtime (not on import).

Usage:
    from askhub.config import load_config
    cfg = load_config()
    # cfg.validate_for_embeddings()
    # path = cfg.validate_for_llm("heavy")
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _getenv_str(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return val


def _getenv_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _getenv_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _getenv_bool(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return str(val).strip().lower() in ("1", "true", "yes", "y", "on")


@dataclass(frozen=True)
class Config:
    # Embeddings
    embedding_model_name: str = "intfloat/multilingual-e5-base"
    embedding_dim: int = 768
    embed_batch_size: int = 10
    embed_batch_delay: float = 0.2
    emb_cache_dir: Path = Path("./indexes/emb_cache")
    use_embedding_cache: bool = True

    # Local LLM tiers (llama.cpp)
    llm_light_model_path: Path = Path("./models/Llama-3.2-3B-Instruct-Q4_K_M.gguf")
    llm_heavy_model_path: Path = Path("./models/Meta-Llama-3.1-8B-Instruct-Q4_K_M.gguf")
    llm_n_ctx: int = 4096

    # Optional auto-download parameters (used if a model file is missing)
    hf_token: Optional[str] = None
    llm_repo_id: Optional[str] = None
    llm_light_filename: Optional[str] = None
    llm_heavy_filename: Optional[str] = None

    # Chunk store
    chroma_persist_directory: Path = Path("./indexes/chroma")
    chroma_collection_name: str = "askhub_chunks"
    bm25_index_dir: Path = Path("./indexes/bm25")
    catalog_path: Path = Path("./indexes/catalog/documents.jsonl")

    # Retrieval
    top_k: int = 5
    weight_vector: float = 0.7
    weight_text: float = 0.3

    # Generation
    history_turns: int = 6
    strict_citations: bool = False
    follow_up_questions: bool = True
    confidence_from_fused_score: bool = False

    # Logging
    log_level: str = "INFO"

    # --- Helpers / validations (explicitly called by runtime code) ---

    def validate_for_embeddings(self) -> None:
        if not self.embedding_model_name:
            raise RuntimeError("EMBEDDING_MODEL_NAME is not set.")
        if self.embedding_dim <= 0:
            raise RuntimeError("EMBEDDING_DIM must be a positive integer.")

    def validate_for_llm(self, tier: str = "light") -> Path:
        """
        Return the resolved local model path for a tier ("light" or "heavy").
        The file may not exist yet; the runner auto-downloads when configured.
        """
        if tier == "heavy":
            path = self.llm_heavy_model_path
        elif tier == "light":
            path = self.llm_light_model_path
        else:
            raise ValueError(f"unknown model tier '{tier}' (allowed: light/heavy)")
        return path.expanduser().resolve()

    def llm_filename_for(self, tier: str) -> Optional[str]:
        return self.llm_heavy_filename if tier == "heavy" else self.llm_light_filename


# Single, cached instance after first load
__CONFIG_SINGLETON: Optional[Config] = None


def load_config(reload: bool = False) -> Config:
    """
    Load configuration from environment and .env (once) with defaults.
    Use reload=True to force re-reading.
    """
    global __CONFIG_SINGLETON
    if __CONFIG_SINGLETON is not None and not reload:
        return __CONFIG_SINGLETON

    # Do not override already-set env vars.
    load_dotenv(override=False)

    d = Config()
    cfg = Config(
        embedding_model_name=_getenv_str("EMBEDDING_MODEL_NAME", d.embedding_model_name) or d.embedding_model_name,
        embedding_dim=_getenv_int("EMBEDDING_DIM", d.embedding_dim),
        embed_batch_size=max(1, _getenv_int("EMBED_BATCH_SIZE", d.embed_batch_size)),
        embed_batch_delay=max(0.0, _getenv_float("EMBED_BATCH_DELAY", d.embed_batch_delay)),
        emb_cache_dir=Path(_getenv_str("EMB_CACHE_DIR", str(d.emb_cache_dir)) or d.emb_cache_dir),
        use_embedding_cache=_getenv_bool("USE_EMBEDDING_CACHE", d.use_embedding_cache),
        llm_light_model_path=Path(_getenv_str("LLM_LIGHT_MODEL_PATH", str(d.llm_light_model_path)) or d.llm_light_model_path),
        llm_heavy_model_path=Path(_getenv_str("LLM_HEAVY_MODEL_PATH", str(d.llm_heavy_model_path)) or d.llm_heavy_model_path),
        llm_n_ctx=_getenv_int("LLM_N_CTX", d.llm_n_ctx),
        hf_token=_getenv_str("HF_TOKEN")
        or _getenv_str("HUGGINGFACE_HUB_TOKEN")
        or _getenv_str("ASKHUB_HF_TOKEN"),
        llm_repo_id=_getenv_str("LLM_REPO_ID"),
        llm_light_filename=_getenv_str("LLM_LIGHT_FILENAME"),
        llm_heavy_filename=_getenv_str("LLM_HEAVY_FILENAME"),
        chroma_persist_directory=Path(_getenv_str("CHROMA_PERSIST_DIRECTORY", str(d.chroma_persist_directory)) or d.chroma_persist_directory),
        chroma_collection_name=_getenv_str("CHROMA_COLLECTION_NAME", d.chroma_collection_name) or d.chroma_collection_name,
        bm25_index_dir=Path(_getenv_str("BM25_INDEX_DIR", str(d.bm25_index_dir)) or d.bm25_index_dir),
        catalog_path=Path(_getenv_str("CATALOG_PATH", str(d.catalog_path)) or d.catalog_path),
        top_k=max(1, _getenv_int("TOP_K", d.top_k)),
        weight_vector=_getenv_float("WEIGHT_VECTOR", d.weight_vector),
        weight_text=_getenv_float("WEIGHT_TEXT", d.weight_text),
        history_turns=max(0, _getenv_int("HISTORY_TURNS", d.history_turns)),
        strict_citations=_getenv_bool("STRICT_CITATIONS", d.strict_citations),
        follow_up_questions=_getenv_bool("FOLLOW_UP_QUESTIONS", d.follow_up_questions),
        confidence_from_fused_score=_getenv_bool("CONFIDENCE_FROM_FUSED_SCORE", d.confidence_from_fused_score),
        log_level=_getenv_str("LOG_LEVEL", d.log_level) or d.log_level,
    )

    __CONFIG_SINGLETON = cfg
    return cfg


_NOISY_LOGGERS = (
    "chromadb",
    "sentence_transformers",
    "httpx",
    "httpcore",
    "urllib3",
    "huggingface_hub",
)


def configure_logging(cfg: Optional[Config] = None) -> None:
    """Configure root logging once for CLI/tool entry points."""
    cfg = cfg or load_config()
    level = getattr(logging, str(cfg.log_level).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
