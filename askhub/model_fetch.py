"""
Auto-check and download a GGUF model tier into ./models if missing.

Settings used (via Config / .env):
  - LLM_LIGHT_MODEL_PATH / LLM_HEAVY_MODEL_PATH : target local path per tier
  - LLM_REPO_ID                                 : HF repo id hosting the GGUF files
  - LLM_LIGHT_FILENAME / LLM_HEAVY_FILENAME     : exact GGUF filename per tier
  - HF_TOKEN                                    : Hugging Face token (or HUGGINGFACE_HUB_TOKEN)

Usage:
  from askhub.model_fetch import ensure_llama_model_available
  path = ensure_llama_model_available("heavy")
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from huggingface_hub import hf_hub_download

from askhub.config import Config, load_config

logger = logging.getLogger("askhub.model_fetch")


def ensure_llama_model_available(tier: str = "light", cfg: Optional[Config] = None) -> Path:
    """
    Ensure the GGUF file for `tier` exists locally.
    If not present, downloads the tier's filename from LLM_REPO_ID next to the
    configured path. Returns the absolute Path; raises RuntimeError on failure.
    """
    cfg = cfg or load_config()
    model_path = cfg.validate_for_llm(tier)

    if model_path.exists() and model_path.is_file():
        return model_path

    repo_id = cfg.llm_repo_id
    filename = cfg.llm_filename_for(tier)
    if not repo_id or not filename:
        raise RuntimeError(
            f"Model file for tier '{tier}' is missing ({model_path}) and auto-download "
            "parameters are incomplete.\n"
            f"Please set LLM_REPO_ID and LLM_{tier.upper()}_FILENAME in your .env (and HF_TOKEN if required)."
        )

    if not cfg.hf_token:
        logger.warning(
            "No HF token found in HF_TOKEN/HUGGINGFACE_HUB_TOKEN. "
            "Attempting download without a token (may fail for gated repos)."
        )

    models_dir = model_path.parent
    models_dir.mkdir(parents=True, exist_ok=True)

    logger.info("Downloading %s from %s into %s", filename, repo_id, models_dir)
    try:
        downloaded = hf_hub_download(
            repo_id=repo_id,
            filename=filename,
            local_dir=str(models_dir),
            token=cfg.hf_token,
        )
    except Exception as e:
        raise RuntimeError(
            f"Failed to download '{filename}' from '{repo_id}'. "
            f"Check HF token access and repo/filename. Original error: {e}"
        ) from e

    candidate = Path(downloaded)
    if not candidate.exists():
        raise RuntimeError(f"Downloaded file '{filename}' not found under {models_dir}. Please verify the filename.")

    # If the configured path names a different file, return the actual downloaded path.
    return candidate.resolve()


if __name__ == "__main__":
    tier = sys.argv[1] if len(sys.argv) > 1 else "light"
    try:
        p = ensure_llama_model_available(tier)
        print(f"Model ready at: {p}")
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        raise SystemExit(1)
