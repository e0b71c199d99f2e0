"""
Wrapper for llama-cpp-python to load and run local GGUF chat models.

Two model tiers are served:
- "light": small/fast model for short questions and auxiliary calls
- "heavy": larger model for broad questions (many chunks or long queries)

Both go through the same provider contract:
    complete(messages, tier, system) -> text
"""

from __future__ import annotations

import importlib
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from askhub.config import load_config
from askhub.model_fetch import ensure_llama_model_available

logger = logging.getLogger("askhub.generation.llama_cpp_runner")

LIGHT = "light"
HEAVY = "heavy"
TIERS = (LIGHT, HEAVY)


class LLMProvider(Protocol):
    def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        tier: str = LIGHT,
        system: Optional[str] = None,
    ) -> str: ...


class LlamaCppRunner:
    """
    Simple wrapper around llama_cpp.Llama.
    Provides:
    - model loading
    - chat completion over role/content messages
    """

    def __init__(
        self,
        model_path: str | Path,
        *,
        n_ctx: int = 4096,
        n_gpu_layers: Optional[int] = None,
        seed: int = 42,
        verbose: bool = False,
    ) -> None:
        """
        Load a GGUF model.

        Args:
            model_path: path to the model file
            n_ctx: context window size
            n_gpu_layers: number of layers on GPU (None -> LLAMA_GPU_LAYERS env, default 0)
            seed: random seed
            verbose: show llama-cpp logs
        """
        p = Path(model_path).expanduser().resolve()
        if not p.exists():
            raise FileNotFoundError(f"Model file not found: {p}")

        gpu_layers = n_gpu_layers
        if gpu_layers is None:
            gpu_layers = int(os.getenv("LLAMA_GPU_LAYERS", "0"))

        llama_cpp = importlib.import_module("llama_cpp")
        self.model_path = p
        self.model = llama_cpp.Llama(
            model_path=str(p),
            n_ctx=n_ctx,
            n_gpu_layers=gpu_layers,
            seed=seed,
            verbose=verbose,
        )

    def chat(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        max_tokens: int = 1024,
        temperature: float = 0.2,
        top_p: float = 0.95,
        stop: Optional[List[str]] = None,
    ) -> str:
        res = self.model.create_chat_completion(
            messages=[dict(m) for m in messages],
            max_tokens=max_tokens,
            temperature=temperature,
            top_p=top_p,
            stop=stop,
        )
        return (res["choices"][0]["message"].get("content") or "").strip()


@dataclass
class TieredLlamaProvider:
    """
    LLMProvider backed by one LlamaCppRunner per tier, loaded on first use.
    Missing model files are downloaded when LLM_REPO_ID and the tier filename are set.
    """
    n_ctx: int = 4096
    max_tokens: int = 1024
    temperature: float = 0.2

    _runners: Dict[str, LlamaCppRunner] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def _runner(self, tier: str) -> LlamaCppRunner:
        if tier not in TIERS:
            raise ValueError(f"unknown model tier '{tier}' (allowed: {', '.join(TIERS)})")
        with self._lock:
            runner = self._runners.get(tier)
            if runner is None:
                path = ensure_llama_model_available(tier)
                logger.info("Loading %s model from %s", tier, path)
                runner = LlamaCppRunner(path, n_ctx=self.n_ctx)
                self._runners[tier] = runner
            return runner

    def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        tier: str = LIGHT,
        system: Optional[str] = None,
    ) -> str:
        chat: List[Dict[str, Any]] = []
        if system:
            chat.append({"role": "system", "content": system})
        chat.extend({"role": m["role"], "content": m["content"]} for m in messages)
        return self._runner(tier).chat(chat, max_tokens=self.max_tokens, temperature=self.temperature)

    @classmethod
    def from_config(cls) -> "TieredLlamaProvider":
        cfg = load_config()
        return cls(n_ctx=cfg.llm_n_ctx)
