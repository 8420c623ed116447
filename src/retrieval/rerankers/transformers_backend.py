"""transformers/torch scoring backend for sequence-classification cross-encoders."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import numpy as np
import torch
from transformers import AutoModelForSequenceClassification, AutoTokenizer

from core.config import get_settings
from retrieval.rerankers.errors import InferenceError, LoadError

logger = logging.getLogger(__name__)

_REQUIRED_MODEL_FILES = ("config.json", "tokenizer.json")
_WEIGHT_SUFFIXES = (".bin", ".safetensors")


class TransformersBackend:
    """Load models from the HuggingFace hub (or a local cache) and score pairs."""

    def __init__(
        self,
        *,
        cache_dir: str | Path | None = None,
        device: Optional[str] = None,
        max_length: int = 512,
        hf_token: Optional[str] = None,
    ) -> None:
        if max_length < 1:
            raise ValueError("max_length must be >= 1")
        self.cache_dir = Path(cache_dir or Path.cwd() / "models").resolve()
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._device = torch.device(device or _default_device())
        self._token = hf_token or os.environ.get("HF_TOKEN") or os.environ.get(
            "HUGGINGFACE_HUB_TOKEN"
        )
        self.max_length = max_length
        logger.info(
            "Transformers backend on %s with cache: %s", self._device, self.cache_dir
        )

    @property
    def device(self) -> str:
        return str(self._device)

    def is_downloaded(self, model_id: str) -> bool:
        return model_files_present(self.cache_dir, model_id)

    def load_model(self, key: str) -> Any:
        logger.debug("Model %s present in cache: %s", key, self.is_downloaded(key))
        try:
            model = AutoModelForSequenceClassification.from_pretrained(
                key, cache_dir=str(self.cache_dir), token=self._token
            )
        except (OSError, ValueError) as exc:
            raise LoadError(key, str(exc)) from exc
        model.eval()
        model.to(self._device)
        return model

    def load_tokenizer(self, key: str) -> Any:
        try:
            return AutoTokenizer.from_pretrained(
                key, cache_dir=str(self.cache_dir), token=self._token
            )
        except (OSError, ValueError) as exc:
            raise LoadError(key, str(exc)) from exc

    def label_metadata(self, model: Any) -> tuple[int, Mapping[int, str]]:
        config = getattr(model, "config", None)
        num_labels = int(getattr(config, "num_labels", 1) or 1)
        id2label = dict(getattr(config, "id2label", None) or {})
        return num_labels, id2label

    def infer(
        self,
        model: Any,
        tokenizer: Any,
        queries: Sequence[str],
        passages: Sequence[str],
    ) -> np.ndarray:
        if len(queries) != len(passages):
            raise InferenceError("queries and passages must have the same length")
        encoded = tokenizer(
            list(queries),
            list(passages),
            truncation=True,
            padding=True,
            return_tensors="pt",
            max_length=self.max_length,
        )
        encoded = {k: v.to(self._device) for k, v in encoded.items()}

        with torch.inference_mode():
            logits = model(**encoded).logits
            logits = logits.to(dtype=torch.float64, device="cpu")

        return logits.numpy()


def model_files_present(cache_dir: str | Path, model_id: str) -> bool:
    """Whether ``cache_dir/model_id`` holds a complete model download."""
    model_path = Path(cache_dir) / model_id
    if not model_path.is_dir():
        return False
    if not all((model_path / name).exists() for name in _REQUIRED_MODEL_FILES):
        return False
    names = [path.name for path in model_path.iterdir()]
    if any(name.endswith(_WEIGHT_SUFFIXES) for name in names):
        return True
    onnx_dir = model_path / "onnx"
    if onnx_dir.is_dir():
        return any(path.suffix == ".onnx" for path in onnx_dir.iterdir())
    return False


@lru_cache(maxsize=1)
def get_default_backend() -> TransformersBackend:
    """Build the backend from settings once per process."""
    settings = get_settings()
    return TransformersBackend(
        cache_dir=settings.reranker_cache_dir,
        device=settings.reranker_device,
        max_length=settings.reranker_max_length,
        hf_token=settings.hf_token,
    )


def _default_device() -> str:
    if torch.cuda.is_available():
        return "cuda"
    if getattr(torch.backends, "mps", None) and torch.backends.mps.is_available():
        return "mps"
    return "cpu"


__all__ = [
    "TransformersBackend",
    "get_default_backend",
    "model_files_present",
]
