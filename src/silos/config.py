"""
Configuration for the silos engine.

Defaults live in module-level dicts; get_engine_config() layers the
SILOS_* environment variables on top.
"""

import os
from typing import Any, Dict, Optional, Tuple

from silos.exceptions import ConfigInvalid

DEFAULT_MODEL_ID = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_REVISION = "refs/pr/21"

EMBEDDING_CONFIG = {
    "model": DEFAULT_MODEL_ID,
    "revision": DEFAULT_REVISION,
    "batch_size": 32,
    "normalize_embeddings": True,
    "device_wait_timeout": None,  # Seconds to wait for a busy GPU, None waits forever
}

INDEX_CONFIG = {
    "default_top_k": 1,
    "max_top_k": 50,
}

DEFINITIONS_CONFIG = {
    "root": "./snippets",
    "snippets_dir": "snippets",
    "mutations_dir": "mutations",
    "extension": ".json",
}


def resolve_model_and_revision(
    model_id: Optional[str] = None,
    revision: Optional[str] = None,
) -> Tuple[str, str]:
    """
    Resolve the embedding model and revision to load.

    The pinned default revision only applies to the default model; a custom
    model without a revision tracks "main".
    """
    if model_id and revision:
        return model_id, revision
    if model_id:
        return model_id, "main"
    if revision:
        return DEFAULT_MODEL_ID, revision
    return DEFAULT_MODEL_ID, DEFAULT_REVISION


def _env_gpu() -> Optional[int]:
    raw = os.getenv("SILOS_GPU", "").strip()
    if not raw:
        return None
    try:
        index = int(raw)
    except ValueError:
        raise ConfigInvalid(f"SILOS_GPU must be a device index, got {raw!r}", source="environment")
    if index < 0:
        raise ConfigInvalid(f"SILOS_GPU must be >= 0, got {index}", source="environment")
    return index


def get_engine_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the engine configuration.

    Precedence: explicit overrides > environment variables > defaults.
    Override values of None are ignored so CLI options can be passed through as-is.
    """
    model_id, revision = resolve_model_and_revision(
        os.getenv("SILOS_MODEL_ID") or None,
        os.getenv("SILOS_REVISION") or None,
    )
    config = {
        "gpu": _env_gpu(),
        "model_id": model_id,
        "revision": revision,
        "definitions": os.getenv("SILOS_DEFINITIONS") or DEFINITIONS_CONFIG["root"],
        "device_wait_timeout": EMBEDDING_CONFIG["device_wait_timeout"],
        "top_k": INDEX_CONFIG["default_top_k"],
    }
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    if "model_id" in overrides or "revision" in overrides:
        overrides["model_id"], overrides["revision"] = resolve_model_and_revision(
            overrides.get("model_id") or os.getenv("SILOS_MODEL_ID") or None,
            overrides.get("revision") or os.getenv("SILOS_REVISION") or None,
        )
    config.update(overrides)
    return config
