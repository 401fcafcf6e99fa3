import threading
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Dict, Optional, Union

import numpy as np

from silos.config import EMBEDDING_CONFIG, resolve_model_and_revision
from silos.exceptions import BackendUnavailable
from silos.logging_config import logger

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer


@dataclass(frozen=True)
class CpuBackend:
    """Run the embedding model on the CPU. Freely parallel."""

    @property
    def device(self) -> str:
        return "cpu"

    @property
    def name(self) -> str:
        return "cpu"


@dataclass(frozen=True)
class GpuBackend:
    """Run the embedding model on one CUDA device. Requests to a device are serialized."""
    device_index: int

    @property
    def device(self) -> str:
        return f"cuda:{self.device_index}"

    @property
    def name(self) -> str:
        return self.device


EmbeddingBackend = Union[CpuBackend, GpuBackend]


def backend_for(gpu: Optional[int]) -> EmbeddingBackend:
    """Map the --gpu style option (None or a device index) to a backend value."""
    return CpuBackend() if gpu is None else GpuBackend(gpu)


# One lock per CUDA device, shared by every embedder targeting that device.
_device_locks: Dict[int, threading.Lock] = {}
_device_locks_guard = threading.Lock()


def device_lock(device_index: int) -> threading.Lock:
    with _device_locks_guard:
        lock = _device_locks.get(device_index)
        if lock is None:
            lock = _device_locks[device_index] = threading.Lock()
        return lock


def check_backend(backend: EmbeddingBackend) -> None:
    """
    Verify the backend can be initialized.

    Raises:
        BackendUnavailable: CUDA is missing or the device index does not exist.
    """
    if isinstance(backend, CpuBackend):
        return

    import torch

    if not torch.cuda.is_available():
        raise BackendUnavailable(backend.name, "CUDA is not available")
    count = torch.cuda.device_count()
    if backend.device_index < 0 or backend.device_index >= count:
        raise BackendUnavailable(
            backend.name, f"device index {backend.device_index} out of range ({count} device(s))"
        )


@lru_cache(maxsize=4)
def get_model(model_name: str, revision: str, device: str) -> "SentenceTransformer":
    """
    Load an embedding model onto a device.

    The model is loaded on first call and cached per (model, revision, device).
    """
    # Lazy import to avoid loading torch for commands that never embed
    from sentence_transformers import SentenceTransformer

    logger.warning(
        f"Loading embedding model '{model_name}' (revision {revision}) on {device}. "
        "This happens once per process."
    )
    return SentenceTransformer(model_name, revision=revision, device=device)


class Embedder:
    """
    Turns free text into a fixed-dimension vector.

    Implementations must be deterministic for a fixed backend and model, and
    must not mutate shared state.
    """

    backend: EmbeddingBackend = CpuBackend()

    @property
    def dimension(self) -> int:
        raise NotImplementedError

    def embed(self, text: str, timeout: Optional[float] = None) -> np.ndarray:
        raise NotImplementedError


class SentenceTransformerEmbedder(Embedder):
    """
    Embedder backed by a sentence-transformers model.

    Args:
        backend: CpuBackend() (default) or GpuBackend(device_index)
        model_name: HuggingFace model identifier
        revision: Model revision or branch
        wait_timeout: Default seconds to wait for a busy GPU (None waits forever)

    Raises:
        BackendUnavailable: The selected device or model cannot be initialized.
    """

    def __init__(
        self,
        backend: Optional[EmbeddingBackend] = None,
        model_name: Optional[str] = None,
        revision: Optional[str] = None,
        wait_timeout: Optional[float] = EMBEDDING_CONFIG["device_wait_timeout"],
    ):
        self.backend = backend or CpuBackend()
        self.model_name, self.revision = resolve_model_and_revision(model_name, revision)
        self.wait_timeout = wait_timeout

        check_backend(self.backend)
        try:
            self._model = get_model(self.model_name, self.revision, self.backend.device)
        except Exception as e:
            logger.error(f"Failed to load '{self.model_name}' on {self.backend.device}: {e}")
            raise BackendUnavailable(self.backend.name, str(e)) from e
        self._dimension = int(self._model.get_sentence_embedding_dimension())

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str, timeout: Optional[float] = None) -> np.ndarray:
        if isinstance(self.backend, CpuBackend):
            return self._encode(text)

        wait = self.wait_timeout if timeout is None else timeout
        lock = device_lock(self.backend.device_index)
        acquired = lock.acquire() if wait is None else lock.acquire(timeout=wait)
        if not acquired:
            raise BackendUnavailable(self.backend.name, f"timed out after {wait}s waiting for the device")
        try:
            return self._encode(text)
        finally:
            lock.release()

    def _encode(self, text: str) -> np.ndarray:
        try:
            vectors = self._model.encode(
                [text],
                batch_size=EMBEDDING_CONFIG["batch_size"],
                convert_to_numpy=True,
                normalize_embeddings=EMBEDDING_CONFIG["normalize_embeddings"],
                show_progress_bar=False,
            )
        except RuntimeError as e:
            # CUDA faults surface as RuntimeError from torch
            logger.error(f"Embedding failed on {self.backend.device}: {e}")
            raise BackendUnavailable(self.backend.name, str(e)) from e
        return np.asarray(vectors[0], dtype=np.float32)

    def __repr__(self) -> str:
        return f"SentenceTransformerEmbedder({self.model_name!r}, backend={self.backend.name})"
