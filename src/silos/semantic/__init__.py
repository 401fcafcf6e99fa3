from .embeddings import (
    CpuBackend,
    Embedder,
    EmbeddingBackend,
    GpuBackend,
    SentenceTransformerEmbedder,
    backend_for,
    check_backend,
    device_lock,
)

__all__ = [
    "CpuBackend",
    "Embedder",
    "EmbeddingBackend",
    "GpuBackend",
    "SentenceTransformerEmbedder",
    "backend_for",
    "check_backend",
    "device_lock",
]
