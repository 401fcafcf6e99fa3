"""
silos - description-driven snippet retrieval and structural code mutation.
"""

__version__ = "0.1.0"

from silos.engine import SilosEngine, split_request
from silos.exceptions import (
    BackendUnavailable,
    CaptureUnbound,
    ConfigInvalid,
    MissingLanguageSuffix,
    NoCollectionMatch,
    NoMatch,
    SilosError,
    SyntaxInvalid,
    UnsupportedLanguage,
)
from silos.grammar import GrammarRegistry
from silos.index import CollectionIndex
from silos.schemas import CaptureRef, LiteralSegment, MutationCollection, MutationRule, Snippet
from silos.semantic import CpuBackend, Embedder, GpuBackend, SentenceTransformerEmbedder

__all__ = [
    "__version__",
    "SilosEngine",
    "split_request",
    "CollectionIndex",
    "GrammarRegistry",
    "Embedder",
    "SentenceTransformerEmbedder",
    "CpuBackend",
    "GpuBackend",
    "CaptureRef",
    "LiteralSegment",
    "MutationCollection",
    "MutationRule",
    "Snippet",
    "SilosError",
    "BackendUnavailable",
    "CaptureUnbound",
    "ConfigInvalid",
    "MissingLanguageSuffix",
    "NoCollectionMatch",
    "NoMatch",
    "SyntaxInvalid",
    "UnsupportedLanguage",
]
