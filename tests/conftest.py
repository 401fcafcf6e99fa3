"""
Pytest configuration for the silos test suite.

This conftest.py provides:
- Machine-mode logging (suppresses console output)
- Deterministic fake embedders so no model is ever downloaded
- Engine fixtures, empty and preloaded with Go mutation collections
"""

import hashlib
import os
import re
from typing import Optional

import numpy as np
import pytest

from silos.engine import SilosEngine
from silos.grammar import GrammarRegistry
from silos.logging_config import setup_logging
from silos.schemas import CaptureRef, LiteralSegment, MutationRule
from silos.semantic.embeddings import Embedder


# ============================================================================
# GLOBAL CONFIGURATION
# ============================================================================

def pytest_configure(config):
    os.environ.setdefault("SILOS_MACHINE_MODE", "1")


@pytest.fixture(autouse=True)
def setup_test_logging():
    """
    Machine mode by default - suppress console logs for clean test output.
    """
    setup_logging(level="DEBUG", suppress_console=True, force=True)


# ============================================================================
# FAKE EMBEDDERS
# ============================================================================

class HashingEmbedder(Embedder):
    """
    Bag-of-words feature hashing. Identical text gives identical vectors and
    texts sharing words land close together.
    """

    def __init__(self, dimension: int = 128):
        self._dimension = dimension
        self.calls = 0

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str, timeout: Optional[float] = None) -> np.ndarray:
        self.calls += 1
        vector = np.zeros(self._dimension, dtype=np.float32)
        for token in re.findall(r"\w+", text.lower()):
            digest = int(hashlib.md5(token.encode("utf8")).hexdigest(), 16)
            vector[digest % self._dimension] += 1.0 if (digest >> 64) % 2 else -1.0
        if not vector.any():
            vector[0] = 1.0
        return vector


class ConstantEmbedder(Embedder):
    """Every text maps to the same vector, so every search is a tie."""

    @property
    def dimension(self) -> int:
        return 4

    def embed(self, text: str, timeout: Optional[float] = None) -> np.ndarray:
        return np.array([1.0, 2.0, 3.0, 4.0], dtype=np.float32)


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture(scope="session")
def registry():
    return GrammarRegistry()


@pytest.fixture
def engine(embedder, registry):
    return SilosEngine.create(embedder, registry)


# ============================================================================
# RULE FIXTURES
# ============================================================================

BASE_CALL = """
(call_expression
  function: (selector_expression
    operand: (identifier) @pkg
    field: (field_identifier) @fn)
  arguments: (argument_list (identifier) @path)
  (#eq? @pkg "filepath")
  (#eq? @fn "Base"))
"""

ANY_CALL = "(call_expression) @root"


@pytest.fixture
def parent_of_rule():
    return MutationRule(
        expression=BASE_CALL,
        template=(
            LiteralSegment(text="parentOf("),
            CaptureRef(name="path"),
            LiteralSegment(text=")"),
        ),
    )


@pytest.fixture
def wrap_any_call_rule():
    return MutationRule(
        expression=ANY_CALL,
        template=(
            LiteralSegment(text="traced("),
            CaptureRef(name="root"),
            LiteralSegment(text=")"),
        ),
    )
