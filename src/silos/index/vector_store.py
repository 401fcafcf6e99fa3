from dataclasses import dataclass
from typing import Any, Callable, List, NamedTuple, Optional, Tuple

import numpy as np

from silos.logging_config import logger


@dataclass(frozen=True)
class IndexEntry:
    """An immutable indexed item: its id, description and L2-normalized description vector."""
    id: int
    description: str
    embedding: np.ndarray
    item: Any


class Neighbor(NamedTuple):
    id: int
    entry: IndexEntry
    score: float


@dataclass(frozen=True)
class _Snapshot:
    entries: Tuple[IndexEntry, ...]
    matrix: np.ndarray


def normalize(vector: np.ndarray) -> np.ndarray:
    """L2-normalize a vector so dot products are cosine similarities."""
    vector = np.asarray(vector, dtype=np.float32).reshape(-1)
    norm = np.linalg.norm(vector)
    if norm > 0:
        return vector / norm
    logger.warning("Zero-norm vector, skipping normalization")
    return vector


class VectorNamespace:
    """
    Append-only in-memory vector store with exact cosine search.

    Readers work on an immutable snapshot (entries tuple plus a read-only
    matrix) grabbed in a single attribute read; `append` builds the next
    snapshot and swaps it in. Callers serialize `append` themselves.
    """

    def __init__(self, name: str):
        self.name = name
        self._snapshot = _Snapshot(entries=(), matrix=np.empty((0, 0), dtype=np.float32))

    def append(self, entry: IndexEntry) -> None:
        snapshot = self._snapshot
        row = entry.embedding.reshape(1, -1)
        if snapshot.entries:
            if row.shape[1] != snapshot.matrix.shape[1]:
                raise ValueError(
                    f"Dimension mismatch in '{self.name}': {row.shape[1]} vs {snapshot.matrix.shape[1]}"
                )
            matrix = np.vstack([snapshot.matrix, row])
        else:
            matrix = row.copy()
        matrix.setflags(write=False)
        self._snapshot = _Snapshot(entries=snapshot.entries + (entry,), matrix=matrix)
        logger.debug(f"Appended entry #{entry.id} to '{self.name}' ({len(matrix)} total)")

    def search(
        self,
        query: np.ndarray,
        k: int = 1,
        where: Optional[Callable[[IndexEntry], bool]] = None,
    ) -> List[Neighbor]:
        """
        Rank entries by descending cosine similarity.

        Equal scores keep insertion order (stable sort), so the earliest entry wins ties.
        `where` filters entries before the top-k cut.
        """
        snapshot = self._snapshot
        if not snapshot.entries or k <= 0:
            return []

        scores = snapshot.matrix @ normalize(query)
        order = np.argsort(-scores, kind="stable")

        results: List[Neighbor] = []
        for idx in order:
            entry = snapshot.entries[int(idx)]
            if where is not None and not where(entry):
                continue
            results.append(Neighbor(entry.id, entry, float(scores[idx])))
            if len(results) >= k:
                break
        return results

    def entries(self) -> Tuple[IndexEntry, ...]:
        return self._snapshot.entries

    def __len__(self) -> int:
        return len(self._snapshot.entries)
