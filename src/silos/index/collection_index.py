"""
CollectionIndex: the process-wide store of snippets and mutation collections.

Snippets are partitioned per language; mutation collections share one
global namespace. Built once at startup and handed to the engine.
"""

import threading
from typing import Dict, List, Optional, Tuple

import numpy as np

from silos.grammar.config import canonical_language
from silos.logging_config import logger
from silos.schemas import MutationCollection, Snippet
from silos.semantic.embeddings import Embedder

from .vector_store import IndexEntry, Neighbor, VectorNamespace, normalize


class CollectionIndex:
    """
    Append-only index of description vectors.

    Reads never lock: each namespace search works on an immutable snapshot.
    `add_*` calls are serialized by a single writer lock and become visible
    atomically once their id is assigned.

    Args:
        embedder: Embedder used to vectorize descriptions on add
    """

    def __init__(self, embedder: Embedder):
        self.embedder = embedder
        self._write_lock = threading.Lock()
        self._snippet_namespaces: Dict[str, VectorNamespace] = {}
        self._collections = VectorNamespace("mutations")
        self._snippets_by_id: Dict[int, IndexEntry] = {}
        self._collections_by_id: Dict[int, IndexEntry] = {}
        self._next_snippet_id = 0
        self._next_collection_id = 0

    def _embed(self, text: str) -> np.ndarray:
        # Embedding runs outside the writer lock so a slow device never blocks readers or other adds
        vector = normalize(self.embedder.embed(text))
        vector.setflags(write=False)
        return vector

    def add_snippet(self, snippet: Snippet) -> int:
        """
        Embed and store a snippet in its language namespace.

        Returns:
            The snippet's sequential id.
        """
        language = canonical_language(snippet.language)
        snippet = snippet.model_copy(update={"language": language})
        vector = self._embed(snippet.description)

        with self._write_lock:
            namespace = self._snippet_namespaces.get(language)
            if namespace is None:
                namespace = VectorNamespace(f"snippets/{language}")
            entry_id = self._next_snippet_id
            entry = IndexEntry(id=entry_id, description=snippet.description, embedding=vector, item=snippet)
            namespace.append(entry)
            self._snippets_by_id[entry_id] = entry
            self._snippet_namespaces[language] = namespace
            self._next_snippet_id += 1

        logger.debug(f"Indexed snippet #{entry_id} [{language}]: {snippet.description!r}")
        return entry_id

    def add_collection(self, collection: MutationCollection) -> int:
        """
        Embed and store a mutation collection. The caller validates rules first.

        Returns:
            The collection's sequential id.
        """
        if collection.language is not None:
            collection = collection.model_copy(update={"language": canonical_language(collection.language)})
        vector = self._embed(collection.description)

        with self._write_lock:
            entry_id = self._next_collection_id
            entry = IndexEntry(id=entry_id, description=collection.description, embedding=vector, item=collection)
            self._collections.append(entry)
            self._collections_by_id[entry_id] = entry
            self._next_collection_id += 1

        logger.debug(
            f"Indexed mutation collection #{entry_id} ({len(collection.rules)} rules): {collection.description!r}"
        )
        return entry_id

    def nearest_snippets(self, vector: np.ndarray, language: str, k: int = 1) -> List[Neighbor]:
        """Nearest snippets within one language namespace; [] if the namespace is empty or unknown."""
        namespace = self._snippet_namespaces.get(canonical_language(language))
        if namespace is None:
            logger.debug(f"No snippet namespace for '{language}'")
            return []
        return namespace.search(vector, k)

    def nearest_collections(
        self,
        vector: np.ndarray,
        k: int = 1,
        language: Optional[str] = None,
    ) -> List[Neighbor]:
        """
        Nearest mutation collections.

        With `language`, collections authored for another grammar are skipped;
        collections without a language apply everywhere.
        """
        if language is None:
            return self._collections.search(vector, k)

        wanted = canonical_language(language)

        def compatible(entry: IndexEntry) -> bool:
            return entry.item.language is None or entry.item.language == wanted

        return self._collections.search(vector, k, where=compatible)

    def snippet(self, snippet_id: int) -> Snippet:
        return self._snippets_by_id[snippet_id].item

    def collection(self, collection_id: int) -> MutationCollection:
        return self._collections_by_id[collection_id].item

    def languages(self) -> Tuple[str, ...]:
        return tuple(sorted(self._snippet_namespaces))

    def stats(self) -> Dict[str, object]:
        return {
            "snippets": {lang: len(ns) for lang, ns in sorted(self._snippet_namespaces.items())},
            "collections": len(self._collections),
            "dimension": self.embedder.dimension,
        }

    def __len__(self) -> int:
        return len(self._snippets_by_id) + len(self._collections_by_id)
