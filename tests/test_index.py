"""Tests for the vector namespaces and CollectionIndex."""

import threading

import numpy as np
import pytest

from silos.index import CollectionIndex, IndexEntry, VectorNamespace, normalize
from silos.schemas import CaptureRef, MutationCollection, MutationRule, Snippet

from conftest import ConstantEmbedder

pytestmark = pytest.mark.fast


def _entry(entry_id, vector):
    return IndexEntry(id=entry_id, description=f"entry {entry_id}", embedding=normalize(np.array(vector)), item=entry_id)


def _collection(description, language=None):
    rule = MutationRule(expression="(identifier) @root", template=(CaptureRef(name="root"),))
    return MutationCollection(description=description, rules=(rule,), language=language)


class TestVectorNamespace:

    def test_empty_search(self):
        assert VectorNamespace("empty").search(np.array([1.0, 0.0])) == []

    def test_ranked_by_cosine(self):
        namespace = VectorNamespace("ns")
        namespace.append(_entry(0, [1.0, 0.0]))
        namespace.append(_entry(1, [0.0, 1.0]))
        namespace.append(_entry(2, [1.0, 1.0]))

        results = namespace.search(np.array([0.0, 3.0]), k=3)

        assert [r.id for r in results] == [1, 2, 0]
        assert results[0].score == pytest.approx(1.0)
        assert results[1].score == pytest.approx(np.sqrt(0.5))
        assert results[2].score == pytest.approx(0.0)

    def test_ties_keep_insertion_order(self):
        namespace = VectorNamespace("ns")
        for entry_id in range(5):
            namespace.append(_entry(entry_id, [2.0, 2.0]))

        results = namespace.search(np.array([1.0, 1.0]), k=5)

        assert [r.id for r in results] == [0, 1, 2, 3, 4]

    def test_search_is_deterministic(self):
        rng = np.random.default_rng(7)
        namespace = VectorNamespace("ns")
        for entry_id in range(20):
            namespace.append(_entry(entry_id, rng.random(8)))
        query = rng.random(8)

        first = namespace.search(query, k=10)
        second = namespace.search(query, k=10)

        assert [(r.id, r.score) for r in first] == [(r.id, r.score) for r in second]

    def test_where_filters_before_cut(self):
        namespace = VectorNamespace("ns")
        namespace.append(_entry(0, [1.0, 0.0]))
        namespace.append(_entry(1, [0.9, 0.1]))

        results = namespace.search(np.array([1.0, 0.0]), k=1, where=lambda e: e.id != 0)

        assert [r.id for r in results] == [1]

    def test_dimension_mismatch(self):
        namespace = VectorNamespace("ns")
        namespace.append(_entry(0, [1.0, 0.0]))
        with pytest.raises(ValueError, match="Dimension mismatch"):
            namespace.append(_entry(1, [1.0, 0.0, 0.0]))

    def test_snapshot_is_read_only(self):
        namespace = VectorNamespace("ns")
        namespace.append(_entry(0, [1.0, 0.0]))
        matrix = namespace._snapshot.matrix
        with pytest.raises(ValueError):
            matrix[0, 0] = 5.0

    def test_readers_keep_old_snapshot(self):
        namespace = VectorNamespace("ns")
        namespace.append(_entry(0, [1.0, 0.0]))
        before = namespace.entries()

        namespace.append(_entry(1, [0.0, 1.0]))

        assert len(before) == 1
        assert len(namespace.entries()) == 2


class TestCollectionIndex:

    def test_add_assigns_sequential_ids(self, embedder):
        index = CollectionIndex(embedder)

        ids = [index.add_snippet(Snippet(description=f"snippet {n}", language="go", body=str(n))) for n in range(3)]

        assert ids == [0, 1, 2]
        assert index.snippet(1).body == "1"
        assert len(index) == 3

    def test_snippet_namespaces_are_per_language(self, embedder):
        index = CollectionIndex(embedder)
        index.add_snippet(Snippet(description="channeled worker", language="go", body="go worker()"))
        index.add_snippet(Snippet(description="channeled worker", language="rs", body="spawn(worker)"))

        vector = embedder.embed("channeled worker")

        go_hits = index.nearest_snippets(vector, "go", k=5)
        rust_hits = index.nearest_snippets(vector, "rust", k=5)

        assert [hit.entry.item.body for hit in go_hits] == ["go worker()"]
        assert [hit.entry.item.body for hit in rust_hits] == ["spawn(worker)"]
        assert index.languages() == ("go", "rust")
        assert index.nearest_snippets(vector, "python") == []

    def test_exact_description_is_nearest(self, embedder):
        index = CollectionIndex(embedder)
        index.add_snippet(Snippet(description="read a file line by line", language="go", body="A"))
        index.add_snippet(Snippet(description="start an http server", language="go", body="B"))

        hit = index.nearest_snippets(embedder.embed("start an http server"), "go")[0]

        assert hit.entry.item.body == "B"
        assert hit.score == pytest.approx(1.0)

    def test_ties_break_by_insertion(self):
        index = CollectionIndex(ConstantEmbedder())
        first = index.add_collection(_collection("first"))
        second = index.add_collection(_collection("second"))

        hits = index.nearest_collections(np.ones(4), k=2)

        assert [hit.id for hit in hits] == [first, second]

    def test_collection_language_filter(self, embedder):
        index = CollectionIndex(embedder)
        go_id = index.add_collection(_collection("rename identifier", language="go"))
        any_id = index.add_collection(_collection("rename identifier"))
        rust_id = index.add_collection(_collection("rename identifier", language="rs"))
        vector = embedder.embed("rename identifier")

        assert [hit.id for hit in index.nearest_collections(vector, k=3, language="go")] == [go_id, any_id]
        assert [hit.id for hit in index.nearest_collections(vector, k=3, language="rust")] == [any_id, rust_id]
        assert len(index.nearest_collections(vector, k=3)) == 3
        assert index.collection(rust_id).language == "rust"

    def test_embeddings_are_immutable(self, embedder):
        index = CollectionIndex(embedder)
        entry_id = index.add_snippet(Snippet(description="x", language="go", body="x"))
        entry = index._snippets_by_id[entry_id]

        with pytest.raises(ValueError):
            entry.embedding[0] = 1.0

    def test_concurrent_adds_get_unique_ids(self, embedder):
        index = CollectionIndex(embedder)
        ids = []
        lock = threading.Lock()

        def worker(n):
            for m in range(25):
                snippet_id = index.add_snippet(Snippet(description=f"w{n} s{m}", language="go", body=""))
                with lock:
                    ids.append(snippet_id)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(ids) == list(range(100))
        assert len(index.nearest_snippets(embedder.embed("w0"), "go", k=200)) == 100

    def test_stats(self, embedder):
        index = CollectionIndex(embedder)
        index.add_snippet(Snippet(description="x", language="go", body=""))
        index.add_collection(_collection("y"))

        assert index.stats() == {"snippets": {"go": 1}, "collections": 1, "dimension": embedder.dimension}
