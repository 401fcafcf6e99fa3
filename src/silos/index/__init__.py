from .collection_index import CollectionIndex
from .vector_store import IndexEntry, Neighbor, VectorNamespace, normalize

__all__ = [
    "CollectionIndex",
    "IndexEntry",
    "Neighbor",
    "VectorNamespace",
    "normalize",
]
