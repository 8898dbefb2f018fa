"""Error taxonomy shared by the cache, retrieval and store layers.

Request handlers map these onto HTTP responses in ``wellcoach.main``:
``InvalidQuery`` becomes a 400 carrying its message, every other
``WellnessError`` becomes a generic 500 whose details stay in the server log.
"""

from __future__ import annotations


class WellnessError(Exception):
    """Base class for failures raised by the wellcoach core."""


class InvalidQuery(WellnessError):
    """Bad or empty user input. Never retried."""


class EmbeddingUnavailable(WellnessError):
    """The embedding model could not produce a vector (network, timeout, bad payload)."""


class RetrievalUnavailable(WellnessError):
    """A recommendation request could not be served because its query could not be embedded."""


class GenerationUnavailable(WellnessError):
    """The language model failed before or while streaming an answer."""


class StoreError(WellnessError):
    """Base class for vector index store failures."""


class StoreUnavailable(StoreError):
    """The backing store cannot be reached or rejected the operation."""


class IndexNotFound(StoreError):
    """The named index does not exist (yet)."""

    def __init__(self, index_name: str):
        super().__init__(f"Index '{index_name}' does not exist")
        self.index_name = index_name


class QuerySyntaxError(StoreError):
    """A filter expression could not be parsed. Indicates a bug in filter construction."""
