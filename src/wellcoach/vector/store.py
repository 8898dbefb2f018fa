"""Interface every vector index backend implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .schema import IndexSpec

MATCH_ALL = "*"


@dataclass(frozen=True)
class SearchHit:
    """One k-NN result. ``distance`` is cosine distance, lower is closer."""

    id: str
    distance: float
    fields: Dict[str, Any] = field(default_factory=dict)


class VectorIndexStore(ABC):
    """Named indices over JSON documents that carry one embedding field each.

    Documents live in a flat key space; an index covers every key that starts
    with its prefix.
    """

    @abstractmethod
    async def ensure_index(self, spec: IndexSpec) -> None:
        """Create the index if it is absent. Losing a creation race counts as success."""

    @abstractmethod
    async def upsert(self, key: str, document: Dict[str, Any]) -> None:
        """Replace the full document stored at ``key``."""

    @abstractmethod
    async def search(
        self,
        index_name: str,
        filter_expr: str,
        vector: Sequence[float],
        k: int,
        return_fields: Optional[Sequence[str]] = None,
    ) -> List[SearchHit]:
        """k-NN over the index's vector field, restricted by ``filter_expr``.

        Results are sorted by distance ascending. Raises ``IndexNotFound``,
        ``QuerySyntaxError`` or ``StoreUnavailable``.
        """

    @abstractmethod
    async def ping(self) -> bool:
        """True when the backing store answers."""

    async def close(self) -> None:
        return None


def project_fields(document: Dict[str, Any], return_fields: Optional[Sequence[str]]) -> Dict[str, Any]:
    if not return_fields:
        return dict(document)
    return {name: document[name] for name in return_fields if name in document}
