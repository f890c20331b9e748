"""
In-memory navigation and search over a decoded node collection.

MemoryTree is built once from an ordered node list and never changes
afterwards. Its tables hold positions into that list, so every query answers
in original collection order. Queries never mutate the tables, so one tree
can serve concurrent readers without locking.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass

from .types import MemoryNode


@dataclass
class SearchResult:
    """A node paired with its similarity to the query."""

    node: MemoryNode
    score: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Returns 0.0 when the lengths differ, either vector is empty, or either
    norm is zero or not finite, so the score is never NaN.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    dot_product = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot_product += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0
    if not (math.isfinite(norm_a) and math.isfinite(norm_b)):
        return 0.0

    return dot_product / (math.sqrt(norm_a) * math.sqrt(norm_b))


class MemoryTree:
    """
    Read-only index over memory nodes.

    Tables:
    - id -> position (last node wins if ids repeat)
    - tag -> positions, one entry per tag occurrence
    - parent id -> child positions; dangling parent ids are kept as-is

    The tree keeps a reference to ``nodes`` rather than a copy; callers must
    not reorder or resize that list while the tree is in use.
    """

    def __init__(self, nodes: Sequence[MemoryNode]):
        self._nodes = nodes
        self._by_id: dict[str, int] = {}
        self._by_tag: dict[str, list[int]] = {}
        self._children: dict[str, list[int]] = {}

        for position, node in enumerate(nodes):
            self._by_id[node.id] = position

            for tag in node.tags:
                self._by_tag.setdefault(tag, []).append(position)

            if node.parent_id:
                self._children.setdefault(node.parent_id, []).append(position)

    def _resolve(self, positions: list[int]) -> list[MemoryNode]:
        return [self._nodes[i] for i in positions]

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, node_id: str) -> MemoryNode | None:
        """Return the node with ``node_id``, or None."""
        position = self._by_id.get(node_id)
        if position is None:
            return None
        return self._nodes[position]

    def get_all(self) -> Sequence[MemoryNode]:
        """Return every node in original order (not a copy)."""
        return self._nodes

    def count(self) -> int:
        return len(self._nodes)

    def get_by_tag(self, tag: str) -> list[MemoryNode]:
        """Return nodes carrying ``tag`` in original order."""
        return self._resolve(self._by_tag.get(tag, []))

    def get_tags(self) -> list[str]:
        """Return all distinct tags, sorted."""
        return sorted(self._by_tag)

    def get_children(self, parent_id: str) -> list[MemoryNode]:
        """Return nodes whose parent_id equals ``parent_id``."""
        return self._resolve(self._children.get(parent_id, []))

    def get_roots(self) -> list[MemoryNode]:
        """Return nodes without a parent."""
        return [node for node in self._nodes if not node.parent_id]

    def get_parent(self, node_id: str) -> MemoryNode | None:
        """Return the parent of ``node_id`` if both exist in the collection."""
        node = self.get(node_id)
        if node is None or not node.parent_id:
            return None
        return self.get(node.parent_id)

    def get_descendants(self, node_id: str) -> list[MemoryNode]:
        """
        Return all nodes below ``node_id``, depth-first, in child order.

        Each node is visited at most once, so parent cycles terminate.
        """
        descendants: list[MemoryNode] = []
        seen: set[int] = set()
        if node_id in self._by_id:
            seen.add(self._by_id[node_id])

        stack = list(reversed(self._children.get(node_id, [])))
        while stack:
            position = stack.pop()
            if position in seen:
                continue
            seen.add(position)
            node = self._nodes[position]
            descendants.append(node)
            stack.extend(reversed(self._children.get(node.id, [])))

        return descendants

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query_embedding: Sequence[float], limit: int = 0) -> list[SearchResult]:
        """
        Rank nodes by cosine similarity to ``query_embedding``.

        Nodes without an embedding are skipped. Ties keep collection order.

        Args:
            query_embedding: Query vector
            limit: Maximum results; <= 0 means unbounded

        Returns:
            Results sorted by score, highest first
        """
        if not query_embedding:
            return []

        results = [
            SearchResult(node=node, score=cosine_similarity(query_embedding, node.embedding))
            for node in self._nodes
            if node.embedding
        ]

        # Stable sort keeps collection order among equal scores
        results.sort(key=lambda r: r.score, reverse=True)

        if limit > 0:
            return results[:limit]
        return results

    def search_by_content(self, query: str, limit: int = 0) -> list[MemoryNode]:
        """
        Case-insensitive substring search over node content.

        Args:
            query: Text to look for
            limit: Stop after this many matches; <= 0 means unbounded
        """
        query_lower = query.lower()
        matches: list[MemoryNode] = []

        for node in self._nodes:
            if query_lower in node.content.lower():
                matches.append(node)
                if limit > 0 and len(matches) >= limit:
                    break

        return matches

    def filter(self, predicate: Callable[[MemoryNode], bool]) -> list[MemoryNode]:
        """Return nodes for which ``predicate`` holds, in original order."""
        return [node for node in self._nodes if predicate(node)]

    # ------------------------------------------------------------------
    # Container protocol
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._by_id

    def __iter__(self) -> Iterator[MemoryNode]:
        return iter(self._nodes)
