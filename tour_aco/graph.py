"""
tour_aco/graph.py
─────────────────
Read-only edge weights in one of two representations.

The two representations
───────────────────────
  DenseGraph   n×n float64 matrix. 0.0 means "no edge".
               neighbors(u) = column indices with weight > 0, ascending.
               O(1) weight lookup, O(n²) memory.

  SparseGraph  vertex → ordered list of (neighbor, weight) pairs.
               neighbors(u) = neighbors in insertion order.
               O(1) weight lookup (dict), O(|E|) memory.

Both satisfy the GraphView protocol. Every algorithm in tour_aco is
written once against GraphView and never asks which one it has.

Why the neighbour order matters
───────────────────────────────
Roulette-wheel selection walks the feasible neighbours in neighbors()
order and picks the first one whose running sum reaches the draw. When a
draw lands exactly on a boundary, the earlier neighbour wins. So the order
must be fixed and reproducible: ascending index for dense, insertion order
for sparse. Neither ever changes after construction.

Directedness
────────────
weight(u, v) and weight(v, u) are independent. Nothing here assumes
symmetry.
"""

from __future__ import annotations

import math
from typing import (
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
    runtime_checkable,
)

import numpy as np
from numpy.typing import NDArray

from tour_aco.config import GraphFormatError

Adjacency = Mapping[int, Sequence[Tuple[int, float]]]
GraphInput = Union[NDArray[np.float64], Sequence[Sequence[float]], Adjacency]


@runtime_checkable
class GraphView(Protocol):
    """The two queries every algorithm needs, plus a dense export."""

    @property
    def n_vertices(self) -> int: ...

    @property
    def edge_count(self) -> int: ...

    def weight(self, u: int, v: int) -> float: ...

    def neighbors(self, u: int) -> Tuple[int, ...]: ...

    def edges(self) -> Iterator[Tuple[int, int, float]]: ...

    def to_dense(self) -> NDArray[np.float64]: ...


class DenseGraph:
    """
    Adjacency-matrix graph.

    The matrix is copied on construction and the copy is marked
    read-only, so neither the caller nor an algorithm can change weights
    mid-run.
    """

    def __init__(self, matrix: Union[NDArray[np.float64], Sequence[Sequence[float]]]) -> None:
        """
        Args:
            matrix: square array-like of non-negative finite weights.

        Raises:
            GraphFormatError: not 2-D, not square, empty, negative or
                              non-finite weight.
        """
        if matrix is None:
            raise GraphFormatError("Graph input is None.")
        try:
            weights = np.array(matrix, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise GraphFormatError(f"Weight matrix is not numeric: {exc}") from exc

        if weights.ndim != 2 or weights.shape[0] != weights.shape[1]:
            raise GraphFormatError(
                f"Weight matrix must be square, got shape {weights.shape}."
            )
        if weights.shape[0] == 0:
            raise GraphFormatError("Weight matrix has no vertices.")
        if not np.all(np.isfinite(weights)):
            raise GraphFormatError("Weight matrix contains NaN or infinite values.")
        if np.any(weights < 0.0):
            raise GraphFormatError("Weight matrix contains negative weights.")

        weights.flags.writeable = False
        self._matrix: NDArray[np.float64] = weights
        self._n = weights.shape[0]
        # np.flatnonzero returns ascending indices: the fixed iteration order.
        self._neighbors: List[Tuple[int, ...]] = [
            tuple(int(v) for v in np.flatnonzero(weights[u] > 0.0))
            for u in range(self._n)
        ]

    @property
    def n_vertices(self) -> int:
        return self._n

    @property
    def edge_count(self) -> int:
        return int(np.count_nonzero(self._matrix > 0.0))

    @property
    def matrix(self) -> NDArray[np.float64]:
        """The read-only weight matrix (a view, not a copy)."""
        return self._matrix

    def weight(self, u: int, v: int) -> float:
        return float(self._matrix[u, v])

    def neighbors(self, u: int) -> Tuple[int, ...]:
        return self._neighbors[u]

    def edges(self) -> Iterator[Tuple[int, int, float]]:
        for u in range(self._n):
            for v in self._neighbors[u]:
                yield u, v, float(self._matrix[u, v])

    def to_dense(self) -> NDArray[np.float64]:
        return self._matrix.copy()

    def __repr__(self) -> str:
        return f"DenseGraph(n_vertices={self._n}, edges={self.edge_count})"


class SparseGraph:
    """
    Adjacency-list graph.

    Stored twice: an ordered tuple of neighbours per vertex (iteration
    order) and a dict per vertex (O(1) weight lookup). Vertices absent from
    the input mapping exist but have no out-edges.
    """

    def __init__(self, adjacency: Adjacency, n_vertices: Optional[int] = None) -> None:
        """
        Args:
            adjacency:  vertex → [(neighbor, weight), ...]. Weights > 0,
                        neighbours unique per source vertex.
            n_vertices: total vertex count. Defaults to len(adjacency).

        Raises:
            GraphFormatError: on any violation listed above, or a vertex id
                              outside [0, n_vertices).
        """
        if adjacency is None:
            raise GraphFormatError("Graph input is None.")
        n = len(adjacency) if n_vertices is None else n_vertices
        if n <= 0:
            raise GraphFormatError(f"Graph must have at least one vertex, got {n}.")

        self._n = n
        self._neighbors: List[Tuple[int, ...]] = [()] * n
        self._weights: List[Dict[int, float]] = [{} for _ in range(n)]

        for u, pairs in adjacency.items():
            if not 0 <= u < n:
                raise GraphFormatError(f"Vertex {u} is outside [0, {n}).")
            row: Dict[int, float] = {}
            for v, w in pairs:
                if not 0 <= v < n:
                    raise GraphFormatError(
                        f"Edge ({u}, {v}) points outside [0, {n})."
                    )
                if v in row:
                    raise GraphFormatError(f"Duplicate edge ({u}, {v}).")
                w = float(w)
                if not math.isfinite(w) or w <= 0.0:
                    raise GraphFormatError(
                        f"Edge ({u}, {v}) has weight {w}; sparse weights must be > 0."
                    )
                row[v] = w
            self._weights[u] = row
            self._neighbors[u] = tuple(row)

    @property
    def n_vertices(self) -> int:
        return self._n

    @property
    def edge_count(self) -> int:
        return sum(len(row) for row in self._weights)

    def weight(self, u: int, v: int) -> float:
        return self._weights[u].get(v, 0.0)

    def neighbors(self, u: int) -> Tuple[int, ...]:
        return self._neighbors[u]

    def edges(self) -> Iterator[Tuple[int, int, float]]:
        for u in range(self._n):
            for v in self._neighbors[u]:
                yield u, v, self._weights[u][v]

    def to_dense(self) -> NDArray[np.float64]:
        dense = np.zeros((self._n, self._n), dtype=np.float64)
        for u, v, w in self.edges():
            dense[u, v] = w
        return dense

    def __repr__(self) -> str:
        return f"SparseGraph(n_vertices={self._n}, edges={self.edge_count})"


def build_graph(data: GraphInput, n_vertices: Optional[int] = None) -> GraphView:
    """
    Pick the representation from the input's shape.

    Mapping            → SparseGraph
    anything else      → DenseGraph (square matrix expected)
    an existing graph  → returned as-is

    Raises:
        GraphFormatError: None input, malformed input, or a vertex count
                          that disagrees with n_vertices.
    """
    if data is None:
        raise GraphFormatError("Graph input is None.")
    if isinstance(data, (DenseGraph, SparseGraph)):
        graph: GraphView = data
    elif isinstance(data, Mapping):
        graph = SparseGraph(data, n_vertices=n_vertices)
    else:
        graph = DenseGraph(data)

    if n_vertices is not None and graph.n_vertices != n_vertices:
        raise GraphFormatError(
            f"Graph has {graph.n_vertices} vertices, expected {n_vertices}."
        )
    return graph
