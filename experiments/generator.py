"""
experiments/generator.py
────────────────────────
Random directed graphs for experiments and benchmarks.

For every ordered pair (i, j) with i ≠ j, independently:
    with probability p  → edge of weight round(1 + U·9, 2), i.e. in [1, 10]
    otherwise           → no edge (0.0)

Both representations are produced from the same draw: the matrix first,
then the adjacency list built from it row by row in ascending column
order. The two GraphViews therefore expose identical neighbour orders.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from tour_aco import DenseGraph, SparseGraph

MIN_WEIGHT: float = 1.0
MAX_WEIGHT: float = 10.0


class GeneratedGraph:
    """One generated graph in both representations."""

    def __init__(self, matrix: NDArray[np.float64]) -> None:
        self.matrix = matrix
        self.adjacency: Dict[int, List[Tuple[int, float]]] = {
            i: [(int(j), float(matrix[i, j])) for j in np.flatnonzero(matrix[i])]
            for i in range(matrix.shape[0])
        }

    @property
    def n_vertices(self) -> int:
        return self.matrix.shape[0]

    @property
    def edge_count(self) -> int:
        return int(np.count_nonzero(self.matrix))

    @property
    def density(self) -> float:
        """Edges present / ordered pairs possible."""
        n = self.n_vertices
        return self.edge_count / (n * (n - 1)) if n > 1 else 0.0

    def dense(self) -> DenseGraph:
        return DenseGraph(self.matrix)

    def sparse(self) -> SparseGraph:
        return SparseGraph(self.adjacency, n_vertices=self.n_vertices)


class GraphGenerator:
    """
    Usage:
        graph = GraphGenerator(20, 0.3, seed=1).generate()
        graph.dense(), graph.sparse()
    """

    def __init__(self, n_vertices: int, edge_probability: float, seed: Optional[int] = None) -> None:
        if n_vertices < 1:
            raise ValueError(f"n_vertices must be ≥ 1, got {n_vertices}.")
        if not 0.0 <= edge_probability <= 1.0:
            raise ValueError(
                f"edge_probability must be in [0, 1], got {edge_probability}."
            )
        self.n_vertices = n_vertices
        self.edge_probability = edge_probability
        self._rng = np.random.default_rng(seed)

    def generate(self) -> GeneratedGraph:
        n = self.n_vertices
        present = self._rng.random((n, n)) <= self.edge_probability
        np.fill_diagonal(present, False)
        if self.edge_probability == 0.0:
            present[:] = False
        weights = np.round(
            MIN_WEIGHT + self._rng.random((n, n)) * (MAX_WEIGHT - MIN_WEIGHT), 2
        )
        matrix = np.where(present, weights, 0.0).astype(np.float64)
        return GeneratedGraph(matrix)
