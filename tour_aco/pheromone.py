"""
tour_aco/pheromone.py
─────────────────────
The pheromone field: the colony's shared, mutable memory.

What is pheromone?
──────────────────
Every edge (u, v) of the graph carries an intensity τ[u][v]. Ants prefer
edges with more pheromone. After each iteration two forces act on it:

  1. Evaporation — every intensity decays: τ ← τ × (1 − ρ).
                   Old reinforcement fades so the colony can move away
                   from early, mediocre tours.
  2. Deposit     — every edge used by a scored tour gains K / length.
                   Shorter tours reinforce their edges more.

Support
───────
The field's support is exactly the graph's edge set. Every edge starts at
Q0. A deposit onto a pair that is not a graph edge is a no-op that
returns False; the field never grows new entries at runtime. This matters
for directed graphs: the update engine deposits on (u, v) AND (v, u), and
the reverse direction may not exist.

Invariant: every stored intensity is ≥ 0.
  • Evaporation multiplies by (1 − ρ) with ρ ∈ [0, 1] → never negative.
  • Deposit rejects negative amounts with ValueError.
There is no ceiling: intensity may grow without bound over a long run.

Who may write
─────────────
Only PheromoneUpdateEngine holds a PheromoneField. Tour construction gets
a PheromoneView from read_only(), which exposes get() and nothing else.

Two implementations, one per graph representation:
  DensePheromoneField   numpy n×n matrix, zero off the support.
  SparsePheromoneField  dict-of-dicts in the graph's adjacency order.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List

import numpy as np
from numpy.typing import NDArray

from tour_aco.graph import DenseGraph, GraphView

logger = logging.getLogger(__name__)


def _check_rate(rho: float) -> None:
    if not 0.0 <= rho <= 1.0:
        raise ValueError(f"Evaporation rate must be in [0, 1], got {rho}.")


def _check_amount(amount: float) -> None:
    if amount < 0.0:
        raise ValueError(f"Deposit amount must be ≥ 0, got {amount}.")


class PheromoneView:
    """
    Read-only window onto a PheromoneField.

    Handed to TourConstructor for the construction phase. Reads go
    straight through to the live field, so the view always reflects the
    latest update, but it offers no way to change it.
    """

    __slots__ = ("_field",)

    def __init__(self, field: "PheromoneField") -> None:
        self._field = field

    def get(self, u: int, v: int) -> float:
        return self._field.get(u, v)

    @property
    def n_vertices(self) -> int:
        return self._field.n_vertices

    def __repr__(self) -> str:
        return f"PheromoneView({self._field!r})"


class PheromoneField(ABC):
    """
    Mutable intensity per directed edge.

    Used by:
        PheromoneUpdateEngine.update() → evaporate_all(), deposit().
        TourConstructor (via read_only()) → get().
        Tests → snapshot(), total().

    Thread safety:
        Not thread-safe. One writer per iteration; evaporation strictly
        precedes every deposit of the same iteration.
    """

    def __init__(self, graph: GraphView, initial: float) -> None:
        if initial < 0.0:
            raise ValueError(f"Initial pheromone must be ≥ 0, got {initial}.")
        self._graph = graph
        self._initial = float(initial)

    @property
    def n_vertices(self) -> int:
        return self._graph.n_vertices

    @property
    def initial(self) -> float:
        return self._initial

    @abstractmethod
    def get(self, u: int, v: int) -> float:
        """Intensity on (u, v); 0.0 if (u, v) is not a graph edge."""

    @abstractmethod
    def evaporate_all(self, rho: float) -> None:
        """Multiply every stored intensity by (1 − ρ), each edge exactly once."""

    @abstractmethod
    def deposit(self, u: int, v: int, amount: float) -> bool:
        """
        Add amount to (u, v).

        Returns:
            True if (u, v) is a graph edge and was reinforced, False if it
            is not an edge (no-op).

        Raises:
            ValueError: amount < 0.
        """

    @abstractmethod
    def total(self) -> float:
        """Sum of all stored intensities."""

    @abstractmethod
    def snapshot(self) -> NDArray[np.float64]:
        """Deep copy as a dense n×n matrix (0.0 off the support)."""

    def read_only(self) -> PheromoneView:
        return PheromoneView(self)

    def _ignored(self, u: int, v: int) -> bool:
        logger.debug("deposit on non-edge (%d, %d) ignored", u, v)
        return False


class DensePheromoneField(PheromoneField):
    """
    τ stored as an n×n float64 matrix mirroring a DenseGraph.

    NumPy design choices
    ────────────────────
      • float64 throughout; float32 drifts over many multiply/add cycles.
      • Off-support cells are 0.0 and stay 0.0: evaporation multiplies
        them, deposit refuses them.
      • evaporate_all() is a single in-place `*=` over the whole buffer.
    """

    def __init__(self, graph: GraphView, initial: float) -> None:
        super().__init__(graph, initial)
        weights = graph.to_dense()
        self._support: NDArray[np.bool_] = weights > 0.0
        self._matrix: NDArray[np.float64] = np.where(
            self._support, self._initial, 0.0
        ).astype(np.float64)

    def get(self, u: int, v: int) -> float:
        return float(self._matrix[u, v])

    def evaporate_all(self, rho: float) -> None:
        _check_rate(rho)
        self._matrix *= (1.0 - rho)

    def deposit(self, u: int, v: int, amount: float) -> bool:
        _check_amount(amount)
        if not self._support[u, v]:
            return self._ignored(u, v)
        self._matrix[u, v] += amount
        return True

    def total(self) -> float:
        return float(self._matrix.sum())

    def snapshot(self) -> NDArray[np.float64]:
        return self._matrix.copy()

    def __repr__(self) -> str:
        return (
            f"DensePheromoneField(n_vertices={self.n_vertices}, "
            f"min={self._matrix.min():.4f}, max={self._matrix.max():.4f}, "
            f"total={self.total():.4f})"
        )


class SparsePheromoneField(PheromoneField):
    """τ stored per source vertex in the graph's adjacency order."""

    def __init__(self, graph: GraphView, initial: float) -> None:
        super().__init__(graph, initial)
        self._trails: List[Dict[int, float]] = [
            {v: self._initial for v in graph.neighbors(u)}
            for u in range(graph.n_vertices)
        ]

    def get(self, u: int, v: int) -> float:
        return self._trails[u].get(v, 0.0)

    def evaporate_all(self, rho: float) -> None:
        _check_rate(rho)
        keep = 1.0 - rho
        for row in self._trails:
            for v in row:
                row[v] *= keep

    def deposit(self, u: int, v: int, amount: float) -> bool:
        _check_amount(amount)
        row = self._trails[u]
        if v not in row:
            return self._ignored(u, v)
        row[v] += amount
        return True

    def total(self) -> float:
        return float(sum(sum(row.values()) for row in self._trails))

    def snapshot(self) -> NDArray[np.float64]:
        n = self.n_vertices
        dense = np.zeros((n, n), dtype=np.float64)
        for u, row in enumerate(self._trails):
            for v, tau in row.items():
                dense[u, v] = tau
        return dense

    def __repr__(self) -> str:
        edges = sum(len(row) for row in self._trails)
        return (
            f"SparsePheromoneField(n_vertices={self.n_vertices}, "
            f"edges={edges}, total={self.total():.4f})"
        )


def create_pheromone_field(graph: GraphView, initial: float) -> PheromoneField:
    """A field in the same representation as the graph."""
    if isinstance(graph, DenseGraph):
        return DensePheromoneField(graph, initial)
    return SparsePheromoneField(graph, initial)
