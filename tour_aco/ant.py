"""
tour_aco/ant.py
───────────────
One ant: builds one candidate tour from a given start vertex.

What does an ant do?
─────────────────────
Starting from the vertex it was given, the ant repeatedly moves to an
unvisited neighbour, chosen at random but biased toward edges that are
short (heuristic) and well-trodden (pheromone). It stops when it has
visited every vertex or when no unvisited neighbour is reachable.

The selection formula
──────────────────────
For each feasible neighbour v of the current vertex c:

    w(v) = τ[c][v]^α × (1 / d[c][v])^β

    P(move to v) = w(v) / Σ_k w(k)

  Feasible = a neighbour in GraphView order, not yet visited, with d > 0.
  α, β are real exponents (math.pow, not integer powers).

Roulette-wheel, exactly
────────────────────────
    cumulative = [w0, w0+w1, w0+w1+w2, ...]
    S          = cumulative[-1]
    r          = U[0, 1) × S
    chosen     = first index i with cumulative[i] ≥ r

np.searchsorted(cumulative, r, side="left") returns exactly that index.
S is read off the cumulative sum rather than summed separately, so the
last entry always equals S and r < S always finds a hit.

Tie-break: two neighbours with identical weights, draw landing exactly on
the boundary between them → cumulative[first] == r → the earlier one in
GraphView order wins. Deterministic given the graph.

Dead ends
─────────
Empty feasible set, or S ≤ 0 (all weights vanished, e.g. Q0 = 0): the ant
stops and returns what it has. Not an error.

Start vertex
────────────
Chosen by the orchestrator, not here. Both the sequential and the
accelerated engines draw starts themselves and pass them in.
"""

from __future__ import annotations

import math
from typing import List, Optional, Protocol, Set

import numpy as np

from tour_aco.config import ALPHA, BETA
from tour_aco.graph import GraphView
from tour_aco.pheromone import PheromoneView
from tour_aco.tour import Tour


class RandomSource(Protocol):
    """Anything with random() → float in [0, 1). numpy.random.Generator fits."""

    def random(self) -> float: ...


class TourConstructor:
    """
    Builds tours against a graph and a read-only pheromone view.

    One constructor is reused for every ant of a run; it holds no
    per-tour state between construct() calls. The random source is NOT
    safe for concurrent use: construct one tour at a time per source.

    Attributes:
        alpha: pheromone exponent.
        beta:  heuristic exponent.
    """

    def __init__(
        self,
        graph: GraphView,
        pheromones: PheromoneView,
        rng: RandomSource,
        alpha: float = ALPHA,
        beta: float = BETA,
    ) -> None:
        self._graph = graph
        self._pheromones = pheromones
        self._rng = rng
        self.alpha = alpha
        self.beta = beta

    # ── Node selection ─────────────────────────────────────────────────────────

    def _attractiveness(self, current: int, v: int, distance: float) -> float:
        tau = self._pheromones.get(current, v)
        return math.pow(tau, self.alpha) * math.pow(1.0 / distance, self.beta)

    def select_next(self, current: int, visited: Set[int]) -> Optional[int]:
        """
        Roulette-wheel choice of the next vertex, or None at a dead end.

        Args:
            current: vertex the ant stands on.
            visited: vertices already in the tour (read only).

        Returns:
            The chosen vertex, or None if the feasible set is empty or
            carries no weight.
        """
        candidates: List[int] = []
        weights: List[float] = []
        for v in self._graph.neighbors(current):
            if v in visited:
                continue
            distance = self._graph.weight(current, v)
            if distance <= 0.0:
                continue
            candidates.append(v)
            weights.append(self._attractiveness(current, v, distance))

        if not candidates:
            return None

        cumulative = np.cumsum(np.asarray(weights, dtype=np.float64))
        total = float(cumulative[-1])
        if not total > 0.0:
            return None

        r = self._rng.random() * total
        chosen = int(np.searchsorted(cumulative, r, side="left"))
        # Clamp: a draw rounding up to exactly `total` must still land.
        chosen = min(chosen, len(candidates) - 1)
        return candidates[chosen]

    # ── Tour construction ──────────────────────────────────────────────────────

    def construct(self, start: int) -> Tour:
        """
        Walk from start until every vertex is visited or a dead end is hit.

        Raises:
            ValueError: start outside [0, n).
        """
        n = self._graph.n_vertices
        if not 0 <= start < n:
            raise ValueError(f"Start vertex {start} is outside [0, {n}).")

        tour: Tour = [start]
        visited: Set[int] = {start}
        current = start

        while len(tour) < n:
            nxt = self.select_next(current, visited)
            if nxt is None:
                break
            tour.append(nxt)
            visited.add(nxt)
            current = nxt

        return tour

    def __repr__(self) -> str:
        return (
            f"TourConstructor(n_vertices={self._graph.n_vertices}, "
            f"alpha={self.alpha}, beta={self.beta})"
        )
