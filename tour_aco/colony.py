"""
tour_aco/colony.py
──────────────────
The ColonyOptimizer: runs all ants across all iterations on the host.

How the colony works
─────────────────────
  1. Build a fresh PheromoneField (every edge at Q0) and an empty best.
  2. For each of I iterations:
       a. Construction phase — A ants. Each gets a uniform random start
          vertex from the run's generator, builds a tour through
          TourConstructor (read-only pheromone), and is measured.
          The tour replaces the global best if it ranks ahead of it
          (see "Ranking" below).
       b. Reinforcement phase — PheromoneUpdateEngine.update() with the
          whole batch: evaporate, then deposit.
  3. Return the best tour across ALL iterations.

State machine
─────────────
    IDLE ──run()──▶ RUNNING ──I iterations──▶ CONVERGED

run() may be called again from CONVERGED; it starts over from a fresh
field and a fresh generator seeded from config.seed.

Ranking
───────
A dead-end tour is a valid but inferior candidate:

    complete beats incomplete, whatever the lengths
    same completeness → strictly shorter wins, ties keep the earlier tour

So the best incomplete tour is only reported when no complete tour was
ever built. best_length can rise exactly once, when the first complete
tour displaces an incomplete best; history_complete marks that point.

Ownership
─────────
The optimizer owns the field for the duration of one run(). The
constructor only ever sees field.read_only(); the update engine is the
only writer. Nothing survives between runs except the result.

Tours too short to score
─────────────────────────
An ant starting on a vertex with no out-edges produces a one-vertex tour.
Its length is a TourTooShortError. The colony counts it in
rejected_tours, logs it, and never lets it become the best; the update
engine reports it again and does not deposit it.
"""

from __future__ import annotations

import logging
import math
import time
from enum import Enum
from typing import List, Optional, Protocol

import numpy as np

from tour_aco.ant import TourConstructor
from tour_aco.config import (
    AcceleratorConfig,
    ColonyConfig,
    Engine,
    OptimizationResult,
)
from tour_aco.graph import GraphInput, GraphView, build_graph
from tour_aco.pheromone import PheromoneField, create_pheromone_field
from tour_aco.tour import Tour, TourTooShortError, tour_length
from tour_aco.update import PheromoneUpdateEngine

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """Lifecycle of an optimizer."""
    IDLE = "idle"
    RUNNING = "running"
    CONVERGED = "converged"


class TourOptimizer(Protocol):
    """What both the sequential and the accelerated engines provide."""

    @property
    def state(self) -> RunState: ...

    @property
    def best_tour(self) -> Tour: ...

    @property
    def best_length(self) -> float: ...

    def run(self) -> OptimizationResult: ...


def ranks_ahead(length: float, complete: bool, best_length: float, best_complete: bool) -> bool:
    """True if a tour (length, complete) should replace the current best."""
    if complete != best_complete:
        return complete
    return length < best_length


class ColonyOptimizer:
    """
    Sequential ACO orchestrator.

    Usage:
        optimizer = ColonyOptimizer(graph, ColonyConfig(n_ants=10, seed=7))
        result    = optimizer.run()
        result.best_tour, result.best_length

    After run():
        optimizer.best_tour / best_length → same as the result.
        optimizer.pheromones              → final field (for inspection).
    """

    def __init__(self, graph: GraphInput, config: Optional[ColonyConfig] = None) -> None:
        """
        Args:
            graph: a GraphView, a square weight matrix or an adjacency mapping.

        Raises:
            GraphFormatError: None or malformed graph, or vertex-count mismatch.
        """
        config = config or ColonyConfig()

        self._graph: GraphView = build_graph(graph, config.n_vertices)
        self._config = config
        self._state = RunState.IDLE
        self._best_tour: Tour = []
        self._best_length: float = math.inf
        self._best_complete = False
        self._pheromones: Optional[PheromoneField] = None

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def config(self) -> ColonyConfig:
        return self._config

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def best_tour(self) -> Tour:
        return list(self._best_tour)

    @property
    def best_length(self) -> float:
        return self._best_length

    @property
    def pheromones(self) -> Optional[PheromoneField]:
        """The field from the last run(), or None before the first."""
        return self._pheromones

    # ── Main loop ─────────────────────────────────────────────────────────────

    def _score(self, tour: Tour) -> Optional[float]:
        """Length of tour, or None if it is too short to have one."""
        try:
            return tour_length(self._graph, tour, closed=self._config.closed_tour)
        except TourTooShortError:
            return None

    def run(self) -> OptimizationResult:
        """
        Execute I iterations and return the best tour found.

        Returns:
            OptimizationResult. best_length is +inf and best_tour empty if
            no ant ever produced a scoreable tour.

        Raises:
            MissingEdgeError: only for an inconsistent graph; propagated.
        """
        cfg = self._config
        n = self._graph.n_vertices
        start = time.perf_counter()

        self._state = RunState.RUNNING
        self._best_tour = []
        self._best_length = math.inf
        self._best_complete = False

        rng = np.random.default_rng(cfg.seed)
        field = create_pheromone_field(self._graph, cfg.initial_pheromone)
        self._pheromones = field
        constructor = TourConstructor(
            self._graph, field.read_only(), rng, alpha=cfg.alpha, beta=cfg.beta,
        )
        updater = PheromoneUpdateEngine(self._graph, field, closed=cfg.closed_tour)

        history: List[float] = []
        history_complete: List[bool] = []
        rejected = 0

        logger.info(
            "colony run: %d vertices, %d ants × %d iterations (%s)",
            n, cfg.n_ants, cfg.n_iterations, type(field).__name__,
        )

        try:
            for iteration in range(cfg.n_iterations):

                # ── Construction phase ──────────────────────────────────────
                tours: List[Tour] = []
                for _ant in range(cfg.n_ants):
                    tour = constructor.construct(int(rng.integers(n)))
                    tours.append(tour)

                    length = self._score(tour)
                    if length is None:
                        rejected += 1
                        logger.debug(
                            "iteration %d: tour %s too short to score", iteration, tour,
                        )
                        continue
                    complete = len(tour) == n
                    if ranks_ahead(length, complete, self._best_length, self._best_complete):
                        self._best_length = length
                        self._best_tour = tour
                        self._best_complete = complete

                # ── Reinforcement phase ─────────────────────────────────────
                report = updater.update(tours, cfg.rho, cfg.deposit_constant)

                history.append(self._best_length)
                history_complete.append(self._best_complete)
                logger.debug(
                    "iteration %d: best=%.4f deposited=%d ignored=%d",
                    iteration, self._best_length,
                    report.deposited_tours, report.deposits_ignored,
                )
        except Exception:
            self._state = RunState.IDLE
            logger.exception("colony run failed on a %d-vertex graph", n)
            raise

        self._state = RunState.CONVERGED
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        logger.info(
            "colony run finished: best=%.4f (%d/%d vertices) in %.2fms",
            self._best_length, len(self._best_tour), n, elapsed_ms,
        )

        return OptimizationResult(
            best_tour=list(self._best_tour),
            best_length=self._best_length,
            n_vertices=n,
            iterations=cfg.n_iterations,
            history=history,
            history_complete=history_complete,
            rejected_tours=rejected,
            elapsed_ms=elapsed_ms,
            engine=Engine.SEQUENTIAL,
        )

    def __repr__(self) -> str:
        return (
            f"ColonyOptimizer(n_vertices={self._graph.n_vertices}, "
            f"state={self._state.value}, best_length={self._best_length:.4f})"
        )


def create_optimizer(
    graph: GraphInput,
    config: Optional[ColonyConfig] = None,
    accelerator: Optional[AcceleratorConfig] = None,
) -> TourOptimizer:
    """
    The sequential engine, or the accelerated one when accelerator is given.

    No automatic fallback: an accelerated request that cannot be satisfied
    raises a ConfigurationError instead of quietly running on the host.
    """
    if accelerator is None:
        return ColonyOptimizer(graph, config)

    # torch is only imported when the accelerated engine is actually requested
    from tour_aco.accelerated import AcceleratedColonyOptimizer

    return AcceleratedColonyOptimizer(graph, config, accelerator)
