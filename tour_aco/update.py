"""
tour_aco/update.py
──────────────────
The reinforcement phase: evaporate everything, then deposit for every tour.

Ordering
────────
    1. field.evaporate_all(ρ)          — once, over the whole field
    2. for each tour: deposit K / L    — on (u, v) and (v, u) per leg

Evaporation first means this iteration's deposits arrive at full
strength. Reversing the order would scale the fresh deposits by (1 − ρ)
as well, giving a different total:

    evaporate → deposit : τ' = τ(1 − ρ) + Δ
    deposit → evaporate : τ' = (τ + Δ)(1 − ρ)

Deposits across tours commute, so their order within the batch is free.

Symmetric trails
────────────────
Each leg reinforces both directions regardless of the graph's
directedness, so a good edge helps whichever way a later ant travels it.
In a directed graph the reverse direction may not be an edge; the field
ignores that deposit and the report counts it in deposits_ignored.

Tours that cannot be scored
────────────────────────────
A tour of fewer than 2 vertices has no length (TourTooShortError) and a
non-positive length would divide by zero. Neither is deposited. Each one is
recorded in UpdateReport.rejected and logged at WARNING; nothing is
dropped silently. A MissingEdgeError propagates: that tour did not come
from this graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from tour_aco.graph import GraphView
from tour_aco.pheromone import PheromoneField
from tour_aco.tour import TourTooShortError, tour_length

logger = logging.getLogger(__name__)


@dataclass
class UpdateReport:
    """What one update() call did. Used by the colony's logging and by tests."""
    evaporated_edges: int = 0
    deposited_tours: int = 0
    deposits_applied: int = 0
    deposits_ignored: int = 0
    rejected: List[Tuple[int, str]] = field(default_factory=list)


class PheromoneUpdateEngine:
    """
    Sole writer of a PheromoneField during a run.

    Usage:
        engine = PheromoneUpdateEngine(graph, field, closed=False)
        report = engine.update(tours, rho=0.1, deposit_constant=1000.0)
    """

    def __init__(self, graph: GraphView, field: PheromoneField, closed: bool = False) -> None:
        self._graph = graph
        self._field = field
        self._closed = closed

    @property
    def field(self) -> PheromoneField:
        return self._field

    def update(
        self,
        tours: Sequence[Sequence[int]],
        rho: float,
        deposit_constant: float,
    ) -> UpdateReport:
        """
        Evaporate once, then reinforce every scoreable tour in the batch.

        Args:
            tours:            this iteration's tours, one per ant.
            rho:              evaporation rate in [0, 1].
            deposit_constant: K; each leg of a tour of length L gets K / L.

        Returns:
            UpdateReport for this iteration.

        Raises:
            MissingEdgeError: a tour uses a pair that is not a graph edge.
            ValueError:       rho outside [0, 1].
        """
        report = UpdateReport()

        # Step 1: global decay, strictly before any deposit
        self._field.evaporate_all(rho)
        report.evaporated_edges = self._graph.edge_count

        # Step 2: reinforcement
        for index, tour in enumerate(tours):
            try:
                length = tour_length(self._graph, tour, closed=self._closed)
            except TourTooShortError as exc:
                report.rejected.append((index, str(exc)))
                logger.warning("tour %d not deposited: %s", index, exc)
                continue
            if length <= 0.0:
                reason = f"non-positive length {length}"
                report.rejected.append((index, reason))
                logger.warning("tour %d not deposited: %s", index, reason)
                continue

            amount = deposit_constant / length
            for u, v in zip(tour, tour[1:]):
                for a, b in ((u, v), (v, u)):
                    if self._field.deposit(a, b, amount):
                        report.deposits_applied += 1
                    else:
                        report.deposits_ignored += 1
            report.deposited_tours += 1

        return report
