"""
tour_aco/tour.py
────────────────
Tours: what they are, how long they are, and what can go wrong measuring one.

A tour is a list of vertex ids with no repeats. It may stop short of
visiting every vertex when construction reaches a dead end; that is an
inferior candidate, not an error.

Length
──────
  open   : Σ weight(tour[i], tour[i+1])
  closed : open + weight(tour[-1], tour[0]), but only if that closing edge
           exists. A missing closing edge leaves the open length: the
           colony never promises a cycle the topology cannot provide.

Measuring fails loudly in two cases:
  • fewer than 2 vertices       → TourTooShortError
  • consecutive pair not an edge → MissingEdgeError
"""

from __future__ import annotations

from typing import List, Sequence

from tour_aco.graph import GraphView

Tour = List[int]


class TourError(ValueError):
    """Base class for tour domain errors."""


class TourTooShortError(TourError):
    """
    Raised when the length of a tour with fewer than 2 vertices is requested.

    A single-vertex tour is what an ant produces when it starts on a
    vertex with no out-edges. It has no edges to measure, and reporting
    0.0 would make it look like the best tour in the colony.

    Attributes:
        tour: the offending tour.
    """

    def __init__(self, tour: Sequence[int]) -> None:
        self.tour = list(tour)
        super().__init__(
            f"Tour {self.tour} has {len(self.tour)} vertex(es); "
            f"at least 2 are needed to measure a length."
        )


class MissingEdgeError(TourError):
    """
    Raised when two consecutive tour vertices are not joined by an edge.

    Constructed tours only ever follow edges, so this signals a tour that
    came from somewhere else or a graph that changed underneath it.

    Attributes:
        u, v: the consecutive pair with no edge.
    """

    def __init__(self, u: int, v: int) -> None:
        self.u = u
        self.v = v
        super().__init__(f"No edge from vertex {u} to vertex {v}.")


def tour_length(graph: GraphView, tour: Sequence[int], closed: bool = False) -> float:
    """
    Sum of consecutive edge weights, plus the closing edge when requested.

    Raises:
        TourTooShortError: len(tour) < 2.
        MissingEdgeError:  a consecutive pair is not a graph edge.
    """
    if len(tour) < 2:
        raise TourTooShortError(tour)

    length = 0.0
    for u, v in zip(tour, tour[1:]):
        w = graph.weight(u, v)
        if w <= 0.0:
            raise MissingEdgeError(u, v)
        length += w

    if closed:
        back = graph.weight(tour[-1], tour[0])
        if back > 0.0:
            length += back

    return length


def is_simple(tour: Sequence[int]) -> bool:
    """True if no vertex appears twice."""
    return len(set(tour)) == len(tour)
