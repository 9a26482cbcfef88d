"""
tour_aco — Ant Colony Optimisation for short tours over weighted graphs.

Public API:
    ColonyOptimizer        — sequential engine, returns OptimizationResult
    create_optimizer       — sequential or accelerated engine from config
    ColonyConfig           — run hyperparameters (pydantic)
    AcceleratorConfig      — device + kernel module for the accelerated engine
    OptimizationResult     — best tour, best length, history
    DenseGraph, SparseGraph, build_graph
    tour_length
    ConfigurationError, GraphFormatError
    TourError, TourTooShortError, MissingEdgeError

Usage:
    from tour_aco import ColonyConfig, ColonyOptimizer, build_graph

    graph  = build_graph(matrix)            # or an adjacency mapping
    result = ColonyOptimizer(graph, ColonyConfig(seed=1)).run()
    result.best_tour, result.best_length

The accelerated engine lives in tour_aco.accelerated (imports torch).
"""

from tour_aco.colony import ColonyOptimizer, RunState, TourOptimizer, create_optimizer
from tour_aco.config import (
    AcceleratorConfig,
    ColonyConfig,
    ConfigurationError,
    Engine,
    GraphFormatError,
    OptimizationResult,
)
from tour_aco.graph import DenseGraph, GraphView, SparseGraph, build_graph
from tour_aco.tour import MissingEdgeError, TourError, TourTooShortError, tour_length

__all__ = [
    "AcceleratorConfig",
    "ColonyConfig",
    "ColonyOptimizer",
    "ConfigurationError",
    "DenseGraph",
    "Engine",
    "GraphFormatError",
    "GraphView",
    "MissingEdgeError",
    "OptimizationResult",
    "RunState",
    "SparseGraph",
    "TourError",
    "TourOptimizer",
    "TourTooShortError",
    "build_graph",
    "create_optimizer",
    "tour_length",
]
