"""
tour_aco/config.py
──────────────────
Run configuration, run results and the configuration error hierarchy.

Everything a caller hands to an optimizer, and everything an optimizer
hands back, is a pydantic model defined here. Field constraints do the
first line of validation: a ColonyConfig with n_ants=0 or rho=1.5 never
exists, so no optimizer ever has to re-check those values.

Reading guide
─────────────
  SECTION 1 — defaults (module-level so tests can assert against them)
  SECTION 2 — errors raised before a run starts
  SECTION 3 — ColonyConfig / AcceleratorConfig
  SECTION 4 — OptimizationResult
"""

from __future__ import annotations

import math
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 1: DEFAULTS
# ─────────────────────────────────────────────────────────────────────────────

N_ANTS: int = 20
"""Ants per iteration."""

N_ITERATIONS: int = 100
"""Iterations per run."""

ALPHA: float = 1.0
"""Pheromone exponent α. τ^α: how strongly past reinforcement drives choice."""

BETA: float = 2.0
"""Heuristic exponent β. (1/d)^β: how strongly short edges drive choice.

β=2 squares the inverse distance, so an edge half as long is 4× as
attractive before pheromone is taken into account.
"""

EVAPORATION_RATE: float = 0.1
"""ρ: fraction of every pheromone value removed once per iteration.

τ_new = τ_old × (1 − ρ)
"""

INITIAL_PHEROMONE: float = 0.1
"""Q0: intensity every graph edge starts with."""

DEPOSIT_CONSTANT: float = 1000.0
"""K: deposit numerator. A tour of length L adds K / L to each edge it used."""


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 2: CONFIGURATION ERRORS
# ─────────────────────────────────────────────────────────────────────────────

class ConfigurationError(ValueError):
    """
    Raised when a run cannot start because its inputs are malformed.

    Always raised before any iteration runs. Never retried: the input is
    bad, not transiently unavailable.

    Subclasses:
        GraphFormatError             — graph input malformed (graph.py).
        KernelModuleNotFoundError    — no usable kernel module (accelerated).
        AcceleratorUnavailableError  — requested device missing (accelerated).
    """


class GraphFormatError(ConfigurationError):
    """Raised when a matrix or adjacency mapping does not describe a valid graph."""


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 3: CONFIGURATION MODELS
# ─────────────────────────────────────────────────────────────────────────────

class ColonyConfig(BaseModel):
    """
    Hyperparameters for one optimisation run.

    Fields:
        n_vertices        → Expected vertex count. None = take it from the
                            graph. When set, it must match the graph exactly.
        n_ants            → A: ants (tours) per iteration.
        n_iterations      → I: construction + reinforcement cycles.
        alpha             → α: pheromone exponent.
        beta              → β: heuristic (inverse distance) exponent.
        rho               → ρ: evaporation rate in [0, 1].
        initial_pheromone → Q0: starting intensity on every edge.
        deposit_constant  → K: deposit numerator.
        closed_tour       → Add the closing edge back to the start vertex
                            when measuring a tour, if that edge exists.
        seed              → Seed for the run's random source. None = fresh
                            entropy each run.
    """
    n_vertices: Optional[int] = Field(
        None, gt=0,
        description="Expected vertex count; None means use the graph's",
    )
    n_ants: int = Field(N_ANTS, gt=0, description="Ants per iteration")
    n_iterations: int = Field(N_ITERATIONS, gt=0, description="Iterations per run")
    alpha: float = Field(ALPHA, ge=0.0, description="Pheromone exponent")
    beta: float = Field(BETA, ge=0.0, description="Heuristic exponent")
    rho: float = Field(
        EVAPORATION_RATE, ge=0.0, le=1.0,
        description="Evaporation rate",
    )
    initial_pheromone: float = Field(
        INITIAL_PHEROMONE, ge=0.0,
        description="Initial pheromone on every edge (Q0)",
    )
    deposit_constant: float = Field(
        DEPOSIT_CONSTANT, gt=0.0,
        description="Deposit numerator (K)",
    )
    closed_tour: bool = Field(
        False,
        description="Measure tours as cycles when the closing edge exists",
    )
    seed: Optional[int] = Field(None, description="Random seed")


class AcceleratorConfig(BaseModel):
    """
    Where and with what the accelerated engine runs.

    device        → torch device string: "cpu", "cuda", "cuda:1", ...
    kernel_module → Importable module name or path to a .py file exposing
                    construct_tours() and update_pheromones().
                    None = the built-in tour_aco.accelerated.kernels.
    """
    device: str = Field("cpu", description="torch device string")
    kernel_module: Optional[str] = Field(
        None,
        description="Kernel module name or .py path; None = built-in kernels",
    )


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 4: RESULTS
# ─────────────────────────────────────────────────────────────────────────────

class Engine(str, Enum):
    """Which orchestrator produced a result."""
    SEQUENTIAL = "sequential"
    ACCELERATED = "accelerated"


class OptimizationResult(BaseModel):
    """
    What an optimizer returns after its last iteration.

    Fields:
        best_tour      → Best tour seen across ALL iterations. Complete
                         tours rank ahead of incomplete ones, then shorter
                         wins. Shorter than n_vertices only if no complete
                         tour was ever constructed. Empty if nothing was
                         scored.
        best_length    → Its length; +inf if no tour was ever scored.
        n_vertices     → Vertex count of the graph that was searched.
        iterations     → Iterations actually executed.
        history        → best_length after each iteration. Non-increasing
                         except where the first complete tour replaces an
                         incomplete best.
        history_complete → Whether that best was complete, per iteration.
                         Once True, stays True.
        rejected_tours → Tours too short to score (isolated start vertex).
        elapsed_ms     → Wall-clock time of the run.
        engine         → Which orchestrator produced this.
    """
    best_tour: List[int] = Field(default_factory=list)
    best_length: float = Field(math.inf)
    n_vertices: int = Field(..., gt=0)
    iterations: int = Field(0, ge=0)
    history: List[float] = Field(default_factory=list)
    history_complete: List[bool] = Field(default_factory=list)
    rejected_tours: int = Field(0, ge=0)
    elapsed_ms: float = Field(0.0, ge=0.0)
    engine: Engine = Engine.SEQUENTIAL

    @property
    def found_tour(self) -> bool:
        """True if at least one tour was scored."""
        return math.isfinite(self.best_length)

    @property
    def is_complete(self) -> bool:
        """True if the best tour visits every vertex."""
        return len(self.best_tour) == self.n_vertices
