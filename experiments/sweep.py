"""
experiments/sweep.py
────────────────────
Experiment sweeps: how do time, memory and tour quality move with graph
size and density?

For every (n, density) in the grid:
    repeat `repeats` times:
        generate a random graph           (GraphGenerator)
        run one optimisation              (chosen engine)
        record wall time, peak traced memory, best length, completeness
    average into one SweepRow

Seeds
─────
A master generator seeded from SweepConfig.seed hands out one graph seed
and one colony seed per repeat, so a sweep with a fixed seed is
reproducible end to end. Runs share no state.

Memory
──────
Peak memory comes from tracemalloc, which sees Python and numpy
allocations on the host. Device memory used by the accelerated engine is
not included.
"""

from __future__ import annotations

import logging
import math
import time
import tracemalloc
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
from pydantic import BaseModel, Field

from experiments.generator import GraphGenerator
from tour_aco import (
    AcceleratorConfig,
    ColonyConfig,
    GraphView,
    OptimizationResult,
    create_optimizer,
)

logger = logging.getLogger(__name__)


class SweepEngine(str, Enum):
    """Which representation / orchestrator a sweep exercises."""
    SPARSE = "sparse"
    DENSE = "dense"
    ACCELERATED = "accelerated"


class SweepConfig(BaseModel):
    """
    sizes       → vertex counts to try.
    densities   → edge probabilities to try, each in [0, 1].
    repeats     → graphs per (size, density) cell.
    engine      → sparse / dense host engine, or the accelerated engine.
    colony      → hyperparameters for every run (its seed is overridden).
    accelerator → device settings when engine is ACCELERATED.
    seed        → master seed; None = non-reproducible.
    """
    sizes: List[int] = Field(default_factory=lambda: [10, 20, 40])
    densities: List[float] = Field(default_factory=lambda: [0.3, 0.6, 1.0])
    repeats: int = Field(3, gt=0)
    engine: SweepEngine = SweepEngine.SPARSE
    colony: ColonyConfig = Field(default_factory=ColonyConfig)
    accelerator: AcceleratorConfig = Field(default_factory=AcceleratorConfig)
    seed: Optional[int] = None


class SweepRow(BaseModel):
    """Averages for one (n, density) cell."""
    n_vertices: int
    density: float
    engine: SweepEngine
    repeats: int
    mean_time_ms: float
    mean_peak_memory_kib: float
    mean_best_length: Optional[float] = Field(
        None, description="Mean over runs that scored a tour; None if none did",
    )
    found_fraction: float = Field(..., ge=0.0, le=1.0)
    complete_fraction: float = Field(..., ge=0.0, le=1.0)


def _measure(
    graph: GraphView,
    colony: ColonyConfig,
    accelerator: Optional[AcceleratorConfig],
) -> Tuple[OptimizationResult, float, float]:
    """One run: (result, wall ms, peak KiB)."""
    started_tracing = not tracemalloc.is_tracing()
    if started_tracing:
        tracemalloc.start()
    tracemalloc.reset_peak()
    began = time.perf_counter()
    try:
        result = create_optimizer(graph, colony, accelerator).run()
        elapsed_ms = (time.perf_counter() - began) * 1000.0
        _current, peak = tracemalloc.get_traced_memory()
    finally:
        if started_tracing:
            tracemalloc.stop()
    return result, elapsed_ms, peak / 1024.0


def run_cell(
    n_vertices: int,
    density: float,
    config: SweepConfig,
    rng: np.random.Generator,
) -> SweepRow:
    """All repeats for one (n, density) cell."""
    times: List[float] = []
    peaks: List[float] = []
    lengths: List[float] = []
    complete = 0

    accelerator = config.accelerator if config.engine == SweepEngine.ACCELERATED else None

    for _repeat in range(config.repeats):
        graph_seed, run_seed = (int(s) for s in rng.integers(0, 2**31 - 1, size=2))
        generated = GraphGenerator(n_vertices, density, seed=graph_seed).generate()
        graph = generated.sparse() if config.engine == SweepEngine.SPARSE else generated.dense()
        colony = config.colony.model_copy(update={"seed": run_seed, "n_vertices": None})

        result, elapsed_ms, peak_kib = _measure(graph, colony, accelerator)
        times.append(elapsed_ms)
        peaks.append(peak_kib)
        if math.isfinite(result.best_length):
            lengths.append(result.best_length)
        if result.is_complete:
            complete += 1

    row = SweepRow(
        n_vertices=n_vertices,
        density=density,
        engine=config.engine,
        repeats=config.repeats,
        mean_time_ms=float(np.mean(times)),
        mean_peak_memory_kib=float(np.mean(peaks)),
        mean_best_length=float(np.mean(lengths)) if lengths else None,
        found_fraction=len(lengths) / config.repeats,
        complete_fraction=complete / config.repeats,
    )
    logger.info(
        "sweep cell n=%d density=%.2f: %.2fms, %.1f KiB, complete %.0f%%",
        n_vertices, density, row.mean_time_ms, row.mean_peak_memory_kib,
        row.complete_fraction * 100.0,
    )
    return row


def run_sweep(config: SweepConfig) -> List[SweepRow]:
    """Every (size, density) cell, sizes outermost."""
    for n in config.sizes:
        if n < 1:
            raise ValueError(f"Sweep sizes must be ≥ 1, got {n}.")
    for p in config.densities:
        if not 0.0 <= p <= 1.0:
            raise ValueError(f"Sweep densities must be in [0, 1], got {p}.")

    rng = np.random.default_rng(config.seed)
    return [
        run_cell(n, p, config, rng)
        for n in config.sizes
        for p in config.densities
    ]
