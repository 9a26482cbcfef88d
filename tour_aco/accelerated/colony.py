"""
tour_aco/accelerated/colony.py
──────────────────────────────
AcceleratedColonyOptimizer: the colony loop with construction and update
offloaded to a torch device as two bulk passes per iteration.

Same contract as ColonyOptimizer (best_tour, best_length, state, run()),
different machinery:

    host                                  device
    ────                                  ──────
    load kernel module, resolve device
    upload distances, pheromones  ───────▶ d_distances, d_pheromones (once)
    for each iteration:
        draw starts + lane streams ──────▶ starts, draws
        construct_tours            ──────▶ d_tours  (pheromones read-only)
        synchronize
        update_pheromones          ──────▶ evaporate, then atomic deposit
        synchronize                ◀────── lane lengths
        rank lanes; if the best one ranks ahead, download that one lane
    download final pheromones + tours ◀──
    release device buffers (always, even on failure)

Global best
───────────
Tracked across every iteration, exactly like the sequential engine:
after each update pass the host reduces that iteration's lanes (complete
lanes first, then shortest) and downloads a lane only when it ranks ahead
of the best so far. A downloaded lane with a repeated vertex raises
TourError: the kernel module broke the tour invariant. The
final download of the tour buffer is kept for inspection
(final_tours), not used to pick the answer.

Random state
────────────
One torch.Generator per run, on the run's device, seeded from
config.seed. Every iteration it produces the start vertices and one
uniform stream per lane; each lane reads only its own stream.
"""

from __future__ import annotations

import logging
import math
import time
from typing import List, Optional, Tuple

import numpy as np
import torch
from numpy.typing import NDArray

from tour_aco.accelerated.loader import load_kernel_module, resolve_device, synchronize
from tour_aco.colony import RunState, ranks_ahead
from tour_aco.config import (
    AcceleratorConfig,
    ColonyConfig,
    Engine,
    OptimizationResult,
)
from tour_aco.graph import GraphInput, GraphView, build_graph
from tour_aco.tour import Tour, TourError, is_simple

logger = logging.getLogger(__name__)


class AcceleratedColonyOptimizer:
    """
    Device-offloaded ACO orchestrator.

    Usage:
        optimizer = AcceleratedColonyOptimizer(
            graph, ColonyConfig(seed=1), AcceleratorConfig(device="cuda"),
        )
        result = optimizer.run()

    After run():
        optimizer.final_pheromones → n×n matrix downloaded after the last pass.
        optimizer.final_tours      → A×n tour buffer of the last iteration
                                      (-1 marks unused slots).

    Raises (from run(), before anything is uploaded):
        KernelModuleNotFoundError   — no compatible kernel module.
        AcceleratorUnavailableError — device missing or unsupported.
    """

    def __init__(
        self,
        graph: GraphInput,
        config: Optional[ColonyConfig] = None,
        accelerator: Optional[AcceleratorConfig] = None,
    ) -> None:
        config = config or ColonyConfig()

        self._graph: GraphView = build_graph(graph, config.n_vertices)
        self._config = config
        self._accelerator = accelerator or AcceleratorConfig()
        self._state = RunState.IDLE
        self._best_tour: Tour = []
        self._best_length: float = math.inf
        self._best_complete = False
        self.final_pheromones: Optional[NDArray[np.float64]] = None
        self.final_tours: Optional[NDArray[np.int64]] = None

    @property
    def config(self) -> ColonyConfig:
        return self._config

    @property
    def accelerator(self) -> AcceleratorConfig:
        return self._accelerator

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def best_tour(self) -> Tour:
        return list(self._best_tour)

    @property
    def best_length(self) -> float:
        return self._best_length

    @staticmethod
    def _best_lane(tours: torch.Tensor, lengths: torch.Tensor) -> Tuple[int, float, bool]:
        """(lane, length, complete) of the iteration's best lane: complete lanes first."""
        complete = (tours >= 0).all(dim=1) & torch.isfinite(lengths)
        if bool(complete.any()):
            lengths = torch.where(complete, lengths, torch.full_like(lengths, math.inf))
        lane = int(torch.argmin(lengths))
        return lane, float(lengths[lane]), bool(complete[lane])

    def _generator(self, device: torch.device) -> torch.Generator:
        generator = torch.Generator(device=device)
        if self._config.seed is None:
            generator.seed()
        else:
            generator.manual_seed(self._config.seed)
        return generator

    def run(self) -> OptimizationResult:
        """
        Execute I iterations on the device and return the best tour found.

        Raises:
            KernelModuleNotFoundError, AcceleratorUnavailableError: see class.
            TourError: the kernel module built a tour with a repeated vertex.
        """
        cfg = self._config
        n = self._graph.n_vertices
        n_ants = cfg.n_ants

        # Fail fast: nothing is allocated until both resolve.
        kernels = load_kernel_module(self._accelerator.kernel_module)
        device = resolve_device(self._accelerator.device)

        start = time.perf_counter()
        self._state = RunState.RUNNING
        self._best_tour = []
        self._best_length = math.inf
        self._best_complete = False
        history: List[float] = []
        history_complete: List[bool] = []
        rejected = 0

        generator = self._generator(device)
        distances = self._graph.to_dense()
        initial = np.where(distances > 0.0, cfg.initial_pheromone, 0.0)

        logger.info(
            "accelerated run: %d vertices, %d lanes × %d iterations on %s (%s)",
            n, n_ants, cfg.n_iterations, device, kernels.__name__,
        )

        d_distances: Optional[torch.Tensor] = None
        d_pheromones: Optional[torch.Tensor] = None
        d_tours: Optional[torch.Tensor] = None
        try:
            # ── Upload once ─────────────────────────────────────────────────
            d_distances = torch.tensor(distances.ravel(), dtype=torch.float64, device=device)
            d_pheromones = torch.tensor(initial.ravel(), dtype=torch.float64, device=device)
            d_tours = torch.full((n_ants * n,), -1, dtype=torch.int64, device=device)

            for iteration in range(cfg.n_iterations):
                starts = torch.randint(
                    n, (n_ants,), generator=generator, device=device, dtype=torch.int64,
                )
                draws = torch.rand(
                    n_ants * n, generator=generator, device=device, dtype=torch.float64,
                )

                kernels.construct_tours(
                    d_distances, d_pheromones, d_tours, starts, draws,
                    n_ants, n, cfg.alpha, cfg.beta,
                )
                synchronize(device)

                lengths = kernels.update_pheromones(
                    d_distances, d_pheromones, d_tours,
                    n_ants, n, cfg.rho, cfg.deposit_constant, cfg.closed_tour,
                )
                synchronize(device)

                rejected += int((~torch.isfinite(lengths)).sum())
                lane, lane_length, lane_complete = self._best_lane(d_tours.view(n_ants, n), lengths)
                if ranks_ahead(lane_length, lane_complete, self._best_length, self._best_complete):
                    row = d_tours[lane * n:(lane + 1) * n].cpu().numpy()
                    tour = [int(v) for v in row if v >= 0]
                    if not is_simple(tour):
                        raise TourError(
                            f"Kernel module {kernels.__name__} produced lane {lane} "
                            f"with a repeated vertex: {tour}"
                        )
                    self._best_tour = tour
                    self._best_length = lane_length
                    self._best_complete = lane_complete

                history.append(self._best_length)
                history_complete.append(self._best_complete)
                logger.debug(
                    "iteration %d: lane best=%.4f global best=%.4f",
                    iteration, lane_length, self._best_length,
                )

            # ── Download once ───────────────────────────────────────────────
            self.final_pheromones = d_pheromones.view(n, n).cpu().numpy().copy()
            self.final_tours = d_tours.view(n_ants, n).cpu().numpy().copy()
        except Exception:
            self._state = RunState.IDLE
            logger.exception("accelerated run failed on %s", device)
            raise
        finally:
            del d_distances, d_pheromones, d_tours
            if device.type == "cuda":
                torch.cuda.empty_cache()

        self._state = RunState.CONVERGED
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        if rejected:
            logger.warning(
                "accelerated run: %d lane tour(s) too short to score were not deposited",
                rejected,
            )
        logger.info(
            "accelerated run finished: best=%.4f (%d/%d vertices) in %.2fms",
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
            engine=Engine.ACCELERATED,
        )

    def __repr__(self) -> str:
        return (
            f"AcceleratedColonyOptimizer(n_vertices={self._graph.n_vertices}, "
            f"device={self._accelerator.device}, state={self._state.value})"
        )
