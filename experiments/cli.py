"""
experiments/cli.py
──────────────────
Command line entry point: `tour-aco run ...` and `tour-aco sweep ...`.

    tour-aco run --random --n 20 --density 0.3 --seed 1
    tour-aco run --csv graph.csv --representation dense --closed
    tour-aco run --random --n 200 --accelerated --device cuda
    tour-aco sweep --sizes 10 20 40 --densities 0.3 1.0 --csv out/sweep.csv
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from experiments.generator import GraphGenerator
from experiments.reporting import format_adjacency, format_result, read_matrix_csv, write_csv
from experiments.sweep import SweepConfig, SweepEngine, run_sweep
from tour_aco import (
    AcceleratorConfig,
    ColonyConfig,
    ConfigurationError,
    DenseGraph,
    GraphView,
    SparseGraph,
    create_optimizer,
)
from tour_aco.config import (
    ALPHA,
    BETA,
    DEPOSIT_CONSTANT,
    EVAPORATION_RATE,
    INITIAL_PHEROMONE,
    N_ANTS,
    N_ITERATIONS,
)

logger = logging.getLogger(__name__)


def _add_colony_arguments(p: argparse.ArgumentParser) -> None:
    aco = p.add_argument_group("ACO parameters")
    aco.add_argument("--ants", type=int, default=N_ANTS, help="Ants per iteration")
    aco.add_argument("--iters", type=int, default=N_ITERATIONS, help="Iterations")
    aco.add_argument("--alpha", type=float, default=ALPHA, help="Pheromone exponent")
    aco.add_argument("--beta", type=float, default=BETA, help="Heuristic exponent")
    aco.add_argument("--rho", type=float, default=EVAPORATION_RATE, help="Evaporation rate (0..1)")
    aco.add_argument("--tau0", type=float, default=INITIAL_PHEROMONE, help="Initial pheromone")
    aco.add_argument("--k", type=float, default=DEPOSIT_CONSTANT, help="Deposit numerator")
    aco.add_argument("--closed", action="store_true", help="Measure tours as cycles when possible")
    aco.add_argument("--seed", type=int, default=None, help="Seed for reproducibility")

    acc = p.add_argument_group("Accelerator")
    acc.add_argument("--accelerated", action="store_true", help="Use the device engine")
    acc.add_argument("--device", type=str, default="cpu", help="torch device for --accelerated")
    acc.add_argument("--kernel-module", type=str, default=None,
                     help="Kernel module name or .py path (default: built-in)")


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tour-aco",
        description="Ant Colony Optimisation for short tours over weighted graphs.",
    )
    p.add_argument("--log-level", default="WARNING",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Optimise one graph")
    src = run.add_argument_group("Graph source")
    src.add_argument("--csv", type=str, default=None, help="Square weight matrix CSV (0 = no edge)")
    src.add_argument("--random", action="store_true", help="Generate a random graph")
    src.add_argument("--n", type=int, default=20, help="Vertices for --random")
    src.add_argument("--density", type=float, default=0.3, help="Edge probability for --random")
    src.add_argument("--representation", choices=["sparse", "dense"], default="sparse")
    src.add_argument("--print-graph", action="store_true", help="Print the adjacency list")
    _add_colony_arguments(run)
    out = run.add_argument_group("Output")
    out.add_argument("--save-best", type=str, default=None, help="Write the best tour to a file")

    sweep = sub.add_parser("sweep", help="Average time/memory over sizes and densities")
    sweep.add_argument("--sizes", type=int, nargs="+", default=[10, 20, 40])
    sweep.add_argument("--densities", type=float, nargs="+", default=[0.3, 0.6, 1.0])
    sweep.add_argument("--repeats", type=int, default=3)
    sweep.add_argument("--engine", choices=[e.value for e in SweepEngine],
                       default=SweepEngine.SPARSE.value)
    sweep.add_argument("--out", type=str, default=None, help="Write rows to this CSV")
    _add_colony_arguments(sweep)

    return p


def _colony_config(args: argparse.Namespace) -> ColonyConfig:
    return ColonyConfig(
        n_ants=args.ants,
        n_iterations=args.iters,
        alpha=args.alpha,
        beta=args.beta,
        rho=args.rho,
        initial_pheromone=args.tau0,
        deposit_constant=args.k,
        closed_tour=args.closed,
        seed=args.seed,
    )


def _accelerator_config(args: argparse.Namespace) -> AcceleratorConfig:
    return AcceleratorConfig(device=args.device, kernel_module=args.kernel_module)


def _load_graph(args: argparse.Namespace) -> GraphView:
    if args.csv and not args.random:
        dense = DenseGraph(read_matrix_csv(args.csv))
        if args.representation == "dense":
            return dense
        return SparseGraph(
            {u: [(v, dense.weight(u, v)) for v in dense.neighbors(u)]
             for u in range(dense.n_vertices)},
            n_vertices=dense.n_vertices,
        )
    generated = GraphGenerator(args.n, args.density, seed=args.seed).generate()
    return generated.dense() if args.representation == "dense" else generated.sparse()


def _cmd_run(args: argparse.Namespace) -> int:
    graph = _load_graph(args)
    if args.print_graph:
        print(format_adjacency(graph))

    accelerator = _accelerator_config(args) if args.accelerated else None
    result = create_optimizer(graph, _colony_config(args), accelerator).run()
    print(format_result(result))

    if args.save_best:
        Path(args.save_best).write_text(" ".join(map(str, result.best_tour)), encoding="utf-8")
        print("Saved:", args.save_best)
    return 0


def _cmd_sweep(args: argparse.Namespace) -> int:
    config = SweepConfig(
        sizes=args.sizes,
        densities=args.densities,
        repeats=args.repeats,
        engine=SweepEngine(args.engine),
        colony=_colony_config(args),
        accelerator=_accelerator_config(args),
        seed=args.seed,
    )
    rows = run_sweep(config)

    print(f"{'n':>6} {'density':>8} {'time_ms':>10} {'peak_kib':>10} {'best':>10} {'complete':>9}")
    for row in rows:
        best = f"{row.mean_best_length:.2f}" if row.mean_best_length is not None else "-"
        print(
            f"{row.n_vertices:>6} {row.density:>8.2f} {row.mean_time_ms:>10.2f} "
            f"{row.mean_peak_memory_kib:>10.1f} {best:>10} {row.complete_fraction:>9.0%}"
        )
    if args.out:
        print("Saved:", write_csv(rows, args.out))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_argparser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "run":
            return _cmd_run(args)
        return _cmd_sweep(args)
    except (ConfigurationError, ValidationError) as exc:
        logger.error("invalid configuration: %s", exc)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
