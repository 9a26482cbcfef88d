"""
experiments — everything around the engine: random graphs, reporting,
parameter sweeps and the `tour-aco` command line.

Public API:
    GraphGenerator, GeneratedGraph   — random directed graphs
    SweepConfig, SweepRow, run_sweep — size/density sweeps
    format_adjacency, format_result, write_csv, read_matrix_csv
"""

from experiments.generator import GeneratedGraph, GraphGenerator
from experiments.reporting import format_adjacency, format_result, read_matrix_csv, write_csv
from experiments.sweep import SweepConfig, SweepEngine, SweepRow, run_sweep

__all__ = [
    "GeneratedGraph",
    "GraphGenerator",
    "SweepConfig",
    "SweepEngine",
    "SweepRow",
    "format_adjacency",
    "format_result",
    "read_matrix_csv",
    "run_sweep",
    "write_csv",
]
