"""
experiments/reporting.py
────────────────────────
Console and CSV I/O. Formatting and file access only; nothing here
computes results.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Iterable, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel

from tour_aco import GraphView, OptimizationResult


def format_adjacency(graph: GraphView) -> str:
    """
    The adjacency list, one vertex per line:

        Graph Adjacency List:
        Vertex 0 -> (to: 2, weight: 3.10) (to: 4, weight: 7.25)
        Vertex 1 ->
    """
    lines = ["Graph Adjacency List:"]
    for u in range(graph.n_vertices):
        edges = " ".join(
            f"(to: {v}, weight: {graph.weight(u, v):.2f})" for v in graph.neighbors(u)
        )
        lines.append(f"Vertex {u} -> {edges}".rstrip())
    return "\n".join(lines)


def format_result(result: OptimizationResult) -> str:
    """Short human-readable summary of one run."""
    if not math.isfinite(result.best_length):
        return (
            f"No tour could be scored ({result.rejected_tours} rejected, "
            f"{result.iterations} iterations, {result.elapsed_ms:.2f}ms)."
        )
    length = result.best_length
    shown = int(length) if float(length).is_integer() else round(length, 4)
    status = "complete" if result.is_complete else "incomplete"
    return "\n".join([
        f"Best tour ({len(result.best_tour)}/{result.n_vertices} vertices, {status}): "
        + " -> ".join(map(str, result.best_tour)),
        f"Length: {shown}",
        f"Engine: {result.engine.value}, iterations: {result.iterations}, "
        f"time: {result.elapsed_ms:.2f}ms",
    ])


def write_csv(rows: Iterable[BaseModel], path: Union[str, Path]) -> Path:
    """Write pydantic rows to CSV (one column per field). Creates parent dirs."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = pd.DataFrame([row.model_dump(mode="json") for row in rows])
    frame.to_csv(path, index=False)
    return path


def read_matrix_csv(path: Union[str, Path]) -> np.ndarray:
    """
    Load a headerless square weight matrix (0 = no edge).

    Shape and value checks are left to DenseGraph.
    """
    frame = pd.read_csv(path, header=None)
    return frame.to_numpy(dtype=np.float64)
