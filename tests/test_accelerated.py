"""
tests/test_accelerated.py
─────────────────────────
The torch engine, on the CPU device so it runs anywhere torch installs.

Reading guide
─────────────
Group 1 — Built-in kernels
    construct_tours and update_pheromones called directly on flat buffers,
    with hand-computed expectations.

Group 2 — Loader
    Kernel module resolution and device checks fail fast, including
    modules that blow up while importing.

Group 3 — AcceleratedColonyOptimizer
    The reference scenario, lifecycle, failure before any upload, lane
    ranking (complete tours first), raw graph input, and a kernel that
    breaks the no-repeat rule.
"""

from __future__ import annotations

import math

import numpy as np
import pytest

torch = pytest.importorskip("torch")

from tour_aco import (  # noqa: E402
    AcceleratorConfig,
    ColonyConfig,
    DenseGraph,
    Engine,
    GraphFormatError,
    RunState,
    SparseGraph,
    TourError,
)
from tour_aco.accelerated import (  # noqa: E402
    AcceleratedColonyOptimizer,
    AcceleratorUnavailableError,
    KernelModuleNotFoundError,
    load_kernel_module,
    resolve_device,
)
from tour_aco.accelerated import kernels  # noqa: E402
from tour_aco.accelerated.loader import DEFAULT_KERNEL_MODULE  # noqa: E402
from tour_aco.tour import is_simple  # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────────────────────────────

def _flat(matrix) -> "torch.Tensor":
    return torch.tensor(np.asarray(matrix, dtype=np.float64).ravel(), dtype=torch.float64)


def _support(matrix, q0: float) -> "torch.Tensor":
    m = np.asarray(matrix, dtype=np.float64)
    return _flat(np.where(m > 0.0, q0, 0.0))


def _tours(rows) -> "torch.Tensor":
    return torch.tensor(np.asarray(rows, dtype=np.int64).ravel(), dtype=torch.int64)


PATH = [[0.0, 1.0, 0.0],
        [0.0, 0.0, 1.0],
        [0.0, 0.0, 0.0]]

FORK = [[0.0, 2.0, 2.0],
        [0.0, 0.0, 0.0],
        [0.0, 0.0, 0.0]]

PAIR = [[0.0, 2.0],
        [2.0, 0.0]]


def _complete(n: int = 4) -> DenseGraph:
    matrix = np.ones((n, n))
    np.fill_diagonal(matrix, 0.0)
    return DenseGraph(matrix)


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 1 — Built-in kernels
# ─────────────────────────────────────────────────────────────────────────────

class TestConstructKernel:

    def test_path_lanes_stop_at_dead_end(self):
        tours = torch.empty(9, dtype=torch.int64)
        kernels.construct_tours(
            _flat(PATH), _support(PATH, 0.1), tours,
            torch.tensor([0, 1, 2]), torch.full((9,), 0.5, dtype=torch.float64),
            3, 3, 1.0, 1.0,
        )
        assert tours.view(3, 3).tolist() == [
            [0, 1, 2],
            [1, 2, -1],
            [2, -1, -1],
        ]

    def test_tie_break_first_column_wins_on_boundary(self):
        """Same as the host constructor: r on the boundary → earlier index."""
        tours = torch.empty(3, dtype=torch.int64)
        draws = torch.tensor([0.0, 0.5, 0.0], dtype=torch.float64)
        kernels.construct_tours(
            _flat(FORK), _support(FORK, 0.1), tours, torch.tensor([0]), draws,
            1, 3, 1.0, 1.0,
        )
        assert tours.tolist()[:2] == [0, 1]

    def test_lane_reads_only_its_own_draws(self):
        """Lane 1's stream picks column 2, lane 0's picks column 1."""
        tours = torch.empty(6, dtype=torch.int64)
        draws = torch.tensor([0.0, 0.1, 0.0, 0.0, 0.9, 0.0], dtype=torch.float64)
        kernels.construct_tours(
            _flat(FORK), _support(FORK, 0.1), tours, torch.tensor([0, 0]), draws,
            2, 3, 1.0, 1.0,
        )
        assert tours.view(2, 3)[:, 1].tolist() == [1, 2]

    def test_pheromones_untouched_by_construction(self):
        pheromones = _support(PATH, 0.3)
        before = pheromones.clone()
        kernels.construct_tours(
            _flat(PATH), pheromones, torch.empty(3, dtype=torch.int64),
            torch.tensor([0]), torch.rand(3, dtype=torch.float64), 1, 3, 1.0, 2.0,
        )
        assert torch.equal(pheromones, before)

    def test_complete_graph_lanes_are_simple_and_full(self):
        n, lanes = 6, 8
        matrix = np.ones((n, n))
        np.fill_diagonal(matrix, 0.0)
        tours = torch.empty(n * lanes, dtype=torch.int64)
        generator = torch.Generator().manual_seed(0)
        kernels.construct_tours(
            _flat(matrix), _support(matrix, 0.1), tours,
            torch.randint(n, (lanes,), generator=generator),
            torch.rand(n * lanes, generator=generator, dtype=torch.float64),
            lanes, n, 1.0, 2.0,
        )
        for row in tours.view(lanes, n).tolist():
            assert sorted(row) == list(range(n))
            assert is_simple(row)


class TestUpdateKernel:

    def test_evaporate_then_deposit(self):
        """Q0 = 1, ρ = 0.5, K = 1, tour [0, 1] of length 2 → 0.5 + 0.5 = 1.0."""
        pheromones = _support(PAIR, 1.0)
        lengths = kernels.update_pheromones(
            _flat(PAIR), pheromones, _tours([[0, 1]]), 1, 2, 0.5, 1.0, False,
        )
        assert lengths.tolist() == [2.0]
        assert pheromones.view(2, 2).tolist() == [[0.0, 1.0], [1.0, 0.0]]

    def test_lanes_hitting_same_edge_accumulate(self):
        """Two lanes deposit 0.5 each on the same edge: nothing overwritten."""
        pheromones = _support(PAIR, 1.0)
        kernels.update_pheromones(
            _flat(PAIR), pheromones, _tours([[0, 1], [1, 0]]), 2, 2, 0.5, 1.0, False,
        )
        assert pheromones.view(2, 2)[0, 1].item() == pytest.approx(1.5)
        assert pheromones.view(2, 2)[1, 0].item() == pytest.approx(1.5)

    def test_reverse_of_directed_edge_not_created(self):
        pheromones = _support(PATH, 0.1)
        kernels.update_pheromones(
            _flat(PATH), pheromones, _tours([[0, 1, 2]]), 1, 3, 0.0, 2.0, False,
        )
        tau = pheromones.view(3, 3)
        assert tau[0, 1].item() == pytest.approx(1.1)
        assert tau[1, 2].item() == pytest.approx(1.1)
        assert tau[1, 0].item() == 0.0
        assert tau[2, 1].item() == 0.0

    def test_single_vertex_lane_scores_inf_and_deposits_nothing(self):
        pheromones = _support(PATH, 1.0)
        lengths = kernels.update_pheromones(
            _flat(PATH), pheromones, _tours([[2, -1, -1]]), 1, 3, 0.5, 1.0, False,
        )
        assert math.isinf(lengths[0].item())
        assert pheromones.sum().item() == pytest.approx(1.0)

    def test_closed_lengths(self):
        matrix = np.ones((3, 3))
        np.fill_diagonal(matrix, 0.0)
        lengths = kernels.update_pheromones(
            _flat(matrix), _support(matrix, 0.1), _tours([[0, 1, 2]]), 1, 3, 0.1, 1.0, True,
        )
        assert lengths.tolist() == [3.0]

    def test_closed_without_return_edge_stays_open(self):
        lengths = kernels.update_pheromones(
            _flat(PATH), _support(PATH, 0.1), _tours([[0, 1, 2]]), 1, 3, 0.1, 1.0, True,
        )
        assert lengths.tolist() == [2.0]


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 2 — Loader
# ─────────────────────────────────────────────────────────────────────────────

class TestLoader:

    def test_default_module(self):
        assert load_kernel_module().__name__ == DEFAULT_KERNEL_MODULE

    def test_unknown_module_rejected(self):
        with pytest.raises(KernelModuleNotFoundError) as info:
            load_kernel_module("no_such_kernels_module")
        assert info.value.module == "no_such_kernels_module"

    def test_module_without_entry_points_rejected(self):
        with pytest.raises(KernelModuleNotFoundError, match="construct_tours"):
            load_kernel_module("math")

    def test_module_loaded_from_file(self, tmp_path):
        path = tmp_path / "my_kernels.py"
        path.write_text(
            "from tour_aco.accelerated.kernels import construct_tours, update_pheromones\n",
            encoding="utf-8",
        )
        module = load_kernel_module(str(path))
        assert callable(module.construct_tours)

    def test_missing_file_rejected(self, tmp_path):
        with pytest.raises(KernelModuleNotFoundError):
            load_kernel_module(str(tmp_path / "absent.py"))

    def test_file_with_syntax_error_rejected(self, tmp_path):
        path = tmp_path / "broken_kernels.py"
        path.write_text("def construct_tours(:\n    pass\n", encoding="utf-8")
        with pytest.raises(KernelModuleNotFoundError, match="SyntaxError"):
            load_kernel_module(str(path))

    def test_module_failing_at_import_rejected(self, tmp_path, monkeypatch):
        (tmp_path / "exploding_kernels.py").write_text(
            "raise RuntimeError('no device kernels here')\n", encoding="utf-8",
        )
        monkeypatch.syspath_prepend(str(tmp_path))
        with pytest.raises(KernelModuleNotFoundError, match="RuntimeError") as info:
            load_kernel_module("exploding_kernels")
        assert info.value.module == "exploding_kernels"

    def test_file_failing_at_import_rejected(self, tmp_path):
        path = tmp_path / "exploding_kernels.py"
        path.write_text("raise RuntimeError('no device kernels here')\n", encoding="utf-8")
        with pytest.raises(KernelModuleNotFoundError, match="RuntimeError"):
            load_kernel_module(str(path))

    def test_cpu_resolves(self):
        assert resolve_device("cpu").type == "cpu"

    @pytest.mark.parametrize("name", ["bogus", "mps"])
    def test_unknown_or_unsupported_device_rejected(self, name):
        with pytest.raises(AcceleratorUnavailableError):
            resolve_device(name)

    @pytest.mark.skipif(torch.cuda.is_available(), reason="CUDA present")
    def test_cuda_without_gpu_rejected(self):
        with pytest.raises(AcceleratorUnavailableError):
            resolve_device("cuda")


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 3 — AcceleratedColonyOptimizer
# ─────────────────────────────────────────────────────────────────────────────

SCENARIO = dict(
    n_ants=1, n_iterations=1, initial_pheromone=0.1,
    alpha=1.0, beta=1.0, rho=0.0, deposit_constant=1000.0, seed=42,
)


class TestAcceleratedColonyOptimizer:

    def test_reference_scenario_open(self):
        optimizer = AcceleratedColonyOptimizer(_complete(4), ColonyConfig(**SCENARIO))
        result = optimizer.run()
        assert sorted(result.best_tour) == [0, 1, 2, 3]
        assert result.best_length == pytest.approx(3.0)
        assert result.engine == Engine.ACCELERATED
        assert optimizer.state == RunState.CONVERGED

    def test_reference_scenario_closed(self):
        cfg = ColonyConfig(**SCENARIO, closed_tour=True)
        result = AcceleratedColonyOptimizer(_complete(4), cfg).run()
        assert result.best_length == pytest.approx(4.0)

    def test_seeded_runs_repeat(self):
        matrix = np.where(np.random.default_rng(1).random((10, 10)) < 0.5, 2.0, 0.0)
        np.fill_diagonal(matrix, 0.0)
        cfg = ColonyConfig(n_ants=4, n_iterations=5, seed=11)
        first = AcceleratedColonyOptimizer(DenseGraph(matrix), cfg).run()
        second = AcceleratedColonyOptimizer(DenseGraph(matrix), cfg).run()
        assert first.best_tour == second.best_tour
        assert first.history == second.history

    def test_final_buffers_downloaded(self):
        cfg = ColonyConfig(n_ants=3, n_iterations=4, rho=0.5, seed=2)
        optimizer = AcceleratedColonyOptimizer(_complete(5), cfg)
        result = optimizer.run()
        assert optimizer.final_pheromones.shape == (5, 5)
        assert np.all(optimizer.final_pheromones >= 0.0)
        assert np.all(np.diag(optimizer.final_pheromones) == 0.0)
        assert optimizer.final_tours.shape == (3, 5)
        assert all(b <= a for a, b in zip(result.history, result.history[1:]))

    def test_graph_without_edges_scores_nothing(self):
        cfg = ColonyConfig(n_ants=2, n_iterations=3, seed=0)
        result = AcceleratedColonyOptimizer(DenseGraph(np.zeros((3, 3))), cfg).run()
        assert result.best_tour == []
        assert math.isinf(result.best_length)
        assert result.rejected_tours == 6

    def test_bad_kernel_module_fails_before_running(self):
        optimizer = AcceleratedColonyOptimizer(
            _complete(3), ColonyConfig(), AcceleratorConfig(kernel_module="no_such_kernels"),
        )
        with pytest.raises(KernelModuleNotFoundError):
            optimizer.run()
        assert optimizer.state == RunState.IDLE

    def test_bad_device_fails_before_running(self):
        optimizer = AcceleratedColonyOptimizer(
            _complete(3), ColonyConfig(), AcceleratorConfig(device="bogus"),
        )
        with pytest.raises(AcceleratorUnavailableError):
            optimizer.run()
        assert optimizer.state == RunState.IDLE
        assert optimizer.final_pheromones is None

    def test_complete_tour_beats_shorter_dead_end(self):
        """Same ranking as the host engine: the dead end [2, 1] must not win."""
        graph = SparseGraph({0: [(1, 5.0)], 1: [(2, 5.0)], 2: [(1, 1.0)]})
        result = AcceleratedColonyOptimizer(
            graph, ColonyConfig(n_ants=10, n_iterations=3, seed=0),
        ).run()
        assert result.best_tour == [0, 1, 2]
        assert result.best_length == pytest.approx(10.0)
        assert result.is_complete
        assert result.history_complete[-1] is True

    def test_dead_end_reported_only_without_complete_tour(self):
        graph = SparseGraph({0: [(1, 1.0)], 1: [], 2: [(1, 3.0)]})
        result = AcceleratedColonyOptimizer(
            graph, ColonyConfig(n_ants=10, n_iterations=3, seed=0),
        ).run()
        assert result.best_tour == [0, 1]
        assert result.best_length == pytest.approx(1.0)
        assert not any(result.history_complete)

    @pytest.mark.parametrize(
        "graph",
        [
            [[0.0, 1.0, 1.0], [1.0, 0.0, 1.0], [1.0, 1.0, 0.0]],
            {0: [(1, 1.0), (2, 1.0)], 1: [(0, 1.0), (2, 1.0)], 2: [(0, 1.0), (1, 1.0)]},
        ],
    )
    def test_raw_graph_input_accepted(self, graph):
        optimizer = AcceleratedColonyOptimizer(graph, ColonyConfig(n_ants=2, n_iterations=1, seed=1))
        assert optimizer.run().best_length == pytest.approx(2.0)

    def test_malformed_graph_rejected_in_constructor(self):
        with pytest.raises(GraphFormatError):
            AcceleratedColonyOptimizer([[0.0, 1.0], [1.0]], ColonyConfig())

    def test_kernel_repeating_a_vertex_fails_the_run(self, tmp_path):
        path = tmp_path / "looping_kernels.py"
        path.write_text(
            "import torch\n"
            "from tour_aco.accelerated.kernels import update_pheromones\n"
            "\n"
            "\n"
            "def construct_tours(distances, pheromones, tours, starts, draws,\n"
            "                    n_ants, n_verts, alpha, beta):\n"
            "    pattern = torch.tensor([0, 1, 0], dtype=torch.int64, device=tours.device)\n"
            "    tours.view(n_ants, n_verts).copy_(pattern.expand(n_ants, n_verts))\n",
            encoding="utf-8",
        )
        optimizer = AcceleratedColonyOptimizer(
            _complete(3), ColonyConfig(n_ants=2, n_iterations=1, seed=0),
            AcceleratorConfig(kernel_module=str(path)),
        )
        with pytest.raises(TourError, match="repeated vertex"):
            optimizer.run()
        assert optimizer.state == RunState.IDLE
