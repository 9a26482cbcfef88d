"""
tour_aco/accelerated/kernels.py
───────────────────────────────
Built-in kernel module: the two bulk-parallel passes of one iteration.

Any module exposing these two functions with these signatures can replace
this one (AcceleratorConfig.kernel_module). All buffers are FLAT torch
tensors living on the run's device:

    distances   float64 (n*n,)   row-major, 0.0 = no edge     read-only
    pheromones  float64 (n*n,)   row-major, 0.0 off-support   read/write
    tours       int64   (A*n,)   lane a = tours[a*n:(a+1)*n], -1 = unused
    starts      int64   (A,)     start vertex per lane
    draws       float64 (A*n,)   lane a's uniform stream, draws[a*n + step]

Lanes
─────
One lane per ant. Every operation below is a tensor op over the lane
dimension, so all lanes advance one step together: a lane is the
per-ant column of each tensor, not a Python loop iteration. Each lane
consumes only its own slice of `draws`.

construct_tours
───────────────
Reads pheromones, never writes them: the attractiveness matrix
τ^α × (1/d)^β is computed once at the start of the pass and every lane
reads from it. No cross-lane writes exist during this pass.

Per step, per lane, exactly the host algorithm:
    feasible   = edge[current] & ~visited
    cumulative = cumsum(attract[current] masked to feasible)
    S          = cumulative[-1];  S ≤ 0 → lane stops (stays stopped)
    r          = draw × S
    next       = first feasible column with cumulative ≥ r

update_pheromones
─────────────────
  Pass 1 — evaporation: pheromones *= (1 − ρ), whole buffer, in place.
  Pass 2 — deposit: K / L on (u, v) and (v, u) for every leg of every
           scored lane, onto existing edges only.

Pass 2 is issued after pass 1 on the same stream, so no deposit can be
applied to a value that has not been evaporated yet. Several lanes can hit
the same cell; index_put_(..., accumulate=True) accumulates duplicates
atomically instead of letting one lane's write overwrite another's.

Returns per-lane lengths; +inf for a lane with fewer than 2 vertices.
"""

from __future__ import annotations

import torch


def construct_tours(
    distances: torch.Tensor,
    pheromones: torch.Tensor,
    tours: torch.Tensor,
    starts: torch.Tensor,
    draws: torch.Tensor,
    n_ants: int,
    n_verts: int,
    alpha: float,
    beta: float,
) -> None:
    """Fill `tours` with one tour per lane. See module docstring for layouts."""
    device = distances.device
    dist = distances.view(n_verts, n_verts)
    tau = pheromones.view(n_verts, n_verts)
    tour = tours.view(n_ants, n_verts)
    lane_draws = draws.view(n_ants, n_verts)

    edge = dist > 0.0
    zeros = torch.zeros_like(dist)
    inverse = torch.where(edge, dist.reciprocal(), zeros)
    attract = torch.where(edge, tau.pow(alpha) * inverse.pow(beta), zeros)

    lanes = torch.arange(n_ants, device=device)
    columns = torch.arange(1, n_verts + 1, device=device)

    tour.fill_(-1)
    current = starts.clone()
    tour[:, 0] = current
    visited = torch.zeros((n_ants, n_verts), dtype=torch.bool, device=device)
    visited[lanes, current] = True
    active = torch.ones(n_ants, dtype=torch.bool, device=device)

    for step in range(1, n_verts):
        feasible = edge[current] & ~visited & active.unsqueeze(1)
        weights = attract[current].masked_fill(~feasible, 0.0)
        cumulative = weights.cumsum(dim=1)
        total = cumulative[:, -1]

        active = total > 0.0
        if not bool(active.any()):
            break

        threshold = (lane_draws[:, step] * total).unsqueeze(1)
        hit = feasible & (cumulative >= threshold)
        # argmax returns the FIRST maximal index: first column to cross r
        nxt = hit.to(torch.int64).argmax(dim=1)

        # Rounding guard: an active lane with no hit takes its last feasible column
        missed = active & ~hit.any(dim=1)
        if bool(missed.any()):
            last_feasible = (feasible.to(torch.int64) * columns).argmax(dim=1)
            nxt = torch.where(missed, last_feasible, nxt)

        nxt = torch.where(active, nxt, current)
        tour[:, step] = torch.where(active, nxt, torch.full_like(nxt, -1))
        visited[lanes[active], nxt[active]] = True
        current = nxt


def update_pheromones(
    distances: torch.Tensor,
    pheromones: torch.Tensor,
    tours: torch.Tensor,
    n_ants: int,
    n_verts: int,
    rho: float,
    deposit_constant: float,
    closed: bool,
) -> torch.Tensor:
    """Evaporate, then deposit for every scored lane. Returns lane lengths."""
    dist = distances.view(n_verts, n_verts)
    tau = pheromones.view(n_verts, n_verts)
    tour = tours.view(n_ants, n_verts)

    # ── Pass 1: evaporation ───────────────────────────────────────────────────
    tau.mul_(1.0 - rho)

    inf = torch.full((n_ants,), float("inf"), dtype=dist.dtype, device=dist.device)
    if n_verts < 2:
        return inf

    # ── Lengths ───────────────────────────────────────────────────────────────
    counts = (tour >= 0).sum(dim=1)
    src = tour[:, :-1]
    dst = tour[:, 1:]
    legs = (src >= 0) & (dst >= 0)
    u = src.clamp(min=0)
    v = dst.clamp(min=0)

    forward = dist[u, v]
    lengths = torch.where(legs, forward, torch.zeros_like(forward)).sum(dim=1)

    if closed:
        last = tour.gather(1, (counts - 1).clamp(min=0).unsqueeze(1)).squeeze(1)
        back = dist[last.clamp(min=0), tour[:, 0].clamp(min=0)]
        closes = (counts >= 2) & (back > 0.0)
        lengths = lengths + torch.where(closes, back, torch.zeros_like(back))

    scored = (counts >= 2) & (lengths > 0.0)
    lengths = torch.where(scored, lengths, inf)

    # ── Pass 2: deposit ───────────────────────────────────────────────────────
    amount = (deposit_constant / lengths).unsqueeze(1).expand_as(forward)
    usable = legs & scored.unsqueeze(1)
    there = usable & (forward > 0.0)
    back_again = usable & (dist[v, u] > 0.0)

    tau.index_put_((u[there], v[there]), amount[there], accumulate=True)
    tau.index_put_((v[back_again], u[back_again]), amount[back_again], accumulate=True)

    return lengths
