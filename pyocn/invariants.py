from __future__ import annotations

"""
Side-effect-free invariants of a diagnostic pass.

Purpose
- Provide area-weighted totals and conservation residuals that tests, the demo
  and callers can evaluate on any (mesh, state, diagnostics) triple.
- Support pass-level "before/after" comparisons: compute Invariants on two
  passes and diff them with step_deltas / diagnostics_report.

Notes
- All functions are pure (no global mutation). Callers decide where to log/print.
- Weighting uses areaCell; only active cell levels contribute, so sentinel
  entries never enter a total.
"""

from dataclasses import dataclass

import numpy as np

from .jax_compat import xp
from .barotropic import barotropic_mean
from .thickness import layer_thickness_edge
from .vertical_velocity import horizontal_divergence


def area_weights(mesh, mask: np.ndarray | None = None) -> np.ndarray:
    """
    Return areaCell weights with shape (nCells, 1) for level fields.
    If mask (nCells, L) is given, inactive entries get zero weight.
    """
    w = xp.asarray(mesh.area_cell)[:, None]
    if mask is not None:
        w = xp.where(mask, w, 0.0)
    return w


def integrate(field: np.ndarray, w: np.ndarray) -> float:
    """
    Weighted integral over active entries (zero weight entries are skipped).
    """
    return float(xp.sum(xp.where(w != 0.0, field, 0.0) * w))


def total_volume(mesh, layer_thickness: np.ndarray) -> float:
    """
    Ocean volume: sum of areaCell * h over active levels (m^3).
    """
    w = area_weights(mesh, mesh.cell_levels)
    return integrate(layer_thickness[: mesh.n_cells], w)


def total_kinetic_energy(mesh, layer_thickness: np.ndarray, kinetic_energy_cell: np.ndarray) -> float:
    """
    Thickness-weighted kinetic energy: sum of areaCell * h * KE (m^5 s^-2).
    """
    n = mesh.n_cells
    w = area_weights(mesh, mesh.cell_levels)
    return integrate(layer_thickness[:n] * kinetic_energy_cell[:n], w)


def column_net_transport(mesh, state, diagnostics) -> float:
    """
    Largest column mismatch between the surface transport velocity and the
    column-integrated thickness-flux convergence. Zero for a consistent pass.
    """
    n = mesh.n_cells
    h_edge = layer_thickness_edge(mesh, state.layer_thickness)
    terms = horizontal_divergence(mesh, state.normal_velocity, h_edge)
    convergence = -xp.sum(terms.thickness_flux_divergence, axis=1)
    ocean = xp.asarray(mesh.max_level_cell) > 0
    residual = xp.where(ocean, diagnostics.vert_velocity_top[:n, 0] - convergence, 0.0)
    return float(xp.max(xp.abs(residual))) if n else 0.0


def barotropic_residual(mesh, field: np.ndarray, layer_thickness_edge: np.ndarray) -> float:
    """
    Largest thickness-weighted vertical mean over ocean edges; zero once filtered.
    """
    ocean = xp.asarray(mesh.max_level_edge_top) > 0
    mean = barotropic_mean(mesh, field, layer_thickness_edge)
    return float(xp.max(xp.abs(xp.where(ocean, mean, 0.0)))) if mesh.n_edges else 0.0


@dataclass
class Invariants:
    volume: float
    ke: float
    ssh_mean: float
    w_surface_max: float


def invariants_from_pass(mesh, state, diagnostics) -> Invariants:
    """
    Compute invariants of one (state, diagnostics) pair.
    """
    n = mesh.n_cells
    ocean = xp.asarray(mesh.max_level_cell) > 0
    area = xp.asarray(mesh.area_cell)
    w_ocean = xp.where(ocean, area, 0.0)
    ocean_area = float(xp.sum(w_ocean))
    ssh = diagnostics.ssh[:n]
    ssh_mean = float(xp.sum(xp.where(ocean, ssh, 0.0) * w_ocean)) / ocean_area if ocean_area > 0 else 0.0
    w_top = xp.where(ocean, diagnostics.vert_velocity_top[:n, 0], 0.0)
    return Invariants(
        volume=total_volume(mesh, state.layer_thickness),
        ke=total_kinetic_energy(mesh, state.layer_thickness, diagnostics.kinetic_energy_cell),
        ssh_mean=ssh_mean,
        w_surface_max=float(xp.max(xp.abs(w_top))) if n else 0.0,
    )


def step_deltas(prev: Invariants, nxt: Invariants) -> dict[str, float]:
    """
    Return simple deltas (next - prev) for quick checks.
    """
    return {
        "d_volume": nxt.volume - prev.volume,
        "d_ke": nxt.ke - prev.ke,
        "d_ssh_mean": nxt.ssh_mean - prev.ssh_mean,
    }


def diagnostics_report(prev: Invariants, nxt: Invariants) -> dict[str, float]:
    """
    Convenience helper returning both absolute values and deltas in one dict.
    """
    d = step_deltas(prev, nxt)
    return {
        "volume_old": prev.volume,
        "ke_old": prev.ke,
        "ssh_mean_old": prev.ssh_mean,
        "volume_new": nxt.volume,
        "ke_new": nxt.ke,
        "ssh_mean_new": nxt.ssh_mean,
        "w_surface_max": nxt.w_surface_max,
        **d,
    }
