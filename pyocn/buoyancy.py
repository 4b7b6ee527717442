"""Brunt-Vaisala frequency and sea-surface height."""

from __future__ import annotations

import numpy as np

from .constants import DENSITY0, GRAVITY
from .jax_compat import xp
from .mesh import Mesh
from .stencil import active, with_dummy


def brunt_vaisala_freq_top(
    mesh: Mesh,
    density: np.ndarray,
    displaced_density: np.ndarray,
    z_mid: np.ndarray,
    *,
    gravity: float = GRAVITY,
    density0: float = DENSITY0,
) -> np.ndarray:
    """
    Squared buoyancy frequency at the top interface of each layer, (nCells+1, L).

        N2(k) = -(g / rho0) * (rho_displaced(k-1) - rho(k)) / (zMid(k-1) - zMid(k))

    rho_displaced(k-1) is layer k-1 brought adiabatically to layer k, so the
    difference measures the static stability of the interface. N2(0) = 0.
    """
    n = mesh.n_cells
    mask = mesh.cell_levels
    d_rho = displaced_density[:n, :-1] - density[:n, 1:]
    d_z = z_mid[:n, :-1] - z_mid[:n, 1:]
    interior = mask[:, 1:]
    d_z = xp.where(interior, d_z, 1.0)
    n2 = xp.where(interior, -(gravity / density0) * d_rho / d_z, 0.0)
    n2 = xp.concatenate([xp.zeros((n, 1), dtype=n2.dtype), n2], axis=1)
    return active(n2, mask)


def sea_surface_height(mesh: Mesh, layer_thickness: np.ndarray) -> np.ndarray:
    """-bottomDepth + column thickness over active levels, (nCells+1,)."""
    n = mesh.n_cells
    column = xp.sum(xp.where(mesh.cell_levels, layer_thickness[:n], 0.0), axis=1)
    return with_dummy(-xp.asarray(mesh.bottom_depth) + column)
