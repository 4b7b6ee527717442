"""
Densities, pressure and mid-layer depth.

Densities come from the equation-of-state collaborator (three calls per
pass) unless the vertical coordinate is isopycnal, in which case the layer
densities are carried in the state. Pressure is then integrated down the
column in one of two modes:

- Montgomery potential (isopycnal): pTop(0) = 0, M(0) = g * (D + sum(h)),
      pTop(k) = pTop(k-1) + rho(k-1) * g * h(k-1)
      M(k)    = M(k-1) + pTop(k) * (1/rho(k) - 1/rho(k-1))
  integrated over the active levels of the column (k < maxLevelCell);
  inactive levels contribute zero thickness and unit density.
- generalized hydrostatic: p(0) = p_surface + 0.5 * g * rho(0) * h(0),
      p(k) = p(k-1) + 0.5 * g * (rho(k-1) * h(k-1) + rho(k) * h(k))
  on active levels.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from .constants import GRAVITY
from .errors import EquationOfStateError
from .jax_compat import xp
from .mesh import Mesh
from .stencil import active, reverse_cumsum

# (field name, k_displaced, displacement_type)
EOS_CALLS = (
    ("density", 0, "relative"),
    ("potential_density", 1, "absolute"),
    ("displaced_density", 1, "relative"),
)


class Densities(NamedTuple):
    density: np.ndarray  # (nCells+1, L)
    potential_density: np.ndarray
    displaced_density: np.ndarray


def _checked_density(mesh: Mesh, rho, name: str) -> np.ndarray:
    n, n_levels = mesh.n_cells, mesh.n_vert_levels
    rho = xp.asarray(rho)
    if rho.ndim != 2 or rho.shape[1] != n_levels or rho.shape[0] not in (n, n + 1):
        raise EquationOfStateError(
            f"{name}: expected shape ({n}, {n_levels}) or ({n + 1}, {n_levels}), got {tuple(rho.shape)}"
        )
    rho = rho[:n]
    bad = mesh.cell_levels & ~xp.isfinite(rho)
    if bool(xp.any(bad)):
        raise EquationOfStateError(f"{name}: {int(xp.sum(bad))} active entries are not finite")
    return active(rho, mesh.cell_levels)


def compute_densities(mesh: Mesh, state, eos, *, isopycnal: bool) -> Densities:
    """
    In-situ, potential and displaced density on active cell levels.

    Raises
    ------
    EquationOfStateError
        The collaborator raised, returned a wrongly shaped array, or produced
        non-finite density on an active level; or isopycnal densities are
        missing from the state.
    """
    if isopycnal:
        fields = {}
        for name, _, _ in EOS_CALLS:
            carried = getattr(state, name)
            if carried is None:
                raise EquationOfStateError(f"{name}: isopycnal coordinates require the state to carry it")
            fields[name] = _checked_density(mesh, carried, name)
        return Densities(**fields)

    if eos is None:
        raise EquationOfStateError("no equation of state supplied")
    fields = {}
    for name, k_displaced, displacement_type in EOS_CALLS:
        try:
            rho = eos.density(mesh, state, k_displaced, displacement_type)
        except EquationOfStateError:
            raise
        except Exception as exc:
            raise EquationOfStateError(f"{name}: equation of state failed: {exc}") from exc
        fields[name] = _checked_density(mesh, rho, name)
    return Densities(**fields)


def montgomery_potential(
    mesh: Mesh, layer_thickness: np.ndarray, density: np.ndarray, *, gravity: float = GRAVITY
) -> tuple[np.ndarray, np.ndarray]:
    """
    Pressure at the top of each layer and Montgomery potential, (nCells+1, L) each.

    The surface pressure is taken as zero in this mode. Only active levels
    enter the column sums; values below max_level_cell are sentinel.
    """
    n = mesh.n_cells
    mask = mesh.cell_levels
    h = xp.where(mask, layer_thickness[:n], 0.0)
    rho = xp.where(mask, density[:n], 1.0)
    column = xp.asarray(mesh.bottom_depth) + xp.sum(h, axis=1)

    weight = rho * gravity * h
    p_top = xp.cumsum(weight, axis=1) - weight
    inv_rho = 1.0 / rho
    step = p_top[:, 1:] * (inv_rho[:, 1:] - inv_rho[:, :-1])
    m_top = (gravity * column)[:, None]
    m = xp.concatenate([m_top, m_top + xp.cumsum(step, axis=1)], axis=1)
    return active(p_top, mask), active(m, mask)


def hydrostatic_pressure(
    mesh: Mesh, layer_thickness: np.ndarray, density: np.ndarray, *, gravity: float = GRAVITY
) -> np.ndarray:
    """Mid-layer pressure by trapezoidal integration from the sea surface, (nCells+1, L)."""
    n = mesh.n_cells
    mask = mesh.cell_levels
    rho_h = xp.where(mask, density[:n] * layer_thickness[:n], 0.0)
    surface = xp.asarray(mesh.sea_surface_pressure)[:, None]
    pressure = surface + gravity * (xp.cumsum(rho_h, axis=1) - 0.5 * rho_h)
    return active(pressure, mask)


def z_mid(mesh: Mesh, layer_thickness: np.ndarray) -> np.ndarray:
    """Depth of each layer's midpoint, negative below the surface, (nCells+1, L)."""
    n = mesh.n_cells
    mask = mesh.cell_levels
    h = xp.where(mask, layer_thickness[:n], 0.0)
    below = reverse_cumsum(h, axis=1) - h
    depth = -xp.asarray(mesh.bottom_depth)[:, None] + below + 0.5 * h
    return active(depth, mask)
