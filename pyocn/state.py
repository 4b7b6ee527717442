from __future__ import annotations

from dataclasses import dataclass, fields, replace

import numpy as np
from numpy.typing import DTypeLike

from .constants import SENTINEL
from .jax_compat import xp
from .mesh import Mesh


@dataclass
class OceanState:
    """Prognostic ocean fields. Per-entity arrays carry one trailing dummy row."""

    layer_thickness: np.ndarray  # (nCells+1, nVertLevels) (m)
    normal_velocity: np.ndarray  # (nEdges+1, nVertLevels) (m/s)
    tracers: np.ndarray  # (nTracers, nCells+1, nVertLevels)
    index_temperature: int = 0
    index_salinity: int = 1
    # baroclinic part of the velocity, used by explicit Coriolis reconstruction
    normal_baroclinic_velocity: np.ndarray | None = None
    # layer densities carried by isopycnal coordinates (not recomputed there)
    density: np.ndarray | None = None
    displaced_density: np.ndarray | None = None
    potential_density: np.ndarray | None = None

    @property
    def temperature(self) -> np.ndarray:
        return self.tracers[self.index_temperature]

    @property
    def salinity(self) -> np.ndarray:
        return self.tracers[self.index_salinity]


@dataclass
class Diagnostics:
    """Derived fields of one diagnostic pass. Inactive entries hold SENTINEL."""

    layer_thickness_edge: np.ndarray  # (nEdges+1, L)
    circulation: np.ndarray  # (nVertices+1, L)
    relative_vorticity: np.ndarray  # (nVertices+1, L)
    relative_vorticity_cell: np.ndarray  # (nCells+1, L)
    divergence: np.ndarray  # (nCells+1, L)
    kinetic_energy_cell: np.ndarray  # (nCells+1, L)
    tangential_velocity: np.ndarray  # (nEdges+1, L)
    normalized_relative_vorticity_edge: np.ndarray  # (nEdges+1, L)
    normalized_planetary_vorticity_edge: np.ndarray  # (nEdges+1, L)
    normalized_relative_vorticity_cell: np.ndarray  # (nCells+1, L)
    density: np.ndarray  # (nCells+1, L)
    displaced_density: np.ndarray
    potential_density: np.ndarray
    pressure: np.ndarray  # (nCells+1, L), generalized-coordinate pressure (Pa)
    montgomery_potential: np.ndarray  # (nCells+1, L), isopycnal mode only
    z_mid: np.ndarray  # (nCells+1, L), negative below the surface (m)
    brunt_vaisala_freq_top: np.ndarray  # (nCells+1, L), N^2 at the top of each layer
    ssh: np.ndarray  # (nCells+1,)
    vert_velocity_top: np.ndarray  # (nCells+1, L+1)
    bolus_velocity: np.ndarray  # (nEdges+1, L)

    def potential_vorticity_edge(self, f_coef: float, edge_bot_levels: np.ndarray) -> np.ndarray:
        """
        Edge potential vorticity used by the momentum tendency.

        f_coef = 1 folds planetary vorticity in ((eta + f) / h, RK4);
        f_coef = 0 leaves eta / h when Coriolis is added separately.
        """
        n = edge_bot_levels.shape[0]
        pv = self.normalized_relative_vorticity_edge[:n] + f_coef * self.normalized_planetary_vorticity_edge[:n]
        pv = xp.where(edge_bot_levels, pv, SENTINEL)
        return xp.concatenate([pv, xp.full((1, pv.shape[1]), SENTINEL)], axis=0)

    def as_dict(self) -> dict[str, np.ndarray]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# ---------- Helpers to construct state ----------


def zeros_ocean_state(
    mesh: Mesh,
    *,
    n_tracers: int = 2,
    layer_thickness: float = 0.0,
    dtype: DTypeLike = np.float64,
    include_layer_density: bool = False,
) -> OceanState:
    """Construct an OceanState with zero-filled active slots and sentinel dummy slots.

    Parameters
    ----------
    mesh : Mesh
        Defines entity counts and vertical levels.
    n_tracers : int
        Number of tracers (temperature and salinity occupy indices 0 and 1).
    layer_thickness : float
        Uniform initial thickness on active cell levels (m).
    dtype : numpy dtype
        Data type for all arrays.
    include_layer_density : bool
        Allocate the carried densities needed by isopycnal coordinates.

    Returns
    -------
    OceanState
    """
    n_levels = mesh.n_vert_levels
    h = np.zeros((mesh.n_cells + 1, n_levels), dtype=dtype)
    h[:-1][mesh.cell_levels] = layer_thickness
    u = np.zeros((mesh.n_edges + 1, n_levels), dtype=dtype)
    tracers = np.zeros((n_tracers, mesh.n_cells + 1, n_levels), dtype=dtype)
    state = OceanState(layer_thickness=h, normal_velocity=u, tracers=tracers)
    if include_layer_density:
        state.density = np.zeros((mesh.n_cells + 1, n_levels), dtype=dtype)
        state.displaced_density = np.zeros_like(state.density)
        state.potential_density = np.zeros_like(state.density)
    return seal_dummy_slots(state)


def seal_dummy_slots(state: OceanState) -> OceanState:
    """
    Return a copy of the state whose dummy slots carry SENTINEL.

    Covers velocity, thickness, temperature and salinity, so any stencil that
    reads a missing neighbour produces detectably invalid values.
    """
    h = xp.asarray(state.layer_thickness)
    u = xp.asarray(state.normal_velocity)
    tracers = xp.asarray(state.tracers)
    h = xp.concatenate([h[:-1], xp.full((1, h.shape[1]), SENTINEL, dtype=h.dtype)], axis=0)
    u = xp.concatenate([u[:-1], xp.full((1, u.shape[1]), SENTINEL, dtype=u.dtype)], axis=0)
    rows = xp.arange(tracers.shape[0])[:, None, None]
    last = xp.arange(tracers.shape[1])[None, :, None] == tracers.shape[1] - 1
    sealed = ((rows == state.index_temperature) | (rows == state.index_salinity)) & last
    tracers = xp.where(sealed, SENTINEL, tracers)
    return replace(state, layer_thickness=h, normal_velocity=u, tracers=tracers)
