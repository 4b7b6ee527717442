"""
Cell kinetic energy: blend of an edge-based finite-volume estimate and a
vertex-reconstructed estimate.

    KE_cell = 5/8 * KE_edge + 3/8 * KE_vertex_on_cells

The blend suppresses the grid-scale null mode of the pure edge estimate. With
the cell-only scheme only the edge-based term contributes.
"""

from __future__ import annotations

import numpy as np

from .constants import KE_EDGE_WEIGHT, KE_VERTEX_WEIGHT
from .jax_compat import xp
from .mesh import Mesh
from .scratch import ScratchPool
from .stencil import active, neighbour_sum, take
from .vorticity import kite_average


def kinetic_energy_vertex(mesh: Mesh, normal_velocity: np.ndarray) -> np.ndarray:
    """Sum over incident edges of dc * dv * u^2 / (4 * areaTriangle), all levels, (nVertices, L)."""
    eov = mesh.edges_on_vertex
    valid = mesh.edges_on_vertex_valid
    dc = take(mesh.dc_edge, eov, valid)
    dv = take(mesh.dv_edge, eov, valid)
    r_tmp = dc * dv * 0.25 / xp.asarray(mesh.area_triangle)[:, None]
    return neighbour_sum(r_tmp[:, :, None] * normal_velocity[eov] ** 2, valid)


def kinetic_energy_vertex_on_cells(mesh: Mesh, ke_vertex: np.ndarray) -> np.ndarray:
    """Kite-area weighted vertex kinetic energy at cells, all levels, (nCells, L)."""
    return kite_average(mesh, ke_vertex)


def blend_kinetic_energy(ke_edge: np.ndarray, ke_vertex_on_cells: np.ndarray) -> np.ndarray:
    return KE_EDGE_WEIGHT * ke_edge + KE_VERTEX_WEIGHT * ke_vertex_on_cells


def kinetic_energy_cell(
    mesh: Mesh,
    ke_edge: np.ndarray,
    normal_velocity: np.ndarray,
    *,
    include_vertex: bool,
    scratch=None,
) -> np.ndarray:
    """
    Final cell kinetic energy on active cell levels, (nCells+1, L).

    Parameters
    ----------
    ke_edge : (nCells, L) edge-based estimate from `horizontal_divergence`
    include_vertex : blend in the vertex-reconstructed estimate
    scratch : optional ScratchPool holding the vertex temporaries
    """
    ke = ke_edge[: mesh.n_cells]
    if include_vertex:
        if scratch is None:
            scratch = ScratchPool()
        with scratch.scope("kinetic_energy") as tmp:
            tmp["vertex"] = kinetic_energy_vertex(mesh, normal_velocity)
            tmp["vertex_on_cells"] = kinetic_energy_vertex_on_cells(mesh, tmp["vertex"])
            ke = blend_kinetic_energy(ke, tmp["vertex_on_cells"])
    return active(ke, mesh.cell_levels)
