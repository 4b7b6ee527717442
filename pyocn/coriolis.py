"""TRiSK tangential reconstruction and the explicit perpendicular Coriolis term."""

from __future__ import annotations

import numpy as np

from .jax_compat import xp
from .mesh import Mesh
from .stencil import active, neighbour_sum, take


def tangential_velocity(mesh: Mesh, normal_velocity: np.ndarray) -> np.ndarray:
    """Sum of weightsOnEdge * u over edgesOnEdge on k < max_level_edge_top, (nEdges+1, L)."""
    eoe = mesh.edges_on_edge
    valid = mesh.edges_on_edge_valid
    weights = xp.where(valid, xp.asarray(mesh.weights_on_edge), 0.0)
    v = neighbour_sum(weights[:, :, None] * normal_velocity[eoe], valid)
    return active(v, mesh.edge_top_levels)


def fuperp(mesh: Mesh, velocity: np.ndarray, normal_baroclinic_velocity: np.ndarray) -> np.ndarray:
    """
    f * u_perp on owned edges, written over a copy of `velocity`.

    For edges below n_edges_solve and k < max_level_edge_top:
        result = sum_j weightsOnEdge * u_bc(eoe_j) * fEdge(eoe_j)
    every other entry of `velocity` passes through unchanged.
    """
    eoe = mesh.edges_on_edge
    valid = mesh.edges_on_edge_valid
    n = mesh.n_edges
    weights = xp.where(valid, xp.asarray(mesh.weights_on_edge), 0.0) * take(mesh.f_edge, eoe, valid)
    f_u_perp = neighbour_sum(weights[:, :, None] * normal_baroclinic_velocity[eoe], valid)
    owned = (np.arange(n) < mesh.n_edges_solve)[:, None] & mesh.edge_top_levels
    result = xp.where(owned, f_u_perp, velocity[:n])
    return xp.concatenate([result, velocity[n:]], axis=0)
