"""
Vorticity kernels on the TRiSK dual mesh.

Circulation and relative vorticity live at vertices; cell values are kite-area
weighted averages of the surrounding vertices; edge values are the mean of the
edge's two vertices. Normalized ("potential") vorticity divides by the
kite-weighted layer thickness at the vertex.

Level bounds (k < bound):
  vertex quantities   max_level_vertex_bot
  cell averages       max_level_cell
  edge PV             max_level_edge_bot (one ring deeper than edge top)
  APVM normal grad    max_level_edge_top
  APVM tangent grad   max_level_edge_bot
"""

from __future__ import annotations

import numpy as np

from .constants import APVM_MIN_SCALE, SENTINEL
from .jax_compat import xp
from .mesh import Mesh
from .stencil import active, neighbour_sum, take, with_dummy


def circulation_and_vorticity(mesh: Mesh, normal_velocity: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Circulation around each dual cell and relative vorticity (circulation / area).

    Returns
    -------
    circulation, relative_vorticity : (nVertices+1, L)
    """
    eov = mesh.edges_on_vertex
    valid = mesh.edges_on_vertex_valid
    dc = take(mesh.dc_edge, eov, valid)
    r_tmp = (dc * mesh.edge_sign_on_vertex)[:, :, None] * normal_velocity[eov]
    circulation = neighbour_sum(r_tmp, valid)
    relative_vorticity = circulation / xp.asarray(mesh.area_triangle)[:, None]
    mask = mesh.vertex_bot_levels
    return active(circulation, mask), active(relative_vorticity, mask)


def kite_average(mesh: Mesh, vertex_field: np.ndarray) -> np.ndarray:
    """
    Kite-area weighted average of a vertex field onto cells, (nCells, L), unmasked.

    `vertex_field` may carry the dummy row or not; dummy and padded slots of
    vertices_on_cell never contribute.
    """
    valid = mesh.vertices_on_cell_valid
    safe = np.minimum(mesh.vertices_on_cell, mesh.n_vertices - 1)
    kite = xp.where(valid, xp.asarray(mesh.kite_areas_on_vertex)[safe, mesh.kite_index_on_cell], 0.0)
    total = neighbour_sum(kite[:, :, None] * vertex_field[safe], valid)
    return total / xp.asarray(mesh.area_cell)[:, None]


def vorticity_cell(mesh: Mesh, relative_vorticity: np.ndarray) -> np.ndarray:
    """Cell-centered relative vorticity, (nCells+1, L)."""
    return active(kite_average(mesh, relative_vorticity), mesh.cell_levels)


def thickness_vertex(mesh: Mesh, layer_thickness: np.ndarray) -> np.ndarray:
    """Kite-area weighted layer thickness at vertices, (nVertices, L), unmasked."""
    cov = mesh.cells_on_vertex
    valid = mesh.cells_on_vertex_valid
    kite = xp.where(valid, xp.asarray(mesh.kite_areas_on_vertex), 0.0)
    total = neighbour_sum(kite[:, :, None] * layer_thickness[cov], valid)
    return total / xp.asarray(mesh.area_triangle)[:, None]


def normalized_vorticity_vertex(
    mesh: Mesh, relative_vorticity: np.ndarray, layer_thickness: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """
    Relative and planetary vorticity divided by the vertex layer thickness.

    Returns
    -------
    normalized_relative, normalized_planetary : (nVertices+1, L)
    """
    mask = mesh.vertex_bot_levels
    h_vertex = xp.where(mask, thickness_vertex(mesh, layer_thickness), 1.0)
    nrv = relative_vorticity[: mesh.n_vertices] / h_vertex
    npv = xp.asarray(mesh.f_vertex)[:, None] / h_vertex
    return active(nrv, mask), active(npv, mask)


def normalized_vorticity_edge(mesh: Mesh, vertex_field: np.ndarray) -> np.ndarray:
    """Mean of the edge's two vertex values on k < max_level_edge_bot, (nEdges+1, L)."""
    vertex1 = mesh.vertices_on_edge[:, 0]
    vertex2 = mesh.vertices_on_edge[:, 1]
    mean = 0.5 * (vertex_field[vertex1] + vertex_field[vertex2])
    return active(mean, mesh.edge_bot_levels)


def normalized_vorticity_cell(mesh: Mesh, normalized_relative_vertex: np.ndarray) -> np.ndarray:
    """Kite-area weighted normalized relative vorticity at cells, (nCells+1, L)."""
    return active(kite_average(mesh, normalized_relative_vertex), mesh.cell_levels)


def apvm_enabled(scale_factor: float) -> bool:
    return scale_factor > APVM_MIN_SCALE


def apvm_gradients(
    mesh: Mesh, normalized_relative_cell: np.ndarray, normalized_relative_vertex: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """
    Normal and tangential gradients of normalized relative vorticity on edges.

    The normal gradient covers edges bounding real cells (k < edge top); the
    tangential gradient reaches one ring deeper (k < edge bot). Both are zero
    outside their range. Returns (nEdges, L) work arrays.
    """
    cell1 = mesh.cells_on_edge[:, 0]
    cell2 = mesh.cells_on_edge[:, 1]
    vertex1 = mesh.vertices_on_edge[:, 0]
    vertex2 = mesh.vertices_on_edge[:, 1]

    grad_normal = (
        normalized_relative_cell[cell2] - normalized_relative_cell[cell1]
    ) / xp.asarray(mesh.dc_edge)[:, None]
    grad_tangential = (
        normalized_relative_vertex[vertex2] - normalized_relative_vertex[vertex1]
    ) / xp.asarray(mesh.dv_edge)[:, None]
    return (
        xp.where(mesh.edge_top_levels, grad_normal, 0.0),
        xp.where(mesh.edge_bot_levels, grad_tangential, 0.0),
    )


def apply_apvm(
    mesh: Mesh,
    normalized_relative_edge: np.ndarray,
    normal_velocity: np.ndarray,
    tangential_velocity: np.ndarray,
    grad_normal: np.ndarray,
    grad_tangential: np.ndarray,
    scale_factor: float,
    dt: float,
) -> np.ndarray:
    """
    Anticipated Potential Vorticity Method: upstream-biased edge PV.

    pv_e -= scale * dt * (u * dpv/dn + v * dpv/dt) on k < max_level_edge_bot.
    Must be applied to the fully computed unbiased edge PV. Returns the input
    unchanged when scale_factor does not exceed APVM_MIN_SCALE.
    """
    if not apvm_enabled(scale_factor):
        return normalized_relative_edge
    n = mesh.n_edges
    # tangential velocity is only reconstructed down to the edge top level
    v_t = xp.where(mesh.edge_top_levels, tangential_velocity[:n], 0.0)
    correction = scale_factor * dt * (normal_velocity[:n] * grad_normal + v_t * grad_tangential)
    biased = xp.where(mesh.edge_bot_levels, normalized_relative_edge[:n] - correction, SENTINEL)
    return with_dummy(biased)
