"""
Horizontal divergence and vertical transport velocity through layer interfaces.

Interface k sits on top of layer k, so a column with max_level_cell = m has
interfaces 0..m; interface m is the sea floor (no flux) and interface 0 is the
surface. Integrating the thickness-flux divergence upward from the floor gives

    w(k) = w(k+1) - div_hu(k)        k = m-1 .. 0

which makes w(0) the net column convergence. The ALE variant removes the
part of the column divergence that the moving coordinate absorbs, layer by
layer in proportion to vert_coord_movement_weights * h.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from .jax_compat import xp
from .mesh import Mesh
from .scratch import ScratchPool
from .stencil import active, neighbour_sum, reverse_cumsum, take


class DivergenceTerms(NamedTuple):
    divergence: np.ndarray  # (nCells+1, L), velocity divergence on active levels
    thickness_flux_divergence: np.ndarray  # (nCells, L), zero below the column
    kinetic_energy_edge: np.ndarray  # (nCells, L), edge-based cell KE, unmasked


def horizontal_divergence(mesh: Mesh, normal_velocity: np.ndarray, layer_thickness_edge: np.ndarray) -> DivergenceTerms:
    """
    Velocity divergence, thickness-flux divergence and edge-based kinetic energy.

    All three share one sweep over the edges of each cell:
        r = dvEdge * u / areaCell
        div     = -sum(sign * r)
        div_hu  = -sum(sign * h_edge * r)
        KE_edge = sum(0.25 * r * dcEdge * u)
    """
    eoc = mesh.edges_on_cell
    valid = mesh.edges_on_cell_valid
    dv = take(mesh.dv_edge, eoc, valid)
    dc = take(mesh.dc_edge, eoc, valid)
    area = xp.asarray(mesh.area_cell)[:, None, None]
    sign = xp.asarray(mesh.edge_sign_on_cell)[:, :, None]

    u = normal_velocity[eoc]
    r_tmp = dv[:, :, None] * u / area
    divergence = -neighbour_sum(sign * r_tmp, valid)
    flux_div = -neighbour_sum(sign * layer_thickness_edge[eoc] * r_tmp, valid)
    ke_edge = neighbour_sum(0.25 * r_tmp * dc[:, :, None] * u, valid)

    mask = mesh.cell_levels
    return DivergenceTerms(
        divergence=active(divergence, mask),
        thickness_flux_divergence=xp.where(mask, flux_div, 0.0),
        kinetic_energy_edge=ke_edge,
    )


def _integrate_upward(mesh: Mesh, layer_source: np.ndarray, *, clamp_surface: bool = False) -> np.ndarray:
    """w(k) = w(k+1) - source(k) from the floor, interfaces beyond the column at SENTINEL."""
    w = -reverse_cumsum(xp.where(mesh.cell_levels, layer_source, 0.0), axis=1)
    if clamp_surface:
        w = xp.where(xp.arange(w.shape[1])[None, :] == 0, 0.0, w)
    w = xp.concatenate([w, xp.zeros((mesh.n_cells, 1), dtype=w.dtype)], axis=1)
    return active(w, mesh.cell_interfaces)


def vert_velocity_top(mesh: Mesh, thickness_flux_divergence: np.ndarray) -> np.ndarray:
    """Vertical transport velocity at the top of each layer, (nCells+1, L+1)."""
    return _integrate_upward(mesh, thickness_flux_divergence)


def vert_transport_velocity_top(
    mesh: Mesh,
    layer_thickness: np.ndarray,
    layer_thickness_edge: np.ndarray,
    normal_velocity: np.ndarray,
    *,
    isopycnal: bool,
    scratch=None,
) -> np.ndarray:
    """
    Vertical transport velocity for a moving (ALE) vertical coordinate.

    The thickness flux is accumulated over the full edge-bottom range; the
    column total is redistributed by vert_coord_movement_weights, with the
    normalization skipped where the weighted thickness sum is zero. Both the
    surface and floor interfaces are held at zero. Isopycnal coordinates
    follow the flow, so the result is all zero there.
    """
    if scratch is None:
        scratch = ScratchPool()
    n_cells, n_levels = mesh.n_cells, mesh.n_vert_levels

    with scratch.scope("ale_transport") as tmp:
        tmp.zeros("div_hu", (n_cells, n_levels))
        if isopycnal:
            return xp.zeros((n_cells + 1, n_levels + 1))

        eoc = mesh.edges_on_cell
        valid = mesh.edges_on_cell_valid
        edge_bot = xp.concatenate(
            [xp.asarray(mesh.edge_bot_levels), xp.zeros((1, n_levels), dtype=bool)], axis=0
        )[eoc]
        dv = take(mesh.dv_edge, eoc, valid)[:, :, None]
        sign = xp.asarray(mesh.edge_sign_on_cell)[:, :, None]
        area = xp.asarray(mesh.area_cell)[:, None, None]

        flux = layer_thickness_edge[eoc] * normal_velocity[eoc] * dv * sign / area
        flux = xp.where(edge_bot & valid[:, :, None], flux, 0.0)
        tmp["div_hu"] = -xp.sum(flux, axis=1)
        div_btr = xp.sum(tmp["div_hu"], axis=1)[:, None]

        mask = mesh.cell_levels
        h = layer_thickness[:n_cells]
        weights = xp.asarray(mesh.vert_coord_movement_weights)[None, :]
        tmp["h_tend"] = xp.where(mask, -weights * h * div_btr, 0.0)
        weighted_sum = xp.sum(xp.where(mask, weights * h, 0.0), axis=1)[:, None]
        has_thickness = weighted_sum > 0.0
        safe_sum = xp.where(has_thickness, weighted_sum, 1.0)
        tmp["h_tend"] = xp.where(has_thickness, tmp["h_tend"] / safe_sum, tmp["h_tend"])

        return _integrate_upward(mesh, tmp["div_hu"] + tmp["h_tend"], clamp_surface=True)
