"""
Barotropic-mode removal for split time stepping.

Per edge, the thickness-weighted vertical mean of a field is subtracted from
its active levels so that only the baroclinic (depth-varying) part remains.
The surface level always enters the weighted sums, which keeps edges with no
active level (land boundaries) free of a zero division; those edges are left
unchanged.
"""

from __future__ import annotations

import numpy as np

from .jax_compat import xp
from .mesh import Mesh


def barotropic_mean(mesh: Mesh, field: np.ndarray, layer_thickness_edge: np.ndarray) -> np.ndarray:
    """Thickness-weighted vertical mean per edge, (nEdges,)."""
    n = mesh.n_edges
    surface = xp.arange(mesh.n_vert_levels)[None, :] == 0
    in_sum = mesh.edge_top_levels | surface
    h = xp.where(in_sum, layer_thickness_edge[:n], 0.0)
    thickness_sum = xp.sum(h, axis=1)
    vert_sum = xp.sum(h * xp.where(in_sum, field[:n], 0.0), axis=1)
    safe = xp.where(thickness_sum != 0.0, thickness_sum, 1.0)
    return xp.where(thickness_sum != 0.0, vert_sum / safe, 0.0)


def filter_btr_mode(mesh: Mesh, field: np.ndarray, layer_thickness_edge: np.ndarray) -> np.ndarray:
    """Return `field` with its barotropic mean removed on k < max_level_edge_top."""
    n = mesh.n_edges
    mean = barotropic_mean(mesh, field, layer_thickness_edge)
    filtered = xp.where(mesh.edge_top_levels, field[:n] - mean[:, None], field[:n])
    return xp.concatenate([filtered, field[n:]], axis=0)


def filter_btr_mode_vel(mesh: Mesh, normal_velocity: np.ndarray, layer_thickness_edge: np.ndarray) -> np.ndarray:
    """Baroclinic part of the normal velocity."""
    return filter_btr_mode(mesh, normal_velocity, layer_thickness_edge)


def filter_btr_mode_tend_vel(mesh: Mesh, tend_normal_velocity: np.ndarray, layer_thickness_edge: np.ndarray) -> np.ndarray:
    """Baroclinic part of the normal-velocity tendency."""
    return filter_btr_mode(mesh, tend_normal_velocity, layer_thickness_edge)
