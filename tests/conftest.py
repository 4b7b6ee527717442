"""
pytest configuration for the diagnostics pipeline

Goals:
- keep tests fast and deterministic (small planar meshes, fixed seeds)
- keep the NumPy backend and silence [OcnDiag] console summaries
- provide meshes with flat and stepped bottom topography
- provide a closed basin whose boundary edges point at the dummy cell
"""

import dataclasses
import os
import sys

import numpy as np
import pytest

# Ensure project root on sys.path for 'pyocn' and 'scripts' imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from pyocn.mesh import cull_cells, planar_quad_mesh  # noqa: E402
from pyocn.state import seal_dummy_slots, zeros_ocean_state  # noqa: E402


@pytest.fixture(autouse=True)
def _pyocn_env(monkeypatch):
    # NumPy path only; the JAX switch is read once at import
    monkeypatch.setenv("PYOCN_USE_JAX", os.getenv("PYOCN_USE_JAX", "0"))
    # No console diagnostics unless a test enables them explicitly
    monkeypatch.setenv("PYOCN_DIAG", "0")
    monkeypatch.setenv("PYOCN_CHECK_SENTINELS", "0")
    yield


@pytest.fixture
def flat_mesh():
    """6 x 5 cells, 4 levels everywhere, f-plane."""
    return planar_quad_mesh(6, 5, 1.0e3, 4, f0=1.0e-4)


@pytest.fixture
def stepped_mesh():
    """7 x 6 cells with a stepped bottom (1 to 5 levels) and one land cell."""
    nx, ny, n_levels = 7, 6, 5
    rng = np.random.default_rng(7)
    mlc = rng.integers(1, n_levels + 1, size=nx * ny)
    mlc[3] = 0
    mlc[10] = n_levels
    return planar_quad_mesh(nx, ny, 2.0e3, n_levels, max_level_cell=mlc, f0=1.0e-4, beta=2.0e-11)


def _pad_cell_connectivity(mesh):
    """Append one unused slot per cell, as meshes with mixed polygons carry."""
    n = mesh.n_cells

    def pad(values, fill):
        return np.concatenate([values, np.full((n, 1), fill, dtype=values.dtype)], axis=1)

    return dataclasses.replace(
        mesh,
        edges_on_cell=pad(mesh.edges_on_cell, mesh.n_edges),
        vertices_on_cell=pad(mesh.vertices_on_cell, mesh.n_vertices),
        kite_index_on_cell=pad(mesh.kite_index_on_cell, 0),
        edge_sign_on_cell=pad(mesh.edge_sign_on_cell, 0.0),
    )


@pytest.fixture
def bounded_mesh():
    """6 x 5 closed basin cut from an 8 x 7 periodic mesh, stepped bottom, padded cell slots."""
    nx, ny, n_levels = 8, 7, 4
    rng = np.random.default_rng(11)
    mlc = rng.integers(1, n_levels + 1, size=nx * ny)
    full = planar_quad_mesh(nx, ny, 2.0e3, n_levels, max_level_cell=mlc, f0=1.0e-4, beta=2.0e-11)
    index = np.arange(full.n_cells)
    i, j = index % nx, index // nx
    keep = (i > 0) & (i < nx - 1) & (j > 0) & (j < ny - 1)
    return _pad_cell_connectivity(cull_cells(full, keep))


def _random_state(mesh, seed=0, *, speed=0.3):
    rng = np.random.default_rng(seed)
    state = zeros_ocean_state(mesh, layer_thickness=0.0)
    cells = mesh.cell_levels
    h = np.zeros((mesh.n_cells + 1, mesh.n_vert_levels))
    h[:-1][cells] = 50.0 + 100.0 * rng.random(int(cells.sum()))
    u = np.zeros((mesh.n_edges + 1, mesh.n_vert_levels))
    edges = mesh.edge_top_levels
    u[:-1][edges] = speed * (2.0 * rng.random(int(edges.sum())) - 1.0)
    tracers = np.zeros((2, mesh.n_cells + 1, mesh.n_vert_levels))
    depth = np.arange(mesh.n_vert_levels)[None, :]
    tracers[0, :-1] = np.where(cells, 20.0 - 3.0 * depth + rng.random(cells.shape), 0.0)
    tracers[1, :-1] = np.where(cells, 34.5 + 0.1 * depth, 0.0)
    state.layer_thickness = h
    state.normal_velocity = u
    state.tracers = tracers
    return seal_dummy_slots(state)


@pytest.fixture
def random_state():
    """Factory: random_state(mesh, seed=0, speed=0.3) -> sealed OceanState."""
    return _random_state
