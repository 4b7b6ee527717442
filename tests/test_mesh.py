import dataclasses

import numpy as np
import pytest

from pyocn import DiagnosticSolver, DiagnosticsConfig
from pyocn.constants import SENTINEL
from pyocn.errors import MeshError
from pyocn.mesh import cull_cells, derive_max_levels, load_mesh, planar_quad_mesh
from pyocn.thickness import layer_thickness_edge


def test_derive_max_levels_min_max_and_dummy_neighbours():
    mlc = np.array([3, 1, 0])
    # dummy slot is index 3 (= nCells)
    cells_on_edge = np.array([[0, 1], [1, 2], [0, 3]])
    cells_on_vertex = np.array([[0, 1, 2], [0, 3, 3]])
    edge_top, edge_bot, vertex_bot, vertex_top = derive_max_levels(mlc, cells_on_edge, cells_on_vertex)
    np.testing.assert_array_equal(edge_top, [1, 0, 0])
    np.testing.assert_array_equal(edge_bot, [3, 1, 3])
    np.testing.assert_array_equal(vertex_bot, [3, 3])
    np.testing.assert_array_equal(vertex_top, [0, 0])


def test_planar_mesh_signs_are_antisymmetric(flat_mesh):
    m = flat_mesh
    # each edge is outward for its first cell and inward for its second
    for c in range(m.n_cells):
        for j in range(m.n_edges_on_cell[c]):
            e = m.edges_on_cell[c, j]
            expected = -1.0 if m.cells_on_edge[e, 0] == c else 1.0
            assert m.edge_sign_on_cell[c, j] == expected
    # every edge contributes +1 and -1 exactly once across all vertices
    totals = np.zeros(m.n_edges)
    np.add.at(totals, m.edges_on_vertex.ravel(), m.edge_sign_on_vertex.ravel())
    np.testing.assert_array_equal(totals, 0.0)


def test_planar_mesh_kites_tile_cells(flat_mesh):
    m = flat_mesh
    kites = m.kite_areas_on_vertex[m.vertices_on_cell, m.kite_index_on_cell]
    np.testing.assert_allclose(kites.sum(axis=1), m.area_cell)
    # the kite slot points back at the cell
    cells = m.cells_on_vertex[m.vertices_on_cell, m.kite_index_on_cell]
    np.testing.assert_array_equal(cells, np.broadcast_to(np.arange(m.n_cells)[:, None], cells.shape))


def test_level_masks_follow_max_levels(stepped_mesh):
    m = stepped_mesh
    assert m.cell_levels.shape == (m.n_cells, m.n_vert_levels)
    np.testing.assert_array_equal(m.cell_levels.sum(axis=1), m.max_level_cell)
    np.testing.assert_array_equal(m.edge_top_levels.sum(axis=1), m.max_level_edge_top)
    assert np.all(m.max_level_edge_bot >= m.max_level_edge_top)
    # land cell has no interfaces at all
    assert not m.cell_interfaces[3].any()
    np.testing.assert_array_equal(m.cell_interfaces[10], True)


def test_validate_rejects_bad_shapes(flat_mesh):
    with pytest.raises(MeshError):
        dataclasses.replace(flat_mesh, area_cell=np.ones(flat_mesh.n_cells + 2))
    with pytest.raises(MeshError):
        dataclasses.replace(flat_mesh, max_level_cell=np.full(flat_mesh.n_cells, 99))
    with pytest.raises(MeshError):
        planar_quad_mesh(2, 5, 1.0, 3)


def _write_mpas_file(path, m):
    from netCDF4 import Dataset

    def one_based(index, n):
        index = np.asarray(index)
        return np.where(index < n, index + 1, 0).astype("i4")

    with Dataset(path, "w") as ds:
        ds.createDimension("Time", None)
        ds.createDimension("nCells", m.n_cells)
        ds.createDimension("nEdges", m.n_edges)
        ds.createDimension("nVertices", m.n_vertices)
        ds.createDimension("maxEdges", m.edges_on_cell.shape[1])
        ds.createDimension("maxEdges2", m.edges_on_edge.shape[1])
        ds.createDimension("TWO", 2)
        ds.createDimension("vertexDegree", m.vertex_degree)
        ds.createDimension("nVertLevels", m.n_vert_levels)

        def put(name, dims, data, dtype="f8"):
            var = ds.createVariable(name, dtype, dims)
            var[...] = data

        put("cellsOnEdge", ("nEdges", "TWO"), one_based(m.cells_on_edge, m.n_cells), "i4")
        put("verticesOnEdge", ("nEdges", "TWO"), one_based(m.vertices_on_edge, m.n_vertices), "i4")
        put("edgesOnCell", ("nCells", "maxEdges"), one_based(m.edges_on_cell, m.n_edges), "i4")
        put("verticesOnCell", ("nCells", "maxEdges"), one_based(m.vertices_on_cell, m.n_vertices), "i4")
        put("edgesOnEdge", ("nEdges", "maxEdges2"), one_based(m.edges_on_edge, m.n_edges), "i4")
        put("edgesOnVertex", ("nVertices", "vertexDegree"), one_based(m.edges_on_vertex, m.n_edges), "i4")
        put("cellsOnVertex", ("nVertices", "vertexDegree"), one_based(m.cells_on_vertex, m.n_cells), "i4")
        put("nEdgesOnCell", ("nCells",), m.n_edges_on_cell, "i4")
        put("nEdgesOnEdge", ("nEdges",), m.n_edges_on_edge, "i4")
        put("weightsOnEdge", ("nEdges", "maxEdges2"), m.weights_on_edge)
        put("fVertex", ("nVertices",), m.f_vertex)
        put("fEdge", ("nEdges",), m.f_edge)
        put("maxLevelCell", ("nCells",), m.max_level_cell, "i4")
        put("bottomDepth", ("nCells",), m.bottom_depth)
        put("dcEdge", ("nEdges",), m.dc_edge)
        put("dvEdge", ("nEdges",), m.dv_edge)
        put("areaCell", ("nCells",), m.area_cell)
        put("areaTriangle", ("nVertices",), m.area_triangle)
        put("kiteAreasOnVertex", ("nVertices", "vertexDegree"), m.kite_areas_on_vertex)
        ssp = ds.createVariable("seaSurfacePressure", "f8", ("Time", "nCells"))
        ssp[0, :] = np.full(m.n_cells, 101325.0)


def test_load_mesh_round_trip(tmp_path, stepped_mesh):
    pytest.importorskip("netCDF4")
    path = tmp_path / "mesh.nc"
    _write_mpas_file(str(path), stepped_mesh)

    loaded = load_mesh(str(path))
    ref = stepped_mesh
    assert (loaded.n_cells, loaded.n_edges, loaded.n_vertices) == (ref.n_cells, ref.n_edges, ref.n_vertices)
    assert loaded.n_vert_levels == ref.n_vert_levels
    np.testing.assert_array_equal(loaded.cells_on_edge, ref.cells_on_edge)
    np.testing.assert_array_equal(loaded.edges_on_vertex, ref.edges_on_vertex)
    np.testing.assert_array_equal(loaded.edge_sign_on_cell, ref.edge_sign_on_cell)
    np.testing.assert_array_equal(loaded.edge_sign_on_vertex, ref.edge_sign_on_vertex)
    np.testing.assert_array_equal(loaded.kite_index_on_cell, ref.kite_index_on_cell)
    np.testing.assert_array_equal(loaded.max_level_edge_top, ref.max_level_edge_top)
    np.testing.assert_array_equal(loaded.max_level_vertex_bot, ref.max_level_vertex_bot)
    np.testing.assert_allclose(loaded.sea_surface_pressure, 101325.0)
    np.testing.assert_allclose(loaded.vert_coord_movement_weights, 1.0)


def test_load_mesh_missing_variable(tmp_path):
    netCDF4 = pytest.importorskip("netCDF4")
    path = tmp_path / "broken.nc"
    with netCDF4.Dataset(str(path), "w") as ds:
        for name, size in (("nCells", 3), ("nEdges", 4), ("nVertices", 2), ("vertexDegree", 3)):
            ds.createDimension(name, size)
    with pytest.raises(MeshError, match="cellsOnEdge"):
        load_mesh(str(path))


def _boundary_edges(m):
    return np.any(m.cells_on_edge == m.n_cells, axis=1)


def test_cull_cells_closed_basin(bounded_mesh):
    m = bounded_mesh
    assert (m.n_cells, m.n_edges, m.n_vertices) == (30, 71, 42)
    boundary = _boundary_edges(m)
    assert int(boundary.sum()) == 22
    # every reference to a removed entity points at the dummy slot
    assert np.all(m.cells_on_edge <= m.n_cells)
    assert np.all(m.edges_on_edge <= m.n_edges)
    np.testing.assert_array_equal(m.weights_on_edge[m.edges_on_edge == m.n_edges], 0.0)
    # the kite areas of real cells still tile each cell
    valid = m.vertices_on_cell_valid
    safe = np.minimum(m.vertices_on_cell, m.n_vertices - 1)
    kites = np.where(valid, m.kite_areas_on_vertex[safe, m.kite_index_on_cell], 0.0)
    np.testing.assert_allclose(kites.sum(axis=1), m.area_cell)


def test_boundary_edges_have_no_top_levels(bounded_mesh):
    m = bounded_mesh
    boundary = _boundary_edges(m)
    real = np.where(m.cells_on_edge[:, 0] == m.n_cells, m.cells_on_edge[:, 1], m.cells_on_edge[:, 0])
    np.testing.assert_array_equal(m.max_level_edge_top[boundary], 0)
    np.testing.assert_array_equal(m.max_level_edge_bot[boundary], m.max_level_cell[real[boundary]])
    # boundary vertices touch the dummy cell
    corner = np.any(m.cells_on_vertex == m.n_cells, axis=1)
    np.testing.assert_array_equal(m.max_level_vertex_top[corner], 0)
    assert np.all(m.max_level_vertex_bot[corner] > 0)


def test_boundary_edge_thickness_is_sentinel(bounded_mesh, random_state):
    m = bounded_mesh
    h_edge = layer_thickness_edge(m, random_state(m).layer_thickness)
    assert np.all(h_edge[:-1][_boundary_edges(m)] == SENTINEL)
    assert np.all(np.isfinite(h_edge))


def test_cull_cells_rejects_bad_mask(flat_mesh):
    with pytest.raises(MeshError, match="cull_cells"):
        cull_cells(flat_mesh, np.ones(flat_mesh.n_cells + 1, dtype=bool))


def test_load_bounded_mesh_and_solve(tmp_path, bounded_mesh, random_state):
    pytest.importorskip("netCDF4")
    path = tmp_path / "basin.nc"
    _write_mpas_file(str(path), bounded_mesh)

    loaded = load_mesh(str(path))
    np.testing.assert_array_equal(loaded.cells_on_edge, bounded_mesh.cells_on_edge)
    np.testing.assert_array_equal(loaded.edges_on_cell, bounded_mesh.edges_on_cell)
    np.testing.assert_array_equal(loaded.max_level_edge_top, bounded_mesh.max_level_edge_top)
    np.testing.assert_array_equal(loaded.max_level_vertex_top, bounded_mesh.max_level_vertex_top)
    np.testing.assert_array_equal(loaded.edge_sign_on_cell, bounded_mesh.edge_sign_on_cell)

    cfg = DiagnosticsConfig(apvm_scale_factor=0.5, include_ke_vertex=True, check_sentinels=True)
    diag = DiagnosticSolver(loaded, cfg).solve(random_state(loaded), dt=300.0)
    assert np.all(np.isfinite(diag.kinetic_energy_cell))
