# pyocn/mesh.py

"""
Unstructured C-grid (TRiSK) mesh description consumed by the diagnostics pipeline.

Conventions
- All indices are 0-based. A connectivity entry equal to the entity count
  (n_cells, n_edges or n_vertices) points at the dummy slot, i.e. "no neighbour".
- Geometry arrays have exactly one entry per real entity; state and diagnostic
  fields carry one extra trailing dummy row.
- Level k of a column is active when k < max_level for that column.
- Normal velocity is positive from cells_on_edge[:, 0] to cells_on_edge[:, 1];
  the tangent k × n points from vertices_on_edge[:, 0] to vertices_on_edge[:, 1].
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property

import numpy as np

from .errors import MeshError


@dataclass(frozen=True, eq=False)
class Mesh:
    """Read-only per-partition connectivity, geometry and vertical extents."""

    n_cells: int
    n_edges: int
    n_vertices: int
    n_vert_levels: int
    vertex_degree: int

    # connectivity
    cells_on_edge: np.ndarray  # (nEdges, 2)
    vertices_on_edge: np.ndarray  # (nEdges, 2)
    edges_on_cell: np.ndarray  # (nCells, maxEdges)
    vertices_on_cell: np.ndarray  # (nCells, maxEdges)
    n_edges_on_cell: np.ndarray  # (nCells,)
    edges_on_edge: np.ndarray  # (nEdges, maxEdges2)
    n_edges_on_edge: np.ndarray  # (nEdges,)
    weights_on_edge: np.ndarray  # (nEdges, maxEdges2)
    edges_on_vertex: np.ndarray  # (nVertices, vertexDegree)
    cells_on_vertex: np.ndarray  # (nVertices, vertexDegree)
    kite_index_on_cell: np.ndarray  # (nCells, maxEdges)
    edge_sign_on_cell: np.ndarray  # (nCells, maxEdges), -1 on the edge's first cell
    edge_sign_on_vertex: np.ndarray  # (nVertices, vertexDegree), -1 on the edge's first vertex

    # geometry
    dc_edge: np.ndarray  # distance between the two cell centers (m)
    dv_edge: np.ndarray  # distance between the two vertices (m)
    area_cell: np.ndarray  # (m^2)
    area_triangle: np.ndarray  # dual cell area (m^2)
    kite_areas_on_vertex: np.ndarray  # (nVertices, vertexDegree) (m^2)
    bottom_depth: np.ndarray  # positive down (m)
    f_vertex: np.ndarray  # Coriolis parameter (s^-1)
    f_edge: np.ndarray

    # vertical extents (number of active levels per column)
    max_level_cell: np.ndarray
    max_level_edge_top: np.ndarray
    max_level_edge_bot: np.ndarray
    max_level_vertex_bot: np.ndarray
    max_level_vertex_top: np.ndarray

    sea_surface_pressure: np.ndarray | None = None  # (nCells,) Pa
    vert_coord_movement_weights: np.ndarray | None = None  # (nVertLevels,)
    n_edges_solve: int | None = None  # owned edges; halo edges follow

    # optional planar/cartesian coordinates (m)
    x_cell: np.ndarray | None = field(default=None, repr=False)
    y_cell: np.ndarray | None = field(default=None, repr=False)
    x_edge: np.ndarray | None = field(default=None, repr=False)
    y_edge: np.ndarray | None = field(default=None, repr=False)
    x_vertex: np.ndarray | None = field(default=None, repr=False)
    y_vertex: np.ndarray | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.sea_surface_pressure is None:
            object.__setattr__(self, "sea_surface_pressure", np.zeros(self.n_cells))
        if self.vert_coord_movement_weights is None:
            object.__setattr__(self, "vert_coord_movement_weights", np.ones(self.n_vert_levels))
        if self.n_edges_solve is None:
            object.__setattr__(self, "n_edges_solve", self.n_edges)
        self.validate()

    # ---- level masks (n, nVertLevels), True where active ----
    def _levels(self, max_level: np.ndarray) -> np.ndarray:
        return np.arange(self.n_vert_levels)[None, :] < np.asarray(max_level)[:, None]

    @cached_property
    def cell_levels(self) -> np.ndarray:
        return self._levels(self.max_level_cell)

    @cached_property
    def edge_top_levels(self) -> np.ndarray:
        return self._levels(self.max_level_edge_top)

    @cached_property
    def edge_bot_levels(self) -> np.ndarray:
        return self._levels(self.max_level_edge_bot)

    @cached_property
    def vertex_bot_levels(self) -> np.ndarray:
        return self._levels(self.max_level_vertex_bot)

    @cached_property
    def cell_interfaces(self) -> np.ndarray:
        """(nCells, nVertLevels + 1): interface k (top of layer k) exists for k <= max_level."""
        k = np.arange(self.n_vert_levels + 1)[None, :]
        mlc = np.asarray(self.max_level_cell)[:, None]
        return (k <= mlc) & (mlc > 0)

    # ---- neighbour validity (real neighbour within the per-entity count) ----
    @cached_property
    def edges_on_cell_valid(self) -> np.ndarray:
        slots = np.arange(self.edges_on_cell.shape[1])[None, :]
        return (slots < self.n_edges_on_cell[:, None]) & (self.edges_on_cell < self.n_edges)

    @cached_property
    def vertices_on_cell_valid(self) -> np.ndarray:
        slots = np.arange(self.vertices_on_cell.shape[1])[None, :]
        return (slots < self.n_edges_on_cell[:, None]) & (self.vertices_on_cell < self.n_vertices)

    @cached_property
    def edges_on_edge_valid(self) -> np.ndarray:
        slots = np.arange(self.edges_on_edge.shape[1])[None, :]
        return (slots < self.n_edges_on_edge[:, None]) & (self.edges_on_edge < self.n_edges)

    @cached_property
    def edges_on_vertex_valid(self) -> np.ndarray:
        return self.edges_on_vertex < self.n_edges

    @cached_property
    def cells_on_vertex_valid(self) -> np.ndarray:
        return self.cells_on_vertex < self.n_cells

    def validate(self) -> None:
        """Check array shapes against the declared counts; raise MeshError on mismatch."""
        nc, ne, nv, deg = self.n_cells, self.n_edges, self.n_vertices, self.vertex_degree
        expected = {
            "cells_on_edge": (ne, 2),
            "vertices_on_edge": (ne, 2),
            "n_edges_on_cell": (nc,),
            "n_edges_on_edge": (ne,),
            "edges_on_vertex": (nv, deg),
            "cells_on_vertex": (nv, deg),
            "edge_sign_on_vertex": (nv, deg),
            "kite_areas_on_vertex": (nv, deg),
            "dc_edge": (ne,),
            "dv_edge": (ne,),
            "area_cell": (nc,),
            "area_triangle": (nv,),
            "bottom_depth": (nc,),
            "f_vertex": (nv,),
            "f_edge": (ne,),
            "max_level_cell": (nc,),
            "max_level_edge_top": (ne,),
            "max_level_edge_bot": (ne,),
            "max_level_vertex_bot": (nv,),
            "max_level_vertex_top": (nv,),
            "sea_surface_pressure": (nc,),
            "vert_coord_movement_weights": (self.n_vert_levels,),
        }
        for name, shape in expected.items():
            got = np.shape(getattr(self, name))
            if got != shape:
                raise MeshError(f"Mesh.{name}: expected shape {shape}, got {got}")
        per_cell = np.shape(self.edges_on_cell)
        for name in ("vertices_on_cell", "kite_index_on_cell", "edge_sign_on_cell"):
            if np.shape(getattr(self, name)) != per_cell:
                raise MeshError(f"Mesh.{name}: expected shape {per_cell}, got {np.shape(getattr(self, name))}")
        if per_cell[0] != nc:
            raise MeshError(f"Mesh.edges_on_cell: expected {nc} rows, got {per_cell[0]}")
        if np.shape(self.weights_on_edge) != np.shape(self.edges_on_edge) or np.shape(self.edges_on_edge)[0] != ne:
            raise MeshError("Mesh.edges_on_edge / weights_on_edge: inconsistent shapes")
        if np.any(np.asarray(self.max_level_cell) > self.n_vert_levels):
            raise MeshError("Mesh.max_level_cell exceeds n_vert_levels")
        if not 0 <= self.n_edges_solve <= ne:
            raise MeshError(f"Mesh.n_edges_solve out of range: {self.n_edges_solve}")


# ---------- Derived connectivity helpers ----------


def compute_edge_sign_on_cell(edges_on_cell: np.ndarray, cells_on_edge: np.ndarray, n_edges: int) -> np.ndarray:
    """-1 where the cell is the edge's first cell (outward normal), +1 otherwise."""
    cells = np.arange(edges_on_cell.shape[0])[:, None]
    eoc = np.minimum(edges_on_cell, n_edges - 1)
    first = cells_on_edge[eoc, 0] == cells
    sign = np.where(first, -1.0, 1.0)
    return np.where(edges_on_cell < n_edges, sign, 0.0)


def compute_edge_sign_on_vertex(edges_on_vertex: np.ndarray, vertices_on_edge: np.ndarray, n_edges: int) -> np.ndarray:
    """-1 where the vertex is the edge's first vertex, +1 otherwise (counterclockwise circulation)."""
    verts = np.arange(edges_on_vertex.shape[0])[:, None]
    eov = np.minimum(edges_on_vertex, n_edges - 1)
    first = vertices_on_edge[eov, 0] == verts
    sign = np.where(first, -1.0, 1.0)
    return np.where(edges_on_vertex < n_edges, sign, 0.0)


def compute_kite_index_on_cell(vertices_on_cell: np.ndarray, cells_on_vertex: np.ndarray, n_vertices: int) -> np.ndarray:
    """Slot j such that cells_on_vertex[vertices_on_cell[c, i], j] == c (0 when absent)."""
    cells = np.arange(vertices_on_cell.shape[0])[:, None, None]
    voc = np.minimum(vertices_on_cell, n_vertices - 1)
    match = cells_on_vertex[voc] == cells  # (nCells, maxEdges, vertexDegree)
    return np.argmax(match, axis=2)


def derive_max_levels(
    max_level_cell: np.ndarray,
    cells_on_edge: np.ndarray,
    cells_on_vertex: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Derive edge/vertex vertical extents from per-cell extents.

    Returns (edge_top, edge_bot, vertex_bot, vertex_top):
    edge_top = min over the edge's two cells, edge_bot = max; vertex_bot = max over
    the vertex's cells, vertex_top = min. The dummy cell has max_level_cell = 0,
    so an edge or vertex on the domain boundary has no top levels.
    """
    mlc = np.asarray(max_level_cell, dtype=np.int64)
    n_cells = mlc.size
    padded = np.append(mlc, 0)

    def _reduce(idx: np.ndarray):
        levels = padded[np.minimum(idx, n_cells)]
        return levels.min(axis=1), levels.max(axis=1)

    edge_top, edge_bot = _reduce(cells_on_edge)
    vertex_top, vertex_bot = _reduce(cells_on_vertex)
    return edge_top, edge_bot, vertex_bot, vertex_top


# ---------- Reference planar mesh ----------


def planar_quad_mesh(
    nx: int,
    ny: int,
    dc: float,
    n_vert_levels: int,
    *,
    layer_thickness: float = 100.0,
    max_level_cell: np.ndarray | None = None,
    bottom_depth: np.ndarray | float | None = None,
    f0: float = 0.0,
    beta: float = 0.0,
    sea_surface_pressure: np.ndarray | float = 0.0,
    vert_coord_movement_weights: np.ndarray | None = None,
) -> Mesh:
    """
    Doubly periodic planar quadrilateral C-grid in MPAS orientation conventions.

    Cells are dc x dc squares with centers ((i + 0.5) dc, (j + 0.5) dc); vertices
    sit at the corners (vertex degree 4, kite area dc^2 / 4). Edge ids 0..nx*ny-1
    are "x-edges" (normal +x, at x = i dc) and nx*ny..2*nx*ny-1 are "y-edges"
    (normal +y, at y = j dc). TRiSK weights reduce to +-1/4 on the four
    perpendicular neighbours and 0 on the two parallel ones.

    Args:
        nx, ny: number of cells in x and y (each >= 3).
        dc: cell size (m).
        n_vert_levels: number of vertical levels.
        layer_thickness: reference layer thickness used for the default bottom depth (m).
        max_level_cell: active levels per cell; defaults to all levels.
        bottom_depth: positive-down depth; defaults to max_level_cell * layer_thickness.
        f0, beta: Coriolis parameter f = f0 + beta * y.
    """
    if nx < 3 or ny < 3:
        raise MeshError("planar_quad_mesh requires nx >= 3 and ny >= 3")

    n_cells = nx * ny
    n_vertices = nx * ny
    n_edges = 2 * nx * ny

    def cell(i, j):
        return (np.mod(j, ny) * nx + np.mod(i, nx)).astype(np.int64)

    def vertex(i, j):
        return (np.mod(j, ny) * nx + np.mod(i, nx)).astype(np.int64)

    def xedge(i, j):
        return (np.mod(j, ny) * nx + np.mod(i, nx)).astype(np.int64)

    def yedge(i, j):
        return (n_cells + np.mod(j, ny) * nx + np.mod(i, nx)).astype(np.int64)

    jj, ii = np.meshgrid(np.arange(ny), np.arange(nx), indexing="ij")
    ii = ii.ravel()
    jj = jj.ravel()

    # ---- edges ----
    cells_on_edge = np.empty((n_edges, 2), dtype=np.int64)
    vertices_on_edge = np.empty((n_edges, 2), dtype=np.int64)
    xe = xedge(ii, jj)
    ye = yedge(ii, jj)
    cells_on_edge[xe, 0] = cell(ii - 1, jj)
    cells_on_edge[xe, 1] = cell(ii, jj)
    vertices_on_edge[xe, 0] = vertex(ii, jj)  # bottom
    vertices_on_edge[xe, 1] = vertex(ii, jj + 1)  # top
    cells_on_edge[ye, 0] = cell(ii, jj - 1)
    cells_on_edge[ye, 1] = cell(ii, jj)
    vertices_on_edge[ye, 0] = vertex(ii + 1, jj)  # right
    vertices_on_edge[ye, 1] = vertex(ii, jj)  # left

    # ---- cells: counterclockwise from the south-west corner ----
    c = cell(ii, jj)
    vertices_on_cell = np.empty((n_cells, 4), dtype=np.int64)
    edges_on_cell = np.empty((n_cells, 4), dtype=np.int64)
    vertices_on_cell[c] = np.stack(
        [vertex(ii, jj), vertex(ii + 1, jj), vertex(ii + 1, jj + 1), vertex(ii, jj + 1)], axis=1
    )
    edges_on_cell[c] = np.stack([yedge(ii, jj), xedge(ii + 1, jj), yedge(ii, jj + 1), xedge(ii, jj)], axis=1)
    n_edges_on_cell = np.full(n_cells, 4, dtype=np.int64)

    # ---- vertices: counterclockwise from the south-west cell ----
    v = vertex(ii, jj)
    cells_on_vertex = np.empty((n_vertices, 4), dtype=np.int64)
    edges_on_vertex = np.empty((n_vertices, 4), dtype=np.int64)
    cells_on_vertex[v] = np.stack(
        [cell(ii - 1, jj - 1), cell(ii, jj - 1), cell(ii, jj), cell(ii - 1, jj)], axis=1
    )
    edges_on_vertex[v] = np.stack([yedge(ii, jj), xedge(ii, jj), yedge(ii - 1, jj), xedge(ii, jj - 1)], axis=1)

    # ---- edges on edge: the other edges of both cells, with TRiSK weights ----
    edges_on_edge = np.empty((n_edges, 6), dtype=np.int64)
    weights_on_edge = np.zeros((n_edges, 6))
    # x-edge (i, j): cells (i-1, j) and (i, j); tangent +y
    edges_on_edge[xe] = np.stack(
        [
            yedge(ii - 1, jj), yedge(ii - 1, jj + 1), xedge(ii - 1, jj),
            yedge(ii, jj), yedge(ii, jj + 1), xedge(ii + 1, jj),
        ],
        axis=1,
    )
    weights_on_edge[xe] = np.array([0.25, 0.25, 0.0, 0.25, 0.25, 0.0])
    # y-edge (i, j): cells (i, j-1) and (i, j); tangent -x
    edges_on_edge[ye] = np.stack(
        [
            xedge(ii, jj - 1), xedge(ii + 1, jj - 1), yedge(ii, jj - 1),
            xedge(ii, jj), xedge(ii + 1, jj), yedge(ii, jj + 1),
        ],
        axis=1,
    )
    weights_on_edge[ye] = np.array([-0.25, -0.25, 0.0, -0.25, -0.25, 0.0])
    n_edges_on_edge = np.full(n_edges, 6, dtype=np.int64)

    # ---- geometry ----
    x_cell = np.empty(n_cells)
    y_cell = np.empty(n_cells)
    x_cell[c] = (ii + 0.5) * dc
    y_cell[c] = (jj + 0.5) * dc
    x_vertex = np.empty(n_vertices)
    y_vertex = np.empty(n_vertices)
    x_vertex[v] = ii * dc
    y_vertex[v] = jj * dc
    x_edge = np.empty(n_edges)
    y_edge = np.empty(n_edges)
    x_edge[xe] = ii * dc
    y_edge[xe] = (jj + 0.5) * dc
    x_edge[ye] = (ii + 0.5) * dc
    y_edge[ye] = jj * dc

    if max_level_cell is None:
        max_level_cell = np.full(n_cells, n_vert_levels, dtype=np.int64)
    max_level_cell = np.asarray(max_level_cell, dtype=np.int64)
    if bottom_depth is None:
        bottom_depth = max_level_cell * float(layer_thickness)
    bottom_depth = np.broadcast_to(np.asarray(bottom_depth, dtype=float), (n_cells,)).copy()

    edge_top, edge_bot, vertex_bot, vertex_top = derive_max_levels(max_level_cell, cells_on_edge, cells_on_vertex)

    return Mesh(
        n_cells=n_cells,
        n_edges=n_edges,
        n_vertices=n_vertices,
        n_vert_levels=n_vert_levels,
        vertex_degree=4,
        cells_on_edge=cells_on_edge,
        vertices_on_edge=vertices_on_edge,
        edges_on_cell=edges_on_cell,
        vertices_on_cell=vertices_on_cell,
        n_edges_on_cell=n_edges_on_cell,
        edges_on_edge=edges_on_edge,
        n_edges_on_edge=n_edges_on_edge,
        weights_on_edge=weights_on_edge,
        edges_on_vertex=edges_on_vertex,
        cells_on_vertex=cells_on_vertex,
        kite_index_on_cell=compute_kite_index_on_cell(vertices_on_cell, cells_on_vertex, n_vertices),
        edge_sign_on_cell=compute_edge_sign_on_cell(edges_on_cell, cells_on_edge, n_edges),
        edge_sign_on_vertex=compute_edge_sign_on_vertex(edges_on_vertex, vertices_on_edge, n_edges),
        dc_edge=np.full(n_edges, float(dc)),
        dv_edge=np.full(n_edges, float(dc)),
        area_cell=np.full(n_cells, float(dc) ** 2),
        area_triangle=np.full(n_vertices, float(dc) ** 2),
        kite_areas_on_vertex=np.full((n_vertices, 4), 0.25 * float(dc) ** 2),
        bottom_depth=bottom_depth,
        f_vertex=f0 + beta * y_vertex,
        f_edge=f0 + beta * y_edge,
        max_level_cell=max_level_cell,
        max_level_edge_top=edge_top,
        max_level_edge_bot=edge_bot,
        max_level_vertex_bot=vertex_bot,
        max_level_vertex_top=vertex_top,
        sea_surface_pressure=np.broadcast_to(np.asarray(sea_surface_pressure, dtype=float), (n_cells,)).copy(),
        vert_coord_movement_weights=vert_coord_movement_weights,
        x_cell=x_cell,
        y_cell=y_cell,
        x_edge=x_edge,
        y_edge=y_edge,
        x_vertex=x_vertex,
        y_vertex=y_vertex,
    )


# ---------- Culling ----------


def cull_cells(mesh: Mesh, keep_cell: np.ndarray) -> Mesh:
    """
    Remove cells from a mesh (regional domains, closed basins).

    Edges and vertices survive when at least one of their cells does. Every
    reference to a removed entity becomes the dummy slot of the culled mesh,
    TRiSK weights onto removed edges are zeroed, and signs, kite indices and
    vertical extents are re-derived.
    """
    keep_cell = np.asarray(keep_cell, dtype=bool)
    if keep_cell.shape != (mesh.n_cells,):
        raise MeshError(f"cull_cells: expected a ({mesh.n_cells},) mask, got {keep_cell.shape}")
    kept = np.append(keep_cell, False)
    keep_edge = kept[np.minimum(mesh.cells_on_edge, mesh.n_cells)].any(axis=1)
    keep_vertex = kept[np.minimum(mesh.cells_on_vertex, mesh.n_cells)].any(axis=1)

    def _renumber(keep: np.ndarray):
        n_new = int(keep.sum())
        new_id = np.full(keep.size + 1, n_new, dtype=np.int64)
        new_id[:-1][keep] = np.arange(n_new)
        return n_new, new_id

    n_cells, cell_id = _renumber(keep_cell)
    n_edges, edge_id = _renumber(keep_edge)
    n_vertices, vertex_id = _renumber(keep_vertex)

    def _remap(index: np.ndarray, new_id: np.ndarray) -> np.ndarray:
        return new_id[np.minimum(index, new_id.size - 1)]

    def _subset(values, keep):
        return None if values is None else np.asarray(values)[keep]

    cells_on_edge = _remap(mesh.cells_on_edge[keep_edge], cell_id)
    vertices_on_edge = _remap(mesh.vertices_on_edge[keep_edge], vertex_id)
    edges_on_cell = _remap(mesh.edges_on_cell[keep_cell], edge_id)
    vertices_on_cell = _remap(mesh.vertices_on_cell[keep_cell], vertex_id)
    edges_on_edge = _remap(mesh.edges_on_edge[keep_edge], edge_id)
    edges_on_vertex = _remap(mesh.edges_on_vertex[keep_vertex], edge_id)
    cells_on_vertex = _remap(mesh.cells_on_vertex[keep_vertex], cell_id)
    weights_on_edge = np.where(edges_on_edge < n_edges, mesh.weights_on_edge[keep_edge], 0.0)

    max_level_cell = np.asarray(mesh.max_level_cell)[keep_cell]
    edge_top, edge_bot, vertex_bot, vertex_top = derive_max_levels(max_level_cell, cells_on_edge, cells_on_vertex)

    return Mesh(
        n_cells=n_cells,
        n_edges=n_edges,
        n_vertices=n_vertices,
        n_vert_levels=mesh.n_vert_levels,
        vertex_degree=mesh.vertex_degree,
        cells_on_edge=cells_on_edge,
        vertices_on_edge=vertices_on_edge,
        edges_on_cell=edges_on_cell,
        vertices_on_cell=vertices_on_cell,
        n_edges_on_cell=mesh.n_edges_on_cell[keep_cell],
        edges_on_edge=edges_on_edge,
        n_edges_on_edge=mesh.n_edges_on_edge[keep_edge],
        weights_on_edge=weights_on_edge,
        edges_on_vertex=edges_on_vertex,
        cells_on_vertex=cells_on_vertex,
        kite_index_on_cell=compute_kite_index_on_cell(vertices_on_cell, cells_on_vertex, n_vertices),
        edge_sign_on_cell=compute_edge_sign_on_cell(edges_on_cell, cells_on_edge, n_edges),
        edge_sign_on_vertex=compute_edge_sign_on_vertex(edges_on_vertex, vertices_on_edge, n_edges),
        dc_edge=mesh.dc_edge[keep_edge],
        dv_edge=mesh.dv_edge[keep_edge],
        area_cell=mesh.area_cell[keep_cell],
        area_triangle=mesh.area_triangle[keep_vertex],
        kite_areas_on_vertex=mesh.kite_areas_on_vertex[keep_vertex],
        bottom_depth=mesh.bottom_depth[keep_cell],
        f_vertex=mesh.f_vertex[keep_vertex],
        f_edge=mesh.f_edge[keep_edge],
        max_level_cell=max_level_cell,
        max_level_edge_top=edge_top,
        max_level_edge_bot=edge_bot,
        max_level_vertex_bot=vertex_bot,
        max_level_vertex_top=vertex_top,
        sea_surface_pressure=mesh.sea_surface_pressure[keep_cell],
        vert_coord_movement_weights=mesh.vert_coord_movement_weights,
        x_cell=_subset(mesh.x_cell, keep_cell),
        y_cell=_subset(mesh.y_cell, keep_cell),
        x_edge=_subset(mesh.x_edge, keep_edge),
        y_edge=_subset(mesh.y_edge, keep_edge),
        x_vertex=_subset(mesh.x_vertex, keep_vertex),
        y_vertex=_subset(mesh.y_vertex, keep_vertex),
    )


# ---------- MPAS mesh files ----------


def _read_var(ds, name: str, default=None):
    if name not in ds.variables:
        if default is None:
            raise MeshError(f"Mesh file is missing required variable '{name}'")
        return default
    var = ds.variables[name]
    data = np.asarray(var[...])
    if var.dimensions and var.dimensions[0] == "Time":
        data = data[0]
    return data


def _to_zero_based(index: np.ndarray, n: int) -> np.ndarray:
    """MPAS 1-based connectivity (0 = missing) -> 0-based with n as the dummy slot."""
    index = np.asarray(index, dtype=np.int64)
    return np.where((index >= 1) & (index <= n), index - 1, n)


def load_mesh(path: str, *, n_vert_levels: int | None = None) -> Mesh:
    """
    Load an MPAS-format mesh/initial-condition file into a Mesh.

    Edge/vertex signs and kite indices are derived here (MPAS computes them at
    start-up). maxLevelCell defaults to all levels when absent.
    """
    # Lazy import to keep the pipeline importable without netCDF4 present
    from netCDF4 import Dataset

    with Dataset(path, "r") as ds:
        n_cells = len(ds.dimensions["nCells"])
        n_edges = len(ds.dimensions["nEdges"])
        n_vertices = len(ds.dimensions["nVertices"])
        vertex_degree = len(ds.dimensions["vertexDegree"])
        if n_vert_levels is None:
            n_vert_levels = len(ds.dimensions["nVertLevels"]) if "nVertLevels" in ds.dimensions else 1

        cells_on_edge = _to_zero_based(_read_var(ds, "cellsOnEdge"), n_cells)
        vertices_on_edge = _to_zero_based(_read_var(ds, "verticesOnEdge"), n_vertices)
        edges_on_cell = _to_zero_based(_read_var(ds, "edgesOnCell"), n_edges)
        vertices_on_cell = _to_zero_based(_read_var(ds, "verticesOnCell"), n_vertices)
        edges_on_edge = _to_zero_based(_read_var(ds, "edgesOnEdge"), n_edges)
        edges_on_vertex = _to_zero_based(_read_var(ds, "edgesOnVertex"), n_edges)
        cells_on_vertex = _to_zero_based(_read_var(ds, "cellsOnVertex"), n_cells)

        n_edges_on_cell = np.asarray(_read_var(ds, "nEdgesOnCell"), dtype=np.int64)
        n_edges_on_edge = np.asarray(_read_var(ds, "nEdgesOnEdge"), dtype=np.int64)
        weights_on_edge = np.asarray(_read_var(ds, "weightsOnEdge"), dtype=float)

        f_vertex = np.asarray(_read_var(ds, "fVertex"), dtype=float)
        f_edge = np.asarray(_read_var(ds, "fEdge"), dtype=float)
        max_level_cell = np.asarray(
            _read_var(ds, "maxLevelCell", np.full(n_cells, n_vert_levels)), dtype=np.int64
        )
        bottom_depth = np.asarray(_read_var(ds, "bottomDepth", np.zeros(n_cells)), dtype=float)
        ssp = np.asarray(_read_var(ds, "seaSurfacePressure", np.zeros(n_cells)), dtype=float)
        weights = np.asarray(
            _read_var(ds, "vertCoordMovementWeights", np.ones(n_vert_levels)), dtype=float
        )

        dc_edge = np.asarray(_read_var(ds, "dcEdge"), dtype=float)
        dv_edge = np.asarray(_read_var(ds, "dvEdge"), dtype=float)
        area_cell = np.asarray(_read_var(ds, "areaCell"), dtype=float)
        area_triangle = np.asarray(_read_var(ds, "areaTriangle"), dtype=float)
        kite_areas = np.asarray(_read_var(ds, "kiteAreasOnVertex"), dtype=float)

    edge_top, edge_bot, vertex_bot, vertex_top = derive_max_levels(max_level_cell, cells_on_edge, cells_on_vertex)

    return Mesh(
        n_cells=n_cells,
        n_edges=n_edges,
        n_vertices=n_vertices,
        n_vert_levels=int(n_vert_levels),
        vertex_degree=vertex_degree,
        cells_on_edge=cells_on_edge,
        vertices_on_edge=vertices_on_edge,
        edges_on_cell=edges_on_cell,
        vertices_on_cell=vertices_on_cell,
        n_edges_on_cell=n_edges_on_cell,
        edges_on_edge=edges_on_edge,
        n_edges_on_edge=n_edges_on_edge,
        weights_on_edge=weights_on_edge,
        edges_on_vertex=edges_on_vertex,
        cells_on_vertex=cells_on_vertex,
        kite_index_on_cell=compute_kite_index_on_cell(vertices_on_cell, cells_on_vertex, n_vertices),
        edge_sign_on_cell=compute_edge_sign_on_cell(edges_on_cell, cells_on_edge, n_edges),
        edge_sign_on_vertex=compute_edge_sign_on_vertex(edges_on_vertex, vertices_on_edge, n_edges),
        dc_edge=dc_edge,
        dv_edge=dv_edge,
        area_cell=area_cell,
        area_triangle=area_triangle,
        kite_areas_on_vertex=kite_areas,
        bottom_depth=bottom_depth,
        f_vertex=f_vertex,
        f_edge=f_edge,
        max_level_cell=max_level_cell,
        max_level_edge_top=edge_top,
        max_level_edge_bot=edge_bot,
        max_level_vertex_bot=vertex_bot,
        max_level_vertex_top=vertex_top,
        sea_surface_pressure=ssp,
        vert_coord_movement_weights=weights,
    )
