"""Cell-to-edge layer thickness reconstruction."""

from __future__ import annotations

import numpy as np

from .mesh import Mesh
from .stencil import active


def layer_thickness_edge(mesh: Mesh, layer_thickness: np.ndarray) -> np.ndarray:
    """
    Arithmetic mean of the two neighbouring cells' thickness on each edge level.

    Defined for k < max_level_edge_top; deeper levels and the dummy edge hold
    SENTINEL so that misuse downstream is detectable rather than near-zero.
    """
    cell1 = mesh.cells_on_edge[:, 0]
    cell2 = mesh.cells_on_edge[:, 1]
    mean = 0.5 * (layer_thickness[cell1] + layer_thickness[cell2])
    return active(mean, mesh.edge_top_levels)
