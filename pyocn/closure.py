"""Reference Gent-McWilliams closure used when eddy transport is not parameterized."""

from __future__ import annotations

import numpy as np

from .jax_compat import xp


class ZeroBolusClosure:
    """Zero bolus velocity everywhere; the pipeline masks inactive levels."""

    def bolus_velocity(self, mesh, state, diagnostics) -> np.ndarray:
        return xp.zeros((mesh.n_edges, mesh.n_vert_levels))
