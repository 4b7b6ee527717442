"""
Gather helpers shared by the mesh-stencil kernels.

Every kernel is a gather: an entity reads its neighbours and writes its own
slot. Fields carry a trailing dummy row (index n) holding the sentinel, so a
dummy neighbour can be gathered directly; geometry arrays have no dummy entry
and are gathered through `take`, which zeroes invalid neighbours.
"""

from __future__ import annotations

import numpy as np

from .constants import SENTINEL
from .jax_compat import xp


def with_dummy(values, fill: float = SENTINEL):
    """Append the dummy row (index n) to an (n, ...) array."""
    pad = xp.full((1,) + tuple(values.shape[1:]), fill, dtype=values.dtype)
    return xp.concatenate([values, pad], axis=0)


def take(values: np.ndarray, index: np.ndarray, valid: np.ndarray):
    """values[index] with invalid (dummy or beyond-count) neighbours set to zero."""
    n = values.shape[0]
    safe = np.minimum(index, n - 1)
    return xp.where(valid, xp.asarray(values)[safe], 0.0)


def neighbour_sum(terms, valid: np.ndarray):
    """Sum (n, m, L) neighbour terms over axis 1, skipping invalid neighbours."""
    return xp.sum(xp.where(valid[:, :, None], terms, 0.0), axis=1)


def active(values, mask: np.ndarray, fill: float = SENTINEL):
    """Keep values on active levels, fill the rest, and append the dummy row."""
    return with_dummy(xp.where(mask, values, fill), fill)


def reverse_cumsum(values, axis: int = 1):
    """Sum from index k to the end along axis (bottom-up column integration)."""
    return xp.flip(xp.cumsum(xp.flip(values, axis=axis), axis=axis), axis=axis)
