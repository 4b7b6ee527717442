"""
Debug-mode sentinel checks.

check_active   every active entry is finite and well below sentinel magnitude,
               i.e. no computation consumed an inactive value.
check_inactive every inactive entry (and the dummy row) still holds SENTINEL.
"""

from __future__ import annotations

import numpy as np

from .constants import SENTINEL, SENTINEL_THRESHOLD
from .errors import SentinelReadError
from .jax_compat import to_numpy


def _with_dummy_mask(field: np.ndarray, mask: np.ndarray) -> np.ndarray:
    mask = np.asarray(mask, dtype=bool)
    if field.shape[0] == mask.shape[0] + 1:
        mask = np.concatenate([mask, np.zeros((1,) + mask.shape[1:], dtype=bool)], axis=0)
    return mask


def check_active(name: str, field, mask: np.ndarray) -> None:
    values = to_numpy(field)
    mask = _with_dummy_mask(values, mask)
    bad = mask & ~(np.isfinite(values) & (np.abs(values) < SENTINEL_THRESHOLD))
    count = int(bad.sum())
    if count:
        raise SentinelReadError(name, count, "active")


def check_inactive(name: str, field, mask: np.ndarray) -> None:
    values = to_numpy(field)
    mask = _with_dummy_mask(values, mask)
    bad = ~mask & (values != SENTINEL)
    count = int(bad.sum())
    if count:
        raise SentinelReadError(name, count, "inactive")
