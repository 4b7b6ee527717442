"""
jax_compat.py: Optional JAX acceleration layer for the pyocn diagnostics kernels

Provides:
- JAX enable switch via env PYOCN_USE_JAX (0/1)
- xp: the array module every kernel is written against (numpy or jax.numpy)
- to_numpy: safe conversion from device arrays to writeable numpy arrays
- is_enabled / backend: query helpers

All diagnostics kernels are gather-only (each entity reads its neighbours and
writes its own slot), so they run unchanged under jax.numpy.
"""
from __future__ import annotations

import os
import numpy as _np

# Global flag: do not raise if JAX unavailable; just fall back to NumPy
_JAX_ENABLED = False
_JAX = None
_JNP = None
_JAX_BACKEND = "none"  # cpu|gpu|tpu|metal|unknown|none

try:
    _JAX_ENABLED = int(os.getenv("PYOCN_USE_JAX", "0")) == 1
except ValueError:
    _JAX_ENABLED = False

if _JAX_ENABLED:
    try:
        import jax as _JAX
        import jax.numpy as _JNP
        plat_env = os.getenv("PYOCN_JAX_PLATFORM")
        if plat_env:
            # Must be set before JAX backend initialization
            os.environ.setdefault("JAX_PLATFORM_NAME", plat_env)
        # Sentinel arithmetic (-1e34) and column sums need double precision
        _JAX.config.update("jax_enable_x64", True)
        try:
            devs = _JAX.devices()
            if devs:
                _JAX_BACKEND = getattr(devs[0], "platform", "unknown")
            else:
                _JAX_BACKEND = _JAX.default_backend() or "unknown"
        except RuntimeError:
            _JAX_BACKEND = "unknown"
        # Enable only on real accelerators unless forced
        if (_JAX_BACKEND in ("gpu", "cuda", "tpu")) or (os.getenv("PYOCN_JAX_FORCE", "0") == "1"):
            _JAX_ENABLED = True
        else:
            _JAX_ENABLED = False
    except ImportError:
        _JAX = None
        _JNP = None
        _JAX_ENABLED = False
        _JAX_BACKEND = "none"


# Public array module: jax.numpy if enabled on accelerator, else numpy.
if _JAX_ENABLED and (_JNP is not None):
    xp = _JNP
else:
    xp = _np


def is_enabled() -> bool:
    return _JAX_ENABLED


def backend() -> str:
    """Return detected JAX backend string: gpu|cpu|tpu|metal|unknown|none"""
    return _JAX_BACKEND


def to_numpy(x) -> _np.ndarray:
    """Convert a JAX array (if enabled) to a writeable NumPy array; numpy input is returned as-is."""
    if isinstance(x, _np.ndarray):
        return x
    arr = _np.asarray(x)
    # Device arrays come back read-only
    if not arr.flags.writeable:
        arr = arr.copy()
    return arr
