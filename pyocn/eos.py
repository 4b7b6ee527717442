"""
Linear equation of state.

    rho = rho_ref - alpha * (T - T_ref) + beta * (S - S_ref)

Pressure does not enter, so the adiabatic displacement requested by the
caller does not change the result; the arguments are still validated so
that a caller passing an unknown mode fails the same way it would against a
pressure-dependent equation of state.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .constants import (
    EOS_LINEAR_ALPHA,
    EOS_LINEAR_BETA,
    EOS_LINEAR_DENSITY_REF,
    EOS_LINEAR_S_REF,
    EOS_LINEAR_T_REF,
)
from .jax_compat import xp

_DISPLACEMENT_TYPES = ("relative", "absolute")


@dataclass(frozen=True)
class LinearEquationOfState:
    density_ref: float = EOS_LINEAR_DENSITY_REF  # kg m^-3
    alpha: float = EOS_LINEAR_ALPHA  # kg m^-3 K^-1
    beta: float = EOS_LINEAR_BETA  # kg m^-3 psu^-1
    t_ref: float = EOS_LINEAR_T_REF  # deg C
    s_ref: float = EOS_LINEAR_S_REF  # psu

    def density(self, mesh, state, k_displaced: int, displacement_type: str) -> np.ndarray:
        if displacement_type not in _DISPLACEMENT_TYPES:
            raise ValueError(f"Unknown displacement type: {displacement_type!r}")
        if not 0 <= k_displaced <= mesh.n_vert_levels:
            raise ValueError(f"k_displaced out of range: {k_displaced}")
        n = mesh.n_cells
        t = xp.asarray(state.temperature)[:n]
        s = xp.asarray(state.salinity)[:n]
        return self.density_ref - self.alpha * (t - self.t_ref) + self.beta * (s - self.s_ref)
