from __future__ import annotations
"""
Collaborator API: the contracts the diagnostic pipeline requires from the
equation of state and the eddy-transport closure.

Intent
- Keep the pipeline free of physics it does not own. Density as a function
  of (T, S, p) and the Gent-McWilliams bolus velocity are supplied by objects
  implementing the protocols below.
- Collaborators are array-in/array-out from the pipeline's point of view: they
  read the mesh and state and return a new array without mutating either.

Key concepts
- EquationOfState.density(mesh, state, k_displaced, displacement_type)
    k_displaced = 0                    in-situ density
    k_displaced = 1, "absolute"        potential density (displaced to the top layer)
    k_displaced = 1, "relative"        layer k displaced to layer k+1
  returns (nCells, L) or (nCells+1, L).
- GMClosure.bolus_velocity(mesh, state, diagnostics) -> (nEdges, L) or (nEdges+1, L)

Notes
- Failures are raised, never encoded in a status value. The pipeline wraps
  them in EquationOfStateError / ClosureError and aborts the pass.
"""

from typing import Any, Protocol, Literal

import numpy as np

DisplacementType = Literal["relative", "absolute"]


# --------------------------
# Equation of state
# --------------------------

class EquationOfState(Protocol):
    """
    density(mesh, state, k_displaced, displacement_type) -> rho
    """
    def density(
        self,
        mesh: Any,
        state: Any,
        k_displaced: int,
        displacement_type: DisplacementType,
    ) -> np.ndarray:
        ...


# --------------------------
# Eddy closure
# --------------------------

class GMClosure(Protocol):
    """
    Gent-McWilliams closure. Produces the bolus (eddy-induced) normal velocity
    from the current state and the diagnostics computed so far in the pass.
    """
    def bolus_velocity(
        self,
        mesh: Any,
        state: Any,
        diagnostics: Any,
    ) -> np.ndarray:
        ...


# --------------------------
# Factories
# --------------------------

def make_eos(kind: str = "linear", **kwargs: Any) -> EquationOfState:
    """
    Small factory to construct an equation of state.
    kind:
      - "linear": eos.LinearEquationOfState (rho_ref, alpha, beta, T_ref, S_ref)
    """
    if kind == "linear":
        from .eos import LinearEquationOfState
        return LinearEquationOfState(**kwargs)
    raise ValueError(f"Unknown EquationOfState kind: {kind!r}")


def make_gm_closure(kind: str = "none", **kwargs: Any) -> GMClosure:
    """
    Small factory to construct a GM closure.
    kind:
      - "none": closure.ZeroBolusClosure, a zero bolus velocity on active edge levels
    """
    if kind == "none":
        from .closure import ZeroBolusClosure
        return ZeroBolusClosure(**kwargs)
    raise ValueError(f"Unknown GMClosure kind: {kind!r}")
