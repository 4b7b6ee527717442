"""
pyocn: diagnostic-solve pipeline for TRiSK C-grid ocean models.

Turns prognostic state (layer thickness, normal velocity, tracers) on an
unstructured mesh into the derived fields the tendency routines consume:
vorticity and potential vorticity, kinetic energy, pressure or Montgomery
potential, vertical transport velocity, buoyancy frequency and sea-surface
height, plus the barotropic filters and the explicit Coriolis term.
"""

from __future__ import annotations

from .api import EquationOfState, GMClosure, make_eos, make_gm_closure
from .config import DiagnosticsConfig, SchemeFlags
from .constants import SENTINEL
from .diagnostics import DiagnosticSolver, diagnostic_solve
from .errors import (
    ClosureError,
    ConfigError,
    EquationOfStateError,
    MeshError,
    PyOcnError,
    SentinelReadError,
)
from .mesh import Mesh, cull_cells, derive_max_levels, load_mesh, planar_quad_mesh
from .scratch import ScratchPool
from .state import Diagnostics, OceanState, seal_dummy_slots, zeros_ocean_state

__all__ = [
    "SENTINEL",
    "Mesh",
    "cull_cells",
    "derive_max_levels",
    "load_mesh",
    "planar_quad_mesh",
    "OceanState",
    "Diagnostics",
    "zeros_ocean_state",
    "seal_dummy_slots",
    "DiagnosticsConfig",
    "SchemeFlags",
    "DiagnosticSolver",
    "diagnostic_solve",
    "EquationOfState",
    "GMClosure",
    "make_eos",
    "make_gm_closure",
    "ScratchPool",
    "PyOcnError",
    "ConfigError",
    "MeshError",
    "EquationOfStateError",
    "ClosureError",
    "SentinelReadError",
]
