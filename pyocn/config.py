"""
Diagnostics configuration (env-driven) and the scheme flags resolved from it.

Environment variables (read by DiagnosticsConfig.from_env):
    PYOCN_APVM_SCALE=0.5                 APVM upstream bias scale factor
    PYOCN_VERT_COORD=uniform_stretching  isopycnal|fixed|uniform_stretching|user_specified
    PYOCN_PRESSURE_GRADIENT=pressure_and_zmid   or MontgomeryPotential
    PYOCN_KE_VERTEX=1                    blend vertex KE into cell KE
    PYOCN_H_KAPPA=0                      GM kappa; the closure runs at >= machine eps
    PYOCN_TIME_INTEGRATOR=RK4            RK4|split_explicit|unsplit_explicit
    PYOCN_DENSITY0=1014.65               Boussinesq reference density (kg m^-3)
    PYOCN_GRAVITY=9.80616                (m s^-2)
    PYOCN_CHECK_SENTINELS=0              verify sentinel masking after every phase
    PYOCN_DIAG=1                         print [OcnDiag] summaries
    PYOCN_DIAG_EVERY=1                   passes between summaries
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .constants import DENSITY0, GRAVITY
from .errors import ConfigError

VERT_COORD_MOVEMENTS = ("isopycnal", "fixed", "uniform_stretching", "user_specified")
PRESSURE_GRADIENT_TYPES = ("pressure_and_zmid", "MontgomeryPotential")
TIME_INTEGRATORS = ("RK4", "split_explicit", "unsplit_explicit")


@dataclass(frozen=True)
class SchemeFlags:
    """Start-up choices threaded through every pass."""

    ke_vertex: bool  # blend the vertex-reconstructed kinetic energy
    ke_cell: bool  # edge-based kinetic energy only
    f_coef: float  # 1: Coriolis folded into edge PV; 0: added explicitly


@dataclass(frozen=True)
class DiagnosticsConfig:
    apvm_scale_factor: float = 0.0
    vert_coord_movement: str = "uniform_stretching"
    pressure_gradient_type: str = "pressure_and_zmid"
    include_ke_vertex: bool = True
    h_kappa: float = 0.0
    time_integrator: str = "RK4"
    density0: float = DENSITY0
    gravity: float = GRAVITY
    check_sentinels: bool = False
    diag: bool = False
    diag_every: int = 1

    def __post_init__(self) -> None:
        if self.vert_coord_movement not in VERT_COORD_MOVEMENTS:
            raise ConfigError(f"Unknown vert_coord_movement: {self.vert_coord_movement!r}")
        if self.pressure_gradient_type not in PRESSURE_GRADIENT_TYPES:
            raise ConfigError(f"Unknown pressure_gradient_type: {self.pressure_gradient_type!r}")
        if self.time_integrator not in TIME_INTEGRATORS:
            raise ConfigError(f"Unknown time_integrator: {self.time_integrator!r}")
        if self.apvm_scale_factor < 0.0:
            raise ConfigError(f"apvm_scale_factor must be >= 0, got {self.apvm_scale_factor}")
        if self.h_kappa < 0.0:
            raise ConfigError(f"h_kappa must be >= 0, got {self.h_kappa}")
        if self.density0 <= 0.0 or self.gravity <= 0.0:
            raise ConfigError("density0 and gravity must be positive")
        if self.diag_every < 1:
            raise ConfigError(f"diag_every must be >= 1, got {self.diag_every}")

    @property
    def isopycnal(self) -> bool:
        return self.vert_coord_movement == "isopycnal"

    @property
    def montgomery(self) -> bool:
        return self.pressure_gradient_type == "MontgomeryPotential"

    def resolve(self) -> SchemeFlags:
        return SchemeFlags(
            ke_vertex=self.include_ke_vertex,
            ke_cell=not self.include_ke_vertex,
            f_coef=1.0 if self.time_integrator == "RK4" else 0.0,
        )

    @classmethod
    def from_env(cls) -> DiagnosticsConfig:
        def _raw(name: str, default: str) -> str:
            return os.getenv(name, default).strip()

        def _ibool(name: str, default: str) -> bool:
            try:
                return int(_raw(name, default)) == 1
            except ValueError as exc:
                raise ConfigError(f"{name} must be 0 or 1") from exc

        def _int(name: str, default: str) -> int:
            try:
                return int(_raw(name, default))
            except ValueError as exc:
                raise ConfigError(f"{name} must be an integer") from exc

        def _float(name: str, default: str) -> float:
            try:
                return float(_raw(name, default))
            except ValueError as exc:
                raise ConfigError(f"{name} must be a number") from exc

        return cls(
            apvm_scale_factor=_float("PYOCN_APVM_SCALE", "0"),
            vert_coord_movement=_raw("PYOCN_VERT_COORD", "uniform_stretching"),
            pressure_gradient_type=_raw("PYOCN_PRESSURE_GRADIENT", "pressure_and_zmid"),
            include_ke_vertex=_ibool("PYOCN_KE_VERTEX", "1"),
            h_kappa=_float("PYOCN_H_KAPPA", "0"),
            time_integrator=_raw("PYOCN_TIME_INTEGRATOR", "RK4"),
            density0=_float("PYOCN_DENSITY0", str(DENSITY0)),
            gravity=_float("PYOCN_GRAVITY", str(GRAVITY)),
            check_sentinels=_ibool("PYOCN_CHECK_SENTINELS", "0"),
            diag=_ibool("PYOCN_DIAG", "0"),
            diag_every=_int("PYOCN_DIAG_EVERY", "1"),
        )
