"""Exception hierarchy for the diagnostics pipeline."""

from __future__ import annotations


class PyOcnError(Exception):
    """Base class for all pyocn errors."""


class ConfigError(PyOcnError, ValueError):
    """Unrecognized or inconsistent configuration; raised before any timestep runs."""


class MeshError(PyOcnError, ValueError):
    """Mesh arrays are missing or have inconsistent shapes."""


class EquationOfStateError(PyOcnError, RuntimeError):
    """The equation-of-state collaborator failed or returned unusable density."""


class ClosureError(PyOcnError, RuntimeError):
    """The GM closure failed or returned an unusable bolus velocity."""


class SentinelReadError(PyOcnError, FloatingPointError):
    """An active diagnostic entry was computed from sentinel (inactive) data."""

    def __init__(self, field: str, count: int, where: str = "active") -> None:
        self.field = field
        self.count = count
        super().__init__(f"{field}: {count} {where} entries failed the sentinel check")
