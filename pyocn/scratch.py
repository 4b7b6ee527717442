"""
Scoped scratch buffers for short-lived per-pass temporaries.

Usage
-----
pool = ScratchPool()
with pool.scope("kinetic_energy") as tmp:
    tmp["vertex"] = kinetic_energy_vertex(mesh, u)
    ...
# every temporary registered in the scope is released here, including on
# early return and on exceptions
assert pool.in_use == 0
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from .jax_compat import xp


class ScratchScope:
    """Named temporaries owned by one `ScratchPool.scope` block."""

    def __init__(self, pool: ScratchPool, label: str) -> None:
        self._pool = pool
        self._label = label
        self._buffers: dict[str, Any] = {}

    def zeros(self, name: str, shape: tuple[int, ...], dtype=float):
        """Acquire a zero-filled buffer under `name`."""
        self[name] = xp.zeros(shape, dtype=dtype)
        return self._buffers[name]

    def __setitem__(self, name: str, value) -> None:
        if name not in self._buffers:
            self._pool._register(self._label, name)
        self._buffers[name] = value

    def __getitem__(self, name: str):
        return self._buffers[name]

    def __contains__(self, name: str) -> bool:
        return name in self._buffers

    def release(self) -> None:
        for name in list(self._buffers):
            self._pool._unregister(self._label, name)
        self._buffers.clear()


class ScratchPool:
    """Tracks live scratch buffers across scopes; `in_use` is 0 between passes."""

    def __init__(self) -> None:
        self._live: set[tuple[str, str]] = set()
        self.peak = 0
        self.total_acquired = 0

    @property
    def in_use(self) -> int:
        return len(self._live)

    def live_names(self) -> list[str]:
        return sorted(f"{label}.{name}" for label, name in self._live)

    def _register(self, label: str, name: str) -> None:
        self._live.add((label, name))
        self.total_acquired += 1
        self.peak = max(self.peak, len(self._live))

    def _unregister(self, label: str, name: str) -> None:
        self._live.discard((label, name))

    @contextmanager
    def scope(self, label: str) -> Iterator[ScratchScope]:
        buffers = ScratchScope(self, label)
        try:
            yield buffers
        finally:
            buffers.release()
