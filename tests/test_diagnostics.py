import numpy as np
import pytest

from pyocn import DiagnosticSolver, DiagnosticsConfig, diagnostic_solve
from pyocn.checks import check_inactive
from pyocn.constants import SENTINEL
from pyocn.errors import ClosureError, ConfigError, EquationOfStateError, SentinelReadError
from pyocn.invariants import (
    column_net_transport,
    diagnostics_report,
    invariants_from_pass,
    total_volume,
)
from pyocn.scratch import ScratchPool
from pyocn.state import Diagnostics, zeros_ocean_state


def _masks(mesh):
    """Level mask of every Diagnostics field with a level axis."""
    return {
        "layer_thickness_edge": mesh.edge_top_levels,
        "circulation": mesh.vertex_bot_levels,
        "relative_vorticity": mesh.vertex_bot_levels,
        "relative_vorticity_cell": mesh.cell_levels,
        "divergence": mesh.cell_levels,
        "kinetic_energy_cell": mesh.cell_levels,
        "tangential_velocity": mesh.edge_top_levels,
        "normalized_relative_vorticity_edge": mesh.edge_bot_levels,
        "normalized_planetary_vorticity_edge": mesh.edge_bot_levels,
        "normalized_relative_vorticity_cell": mesh.cell_levels,
        "density": mesh.cell_levels,
        "displaced_density": mesh.cell_levels,
        "potential_density": mesh.cell_levels,
        "pressure": mesh.cell_levels,
        "z_mid": mesh.cell_levels,
        "brunt_vaisala_freq_top": mesh.cell_levels,
        "vert_velocity_top": mesh.cell_interfaces,
        "bolus_velocity": mesh.edge_top_levels,
    }


@pytest.mark.parametrize("apvm", [0.0, 0.5])
@pytest.mark.parametrize("ke_vertex", [True, False])
def test_full_pass_keeps_sentinels_beyond_active_levels(stepped_mesh, random_state, apvm, ke_vertex):
    mesh = stepped_mesh
    cfg = DiagnosticsConfig(apvm_scale_factor=apvm, include_ke_vertex=ke_vertex, check_sentinels=True)
    solver = DiagnosticSolver(mesh, cfg)
    diag = solver.solve(random_state(mesh), dt=300.0)

    assert isinstance(diag, Diagnostics)
    for name, mask in _masks(mesh).items():
        check_inactive(name, getattr(diag, name), mask)
    assert np.all(diag.montgomery_potential == SENTINEL)
    assert diag.ssh[-1] == SENTINEL
    assert solver.scratch.in_use == 0
    assert solver.scratch.peak >= 2


def test_debug_mode_catches_sentinel_reads(stepped_mesh, random_state):
    mesh = stepped_mesh
    state = random_state(mesh)
    state.layer_thickness[10, 0] = SENTINEL  # corrupt an active level
    solver = DiagnosticSolver(mesh, DiagnosticsConfig(check_sentinels=True))
    with pytest.raises(SentinelReadError, match="layer_thickness_edge"):
        solver.solve(state, dt=300.0)
    assert solver.scratch.in_use == 0
    # without debug mode the pass completes
    DiagnosticSolver(mesh, DiagnosticsConfig()).solve(state, dt=300.0)


@pytest.mark.parametrize("apvm", [0.0, 0.5])
def test_closed_basin_pass_with_boundary_edges(bounded_mesh, random_state, apvm):
    mesh = bounded_mesh
    cfg = DiagnosticsConfig(apvm_scale_factor=apvm, include_ke_vertex=True, check_sentinels=True)
    solver = DiagnosticSolver(mesh, cfg)
    state = random_state(mesh)
    diag = solver.solve(state, dt=300.0)

    for name, mask in _masks(mesh).items():
        check_inactive(name, getattr(diag, name), mask)
    assert np.all(np.isfinite(diag.kinetic_energy_cell[:-1][mesh.cell_levels]))
    assert solver.scratch.in_use == 0
    # no flux leaves the basin through its boundary edges
    net = mesh.area_cell * diag.vert_velocity_top[:-1, 0]
    assert abs(net.sum()) <= 1e-10 * np.abs(net).sum()
    assert column_net_transport(mesh, state, diag) < 1e-15


def test_debug_mode_checks_sea_surface_height(flat_mesh, random_state, monkeypatch):
    mesh = flat_mesh
    monkeypatch.setattr("pyocn.buoyancy.sea_surface_height", lambda m, h: np.zeros(m.n_cells + 1))
    solver = DiagnosticSolver(mesh, DiagnosticsConfig(check_sentinels=True))
    with pytest.raises(SentinelReadError, match="ssh"):
        solver.solve(random_state(mesh), dt=300.0)
    assert solver.scratch.in_use == 0


def test_column_transport_consistency(stepped_mesh, random_state):
    mesh = stepped_mesh
    state = random_state(mesh)
    diag = diagnostic_solve(mesh, state, 300.0, DiagnosticsConfig())
    assert column_net_transport(mesh, state, diag) < 1e-15
    ocean = mesh.max_level_cell > 0
    assert np.all(diag.vert_velocity_top[:-1][ocean, mesh.max_level_cell[ocean]] == 0.0)


def test_rest_state_has_no_motion_diagnostics(flat_mesh):
    state = zeros_ocean_state(flat_mesh, layer_thickness=100.0)
    diag = diagnostic_solve(flat_mesh, state, 300.0, DiagnosticsConfig(apvm_scale_factor=0.5))
    for name in ("relative_vorticity", "divergence", "kinetic_energy_cell", "tangential_velocity", "vert_velocity_top"):
        np.testing.assert_array_equal(getattr(diag, name)[:-1], 0.0)
    np.testing.assert_allclose(diag.normalized_planetary_vorticity_edge[:-1], 1.0e-4 / 100.0)
    np.testing.assert_array_equal(diag.ssh[:-1], 0.0)


def test_potential_vorticity_edge_follows_time_integrator(flat_mesh, random_state):
    state = random_state(flat_mesh)
    rk4 = DiagnosticSolver(flat_mesh, DiagnosticsConfig(time_integrator="RK4"))
    split = DiagnosticSolver(flat_mesh, DiagnosticsConfig(time_integrator="split_explicit"))
    diag = rk4.solve(state, 300.0)
    nrv = diag.normalized_relative_vorticity_edge
    npv = diag.normalized_planetary_vorticity_edge
    np.testing.assert_allclose(rk4.potential_vorticity_edge(diag)[:-1], (nrv + npv)[:-1])
    np.testing.assert_allclose(split.potential_vorticity_edge(diag)[:-1], nrv[:-1])
    assert np.all(rk4.potential_vorticity_edge(diag)[-1] == SENTINEL)


def test_montgomery_mode_with_isopycnal_layers(flat_mesh, random_state):
    state = random_state(flat_mesh)
    layer = np.where(flat_mesh.cell_levels, 1025.0 + 0.5 * np.arange(flat_mesh.n_vert_levels), 0.0)
    layer = np.vstack([layer, np.full((1, flat_mesh.n_vert_levels), SENTINEL)])
    state.density = layer
    state.potential_density = layer
    state.displaced_density = layer
    cfg = DiagnosticsConfig(
        vert_coord_movement="isopycnal", pressure_gradient_type="MontgomeryPotential", check_sentinels=True
    )
    solver = DiagnosticSolver(flat_mesh, cfg)
    assert solver.eos is None
    diag = solver.solve(state, 300.0)
    np.testing.assert_array_equal(diag.density[:-1], layer[:-1])
    assert np.all(diag.pressure[:-1, 0] == 0.0)
    assert np.all(np.isfinite(diag.montgomery_potential[:-1]))

    scratch = solver.scratch
    w = solver.vert_transport_velocity_top(state)
    assert np.all(w == 0.0)
    assert scratch.in_use == 0


def test_ale_transport_through_solver(stepped_mesh, random_state):
    solver = DiagnosticSolver(stepped_mesh, DiagnosticsConfig(check_sentinels=True))
    w = solver.vert_transport_velocity_top(random_state(stepped_mesh))
    ocean = stepped_mesh.max_level_cell > 0
    np.testing.assert_array_equal(w[:-1][ocean, 0], 0.0)
    assert solver.scratch.in_use == 0


class _FailingEOS:
    def density(self, mesh, state, k_displaced, displacement_type):
        raise FloatingPointError("salinity out of range")


def test_eos_failure_aborts_pass(stepped_mesh, random_state):
    pool = ScratchPool()
    solver = DiagnosticSolver(stepped_mesh, DiagnosticsConfig(apvm_scale_factor=0.5), eos=_FailingEOS(), scratch=pool)
    with pytest.raises(EquationOfStateError):
        solver.solve(random_state(stepped_mesh), 300.0)
    assert pool.in_use == 0
    assert solver.n_passes == 0


class _RecordingClosure:
    def __init__(self, value=0.01):
        self.value = value
        self.seen = []

    def bolus_velocity(self, mesh, state, diagnostics):
        self.seen.append(diagnostics)
        return np.full((mesh.n_edges, mesh.n_vert_levels), self.value)


def test_gm_closure_called_above_epsilon(stepped_mesh, random_state):
    mesh = stepped_mesh
    closure = _RecordingClosure()
    solver = DiagnosticSolver(mesh, DiagnosticsConfig(h_kappa=600.0, check_sentinels=True), gm_closure=closure)
    diag = solver.solve(random_state(mesh), 300.0)
    assert len(closure.seen) == 1
    assert np.all(np.isfinite(closure.seen[0].vert_velocity_top[:-1][mesh.cell_interfaces]))
    mask = mesh.edge_top_levels
    np.testing.assert_array_equal(diag.bolus_velocity[:-1][mask], 0.01)
    assert np.all(diag.bolus_velocity[:-1][~mask] == SENTINEL)


def test_gm_disabled_gives_zero_bolus(stepped_mesh, random_state):
    closure = _RecordingClosure()
    cfg = DiagnosticsConfig(h_kappa=0.5 * np.finfo(float).eps)
    diag = DiagnosticSolver(stepped_mesh, cfg, gm_closure=closure).solve(random_state(stepped_mesh), 300.0)
    assert closure.seen == []
    np.testing.assert_array_equal(diag.bolus_velocity[:-1][stepped_mesh.edge_top_levels], 0.0)


def test_gm_requires_closure_and_propagates_errors(stepped_mesh, random_state):
    with pytest.raises(ConfigError):
        DiagnosticSolver(stepped_mesh, DiagnosticsConfig(h_kappa=1.0))

    class Broken:
        def bolus_velocity(self, mesh, state, diagnostics):
            raise KeyError("gmBolusKappa")

    solver = DiagnosticSolver(stepped_mesh, DiagnosticsConfig(h_kappa=1.0), gm_closure=Broken())
    with pytest.raises(ClosureError):
        solver.solve(random_state(stepped_mesh), 300.0)

    solver = DiagnosticSolver(stepped_mesh, DiagnosticsConfig(h_kappa=1.0), gm_closure=_RecordingClosure(np.nan))
    with pytest.raises(ClosureError, match="not finite"):
        solver.solve(random_state(stepped_mesh), 300.0)


def test_console_summary_every_n_passes(flat_mesh, random_state, capsys):
    solver = DiagnosticSolver(flat_mesh, DiagnosticsConfig(diag=True, diag_every=2))
    state = random_state(flat_mesh)
    solver.solve(state, 300.0)
    assert "[OcnDiag]" not in capsys.readouterr().out
    solver.solve(state, 300.0)
    out = capsys.readouterr().out
    assert out.count("[OcnDiag]") == 1
    assert "pass=2" in out


def test_invariants_report(stepped_mesh, random_state):
    mesh = stepped_mesh
    s0 = random_state(mesh, seed=1)
    s1 = random_state(mesh, seed=2)
    solver = DiagnosticSolver(mesh, DiagnosticsConfig())
    i0 = invariants_from_pass(mesh, s0, solver.solve(s0, 300.0))
    i1 = invariants_from_pass(mesh, s1, solver.solve(s1, 300.0))
    expected = float(np.sum(mesh.area_cell[:, None] * np.where(mesh.cell_levels, s0.layer_thickness[:-1], 0.0)))
    assert i0.volume == pytest.approx(expected)
    assert total_volume(mesh, s0.layer_thickness) == pytest.approx(expected)
    assert i0.ke > 0.0
    rep = diagnostics_report(i0, i1)
    assert rep["d_volume"] == pytest.approx(i1.volume - i0.volume)
    assert set(rep) >= {"volume_old", "volume_new", "ke_old", "ke_new", "d_ke", "d_ssh_mean"}
