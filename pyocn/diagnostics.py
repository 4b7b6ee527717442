"""
Diagnostic-solve driver.

DiagnosticSolver runs the phases of one diagnostic pass in dependency order:

  1. layer thickness at edges
  2. circulation and relative vorticity at vertices
  3. divergence, thickness-flux divergence, edge-based kinetic energy
  4. cell kinetic energy (blend with vertex KE unless cell-only)
  5. cell relative vorticity
  6. tangential velocity
  7. normalized vorticity at vertices, edges and cells
  8. APVM upstream bias of edge PV
  9. densities (equation of state, skipped for isopycnal coordinates)
 10. pressure or Montgomery potential, mid-layer depth
 11. Brunt-Vaisala frequency
 12. sea-surface height
 13. vertical transport velocity
 14. GM bolus velocity

The configuration is resolved once into SchemeFlags at construction and is
threaded explicitly into every phase. Temporaries live in scratch scopes
that are released on every exit path. With config.check_sentinels, each
output is verified against its level mask right after it is produced.

Usage
-----
mesh = planar_quad_mesh(8, 8, 1.0e4, 4)
solver = DiagnosticSolver(mesh, DiagnosticsConfig(apvm_scale_factor=0.5))
diag = solver.solve(state, dt=300.0)
"""

from __future__ import annotations

import numpy as np

from . import buoyancy, coriolis, barotropic, density_pressure, kinetic_energy, thickness, vertical_velocity, vorticity
from .api import EquationOfState, GMClosure, make_eos
from .checks import check_active, check_inactive
from .config import DiagnosticsConfig, SchemeFlags
from .constants import SENTINEL
from .errors import ClosureError, ConfigError
from .jax_compat import to_numpy, xp
from .mesh import Mesh
from .scratch import ScratchPool
from .state import Diagnostics, OceanState
from .stencil import active


class DiagnosticSolver:
    """
    Runs diagnostic passes for one mesh partition.

    Parameters
    ----------
    mesh : Mesh
    config : DiagnosticsConfig, optional
        Defaults to DiagnosticsConfig.from_env().
    eos : EquationOfState, optional
        Defaults to the linear equation of state (unused for isopycnal coordinates).
    gm_closure : GMClosure, optional
        Required when config.h_kappa >= machine epsilon.
    scratch : ScratchPool, optional
    """

    def __init__(
        self,
        mesh: Mesh,
        config: DiagnosticsConfig | None = None,
        *,
        eos: EquationOfState | None = None,
        gm_closure: GMClosure | None = None,
        scratch: ScratchPool | None = None,
    ) -> None:
        self.mesh = mesh
        self.config = config if config is not None else DiagnosticsConfig.from_env()
        self.flags: SchemeFlags = self.config.resolve()
        if eos is None and not self.config.isopycnal:
            eos = make_eos("linear")
        self.eos = eos
        if self.gm_enabled and gm_closure is None:
            raise ConfigError(f"h_kappa={self.config.h_kappa} enables GM but no closure was supplied")
        self.gm_closure = gm_closure
        self.scratch = scratch if scratch is not None else ScratchPool()
        self.n_passes = 0

    @property
    def gm_enabled(self) -> bool:
        return self.config.h_kappa >= np.finfo(float).eps

    # ---------- debug checks ----------

    def _check(self, name: str, field, mask) -> None:
        if not self.config.check_sentinels:
            return
        check_active(name, field, mask)
        check_inactive(name, field, mask)

    # ---------- diagnostic pass ----------

    def solve(self, state: OceanState, dt: float) -> Diagnostics:
        mesh, cfg, flags = self.mesh, self.config, self.flags
        h = xp.asarray(state.layer_thickness)
        u = xp.asarray(state.normal_velocity)

        h_edge = thickness.layer_thickness_edge(mesh, h)
        self._check("layer_thickness_edge", h_edge, mesh.edge_top_levels)

        circulation, relative_vorticity = vorticity.circulation_and_vorticity(mesh, u)
        self._check("circulation", circulation, mesh.vertex_bot_levels)
        self._check("relative_vorticity", relative_vorticity, mesh.vertex_bot_levels)

        terms = vertical_velocity.horizontal_divergence(mesh, u, h_edge)
        self._check("divergence", terms.divergence, mesh.cell_levels)

        ke_cell = kinetic_energy.kinetic_energy_cell(
            mesh, terms.kinetic_energy_edge, u, include_vertex=flags.ke_vertex, scratch=self.scratch
        )
        self._check("kinetic_energy_cell", ke_cell, mesh.cell_levels)

        relative_vorticity_cell = vorticity.vorticity_cell(mesh, relative_vorticity)
        self._check("relative_vorticity_cell", relative_vorticity_cell, mesh.cell_levels)

        tangential = coriolis.tangential_velocity(mesh, u)
        self._check("tangential_velocity", tangential, mesh.edge_top_levels)

        with self.scratch.scope("normalized_vorticity") as tmp:
            tmp["relative_vertex"], tmp["planetary_vertex"] = vorticity.normalized_vorticity_vertex(
                mesh, relative_vorticity, h
            )
            nrv_edge = vorticity.normalized_vorticity_edge(mesh, tmp["relative_vertex"])
            npv_edge = vorticity.normalized_vorticity_edge(mesh, tmp["planetary_vertex"])
            nrv_cell = vorticity.normalized_vorticity_cell(mesh, tmp["relative_vertex"])
            self._check("normalized_relative_vorticity_cell", nrv_cell, mesh.cell_levels)

            if vorticity.apvm_enabled(cfg.apvm_scale_factor):
                with self.scratch.scope("apvm") as grads:
                    grads["normal"], grads["tangential"] = vorticity.apvm_gradients(
                        mesh, nrv_cell, tmp["relative_vertex"]
                    )
                    nrv_edge = vorticity.apply_apvm(
                        mesh, nrv_edge, u, tangential, grads["normal"], grads["tangential"],
                        cfg.apvm_scale_factor, dt,
                    )
        self._check("normalized_relative_vorticity_edge", nrv_edge, mesh.edge_bot_levels)
        self._check("normalized_planetary_vorticity_edge", npv_edge, mesh.edge_bot_levels)

        densities = density_pressure.compute_densities(mesh, state, self.eos, isopycnal=cfg.isopycnal)
        for name, rho in densities._asdict().items():
            self._check(name, rho, mesh.cell_levels)

        z_mid = density_pressure.z_mid(mesh, h)
        self._check("z_mid", z_mid, mesh.cell_levels)
        sentinel_cells = xp.full((mesh.n_cells + 1, mesh.n_vert_levels), SENTINEL)
        if cfg.montgomery:
            pressure, montgomery = density_pressure.montgomery_potential(
                mesh, h, densities.density, gravity=cfg.gravity
            )
            self._check("montgomery_potential", montgomery, mesh.cell_levels)
        else:
            pressure = density_pressure.hydrostatic_pressure(mesh, h, densities.density, gravity=cfg.gravity)
            montgomery = sentinel_cells
        self._check("pressure", pressure, mesh.cell_levels)

        n2 = buoyancy.brunt_vaisala_freq_top(
            mesh, densities.density, densities.displaced_density, z_mid,
            gravity=cfg.gravity, density0=cfg.density0,
        )
        self._check("brunt_vaisala_freq_top", n2, mesh.cell_levels)

        ssh = buoyancy.sea_surface_height(mesh, h)
        self._check("ssh", ssh, np.ones(mesh.n_cells, dtype=bool))

        w = vertical_velocity.vert_velocity_top(mesh, terms.thickness_flux_divergence)
        self._check("vert_velocity_top", w, mesh.cell_interfaces)

        diagnostics = Diagnostics(
            layer_thickness_edge=h_edge,
            circulation=circulation,
            relative_vorticity=relative_vorticity,
            relative_vorticity_cell=relative_vorticity_cell,
            divergence=terms.divergence,
            kinetic_energy_cell=ke_cell,
            tangential_velocity=tangential,
            normalized_relative_vorticity_edge=nrv_edge,
            normalized_planetary_vorticity_edge=npv_edge,
            normalized_relative_vorticity_cell=nrv_cell,
            density=densities.density,
            displaced_density=densities.displaced_density,
            potential_density=densities.potential_density,
            pressure=pressure,
            montgomery_potential=montgomery,
            z_mid=z_mid,
            brunt_vaisala_freq_top=n2,
            ssh=ssh,
            vert_velocity_top=w,
            bolus_velocity=xp.full((mesh.n_edges + 1, mesh.n_vert_levels), SENTINEL),
        )
        diagnostics.bolus_velocity = self._bolus_velocity(state, diagnostics)
        self._check("bolus_velocity", diagnostics.bolus_velocity, mesh.edge_top_levels)

        self.n_passes += 1
        if cfg.diag and self.n_passes % cfg.diag_every == 0:
            self._print_summary(diagnostics)
        return diagnostics

    def _bolus_velocity(self, state: OceanState, diagnostics: Diagnostics):
        mesh = self.mesh
        if not self.gm_enabled:
            return active(xp.zeros((mesh.n_edges, mesh.n_vert_levels)), mesh.edge_top_levels)
        try:
            bolus = xp.asarray(self.gm_closure.bolus_velocity(mesh, state, diagnostics))
        except ClosureError:
            raise
        except Exception as exc:
            raise ClosureError(f"GM closure failed: {exc}") from exc
        if bolus.ndim != 2 or bolus.shape[0] not in (mesh.n_edges, mesh.n_edges + 1) or bolus.shape[1] != mesh.n_vert_levels:
            raise ClosureError(f"bolus velocity has shape {tuple(bolus.shape)}")
        bolus = bolus[: mesh.n_edges]
        if bool(xp.any(mesh.edge_top_levels & ~xp.isfinite(bolus))):
            raise ClosureError("bolus velocity is not finite on active edge levels")
        return active(bolus, mesh.edge_top_levels)

    def _print_summary(self, diagnostics: Diagnostics) -> None:
        mesh = self.mesh
        n = mesh.n_cells
        cells = mesh.cell_levels
        w = to_numpy(diagnostics.vert_velocity_top)[:n]
        ke = to_numpy(diagnostics.kinetic_energy_cell)[:n]
        n2 = to_numpy(diagnostics.brunt_vaisala_freq_top)[:n]
        ocean = np.asarray(mesh.max_level_cell) > 0
        ssh = to_numpy(diagnostics.ssh)[:n][ocean]
        w_max = float(np.max(np.abs(w[mesh.cell_interfaces]))) if w[mesh.cell_interfaces].size else 0.0
        ke_mean = float(np.mean(ke[cells])) if cells.any() else 0.0
        interior = cells.copy()
        interior[:, 0] = False
        n2_min = float(np.min(n2[interior])) if interior.any() else 0.0
        ssh_lo = float(ssh.min()) if ssh.size else 0.0
        ssh_hi = float(ssh.max()) if ssh.size else 0.0
        print(
            f"[OcnDiag] pass={self.n_passes} max|w|={w_max:.3e} m/s KE_mean={ke_mean:.3e} m2/s2 "
            f"SSH=[{ssh_lo:.3f},{ssh_hi:.3f}] m N2_min={n2_min:.3e} s-2"
        )

    # ---------- phases used by the time integrator ----------

    def vert_transport_velocity_top(self, state: OceanState, layer_thickness_edge=None):
        """ALE vertical transport velocity; all zero for isopycnal coordinates."""
        h = xp.asarray(state.layer_thickness)
        if layer_thickness_edge is None:
            layer_thickness_edge = thickness.layer_thickness_edge(self.mesh, h)
        w = vertical_velocity.vert_transport_velocity_top(
            self.mesh, h, layer_thickness_edge, xp.asarray(state.normal_velocity),
            isopycnal=self.config.isopycnal, scratch=self.scratch,
        )
        if not self.config.isopycnal:
            self._check("vert_transport_velocity_top", w, self.mesh.cell_interfaces)
        return w

    def potential_vorticity_edge(self, diagnostics: Diagnostics):
        return diagnostics.potential_vorticity_edge(self.flags.f_coef, self.mesh.edge_bot_levels)

    def fuperp(self, state: OceanState, velocity=None):
        """Explicit f * u_perp from the baroclinic velocity, over a copy of `velocity`."""
        if state.normal_baroclinic_velocity is None:
            raise ValueError("fuperp requires state.normal_baroclinic_velocity")
        if velocity is None:
            velocity = state.normal_velocity
        return coriolis.fuperp(self.mesh, xp.asarray(velocity), xp.asarray(state.normal_baroclinic_velocity))

    def filter_btr_mode_vel(self, normal_velocity, layer_thickness_edge):
        return barotropic.filter_btr_mode_vel(self.mesh, normal_velocity, layer_thickness_edge)

    def filter_btr_mode_tend_vel(self, tend_normal_velocity, layer_thickness_edge):
        return barotropic.filter_btr_mode_tend_vel(self.mesh, tend_normal_velocity, layer_thickness_edge)


def diagnostic_solve(
    mesh: Mesh,
    state: OceanState,
    dt: float,
    config: DiagnosticsConfig | None = None,
    *,
    eos: EquationOfState | None = None,
    gm_closure: GMClosure | None = None,
) -> Diagnostics:
    """One-shot diagnostic pass with a fresh solver."""
    return DiagnosticSolver(mesh, config, eos=eos, gm_closure=gm_closure).solve(state, dt)
