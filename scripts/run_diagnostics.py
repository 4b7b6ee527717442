#!/usr/bin/env python3
"""
Demo driver: diagnostic passes on a planar channel with a sloping bottom.

- Doubly periodic quad mesh, bottom shoaling from west to east
- Meridionally sheared zonal jet, stably stratified temperature/salinity
- Each pass: diagnostic solve, then a crude explicit Coriolis update of the
  baroclinic velocity (u += dt * f u_perp) with the barotropic mode filtered out

Usage:
  python -m scripts.run_diagnostics
  python -m scripts.run_diagnostics --passes 20 --apvm 0.5 --plot data/diag.png
  python -m scripts.run_diagnostics --save data/diag.nc

Environment:
  PYOCN_DIAG=1 / PYOCN_DIAG_EVERY=N print [OcnDiag] summaries (forced on here
  unless --quiet); PYOCN_USE_JAX=1 switches the array backend.
"""

import argparse
import os
import sys

import numpy as np
import matplotlib.pyplot as plt
from netCDF4 import Dataset

# Add the project root to the Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pyocn import DiagnosticSolver, DiagnosticsConfig, planar_quad_mesh, seal_dummy_slots, zeros_ocean_state
from pyocn.invariants import diagnostics_report, invariants_from_pass
from pyocn.jax_compat import to_numpy
from pyocn.thickness import layer_thickness_edge


def build_channel(nx: int, ny: int, n_levels: int, dc: float, f0: float, beta: float):
    """Mesh whose active depth falls from n_levels (west) to 2 levels (east)."""
    i = np.tile(np.arange(nx), ny)
    mlc = np.round(n_levels - (n_levels - 2) * i / max(nx - 1, 1)).astype(int)
    return planar_quad_mesh(nx, ny, dc, n_levels, max_level_cell=mlc, f0=f0, beta=beta)


def initial_state(mesh, jet_speed: float):
    state = zeros_ocean_state(mesh, layer_thickness=100.0)
    n_levels = mesh.n_vert_levels
    k = np.arange(n_levels)[None, :]
    cells = mesh.cell_levels

    # zonal jet on x-edges, decaying with depth
    n_x_edges = mesh.n_cells
    y = mesh.y_edge[:n_x_edges]
    width = float(np.max(mesh.y_cell)) + 0.5 * float(mesh.dc_edge[0])
    jet = jet_speed * np.sin(2.0 * np.pi * y / width)[:, None] * np.exp(-k / 4.0)
    u = np.zeros((mesh.n_edges + 1, n_levels))
    u[:n_x_edges] = np.where(mesh.edge_top_levels[:n_x_edges], jet, 0.0)
    state.normal_velocity = u

    tracers = np.zeros((2, mesh.n_cells + 1, n_levels))
    tracers[0, :-1] = np.where(cells, 18.0 * np.exp(-k / 3.0) + 2.0, 0.0)
    tracers[1, :-1] = np.where(cells, 34.0 + 0.15 * k, 0.0)
    state.tracers = tracers

    return seal_dummy_slots(state)


def advance(solver, state, diag, dt: float):
    """One explicit Coriolis update of the baroclinic velocity."""
    mesh = solver.mesh
    h_edge = diag.layer_thickness_edge
    tend = solver.fuperp(state, np.zeros_like(to_numpy(state.normal_velocity)))
    tend = solver.filter_btr_mode_tend_vel(tend, h_edge)
    mask = mesh.edge_top_levels
    u = to_numpy(state.normal_velocity).copy()
    u[:-1] = np.where(mask, u[:-1] + dt * to_numpy(tend)[:-1], u[:-1])
    state.normal_velocity = u
    state.normal_baroclinic_velocity = solver.filter_btr_mode_vel(u, h_edge)
    return state


def save_netcdf(path: str, mesh, diag) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    n = mesh.n_cells
    with Dataset(path, "w") as ds:
        ds.createDimension("nCells", n)
        ds.createDimension("nVertLevels", mesh.n_vert_levels)
        ds.createDimension("nVertLevelsP1", mesh.n_vert_levels + 1)
        for name, dims in (
            ("kinetic_energy_cell", ("nCells", "nVertLevels")),
            ("relative_vorticity_cell", ("nCells", "nVertLevels")),
            ("density", ("nCells", "nVertLevels")),
            ("pressure", ("nCells", "nVertLevels")),
            ("z_mid", ("nCells", "nVertLevels")),
            ("brunt_vaisala_freq_top", ("nCells", "nVertLevels")),
            ("vert_velocity_top", ("nCells", "nVertLevelsP1")),
            ("ssh", ("nCells",)),
        ):
            var = ds.createVariable(name, "f8", dims, fill_value=-1.0e34)
            var[:] = to_numpy(getattr(diag, name))[:n]
        ds.createVariable("maxLevelCell", "i4", ("nCells",))[:] = np.asarray(mesh.max_level_cell).astype("i4")
    print(f"[Save] Diagnostics written to '{path}'")


def plot_summary(mesh, nx: int, ny: int, diag, out_png: str) -> None:
    n = mesh.n_cells
    x = mesh.x_cell.reshape(ny, nx) / 1.0e3
    y = mesh.y_cell.reshape(ny, nx) / 1.0e3
    ocean = np.asarray(mesh.max_level_cell) > 0

    def surface(name):
        field = to_numpy(getattr(diag, name))[:n, 0]
        return np.ma.masked_where(~ocean, field).reshape(ny, nx)

    fig, axes = plt.subplots(2, 2, figsize=(12, 8), constrained_layout=True)
    panels = (
        ("relative_vorticity_cell", "Surface relative vorticity", "s^-1", "RdBu_r"),
        ("kinetic_energy_cell", "Surface kinetic energy", "m^2 s^-2", "viridis"),
        ("density", "Surface density", "kg m^-3", "cividis"),
    )
    for ax, (name, title, units, cmap) in zip(axes.ravel(), panels):
        im = ax.pcolormesh(x, y, surface(name), shading="auto", cmap=cmap)
        cb = fig.colorbar(im, ax=ax, orientation="vertical", pad=0.02)
        cb.set_label(units)
        ax.set_title(title)
        ax.set_xlabel("x (km)")
        ax.set_ylabel("y (km)")

    ax = axes[1, 1]
    j = ny // 2
    cols = np.arange(j * nx, (j + 1) * nx)
    n2 = to_numpy(diag.brunt_vaisala_freq_top)[cols]
    z = to_numpy(diag.z_mid)[cols]
    for c in range(0, nx, max(nx // 4, 1)):
        active = mesh.cell_levels[cols[c]]
        ax.plot(n2[c][active], z[c][active], marker="o", label=f"x={x[j, c]:.0f} km")
    ax.set_title("N^2 profiles (mid-channel)")
    ax.set_xlabel("s^-2")
    ax.set_ylabel("z_mid (m)")
    ax.legend(fontsize=8)

    os.makedirs(os.path.dirname(os.path.abspath(out_png)), exist_ok=True)
    fig.savefig(out_png, dpi=120)
    plt.close(fig)
    print(f"[Plot] Saved {out_png}")


def main():
    ap = argparse.ArgumentParser(description="Run diagnostic passes on a planar sloping-bottom channel.")
    ap.add_argument("--nx", type=int, default=24)
    ap.add_argument("--ny", type=int, default=16)
    ap.add_argument("--levels", type=int, default=10)
    ap.add_argument("--dc", type=float, default=1.0e4, help="Cell size (m)")
    ap.add_argument("--f0", type=float, default=1.0e-4)
    ap.add_argument("--beta", type=float, default=1.6e-11)
    ap.add_argument("--jet", type=float, default=0.5, help="Jet speed (m/s)")
    ap.add_argument("--passes", type=int, default=10)
    ap.add_argument("--dt", type=float, default=600.0, help="Time step (s)")
    ap.add_argument("--apvm", type=float, default=0.5, help="APVM scale factor")
    ap.add_argument("--montgomery", action="store_true", help="Use Montgomery potential pressure")
    ap.add_argument("--quiet", action="store_true", help="Suppress [OcnDiag] summaries")
    ap.add_argument("--save", type=str, default=None, help="Write final diagnostics to NetCDF")
    ap.add_argument("--plot", type=str, default=None, help="Write a summary PNG")
    args = ap.parse_args()

    mesh = build_channel(args.nx, args.ny, args.levels, args.dc, args.f0, args.beta)
    config = DiagnosticsConfig(
        apvm_scale_factor=args.apvm,
        pressure_gradient_type="MontgomeryPotential" if args.montgomery else "pressure_and_zmid",
        diag=not args.quiet,
        diag_every=int(os.getenv("PYOCN_DIAG_EVERY", "1")),
        check_sentinels=True,
    )
    print(f"[Init] Mesh {args.nx}x{args.ny}, {args.levels} levels, {mesh.n_edges} edges")
    solver = DiagnosticSolver(mesh, config)
    state = initial_state(mesh, args.jet)
    h_edge = layer_thickness_edge(mesh, state.layer_thickness)
    state.normal_baroclinic_velocity = solver.filter_btr_mode_vel(state.normal_velocity, h_edge)

    first = None
    diag = None
    for _ in range(args.passes):
        diag = solver.solve(state, args.dt)
        inv = invariants_from_pass(mesh, state, diag)
        if first is None:
            first = inv
        state = advance(solver, state, diag, args.dt)

    if diag is None:
        print("[Done] No passes requested.")
        return
    rep = diagnostics_report(first, inv)
    print(
        f"[Invariants] volume={rep['volume_new']:.6e} m^3 (d={rep['d_volume']:.2e}) "
        f"KE={rep['ke_new']:.4e} (d={rep['d_ke']:.2e}) max|w_top|={rep['w_surface_max']:.3e} m/s"
    )
    print(f"[Scratch] peak={solver.scratch.peak} acquired={solver.scratch.total_acquired} in_use={solver.scratch.in_use}")

    if args.save:
        save_netcdf(args.save, mesh, diag)
    if args.plot:
        plot_summary(mesh, args.nx, args.ny, diag, args.plot)


if __name__ == "__main__":
    main()
