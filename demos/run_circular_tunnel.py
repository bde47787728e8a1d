# File: demos/run_circular_tunnel.py
"""
CIRCULAR TUNNEL DEMO
====================

Runs the full analysis on a 5 m radius tunnel and compares the boundary hoop
stress with the Kirsch solution, then repeats it in a half-space with the
ground surface 5 m above the crown.

Run:
    python demos/run_circular_tunnel.py

Writes:
    artifacts/tunnel_field_points.csv
    artifacts/tunnel_boundary.csv
"""

import logging
import math
from pathlib import Path

import numpy as np

from mini_bem import (
    BEMAnalysis,
    BEMConfig,
    ExternalBoundary,
    InitialStress,
    Material,
    ResultField,
    circular_boundary,
)
from mini_bem.post import contour_data, field_summary, field_values
from mini_bem.strength import HoekBrown


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # ========================================================================
    # SETUP
    # ========================================================================
    radius = 5.0
    rock = Material(youngs_modulus=20000.0, poisson_ratio=0.25, name="Granite")
    far_field = InitialStress(sigma1=-20.0, sigma3=-10.0, angle=0.0)  # MPa, compression negative
    tunnel = circular_boundary(radius, n_vertices=64, name="Tunnel")
    external = ExternalBoundary([(-25.0, -25.0), (25.0, -25.0), (25.0, 25.0), (-25.0, 25.0)])

    config = BEMConfig(target_element_count=64, adaptive_sizing=False, show_progress=True)

    # ========================================================================
    # FULL SPACE
    # ========================================================================
    result = BEMAnalysis(rock, config).run([tunnel], external, far_field)
    if not result.success:
        print(f"Analysis failed: {result.stats.error}")
        return

    response = result.boundary_response
    theta = np.arctan2(response.y, response.x)
    sx, sy, _ = far_field.tensor()
    exact = (sx + sy) - 2.0 * (sx - sy) * np.cos(2.0 * theta)
    crown = int(np.argmin(np.abs(theta - math.pi / 2)))
    wall = int(np.argmin(np.abs(theta)))

    print("Circular Tunnel - Full Space")
    print("=" * 50)
    print(f"Elements: {result.stats.element_count}   Field points: {result.stats.field_point_count}")
    print(f"Solver: {result.stats.solver_method} ({result.stats.solver_status}), "
          f"cond = {result.stats.condition_number:.2e}")
    print(f"Crown hoop stress (MPa):  {response.tangential_stress[crown]:8.2f}   Kirsch {exact[crown]:8.2f}")
    print(f"Wall hoop stress (MPa):   {response.tangential_stress[wall]:8.2f}   Kirsch {exact[wall]:8.2f}")
    print(f"Max boundary error (MPa): {np.max(np.abs(response.tangential_stress - exact)):8.3f}")
    print()

    criterion = HoekBrown.from_gsi(gsi=65.0, mi=25.0, disturbance=0.0, sigma_ci=80.0)
    print(f"Hoek-Brown from GSI 65: mb = {criterion.mb:.3f}, s = {criterion.s:.4f}, a = {criterion.a:.2f}")
    fields = (
        ResultField.SIGMA1, ResultField.SIGMA3, ResultField.STRENGTH_FACTOR,
        ResultField.VOLUMETRIC_STRAIN, ResultField.SHEAR_STRAIN,
    )
    for field in fields:
        summary = field_summary(field_values(result.stress_field, field, criterion, rock))
        print(f"{field.value:>18}: min {summary['min']:10.4g}  max {summary['max']:10.4g}")

    mesh = contour_data(result.stress_field, ResultField.SIGMA1, external, [tunnel])
    print(f"Contour mesh: {mesh.points.shape[0]} points, {mesh.triangles.shape[0]} triangles")
    print()

    # ========================================================================
    # HALF SPACE: ground surface 5 m above the crown
    # ========================================================================
    shallow = BEMAnalysis(rock, config.with_overrides(half_space=True))
    shallow_result = shallow.run([tunnel], external, far_field)
    if shallow_result.success:
        hoop = shallow_result.boundary_response.tangential_stress
        print("Circular Tunnel - Half Space")
        print("=" * 50)
        print(f"Ground surface at y = {shallow_result.ground_surface_y:.2f} m")
        print(f"Crown hoop stress (MPa): {hoop[crown]:8.2f}   (full space {response.tangential_stress[crown]:.2f})")
        print(f"Most compressive hoop (MPa): {hoop.min():8.2f}")
        print()

    # ========================================================================
    # SAVE
    # ========================================================================
    out = Path("artifacts")
    out.mkdir(exist_ok=True)
    result.field_points.to_frame().to_csv(out / "tunnel_field_points.csv", index=False)
    response.to_frame().to_csv(out / "tunnel_boundary.csv", index=False)
    print(f"Saved results to {out}/")


if __name__ == "__main__":
    main()
