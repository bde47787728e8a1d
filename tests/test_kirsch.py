# tests/test_kirsch.py
"""
Verification against the Kirsch solution for a circular hole.

WHAT IS THE KIRSCH SOLUTION?
----------------------------
A circular hole of radius a in an infinite elastic plate loaded by far-field
stresses px (along x) and py (along y) has a closed-form stress field. On
the hole boundary the only non-zero stress is the hoop stress:

    sigma_theta(theta) = (px + py) - 2 (px - py) cos(2 theta)

So with uniaxial px = S the crown (theta = 90 deg) carries 3S and the
springline (theta = 0) carries -S: the classic stress concentration factor
of 3.

At r = 2a on the vertical axis:

    sxx = 1.21875 S       syy = 0.28125 S

and under hydrostatic p the induced radial displacement is

    u_r = p a^2 / (2 G r)

WHY THIS TEST MATTERS:
----------------------
It exercises the whole chain: discretization, influence kernel, row
selection, RHS with far field, solve, boundary response and field
evaluation. A sign slip anywhere shows up as a wrong stress concentration.
"""

import math

import numpy as np
import pytest

from mini_bem.config import BEMConfig
from mini_bem.field import FieldEvaluator
from mini_bem.kernel.assemble import InfluenceMatrixBuilder
from mini_bem.kernel.solve import MatrixSolver
from mini_bem.model import InitialStress

RADIUS = 5.0


def solve_circle(rock, initial_stress, circle_elements, n):
    config = BEMConfig(n_jobs=1)
    elements = circle_elements(radius=RADIUS, n=n)
    system = InfluenceMatrixBuilder(rock, config).build_matrix(elements, initial_stress=initial_stress)
    solve = MatrixSolver(config).solve(system.matrix, system.rhs)
    return elements, solve.x, FieldEvaluator(rock, config)


def kirsch_hoop(theta, px, py):
    return (px + py) - 2.0 * (px - py) * np.cos(2.0 * theta)


def boundary_hoop(rock, initial_stress, circle_elements, n):
    elements, x, evaluator = solve_circle(rock, initial_stress, circle_elements, n)
    response = evaluator.boundary_response(elements, x, initial_stress)
    theta = np.arctan2(response.y, response.x)
    return theta, response


def test_uniaxial_stress_concentration(rock, circle_elements):
    """
    Uniaxial S = -10 along x: crown hoop stress approaches 3S = -30 and the
    springline goes into tension +10.
    """
    stress = InitialStress(sigma1=-10.0, sigma3=0.0, angle=0.0)

    # STEP 1: solve with 64 elements
    theta, response = boundary_hoop(rock, stress, circle_elements, 64)

    # STEP 2: the boundary is traction free (these are the equations solved)
    np.testing.assert_allclose(response.normal_traction, 0.0, atol=1e-8)
    np.testing.assert_allclose(response.shear_traction, 0.0, atol=1e-8)

    # STEP 3: compare hoop stress at the crown and springline
    crown = np.argmin(np.abs(theta - math.pi / 2))
    springline = np.argmin(np.abs(theta))
    assert response.tangential_stress[crown] == pytest.approx(-30.0, rel=0.10)
    assert response.tangential_stress[springline] == pytest.approx(10.0, rel=0.15)

    print(f"\nKirsch uniaxial: crown {response.tangential_stress[crown]:.2f} (exact -30), "
          f"springline {response.tangential_stress[springline]:.2f} (exact +10)")


def test_biaxial_hoop_stress(rock, circle_elements, far_field):
    """Far field -10 / -5: crown -25, springline -5."""
    theta, response = boundary_hoop(rock, far_field, circle_elements, 64)

    crown = np.argmin(np.abs(theta - math.pi / 2))
    springline = np.argmin(np.abs(theta))
    assert response.tangential_stress[crown] == pytest.approx(-25.0, rel=0.10)
    assert response.tangential_stress[springline] == pytest.approx(-5.0, abs=1.0)


def test_refinement_reduces_error(rock, circle_elements, far_field):
    errors = {}
    for n in (16, 64):
        theta, response = boundary_hoop(rock, far_field, circle_elements, n)
        exact = kirsch_hoop(theta, -10.0, -5.0)
        errors[n] = float(np.max(np.abs(response.tangential_stress - exact)))

    assert errors[64] < errors[16]
    assert errors[64] < 3.0


def test_field_point_at_twice_the_radius(rock, circle_elements):
    stress = InitialStress(sigma1=-10.0, sigma3=0.0, angle=0.0)
    elements, x, evaluator = solve_circle(rock, stress, circle_elements, 64)

    result = evaluator.compute_field_point_stresses([(0.0, 2.0 * RADIUS)], elements, x, stress)

    assert result.sxx[0] == pytest.approx(-12.1875, rel=0.03)
    assert result.syy[0] == pytest.approx(-2.8125, abs=0.3)
    assert result.sxy[0] == pytest.approx(0.0, abs=0.1)
    # sigma1 is the most compressive principal stress, here along x
    assert result.sigma1[0] == pytest.approx(result.sxx[0], abs=0.1)
    assert min(result.theta[0], math.pi - result.theta[0]) < 0.05


def test_far_field_recovered_far_away(rock, circle_elements, far_field):
    elements, x, evaluator = solve_circle(rock, far_field, circle_elements, 32)
    result = evaluator.compute_field_point_stresses([(200.0, 150.0)], elements, x, far_field)
    assert result.sxx[0] == pytest.approx(-10.0, abs=0.05)
    assert result.syy[0] == pytest.approx(-5.0, abs=0.05)
    assert result.sxy[0] == pytest.approx(0.0, abs=0.05)


def test_hydrostatic_radial_displacement(rock, circle_elements):
    p = -10.0
    stress = InitialStress(sigma1=p, sigma3=p, angle=0.0)
    elements, x, evaluator = solve_circle(rock, stress, circle_elements, 64)

    r = 2.0 * RADIUS
    result = evaluator.compute_field_point_stresses([(0.0, r), (r, 0.0)], elements, x, stress)
    expected = p * RADIUS ** 2 / (2.0 * rock.shear_modulus * r)

    assert result.uy[0] == pytest.approx(expected, rel=0.10)
    assert result.ux[1] == pytest.approx(expected, rel=0.10)
    # no tangential displacement on the symmetry axis
    assert result.ux[0] == pytest.approx(0.0, abs=abs(expected) * 0.05)
