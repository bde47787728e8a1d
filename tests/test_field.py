# tests/test_field.py
import math

import numpy as np
import pytest

from mini_bem.config import BEMConfig
from mini_bem.field import FieldEvaluator, out_of_plane_stress, principal_stresses
from mini_bem.model import PlaneMode


def test_principal_stresses_of_axis_aligned_state():
    s1, s3, theta = principal_stresses(-10.0, -5.0, 0.0)
    assert float(s1) == pytest.approx(-10.0)
    assert float(s3) == pytest.approx(-5.0)
    assert min(float(theta), math.pi - float(theta)) < 1e-12


def test_sigma1_is_most_compressive():
    s1, s3, theta = principal_stresses(-5.0, -10.0, 0.0)
    assert float(s1) == pytest.approx(-10.0)
    assert float(theta) == pytest.approx(math.pi / 2)


def test_principal_round_trip():
    """Rebuilding sxx, syy, sxy from (s1, s3, theta) gives the input back."""
    rng = np.random.default_rng(11)
    sxx, syy, sxy = rng.normal(scale=10.0, size=(3, 200))
    s1, s3, theta = principal_stresses(sxx, syy, sxy)

    assert np.all(s1 <= s3)
    assert np.all((theta >= 0.0) & (theta < math.pi))
    c, s = np.cos(theta), np.sin(theta)
    np.testing.assert_allclose(s1 * c * c + s3 * s * s, sxx, atol=1e-10)
    np.testing.assert_allclose(s1 * s * s + s3 * c * c, syy, atol=1e-10)
    np.testing.assert_allclose((s1 - s3) * s * c, sxy, atol=1e-10)


def test_isotropic_state_has_zero_angle():
    s1, s3, theta = principal_stresses(np.array([-7.0]), np.array([-7.0]), np.array([0.0]))
    assert s1[0] == pytest.approx(-7.0)
    assert s3[0] == pytest.approx(-7.0)
    assert theta[0] == 0.0


def test_pure_shear_direction():
    # sxy = +5: compressive principal direction at 135 degrees
    s1, s3, theta = principal_stresses(0.0, 0.0, 5.0)
    assert float(s1) == pytest.approx(-5.0)
    assert float(s3) == pytest.approx(5.0)
    assert float(theta) == pytest.approx(3.0 * math.pi / 4.0)


def test_out_of_plane_stress():
    assert out_of_plane_stress(-10.0, -5.0, 0.25, PlaneMode.PLANE_STRAIN) == pytest.approx(-3.75)
    assert out_of_plane_stress(np.array([-10.0]), np.array([-5.0]), 0.25, PlaneMode.PLANE_STRESS)[0] == 0.0


def test_zero_solution_gives_far_field(rock, circle_elements, far_field):
    elements = circle_elements(n=16)
    evaluator = FieldEvaluator(rock, BEMConfig(n_jobs=1))
    result = evaluator.compute_field_point_stresses(
        [(0.0, 8.0), (9.0, -1.0)], elements, np.zeros(32), far_field
    )
    np.testing.assert_allclose(result.sxx, -10.0)
    np.testing.assert_allclose(result.syy, -5.0)
    np.testing.assert_allclose(result.ux, 0.0)
    assert len(result) == 2
    assert result.point(1).x == 9.0


def test_solution_length_mismatch(rock, circle_elements):
    evaluator = FieldEvaluator(rock, BEMConfig(n_jobs=1))
    with pytest.raises(ValueError):
        evaluator.induced([(0.0, 8.0)], circle_elements(n=16), np.zeros(31))


def test_no_points(rock, circle_elements):
    evaluator = FieldEvaluator(rock, BEMConfig(n_jobs=1))
    result = evaluator.compute_field_point_stresses(np.empty((0, 2)), circle_elements(n=16), np.zeros(32))
    assert len(result) == 0


def test_threaded_evaluation_matches_serial(rock, circle_elements):
    elements = circle_elements(n=24)
    rng = np.random.default_rng(5)
    solution = rng.normal(size=48)
    angles = rng.uniform(0.0, 2.0 * math.pi, size=300)
    radii = rng.uniform(6.0, 20.0, size=300)
    points = np.column_stack([radii * np.cos(angles), radii * np.sin(angles)])

    serial = FieldEvaluator(rock, BEMConfig(n_jobs=1)).induced(points, elements, solution)
    threaded = FieldEvaluator(rock, BEMConfig(n_jobs=2, chunk_size=37)).induced(points, elements, solution)
    np.testing.assert_allclose(threaded, serial, rtol=1e-12, atol=1e-15)


def test_to_frame_columns(rock, circle_elements, far_field):
    elements = circle_elements(n=16)
    evaluator = FieldEvaluator(rock, BEMConfig(n_jobs=1))
    frame = evaluator.compute_field_point_stresses([(0.0, 8.0)], elements, np.zeros(32), far_field).to_frame()
    assert list(frame.columns) == ["x", "y", "sxx", "syy", "sxy", "szz", "sigma1", "sigma3", "theta", "ux", "uy"]

    boundary = evaluator.boundary_response(elements, np.zeros(32), far_field).to_frame()
    assert len(boundary) == 16
    assert "tangential_stress" in boundary.columns
