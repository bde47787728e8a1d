# tests/test_post.py
import math

import numpy as np
import pytest

from mini_bem.discretize import circular_boundary
from mini_bem.grid import points_in_polygon
from mini_bem.model import ExternalBoundary, Material, ResultField, StressField, StressGrid
from mini_bem.post import contour_data, field_summary, field_values
from mini_bem.strength import MohrCoulomb


@pytest.fixture
def uniform_field():
    grid = StressGrid(x_min=-10.0, y_min=-10.0, width=20.0, height=20.0, nx=21, ny=21)
    n = grid.size
    return StressField(
        grid=grid,
        sigma1=np.full(n, -10.0),
        sigma3=np.full(n, -5.0),
        theta=np.full(n, math.pi / 2),
        ux=np.full(n, 3e-3),
        uy=np.full(n, -4e-3),
    )


def test_cartesian_components_from_principals(uniform_field):
    np.testing.assert_allclose(field_values(uniform_field, ResultField.SXX), -5.0)
    np.testing.assert_allclose(field_values(uniform_field, ResultField.SYY), -10.0)
    np.testing.assert_allclose(field_values(uniform_field, ResultField.SXY), 0.0, atol=1e-12)
    np.testing.assert_allclose(field_values(uniform_field, ResultField.VON_MISES), math.sqrt(75.0))
    np.testing.assert_allclose(field_values(uniform_field, ResultField.DISPLACEMENT_MAGNITUDE), 5e-3)
    np.testing.assert_allclose(field_values(uniform_field, ResultField.SIGMA1), -10.0)


def test_strength_factor_needs_criterion(uniform_field):
    with pytest.raises(ValueError):
        field_values(uniform_field, ResultField.STRENGTH_FACTOR)
    sf = field_values(uniform_field, ResultField.STRENGTH_FACTOR, MohrCoulomb(cohesion=1.0, friction_angle=30.0))
    assert sf.shape == (uniform_field.grid.size,)
    assert np.all(sf > 0.0)


def test_field_summary_ignores_empty_points():
    summary = field_summary(np.array([1.0, np.nan, 3.0]))
    assert summary == {"min": 1.0, "max": 3.0, "mean": 2.0, "count": 2}
    empty = field_summary(np.array([np.nan, np.nan]))
    assert empty["count"] == 0
    assert math.isnan(empty["min"])


def test_contour_mesh_without_clipping(uniform_field):
    data = contour_data(uniform_field, ResultField.SIGMA3)
    # every cell contributes two triangles
    assert data.triangles.shape == (2 * 20 * 20, 3)
    assert data.points.shape == (21 * 21, 2)
    assert data.min_value == pytest.approx(-5.0)
    assert data.max_value == pytest.approx(-5.0)


def test_contour_mesh_clipped_to_external_and_holes(uniform_field):
    external = ExternalBoundary([(-5.0, -5.0), (5.0, -5.0), (5.0, 5.0), (-5.0, 5.0)])
    tunnel = circular_boundary(2.0, 32)
    data = contour_data(uniform_field, ResultField.SIGMA1, external=external, excavations=[tunnel])

    # points on the outline are kept: an 11 x 11 block remains
    assert data.points.shape[0] == 11 * 11
    assert np.all(np.abs(data.points) <= 5.0 + 1e-9)
    assert data.triangles.max() < data.points.shape[0]

    centroids = data.points[data.triangles].mean(axis=1)
    assert not np.any(points_in_polygon(centroids, tunnel.vertices))
    assert data.triangles.shape[0] < 2 * 10 * 10
    assert data.excavations == [tunnel]


def test_empty_field_summary():
    grid = StressGrid(0.0, 0.0, 1.0, 1.0, 2, 2)
    data = contour_data(StressField.empty(grid), ResultField.SIGMA1)
    assert math.isnan(data.min_value)


def test_strain_fields_need_material(uniform_field):
    with pytest.raises(ValueError):
        field_values(uniform_field, ResultField.VOLUMETRIC_STRAIN)

    rock = Material(youngs_modulus=10000.0, poisson_ratio=0.25)
    vol = field_values(uniform_field, ResultField.VOLUMETRIC_STRAIN, material=rock)
    shear = field_values(uniform_field, ResultField.SHEAR_STRAIN, material=rock)

    # plane strain: e1 + e3 = (1 - nu - 2 nu^2) (s1 + s3) / E
    np.testing.assert_allclose(vol, (1.0 - 0.25 - 2 * 0.0625) * (-15.0) / 10000.0)
    # |e1 - e3| = (s3 - s1) / (2 G)
    np.testing.assert_allclose(shear, 5.0 / (2.0 * rock.shear_modulus))
