# tests/test_strain.py
"""
Elastic strains from stresses.

WHAT WE CHECK:
--------------
1. Plane-strain Hooke's law for principal and Cartesian components
2. Engineering shear strain is tau / G
3. Volumetric and maximum shear strain from the principals
4. Plane stress drops the out-of-plane coupling
"""

import numpy as np
import pytest

from mini_bem.model import Material, PlaneMode
from mini_bem.strain import cartesian_strains, principal_strains, shear_strain, volumetric_strain

ROCK = Material(youngs_modulus=50000.0, poisson_ratio=0.25)


def test_uniaxial_tension_principal_strains():
    e1, e3 = principal_strains(100.0, 0.0, ROCK)
    nu, E = 0.25, 50000.0
    assert e1 == pytest.approx((1.0 - nu * nu) * 100.0 / E)
    assert e3 == pytest.approx(-nu * (1.0 + nu) * 100.0 / E)
    # Poisson contraction
    assert e3 < 0.0


def test_equal_biaxial_compression_gives_equal_strains():
    e1, e3 = principal_strains(-100.0, -100.0, ROCK)
    assert e1 == pytest.approx(e3)
    assert e1 < 0.0


def test_major_stress_gives_larger_strain():
    e1, e3 = principal_strains(-30.0, -20.0, ROCK)
    assert e1 < 0.0 and e3 < 0.0
    assert abs(e1) > abs(e3)


def test_pure_shear_has_no_normal_strain():
    exx, eyy, gxy = cartesian_strains(0.0, 0.0, 50.0, ROCK)
    assert exx == pytest.approx(0.0)
    assert eyy == pytest.approx(0.0)
    assert gxy == pytest.approx(50.0 / ROCK.shear_modulus)


def test_uniaxial_x_stress_ratio():
    exx, eyy, gxy = cartesian_strains(100.0, 0.0, 0.0, ROCK)
    nu = 0.25
    assert exx > 0.0 and eyy < 0.0
    assert gxy == pytest.approx(0.0)
    # plane strain: eyy / exx = -nu / (1 - nu)
    assert eyy / exx == pytest.approx(-nu / (1.0 - nu))


def test_cartesian_and_principal_agree_on_axes():
    exx, eyy, _ = cartesian_strains(-12.0, -4.0, 0.0, ROCK)
    e1, e3 = principal_strains(-12.0, -4.0, ROCK)
    assert exx == pytest.approx(e1)
    assert eyy == pytest.approx(e3)


def test_volumetric_and_shear_strain():
    assert volumetric_strain(0.002, -0.001) == pytest.approx(0.001)
    assert volumetric_strain(-0.001, -0.001) == pytest.approx(-0.002)
    assert shear_strain(0.003, 0.001) == pytest.approx(0.002)
    # order independent: sigma1 is the most compressive, so e1 < e3 in results
    assert shear_strain(0.001, 0.003) == pytest.approx(0.002)
    assert shear_strain(0.001, 0.001) == pytest.approx(0.0)


def test_plane_stress_uses_plain_hooke():
    e1, e3 = principal_strains(100.0, 0.0, ROCK, PlaneMode.PLANE_STRESS)
    assert e1 == pytest.approx(100.0 / 50000.0)
    assert e3 == pytest.approx(-0.25 * 100.0 / 50000.0)


def test_arrays_broadcast():
    e1, e3 = principal_strains(np.array([-10.0, np.nan]), np.array([-5.0, -5.0]), ROCK)
    assert e1.shape == (2,)
    assert np.isnan(e1[1]) and np.isnan(e3[1])
