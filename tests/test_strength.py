# tests/test_strength.py
import math

import numpy as np
import pytest

from mini_bem.strength import MAX_STRENGTH_FACTOR, TENSILE_FAILURE, HoekBrown, MohrCoulomb, StrengthCriterion


def test_mohr_coulomb_uniaxial():
    """c = 1, phi = 30: UCS = 2 c sqrt(N) = 2 sqrt(3), so sigma1 = -sqrt(3) gives SF 2."""
    mc = MohrCoulomb(cohesion=1.0, friction_angle=30.0)
    assert mc.passive_coefficient == pytest.approx(3.0)
    sf = mc.strength_factor(np.array([-math.sqrt(3.0)]), np.array([0.0]))
    assert sf[0] == pytest.approx(2.0)


def test_mohr_coulomb_confinement_raises_strength():
    mc = MohrCoulomb(cohesion=1.0, friction_angle=30.0)
    unconfined, confined = mc.strength_factor(np.array([-10.0, -10.0]), np.array([0.0, -2.0]))
    assert confined > unconfined
    # sigma1_f = 2 * 3 + 2 sqrt(3)
    assert confined == pytest.approx((6.0 + 2.0 * math.sqrt(3.0)) / 10.0)


def test_mohr_coulomb_tensile_failure():
    mc = MohrCoulomb(cohesion=1.0, friction_angle=30.0, tensile_strength=0.5)
    sf = mc.strength_factor(np.array([-5.0, -5.0]), np.array([0.4, 0.6]))
    assert sf[0] != TENSILE_FAILURE
    assert sf[1] == TENSILE_FAILURE


def test_hoek_brown():
    hb = HoekBrown(sigma_ci=100.0, mb=10.0, s=1.0, a=0.5)
    assert hb.tensile_limit == pytest.approx(-10.0)
    sf = hb.strength_factor(np.array([-50.0, -5.0, -0.1]), np.array([0.0, 20.0, 0.0]))
    assert sf[0] == pytest.approx(2.0)
    assert sf[1] == TENSILE_FAILURE
    assert sf[2] == MAX_STRENGTH_FACTOR


def test_unloaded_and_empty_points():
    hb = HoekBrown()
    sf = hb.strength_factor(np.array([0.0, np.nan]), np.array([0.0, -1.0]))
    assert sf[0] == MAX_STRENGTH_FACTOR
    assert np.isnan(sf[1])


@pytest.mark.parametrize(
    "factory",
    [
        lambda: MohrCoulomb(friction_angle=90.0),
        lambda: MohrCoulomb(cohesion=-1.0),
        lambda: HoekBrown(sigma_ci=0.0),
        lambda: HoekBrown(a=1.5),
    ],
)
def test_invalid_parameters(factory):
    with pytest.raises(ValueError):
        factory()


def test_hoek_brown_from_gsi_intact_rock():
    """GSI 100, D 0 is intact rock: mb = mi and s = 1."""
    hb = HoekBrown.from_gsi(gsi=100.0, mi=25.0, disturbance=0.0, sigma_ci=80.0)
    assert hb.mb == pytest.approx(25.0)
    assert hb.s == pytest.approx(1.0)
    assert hb.a == 0.5
    assert hb.sigma_ci == 80.0


def test_hoek_brown_from_gsi_good_and_poor_rock():
    good = HoekBrown.from_gsi(gsi=80.0, mi=25.0, disturbance=0.0)
    assert good.mb == pytest.approx(25.0 * math.exp(-20.0 / 28.0))
    assert good.s == pytest.approx(math.exp(-20.0 / 9.0))
    assert good.mb > 5.0 and good.s > 0.1
    assert good.a == 0.5

    poor = HoekBrown.from_gsi(gsi=20.0, mi=10.0, disturbance=0.7)
    assert poor.mb < 1.0
    assert poor.s < 1e-3
    # a = 0.65 - GSI / 200 at and below GSI 25
    assert poor.a == pytest.approx(0.55)


def test_disturbance_weakens_the_rock_mass():
    undisturbed = HoekBrown.from_gsi(gsi=50.0, mi=15.0, disturbance=0.0)
    disturbed = HoekBrown.from_gsi(gsi=50.0, mi=15.0, disturbance=1.0)
    assert undisturbed.mb > disturbed.mb
    assert undisturbed.s > disturbed.s

    sigma1, sigma3 = np.array([-10.0, -20.0, -40.0]), np.array([-2.0, -5.0, -10.0])
    sf = HoekBrown.from_gsi(gsi=40.0, mi=15.0, disturbance=0.5, sigma_ci=50.0).strength_factor(sigma1, sigma3)
    assert np.all((sf > 0.0) & (sf < MAX_STRENGTH_FACTOR))
    # heavier loading, lower strength factor
    assert sf[0] > sf[1] > sf[2]


@pytest.mark.parametrize(
    "gsi, mi, disturbance",
    [(-1.0, 10.0, 0.0), (101.0, 10.0, 0.0), (50.0, 0.0, 0.0), (50.0, 10.0, 1.5)],
)
def test_from_gsi_rejects_out_of_range(gsi, mi, disturbance):
    with pytest.raises(ValueError):
        HoekBrown.from_gsi(gsi=gsi, mi=mi, disturbance=disturbance)


def test_criterion_base_is_abstract():
    with pytest.raises(TypeError):
        StrengthCriterion()

    class NoTensileLimit(StrengthCriterion):
        def failure_stress(self, sigma3c):
            return sigma3c

    with pytest.raises(TypeError):
        NoTensileLimit()
