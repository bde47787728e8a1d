# tests/conftest.py
import pytest

from mini_bem.config import BEMConfig
from mini_bem.discretize import circular_boundary, discretize
from mini_bem.model import InitialStress, Material


@pytest.fixture
def rock():
    """Material used throughout the tests (E in MPa)."""
    return Material(youngs_modulus=10000.0, poisson_ratio=0.25, name="Test Rock")


@pytest.fixture
def far_field():
    return InitialStress(sigma1=-10.0, sigma3=-5.0, angle=0.0)


@pytest.fixture
def circle_elements():
    """Factory: constant elements on a circle of given radius and count."""
    def make(radius=5.0, n=32, center=(0.0, 0.0)):
        config = BEMConfig(target_element_count=n, adaptive_sizing=False, n_jobs=1)
        return discretize([circular_boundary(radius, n, center)], config)
    return make
