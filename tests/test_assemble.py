# tests/test_assemble.py
"""
Influence matrix assembly, its cache and the ground-surface rules.
"""

import numpy as np
import pytest

from mini_bem.config import BEMConfig
from mini_bem.errors import GeometryError, UnsupportedElementOrder
from mini_bem.kernel.assemble import (
    InfluenceMatrixBuilder,
    assemble_rhs,
    condition_number,
    resolve_ground_surface,
    top_of_elements,
    validate_ground_surface,
)
from mini_bem.model import BoundaryElement, ElementOrder


@pytest.fixture
def serial_config():
    return BEMConfig(n_jobs=1)


def test_matrix_shape_and_diagonal(rock, serial_config, circle_elements):
    elements = circle_elements(n=32)
    system = InfluenceMatrixBuilder(rock, serial_config).build_matrix(elements)

    assert system.matrix.shape == (64, 64)
    assert system.dof == 64
    # traction-free collocation: every self term is the 1/2 jump
    np.testing.assert_allclose(np.diag(system.matrix), 0.5, atol=1e-12)
    assert np.all(np.isfinite(system.matrix))


def test_rhs_of_traction_free_circle(circle_elements, far_field):
    elements = circle_elements(n=16)
    rhs = assemble_rhs(elements, far_field)
    for i, e in enumerate(elements):
        shear, normal = far_field.local_traction(e.cos, e.sin)
        assert rhs[2 * i] == pytest.approx(-shear)
        assert rhs[2 * i + 1] == pytest.approx(-normal)


def test_matrix_cache_hit_returns_same_object(rock, serial_config, circle_elements, far_field):
    builder = InfluenceMatrixBuilder(rock, serial_config)
    elements = circle_elements(n=16)

    first = builder.build_matrix(elements, initial_stress=far_field)
    second = builder.build_matrix(elements)
    assert not first.cache_hit
    assert second.cache_hit
    assert second.matrix is first.matrix
    assert builder.cache.hits == 1 and builder.cache.misses == 1
    # far-field changes only the right-hand side
    assert not np.allclose(first.rhs, second.rhs)
    # cached matrices are shared and therefore read-only
    with pytest.raises(ValueError):
        first.matrix[0, 0] = 1.0


def test_geometry_change_misses_cache(rock, serial_config, circle_elements):
    builder = InfluenceMatrixBuilder(rock, serial_config)
    builder.build_matrix(circle_elements(radius=5.0, n=16))
    moved = builder.build_matrix(circle_elements(radius=5.0, n=16, center=(1.0, 0.0)))
    assert not moved.cache_hit


def test_disabled_cache_always_assembles(rock, circle_elements):
    builder = InfluenceMatrixBuilder(rock, BEMConfig(n_jobs=1, enable_caching=False))
    elements = circle_elements(n=16)
    a = builder.build_matrix(elements)
    b = builder.build_matrix(elements)
    assert not a.cache_hit and not b.cache_hit
    assert a.matrix is not b.matrix
    np.testing.assert_array_equal(a.matrix, b.matrix)


def test_parallel_matches_serial(rock, circle_elements):
    elements = circle_elements(n=40)
    serial = InfluenceMatrixBuilder(rock, BEMConfig(n_jobs=1)).assemble(elements, 12.0, True)
    threaded = InfluenceMatrixBuilder(rock, BEMConfig(n_jobs=2, chunk_size=7)).assemble(elements, 12.0, True)
    np.testing.assert_allclose(threaded, serial, rtol=0, atol=1e-14)


def test_empty_element_list_rejected(rock, serial_config):
    with pytest.raises(GeometryError):
        InfluenceMatrixBuilder(rock, serial_config).build_matrix([])


def test_higher_order_elements_rejected(rock, serial_config):
    elements = [
        BoundaryElement(start=(0.0, 0.0), end=(1.0, 0.0), order=ElementOrder.LINEAR),
        BoundaryElement(start=(1.0, 0.0), end=(0.0, 1.0)),
    ]
    with pytest.raises(UnsupportedElementOrder):
        InfluenceMatrixBuilder(rock, serial_config).build_matrix(elements)


# ---------------------------------------------------------------------------
# Ground surface
# ---------------------------------------------------------------------------

def test_ground_surface_must_be_above_elements(circle_elements):
    elements = circle_elements(radius=5.0, n=16)
    assert top_of_elements(elements) == pytest.approx(5.0, abs=1e-9)

    validate_ground_surface(elements, 5.5)
    for level in (None, 5.0, 0.0, -20.0):
        with pytest.raises(GeometryError):
            validate_ground_surface(elements, level)


def test_half_space_build_rejects_bad_ground(rock, serial_config, circle_elements):
    builder = InfluenceMatrixBuilder(rock, serial_config)
    with pytest.raises(GeometryError):
        builder.build_matrix(circle_elements(n=16), ground_surface_y=2.0, half_space=True)


def test_resolve_ground_surface(circle_elements):
    elements = circle_elements(radius=5.0, n=16)
    assert resolve_ground_surface(elements, None, margin=5.0) == pytest.approx(10.0)
    assert resolve_ground_surface(elements, 30.0) == 30.0
    # intersecting level is moved up when allowed ...
    assert resolve_ground_surface(elements, 0.0, margin=2.0, auto=True) == pytest.approx(7.0)
    # ... and rejected otherwise
    with pytest.raises(GeometryError):
        resolve_ground_surface(elements, 0.0, auto=False)


def test_half_space_system_is_well_conditioned(rock, serial_config, circle_elements):
    """Tunnel of radius 5, ground 5 above the crown: condition number stays modest."""
    elements = circle_elements(radius=5.0, n=32)
    builder = InfluenceMatrixBuilder(rock, serial_config)

    near = builder.assemble(elements, 10.0, True)
    far = builder.assemble(elements, 500.0, True)
    full = builder.assemble(elements)

    assert condition_number(near) < 1e8
    assert condition_number(far) < 1e8
    # deep ground surface approaches the full-space system
    np.testing.assert_allclose(far, full, atol=5e-3)
    assert not np.allclose(near, full, atol=1e-3)


def test_condition_number_falls_as_ground_surface_rises(rock, serial_config, circle_elements):
    """Crown at y = 5: the closer the free surface, the worse the conditioning."""
    elements = circle_elements(radius=5.0, n=32)
    builder = InfluenceMatrixBuilder(rock, serial_config)

    levels = [5.2, 6.0, 10.0, 50.0]
    conds = [condition_number(builder.assemble(elements, y, True)) for y in levels]

    assert all(np.isfinite(conds))
    assert all(shallow > deep for shallow, deep in zip(conds, conds[1:])), conds
    assert conds[0] > 5.0 * conds[-1]
