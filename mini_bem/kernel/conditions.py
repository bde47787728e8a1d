# mini_bem/kernel/conditions.py
"""
Boundary-condition row transforms.

Every element contributes two equations, one per local axis: row 2i for the
shear (tangential) axis and row 2i+1 for the normal axis. What goes into a
row depends on the quantity prescribed on that axis:

    traction axis     -> stress influence rotated onto the element plane
    displacement axis -> displacement influence rotated onto the element axes

A row must never mix the two. Traction rows and displacement rows differ in
scale by roughly the shear modulus, and a mixed row has no physical meaning.
The BoundaryConditionType variants name the quantity per axis and the
lookup below turns that into the row function. A new condition type is one
new enum member.
"""

from typing import Callable, Dict, Optional, Tuple

import numpy as np

from ..model import BoundaryConditionType, BoundaryElement, InfluenceCoefficients, InitialStress, Quantity


def shear_traction_row(response, cos, sin):
    """Traction along the tangent of a plane with tangent (cos, sin)."""
    _, _, sxx, syy, sxy = response
    cs = cos * sin
    return (syy - sxx) * cs + sxy * (cos * cos - sin * sin)


def normal_traction_row(response, cos, sin):
    """Traction along the normal (-sin, cos)."""
    _, _, sxx, syy, sxy = response
    cs = cos * sin
    return sxx * sin * sin - 2.0 * sxy * cs + syy * cos * cos


def shear_displacement_row(response, cos, sin):
    ux, uy = response[0], response[1]
    return ux * cos + uy * sin


def normal_displacement_row(response, cos, sin):
    ux, uy = response[0], response[1]
    return -ux * sin + uy * cos


RowFunction = Callable[..., np.ndarray]

ROW_FUNCTIONS: Dict[Tuple[str, Quantity], RowFunction] = {
    ("shear", Quantity.TRACTION): shear_traction_row,
    ("normal", Quantity.TRACTION): normal_traction_row,
    ("shear", Quantity.DISPLACEMENT): shear_displacement_row,
    ("normal", Quantity.DISPLACEMENT): normal_displacement_row,
}


def row_functions(bc_type: BoundaryConditionType) -> Tuple[RowFunction, RowFunction]:
    """(shear-row, normal-row) functions of a condition variant."""
    return ROW_FUNCTIONS[("shear", bc_type.shear)], ROW_FUNCTIONS[("normal", bc_type.normal)]


def row_block(
    coeffs: InfluenceCoefficients,
    cos: float,
    sin: float,
    bc_type: BoundaryConditionType,
) -> np.ndarray:
    """
    Two matrix rows of one element.

    coeffs holds arrays of length N (one entry per source element), evaluated
    at the row element's collocation point. Columns 2j and 2j+1 take the
    shear and normal sources of element j.
    """
    shear_fn, normal_fn = row_functions(bc_type)
    n_src = np.shape(coeffs.shear[0])[-1]
    block = np.empty((2, 2 * n_src))
    block[0, 0::2] = shear_fn(coeffs.shear, cos, sin)
    block[0, 1::2] = shear_fn(coeffs.normal, cos, sin)
    block[1, 0::2] = normal_fn(coeffs.shear, cos, sin)
    block[1, 1::2] = normal_fn(coeffs.normal, cos, sin)
    return block


def rhs_entries(element: BoundaryElement, far_field: Optional[InitialStress] = None) -> Tuple[float, float]:
    """
    Right-hand side of an element's two equations.

    The far-field stress already loads the boundary, so on a traction axis
    the sources must supply the prescribed traction minus the far-field
    traction. Displacements are reported as induced displacements, so a
    displacement axis takes the prescribed value as is.
    """
    condition = element.condition
    if far_field is None:
        ff_shear, ff_normal = 0.0, 0.0
    else:
        ff_shear, ff_normal = far_field.local_traction(element.cos, element.sin)

    shear = condition.shear
    if condition.type.shear is Quantity.TRACTION:
        shear -= ff_shear
    normal = condition.normal
    if condition.type.normal is Quantity.TRACTION:
        normal -= ff_normal
    return shear, normal
