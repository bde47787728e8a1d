# mini_bem/strain.py
"""
Elastic strains from the computed stresses.

Hooke's law for an isotropic Material, tension positive. In plane strain

    ex = [(1 - nu^2) sx - nu (1 + nu) sy] / E

and in plane stress ex = (sx - nu sy) / E. Engineering shear strain is
gxy = sxy / G in both modes.
"""

from typing import Tuple

import numpy as np

from .model import Material, PlaneMode


def _in_plane_coefficients(material: Material, plane_mode: PlaneMode) -> Tuple[float, float]:
    """(direct, cross) so that e_i = direct * s_i - cross * s_j."""
    E, nu = material.youngs_modulus, material.poisson_ratio
    if plane_mode is PlaneMode.PLANE_STRESS:
        return 1.0 / E, nu / E
    return (1.0 - nu * nu) / E, nu * (1.0 + nu) / E


def principal_strains(
    sigma1, sigma3, material: Material, plane_mode: PlaneMode = PlaneMode.PLANE_STRAIN
) -> Tuple[np.ndarray, np.ndarray]:
    """In-plane principal strains (epsilon1, epsilon3) from principal stresses."""
    s1 = np.asarray(sigma1, dtype=float)
    s3 = np.asarray(sigma3, dtype=float)
    direct, cross = _in_plane_coefficients(material, plane_mode)
    return direct * s1 - cross * s3, direct * s3 - cross * s1


def cartesian_strains(
    sxx, syy, sxy, material: Material, plane_mode: PlaneMode = PlaneMode.PLANE_STRAIN
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """(exx, eyy, gxy) with gxy the engineering shear strain."""
    sx = np.asarray(sxx, dtype=float)
    sy = np.asarray(syy, dtype=float)
    direct, cross = _in_plane_coefficients(material, plane_mode)
    gxy = np.asarray(sxy, dtype=float) / material.shear_modulus
    return direct * sx - cross * sy, direct * sy - cross * sx, gxy


def volumetric_strain(epsilon1, epsilon3) -> np.ndarray:
    return np.asarray(epsilon1, dtype=float) + np.asarray(epsilon3, dtype=float)


def shear_strain(epsilon1, epsilon3) -> np.ndarray:
    """Maximum engineering shear strain in the plane, |e1 - e3|."""
    return np.abs(np.asarray(epsilon1, dtype=float) - np.asarray(epsilon3, dtype=float))
