# mini_bem/field.py
"""
FIELD EVALUATION: stresses and displacements from the solved sources
====================================================================

PURPOSE:
--------
Once the source strengths x are known, the response anywhere in the rock is
a weighted sum of element influences:

    induced(p) = sum_j  G_shear(p, j) * x[2j] + G_normal(p, j) * x[2j+1]
    total(p)   = initial + induced        (stresses)
    u(p)       = induced                  (displacements due to excavation)

Principal stresses follow from an eigen-decomposition of the 2x2 tensor.
sigma1 is the most compressive value and theta its direction.

Query points are independent and are evaluated in chunks on joblib threads.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import BEMConfig, DEFAULT_CONFIG
from .kernel.conditions import (
    normal_displacement_row,
    normal_traction_row,
    shear_displacement_row,
    shear_traction_row,
)
from .kernel.integrate import ElementIntegrator
from .kernel.parallel import map_chunks
from .kernel.solve import CancelToken
from .model import (
    BoundaryElement,
    ElementArrays,
    FieldPointResults,
    InitialStress,
    Material,
    PlaneMode,
)

logger = logging.getLogger(__name__)

ISOTROPIC_TOL = 1e-12


def principal_stresses(sxx, syy, sxy) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    In-plane principal stresses of 2D tensors.

    Returns:
    --------
    sigma1 : most compressive (algebraically smallest) principal stress
    sigma3 : least compressive principal stress
    theta  : direction of sigma1 from +x, radians in [0, pi); 0 when the
             state is isotropic
    """
    sxx, syy, sxy = np.broadcast_arrays(
        np.asarray(sxx, dtype=float), np.asarray(syy, dtype=float), np.asarray(sxy, dtype=float)
    )
    if sxx.size == 0:
        return sxx.copy(), syy.copy(), np.zeros_like(sxx)
    tensor = np.empty(sxx.shape + (2, 2))
    tensor[..., 0, 0] = sxx
    tensor[..., 1, 1] = syy
    tensor[..., 0, 1] = sxy
    tensor[..., 1, 0] = sxy
    values, vectors = np.linalg.eigh(tensor)

    sigma1 = values[..., 0]
    sigma3 = values[..., 1]
    theta = np.mod(np.arctan2(vectors[..., 1, 0], vectors[..., 0, 0]), np.pi)
    theta = np.where(theta >= np.pi, 0.0, theta)
    isotropic = (sigma3 - sigma1) <= ISOTROPIC_TOL * (np.abs(sigma1) + np.abs(sigma3))
    theta = np.where(isotropic, 0.0, theta)
    return sigma1, sigma3, theta


def out_of_plane_stress(sxx, syy, poisson_ratio: float, plane_mode: PlaneMode):
    """szz: nu (sxx + syy) in plane strain, zero in plane stress."""
    if plane_mode is PlaneMode.PLANE_STRESS:
        return np.zeros_like(np.asarray(sxx, dtype=float))
    return poisson_ratio * (np.asarray(sxx) + np.asarray(syy))


@dataclass
class BoundaryResponse:
    """
    Solution at each element's collocation point, in the element frame.

    Tractions and the tangential (hoop) stress are totals including the far
    field; displacements are induced. Together with the prescribed values
    these give the complementary boundary unknowns.
    """
    x: np.ndarray
    y: np.ndarray
    shear_traction: np.ndarray
    normal_traction: np.ndarray
    tangential_stress: np.ndarray
    shear_displacement: np.ndarray
    normal_displacement: np.ndarray

    def __len__(self) -> int:
        return self.x.shape[0]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "x": self.x,
            "y": self.y,
            "shear_traction": self.shear_traction,
            "normal_traction": self.normal_traction,
            "tangential_stress": self.tangential_stress,
            "shear_displacement": self.shear_displacement,
            "normal_displacement": self.normal_displacement,
        })


class FieldEvaluator:
    """
    Evaluates solved boundary sources at arbitrary points.

    Parameters:
    -----------
    material : Material
    config : BEMConfig, optional
        Uses plane_mode, n_jobs, chunk_size, show_progress
    """

    def __init__(self, material: Material, config: Optional[BEMConfig] = None):
        self.material = material
        self.config = config or DEFAULT_CONFIG
        self.integrator = ElementIntegrator(material, self.config.plane_mode)

    def induced(
        self,
        points,
        elements: Sequence[BoundaryElement],
        solution: np.ndarray,
        ground_surface_y: Optional[float] = None,
        half_space: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> np.ndarray:
        """Induced (ux, uy, sxx, syy, sxy) at each point, shape (P, 5)."""
        pts = np.asarray(points, dtype=float).reshape(-1, 2)
        solution = np.asarray(solution, dtype=float)
        if solution.shape != (2 * len(elements),):
            raise ValueError(
                f"Solution has {solution.size} entries, expected {2 * len(elements)} "
                f"for {len(elements)} elements."
            )
        row = ElementArrays.from_elements(elements).as_row()
        x_shear = solution[0::2]
        x_normal = solution[1::2]

        def evaluate(chunk):
            if cancel is not None:
                cancel.check()
            idx = np.asarray(chunk)
            coeffs = self.integrator.influence_arrays(
                pts[idx, 0][:, None], pts[idx, 1][:, None], row, ground_surface_y, half_space
            )
            out = np.empty((len(idx), 5))
            for k in range(5):
                out[:, k] = coeffs.shear[k] @ x_shear + coeffs.normal[k] @ x_normal
            return out

        blocks = map_chunks(
            evaluate,
            pts.shape[0],
            chunk_size=self.config.chunk_size,
            n_jobs=self.config.n_jobs,
            desc="Field points",
            show_progress=self.config.show_progress,
        )
        if not blocks:
            return np.empty((0, 5))
        return np.vstack(blocks)

    def compute_field_point_stresses(
        self,
        points,
        elements: Sequence[BoundaryElement],
        solution: np.ndarray,
        initial_stress: Optional[InitialStress] = None,
        ground_surface_y: Optional[float] = None,
        half_space: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> FieldPointResults:
        """
        Total stresses, principal values and induced displacements.

        Parameters:
        -----------
        points : array_like, shape (P, 2)
            Query points inside the rock
        elements : sequence of BoundaryElement
            The discretized boundary the solution belongs to
        solution : np.ndarray, shape (2N,)
            Source strengths from MatrixSolver
        initial_stress : InitialStress, optional
            Far-field stress added to the induced stress
        ground_surface_y, half_space :
            Same settings the matrix was assembled with
        """
        pts = np.asarray(points, dtype=float).reshape(-1, 2)
        induced = self.induced(pts, elements, solution, ground_surface_y, half_space, cancel)

        s0xx, s0yy, s0xy = initial_stress.tensor() if initial_stress is not None else (0.0, 0.0, 0.0)
        sxx = induced[:, 2] + s0xx
        syy = induced[:, 3] + s0yy
        sxy = induced[:, 4] + s0xy
        sigma1, sigma3, theta = principal_stresses(sxx, syy, sxy)
        nu = self.material.kernel_constants(self.config.plane_mode).poisson_ratio
        szz = out_of_plane_stress(sxx, syy, nu, self.config.plane_mode)

        return FieldPointResults(
            x=pts[:, 0].copy(), y=pts[:, 1].copy(),
            sxx=sxx, syy=syy, sxy=sxy, szz=szz,
            sigma1=sigma1, sigma3=sigma3, theta=theta,
            ux=induced[:, 0], uy=induced[:, 1],
        )

    def boundary_response(
        self,
        elements: Sequence[BoundaryElement],
        solution: np.ndarray,
        initial_stress: Optional[InitialStress] = None,
        ground_surface_y: Optional[float] = None,
        half_space: bool = False,
    ) -> BoundaryResponse:
        """Tractions, hoop stress and displacements at the collocation points."""
        arrays = ElementArrays.from_elements(elements)
        mids = np.column_stack([arrays.mid_x, arrays.mid_y])
        induced = self.induced(mids, elements, solution, ground_surface_y, half_space)

        s0 = initial_stress.tensor() if initial_stress is not None else (0.0, 0.0, 0.0)
        total = (
            induced[:, 0], induced[:, 1],
            induced[:, 2] + s0[0], induced[:, 3] + s0[1], induced[:, 4] + s0[2],
        )
        c, s = arrays.cos, arrays.sin
        sxx, syy, sxy = total[2], total[3], total[4]
        tangential = sxx * c * c + syy * s * s + 2.0 * sxy * c * s

        return BoundaryResponse(
            x=arrays.mid_x,
            y=arrays.mid_y,
            shear_traction=shear_traction_row(total, c, s),
            normal_traction=normal_traction_row(total, c, s),
            tangential_stress=tangential,
            shear_displacement=shear_displacement_row(total, c, s),
            normal_displacement=normal_displacement_row(total, c, s),
        )
