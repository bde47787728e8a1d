# mini_bem/post.py
"""
POST-PROCESSING: result fields and contour meshes
=================================================

PURPOSE:
--------
Turns a StressField into what the rendering layer draws:

- field_values      : one scalar per grid point for a ResultField,
                      including strength factors and elastic strains
- contour_data      : grid points inside the analysis region, their values
                      and a triangle mesh over them
- field_summary     : min / max / mean of a field, ignoring empty points

Cartesian components are recovered from the principal values:

    sxx = s1 cos^2(t) + s3 sin^2(t)
    syy = s1 sin^2(t) + s3 cos^2(t)
    sxy = (s1 - s3) sin(t) cos(t)
    von Mises (plane) = sqrt(s1^2 - s1 s3 + s3^2)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from .grid import distance_to_segments, points_in_polygon
from .model import Boundary, ExternalBoundary, Material, PlaneMode, ResultField, StressField
from .strain import principal_strains, shear_strain, volumetric_strain
from .strength import StrengthCriterion


def field_values(
    stress_field: StressField,
    result_field: ResultField,
    criterion: Optional[StrengthCriterion] = None,
    material: Optional[Material] = None,
    plane_mode: PlaneMode = PlaneMode.PLANE_STRAIN,
) -> np.ndarray:
    """
    Scalar values of `result_field` at every grid point.

    STRENGTH_FACTOR needs `criterion`; the strain fields need `material`.
    """
    if result_field is ResultField.SIGMA1:
        return stress_field.sigma1
    if result_field is ResultField.SIGMA3:
        return stress_field.sigma3
    if result_field is ResultField.SXX:
        return stress_field.sxx
    if result_field is ResultField.SYY:
        return stress_field.syy
    if result_field is ResultField.SXY:
        return stress_field.sxy
    if result_field is ResultField.VON_MISES:
        return stress_field.von_mises
    if result_field is ResultField.THETA:
        return stress_field.theta
    if result_field is ResultField.UX:
        return stress_field.ux
    if result_field is ResultField.UY:
        return stress_field.uy
    if result_field is ResultField.DISPLACEMENT_MAGNITUDE:
        return stress_field.displacement_magnitude
    if result_field is ResultField.STRENGTH_FACTOR:
        if criterion is None:
            raise ValueError("STRENGTH_FACTOR needs a strength criterion")
        return criterion.strength_factor(stress_field.sigma1, stress_field.sigma3)
    if result_field in (ResultField.VOLUMETRIC_STRAIN, ResultField.SHEAR_STRAIN):
        if material is None:
            raise ValueError(f"{result_field.name} needs a material")
        e1, e3 = principal_strains(stress_field.sigma1, stress_field.sigma3, material, plane_mode)
        if result_field is ResultField.VOLUMETRIC_STRAIN:
            return volumetric_strain(e1, e3)
        return shear_strain(e1, e3)
    raise ValueError(f"Unsupported result field {result_field}")


def field_summary(values: np.ndarray) -> Dict[str, float]:
    """min / max / mean over non-empty entries (NaN when all are empty)."""
    finite = np.asarray(values, dtype=float)
    finite = finite[np.isfinite(finite)]
    if finite.size == 0:
        nan = float("nan")
        return {"min": nan, "max": nan, "mean": nan, "count": 0}
    return {
        "min": float(finite.min()),
        "max": float(finite.max()),
        "mean": float(finite.mean()),
        "count": int(finite.size),
    }


@dataclass
class ContourData:
    """Triangulated grid values for one result field."""
    result_field: ResultField
    points: np.ndarray        # (M, 2)
    values: np.ndarray        # (M,)
    triangles: np.ndarray     # (T, 3) indices into points
    min_value: float = float("nan")
    max_value: float = float("nan")
    excavations: List[Boundary] = field(default_factory=list)


def contour_data(
    stress_field: StressField,
    result_field: ResultField,
    external: Optional[ExternalBoundary] = None,
    excavations: Sequence[Boundary] = (),
    criterion: Optional[StrengthCriterion] = None,
    material: Optional[Material] = None,
    plane_mode: PlaneMode = PlaneMode.PLANE_STRAIN,
) -> ContourData:
    """
    Mesh the grid for contouring.

    Grid points outside the external boundary are dropped. Each remaining
    grid cell becomes the triangles (p00, p10, p01) and (p10, p11, p01)
    when their corners survive; triangles centred inside an excavation are
    removed so the opening stays blank.
    """
    grid = stress_field.grid
    pts = grid.points()
    values = field_values(stress_field, result_field, criterion, material, plane_mode)

    keep = np.ones(grid.size, dtype=bool)
    if external is not None:
        # points on the outline count as inside
        tol = 1e-9 * max(grid.width, grid.height)
        on_outline = distance_to_segments(pts, external.vertices) <= tol
        keep = points_in_polygon(pts, external.vertices) | on_outline

    new_index = np.full(grid.size, -1, dtype=int)
    new_index[keep] = np.arange(int(np.count_nonzero(keep)))
    ids = new_index.reshape(grid.ny, grid.nx)

    p00, p10 = ids[:-1, :-1], ids[:-1, 1:]
    p01, p11 = ids[1:, :-1], ids[1:, 1:]
    lower = np.stack([p00, p10, p01], axis=-1).reshape(-1, 3)
    upper = np.stack([p10, p11, p01], axis=-1).reshape(-1, 3)
    triangles = np.vstack([lower, upper])
    triangles = triangles[np.all(triangles >= 0, axis=1)]

    mesh_points = pts[keep]
    if excavations and triangles.size:
        centroids = mesh_points[triangles].mean(axis=1)
        hole = np.zeros(triangles.shape[0], dtype=bool)
        for boundary in excavations:
            hole |= points_in_polygon(centroids, boundary.vertices)
        triangles = triangles[~hole]

    mesh_values = values[keep]
    summary = field_summary(mesh_values)
    return ContourData(
        result_field=result_field,
        points=mesh_points,
        values=mesh_values,
        triangles=triangles,
        min_value=summary["min"],
        max_value=summary["max"],
        excavations=list(excavations),
    )
