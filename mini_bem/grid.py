# mini_bem/grid.py
"""
FIELD-POINT SAMPLING: where the solution is evaluated
=====================================================

PURPOSE:
--------
Stress gradients are steep next to an excavation and mild far away, so the
field is sampled on three nested lattices:

    COARSE : coarse_points x coarse_points over the whole analysis region
    MEDIUM : twice the density, within medium_distance of each excavation's
             bounding box
    FINE   : four times the density, in a box around every sharp corner
             (interior angle below corner_angle)

Points inside an excavation, or closer than min_boundary_distance to its
boundary (where the constant-element solution is unreliable), are marked
invalid and skipped by the evaluator. The irregular point cloud is later
mapped onto a regular grid by the interpolator.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Sequence, Tuple

import numpy as np

from .config import BEMConfig, DEFAULT_CONFIG
from .discretize import interior_angles
from .model import Boundary, ExternalBoundary

logger = logging.getLogger(__name__)

Bounds = Tuple[float, float, float, float]  # x_min, y_min, x_max, y_max

DEDUPE_DECIMALS = 9


class GridLevel(IntEnum):
    COARSE = 0
    MEDIUM = 1
    FINE = 2


@dataclass
class FieldPointGrid:
    """Sampled points, their refinement level and validity flags."""
    points: np.ndarray        # (P, 2)
    level: np.ndarray         # (P,) GridLevel values
    inside: np.ndarray        # (P,) inside an excavation
    too_close: np.ndarray     # (P,) nearer than min_boundary_distance to a boundary

    def __len__(self) -> int:
        return self.points.shape[0]

    @property
    def valid(self) -> np.ndarray:
        return ~(self.inside | self.too_close)

    def valid_points(self) -> np.ndarray:
        return self.points[self.valid]

    def count(self, level: GridLevel) -> int:
        return int(np.count_nonzero(self.level == level))


def points_in_polygon(points, vertices) -> np.ndarray:
    """Even-odd ray casting; True for points strictly inside the polygon."""
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    poly = np.asarray(vertices, dtype=float)
    px, py = pts[:, 0], pts[:, 1]
    inside = np.zeros(pts.shape[0], dtype=bool)
    n = poly.shape[0]
    for i in range(n):
        xi, yi = poly[i]
        xj, yj = poly[i - 1]
        crosses = (yi > py) != (yj > py)
        dy = yj - yi if yj != yi else 1.0
        x_cross = (xj - xi) * (py - yi) / dy + xi
        inside ^= crosses & (px < x_cross)
    return inside


def distance_to_segments(points, vertices) -> np.ndarray:
    """Shortest distance from each point to the closed polygon outline."""
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    poly = np.asarray(vertices, dtype=float)
    best = np.full(pts.shape[0], np.inf)
    for a, b in zip(poly, np.roll(poly, -1, axis=0)):
        d = b - a
        t = np.clip(((pts - a) @ d) / float(d @ d), 0.0, 1.0)
        nearest = a + t[:, None] * d
        best = np.minimum(best, np.hypot(*(pts - nearest).T))
    return best


def analysis_region(
    boundaries: Sequence[Boundary],
    external: Optional[ExternalBoundary] = None,
    padding: float = 0.2,
) -> Bounds:
    """
    Region to sample: the external boundary if there is one, otherwise the
    excavations' bounding box grown by `padding` of its size on each side.
    """
    if external is not None:
        return tuple(float(v) for v in external.bounds())
    pts = np.vstack([np.asarray(b.vertices, dtype=float) for b in boundaries])
    x_min, y_min = pts.min(axis=0)
    x_max, y_max = pts.max(axis=0)
    pad_x = padding * (x_max - x_min)
    pad_y = padding * (y_max - y_min)
    return (float(x_min - pad_x), float(y_min - pad_y), float(x_max + pad_x), float(y_max + pad_y))


def _lattice(x0, y0, x1, y1, spacing) -> np.ndarray:
    xs = np.arange(x0, x1 + 0.5 * spacing, spacing)
    ys = np.arange(y0, y1 + 0.5 * spacing, spacing)
    X, Y = np.meshgrid(xs, ys)
    return np.column_stack([X.ravel(), Y.ravel()])


def _clip(points: np.ndarray, region: Bounds) -> np.ndarray:
    x_min, y_min, x_max, y_max = region
    keep = (
        (points[:, 0] >= x_min) & (points[:, 0] <= x_max)
        & (points[:, 1] >= y_min) & (points[:, 1] <= y_max)
    )
    return points[keep]


def generate_field_points(
    boundaries: Sequence[Boundary],
    region: Bounds,
    config: Optional[BEMConfig] = None,
) -> FieldPointGrid:
    """
    Build the three-level sampling of `region` around `boundaries`.

    Parameters:
    -----------
    boundaries : sequence of Boundary
        Excavations (may be empty)
    region : (x_min, y_min, x_max, y_max)
    config : BEMConfig, optional
        Uses coarse_points, medium_distance, fine_distance, corner_angle,
        min_boundary_distance

    Returns:
    --------
    FieldPointGrid
        Coarse points first, then medium, then fine; duplicates dropped
    """
    cfg = config or DEFAULT_CONFIG
    x_min, y_min, x_max, y_max = region
    if not (x_max > x_min and y_max > y_min):
        raise ValueError(f"Degenerate analysis region {region}")

    xs = np.linspace(x_min, x_max, cfg.coarse_points)
    ys = np.linspace(y_min, y_max, cfg.coarse_points)
    X, Y = np.meshgrid(xs, ys)
    groups = [(np.column_stack([X.ravel(), Y.ravel()]), GridLevel.COARSE)]
    spacing = min(xs[1] - xs[0], ys[1] - ys[0])

    medium_spacing = spacing / 2.0
    fine_spacing = spacing / 4.0
    for boundary in boundaries:
        bx0, by0, bx1, by1 = boundary.bounds()
        dm = cfg.medium_distance
        medium = _lattice(bx0 - dm, by0 - dm, bx1 + dm, by1 + dm, medium_spacing)
        groups.append((_clip(medium, region), GridLevel.MEDIUM))

        angles = interior_angles(boundary.vertices)
        df = cfg.fine_distance
        for (vx, vy), angle in zip(boundary.vertices, angles):
            if angle < cfg.corner_angle:
                fine = _lattice(vx - df, vy - df, vx + df, vy + df, fine_spacing)
                groups.append((_clip(fine, region), GridLevel.FINE))

    points = np.vstack([g for g, _ in groups])
    level = np.concatenate([np.full(g.shape[0], lvl, dtype=int) for g, lvl in groups])
    _, first = np.unique(np.round(points, DEDUPE_DECIMALS), axis=0, return_index=True)
    keep = np.sort(first)
    points, level = points[keep], level[keep]

    inside = np.zeros(points.shape[0], dtype=bool)
    near = np.full(points.shape[0], np.inf)
    for boundary in boundaries:
        inside |= points_in_polygon(points, boundary.vertices)
        near = np.minimum(near, distance_to_segments(points, boundary.vertices))
    too_close = ~inside & (near < cfg.min_boundary_distance)

    grid = FieldPointGrid(points=points, level=level, inside=inside, too_close=too_close)
    logger.debug(
        "Field points: %d coarse, %d medium, %d fine, %d valid",
        grid.count(GridLevel.COARSE), grid.count(GridLevel.MEDIUM),
        grid.count(GridLevel.FINE), int(np.count_nonzero(grid.valid)),
    )
    return grid
