# mini_bem/interpolate.py
"""
SCATTERED INTERPOLATION: field points -> regular StressField
============================================================

PURPOSE:
--------
The evaluated field points form an irregular cloud (nested lattices with
holes where excavations are). Contouring needs a regular grid, so every
grid point takes an inverse-distance-squared average of nearby field points:

    value(g) = sum_k w_k v_k / sum_k w_k,     w_k = 1 / |g - p_k|^2

"Nearby" means the grid point's own bucket plus its 8 neighbours in a
coarse bucket index over the cloud. A field point closer than sqrt(1e-10)
is copied exactly instead of averaged.

Theta lives on [0, pi) with 0 and pi the same direction, so it is carried
as the doubled-angle pair (cos 2theta, sin 2theta) and recovered with
theta = atan2(sin, cos) / 2 mod pi.

WHY IDW:
--------
The cloud is not structured and can be sparse near excavation corners and
outside the sampled region. IDW needs no triangulation and stays bounded by
the sampled values, so it degrades gracefully when extrapolating.
"""

import logging
from typing import Optional

import numpy as np

from .config import BEMConfig, DEFAULT_CONFIG
from .kernel.parallel import map_chunks
from .model import FieldPointResults, StressField, StressGrid

logger = logging.getLogger(__name__)

EXACT_MATCH_EPS = 1e-10  # squared distance


def _sample_values(field_points: FieldPointResults) -> np.ndarray:
    """IDW columns: sigma1, sigma3, cos 2theta, sin 2theta, ux, uy."""
    two_theta = 2.0 * field_points.theta
    return np.column_stack([
        field_points.sigma1, field_points.sigma3,
        np.cos(two_theta), np.sin(two_theta),
        field_points.ux, field_points.uy,
    ])


def _theta_from_doubled(cos2, sin2) -> np.ndarray:
    theta = np.mod(0.5 * np.arctan2(sin2, cos2), np.pi)
    return np.where(theta >= np.pi, 0.0, theta)


class BucketIndex:
    """
    Uniform bucket grid over a point cloud, nb x nb with nb = int(sqrt(N)) + 1.

    Points are stored sorted by bucket id with CSR-style offsets, so the
    members of bucket b are order[offsets[b]:offsets[b + 1]]. Read-only
    once built.
    """

    def __init__(self, points: np.ndarray):
        pts = np.asarray(points, dtype=float).reshape(-1, 2)
        if pts.shape[0] == 0:
            raise ValueError("Cannot index an empty point set")
        self.points = pts
        self.nb = int(np.sqrt(pts.shape[0])) + 1
        self.x_min, self.y_min = pts.min(axis=0)
        x_max, y_max = pts.max(axis=0)
        width = x_max - self.x_min
        height = y_max - self.y_min
        self.bucket_width = width / self.nb if width > 0 else 1.0
        self.bucket_height = height / self.nb if height > 0 else 1.0

        ix, iy = self.bucket_of(pts)
        ids = iy * self.nb + ix
        self.order = np.argsort(ids, kind="stable")
        self.offsets = np.searchsorted(ids[self.order], np.arange(self.nb * self.nb + 1))

    def bucket_of(self, points: np.ndarray):
        """Bucket coordinates (ix, iy), clamped to the index."""
        pts = np.asarray(points, dtype=float).reshape(-1, 2)
        ix = np.floor((pts[:, 0] - self.x_min) / self.bucket_width).astype(int)
        iy = np.floor((pts[:, 1] - self.y_min) / self.bucket_height).astype(int)
        return np.clip(ix, 0, self.nb - 1), np.clip(iy, 0, self.nb - 1)

    def members(self, ix: int, iy: int) -> np.ndarray:
        b = iy * self.nb + ix
        return self.order[self.offsets[b]:self.offsets[b + 1]]

    def neighbourhood(self, ix: int, iy: int) -> np.ndarray:
        """Point indices in the 3 x 3 buckets around (ix, iy)."""
        parts = [
            self.members(jx, jy)
            for jy in range(max(iy - 1, 0), min(iy + 2, self.nb))
            for jx in range(max(ix - 1, 0), min(ix + 2, self.nb))
        ]
        return np.concatenate(parts)


def idw(targets: np.ndarray, sources: np.ndarray, values: np.ndarray) -> np.ndarray:
    """
    Inverse-distance-squared average of `values` (S, C) at `targets` (T, 2).
    Exact copies where a source coincides with a target.
    """
    d2 = ((targets[:, None, :] - sources[None, :, :]) ** 2).sum(axis=2)
    nearest = np.argmin(d2, axis=1)
    exact = d2[np.arange(d2.shape[0]), nearest] < EXACT_MATCH_EPS

    weights = 1.0 / np.where(d2 < EXACT_MATCH_EPS, 1.0, d2)
    out = (weights @ values) / weights.sum(axis=1)[:, None]
    out[exact] = values[nearest[exact]]
    return out


class ScatteredInterpolator:
    """
    Maps FieldPointResults onto a StressGrid.

    Parameters:
    -----------
    config : BEMConfig, optional
        Uses n_jobs, chunk_size, show_progress
    """

    def __init__(self, config: Optional[BEMConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def interpolate(self, field_points: FieldPointResults, grid: StressGrid) -> StressField:
        """
        Fill a StressField on `grid`.

        Grid points with no field point in their 3 x 3 bucket neighbourhood
        keep the empty sentinel. An empty cloud gives an empty field.
        """
        result = StressField.empty(grid)
        if len(field_points) == 0:
            logger.warning("No field points to interpolate; returning empty field")
            return result

        values = _sample_values(field_points)
        index = BucketIndex(field_points.points)
        targets = grid.points()

        tx, ty = index.bucket_of(targets)
        target_ids = ty * index.nb + tx
        order = np.argsort(target_ids, kind="stable")
        cells, starts = np.unique(target_ids[order], return_index=True)
        stops = np.append(starts[1:], order.size)

        def fill(chunk):
            out = []
            for c in chunk:
                members = order[starts[c]:stops[c]]
                cell = cells[c]
                candidates = index.neighbourhood(cell % index.nb, cell // index.nb)
                if candidates.size == 0:
                    continue
                out.append((members, idw(targets[members], index.points[candidates], values[candidates])))
            return out

        blocks = map_chunks(
            fill,
            cells.size,
            chunk_size=max(1, self.config.chunk_size // 16),
            n_jobs=self.config.n_jobs,
            desc="Interpolating",
            show_progress=self.config.show_progress,
        )

        filled = np.full((grid.size, values.shape[1]), np.nan)
        for block in blocks:
            for members, vals in block:
                filled[members] = vals
        result.sigma1 = filled[:, 0].copy()
        result.sigma3 = filled[:, 1].copy()
        result.theta = _theta_from_doubled(filled[:, 2], filled[:, 3])
        result.ux = filled[:, 4].copy()
        result.uy = filled[:, 5].copy()
        logger.debug(
            "Interpolated %d field points onto %dx%d grid (%d buckets)",
            len(field_points), grid.nx, grid.ny, index.nb * index.nb,
        )
        return result
