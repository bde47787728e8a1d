# mini_bem/discretize.py
"""
DISCRETIZATION: excavation polygons -> boundary elements
========================================================

PURPOSE:
--------
Splits each closed excavation polygon into straight constant elements.

ELEMENT SIZING:
---------------
    size     = (perimeter of all boundaries) / target_element_count
    n_seg    = max(1, round(L_seg / size))

With adaptive sizing the count of a segment is scaled by how sharp the
corner at its far end is:

    factor   = 1 + |180 - interior_angle| / 180 * (max_refinement - 1)

A straight continuation (180 deg) keeps the base count and a knife edge gets
max_refinement times as many elements.

ORIENTATION:
------------
Elements of every excavation are emitted counter-clockwise, so the element
normal (-sin, cos) points into the opening. A clockwise polygon is simply
traversed backwards. Boundary-condition shear values are relative to the
emitted tangent.

USAGE:
------
    tunnel = circular_boundary(radius=5.0, n_vertices=32)
    elements = discretize([tunnel], BEMConfig(target_element_count=32))
"""

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from .config import BEMConfig, DEFAULT_CONFIG
from .errors import GeometryError, UnsupportedElementOrder
from .model import TRACTION_FREE, Boundary, BoundaryElement, ElementOrder

logger = logging.getLogger(__name__)

MIN_VERTICES = 3
ZERO_LENGTH_TOL = 1e-10


def signed_area(vertices) -> float:
    """Shoelace area; positive for counter-clockwise polygons."""
    pts = np.asarray(vertices, dtype=float)
    x, y = pts[:, 0], pts[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def boundary_perimeter(vertices) -> float:
    pts = np.asarray(vertices, dtype=float)
    d = np.roll(pts, -1, axis=0) - pts
    return float(np.sum(np.hypot(d[:, 0], d[:, 1])))


def interior_angles(vertices) -> np.ndarray:
    """
    Interior angle (degrees) at every vertex of a closed polygon, measured
    inside the polygon whatever its orientation.
    """
    pts = np.asarray(vertices, dtype=float)
    incoming = pts - np.roll(pts, 1, axis=0)
    outgoing = np.roll(pts, -1, axis=0) - pts
    cross = incoming[:, 0] * outgoing[:, 1] - incoming[:, 1] * outgoing[:, 0]
    dot = np.sum(incoming * outgoing, axis=1)
    turn = np.degrees(np.arctan2(cross, dot))
    orientation = 1.0 if signed_area(pts) > 0 else -1.0
    return 180.0 - orientation * turn


def circular_boundary(radius: float, n_vertices: int = 32, center=(0.0, 0.0), name: str = "") -> Boundary:
    """Regular polygon inscribed in a circle, counter-clockwise."""
    angles = np.linspace(0.0, 2.0 * math.pi, n_vertices, endpoint=False)
    vertices = [
        (center[0] + radius * math.cos(t), center[1] + radius * math.sin(t)) for t in angles
    ]
    return Boundary(vertices=vertices, name=name or f"circle r={radius:g}")


def _check_boundary(index: int, boundary: Boundary) -> np.ndarray:
    pts = np.asarray(boundary.vertices, dtype=float)
    if pts.ndim != 2 or pts.shape[0] < MIN_VERTICES or pts.shape[1] != 2:
        raise GeometryError(
            f"Boundary {index} needs at least {MIN_VERTICES} (x, y) vertices, "
            f"got {len(boundary.vertices)}."
        )
    d = np.roll(pts, -1, axis=0) - pts
    lengths = np.hypot(d[:, 0], d[:, 1])
    short = np.flatnonzero(lengths <= ZERO_LENGTH_TOL)
    if short.size:
        raise GeometryError(f"Boundary {index} segment {int(short[0])} has zero length.")
    if abs(signed_area(pts)) <= ZERO_LENGTH_TOL:
        raise GeometryError(f"Boundary {index} encloses no area.")
    if boundary.conditions is not None and len(boundary.conditions) != pts.shape[0]:
        raise ValueError(
            f"Boundary {index} has {pts.shape[0]} segments but "
            f"{len(boundary.conditions)} boundary conditions."
        )
    return pts


def segment_counts(vertices, element_size: float, config: BEMConfig) -> List[int]:
    """Number of elements on each segment of one polygon."""
    pts = np.asarray(vertices, dtype=float)
    n = pts.shape[0]
    angles = interior_angles(pts)
    counts = []
    for k in range(n):
        length = float(np.hypot(*(pts[(k + 1) % n] - pts[k])))
        count = max(1, int(0.49999999 + length / element_size))
        if config.adaptive_sizing:
            deviation = abs(180.0 - angles[(k + 1) % n])
            factor = 1.0 + deviation / 180.0 * (config.max_refinement_factor - 1.0)
            count = max(1, int(count * factor + 0.5))
        counts.append(count)
    return counts


def discretize(boundaries: Sequence[Boundary], config: Optional[BEMConfig] = None) -> List[BoundaryElement]:
    """
    Discretize excavation boundaries into constant elements.

    Parameters:
    -----------
    boundaries : sequence of Boundary
        Closed excavation polygons, any orientation
    config : BEMConfig, optional
        Uses target_element_count, adaptive_sizing, max_refinement_factor,
        element_order

    Returns:
    --------
    list of BoundaryElement
        All elements, boundary by boundary, each boundary counter-clockwise

    Raises:
        GeometryError: fewer than 3 vertices, zero-length segment, zero area
        UnsupportedElementOrder: element_order other than CONSTANT
    """
    cfg = config or DEFAULT_CONFIG
    if cfg.element_order is not ElementOrder.CONSTANT:
        raise UnsupportedElementOrder(
            f"{cfg.element_order.name.lower()} elements are not implemented; use constant elements."
        )
    if not boundaries:
        raise GeometryError("No excavation boundaries to discretize.")

    polygons = [_check_boundary(i, b) for i, b in enumerate(boundaries)]
    total = sum(boundary_perimeter(p) for p in polygons)
    element_size = total / cfg.target_element_count

    elements: List[BoundaryElement] = []
    for bid, (boundary, pts) in enumerate(zip(boundaries, polygons)):
        n = pts.shape[0]
        conditions = boundary.conditions or [TRACTION_FREE] * n
        pieces = []
        for k, count in enumerate(segment_counts(pts, element_size, cfg)):
            p, q = pts[k], pts[(k + 1) % n]
            for m in range(count):
                a = p + (q - p) * (m / count)
                b = p + (q - p) * ((m + 1) / count)
                pieces.append((a, b, conditions[k]))

        if signed_area(pts) < 0:
            logger.debug("Boundary %d is clockwise; reversing element direction", bid)
            pieces = [(b, a, c) for a, b, c in reversed(pieces)]

        for a, b, condition in pieces:
            elements.append(BoundaryElement(
                start=(float(a[0]), float(a[1])),
                end=(float(b[0]), float(b[1])),
                condition=condition,
                order=cfg.element_order,
                boundary_id=bid,
                index=len(elements),
            ))

    logger.debug(
        "Discretized %d boundaries into %d elements (target size %.4g)",
        len(boundaries), len(elements), element_size,
    )
    return elements
