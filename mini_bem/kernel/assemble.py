# mini_bem/kernel/assemble.py
"""
ASSEMBLY: influence matrix and right-hand side of the boundary system
=====================================================================

PURPOSE:
--------
Builds the dense 2N x 2N system A x = b of the fictitious-stress method.

    x[2j], x[2j+1]   shear and normal source strength of element j
    row 2i, 2i+1     shear and normal equation at element i's midpoint

Entry A[2i+p, 2j+q] is the influence of source q of element j on quantity p
of element i, where the quantity (traction or displacement) is chosen per
axis by element i's boundary condition (see conditions.py).

ALGORITHM:
----------
    for each chunk of row elements (in parallel):
        coeffs = integrator(collocation points of chunk, all elements)
        rows   = row_block(coeffs[i], cos_i, sin_i, bc_type_i)
    A = vstack(row chunks)                       # barrier, then publish

Rows are independent, so chunks write nothing shared. The finished matrix is
cached under a hash of the geometry, condition types, ground surface and
material. An unchanged model skips re-assembly entirely.

HALF SPACE:
-----------
The image kernel is only valid when the ground surface lies strictly above
every element. validate_ground_surface rejects anything else and
resolve_ground_surface places or moves the surface when allowed to.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..config import BEMConfig, DEFAULT_CONFIG
from ..errors import GeometryError, UnsupportedElementOrder
from ..model import (
    BoundaryElement,
    ElementArrays,
    ElementOrder,
    InfluenceCoefficients,
    InitialStress,
    Material,
)
from .cache import ContentCache, geometry_key
from .conditions import rhs_entries, row_block
from .integrate import ElementIntegrator
from .parallel import map_chunks

logger = logging.getLogger(__name__)


@dataclass
class SystemMatrix:
    """Assembled system: read-only matrix, right-hand side and cache metadata."""
    matrix: np.ndarray
    rhs: np.ndarray
    key: str
    cache_hit: bool = False
    elapsed: float = 0.0

    @property
    def dof(self) -> int:
        return self.matrix.shape[0]


def top_of_elements(elements: Sequence[BoundaryElement]) -> float:
    """Highest y over all element end points."""
    return max(max(e.start[1], e.end[1]) for e in elements)


def validate_ground_surface(elements: Sequence[BoundaryElement], ground_surface_y: Optional[float]) -> None:
    """
    Raise GeometryError unless the ground surface lies strictly above every
    element (half-space mode only).
    """
    if ground_surface_y is None:
        raise GeometryError("Half-space analysis needs a ground surface level.")
    top = top_of_elements(elements)
    if not ground_surface_y > top:
        raise GeometryError(
            f"Ground surface y={ground_surface_y:g} is not above the excavations "
            f"(highest element point y={top:g})."
        )


def resolve_ground_surface(
    elements: Sequence[BoundaryElement],
    ground_surface_y: Optional[float] = None,
    margin: float = 5.0,
    auto: bool = True,
) -> float:
    """
    Ground surface level to use for a half-space analysis.

    None places the surface `margin` above the highest element. An invalid
    level is moved there when `auto` is set and rejected otherwise.
    """
    top = top_of_elements(elements)
    if ground_surface_y is None:
        return top + margin
    if ground_surface_y > top:
        return float(ground_surface_y)
    if not auto:
        validate_ground_surface(elements, ground_surface_y)
    placed = top + margin
    logger.warning(
        "Ground surface y=%g intersects the excavations; moved to y=%g", ground_surface_y, placed
    )
    return placed


def assemble_rhs(elements: Sequence[BoundaryElement], initial_stress: Optional[InitialStress] = None) -> np.ndarray:
    """Right-hand side: prescribed values less the far-field contribution."""
    rhs = np.empty(2 * len(elements))
    for i, element in enumerate(elements):
        rhs[2 * i], rhs[2 * i + 1] = rhs_entries(element, initial_stress)
    return rhs


def condition_number(matrix: np.ndarray) -> float:
    return float(np.linalg.cond(matrix))


class InfluenceMatrixBuilder:
    """
    Assembles (and caches) the influence matrix of a list of elements.

    Parameters:
    -----------
    material : Material
        Rock mass constants
    config : BEMConfig, optional
        Uses plane_mode, enable_caching, n_jobs, chunk_size
    cache : ContentCache, optional
        Supply one to share a cache between builders
    """

    def __init__(
        self,
        material: Material,
        config: Optional[BEMConfig] = None,
        cache: Optional[ContentCache] = None,
    ):
        self.material = material
        self.config = config or DEFAULT_CONFIG
        self.integrator = ElementIntegrator(material, self.config.plane_mode)
        self.cache = cache or ContentCache("matrix cache", enabled=self.config.enable_caching)

    def build_matrix(
        self,
        elements: Sequence[BoundaryElement],
        ground_surface_y: Optional[float] = None,
        half_space: bool = False,
        initial_stress: Optional[InitialStress] = None,
    ) -> SystemMatrix:
        """
        Influence matrix plus right-hand side.

        Raises:
            GeometryError: no elements, or a ground surface that is missing
                or not above every element in half-space mode
            UnsupportedElementOrder: any element other than constant
        """
        if not elements:
            raise GeometryError("Cannot assemble a system without boundary elements.")
        for e in elements:
            if e.order is not ElementOrder.CONSTANT:
                raise UnsupportedElementOrder(
                    f"{e.order.name.lower()} elements are not implemented; use constant elements."
                )
        if half_space:
            validate_ground_surface(elements, ground_surface_y)

        t0 = time.perf_counter()
        key = geometry_key(
            elements, self.material, self.config.plane_mode, ground_surface_y, half_space
        )
        matrix, hit = self.cache.get_or_build(
            key, lambda: self.assemble(elements, ground_surface_y, half_space)
        )
        rhs = assemble_rhs(elements, initial_stress)
        elapsed = time.perf_counter() - t0
        logger.debug(
            "Influence matrix %dx%d %s in %.3f s",
            matrix.shape[0], matrix.shape[1], "from cache" if hit else "assembled", elapsed,
        )
        return SystemMatrix(matrix=matrix, rhs=rhs, key=key, cache_hit=hit, elapsed=elapsed)

    def assemble(
        self,
        elements: Sequence[BoundaryElement],
        ground_surface_y: Optional[float] = None,
        half_space: bool = False,
    ) -> np.ndarray:
        """Uncached assembly of the 2N x 2N influence matrix."""
        arrays = ElementArrays.from_elements(elements)
        types = [e.condition.type for e in elements]

        def rows(chunk):
            return self._row_chunk(chunk, arrays, types, ground_surface_y, half_space)

        blocks = map_chunks(
            rows,
            len(elements),
            chunk_size=self.config.chunk_size,
            n_jobs=self.config.n_jobs,
            desc="Assembling",
            show_progress=self.config.show_progress,
        )
        return np.vstack(blocks)

    def _row_chunk(self, chunk, arrays: ElementArrays, types, ground_surface_y, half_space) -> np.ndarray:
        idx = np.asarray(chunk)
        px = arrays.mid_x[idx][:, None]
        py = arrays.mid_y[idx][:, None]
        coeffs = self.integrator.influence_arrays(
            px, py, arrays.as_row(), ground_surface_y, half_space
        )
        block = np.empty((2 * len(idx), 2 * len(arrays)))
        for r, i in enumerate(idx):
            row_coeffs = InfluenceCoefficients(
                shear=tuple(v[r] for v in coeffs.shear),
                normal=tuple(v[r] for v in coeffs.normal),
            )
            block[2 * r:2 * r + 2] = row_block(row_coeffs, arrays.cos[i], arrays.sin[i], types[i])
        return block
