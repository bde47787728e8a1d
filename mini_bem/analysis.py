# mini_bem/analysis.py
"""
ANALYSIS PIPELINE: from excavation outlines to a contourable stress field
=========================================================================

PURPOSE:
--------
Runs the stages in strict order, each finishing before the next starts:

    1. discretize       boundaries -> elements
    2. ground surface   place / validate (half-space only)
    3. assemble         influence matrix (cached by geometry) + RHS
    4. solve            source strengths (cached by matrix + RHS)
    5. boundary         hoop stress and complementary unknowns on elements
    6. sample           adaptive field points in the analysis region
    7. evaluate         total stress + displacement at valid field points
    8. interpolate      field points -> regular StressField

An analysis object keeps its matrix and solution caches between runs, so
re-running with only a new far-field stress skips assembly, and re-running
an unchanged model returns the cached solution.

FAILURE MODEL:
--------------
Bad geometry and exhausted solvers do not propagate: run() logs the error
and returns an AnalysisResult whose stress_field is the empty sentinel and
whose stats.success is False. Cancellation is the exception and is
re-raised.

USAGE:
------
    analysis = BEMAnalysis(Material(50000, 0.25), BEMConfig(target_element_count=64))
    result = analysis.run([circular_boundary(5.0)], ExternalBoundary(square),
                          InitialStress(-10, -5, 0))
    result.stress_field.sigma1   # on result.stress_field.grid
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from .config import BEMConfig, DEFAULT_CONFIG
from .discretize import discretize
from .errors import GeometryError, SolveCancelled, SolverError, SolverInputError, UnsupportedElementOrder
from .field import BoundaryResponse, FieldEvaluator
from .grid import analysis_region, generate_field_points
from .interpolate import ScatteredInterpolator
from .kernel.assemble import InfluenceMatrixBuilder, resolve_ground_surface
from .kernel.solve import CancelToken, MatrixSolver, SolveResult
from .model import (
    Boundary,
    BoundaryElement,
    ExternalBoundary,
    FieldPointResults,
    InitialStress,
    Material,
    StressField,
    StressGrid,
)

logger = logging.getLogger(__name__)

RECOVERABLE_ERRORS = (
    GeometryError,
    SolverInputError,
    SolverError,
    UnsupportedElementOrder,
    np.linalg.LinAlgError,
)


@dataclass
class AnalysisStats:
    """Developer diagnostics of one run (not a stable interface)."""
    success: bool = True
    error: str = ""
    element_count: int = 0
    dof: int = 0
    field_point_count: int = 0
    condition_number: Optional[float] = None
    matrix_cache_hit: bool = False
    solution_cache_hit: bool = False
    solver_method: str = ""
    solver_status: str = ""
    timings: Dict[str, float] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class AnalysisResult:
    stress_field: StressField
    stats: AnalysisStats
    elements: List[BoundaryElement] = field(default_factory=list)
    field_points: Optional[FieldPointResults] = None
    boundary_response: Optional[BoundaryResponse] = None
    solve_result: Optional[SolveResult] = None
    ground_surface_y: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.stats.success


class BEMAnalysis:
    """
    Owns one set of pipeline components and their caches.

    Parameters:
    -----------
    material : Material
    config : BEMConfig, optional
    """

    def __init__(self, material: Material, config: Optional[BEMConfig] = None):
        self.material = material
        self.config = config or DEFAULT_CONFIG
        self.builder = InfluenceMatrixBuilder(material, self.config)
        self.solver = MatrixSolver(self.config)
        self.evaluator = FieldEvaluator(material, self.config)
        self.interpolator = ScatteredInterpolator(self.config)

    def output_grid(
        self,
        excavations: Sequence[Boundary],
        external: Optional[ExternalBoundary] = None,
    ) -> StressGrid:
        cfg = self.config
        region = analysis_region(excavations, external, cfg.region_padding)
        return StressGrid.from_bounds(region, cfg.mesh_resolution, cfg.grid_min_points, cfg.grid_max_points)

    def run(
        self,
        excavations: Sequence[Boundary],
        external: Optional[ExternalBoundary] = None,
        initial_stress: Optional[InitialStress] = None,
        cancel: Optional[CancelToken] = None,
    ) -> AnalysisResult:
        """
        Full analysis. Never raises for bad geometry or failed solves; check
        result.success instead.

        Raises:
            GeometryError: no excavations and no external boundary, so there
                is no region to put even an empty field on
            SolveCancelled: when `cancel` is set during the run
        """
        initial_stress = initial_stress or InitialStress()
        stats = AnalysisStats()
        try:
            grid = self.output_grid(excavations, external)
        except (ValueError, IndexError) as exc:
            raise GeometryError(f"Cannot size the output grid: {exc}") from exc

        try:
            return self._run(excavations, external, initial_stress, grid, stats, cancel)
        except SolveCancelled:
            logger.info("Analysis cancelled")
            raise
        except RECOVERABLE_ERRORS as exc:
            logger.exception("Analysis failed; returning empty stress field")
            stats.success = False
            stats.error = str(exc)
            return AnalysisResult(stress_field=StressField.empty(grid), stats=stats)

    def _run(self, excavations, external, initial_stress, grid, stats, cancel) -> AnalysisResult:
        cfg = self.config
        timings = stats.timings

        t0 = time.perf_counter()
        elements = discretize(excavations, cfg)
        timings["discretize"] = time.perf_counter() - t0
        stats.element_count = len(elements)
        stats.dof = 2 * len(elements)

        ground = None
        if cfg.half_space:
            ground = resolve_ground_surface(
                elements, cfg.ground_surface_y, cfg.ground_surface_margin, cfg.auto_ground_surface
            )

        t0 = time.perf_counter()
        system = self.builder.build_matrix(elements, ground, cfg.half_space, initial_stress)
        timings["assemble"] = time.perf_counter() - t0
        stats.matrix_cache_hit = system.cache_hit

        t0 = time.perf_counter()
        solve = self.solver.solve(system.matrix, system.rhs, cancel=cancel)
        timings["solve"] = time.perf_counter() - t0
        stats.solution_cache_hit = solve.cache_hit
        stats.condition_number = solve.condition_number
        stats.solver_method = solve.method
        stats.solver_status = solve.status.value
        if not solve.converged:
            logger.warning("Solution status %s; results have degraded accuracy", solve.status.value)

        t0 = time.perf_counter()
        boundary = self.evaluator.boundary_response(
            elements, solve.x, initial_stress, ground, cfg.half_space
        )
        timings["boundary"] = time.perf_counter() - t0

        t0 = time.perf_counter()
        region = (grid.x_min, grid.y_min, grid.x_min + grid.width, grid.y_min + grid.height)
        sampling = generate_field_points(excavations, region, cfg)
        points = sampling.valid_points()
        if ground is not None:
            points = points[points[:, 1] < ground]
        timings["sample"] = time.perf_counter() - t0
        stats.field_point_count = points.shape[0]

        t0 = time.perf_counter()
        field_points = self.evaluator.compute_field_point_stresses(
            points, elements, solve.x, initial_stress, ground, cfg.half_space, cancel
        )
        timings["evaluate"] = time.perf_counter() - t0

        t0 = time.perf_counter()
        stress_field = self.interpolator.interpolate(field_points, grid)
        timings["interpolate"] = time.perf_counter() - t0

        logger.info(
            "BEM analysis: %d elements, %d field points, %s solve; %s",
            stats.element_count, stats.field_point_count, solve.method,
            ", ".join(f"{k} {v:.3f}s" for k, v in timings.items()),
        )
        return AnalysisResult(
            stress_field=stress_field,
            stats=stats,
            elements=elements,
            field_points=field_points,
            boundary_response=boundary,
            solve_result=solve,
            ground_surface_y=ground,
        )
