# mini_bem/config.py
"""
Solver configuration and defaults.

One BEMConfig bundles every knob of the pipeline: discretization density,
element order, half-space settings, solver thresholds, caching, parallelism
and output grid sampling. Components take a config in their constructor and
fall back to DEFAULT_CONFIG when none is given.
"""

from dataclasses import dataclass, replace
from typing import Optional

from .model import ElementOrder, PlaneMode


@dataclass
class BEMConfig:
    """Global solver configuration."""

    # Discretization
    target_element_count: int = 100
    adaptive_sizing: bool = True
    max_refinement_factor: float = 4.0
    element_order: ElementOrder = ElementOrder.CONSTANT
    plane_mode: PlaneMode = PlaneMode.PLANE_STRAIN

    # Ground surface (half-space mode)
    half_space: bool = False
    ground_surface_y: Optional[float] = None
    ground_surface_margin: float = 5.0
    auto_ground_surface: bool = True

    # Matrix solver
    direct_solver_threshold: int = 2000  # DOFs
    tolerance: float = 1e-6
    max_iterations: int = 1000
    condition_limit: float = 1e10
    overflow_limit: float = 1e15
    iterative_fallback: bool = True

    # Caches
    enable_caching: bool = True

    # Parallel loops (joblib, threads backend)
    n_jobs: int = -1
    chunk_size: int = 256
    show_progress: bool = False

    # Output grid
    mesh_resolution: float = 1.0
    grid_min_points: int = 10
    grid_max_points: int = 200

    # Field point sampling
    coarse_points: int = 50
    medium_distance: float = 5.0
    fine_distance: float = 2.0
    corner_angle: float = 135.0  # degrees
    min_boundary_distance: float = 0.1
    region_padding: float = 0.2

    def __post_init__(self):
        if self.target_element_count < 1:
            raise ValueError(f"target_element_count must be >= 1, got {self.target_element_count}")
        if self.max_refinement_factor < 1.0:
            raise ValueError(f"max_refinement_factor must be >= 1, got {self.max_refinement_factor}")
        if self.direct_solver_threshold < 1:
            raise ValueError("direct_solver_threshold must be positive")
        if not 0.0 < self.tolerance < 1.0:
            raise ValueError(f"tolerance must be in (0, 1), got {self.tolerance}")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be positive")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        if self.mesh_resolution <= 0.0:
            raise ValueError(f"mesh_resolution must be positive, got {self.mesh_resolution}")
        if self.grid_min_points < 2 or self.grid_max_points < self.grid_min_points:
            raise ValueError("grid point limits must satisfy 2 <= min <= max")
        if self.coarse_points < 2:
            raise ValueError("coarse_points must be >= 2")
        if self.ground_surface_margin <= 0.0:
            raise ValueError("ground_surface_margin must be positive")

    def with_overrides(self, **changes) -> "BEMConfig":
        """Return a copy with some fields replaced (validated again)."""
        return replace(self, **changes)


# Global default instance
DEFAULT_CONFIG = BEMConfig()
