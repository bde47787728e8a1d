# mini_bem/kernel - numerical core of the boundary element solver
"""
KERNEL: INTEGRATION, ASSEMBLY AND SOLUTION
==========================================

The three expensive stages of a boundary element analysis live here:

- integrate : influence of a constant element on a point (closed form in a
              full space, plus a quadrature image term for a half space)
- assemble  : influence matrix with per-row boundary-condition transforms,
              cached by geometry
- solve     : direct / SVD / BiCGSTAB fallback chain with a solution cache

Everything above the kernel (discretization, field sampling, interpolation,
post-processing) only deals with geometry and arrays of results.
"""

from ..errors import GeometryError, SolveCancelled, SolverError, SolverInputError, UnsupportedElementOrder
from .assemble import InfluenceMatrixBuilder, SystemMatrix, resolve_ground_surface, validate_ground_surface
from .cache import ContentCache
from .integrate import ElementIntegrator
from .solve import CancelToken, MatrixSolver, SolveResult, SolveStatus

__all__ = [
    'ElementIntegrator',
    'InfluenceMatrixBuilder', 'SystemMatrix', 'resolve_ground_surface', 'validate_ground_surface',
    'ContentCache',
    'MatrixSolver', 'SolveResult', 'SolveStatus', 'CancelToken',
    'GeometryError', 'SolverInputError', 'SolverError', 'SolveCancelled', 'UnsupportedElementOrder',
]
