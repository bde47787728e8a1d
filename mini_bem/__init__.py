# mini_bem - Boundary element stress analysis around underground excavations
"""
MINI-BEM: 2D Boundary Element Stress Analysis
=============================================

This package computes the elastic stress and displacement field around
underground openings with the fictitious-stress boundary element method:
only the excavation outline is discretized, and the rock mass in between is
handled analytically.

ARCHITECTURE:
-------------
    model.py        Data structures (Material, Boundary, elements, results)
    config.py       BEMConfig and defaults
    errors.py       Exception types
    discretize.py   Boundary polygons -> constant elements
    kernel/         Influence integration, matrix assembly, linear solvers
    field.py        Stresses/displacements at interior points
    grid.py         Adaptive field-point sampling
    interpolate.py  Field points -> regular grid (bucketed IDW)
    post.py         Result fields, contour meshes
    strength.py     Mohr-Coulomb / Hoek-Brown strength factors
    strain.py       Elastic strains from the stresses
    analysis.py     The whole pipeline with caches and diagnostics
"""

from .analysis import AnalysisResult, AnalysisStats, BEMAnalysis
from .config import DEFAULT_CONFIG, BEMConfig
from .discretize import circular_boundary, discretize
from .errors import GeometryError, SolveCancelled, SolverError, SolverInputError, UnsupportedElementOrder
from .field import FieldEvaluator, principal_stresses
from .interpolate import ScatteredInterpolator
from .kernel import ElementIntegrator, InfluenceMatrixBuilder, MatrixSolver, SolveStatus, CancelToken
from .model import (
    Boundary,
    BoundaryCondition,
    BoundaryConditionType,
    BoundaryElement,
    ElementOrder,
    ExternalBoundary,
    InitialStress,
    Material,
    PlaneMode,
    ResultField,
    StressField,
    StressGrid,
)

__version__ = "0.1.0"

__all__ = [
    'BEMAnalysis', 'AnalysisResult', 'AnalysisStats',
    'BEMConfig', 'DEFAULT_CONFIG',
    'discretize', 'circular_boundary',
    'FieldEvaluator', 'principal_stresses', 'ScatteredInterpolator',
    'ElementIntegrator', 'InfluenceMatrixBuilder', 'MatrixSolver', 'SolveStatus', 'CancelToken',
    'Boundary', 'BoundaryCondition', 'BoundaryConditionType', 'BoundaryElement', 'ElementOrder',
    'ExternalBoundary', 'InitialStress', 'Material', 'PlaneMode', 'ResultField',
    'StressField', 'StressGrid',
    'GeometryError', 'SolverInputError', 'SolverError', 'SolveCancelled', 'UnsupportedElementOrder',
]
