# mini_bem/model.py
"""
MODEL DEFINITIONS: boundaries, elements, material, stress state and results
===========================================================================

PURPOSE:
--------
Plain data structures shared by every stage of the pipeline:

- Material, InitialStress        : what the rock is and how it is loaded
- Boundary, ExternalBoundary     : closed polygons drawn by the user
- BoundaryCondition(+Type)       : what is prescribed on each segment
- BoundaryElement, ElementArrays : the discretized boundary
- InfluenceCoefficients          : kernel output for one (point, element) pair
- FieldPointResults, FieldPoint  : evaluated interior points
- StressGrid, StressField        : the regular grid handed to contouring

SIGN CONVENTIONS:
-----------------
- Stresses are tension-positive (compression negative, MPa).
- sigma1 is the MAJOR principal stress in the geomechanics sense, i.e. the
  most compressive one (algebraically smallest); sigma3 is the minor one.
- theta is the direction of sigma1 measured from +x, radians in [0, pi).
- Excavation boundaries are traversed counter-clockwise, so the element
  normal (-sin, cos) points out of the rock into the opening.
- Boundary-condition values are given in the element's local frame:
  shear along the tangent, normal along the outward normal.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import pandas as pd


Point = Tuple[float, float]

# Value held by a StressField channel before it is interpolated.
EMPTY_VALUE = float("nan")


class PlaneMode(Enum):
    PLANE_STRAIN = "plane_strain"
    PLANE_STRESS = "plane_stress"


class ElementOrder(Enum):
    """Interpolation order of the unknowns along an element."""
    CONSTANT = 0
    LINEAR = 1
    QUADRATIC = 2


class KernelConstants(NamedTuple):
    kappa: float
    stress_coefficient: float
    displacement_coefficient: float
    poisson_ratio: float  # effective value used by the kernel


@dataclass(frozen=True)
class Material:
    """
    Isotropic linear-elastic rock mass.

    Parameters:
    -----------
    youngs_modulus : float
        Young's modulus E (MPa)
    poisson_ratio : float
        Poisson's ratio nu, -1 < nu < 0.5
    name : str
        Label only
    """
    youngs_modulus: float = 50000.0
    poisson_ratio: float = 0.25
    name: str = "Default Rock"

    def __post_init__(self):
        if self.youngs_modulus <= 0.0:
            raise ValueError(f"Young's modulus must be positive, got {self.youngs_modulus}")
        if not -1.0 < self.poisson_ratio < 0.5:
            raise ValueError(f"Poisson's ratio must be in (-1, 0.5), got {self.poisson_ratio}")

    @property
    def shear_modulus(self) -> float:
        return self.youngs_modulus / (2.0 * (1.0 + self.poisson_ratio))

    def kernel_constants(self, plane_mode: PlaneMode = PlaneMode.PLANE_STRAIN) -> KernelConstants:
        """
        Constants of the Kelvin fundamental solution.

        Plane stress reuses the plane-strain formulas with the effective
        Poisson's ratio nu' = nu / (1 + nu); the shear modulus is unchanged.
        """
        nu = self.poisson_ratio
        if plane_mode is PlaneMode.PLANE_STRESS:
            nu = nu / (1.0 + nu)
        kappa = 3.0 - 4.0 * nu
        stress_coefficient = 1.0 / (8.0 * math.pi * (1.0 - nu))
        displacement_coefficient = stress_coefficient / self.shear_modulus
        return KernelConstants(kappa, stress_coefficient, displacement_coefficient, nu)


class Quantity(Enum):
    """Physical quantity prescribed on one local axis of an element."""
    TRACTION = "traction"
    DISPLACEMENT = "displacement"


class BoundaryConditionType(Enum):
    """
    Closed set of boundary-condition variants.

    Each variant names the quantity prescribed on the shear (tangential) axis
    and on the normal axis. The integer code matches the numbering used by
    the drawing layer (1 = traction ... 4 = mixed B).
    """
    TRACTION = (1, Quantity.TRACTION, Quantity.TRACTION)
    DISPLACEMENT = (2, Quantity.DISPLACEMENT, Quantity.DISPLACEMENT)
    MIXED_A = (3, Quantity.DISPLACEMENT, Quantity.TRACTION)
    MIXED_B = (4, Quantity.TRACTION, Quantity.DISPLACEMENT)

    def __init__(self, code: int, shear: Quantity, normal: Quantity):
        self.code = code
        self.shear = shear
        self.normal = normal

    @classmethod
    def from_code(cls, code: int) -> "BoundaryConditionType":
        for member in cls:
            if member.code == code:
                return member
        raise ValueError(f"Unknown boundary condition code {code}")


@dataclass(frozen=True)
class BoundaryCondition:
    """Prescribed values on an element, in its local (shear, normal) frame."""
    type: BoundaryConditionType = BoundaryConditionType.TRACTION
    shear: float = 0.0
    normal: float = 0.0

    @property
    def values(self) -> Tuple[float, float]:
        return (self.shear, self.normal)


TRACTION_FREE = BoundaryCondition()


@dataclass
class Boundary:
    """
    Closed excavation polygon as delivered by the drawing layer.

    vertices are (x, y) pairs; the closing segment from the last vertex back
    to the first is implicit. conditions, when given, holds one
    BoundaryCondition per segment (segment k runs from vertex k to k+1).
    allow_intersections is carried through for the geometry tools and is not
    used by the solver.
    """
    vertices: List[Point]
    conditions: Optional[List[BoundaryCondition]] = None
    allow_intersections: bool = True
    name: str = ""

    @property
    def segment_count(self) -> int:
        return len(self.vertices)

    def bounds(self) -> Tuple[float, float, float, float]:
        """(x_min, y_min, x_max, y_max)"""
        pts = np.asarray(self.vertices, dtype=float)
        return (pts[:, 0].min(), pts[:, 1].min(), pts[:, 0].max(), pts[:, 1].max())


@dataclass
class ExternalBoundary:
    """Outer polygon limiting the region where results are sampled."""
    vertices: List[Point]

    def bounds(self) -> Tuple[float, float, float, float]:
        pts = np.asarray(self.vertices, dtype=float)
        return (pts[:, 0].min(), pts[:, 1].min(), pts[:, 0].max(), pts[:, 1].max())


@dataclass(frozen=True)
class BoundaryElement:
    """
    Straight boundary element with constant source strengths.

    The tangent runs from start to end; the unit normal is the tangent
    rotated +90 degrees, (-sin, cos). Unknowns of element i sit at index 2i
    (shear source) and 2i+1 (normal source) of the solution vector.
    """
    start: Point
    end: Point
    condition: BoundaryCondition = TRACTION_FREE
    order: ElementOrder = ElementOrder.CONSTANT
    boundary_id: int = 0
    index: int = 0

    @property
    def length(self) -> float:
        return math.hypot(self.end[0] - self.start[0], self.end[1] - self.start[1])

    @property
    def half_length(self) -> float:
        return 0.5 * self.length

    @property
    def midpoint(self) -> Point:
        return (0.5 * (self.start[0] + self.end[0]), 0.5 * (self.start[1] + self.end[1]))

    @property
    def cos(self) -> float:
        return (self.end[0] - self.start[0]) / self.length

    @property
    def sin(self) -> float:
        return (self.end[1] - self.start[1]) / self.length

    @property
    def normal(self) -> Point:
        return (-self.sin, self.cos)

    @property
    def condition_type(self) -> BoundaryConditionType:
        return self.condition.type


@dataclass(frozen=True)
class ElementArrays:
    """Element geometry packed into arrays for the vectorized kernels."""
    mid_x: np.ndarray
    mid_y: np.ndarray
    cos: np.ndarray
    sin: np.ndarray
    half_length: np.ndarray

    @classmethod
    def from_elements(cls, elements: Sequence[BoundaryElement]) -> "ElementArrays":
        start = np.array([e.start for e in elements], dtype=float).reshape(-1, 2)
        end = np.array([e.end for e in elements], dtype=float).reshape(-1, 2)
        d = end - start
        length = np.hypot(d[:, 0], d[:, 1])
        if np.any(length <= 0.0):
            bad = int(np.argmin(length))
            raise ValueError(f"Element {bad} has zero length.")
        mid = 0.5 * (start + end)
        return cls(
            mid_x=mid[:, 0],
            mid_y=mid[:, 1],
            cos=d[:, 0] / length,
            sin=d[:, 1] / length,
            half_length=0.5 * length,
        )

    def __len__(self) -> int:
        return self.mid_x.shape[0]

    def take(self, index) -> "ElementArrays":
        return ElementArrays(
            self.mid_x[index], self.mid_y[index], self.cos[index],
            self.sin[index], self.half_length[index],
        )

    def as_row(self) -> "ElementArrays":
        """Reshape to (1, N) so that (P, 1) point columns broadcast to (P, N)."""
        return ElementArrays(
            self.mid_x[None, :], self.mid_y[None, :], self.cos[None, :],
            self.sin[None, :], self.half_length[None, :],
        )


@dataclass(frozen=True)
class InitialStress:
    """
    Uniform far-field (pre-mining) stress.

    sigma1 acts at `angle` degrees from +x, sigma3 perpendicular to it.
    Compression negative.
    """
    sigma1: float = -10.0
    sigma3: float = -5.0
    angle: float = 0.0

    def tensor(self) -> Tuple[float, float, float]:
        """Cartesian components (sxx, syy, sxy)."""
        mean = 0.5 * (self.sigma1 + self.sigma3)
        dev = 0.5 * (self.sigma1 - self.sigma3)
        two_theta = 2.0 * math.radians(self.angle)
        sxx = mean + dev * math.cos(two_theta)
        syy = mean - dev * math.cos(two_theta)
        sxy = dev * math.sin(two_theta)
        return sxx, syy, sxy

    def local_traction(self, cos: float, sin: float) -> Tuple[float, float]:
        """Far-field (shear, normal) traction on a plane with tangent (cos, sin)."""
        sxx, syy, sxy = self.tensor()
        cs = cos * sin
        shear = (syy - sxx) * cs + sxy * (cos * cos - sin * sin)
        normal = sxx * sin * sin - 2.0 * sxy * cs + syy * cos * cos
        return shear, normal


@dataclass(frozen=True)
class InfluenceCoefficients:
    """
    Response at a field point to unit sources on one element.

    Each tuple is (ux, uy, sxx, syy, sxy) in global axes. Entries are floats
    for a single (point, element) pair or equally shaped arrays for a batch.
    """
    shear: Tuple
    normal: Tuple

    @property
    def displacement_shear(self):
        return self.shear[0], self.shear[1]

    @property
    def displacement_normal(self):
        return self.normal[0], self.normal[1]

    @property
    def stress_shear(self):
        return self.shear[2], self.shear[3], self.shear[4]

    @property
    def stress_normal(self):
        return self.normal[2], self.normal[3], self.normal[4]


@dataclass(frozen=True)
class FieldPoint:
    x: float
    y: float
    sigma1: float
    sigma3: float
    theta: float
    displacement: Point


@dataclass
class FieldPointResults:
    """Total stresses and induced displacements at a batch of interior points."""
    x: np.ndarray
    y: np.ndarray
    sxx: np.ndarray
    syy: np.ndarray
    sxy: np.ndarray
    szz: np.ndarray
    sigma1: np.ndarray
    sigma3: np.ndarray
    theta: np.ndarray
    ux: np.ndarray
    uy: np.ndarray

    def __len__(self) -> int:
        return self.x.shape[0]

    @property
    def points(self) -> np.ndarray:
        return np.column_stack([self.x, self.y])

    def point(self, i: int) -> FieldPoint:
        return FieldPoint(
            float(self.x[i]), float(self.y[i]), float(self.sigma1[i]),
            float(self.sigma3[i]), float(self.theta[i]),
            (float(self.ux[i]), float(self.uy[i])),
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "x": self.x, "y": self.y,
            "sxx": self.sxx, "syy": self.syy, "sxy": self.sxy, "szz": self.szz,
            "sigma1": self.sigma1, "sigma3": self.sigma3, "theta": self.theta,
            "ux": self.ux, "uy": self.uy,
        })


@dataclass(frozen=True)
class StressGrid:
    """
    Regular nx-by-ny grid of sample points.

    Point (i, j), i along x and j along y, has flat index j * nx + i.
    """
    x_min: float
    y_min: float
    width: float
    height: float
    nx: int
    ny: int

    def __post_init__(self):
        if self.nx < 2 or self.ny < 2:
            raise ValueError(f"Grid needs at least 2 points per axis, got {self.nx}x{self.ny}")
        if self.width <= 0.0 or self.height <= 0.0:
            raise ValueError("Grid extent must be positive")

    @classmethod
    def from_bounds(
        cls,
        bounds: Tuple[float, float, float, float],
        spacing: float,
        min_points: int = 10,
        max_points: int = 200,
    ) -> "StressGrid":
        """Square-count grid over bounds, sized from the larger dimension."""
        x_min, y_min, x_max, y_max = bounds
        width, height = x_max - x_min, y_max - y_min
        n = int(math.ceil(max(width, height) / spacing))
        n = min(max(n, min_points), max_points)
        return cls(x_min, y_min, width, height, n, n)

    @property
    def size(self) -> int:
        return self.nx * self.ny

    @property
    def x_coords(self) -> np.ndarray:
        return np.linspace(self.x_min, self.x_min + self.width, self.nx)

    @property
    def y_coords(self) -> np.ndarray:
        return np.linspace(self.y_min, self.y_min + self.height, self.ny)

    def points(self) -> np.ndarray:
        X, Y = np.meshgrid(self.x_coords, self.y_coords)
        return np.column_stack([X.ravel(), Y.ravel()])


@dataclass
class StressField:
    """
    Interpolated results on a StressGrid, ready for contouring.

    Every channel has one entry per grid point. Channels hold EMPTY_VALUE
    (NaN) wherever nothing has been interpolated.
    """
    grid: StressGrid
    sigma1: np.ndarray
    sigma3: np.ndarray
    theta: np.ndarray
    ux: np.ndarray
    uy: np.ndarray

    def __post_init__(self):
        for name in ("sigma1", "sigma3", "theta", "ux", "uy"):
            values = np.asarray(getattr(self, name), dtype=float)
            if values.shape != (self.grid.size,):
                raise ValueError(
                    f"Channel {name} has shape {values.shape}, expected ({self.grid.size},)"
                )
            setattr(self, name, values)

    @classmethod
    def empty(cls, grid: StressGrid) -> "StressField":
        def blank():
            return np.full(grid.size, EMPTY_VALUE)
        return cls(grid, blank(), blank(), blank(), blank(), blank())

    @property
    def is_empty(self) -> bool:
        return all(
            np.all(np.isnan(getattr(self, name)))
            for name in ("sigma1", "sigma3", "theta", "ux", "uy")
        )

    @property
    def displacement(self) -> np.ndarray:
        return np.column_stack([self.ux, self.uy])

    @property
    def displacement_magnitude(self) -> np.ndarray:
        return np.hypot(self.ux, self.uy)

    @property
    def sxx(self) -> np.ndarray:
        c, s = np.cos(self.theta), np.sin(self.theta)
        return self.sigma1 * c * c + self.sigma3 * s * s

    @property
    def syy(self) -> np.ndarray:
        c, s = np.cos(self.theta), np.sin(self.theta)
        return self.sigma1 * s * s + self.sigma3 * c * c

    @property
    def sxy(self) -> np.ndarray:
        return (self.sigma1 - self.sigma3) * np.sin(self.theta) * np.cos(self.theta)

    @property
    def von_mises(self) -> np.ndarray:
        s1, s3 = self.sigma1, self.sigma3
        return np.sqrt(s1 * s1 - s1 * s3 + s3 * s3)


class ResultField(Enum):
    """Scalar quantities a StressField can be contoured by."""
    SIGMA1 = "sigma1"
    SIGMA3 = "sigma3"
    SXX = "sxx"
    SYY = "syy"
    SXY = "sxy"
    VON_MISES = "von_mises"
    THETA = "theta"
    UX = "ux"
    UY = "uy"
    DISPLACEMENT_MAGNITUDE = "displacement_magnitude"
    STRENGTH_FACTOR = "strength_factor"
    VOLUMETRIC_STRAIN = "volumetric_strain"
    SHEAR_STRAIN = "shear_strain"
