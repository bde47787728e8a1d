# mini_bem/strength.py
"""
Strength factors for rock mass failure criteria.

A strength factor compares the rock strength with the induced stress at a
point:

    SF = sigma1_f(sigma3) / sigma1       (compression-positive principals)

where sigma1_f is the major principal stress at failure for the current
minor principal stress. SF < 1 means overstressed. Points past the tensile
limit get SF = -1, and lightly loaded points are capped at 100.

Field results are tension-positive, so strength_factor flips signs before
applying a criterion.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import math

import numpy as np

TENSILE_FAILURE = -1.0
MAX_STRENGTH_FACTOR = 100.0


class StrengthCriterion(ABC):
    """Base class: subclasses define failure_stress and tensile_limit."""

    @abstractmethod
    def failure_stress(self, sigma3c):
        """Major principal stress at failure, compression positive."""

    @property
    @abstractmethod
    def tensile_limit(self) -> float:
        """Most tensile sigma3 (compression positive) before tensile failure."""

    def strength_factor(self, sigma1, sigma3):
        """
        Strength factor for tension-positive principal stresses.

        Parameters:
        -----------
        sigma1 : array_like
            Most compressive principal stress (tension positive, MPa)
        sigma3 : array_like
            Least compressive principal stress (tension positive, MPa)

        Returns:
        --------
        np.ndarray
            SF per point; -1 for tensile failure, NaN where inputs are NaN
        """
        s1c = -np.asarray(sigma1, dtype=float)
        s3c = -np.asarray(sigma3, dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            strength = self.failure_stress(s3c)
            sf = np.where(s1c > 0.0, strength / np.where(s1c > 0.0, s1c, 1.0), MAX_STRENGTH_FACTOR)
        sf = np.minimum(sf, MAX_STRENGTH_FACTOR)
        sf = np.where(s3c < self.tensile_limit, TENSILE_FAILURE, sf)
        return np.where(np.isnan(s1c) | np.isnan(s3c), np.nan, sf)


@dataclass(frozen=True)
class MohrCoulomb(StrengthCriterion):
    """
    Linear Mohr-Coulomb envelope.

    sigma1_f = sigma3 * N + 2 c sqrt(N),   N = (1 + sin phi) / (1 - sin phi)
    """
    cohesion: float = 5.0            # MPa
    friction_angle: float = 35.0     # degrees
    tensile_strength: float = 0.0    # MPa, positive

    def __post_init__(self):
        if not 0.0 <= self.friction_angle < 90.0:
            raise ValueError(f"Friction angle must be in [0, 90), got {self.friction_angle}")
        if self.cohesion < 0.0 or self.tensile_strength < 0.0:
            raise ValueError("Cohesion and tensile strength must be non-negative")

    @property
    def passive_coefficient(self) -> float:
        s = math.sin(math.radians(self.friction_angle))
        return (1.0 + s) / (1.0 - s)

    @property
    def tensile_limit(self) -> float:
        return -self.tensile_strength

    def failure_stress(self, sigma3c):
        n = self.passive_coefficient
        return np.asarray(sigma3c) * n + 2.0 * self.cohesion * math.sqrt(n)


@dataclass(frozen=True)
class HoekBrown(StrengthCriterion):
    """
    Generalized Hoek-Brown criterion.

    sigma1_f = sigma3 + sigma_ci (mb sigma3 / sigma_ci + s) ** a
    """
    sigma_ci: float = 100.0   # intact uniaxial compressive strength, MPa
    mb: float = 10.0
    s: float = 1.0
    a: float = 0.5

    def __post_init__(self):
        if self.sigma_ci <= 0.0 or self.mb <= 0.0:
            raise ValueError("sigma_ci and mb must be positive")
        if self.s < 0.0 or not 0.0 < self.a <= 1.0:
            raise ValueError("Hoek-Brown needs s >= 0 and 0 < a <= 1")

    @property
    def tensile_limit(self) -> float:
        return -self.s * self.sigma_ci / self.mb

    def failure_stress(self, sigma3c):
        s3 = np.asarray(sigma3c, dtype=float)
        base = np.maximum(self.mb * s3 / self.sigma_ci + self.s, 0.0)
        return s3 + self.sigma_ci * base ** self.a

    @classmethod
    def from_gsi(cls, gsi: float, mi: float, disturbance: float = 0.0, sigma_ci: float = 100.0) -> "HoekBrown":
        """
        Rock mass constants from the Geological Strength Index.

            mb = mi exp((GSI - 100) / (28 - 14 D))
            s  = exp((GSI - 100) / (9 - 3 D))
            a  = 0.5 for GSI > 25, else 0.65 - GSI / 200

        Parameters:
        -----------
        gsi : float
            Geological Strength Index, 0-100
        mi : float
            Intact rock constant (typically 4-35)
        disturbance : float
            Disturbance factor D, 0 (undisturbed) to 1 (very disturbed)
        sigma_ci : float
            Intact uniaxial compressive strength (MPa)
        """
        if not 0.0 <= gsi <= 100.0:
            raise ValueError(f"GSI must be in [0, 100], got {gsi}")
        if mi <= 0.0:
            raise ValueError(f"mi must be positive, got {mi}")
        if not 0.0 <= disturbance <= 1.0:
            raise ValueError(f"Disturbance factor must be in [0, 1], got {disturbance}")
        mb = mi * math.exp((gsi - 100.0) / (28.0 - 14.0 * disturbance))
        s = math.exp((gsi - 100.0) / (9.0 - 3.0 * disturbance))
        a = 0.5 if gsi > 25.0 else 0.65 - gsi / 200.0
        return cls(sigma_ci=sigma_ci, mb=mb, s=s, a=a)
