# mini_bem/kernel/cache.py
"""
Content-keyed caches for assembled matrices and solutions.

Each cache is an explicit object owned by one builder or solver, so
independent analyses never share state. A cache holds a single slot (the
last build). Lookup, build and publish happen under one lock, so two threads
asking for the same key never build it twice.
"""

import hashlib
import logging
import threading
from typing import Any, Callable, Optional, Sequence, Tuple

import numpy as np

from ..model import BoundaryElement, Material, PlaneMode

logger = logging.getLogger(__name__)

SAMPLE_COUNT = 100


def _freeze(value):
    if isinstance(value, np.ndarray):
        value.setflags(write=False)
    return value


class ContentCache:
    """
    Single-slot cache keyed by a content hash.

    Parameters:
    -----------
    name : str
        Used in log records only
    enabled : bool
        When False every request builds and nothing is stored
    """

    def __init__(self, name: str = "cache", enabled: bool = True):
        self.name = name
        self.enabled = enabled
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()
        self._key: Optional[str] = None
        self._value: Any = None

    def lookup(self, key: str, accept: Optional[Callable[[Any], bool]] = None):
        """
        Cached value for key, or None. A stored value that `accept` rejects
        counts as a miss.
        """
        with self._lock:
            if self.enabled and self._key == key and (accept is None or accept(self._value)):
                self.hits += 1
                logger.debug("%s hit (%s)", self.name, key[:12])
                return self._value
            self.misses += 1
            return None

    def store(self, key: str, value) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._key = key
            self._value = _freeze(value)

    def get_or_build(self, key: str, build: Callable[[], Any]) -> Tuple[Any, bool]:
        """
        Return (value, hit). On a miss `build()` runs while the lock is held
        and its result replaces the slot.
        """
        if not self.enabled:
            with self._lock:
                self.misses += 1
            return build(), False

        with self._lock:
            if self._key == key:
                self.hits += 1
                logger.debug("%s hit (%s)", self.name, key[:12])
                return self._value, True
            self.misses += 1
            logger.debug("%s miss (%s)", self.name, key[:12])
            value = _freeze(build())
            self._key = key
            self._value = value
            return value, False

    def clear(self) -> None:
        with self._lock:
            self._key = None
            self._value = None

    @property
    def key(self) -> Optional[str]:
        return self._key


def _sample(matrix: np.ndarray) -> np.ndarray:
    flat = matrix.ravel()
    stride = max(1, flat.size // SAMPLE_COUNT)
    return flat[::stride]


def matrix_hash(matrix: np.ndarray) -> str:
    """SHA256 over the shape and every entry of a matrix."""
    matrix = np.ascontiguousarray(matrix, dtype=float)
    h = hashlib.sha256()
    h.update(repr(matrix.shape).encode())
    h.update(matrix.tobytes())
    return h.hexdigest()


def sampled_hash(matrix: np.ndarray, rhs: np.ndarray) -> str:
    """
    SHA256 over the shape, a strided sample and the diagonal of a matrix,
    plus the full right-hand side. Matrices that agree on the sample collide,
    so a hit must be checked against the live system.
    """
    matrix = np.ascontiguousarray(matrix, dtype=float)
    h = hashlib.sha256()
    h.update(repr(matrix.shape).encode())
    h.update(np.ascontiguousarray(_sample(matrix)).tobytes())
    h.update(np.ascontiguousarray(np.diagonal(matrix)).tobytes())
    h.update(np.ascontiguousarray(rhs, dtype=float).tobytes())
    return h.hexdigest()


def geometry_key(
    elements: Sequence[BoundaryElement],
    material: Material,
    plane_mode: PlaneMode,
    ground_surface_y: Optional[float],
    half_space: bool,
) -> str:
    """Hash of everything the influence matrix depends on."""
    h = hashlib.sha256()
    geom = np.array([(*e.start, *e.end) for e in elements], dtype=float)
    h.update(geom.tobytes())
    h.update(np.array([e.condition.type.code for e in elements], dtype=np.int64).tobytes())
    h.update(repr((material.youngs_modulus, material.poisson_ratio, plane_mode.value)).encode())
    h.update(repr((bool(half_space), ground_surface_y if half_space else None)).encode())
    return h.hexdigest()
