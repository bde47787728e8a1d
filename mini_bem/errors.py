# mini_bem/errors.py
"""Exception types raised by the solver pipeline."""


class GeometryError(ValueError):
    """Raised for degenerate boundary geometry or an invalid ground surface."""
    pass


class SolverInputError(ValueError):
    """Raised when a linear system is malformed (non-square, mismatched RHS, NaN)."""
    pass


class SolverError(RuntimeError):
    """Raised when every solution strategy in the fallback chain has failed."""
    pass


class SolveCancelled(RuntimeError):
    """Raised when a solve is cancelled cooperatively. The partial iterate is dropped."""
    pass


class UnsupportedElementOrder(NotImplementedError):
    """Raised for linear/quadratic elements, which are not implemented yet."""
    pass
