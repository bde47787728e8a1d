# mini_bem/kernel/solve.py
"""
MATRIX SOLVER: strategy chain with conditioning safeguards
==========================================================

PURPOSE:
--------
Solves the dense boundary system A x = b. The solver only gives up after
every strategy has failed; before that it degrades to a slower, more robust
method.

STRATEGY CHAINS:
----------------
    n <  direct_solver_threshold :  Direct -> SVD
    n >= direct_solver_threshold :  Iterative -> Direct -> SVD

- Direct    : LU (scipy.linalg.lu_factor / lu_solve). Rejected when
              cond(A) > condition_limit or any |x| > overflow_limit.
- SVD       : least squares (scipy.linalg.lstsq, gelsd). Always answers,
              flagged ILL_CONDITIONED.
- Iterative : BiCGSTAB with a Jacobi preconditioner, warm-started from the
              previous solution. Breakdown or non-convergence hands over to
              the direct chain; with iterative_fallback=False the iterate is
              returned flagged NOT_CONVERGED instead.

CACHING:
--------
A hash of (matrix sample + RHS) keys the solution cache. A hit is only
served when the cached x reproduces its recorded residual against the live
system, and then the cached array itself is returned. A hash of the full
matrix keys the LU factors, so a new RHS against an unchanged matrix skips
refactorization.

CANCELLATION:
-------------
A CancelToken is checked at every BiCGSTAB iteration and between
strategies. A cancelled solve raises SolveCancelled and publishes nothing.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
import scipy.linalg
from scipy.sparse.linalg import LinearOperator, bicgstab

from ..config import BEMConfig, DEFAULT_CONFIG
from ..errors import SolveCancelled, SolverError, SolverInputError
from .cache import ContentCache, matrix_hash, sampled_hash

logger = logging.getLogger(__name__)


class SolveStatus(Enum):
    CONVERGED = "converged"
    ILL_CONDITIONED = "ill_conditioned"  # solved by least squares, accuracy degraded
    NOT_CONVERGED = "not_converged"      # iterative limit reached, no fallback


class CancelToken:
    """Cooperative cancellation flag shared between a caller and a solve."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        if self._event.is_set():
            raise SolveCancelled("Solve cancelled")


@dataclass
class StrategyOutcome:
    """What a strategy returns: a solution, or a reason it declined."""
    x: Optional[np.ndarray] = None
    reason: str = ""
    status: SolveStatus = SolveStatus.CONVERGED
    iterations: int = 0
    condition_number: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.x is not None and not self.reason


@dataclass
class SolveResult:
    x: np.ndarray
    status: SolveStatus
    method: str
    iterations: int = 0
    condition_number: Optional[float] = None
    residual_norm: float = 0.0
    cache_hit: bool = False
    elapsed: float = 0.0
    fallbacks: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.status is SolveStatus.CONVERGED


@dataclass
class SolveContext:
    """Per-solve state handed to each strategy."""
    config: BEMConfig
    matrix_key: str
    cancel: Optional[CancelToken] = None
    warm_start: Optional[np.ndarray] = None


def _still_solves(cached: "SolveResult", A: np.ndarray, b: np.ndarray) -> bool:
    """True when a cached solution has the same residual on (A, b) as when it was stored."""
    if cached.x.shape != b.shape:
        return False
    residual = float(np.linalg.norm(A @ cached.x - b))
    return residual <= cached.residual_norm + 1e-12 * max(1.0, float(np.linalg.norm(b)))


def validate_system(matrix, rhs) -> Tuple[np.ndarray, np.ndarray]:
    """
    Check shapes and values before any computation.

    Raises:
        SolverInputError: None, non-2D, non-square, empty, mismatched RHS or
            non-finite entries
    """
    if matrix is None or rhs is None:
        raise SolverInputError("Matrix and right-hand side are required.")
    A = np.asarray(matrix, dtype=float)
    b = np.asarray(rhs, dtype=float)
    if A.ndim != 2:
        raise SolverInputError(f"Matrix must be 2-D, got {A.ndim} dimension(s).")
    n, m = A.shape
    if n != m:
        raise SolverInputError(f"Matrix must be square, got {n}x{m}.")
    if n == 0:
        raise SolverInputError("Empty system.")
    b = b.reshape(-1) if b.ndim == 2 and 1 in b.shape else b
    if b.ndim != 1 or b.shape[0] != n:
        raise SolverInputError(f"Right-hand side of shape {b.shape} does not match {n}x{n} matrix.")
    if not (np.all(np.isfinite(A)) and np.all(np.isfinite(b))):
        raise SolverInputError("System contains NaN or infinite entries.")
    return A, b


class DirectStrategy:
    """LU solve with condition and overflow checks; LU factors cached per matrix."""

    name = "direct"

    def __init__(self):
        self._factor_cache = ContentCache("LU cache")

    def solve(self, A: np.ndarray, b: np.ndarray, ctx: SolveContext) -> StrategyOutcome:
        cfg = ctx.config
        cond = float(np.linalg.cond(A))
        logger.debug("Direct solve: n=%d cond=%.3e", A.shape[0], cond)
        if not np.isfinite(cond) or cond > cfg.condition_limit:
            return StrategyOutcome(
                reason=f"condition number {cond:.2e} exceeds {cfg.condition_limit:.0e}",
                condition_number=cond,
            )

        self._factor_cache.enabled = cfg.enable_caching
        lu_piv, _ = self._factor_cache.get_or_build(ctx.matrix_key, lambda: scipy.linalg.lu_factor(A))
        x = scipy.linalg.lu_solve(lu_piv, b)

        if not np.all(np.isfinite(x)) or np.max(np.abs(x)) > cfg.overflow_limit:
            return StrategyOutcome(
                reason=f"solution overflow (max |x| = {np.max(np.abs(x)):.2e})",
                condition_number=cond,
            )
        return StrategyOutcome(x=x, condition_number=cond)


class SVDStrategy:
    """Least squares through the SVD; tolerates rank deficiency."""

    name = "svd"

    def solve(self, A: np.ndarray, b: np.ndarray, ctx: SolveContext) -> StrategyOutcome:
        try:
            x, _, rank, sv = scipy.linalg.lstsq(A, b, lapack_driver="gelsd")
        except np.linalg.LinAlgError as exc:
            return StrategyOutcome(reason=f"SVD failed: {exc}")
        cond = float(sv[0] / sv[-1]) if sv[-1] > 0 else float("inf")
        if rank < A.shape[0]:
            logger.warning("SVD solve: matrix rank %d < %d", rank, A.shape[0])
        return StrategyOutcome(x=x, status=SolveStatus.ILL_CONDITIONED, condition_number=cond)


class IterativeStrategy:
    """BiCGSTAB with Jacobi preconditioning and optional warm start."""

    name = "iterative"

    def solve(self, A: np.ndarray, b: np.ndarray, ctx: SolveContext) -> StrategyOutcome:
        cfg = ctx.config
        n = A.shape[0]
        diag = np.diagonal(A).copy()
        diag[np.abs(diag) < 1e-300] = 1.0
        inv_diag = 1.0 / diag
        M = LinearOperator((n, n), matvec=lambda v: inv_diag * np.ravel(v), dtype=float)

        x0 = ctx.warm_start
        if x0 is not None and x0.shape != b.shape:
            x0 = None
        if x0 is not None:
            logger.debug("BiCGSTAB warm start from previous solution")

        iterations = 0

        def callback(_xk):
            nonlocal iterations
            iterations += 1
            if ctx.cancel is not None:
                ctx.cancel.check()

        x, info = bicgstab(
            A, b, x0=x0, rtol=cfg.tolerance, atol=0.0,
            maxiter=cfg.max_iterations, M=M, callback=callback,
        )
        logger.debug("BiCGSTAB finished: info=%d after %d iterations", info, iterations)
        if info > 0:
            return StrategyOutcome(
                x=x, reason=f"no convergence in {info} iterations",
                status=SolveStatus.NOT_CONVERGED, iterations=iterations,
            )
        if info < 0 or not np.all(np.isfinite(x)):
            return StrategyOutcome(reason=f"breakdown (info={info})", iterations=iterations)
        return StrategyOutcome(x=x, iterations=iterations)


class MatrixSolver:
    """
    Solves boundary systems, caching the last solution.

    Parameters:
    -----------
    config : BEMConfig, optional
        Uses direct_solver_threshold, tolerance, max_iterations,
        condition_limit, overflow_limit, iterative_fallback, enable_caching
    cache : ContentCache, optional
        Solution cache; one per solver by default
    """

    def __init__(self, config: Optional[BEMConfig] = None, cache: Optional[ContentCache] = None):
        self.config = config or DEFAULT_CONFIG
        self.cache = cache or ContentCache("solution cache", enabled=self.config.enable_caching)
        self.direct = DirectStrategy()
        self.svd = SVDStrategy()
        self.iterative = IterativeStrategy()
        self._last_solution: Optional[np.ndarray] = None

    def strategies(self, n: int) -> list:
        """Ordered fallback chain for an n x n system."""
        if n < self.config.direct_solver_threshold:
            return [self.direct, self.svd]
        if not self.config.iterative_fallback:
            return [self.iterative]
        return [self.iterative, self.direct, self.svd]

    def solve(self, matrix, rhs, cancel: Optional[CancelToken] = None) -> SolveResult:
        """
        Solve A x = b.

        Raises:
            SolverInputError: malformed system (before any computation)
            SolveCancelled: cancel token set during the solve
            SolverError: every strategy failed
        """
        A, b = validate_system(matrix, rhs)
        t0 = time.perf_counter()

        key = sampled_hash(A, b)
        cached = self.cache.lookup(key, accept=lambda r: _still_solves(r, A, b))
        if cached is not None:
            return SolveResult(
                x=cached.x, status=cached.status, method=cached.method,
                iterations=0, condition_number=cached.condition_number,
                residual_norm=cached.residual_norm, cache_hit=True,
                elapsed=time.perf_counter() - t0,
            )

        ctx = SolveContext(
            config=self.config,
            matrix_key=matrix_hash(A),
            cancel=cancel,
            warm_start=self._last_solution,
        )
        fallbacks: List[Tuple[str, str]] = []
        outcome = None
        method = ""
        for strategy in self.strategies(A.shape[0]):
            if cancel is not None:
                cancel.check()
            outcome = strategy.solve(A, b, ctx)
            method = strategy.name
            if outcome.ok:
                break
            fallbacks.append((strategy.name, outcome.reason))
            logger.warning("%s solver rejected: %s", strategy.name, outcome.reason)

        if not outcome.ok:
            # only a non-converged iterate survives an exhausted chain
            if outcome.status is not SolveStatus.NOT_CONVERGED or outcome.x is None:
                raise SolverError(f"All solution strategies failed: {fallbacks}")
            logger.warning("Returning non-converged iterate (%s)", outcome.reason)

        x = np.array(outcome.x, dtype=float)
        residual = float(np.linalg.norm(A @ x - b))
        result = SolveResult(
            x=x,
            status=outcome.status,
            method=method,
            iterations=outcome.iterations,
            condition_number=outcome.condition_number,
            residual_norm=residual,
            elapsed=time.perf_counter() - t0,
            fallbacks=fallbacks,
        )
        logger.debug(
            "Solved n=%d with %s (%s), residual %.2e in %.3f s",
            A.shape[0], method, result.status.value, residual, result.elapsed,
        )

        if result.status is not SolveStatus.NOT_CONVERGED:
            x.setflags(write=False)
            self._last_solution = x
            self.cache.store(key, result)
        return result
