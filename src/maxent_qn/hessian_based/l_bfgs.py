# ---------------------------------------------------------------------
# l_bfgs.py
#
# Limited-memory BFGS memory: the last m curvature pairs
#
#     s_k = x_{k+1} - x_k ,   y_k = g_{k+1} - g_k ,   rho_k = 1 / (s_k . y_k)
#
# kept in preallocated (m x n) buffers, oldest first, and the two-loop
# recursion that turns them into a quasi-Newton direction.
# No n x n matrix is ever stored.
# ---------------------------------------------------------------------

import numpy as np
import structlog

logger = structlog.get_logger(__name__)


class LimitedMemoryBFGS:
    """
    Compact container for L-BFGS curvature pairs and the two-loop
    recursion.  Maintains at most ``m`` pairs; when full the oldest pair
    is evicted before the new one is stored.

        >>> lbfgs = LimitedMemoryBFGS(m=15, dimension=n)
        >>> lbfgs.update(lsr)
        >>> d = lbfgs.direction(g)

    Parameters
    ----------
    m         : int
        Maximum number of (s, y, rho) pairs to keep.
    dimension : int
        Length of the parameter vector.
    """

    def __init__(self, m: int, dimension: int):
        if m <= 0:
            raise ValueError("Number of Hessian updates must be larger than zero")
        self.m = m
        self.dimension = dimension
        self.S = np.zeros((m, dimension))
        self.Y = np.zeros((m, dimension))
        self.rho = np.zeros(m)
        self.alpha = np.zeros(m)  # scratch for the first loop
        self.k = 0

    # -----------------------------------------------------------------
    # public helpers
    # -----------------------------------------------------------------
    def __len__(self) -> int:  # ``len(lbfgs)``
        return self.k

    def add_pair(self, s_new: np.ndarray, y_new: np.ndarray):
        """
        Store a curvature pair, discarding the oldest if the memory is
        full.  A zero or negative  s . y  is kept as is: the resulting
        inf/nan propagates and the minimizer's convergence tests stop it.
        """
        if self.k == self.m:
            self.S[:-1] = self.S[1:]
            self.Y[:-1] = self.Y[1:]
            self.rho[:-1] = self.rho[1:]
            slot = self.m - 1
        else:
            slot = self.k
            self.k += 1

        self.S[slot] = s_new
        self.Y[slot] = y_new
        sy = float(self.S[slot].dot(self.Y[slot]))
        with np.errstate(divide="ignore", invalid="ignore"):
            self.rho[slot] = np.float64(1.0) / np.float64(sy)

        logger.debug(
            "lbfgs_add_pair",
            s_norm=float(np.linalg.norm(self.S[slot])),
            y_norm=float(np.linalg.norm(self.Y[slot])),
            rho=float(self.rho[slot]),
            memory_len=self.k,
        )

    def update(self, lsr):
        """Add the pair spanned by a finished line search."""
        self.add_pair(
            lsr.next_point - lsr.curr_point,
            lsr.grad_at_next - lsr.grad_at_curr,
        )

    def direction(self, g: np.ndarray) -> np.ndarray:
        """
        Return the descent direction  d = -H_k g  with H_0 = I, using the
        classic two-loop recursion over the stored pairs.
        """
        if g.ndim != 1:
            raise ValueError("Gradient `g` must be a 1-D array")

        q = np.array(g, dtype=float, copy=True)

        with np.errstate(over="ignore", invalid="ignore"):
            # ---------- first (backward) loop ----------
            for i in range(self.k - 1, -1, -1):
                self.alpha[i] = self.rho[i] * self.S[i].dot(q)
                q -= self.alpha[i] * self.Y[i]

            # ---------- second (forward) loop ----------
            for i in range(self.k):
                beta = self.rho[i] * self.Y[i].dot(q)
                q += self.S[i] * (self.alpha[i] - beta)

        return -q
