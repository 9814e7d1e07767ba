# ---------------------------------------------------------------------
# minimizer.py
#
# L-BFGS driver for  f(x) + l1_cost * ||x||_1 + l2_cost * ||x||^2 ,
# orthant-wise (OWL-QN) when l1_cost > 0.
#
#   origin -> [ direction -> line search -> history -> converged? ]*
#          -> undo double L2 shrinkage (elastic net)
# ---------------------------------------------------------------------

import time
from typing import Optional, Protocol

import numpy as np
import structlog

from .array_math import inv_l2norm, l1norm, l2norm
from .hessian_based.l_bfgs import LimitedMemoryBFGS
from .line_search import LineSearchResult, do_constrained_line_search, do_line_search
from .objective import Function, L2RegFunction

logger = structlog.get_logger(__name__)

# Function change rate tolerance
CONVERGE_TOLERANCE = 1e-4

# Relative gradient norm tolerance
REL_GRAD_NORM_TOL = 1e-4

# Initial step size from the second iteration on
INITIAL_STEP_SIZE = 1.0

# Minimum step size
MIN_STEP_SIZE = 1e-10

L1COST_DEFAULT = 0.0
L2COST_DEFAULT = 0.0
NUM_ITERATIONS_DEFAULT = 100
M_DEFAULT = 15
MAX_FCT_EVAL_DEFAULT = 30000


class Evaluator(Protocol):
    """Scores an intermediate parameter vector, e.g. training accuracy."""

    def evaluate(self, parameters: np.ndarray) -> float: ...


def compute_pseudo_grad(x: np.ndarray, g: np.ndarray, l1_cost: float, out: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Subgradient of  f(x) + l1_cost * ||x||_1  with the smallest norm.

    Away from zero the penalty is differentiable (g -/+ l1_cost).  At
    x_i == 0 take the one-sided derivative that points downhill, or 0
    when |g_i| <= l1_cost.
    """
    if out is None:
        out = np.empty_like(g, dtype=float)
    at_zero = np.where(
        g < -l1_cost, g + l1_cost, np.where(g > l1_cost, g - l1_cost, 0.0)
    )
    np.copyto(out, np.where(x < 0, g - l1_cost, np.where(x > 0, g + l1_cost, at_zero)))
    return out


class QNMinimizer:
    """
    Limited-memory quasi-Newton minimizer with optional L1/L2 penalties.

    Parameters
    ----------
    l1_cost, l2_cost   : regularization costs, >= 0
    iterations         : maximum number of outer iterations, > 0
    m                  : number of curvature pairs to remember, > 0
    max_fct_eval       : function evaluation ceiling, > 0
    verbose            : log every iteration at INFO level (DEBUG otherwise)
    converge_tolerance : stop when the relative function change drops below
    rel_grad_norm_tol  : stop when ||g|| / max(1, ||x||) drops below
    check_grad_norm    : disable the gradient norm test when False
    min_step_size      : stop when the accepted step is smaller
    evaluator          : optional hook called once per iteration
    """

    def __init__(
        self,
        l1_cost: float = L1COST_DEFAULT,
        l2_cost: float = L2COST_DEFAULT,
        iterations: int = NUM_ITERATIONS_DEFAULT,
        m: int = M_DEFAULT,
        max_fct_eval: int = MAX_FCT_EVAL_DEFAULT,
        verbose: bool = True,
        converge_tolerance: float = CONVERGE_TOLERANCE,
        rel_grad_norm_tol: float = REL_GRAD_NORM_TOL,
        check_grad_norm: bool = True,
        min_step_size: float = MIN_STEP_SIZE,
        evaluator: Optional[Evaluator] = None,
    ):
        if l1_cost < 0 or l2_cost < 0:
            raise ValueError("L1-cost and L2-cost must not be less than zero")
        if iterations <= 0:
            raise ValueError("Number of iterations must be larger than zero")
        if m <= 0:
            raise ValueError("Number of Hessian updates must be larger than zero")
        if max_fct_eval <= 0:
            raise ValueError("Maximum number of function evaluations must be larger than zero")

        self.l1_cost = l1_cost
        self.l2_cost = l2_cost
        self.iterations = iterations
        self.m = m
        self.max_fct_eval = max_fct_eval
        self.verbose = verbose
        self.converge_tolerance = converge_tolerance
        self.rel_grad_norm_tol = rel_grad_norm_tol
        self.check_grad_norm = check_grad_norm
        self.min_step_size = min_step_size
        self.evaluator = evaluator

        self.dimension = 0
        self.update_info: Optional[LimitedMemoryBFGS] = None

    def _log(self, event: str, **kw):
        if self.verbose:
            logger.info(event, **kw)
        else:
            logger.debug(event, **kw)

    def minimize(self, function: Function) -> np.ndarray:
        """Minimize ``function`` starting at the origin; returns a fresh array."""
        l2_reg_function = L2RegFunction(function, self.l2_cost)
        self.dimension = l2_reg_function.dimension
        self.update_info = LimitedMemoryBFGS(self.m, self.dimension)
        l1_active = self.l1_cost > 0

        curr_point = np.zeros(self.dimension)
        curr_value = l2_reg_function.value_at(curr_point)
        curr_grad = np.array(l2_reg_function.gradient_at(curr_point), dtype=float)

        if l1_active:
            curr_value += self.l1_cost * l1norm(curr_point)
            pseudo_grad = compute_pseudo_grad(curr_point, curr_grad, self.l1_cost)
            lsr = LineSearchResult.initial_for_l1(curr_value, curr_grad, pseudo_grad, curr_point)
        else:
            lsr = LineSearchResult.initial(curr_value, curr_grad, curr_point)

        self._log(
            "lbfgs_start",
            dimension=self.dimension,
            iterations=self.iterations,
            l1_cost=self.l1_cost,
            l2_cost=self.l2_cost,
        )

        start_time = time.perf_counter()

        # Initial step size for the 1st iteration
        initial_step_size = inv_l2norm(lsr.pseudo_grad_at_next if l1_active else lsr.grad_at_next)
        if not np.isfinite(initial_step_size):
            # The origin is already stationary
            self._log("lbfgs_converged", reason="zero_gradient")
            self.update_info = None
            return np.array(lsr.next_point, copy=True)

        for iteration in range(1, self.iterations + 1):
            direction = self.update_info.direction(
                lsr.pseudo_grad_at_next if l1_active else lsr.grad_at_next
            )
            if not np.all(np.isfinite(direction)):
                # a zero-curvature pair (rho = inf) poisons the recursion
                self._log("lbfgs_converged", reason="non_finite_direction", iteration=iteration)
                break

            if l1_active:
                # Keep only components that descend along the pseudo-gradient
                pseudo_grad = lsr.pseudo_grad_at_next
                direction[direction * pseudo_grad >= 0] = 0.0
                do_constrained_line_search(
                    l2_reg_function, direction, lsr, self.l1_cost, initial_step_size,
                    min_step_size=self.min_step_size, max_fct_eval=self.max_fct_eval,
                )
                compute_pseudo_grad(lsr.next_point, lsr.grad_at_next, self.l1_cost, out=pseudo_grad)
                lsr.pseudo_grad_at_next = pseudo_grad
            else:
                do_line_search(
                    l2_reg_function, direction, lsr, initial_step_size,
                    min_step_size=self.min_step_size, max_fct_eval=self.max_fct_eval,
                )

            self.update_info.update(lsr)

            record = dict(
                iteration=iteration,
                value=lsr.value_at_next,
                func_change_rate=lsr.func_change_rate,
            )
            if self.evaluator is not None:
                record["evaluation"] = self.evaluator.evaluate(lsr.next_point)
            self._log("lbfgs_iteration", **record)

            if self.is_converged(lsr):
                break

            initial_step_size = INITIAL_STEP_SIZE

        # Undo L2-shrinkage if elastic net is used (the shrinkage is
        # applied twice in that case)
        if l1_active and self.l2_cost > 0:
            lsr.next_point *= np.sqrt(1 + self.l2_cost)

        self._log("lbfgs_done", running_time=time.perf_counter() - start_time, fct_eval_count=lsr.fct_eval_count)

        self.update_info = None
        return np.array(lsr.next_point, copy=True)

    def is_converged(self, lsr: LineSearchResult) -> bool:
        # Function change rate
        if lsr.func_change_rate < self.converge_tolerance:
            self._log("lbfgs_converged", reason="func_change_rate", threshold=self.converge_tolerance)
            return True

        # ||g(x)|| / max(1, ||x||) < threshold
        if self.check_grad_norm:
            x_norm = max(1.0, l2norm(lsr.next_point))
            grad_norm = l2norm(lsr.pseudo_grad_at_next if self.l1_cost > 0 else lsr.grad_at_next)
            if grad_norm / x_norm < self.rel_grad_norm_tol:
                self._log("lbfgs_converged", reason="rel_grad_norm", threshold=self.rel_grad_norm_tol)
                return True

        if lsr.step_size < self.min_step_size:
            self._log("lbfgs_converged", reason="min_step_size", threshold=self.min_step_size)
            return True

        if lsr.fct_eval_count > self.max_fct_eval:
            self._log("lbfgs_converged", reason="max_fct_eval", threshold=self.max_fct_eval)
            return True

        return False
