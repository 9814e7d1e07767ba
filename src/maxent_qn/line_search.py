# ---------------------------------------------------------------------
# line_search.py
#
# Backtracking line searches used by the quasi-Newton minimizer.
#
#   do_line_search              : Armijo sufficient decrease
#   do_constrained_line_search  : orthant-wise projection for L1
#
# Both take the search state (LineSearchResult) owned by the minimizer,
# write the candidate into the buffers of the previous iterate, and
# swap "curr" and "next" when a step is accepted.  After a call
# curr_point / grad_at_curr hold the previous accepted iterate and
# next_point / grad_at_next the new one.
# ---------------------------------------------------------------------

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .array_math import inner_product, l1norm

# Sufficient decrease constant
C = 0.0001

# Step size shrink factor, in (0, 1)
RHO = 0.5


@dataclass
class LineSearchResult:
    """Mutable search state reused across iterations."""

    step_size: float
    value_at_curr: float
    value_at_next: float
    grad_at_curr: np.ndarray
    grad_at_next: np.ndarray
    curr_point: np.ndarray
    next_point: np.ndarray
    fct_eval_count: int = 0
    pseudo_grad_at_next: Optional[np.ndarray] = None
    sign_vector: Optional[np.ndarray] = None

    @property
    def func_change_rate(self) -> float:
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(
                (np.float64(self.value_at_curr) - self.value_at_next) / np.float64(self.value_at_curr)
            )

    def set_all(
        self,
        step_size: float,
        value_at_curr: float,
        value_at_next: float,
        grad_at_curr: np.ndarray,
        grad_at_next: np.ndarray,
        curr_point: np.ndarray,
        next_point: np.ndarray,
        fct_eval_count: int,
        pseudo_grad_at_next: Optional[np.ndarray] = None,
        sign_vector: Optional[np.ndarray] = None,
    ):
        self.step_size = step_size
        self.value_at_curr = value_at_curr
        self.value_at_next = value_at_next
        self.grad_at_curr = grad_at_curr
        self.grad_at_next = grad_at_next
        self.curr_point = curr_point
        self.next_point = next_point
        self.fct_eval_count = fct_eval_count
        self.pseudo_grad_at_next = pseudo_grad_at_next
        self.sign_vector = sign_vector

    @classmethod
    def initial(cls, value_at_x: float, grad_at_x: np.ndarray, x: np.ndarray) -> "LineSearchResult":
        """Search state positioned at ``x`` before the first line search."""
        x = np.array(x, dtype=float, copy=True)
        return cls(
            step_size=0.0,
            value_at_curr=0.0,
            value_at_next=value_at_x,
            grad_at_curr=np.zeros_like(x),
            grad_at_next=np.array(grad_at_x, dtype=float, copy=True),
            curr_point=np.zeros_like(x),
            next_point=x,
        )

    @classmethod
    def initial_for_l1(
        cls, value_at_x: float, grad_at_x: np.ndarray, pseudo_grad_at_x: np.ndarray, x: np.ndarray
    ) -> "LineSearchResult":
        lsr = cls.initial(value_at_x, grad_at_x, x)
        lsr.pseudo_grad_at_next = np.array(pseudo_grad_at_x, dtype=float, copy=True)
        lsr.sign_vector = np.zeros_like(lsr.next_point)
        return lsr


def _give_up(step_size: float, fct_eval_count: int, min_step_size: float, max_fct_eval: Optional[int]) -> bool:
    return step_size < min_step_size or (max_fct_eval is not None and fct_eval_count > max_fct_eval)


def do_line_search(
    function,
    direction: np.ndarray,
    lsr: LineSearchResult,
    initial_step_size: float,
    min_step_size: float = 0.0,
    max_fct_eval: Optional[int] = None,
):
    """
    Backtrack from ``initial_step_size`` until

        f(x + t d) <= f(x) + C * t * <d, g(x)>

    When the step drops below ``min_step_size`` or the evaluation count
    passes ``max_fct_eval`` the search stays at x with a step size of 0.
    A non-finite direction ends up there too, since no NaN candidate
    passes the test.  The gradient is evaluated once, at the accepted
    point.
    """
    step_size = initial_step_size
    fct_eval_count = lsr.fct_eval_count
    x = lsr.next_point
    grad_at_x = lsr.grad_at_next
    value_at_x = lsr.value_at_next

    # Buffers of the previous iterate receive the candidate
    next_point = lsr.curr_point
    grad_at_next_point = lsr.grad_at_curr

    cached_prod = C * inner_product(direction, grad_at_x)

    while True:
        np.multiply(direction, step_size, out=next_point)
        next_point += x

        value_at_next_point = function.value_at(next_point)
        fct_eval_count += 1

        # Armijo condition
        if value_at_next_point <= value_at_x + cached_prod * step_size:
            break

        step_size *= RHO
        if _give_up(step_size, fct_eval_count, min_step_size, max_fct_eval):
            # No acceptable step, stay at x
            np.copyto(next_point, x)
            value_at_next_point = value_at_x
            step_size = 0.0
            break

    if step_size > 0:
        grad_at_next_point[:] = function.gradient_at(next_point)
    else:
        grad_at_next_point[:] = grad_at_x

    lsr.set_all(
        step_size, value_at_x, value_at_next_point,
        grad_at_x, grad_at_next_point, x, next_point, fct_eval_count,
    )


def do_constrained_line_search(
    function,
    direction: np.ndarray,
    lsr: LineSearchResult,
    l1_cost: float,
    initial_step_size: float,
    min_step_size: float = 0.0,
    max_fct_eval: Optional[int] = None,
):
    """
    Orthant-wise backtracking for  f(x) + l1_cost * ||x||_1.

    The orthant is fixed at the start of the search: sign_i = x_i when
    x_i != 0, else -pg_i.  Candidate coordinates leaving that orthant are
    clamped to 0.  Sufficient decrease uses  sum_i (next_i - x_i) * pg_i.
    Gives up and stays at x under the same bounds as do_line_search.
    """
    step_size = initial_step_size
    fct_eval_count = lsr.fct_eval_count
    x = lsr.next_point
    sign_x = lsr.sign_vector
    grad_at_x = lsr.grad_at_next
    pseudo_grad_at_x = lsr.pseudo_grad_at_next
    value_at_x = lsr.value_at_next

    next_point = lsr.curr_point
    grad_at_next_point = lsr.grad_at_curr

    np.copyto(sign_x, np.where(x == 0, -pseudo_grad_at_x, x))

    while True:
        np.multiply(direction, step_size, out=next_point)
        next_point += x

        # Projection
        next_point[next_point * sign_x <= 0] = 0.0

        value_at_next_point = function.value_at(next_point) + l1_cost * l1norm(next_point)
        fct_eval_count += 1

        dir_gradient_at_x = float(np.dot(next_point - x, pseudo_grad_at_x))

        if value_at_next_point <= value_at_x + C * dir_gradient_at_x:
            break

        step_size *= RHO
        if _give_up(step_size, fct_eval_count, min_step_size, max_fct_eval):
            # No acceptable step, stay at x
            np.copyto(next_point, x)
            value_at_next_point = value_at_x
            step_size = 0.0
            break

    if step_size > 0:
        grad_at_next_point[:] = function.gradient_at(next_point)
    else:
        grad_at_next_point[:] = grad_at_x

    lsr.set_all(
        step_size, value_at_x, value_at_next_point,
        grad_at_x, grad_at_next_point, x, next_point, fct_eval_count,
        pseudo_grad_at_next=pseudo_grad_at_x, sign_vector=sign_x,
    )
