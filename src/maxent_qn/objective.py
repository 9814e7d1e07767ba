# ---------------------------------------------------------------------
# objective.py
#
# Negative log-likelihood of a log-linear model over an indexed
# training set, and the L2 wrapper the minimizer puts around it.
#
# Parameter layout:  x[outcome * num_features + feature]
# ---------------------------------------------------------------------

from typing import Optional, Protocol

import numpy as np

from .array_math import inner_product, log_sum_of_exps
from .data_indexer import TrainingData


class Function(Protocol):
    """Differentiable objective as seen by the line search and minimizer."""

    @property
    def dimension(self) -> int: ...

    def value_at(self, x: np.ndarray) -> float: ...

    def gradient_at(self, x: np.ndarray) -> np.ndarray: ...


def check_dimension(x: np.ndarray, dimension: int):
    if len(x) != dimension:
        raise ValueError(
            f"x is invalid, its dimension {len(x)} is not equal to domain dimension {dimension}."
        )


class NegLogLikelihood:
    """
    Regularization-free negative log-likelihood

        -sum_i  n_i * ( vote_i[o_i] - log sum_o exp(vote_i[o]) )

    with  vote_i[o] = sum_f  value_if * x[o, f].

    The votes and log-normalizers of the last evaluated point are cached
    together with a copy of that point.  ``gradient_at(x)`` reuses them
    only when ``x`` equals the cached point, so calling it without a
    preceding ``value_at`` is safe (just slower).
    """

    def __init__(self, data: TrainingData):
        self.data = data
        self.num_outcomes = data.num_outcomes
        self.num_features = data.num_features
        self.num_contexts = data.num_contexts
        self._dimension = data.dimension

        self.design = data.design_matrix()
        self.num_times_events_seen = data.num_times_events_seen.astype(float)
        self.outcome_list = data.outcome_list

        self._cached_point: Optional[np.ndarray] = None
        self._vote_sum: Optional[np.ndarray] = None
        self._log_sum_exp: Optional[np.ndarray] = None

        self.empirical_count = self._compute_empirical_count()

    @property
    def dimension(self) -> int:
        return self._dimension

    def initial_point(self) -> np.ndarray:
        return np.zeros(self._dimension)

    def index_of(self, outcome_id: int, feature_id: int) -> int:
        return outcome_id * self.num_features + feature_id

    # -----------------------------------------------------------------
    # block kernels (also used by the parallel variant)
    # -----------------------------------------------------------------
    def _weights(self, x: np.ndarray) -> np.ndarray:
        return np.asarray(x, dtype=float).reshape(self.num_outcomes, self.num_features)

    def _sums(self, x: np.ndarray, start: int = 0, stop: Optional[int] = None):
        """Vote matrix (contexts x outcomes) and per-context log-normalizer."""
        block = self.design[start:stop]
        vote_sum = np.asarray(block @ self._weights(x).T)
        if vote_sum.shape[0] == 0:
            return vote_sum, np.zeros(0)
        return vote_sum, log_sum_of_exps(vote_sum, axis=1)

    def _value_from_sums(self, vote_sum, log_sum_exp, start: int = 0, stop: Optional[int] = None) -> float:
        outcomes = self.outcome_list[start:stop]
        seen = self.num_times_events_seen[start:stop]
        gold = vote_sum[np.arange(outcomes.size), outcomes]
        return -float(np.sum((gold - log_sum_exp) * seen))

    def _expected_count(self, vote_sum, log_sum_exp, start: int = 0, stop: Optional[int] = None) -> np.ndarray:
        seen = self.num_times_events_seen[start:stop]
        probs = np.exp(vote_sum - log_sum_exp[:, None]) * seen[:, None]
        block = self.design[start:stop]
        # (outcomes x contexts) @ (contexts x features)
        expected = np.asarray((block.T @ probs).T)
        return expected.ravel()

    def partial_value(self, x: np.ndarray, start: int, stop: int) -> float:
        vote_sum, log_sum_exp = self._sums(x, start, stop)
        return self._value_from_sums(vote_sum, log_sum_exp, start, stop)

    def partial_gradient(self, x: np.ndarray, start: int, stop: int) -> np.ndarray:
        """Expected minus empirical counts over contexts [start, stop)."""
        vote_sum, log_sum_exp = self._sums(x, start, stop)
        expected = self._expected_count(vote_sum, log_sum_exp, start, stop)
        return expected - self._empirical_count_block(start, stop)

    # -----------------------------------------------------------------
    # Function interface
    # -----------------------------------------------------------------
    def value_at(self, x: np.ndarray) -> float:
        check_dimension(x, self._dimension)
        vote_sum, log_sum_exp = self._compute_sums(x)
        return self._value_from_sums(vote_sum, log_sum_exp)

    def gradient_at(self, x: np.ndarray) -> np.ndarray:
        check_dimension(x, self._dimension)
        vote_sum, log_sum_exp = self._compute_sums(x)
        return self._expected_count(vote_sum, log_sum_exp) - self.empirical_count

    def _compute_sums(self, x: np.ndarray):
        if self._cached_point is not None and np.array_equal(self._cached_point, x):
            return self._vote_sum, self._log_sum_exp
        vote_sum, log_sum_exp = self._sums(x)
        self._cached_point = np.array(x, dtype=float, copy=True)
        self._vote_sum, self._log_sum_exp = vote_sum, log_sum_exp
        return vote_sum, log_sum_exp

    def _empirical_count_block(self, start: int, stop: int) -> np.ndarray:
        block = self.design[start:stop]
        outcomes = self.outcome_list[start:stop]
        seen = self.num_times_events_seen[start:stop]
        gold = np.zeros((outcomes.size, self.num_outcomes))
        gold[np.arange(outcomes.size), outcomes] = seen
        return np.asarray((block.T @ gold).T).ravel()

    def _compute_empirical_count(self) -> np.ndarray:
        return self._empirical_count_block(0, self.num_contexts)


class L2RegFunction:
    """Adds  l2_cost * ||x||^2  to a wrapped function."""

    def __init__(self, function: Function, l2_cost: float):
        self.function = function
        self.l2_cost = l2_cost

    @property
    def dimension(self) -> int:
        return self.function.dimension

    def value_at(self, x: np.ndarray) -> float:
        check_dimension(x, self.dimension)
        value = self.function.value_at(x)
        if self.l2_cost > 0:
            value += self.l2_cost * inner_product(x, x)
        return value

    def gradient_at(self, x: np.ndarray) -> np.ndarray:
        check_dimension(x, self.dimension)
        gradient = np.array(self.function.gradient_at(x), dtype=float)
        if self.l2_cost > 0:
            gradient += 2 * self.l2_cost * np.asarray(x, dtype=float)
        return gradient
