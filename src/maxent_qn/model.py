# ---------------------------------------------------------------------
# model.py
#
# Trained log-linear model: for every predicate the outcomes with a
# non-zero weight and those weights, plus the label arrays.  Built
# once from the minimizer's dense vector and never modified.
# ---------------------------------------------------------------------

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from .array_math import argmax, log_sum_of_exps


@dataclass(frozen=True)
class Context:
    """Sparse per-predicate record: active outcome ids and their weights."""

    outcomes: np.ndarray
    parameters: np.ndarray

    def __eq__(self, other):
        if not isinstance(other, Context):
            return NotImplemented
        return np.array_equal(self.outcomes, other.outcomes) and np.array_equal(
            self.parameters, other.parameters
        )


def eval_parameters(
    context: Sequence[int],
    values: Optional[Sequence[float]],
    parameters: np.ndarray,
    num_outcomes: int,
    num_features: int,
) -> np.ndarray:
    """
    Outcome probabilities of one context scored straight from a dense
    parameter vector (outcome-major layout).
    """
    context = np.asarray(context, dtype=np.int64)
    weights = np.asarray(parameters, dtype=float).reshape(num_outcomes, num_features)
    pred_values = np.ones(context.size) if values is None else np.asarray(values, dtype=float)
    scores = weights[:, context] @ pred_values
    return np.exp(scores - log_sum_of_exps(scores))


class QNModel:
    """
    Sparse maximum-entropy model.

    Parameters
    ----------
    params         : one :class:`Context` per predicate
    pred_labels    : predicate names, aligned with ``params``
    outcome_labels : outcome names
    """

    def __init__(self, params: List[Context], pred_labels: Sequence[str], outcome_labels: Sequence[str]):
        if len(params) != len(pred_labels):
            raise ValueError("One parameter record is required per predicate")
        self.params = list(params)
        self.pred_labels = list(pred_labels)
        self.outcome_labels = list(outcome_labels)
        self.pmap: Dict[str, int] = {p: i for i, p in enumerate(self.pred_labels)}

    @property
    def num_outcomes(self) -> int:
        return len(self.outcome_labels)

    def eval(self, context: Sequence[str], values: Optional[Sequence[float]] = None) -> np.ndarray:
        """Softmax outcome distribution; unknown predicates are ignored."""
        prior = np.zeros(self.num_outcomes)
        for ci, pred in enumerate(context):
            idx = self.pmap.get(pred)
            if idx is None:
                continue
            value = 1.0 if values is None else float(values[ci])
            record = self.params[idx]
            prior[record.outcomes] += record.parameters * value
        return np.exp(prior - log_sum_of_exps(prior))

    def best_outcome(self, probs: Sequence[float]) -> str:
        return self.outcome_labels[argmax(probs)]

    def to_dense(self) -> np.ndarray:
        """Re-expand to the (outcome-major) dense vector, zero-filling gaps."""
        num_features = len(self.pred_labels)
        dense = np.zeros(self.num_outcomes * num_features)
        for fi, record in enumerate(self.params):
            dense[record.outcomes * num_features + fi] = record.parameters
        return dense

    def __eq__(self, other):
        if not isinstance(other, QNModel):
            return NotImplemented
        return (
            self.outcome_labels == other.outcome_labels
            and self.pred_labels == other.pred_labels
            and self.params == other.params
        )

    __hash__ = None


def materialize(parameters: np.ndarray, pred_labels: Sequence[str], outcome_labels: Sequence[str]) -> QNModel:
    """Build a :class:`QNModel`, keeping only non-zero weights per predicate."""
    num_features = len(pred_labels)
    num_outcomes = len(outcome_labels)
    parameters = np.asarray(parameters, dtype=float)
    if parameters.size != num_outcomes * num_features:
        raise ValueError(
            f"Parameter vector has {parameters.size} entries, expected "
            f"{num_outcomes} outcomes x {num_features} features"
        )

    weights = parameters.reshape(num_outcomes, num_features)
    params = []
    for fi in range(num_features):
        column = weights[:, fi]
        active = np.flatnonzero(column != 0)
        params.append(Context(outcomes=active, parameters=column[active].copy()))
    return QNModel(params, pred_labels, outcome_labels)
