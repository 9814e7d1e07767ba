# ---------------------------------------------------------------------
# data_indexer.py
#
# The indexed training set consumed by the objective functions, plus a
# small one-pass indexer that turns labelled string events into it.
#
#   context i  ->  feature indices   contexts[i]
#                  optional weights  values[i]      (None => 1.0)
#                  gold outcome      outcome_list[i]
#                  repeat count      num_times_events_seen[i]  (>= 1)
# ---------------------------------------------------------------------

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

import numpy as np
import scipy.sparse as sp
import structlog

logger = structlog.get_logger(__name__)


class InsufficientTrainingDataError(ValueError):
    """No event survived indexing."""


@dataclass(frozen=True, eq=False)
class TrainingData:
    """
    Read-only indexed training set.

    Parameters
    ----------
    contexts              : per-context arrays of feature indices
    outcome_list          : gold outcome index per context
    num_times_events_seen : repeat count per context
    outcome_labels        : outcome names, index = outcome id
    pred_labels           : predicate names, index = feature id
    values                : optional per-context real feature weights
    """

    contexts: List[np.ndarray]
    outcome_list: np.ndarray
    num_times_events_seen: np.ndarray
    outcome_labels: List[str]
    pred_labels: List[str]
    values: Optional[List[np.ndarray]] = None
    _design: list = field(default_factory=list, init=False, repr=False, compare=False)

    def __post_init__(self):
        contexts = [np.asarray(c, dtype=np.int64).ravel() for c in self.contexts]
        outcomes = np.asarray(self.outcome_list, dtype=np.int64).ravel()
        seen = np.asarray(self.num_times_events_seen, dtype=np.int64).ravel()
        object.__setattr__(self, "contexts", contexts)
        object.__setattr__(self, "outcome_list", outcomes)
        object.__setattr__(self, "num_times_events_seen", seen)
        object.__setattr__(self, "outcome_labels", list(self.outcome_labels))
        object.__setattr__(self, "pred_labels", list(self.pred_labels))

        n = len(contexts)
        if outcomes.size != n or seen.size != n:
            raise ValueError(
                "contexts, outcome_list and num_times_events_seen must have the same length"
            )
        if len(self.outcome_labels) == 0:
            raise ValueError("At least one outcome label is required")
        if np.any(seen < 1):
            raise ValueError("num_times_events_seen must be >= 1 for every context")
        if n and (outcomes.min() < 0 or outcomes.max() >= self.num_outcomes):
            raise ValueError("Outcome index out of range")
        for ci, ctx in enumerate(contexts):
            if ctx.size and (ctx.min() < 0 or ctx.max() >= self.num_features):
                raise ValueError(f"Feature index out of range in context {ci}")

        if self.values is not None:
            values = [np.asarray(v, dtype=float).ravel() for v in self.values]
            if len(values) != n:
                raise ValueError("values must have one entry per context")
            for ci, (ctx, val) in enumerate(zip(contexts, values)):
                if ctx.size != val.size:
                    raise ValueError(
                        f"Context {ci} has {ctx.size} features but {val.size} values"
                    )
            object.__setattr__(self, "values", values)

    # -----------------------------------------------------------------
    # sizes
    # -----------------------------------------------------------------
    @property
    def num_contexts(self) -> int:
        return len(self.contexts)

    @property
    def num_outcomes(self) -> int:
        return len(self.outcome_labels)

    @property
    def num_features(self) -> int:
        return len(self.pred_labels)

    @property
    def dimension(self) -> int:
        return self.num_outcomes * self.num_features

    @property
    def num_events(self) -> int:
        return int(self.num_times_events_seen.sum())

    def predicate_values(self, ci: int) -> np.ndarray:
        if self.values is None:
            return np.ones(self.contexts[ci].size)
        return self.values[ci]

    def design_matrix(self) -> sp.csr_matrix:
        """
        (num_contexts x num_features) CSR matrix of predicate values.

        A predicate repeated inside one context contributes the sum of
        its values.  Built once and cached.
        """
        if not self._design:
            lengths = np.array([c.size for c in self.contexts], dtype=np.int64)
            indptr = np.concatenate(([0], np.cumsum(lengths)))
            if self.num_contexts:
                indices = np.concatenate(self.contexts)
                data = np.concatenate(
                    [self.predicate_values(ci) for ci in range(self.num_contexts)]
                )
            else:
                indices = np.zeros(0, dtype=np.int64)
                data = np.zeros(0)
            matrix = sp.csr_matrix(
                (data, indices, indptr), shape=(self.num_contexts, self.num_features)
            )
            matrix.sum_duplicates()
            self._design.append(matrix)
        return self._design[0]


# ---------------------------------------------------------------------
# one-pass indexer
# ---------------------------------------------------------------------
@dataclass
class Event:
    outcome: str
    context: Sequence[str]
    values: Optional[Sequence[float]] = None


def index_events(events: Iterable[Event], cutoff: int = 0, sort: bool = True) -> TrainingData:
    """
    Index labelled events into a :class:`TrainingData`.

    Predicates seen fewer than ``cutoff`` times are dropped, outcome and
    predicate ids follow first-seen order, and events left without any
    predicate are skipped.  With ``sort`` identical events (same outcome,
    predicates and values) collapse into one context whose repeat count
    is the number of duplicates.
    """
    events = list(events)
    real_valued = any(ev.values is not None for ev in events)

    pred_counts = Counter()
    for ev in events:
        pred_counts.update(ev.context)

    outcome_map: dict = {}
    pred_map: dict = {}
    rows = []
    for ev in events:
        ev_values = ev.values if ev.values is not None else [1.0] * len(ev.context)
        if len(ev_values) != len(ev.context):
            raise ValueError("Event values must match its context length")

        kept = [
            (pred, float(val))
            for pred, val in zip(ev.context, ev_values)
            if pred_counts[pred] >= cutoff
        ]
        if not kept:
            logger.info("dropped_event", outcome=ev.outcome, context=list(ev.context))
            continue

        oid = outcome_map.setdefault(ev.outcome, len(outcome_map))
        preds = tuple(pred_map.setdefault(p, len(pred_map)) for p, _ in kept)
        vals = tuple(v for _, v in kept)
        rows.append((oid, preds, vals))

    if not rows:
        raise InsufficientTrainingDataError("Insufficient training data to create model.")

    num_events = len(rows)
    if sort:
        merged = Counter(rows)
        rows_seen = sorted(merged.items())
    else:
        rows_seen = [(row, 1) for row in rows]
    if sort:
        logger.info("events_merged", num_events=num_events, num_unique=len(rows_seen))

    outcome_labels = [None] * len(outcome_map)
    for name, idx in outcome_map.items():
        outcome_labels[idx] = name
    pred_labels = [None] * len(pred_map)
    for name, idx in pred_map.items():
        pred_labels[idx] = name

    return TrainingData(
        contexts=[np.array(preds, dtype=np.int64) for (_, preds, _), _ in rows_seen],
        outcome_list=np.array([oid for (oid, _, _), _ in rows_seen], dtype=np.int64),
        num_times_events_seen=np.array([n for _, n in rows_seen], dtype=np.int64),
        outcome_labels=outcome_labels,
        pred_labels=pred_labels,
        values=(
            [np.array(vals, dtype=float) for (_, _, vals), _ in rows_seen]
            if real_valued
            else None
        ),
    )
