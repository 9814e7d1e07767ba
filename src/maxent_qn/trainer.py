# ---------------------------------------------------------------------
# trainer.py
#
# indexed training set -> objective -> QNMinimizer -> QNModel
# ---------------------------------------------------------------------

from typing import Optional

import numpy as np
import structlog

from .array_math import argmax
from .config import QNConfig
from .data_indexer import TrainingData
from .minimizer import QNMinimizer
from .model import QNModel, eval_parameters, materialize
from .objective import NegLogLikelihood
from .parallel_objective import ParallelNegLogLikelihood

logger = structlog.get_logger(__name__)


class ModelEvaluator:
    """Training-set accuracy of a parameter vector, weighted by repeat count."""

    def __init__(self, data: TrainingData):
        self.data = data

    def evaluate(self, parameters: np.ndarray) -> float:
        data = self.data
        n_correct = 0
        n_total = 0
        for ci, context in enumerate(data.contexts):
            values = None if data.values is None else data.values[ci]
            probs = eval_parameters(
                context, values, parameters, data.num_outcomes, data.num_features
            )
            seen = int(data.num_times_events_seen[ci])
            if argmax(probs) == data.outcome_list[ci]:
                n_correct += seen
            n_total += seen
        return n_correct / n_total if n_total else 0.0


class QNTrainer:
    """
    Maximum-entropy trainer driven by :class:`QNMinimizer`.

        >>> trainer = QNTrainer(QNConfig(l1_cost=0.0, l2_cost=0.5))
        >>> model = trainer.train(data)
    """

    def __init__(self, config: Optional[QNConfig] = None):
        self.config = config if config is not None else QNConfig()
        self.config.validate()

    def objective_for(self, data: TrainingData):
        if self.config.threads == 1:
            return NegLogLikelihood(data)
        return ParallelNegLogLikelihood(data, self.config.threads)

    def train(self, data: TrainingData) -> QNModel:
        return self.train_model(self.config.iterations, data)

    def train_model(self, iterations: int, data: TrainingData) -> QNModel:
        cfg = self.config
        logger.info(
            "computing_model_parameters",
            threads=cfg.threads,
            num_contexts=data.num_contexts,
            num_outcomes=data.num_outcomes,
            num_features=data.num_features,
        )
        objective = self.objective_for(data)

        minimizer = QNMinimizer(
            l1_cost=cfg.l1_cost,
            l2_cost=cfg.l2_cost,
            iterations=iterations,
            m=cfg.m,
            max_fct_eval=cfg.max_fct_eval,
            verbose=cfg.verbose,
            converge_tolerance=cfg.converge_tolerance,
            rel_grad_norm_tol=cfg.rel_grad_norm_tol,
            check_grad_norm=cfg.check_grad_norm,
            min_step_size=cfg.min_step_size,
            evaluator=ModelEvaluator(data),
        )
        parameters = minimizer.minimize(objective)

        return materialize(parameters, data.pred_labels, data.outcome_labels)
