"""Maximum-entropy model training with limited-memory quasi-Newton (L-BFGS / OWL-QN)."""

from .config import QNConfig
from .data_indexer import Event, InsufficientTrainingDataError, TrainingData, index_events
from .minimizer import QNMinimizer, compute_pseudo_grad
from .model import Context, QNModel, materialize
from .objective import L2RegFunction, NegLogLikelihood
from .parallel_objective import ParallelEvaluationError, ParallelNegLogLikelihood
from .trainer import ModelEvaluator, QNTrainer

__all__ = [
    "Context",
    "Event",
    "InsufficientTrainingDataError",
    "L2RegFunction",
    "ModelEvaluator",
    "NegLogLikelihood",
    "ParallelEvaluationError",
    "ParallelNegLogLikelihood",
    "QNConfig",
    "QNMinimizer",
    "QNModel",
    "QNTrainer",
    "TrainingData",
    "compute_pseudo_grad",
    "index_events",
    "materialize",
]
