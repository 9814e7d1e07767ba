# ---------------------------------------------------------------------
# parallel_objective.py
#
# Negative log-likelihood evaluated over contiguous context blocks on a
# per-call thread pool:
#
#   partition -> one task per block -> wait for all -> reduce
#
# Workers only read the training set and the candidate point; each one
# writes its own partial slot, summed on the calling thread after join.
# ---------------------------------------------------------------------

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, List, Tuple

import numpy as np
import structlog

from .data_indexer import TrainingData
from .objective import NegLogLikelihood, check_dimension

logger = structlog.get_logger(__name__)


class ParallelEvaluationError(RuntimeError):
    """A worker failed while computing a partial value or gradient."""


class ParallelNegLogLikelihood(NegLogLikelihood):
    """
    Same function as :class:`NegLogLikelihood`, computed in ``threads``
    workers.

    Parameters
    ----------
    data    : indexed training set
    threads : number of workers (and context blocks), must be >= 1
    """

    def __init__(self, data: TrainingData, threads: int):
        if threads <= 0:
            raise ValueError("Number of threads must 1 or larger")
        super().__init__(data)
        self.threads = threads
        self.blocks = self.partition(self.num_contexts, threads)

    @staticmethod
    def partition(num_contexts: int, threads: int) -> List[Tuple[int, int]]:
        """``threads`` contiguous [start, stop) ranges, remainder in the last one."""
        task_size = num_contexts // threads
        left_over = num_contexts % threads
        blocks = []
        for i in range(threads):
            start = i * task_size
            length = task_size + left_over if i == threads - 1 else task_size
            blocks.append((start, start + length))
        return blocks

    def value_at(self, x: np.ndarray) -> float:
        check_dimension(x, self.dimension)
        partials = self._compute_in_parallel(x, self.partial_value)
        return float(sum(partials))

    def gradient_at(self, x: np.ndarray) -> np.ndarray:
        check_dimension(x, self.dimension)
        partials = self._compute_in_parallel(x, self.partial_gradient)
        gradient = np.zeros(self.dimension)
        for partial in partials:
            gradient += partial
        return gradient

    def _compute_in_parallel(self, x: np.ndarray, task: Callable[[np.ndarray, int, int], object]) -> list:
        x = np.asarray(x, dtype=float)
        slots: list = [None] * self.threads

        with ThreadPoolExecutor(max_workers=self.threads) as pool:
            futures = {
                pool.submit(task, x, start, stop): idx
                for idx, (start, stop) in enumerate(self.blocks)
            }
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for fut in pending:
                fut.cancel()
            for fut in done:
                exc = fut.exception()
                if exc is not None:
                    logger.error(
                        "parallel_evaluation_failed",
                        task=getattr(task, "__name__", str(task)),
                        block=self.blocks[futures[fut]],
                        err=str(exc),
                    )
                    raise ParallelEvaluationError(
                        f"Worker {futures[fut]} failed during parallel evaluation"
                    ) from exc
                slots[futures[fut]] = fut.result()

        return slots
