# ---------------------------------------------------------------------
# config.py
#
# Training parameters for the quasi-Newton trainer.  Accepts either the
# snake_case field names or the classic training-parameter keys
# (L1Cost, L2Cost, NumOfUpdates, MaxFctEval, Threads, Iterations).
# ---------------------------------------------------------------------

from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping

import yaml

from . import minimizer

ALGORITHM = "MAXENT_QN"

# classic parameter name -> field name
PARAM_ALIASES = {
    "Iterations": "iterations",
    "L1Cost": "l1_cost",
    "L2Cost": "l2_cost",
    "NumOfUpdates": "m",
    "MaxFctEval": "max_fct_eval",
    "Threads": "threads",
    "Verbose": "verbose",
}


@dataclass
class QNConfig:
    iterations: int = minimizer.NUM_ITERATIONS_DEFAULT
    l1_cost: float = 0.1
    l2_cost: float = 0.1
    m: int = minimizer.M_DEFAULT
    max_fct_eval: int = minimizer.MAX_FCT_EVAL_DEFAULT
    threads: int = 1
    verbose: bool = True

    # convergence
    converge_tolerance: float = minimizer.CONVERGE_TOLERANCE
    rel_grad_norm_tol: float = minimizer.REL_GRAD_NORM_TOL
    check_grad_norm: bool = True
    min_step_size: float = minimizer.MIN_STEP_SIZE

    def __post_init__(self):
        self.validate()

    def validate(self):
        if self.l1_cost < 0 or self.l2_cost < 0:
            raise ValueError("L1-cost and L2-cost must not be less than zero")
        if self.iterations <= 0:
            raise ValueError("Number of iterations must be larger than zero")
        if self.m <= 0:
            raise ValueError("Number of Hessian updates must be larger than zero")
        if self.max_fct_eval <= 0:
            raise ValueError("Maximum number of function evaluations must be larger than zero")
        if self.threads <= 0:
            raise ValueError("Number of threads must 1 or larger")
        if self.converge_tolerance < 0 or self.rel_grad_norm_tol < 0 or self.min_step_size < 0:
            raise ValueError("Convergence tolerances must not be negative")

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any]) -> "QNConfig":
        """Build from a flat mapping; unknown keys raise ``ValueError``."""
        params = dict(params or {})
        algorithm = params.pop("Algorithm", None)
        if algorithm is not None and algorithm != ALGORITHM:
            raise ValueError(f"Unsupported algorithm {algorithm!r}, expected {ALGORITHM}")

        known = {f.name: f for f in fields(cls)}
        kwargs = {}
        for key, value in params.items():
            name = PARAM_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown training parameter {key!r}")
            kwargs[name] = _coerce(known[name].type, value)
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str) -> "QNConfig":
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: expected a mapping of training parameters")
        return cls.from_mapping(raw)

    def to_dict(self) -> dict:
        return asdict(self)


def _coerce(kind, value):
    if kind is bool:
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if kind is int:
        return int(value)
    if kind is float:
        return float(value)
    return value
