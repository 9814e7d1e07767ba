# simulation.py: QNMinimizer vs scipy L-BFGS-B
import itertools
import logging
import os

import numpy as np
import scipy.optimize as opt
import scipy.stats as st

from maxent_qn.data_indexer import TrainingData
from maxent_qn.minimizer import QNMinimizer
from maxent_qn.objective import L2RegFunction, NegLogLikelihood

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# synthetic-data helper
def generate_synthetic_data(n_samples=500, n_features=20, n_outcomes=3, active=4, noise=1.0):
    """
    Sparse binary contexts labelled by a random log-linear model.
    Returns the indexed training set and the generating weights.
    """
    true_w = np.random.randn(n_outcomes, n_features) * noise
    contexts = [
        np.sort(np.random.choice(n_features, size=active, replace=False))
        for _ in range(n_samples)
    ]
    outcomes = np.empty(n_samples, dtype=np.int64)
    for i, ctx in enumerate(contexts):
        scores = true_w[:, ctx].sum(axis=1)
        probs = np.exp(scores - scores.max())
        outcomes[i] = np.random.choice(n_outcomes, p=probs / probs.sum())

    data = TrainingData(
        contexts=contexts,
        outcome_list=outcomes,
        num_times_events_seen=np.ones(n_samples, dtype=np.int64),
        outcome_labels=[f"o{k}" for k in range(n_outcomes)],
        pred_labels=[f"f{j}" for j in range(n_features)],
    )
    return data, true_w


# ---------------------------------------------------------------------
def run_single_simulation(seed: int, *, N_SAMPLES: int, N_FEATURES: int, N_OUTCOMES: int, L2COST: float):
    """
    ▸ 1) fit QNMinimizer on a synthetic problem
    ▸ 2) fit scipy's L-BFGS-B on the same L2-regularized objective
    ▸ 3) report the relative objective gap and parameter error
    """
    np.random.seed(seed)
    logger.info(
        "simulation_run_start",
        extra={"seed": seed, "N_SAMPLES": N_SAMPLES, "N_FEATURES": N_FEATURES, "L2COST": L2COST},
    )

    data, _ = generate_synthetic_data(
        n_samples=N_SAMPLES, n_features=N_FEATURES, n_outcomes=N_OUTCOMES
    )
    objective = NegLogLikelihood(data)

    w_qn = QNMinimizer(l2_cost=L2COST, verbose=False).minimize(objective)

    # ------------ reference optimum ------------
    reg = L2RegFunction(NegLogLikelihood(data), L2COST)
    ref = opt.minimize(
        lambda w: (reg.value_at(w), reg.gradient_at(w)),
        np.zeros(reg.dimension),
        jac=True,
        method="L-BFGS-B",
        options={"maxiter": 1000, "gtol": 1e-10, "ftol": 1e-14},
    )
    w_star = ref.x

    # ------------ metric ------------
    f_qn = reg.value_at(w_qn)
    f_star = reg.value_at(w_star)
    objective_gap = (f_qn - f_star) / abs(f_star) if f_star != 0 else 0.0
    norm = np.linalg.norm(w_star)
    rel_error = np.linalg.norm(w_qn - w_star) / norm * 100 if norm != 0 else 0.0

    logger.info(
        "simulation_run_complete",
        extra={"objective_gap": objective_gap, "relative_error": rel_error, "L2COST": L2COST},
    )
    return objective_gap, rel_error


# ---------------------------------------------------------------------

if __name__ == "__main__":
    from maxent_qn.event_logging import init_logging

    log_dir = init_logging()
    logger.info("simulation_start", extra={"log_dir": str(log_dir)})

    N_SIMULATIONS = 50

    param_grid = {
        "L2COST": [0.01, 0.1, 0.5, 1.0],
        "N_SAMPLES": [200, 1000],
    }

    N_FEATURES = 30
    N_OUTCOMES = 4

    for L2COST, N_SAMPLES in itertools.product(param_grid["L2COST"], param_grid["N_SAMPLES"]):
        config_name = f"l2_{L2COST}_n_{N_SAMPLES}"
        errors = [
            run_single_simulation(
                seed=i,
                N_SAMPLES=N_SAMPLES,
                N_FEATURES=N_FEATURES,
                N_OUTCOMES=N_OUTCOMES,
                L2COST=L2COST,
            )[1]
            for i in range(N_SIMULATIONS)
        ]

        mean_error = np.mean(errors)
        ci_low, ci_high = st.t.interval(
            confidence=0.95,
            df=len(errors) - 1,
            loc=mean_error,
            scale=st.sem(errors),
        )

        print(f"\nConfig: {config_name}")
        print(f"Average relative error vs L-BFGS-B: {mean_error:.3f}%")
        print(f"95% CI: [{ci_low:.3f}%, {ci_high:.3f}%]")

        results_dir = os.path.join(os.getcwd(), "results", config_name)
        os.makedirs(results_dir, exist_ok=True)
        np.save(os.path.join(results_dir, "errors.npy"), np.array(errors))
