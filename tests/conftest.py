import numpy as np
import pytest
import structlog

from maxent_qn.data_indexer import Event, TrainingData, index_events


@pytest.fixture(autouse=True)
def quiet_structlog():
    structlog.configure(
        processors=[structlog.processors.KeyValueRenderer()],
        logger_factory=structlog.ReturnLoggerFactory(),
    )
    yield
    structlog.reset_defaults()


class QuadraticFunction:
    """f(x) = (x - 1)^2 + 10 in one dimension."""

    dimension = 1

    def value_at(self, x):
        return float((x[0] - 1.0) ** 2 + 10.0)

    def gradient_at(self, x):
        return np.array([2.0 * (x[0] - 1.0)])


class QuadraticFunction2:
    """f(x) = x^2 in one dimension."""

    dimension = 1

    def value_at(self, x):
        return float(x[0] ** 2)

    def gradient_at(self, x):
        return np.array([2.0 * x[0]])


@pytest.fixture
def quadratic():
    return QuadraticFunction()


@pytest.fixture
def quadratic2():
    return QuadraticFunction2()


@pytest.fixture
def weather_events():
    return [
        Event("sunny", ["temp=hot", "humid=low", "wind=no"]),
        Event("sunny", ["temp=hot", "humid=low", "wind=no"]),
        Event("sunny", ["temp=mild", "humid=low", "wind=yes"]),
        Event("rainy", ["temp=mild", "humid=high", "wind=yes"]),
        Event("rainy", ["temp=cool", "humid=high", "wind=yes"]),
        Event("rainy", ["temp=cool", "humid=high", "wind=no"]),
        Event("cloudy", ["temp=mild", "humid=high", "wind=no"]),
        Event("cloudy", ["temp=hot", "humid=high", "wind=no"]),
        Event("cloudy", ["temp=mild", "humid=low", "wind=no"]),
        Event("sunny", ["temp=hot", "humid=low", "wind=yes"]),
    ]


@pytest.fixture
def weather_data(weather_events):
    return index_events(weather_events)


@pytest.fixture
def real_valued_data():
    return TrainingData(
        contexts=[[0, 1], [1, 2], [0, 2], [2], [0, 1, 2]],
        values=[[1.5, 0.5], [2.0, 1.0], [0.25, 3.0], [1.0], [0.5, 0.5, 0.5]],
        outcome_list=[0, 1, 0, 1, 2],
        num_times_events_seen=[2, 1, 3, 1, 1],
        outcome_labels=["a", "b", "c"],
        pred_labels=["f0", "f1", "f2"],
    )


@pytest.fixture
def random_data():
    rng = np.random.default_rng(7)
    n_contexts, n_features, n_outcomes = 37, 12, 4
    contexts = [rng.choice(n_features, size=rng.integers(1, 5), replace=False) for _ in range(n_contexts)]
    return TrainingData(
        contexts=contexts,
        values=[rng.uniform(0.1, 2.0, size=len(c)) for c in contexts],
        outcome_list=rng.integers(0, n_outcomes, size=n_contexts),
        num_times_events_seen=rng.integers(1, 4, size=n_contexts),
        outcome_labels=[f"o{k}" for k in range(n_outcomes)],
        pred_labels=[f"p{j}" for j in range(n_features)],
    )
