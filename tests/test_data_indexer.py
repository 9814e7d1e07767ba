import numpy as np
import pytest

from maxent_qn.data_indexer import Event, InsufficientTrainingDataError, TrainingData, index_events


def _data(**overrides):
    kwargs = dict(
        contexts=[[0, 1], [1]],
        outcome_list=[0, 1],
        num_times_events_seen=[1, 2],
        outcome_labels=["a", "b"],
        pred_labels=["x", "y"],
    )
    kwargs.update(overrides)
    return TrainingData(**kwargs)


class TestTrainingData:

    def test_identity_equality_and_hashable(self):
        data = _data()
        assert data == data
        assert data != _data()
        assert len({data, _data()}) == 2

    def test_sizes(self):
        data = _data()
        assert data.num_contexts == 2
        assert data.num_outcomes == 2
        assert data.num_features == 2
        assert data.dimension == 4
        assert data.num_events == 3

    def test_design_matrix_uses_unit_values(self):
        dense = _data().design_matrix().toarray()
        np.testing.assert_array_equal(dense, [[1.0, 1.0], [0.0, 1.0]])

    def test_design_matrix_sums_repeated_predicates(self):
        data = _data(contexts=[[0, 0, 1], [1]], values=[[0.5, 0.25, 1.0], [2.0]])
        dense = data.design_matrix().toarray()
        np.testing.assert_allclose(dense, [[0.75, 1.0], [0.0, 2.0]])

    @pytest.mark.parametrize(
        "overrides",
        [
            dict(outcome_list=[0]),
            dict(outcome_list=[0, 2]),
            dict(contexts=[[0, 5], [1]]),
            dict(contexts=[[-1], [1]]),
            dict(num_times_events_seen=[0, 1]),
            dict(values=[[1.0], [1.0]]),
            dict(values=[[1.0, 1.0]]),
        ],
    )
    def test_invalid_inputs_raise(self, overrides):
        with pytest.raises(ValueError):
            _data(**overrides)


class TestIndexEvents:

    def test_merges_duplicates(self, weather_events):
        data = index_events(weather_events)
        assert data.num_events == len(weather_events)
        assert data.num_contexts == len(weather_events) - 1
        assert max(data.num_times_events_seen) == 2

    def test_labels_in_first_seen_order(self, weather_events):
        data = index_events(weather_events)
        assert data.outcome_labels == ["sunny", "rainy", "cloudy"]
        assert data.pred_labels[:3] == ["temp=hot", "humid=low", "wind=no"]
        assert data.values is None

    def test_without_sort_keeps_every_event(self, weather_events):
        data = index_events(weather_events, sort=False)
        assert data.num_contexts == len(weather_events)
        assert set(data.num_times_events_seen) == {1}

    def test_cutoff_drops_rare_predicates_and_empty_events(self):
        events = [
            Event("a", ["common", "rare"]),
            Event("b", ["common"]),
            Event("b", ["only_once"]),
        ]
        data = index_events(events, cutoff=2)
        assert data.pred_labels == ["common"]
        assert data.num_contexts == 2

    def test_real_values_are_kept(self):
        events = [Event("a", ["x", "y"], [0.5, 2.0]), Event("b", ["y"])]
        data = index_events(events)
        assert data.values is not None
        by_outcome = {data.outcome_labels[o]: v for o, v in zip(data.outcome_list, data.values)}
        np.testing.assert_allclose(by_outcome["a"], [0.5, 2.0])
        np.testing.assert_allclose(by_outcome["b"], [1.0])

    def test_mismatched_values_raise(self):
        with pytest.raises(ValueError):
            index_events([Event("a", ["x", "y"], [1.0])])

    def test_no_events_raises(self):
        with pytest.raises(InsufficientTrainingDataError):
            index_events([Event("a", ["x"])], cutoff=5)
