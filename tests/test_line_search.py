import numpy as np
import pytest

from maxent_qn.line_search import LineSearchResult, do_constrained_line_search, do_line_search
from maxent_qn.minimizer import compute_pseudo_grad

TOLERANCE = 0.01


def _search(function, x0, direction):
    x = np.array([x0], dtype=float)
    lsr = LineSearchResult.initial(function.value_at(x), function.gradient_at(x), x)
    do_line_search(function, np.array([direction], dtype=float), lsr, 1.0)
    return lsr


class TestLineSearch:

    @pytest.mark.parametrize("fixture,x0", [("quadratic", 0.0), ("quadratic2", -2.0)])
    def test_determines_sane_step_length(self, request, fixture, x0):
        lsr = _search(request.getfixturevalue(fixture), x0, 1.0)
        assert TOLERANCE < lsr.step_size <= 1

    @pytest.mark.parametrize(
        "fixture,x0,direction",
        [("quadratic", 0.0, -1.0), ("quadratic2", -2.0, -1.0), ("quadratic", 4.0, 1.0), ("quadratic2", 2.0, 1.0)],
    )
    def test_wrong_direction_shrinks_step_to_zero(self, request, fixture, x0, direction):
        lsr = _search(request.getfixturevalue(fixture), x0, direction)
        assert not (TOLERANCE < lsr.step_size <= 1)
        assert lsr.step_size == pytest.approx(0.0, abs=TOLERANCE)

    def test_result_bookkeeping(self, quadratic):
        lsr = _search(quadratic, 0.0, 1.0)
        assert lsr.curr_point[0] == 0.0
        assert lsr.next_point[0] == pytest.approx(1.0)
        assert lsr.value_at_curr == pytest.approx(11.0)
        assert lsr.value_at_next == pytest.approx(10.0)
        assert lsr.grad_at_curr[0] == pytest.approx(-2.0)
        assert lsr.grad_at_next[0] == pytest.approx(0.0)
        assert lsr.fct_eval_count == 1
        assert lsr.func_change_rate == pytest.approx(1.0 / 11.0)

    def test_buffers_are_recycled_not_aliased(self, quadratic):
        x = np.array([0.0])
        lsr = LineSearchResult.initial(quadratic.value_at(x), quadratic.gradient_at(x), x)
        spare_point = lsr.curr_point
        do_line_search(quadratic, np.array([0.5]), lsr, 1.0)
        assert lsr.next_point is spare_point
        assert lsr.curr_point is not lsr.next_point
        assert lsr.grad_at_curr is not lsr.grad_at_next

    def test_armijo_condition_holds(self, quadratic2):
        lsr = _search(quadratic2, -2.0, 10.0)
        gain = 1e-4 * lsr.step_size * 10.0 * (-4.0)
        assert lsr.value_at_next <= lsr.value_at_curr + gain
        assert lsr.fct_eval_count > 1


class TestConstrainedLineSearch:

    def _initial(self, function, x, l1_cost):
        x = np.asarray(x, dtype=float)
        grad = function.gradient_at(x)
        value = function.value_at(x) + l1_cost * np.abs(x).sum()
        return LineSearchResult.initial_for_l1(value, grad, compute_pseudo_grad(x, grad, l1_cost), x)

    def test_step_toward_minimum(self, quadratic):
        l1_cost = 0.01
        lsr = self._initial(quadratic, [0.0], l1_cost)
        direction = -lsr.pseudo_grad_at_next
        do_constrained_line_search(quadratic, direction, lsr, l1_cost, 1.0 / abs(direction[0]))
        assert lsr.next_point[0] == pytest.approx(1.0)
        assert lsr.value_at_next == pytest.approx(10.0 + l1_cost)
        assert lsr.sign_vector[0] > 0

    def test_projection_clamps_sign_flip_to_zero(self, quadratic2):
        # from x = 1 a long step would land on -3; the orthant keeps it at 0
        l1_cost = 0.1
        lsr = self._initial(quadratic2, [1.0], l1_cost)
        do_constrained_line_search(quadratic2, np.array([-4.0]), lsr, l1_cost, 1.0)
        assert lsr.next_point[0] == 0.0
        assert lsr.value_at_next == 0.0
        assert lsr.step_size == 1.0

    def test_sign_vector_uses_pseudo_gradient_at_zero(self):
        class Linear:
            dimension = 2

            def value_at(self, x):
                return float(-3.0 * x[0] + 3.0 * x[1])

            def gradient_at(self, x):
                return np.array([-3.0, 3.0])

        lsr = self._initial(Linear(), [0.0, 0.0], 1.0)
        do_constrained_line_search(Linear(), np.array([1.0, -1.0]), lsr, 1.0, 0.5)
        np.testing.assert_allclose(lsr.sign_vector, [2.0, -2.0])
        np.testing.assert_allclose(lsr.next_point, [0.5, -0.5])


class TestLineSearchBounds:

    def test_min_step_size_keeps_current_point(self, quadratic):
        x = np.array([0.0])
        lsr = LineSearchResult.initial(quadratic.value_at(x), quadratic.gradient_at(x), x)
        do_line_search(quadratic, np.array([-1.0]), lsr, 1.0, min_step_size=1e-3)
        assert lsr.step_size == 0.0
        assert lsr.next_point[0] == 0.0
        assert lsr.value_at_next == lsr.value_at_curr == pytest.approx(11.0)
        assert lsr.grad_at_next[0] == pytest.approx(-2.0)
        assert lsr.func_change_rate == 0.0

    def test_nan_direction_stops_at_evaluation_ceiling(self, quadratic):
        x = np.array([0.0])
        lsr = LineSearchResult.initial(quadratic.value_at(x), quadratic.gradient_at(x), x)
        do_line_search(quadratic, np.array([np.nan]), lsr, 1.0, max_fct_eval=50)
        assert lsr.fct_eval_count == 51
        assert lsr.step_size == 0.0
        assert lsr.next_point[0] == 0.0

    def test_constrained_search_gives_up_too(self, quadratic2):
        l1_cost = 0.1
        x = np.array([1.0])
        grad = quadratic2.gradient_at(x)
        lsr = LineSearchResult.initial_for_l1(
            quadratic2.value_at(x) + l1_cost, grad, compute_pseudo_grad(x, grad, l1_cost), x
        )
        do_constrained_line_search(quadratic2, np.array([np.nan]), lsr, l1_cost, 1.0, max_fct_eval=10)
        assert lsr.fct_eval_count == 11
        assert lsr.step_size == 0.0
        assert lsr.next_point[0] == 1.0
        assert np.isfinite(lsr.value_at_next)
