"""Drop position math for the kanban board."""
import math

from ordering import ORDER_STEP, drop_order, rebalanced


def test_empty_column_gets_one_step():
    assert drop_order([], 0) == ORDER_STEP


def test_drop_at_end_appends_one_step():
    assert drop_order([10.0, 20.0], 2) == 30.0


def test_index_past_end_is_clamped():
    assert drop_order([10.0], 7) == 20.0


def test_drop_at_top_halves_first_order():
    assert drop_order([10.0, 20.0], 0) == 5.0


def test_drop_between_neighbours_takes_midpoint():
    assert drop_order([10.0, 20.0, 30.0], 2) == 25.0


def test_zero_first_order_needs_rebalance():
    assert drop_order([0.0, 10.0], 0) is None


def test_missing_orders_need_rebalance():
    assert drop_order([None, None], 1) is None


def test_exhausted_gap_needs_rebalance():
    a = 1.0
    b = math.nextafter(a, 2.0)
    assert drop_order([a, b], 1) is None


def test_rebalanced_spacing():
    assert rebalanced(3) == [10.0, 20.0, 30.0]
    assert rebalanced(0) == []


def test_unordered_neighbour_needs_rebalance():
    assert drop_order([10.0, None], 1) is None
    assert drop_order([10.0, None], 2) is None
    assert drop_order([None], 0) is None


def test_drop_above_unordered_tail_keeps_ordered_gap():
    assert drop_order([10.0, 20.0, None], 1) == 15.0
