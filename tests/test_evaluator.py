"""Unit tests for the precedence evaluator."""

from __future__ import annotations

import pytest

from gmdice.components import Op
from gmdice.errors import DivisionByZeroError, StackIntegrityError, UnbalancedGroupError
from gmdice.evaluator import EvalStack


def _run(*tokens) -> int:
    stack = EvalStack()
    for t in tokens:
        if isinstance(t, Op):
            stack.push_operator(t)
        elif t == "(":
            stack.begin_group()
        elif t == ")":
            stack.end_group()
        else:
            stack.push(t)
    return stack.evaluate()


def test_multiplication_binds_tighter_than_addition():
    assert _run(2, Op.add, 3, Op.multiply, 4) == 14


def test_left_to_right_within_tier():
    assert _run(10, Op.subtract, 3, Op.subtract, 2) == 5
    assert _run(100, Op.divide, 10, Op.divide, 5) == 2


def test_group_overrides_precedence():
    assert _run("(", 2, Op.add, 3, ")", Op.multiply, 4) == 20


def test_floor_after_each_step():
    # 7 // 2 is floored to 3 before the multiply
    assert _run(7, Op.divide, 2, Op.multiply, 2) == 6
    assert _run(-7, Op.divide, 2) == -4


def test_fractional_operands_survive_until_applied():
    assert _run(12, Op.add, 2.5, Op.multiply, 3.7) == 21


def test_clamps():
    assert _run(15, Op.at_most, 5) == 5
    assert _run(2, Op.at_least, 10) == 10


def test_clamps_bind_tighter_than_multiply():
    assert _run(3, Op.multiply, 15, Op.at_most, 5) == 15


def test_negate_is_prefix():
    assert _run(Op.negate, Op.negate, 5) == 5
    assert _run(3, Op.multiply, Op.negate, 2) == -6


def test_division_by_zero():
    with pytest.raises(DivisionByZeroError):
        _run(1, Op.divide, 0)


def test_unmatched_close():
    with pytest.raises(UnbalancedGroupError):
        _run(1, ")")


def test_unclosed_group():
    with pytest.raises(UnbalancedGroupError):
        _run("(", 1)


def test_too_many_values():
    with pytest.raises(StackIntegrityError):
        _run(1, 2)


def test_underflow():
    with pytest.raises(StackIntegrityError):
        _run(1, Op.add)
