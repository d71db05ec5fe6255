"""Unit tests for expression tokenizing and grammar matching."""

from __future__ import annotations

import pytest

from gmdice.components import Constant, DieGroup, GroupBegin, GroupEnd, Label, Op, Operator
from gmdice.errors import DiceSyntaxError, InvalidDieError, UnbalancedGroupError, UnknownModifierError
from gmdice.tokenizer import is_bare_label, normalize, parse_expression, split_clamps


class TestNormalize:
    def test_floor_divide(self) -> None:
        assert normalize("10//3") == "10÷3"

    def test_clamps(self) -> None:
        assert normalize("d20>=5<=18") == "d20≥5≤18"


class TestSplitClamps:
    def test_no_modifiers(self) -> None:
        assert split_clamps("2d6+3") == ("2d6+3", 0, 0)

    def test_min_and_max(self) -> None:
        assert split_clamps("d20 | min 5 | max 18") == ("d20 ", 5, 18)

    def test_unknown_modifier(self) -> None:
        with pytest.raises(UnknownModifierError):
            split_clamps("d20 | sideways")


class TestBareLabel:
    def test_words(self) -> None:
        assert is_bare_label("this is a label, too.")

    def test_color_encoding(self) -> None:
        assert is_bare_label("fire≡red")

    def test_leading_digit(self) -> None:
        assert not is_bare_label("5label")

    def test_punctuation(self) -> None:
        assert not is_bare_label("label.here!")


class TestParseExpression:
    def test_single_die(self) -> None:
        components, lo, hi = parse_expression("d20")
        assert components == [DieGroup(sides=20)]
        assert (lo, hi) == (0, 0)

    def test_die_with_label_and_constant(self) -> None:
        components, _, _ = parse_expression("2d6 fire + 3 bonus")
        assert components == [
            DieGroup(sides=6, numerator=2, label="fire"),
            Operator(Op.add),
            Constant(3.0, label="bonus"),
        ]

    def test_fractional_die(self) -> None:
        components, _, _ = parse_expression("1/2 d20")
        assert components == [DieGroup(sides=20, numerator=1, denominator=2)]

    def test_percentile_die(self) -> None:
        components, _, _ = parse_expression("d%")
        assert components == [DieGroup(sides=100)]

    def test_best_of(self) -> None:
        components, _, _ = parse_expression("d20 best of 3")
        assert components == [DieGroup(sides=20, rerolls=2, best=True)]

    def test_worst_of(self) -> None:
        components, _, _ = parse_expression("2d6 worst of 2")
        assert components == [DieGroup(sides=6, numerator=2, rerolls=1, best=False)]

    def test_initial_max(self) -> None:
        components, _, _ = parse_expression(">3d6")
        assert components == [DieGroup(sides=6, numerator=3, initial_max=True)]

    def test_ascii_operators(self) -> None:
        components, _, _ = parse_expression("1*2//3<=4>=5-6")
        ops = [c.op for c in components if isinstance(c, Operator)]
        assert ops == [Op.multiply, Op.divide, Op.at_most, Op.at_least, Op.subtract]

    def test_unary_signs(self) -> None:
        components, _, _ = parse_expression("15+-10")
        assert components == [Constant(15.0), Operator(Op.add), Operator(Op.negate), Constant(10.0)]

        components, _, _ = parse_expression("15++10")
        assert components == [Constant(15.0), Operator(Op.add), Constant(10.0)]

    def test_groups(self) -> None:
        components, _, _ = parse_expression("(1+2)*3")
        assert components[0] == GroupBegin()
        assert components[4] == GroupEnd()

    def test_label_after_group(self) -> None:
        components, _, _ = parse_expression("(1d6+2) fire")
        assert components[-1] == Label("fire")

    def test_clamps(self) -> None:
        _, lo, hi = parse_expression("d20+2|min 5|max 18")
        assert (lo, hi) == (5, 18)

    def test_long_label(self) -> None:
        components, _, _ = parse_expression("2d10+12 this is a label, too.")
        assert components[-1] == Constant(12.0, label="this is a label, too.")

    def test_label_with_color(self) -> None:
        components, _, _ = parse_expression("3d6 fire≡red")
        assert components == [DieGroup(sides=6, numerator=3, label="fire≡red")]

    def test_decimal_constants(self) -> None:
        components, _, _ = parse_expression("5*.5")
        assert components[-1] == Constant(0.5)

    @pytest.mark.parametrize(
        "expr",
        [
            "12+",
            "*42",
            "15+*10",
            "((((((4(((((",
            "(2+3) d10+(3)force",
            "3d6 label.here!",
            "3 5label",
            "3 .5label",
            "d20 2d6",
            "d20 best of 0",
            "d20+5 min 3",
            "",
        ],
    )
    def test_syntax_errors(self, expr: str) -> None:
        with pytest.raises(DiceSyntaxError):
            parse_expression(expr)

    @pytest.mark.parametrize("expr", ["15+3)", "(15*2)//3)", "((15*2)//3"])
    def test_unbalanced(self, expr: str) -> None:
        with pytest.raises(UnbalancedGroupError):
            parse_expression(expr)

    def test_zero_sides(self) -> None:
        with pytest.raises(InvalidDieError):
            parse_expression("d20+1d0")

    def test_confirmation_not_allowed(self) -> None:
        with pytest.raises(DiceSyntaxError, match="confirmation"):
            parse_expression("d20 c")
