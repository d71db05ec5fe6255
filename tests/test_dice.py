"""Unit tests for the Dice expression engine."""

import random

import pytest

from gmdice.components import NATURAL_DISQUALIFIED, NATURAL_NONE, DieGroup, roll_die_group
from gmdice.dice import Dice
from gmdice.errors import DivisionByZeroError, IncompatibleModifierError, InvalidDieError
from gmdice.results import render_text


class TestParse:
    def test_default_is_d20(self) -> None:
        assert Dice() == Dice("1d20")

    def test_implicit_one_die(self) -> None:
        assert Dice("d20") == Dice("1d20")

    def test_case_insensitive(self) -> None:
        assert Dice("2D6") == Dice("2d6")

    def test_unicode_and_ascii_operators_agree(self) -> None:
        assert Dice("1d6*2//3") == Dice("1d6×2÷3")

    def test_whitespace_is_insignificant(self) -> None:
        assert Dice(" 2 d 6 + 3 ") == Dice("2d6+3")

    def test_from_die_type(self) -> None:
        assert Dice.from_die_type(3, 6, 10) == Dice("3d6+10")
        assert Dice.from_die_type(1, 20, -2) == Dice("1d20-2")

    def test_from_die_type_factor(self) -> None:
        assert Dice.from_die_type(2, 6, 1, factor=3) == Dice("(2d6+1)*3")


class TestDescription:
    @pytest.mark.parametrize(
        "spec",
        [
            "1d20",
            "3d6+12",
            "2d6 fire+1d4 acid+2 bonus",
            ">3d6 best of 2",
            "1/2d20 worst of 3",
            "(1d6+2)×3",
            "15+-10",
            "12.5-d4|min 3|max 10",
            "4d6≤12≥6",
        ],
    )
    def test_round_trip(self, spec: str) -> None:
        d = Dice(spec)
        assert Dice(d.description()) == d

    def test_die_bonus(self) -> None:
        d = Dice.from_die_type(1, 2, 3, die_bonus=4, div=5)
        assert d.description() == "1/5d2 (+4 per die)+3"

    def test_constant_formatting(self) -> None:
        assert Dice("2.5*4 bonus").description() == "2.5×4 bonus"

    def test_small_constant_stays_fixed_point(self) -> None:
        d = Dice("d20+.0000001")
        assert d.description() == "1d20+0.0000001"
        assert Dice(d.description()) == d

    def test_negative_die_bonus_is_described(self) -> None:
        d = Dice.from_die_type(2, 6, die_bonus=-1)
        assert d.description() == "2d6 (-1 per die)"
        assert [(f.type, f.value) for f in d.structured_description()] == [
            ("diespec", "2d6"),
            ("diebonus", "-1"),
        ]


class TestRoll:
    def test_d6_in_range(self) -> None:
        d = Dice("d6")
        for _ in range(50):
            assert 1 <= d.roll().total <= 6

    def test_3d6_range_and_spread(self) -> None:
        d = Dice("3d6", rng=random.Random(7))
        totals = {d.roll().total for _ in range(10_000)}
        assert min(totals) >= 3
        assert max(totals) <= 18
        assert len(totals) > 1

    def test_order_of_operations(self) -> None:
        assert Dice("3+4*2//(1-5)").roll().total == 1
        assert Dice("15<=5*15<=30*2>=10*8>=3").roll().total == 6000
        assert Dice("(12-2.5)*15.72*-(-1.2)").roll().total == 169
        assert Dice("12+2.5*3.7").roll().total == 21
        assert Dice("5*.5").roll().total == 2
        assert Dice("15+-10").roll().total == 5
        assert Dice("15++10").roll().total == 25

    def test_scripted_faces(self, scripted_rng) -> None:
        scripted_rng.queue(3, 5)
        ev = Dice("2d6 fire + 2", rng=scripted_rng).roll()
        assert ev.total == 10
        assert ev.natural == NATURAL_DISQUALIFIED

    def test_min_max_clamps(self, scripted_rng) -> None:
        d = Dice("d20+2|min 8|max 15", rng=scripted_rng)
        scripted_rng.queue(1, 20, 10)
        assert d.roll().total == 8
        assert d.roll().total == 15
        assert d.roll().total == 12

    def test_bonus_applies_before_clamps(self, scripted_rng) -> None:
        d = Dice("d20|max 20", rng=scripted_rng)
        scripted_rng.queue(19)
        assert d.roll(bonus=5).total == 20

    def test_max_roll(self) -> None:
        assert Dice("3d6+2").max_roll().total == 20
        assert Dice("d20 best of 2").max_roll().total == 20

    def test_division_by_zero(self) -> None:
        with pytest.raises(DivisionByZeroError):
            Dice("d6//0").roll()

    def test_zero_sides_rejected_before_rolling(self) -> None:
        with pytest.raises(InvalidDieError):
            Dice("2d0")

    def test_natural_single_die(self, scripted_rng) -> None:
        scripted_rng.queue(17)
        ev = Dice("d20+5", rng=scripted_rng).roll()
        assert ev.natural == 17
        assert ev.default_threat == 20

    def test_natural_no_dice(self) -> None:
        assert Dice("5+3").roll().natural == NATURAL_NONE

    def test_natural_two_single_dice(self, scripted_rng) -> None:
        scripted_rng.queue(4, 2)
        assert Dice("d20+d4", rng=scripted_rng).roll().natural == NATURAL_DISQUALIFIED

    def test_rolls_do_not_leak(self, scripted_rng) -> None:
        d = Dice("d20", rng=scripted_rng)
        scripted_rng.queue(20, 3)
        first = d.roll()
        second = d.roll()
        assert first.total == 20
        assert second.total == 3
        assert first.outcomes[0].value == 20


class TestDieGroup:
    def test_initial_max(self, scripted_rng) -> None:
        scripted_rng.queue(2, 3)
        outcome = roll_die_group(DieGroup(sides=6, numerator=3, initial_max=True), scripted_rng)
        assert outcome.history == [[6, 2, 3]]
        assert outcome.value == 11

    def test_best_of(self, scripted_rng) -> None:
        scripted_rng.queue(4, 15, 9)
        outcome = roll_die_group(DieGroup(sides=20, rerolls=2), scripted_rng)
        assert outcome.value == 15
        assert outcome.chosen == 1
        assert outcome.natural == 15

    def test_worst_of(self, scripted_rng) -> None:
        scripted_rng.queue(4, 15, 9)
        outcome = roll_die_group(DieGroup(sides=20, rerolls=2, best=False), scripted_rng)
        assert outcome.value == 4
        assert outcome.chosen == 0

    def test_fraction_floors_each_face_with_minimum_one(self, scripted_rng) -> None:
        scripted_rng.queue(1, 7)
        outcome = roll_die_group(DieGroup(sides=8, numerator=2, denominator=2), scripted_rng)
        assert outcome.history == [[1, 3]]

    def test_die_bonus_removed_from_natural(self, scripted_rng) -> None:
        scripted_rng.queue(5)
        outcome = roll_die_group(DieGroup(sides=6, die_bonus=2), scripted_rng)
        assert outcome.value == 7
        assert outcome.natural == 5

    def test_zero_dice(self, scripted_rng) -> None:
        outcome = roll_die_group(DieGroup(sides=6, numerator=0), scripted_rng)
        assert outcome.value == 0
        assert outcome.natural == NATURAL_NONE

    def test_maximize_uses_no_randomness(self, scripted_rng) -> None:
        outcome = roll_die_group(DieGroup(sides=8, numerator=2, die_bonus=1), scripted_rng, maximize=True)
        assert outcome.history == [[9, 9]]
        assert outcome.maximized

    def test_nonpositive_sides(self, scripted_rng) -> None:
        with pytest.raises(InvalidDieError):
            roll_die_group(DieGroup(sides=0), scripted_rng)


class TestStructuredDescription:
    def test_simple_roll(self, scripted_rng) -> None:
        d = Dice("d20+3", rng=scripted_rng)
        scripted_rng.queue(12)
        desc = d.structured_description(d.roll())
        assert [(f.type, f.value) for f in desc] == [
            ("result", "15"),
            ("separator", "="),
            ("diespec", "1d20"),
            ("roll", "12"),
            ("operator", "+"),
            ("constant", "3"),
        ]

    def test_subtotal_and_discards(self, scripted_rng) -> None:
        d = Dice("2d6 best of 2 fire", rng=scripted_rng)
        scripted_rng.queue(1, 2, 6, 5)
        desc = d.structured_description(d.roll())
        assert [(f.type, f.value) for f in desc] == [
            ("result", "11"),
            ("separator", "="),
            ("diespec", "2d6"),
            ("subtotal", "11"),
            ("best", "2"),
            ("discarded", "1,2"),
            ("roll", "6,5"),
            ("label", "fire"),
        ]

    def test_maximized_and_clamps(self) -> None:
        d = Dice(">1d6|min 2|max 5")
        desc = d.structured_description(d.max_roll())
        assert [(f.type, f.value) for f in desc] == [
            ("result", "5"),
            ("separator", "="),
            ("maximized", ">"),
            ("diespec", "1d6"),
            ("maxroll", "6"),
            ("moddelim", "|"),
            ("min", "2"),
            ("moddelim", "|"),
            ("max", "5"),
        ]

    def test_suppressed(self) -> None:
        desc = Dice("60d12+1024 bludgeoning").structured_description()
        assert [(f.type, f.value) for f in desc] == [
            ("diespec", "60d12"),
            ("operator", "+"),
            ("constant", "1024"),
            ("label", "bludgeoning"),
        ]

    def test_groups(self) -> None:
        d = Dice("(12-2.5)*-(-1.2)")
        desc = d.structured_description(d.roll())
        assert [f.type for f in desc] == [
            "result",
            "separator",
            "begingroup",
            "constant",
            "operator",
            "constant",
            "endgroup",
            "operator",
            "operator",
            "begingroup",
            "operator",
            "constant",
            "endgroup",
        ]

    def test_auto_sf(self, scripted_rng) -> None:
        d = Dice("d20+4", rng=scripted_rng)
        scripted_rng.queue(20, 1, 10)
        assert d.structured_description(d.roll(), auto_sf=("HIT", "MISS"))[0].type == "success"
        assert d.structured_description(d.roll(), auto_sf=("HIT", "MISS"))[0].type == "fail"
        assert d.structured_description(d.roll(), auto_sf=("HIT", "MISS"))[0].type == "result"

    def test_auto_sf_requires_single_die(self, scripted_rng) -> None:
        d = Dice("2d6", rng=scripted_rng)
        scripted_rng.queue(1, 1)
        with pytest.raises(IncompatibleModifierError):
            d.structured_description(d.roll(), auto_sf=("HIT", "MISS"))

    def test_roll_bonus(self, scripted_rng) -> None:
        d = Dice("d20", rng=scripted_rng)
        scripted_rng.queue(8)
        desc = d.structured_description(d.roll(bonus=2), roll_bonus=2)
        assert render_text(desc) == "[10] = 1d20{8}+2"
