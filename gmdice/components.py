"""Expression components for die-roll specifications.

A parsed expression such as "2d6 fire + 3 * (1d4 - 1)" is a flat sequence of
components: constants, die groups, operators, group markers and bare labels.
Components are immutable; anything produced by rolling a die group lives in a
separate DieOutcome so the same parsed expression can be rolled repeatedly.

Operator precedence, highest first:
  unary -           (negate)
  <=  >=            (clamp to at most / at least)
  *  //             (multiply / floor-divide)
  +  -              (add / subtract)
"""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass, field
from typing import Union

from gmdice.errors import InvalidDieError
from gmdice.results import StructuredDescription, fragment


class Op(str, enum.Enum):
    """Algebraic operators, stored under their canonical glyphs."""

    add = "+"
    subtract = "-"
    multiply = "×"
    divide = "÷"
    at_most = "≤"
    at_least = "≥"
    negate = "‾"

    @property
    def symbol(self) -> str:
        """The glyph shown to users (negation displays as a plain minus)."""
        return "-" if self is Op.negate else self.value


PRECEDENCE: dict[Op, int] = {
    Op.add: 1,
    Op.subtract: 1,
    Op.multiply: 2,
    Op.divide: 2,
    Op.at_most: 3,
    Op.at_least: 3,
    Op.negate: 4,
}


# ---------------------------------------------------------------------------
# Component kinds
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Constant:
    value: float
    label: str = ""


@dataclass(frozen=True)
class DieGroup:
    """NdS with optional fraction, per-die bonus, rerolls and label.

    The die is written (numerator)/(denominator)d(sides). A denominator of 0
    means the dice are whole. rerolls is the number of extra attempts made
    for "best of N" / "worst of N" (so "best of 3" has rerolls == 2).
    """

    sides: int
    numerator: int = 1
    denominator: int = 0
    die_bonus: int = 0
    rerolls: int = 0
    best: bool = True
    initial_max: bool = False
    label: str = ""


@dataclass(frozen=True)
class Operator:
    op: Op


@dataclass(frozen=True)
class GroupBegin:
    pass


@dataclass(frozen=True)
class GroupEnd:
    pass


@dataclass(frozen=True)
class Label:
    text: str


Component = Union[Constant, DieGroup, Operator, GroupBegin, GroupEnd, Label]


# ---------------------------------------------------------------------------
# Die group evaluation
# ---------------------------------------------------------------------------

NATURAL_NONE = 0
NATURAL_DISQUALIFIED = -1


@dataclass
class DieOutcome:
    """What happened when a DieGroup was rolled (or maximized).

    history holds every attempt's face values (after per-die bonus and
    division); chosen is the index of the attempt that counted.
    """

    value: int
    history: list[list[int]] = field(default_factory=list)
    chosen: int = 0
    natural: int = NATURAL_NONE
    maximized: bool = False


def _adjust_face(group: DieGroup, face: int) -> int:
    v = face + group.die_bonus
    if group.denominator > 0:
        v //= group.denominator
        if v < 1:
            v = 1
    return v


def roll_die_group(group: DieGroup, rng: random.Random, *, maximize: bool = False) -> DieOutcome:
    """Roll (or maximize) one die group.

    Args:
        group: The die group to evaluate.
        rng: Random source; not consulted when maximizing.
        maximize: Assume every die shows its highest face.

    Returns:
        The DieOutcome describing every face rolled.

    Raises:
        InvalidDieError: If the die has a nonpositive number of sides.
    """
    if group.sides <= 0:
        raise InvalidDieError("dice cannot have a nonpositive number of sides")

    if maximize:
        attempt = [_adjust_face(group, group.sides) for _ in range(group.numerator)]
        history = [attempt]
    else:
        history = []
        for i in range(group.rerolls + 1):
            attempt = []
            for j in range(group.numerator):
                if group.initial_max and i == 0 and j == 0:
                    face = group.sides
                else:
                    face = rng.randint(1, group.sides)
                attempt.append(_adjust_face(group, face))
            history.append(attempt)

    sums = [sum(a) for a in history]
    chosen = 0
    if len(sums) > 1:
        target = max(sums) if group.best else min(sums)
        chosen = sums.index(target)

    if group.numerator == 0:
        natural = NATURAL_NONE
    elif group.numerator == 1:
        natural = history[chosen][0] - group.die_bonus
    else:
        natural = NATURAL_DISQUALIFIED

    return DieOutcome(
        value=sums[chosen],
        history=history,
        chosen=chosen,
        natural=natural,
        maximized=maximize,
    )


# ---------------------------------------------------------------------------
# Description
# ---------------------------------------------------------------------------


def format_number(value: float) -> str:
    """Shortest faithful text for a constant ("12", "2.5", "0.5")."""
    if value.is_integer():
        return str(int(value))
    # Fixed-point only; the tokenizer does not read exponents.
    return format(value, ".15f").rstrip("0").rstrip(".")


def _die_notation(group: DieGroup) -> str:
    if group.denominator > 0:
        return f"{group.numerator}/{group.denominator}d{group.sides}"
    return f"{group.numerator}d{group.sides}"


def component_text(component: Component) -> str:
    """Re-serialize a component as die-roll expression text."""
    if isinstance(component, Constant):
        text = format_number(component.value)
        return f"{text} {component.label}" if component.label else text
    if isinstance(component, DieGroup):
        text = (">" if component.initial_max else "") + _die_notation(component)
        if component.die_bonus:
            text += f" ({component.die_bonus:+d} per die)"
        if component.rerolls > 0:
            which = "best" if component.best else "worst"
            text += f" {which} of {component.rerolls + 1}"
        if component.label:
            text += " " + component.label
        return text
    if isinstance(component, Operator):
        return component.op.symbol
    if isinstance(component, GroupBegin):
        return "("
    if isinstance(component, GroupEnd):
        return ")"
    return f" {component.text}"


def _join(values: list[int]) -> str:
    return ",".join(str(v) for v in values)


def describe_component(
    component: Component,
    outcome: DieOutcome | None = None,
    *,
    suppressed: bool = False,
) -> list[StructuredDescription]:
    """Structured description fragments for one component.

    Args:
        component: The component to describe.
        outcome: For die groups, what was rolled. Ignored when suppressed.
        suppressed: Describe only the request, not any rolled values.
    """
    if isinstance(component, Constant):
        desc = [fragment("constant", format_number(component.value))]
        if component.label:
            desc.append(fragment("label", component.label))
        return desc
    if isinstance(component, Operator):
        return [fragment("operator", component.op.symbol)]
    if isinstance(component, GroupBegin):
        return [fragment("begingroup", "(")]
    if isinstance(component, GroupEnd):
        return [fragment("endgroup", ")")]
    if isinstance(component, Label):
        return [fragment("label", component.text)]

    desc = []
    if component.initial_max:
        desc.append(fragment("maximized", ">"))
    desc.append(fragment("diespec", _die_notation(component)))
    if component.die_bonus:
        desc.append(fragment("diebonus", f"{component.die_bonus:+d}"))

    show = outcome is not None and not suppressed
    roll_type = "maxroll" if show and outcome.maximized else "roll"
    if show and len(outcome.history[0]) > 1:
        desc.append(fragment("subtotal", outcome.value))

    if component.rerolls > 0:
        desc.append(fragment("best" if component.best else "worst", component.rerolls + 1))
        if show:
            for i, attempt in enumerate(outcome.history):
                desc.append(fragment(roll_type if i == outcome.chosen else "discarded", _join(attempt)))
    elif show:
        desc.append(fragment(roll_type, _join(outcome.history[0])))

    if component.label:
        desc.append(fragment("label", component.label))
    return desc
