"""Dice: a parsed die-roll expression that can be rolled repeatedly.

A Dice holds only the parsed structure. Each call to roll() or max_roll()
returns a fresh Evaluation carrying the total and everything rolled along
the way, so the same Dice may be rolled any number of times without one
roll leaking into the next.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field

from gmdice.components import (
    NATURAL_DISQUALIFIED,
    NATURAL_NONE,
    Component,
    Constant,
    DieGroup,
    DieOutcome,
    GroupBegin,
    GroupEnd,
    Op,
    Operator,
    component_text,
    describe_component,
    roll_die_group,
)
from gmdice.errors import IncompatibleModifierError
from gmdice.evaluator import EvalStack
from gmdice.results import StructuredDescription, fragment
from gmdice.tokenizer import parse_expression

logger = logging.getLogger(__name__)


@dataclass
class Evaluation:
    """The outcome of one roll (or maximization) of a Dice.

    outcomes maps the index of each DieGroup component to what it rolled.
    natural is the single natural die face, NATURAL_NONE if no die was
    involved, or NATURAL_DISQUALIFIED if more than one die was.
    """

    total: int
    outcomes: dict[int, DieOutcome] = field(default_factory=dict)
    natural: int = NATURAL_NONE
    default_threat: int = 0
    maximized: bool = False


class Dice:
    """A die-roll expression such as "3d6 fire + 2 | min 5".

    Args:
        description: Expression text. An empty description means 1d20.
        rng: Random source; a new unseeded one is created if omitted.

    Raises:
        DiceError: If the description cannot be parsed.
    """

    def __init__(self, description: str = "", *, rng: random.Random | None = None) -> None:
        self.rng = rng if rng is not None else random.Random()
        self.components: list[Component]
        self.min_value = 0
        self.max_value = 0
        if description.strip():
            self.components, self.min_value, self.max_value = parse_expression(description)
        else:
            self.components = [DieGroup(sides=20)]

    @classmethod
    def from_die_type(
        cls,
        qty: int,
        sides: int,
        bonus: int = 0,
        *,
        die_bonus: int = 0,
        div: int = 0,
        factor: int = 0,
        rng: random.Random | None = None,
    ) -> Dice:
        """Build a Dice from discrete values instead of expression text.

        Dice.from_die_type(3, 6, 10) is equivalent to Dice("3d6+10").
        A nonzero factor multiplies the whole expression.
        """
        dice = cls.__new__(cls)
        dice.rng = rng if rng is not None else random.Random()
        dice.min_value = 0
        dice.max_value = 0

        components: list[Component] = []
        if qty > 0 and sides > 0:
            components.append(DieGroup(sides=sides, numerator=qty, denominator=div, die_bonus=die_bonus))
        if bonus:
            if components:
                components.append(Operator(Op.add if bonus > 0 else Op.subtract))
                components.append(Constant(float(abs(bonus))))
            else:
                components.append(Constant(float(bonus)))
        if factor:
            components = [GroupBegin(), *components, GroupEnd(), Operator(Op.multiply), Constant(float(factor))]
        dice.components = components
        return dice

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dice):
            return NotImplemented
        return (
            self.components == other.components
            and self.min_value == other.min_value
            and self.max_value == other.max_value
        )

    def __repr__(self) -> str:
        return f"Dice({self.description()!r})"

    @property
    def die_groups(self) -> list[DieGroup]:
        return [c for c in self.components if isinstance(c, DieGroup)]

    @property
    def single_die(self) -> DieGroup | None:
        """The expression's only die group, or None if there are zero or several."""
        groups = self.die_groups
        return groups[0] if len(groups) == 1 else None

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _evaluate(self, *, maximize: bool, bonus: int) -> Evaluation:
        stack = EvalStack()
        outcomes: dict[int, DieOutcome] = {}
        natural = NATURAL_NONE
        default_threat = 0

        for i, component in enumerate(self.components):
            if isinstance(component, Constant):
                stack.push(component.value)
            elif isinstance(component, DieGroup):
                outcome = roll_die_group(component, self.rng, maximize=maximize)
                outcomes[i] = outcome
                stack.push(outcome.value)
                # The first die to report a natural face wins; a second one
                # disqualifies the whole roll.
                if outcome.natural != NATURAL_NONE:
                    if natural == NATURAL_NONE:
                        natural, default_threat = outcome.natural, component.sides
                    else:
                        natural, default_threat = NATURAL_DISQUALIFIED, 0
            elif isinstance(component, Operator):
                stack.push_operator(component.op)
            elif isinstance(component, GroupBegin):
                stack.begin_group()
            elif isinstance(component, GroupEnd):
                stack.end_group()

        total = stack.evaluate() + bonus
        if self.max_value > 0 and total > self.max_value:
            total = self.max_value
        if self.min_value > 0 and total < self.min_value:
            total = self.min_value

        return Evaluation(
            total=total,
            outcomes=outcomes,
            natural=natural,
            default_threat=default_threat,
            maximized=maximize,
        )

    def roll(self, bonus: int = 0) -> Evaluation:
        """Roll the dice, adding bonus to the total before min/max limits apply.

        Raises:
            InvalidDieError: If a die has a nonpositive number of sides.
            DivisionByZeroError: If the expression divides by zero.
            StackIntegrityError: If the expression does not reduce to one value.
        """
        evaluation = self._evaluate(maximize=False, bonus=bonus)
        logger.debug("Rolled %r: %d", self, evaluation.total)
        return evaluation

    def max_roll(self, bonus: int = 0) -> Evaluation:
        """Evaluate as if every die came up at its maximum; no randomness is used."""
        return self._evaluate(maximize=True, bonus=bonus)

    # ------------------------------------------------------------------
    # Description
    # ------------------------------------------------------------------

    def description(self) -> str:
        """Re-serialize the expression as die-roll text."""
        text = "".join(component_text(c) for c in self.components)
        if self.min_value:
            text += f"|min {self.min_value}"
        if self.max_value:
            text += f"|max {self.max_value}"
        return text

    def structured_description(
        self,
        evaluation: Evaluation | None = None,
        *,
        auto_sf: tuple[str, str] | None = None,
        roll_bonus: int = 0,
    ) -> list[StructuredDescription]:
        """Describe an evaluation (or, without one, just the request) as fragments.

        Args:
            evaluation: The roll to describe. If None, only the request itself
                is described and nothing that depends on rolled values appears.
            auto_sf: (success, fail) messages. When given, a single die showing
                1 is reported as an automatic failure and one showing its
                maximum face as an automatic success.
            roll_bonus: Extra bonus that was added to the roll, reported
                after the expression.

        Raises:
            IncompatibleModifierError: If auto_sf is used on anything but a
                single die.
        """
        desc: list[StructuredDescription] = []
        if evaluation is not None:
            if auto_sf is not None:
                die = self.single_die
                if die is None or die.numerator != 1:
                    raise IncompatibleModifierError(
                        "you can't indicate auto-success/fail (|sf option) because it involves multiple dice"
                    )
                index = self.components.index(die)
                value = evaluation.outcomes[index].value
                success, fail = auto_sf
                if value == 1:
                    desc.append(fragment("fail", fail))
                elif value == die.sides:
                    desc.append(fragment("success", success))
            desc.append(fragment("result", evaluation.total))
            desc.append(fragment("separator", "="))

        for i, component in enumerate(self.components):
            outcome = evaluation.outcomes.get(i) if evaluation is not None else None
            desc.extend(describe_component(component, outcome, suppressed=evaluation is None))

        if roll_bonus:
            desc.append(fragment("bonus", f"{roll_bonus:+d}"))
        if self.min_value:
            desc.extend([fragment("moddelim", "|"), fragment("min", self.min_value)])
        if self.max_value:
            desc.extend([fragment("moddelim", "|"), fragment("max", self.max_value)])
        return desc
