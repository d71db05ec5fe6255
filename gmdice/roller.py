"""DieRoller: full die-roll specifications with titles and global modifiers.

A specification has the form

    [<title>=] <expression> [| <modifier>]...
    [<title>=] <chance>% [<success>[/<fail>]] [| <modifier>]...

where the modifiers are:

    min <n>, max <n>     clamp the result
    c[<t>][±<b>]         roll to confirm a natural <t> or better (default: max face)
    dc <n>               report success against a difficulty class
    sf [<ok>[/<fail>]]   natural 1 fails and natural max succeeds automatically
    until <n>            keep rolling until a result of at least <n>
    repeat <n>           roll <n> times
    total <n>            keep rolling until the results add up to at least <n>
    ! | maximized        assume every die rolls its maximum face

Braced alternatives such as "d20+{17/12/7}" roll once per value; several
sets of braces roll the Cartesian product of all of them.
"""

from __future__ import annotations

import itertools
import logging
import random
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from gmdice.components import NATURAL_DISQUALIFIED, NATURAL_NONE
from gmdice.dice import Dice, Evaluation
from gmdice.errors import (
    ConfirmationNotApplicableError,
    DiceSyntaxError,
    IncompatibleModifierError,
    MultipleResultsError,
    UnknownModifierError,
)
from gmdice.results import StructuredDescription, StructuredResult, fragment

logger = logging.getLogger(__name__)

# Hard limit on elementary rolls per request, whatever repeat/until/total ask for.
MAX_ATTEMPTS = 100

SYNTAX = """\
[<title>=] <expression> [|<modifier>...]
[<title>=] <chance>% [<success>[/<fail>]] [|<modifier>...]

<expression> is a sequence of values joined by + - * // <= >=  (or × ÷ ≤ ≥),
optionally grouped with parentheses. Each value is either
    [>][<n>[/<div>]]d<sides>|% [best|worst of <n>] [<label>]
or a constant with an optional label. A leading > makes the first die
roll its maximum face. {<a>/<b>/...} rolls once for each value listed.

Modifiers:
    min <n>              result is at least <n>
    max <n>              result is at most <n>
    c[<threat>][±<bonus>] roll to confirm critical threats
    dc <n>               report success against difficulty class <n>
    sf [<ok>[/<fail>]]   natural 1 fails, natural max succeeds
    until <n>            reroll until a result of at least <n>
    repeat <n>           roll <n> times
    total <n>            reroll until the results add up to <n>
    ! or maximized       every die rolls its maximum face
"""

_RE_TITLE = re.compile(r"^\s*(.*?)\s*=\s*(.*?)\s*$", re.DOTALL)
_RE_MOD_MINMAX = re.compile(r"^\s*(min|max)\s*[+-]?\d+")
_RE_MOD_CONFIRM = re.compile(r"^\s*c(\d+)?([-+]\d+)?\s*$")
_RE_MOD_UNTIL = re.compile(r"^\s*until\s*(-?\d+)\s*$")
_RE_MOD_REPEAT = re.compile(r"^\s*repeat\s*(\d+)\s*$")
_RE_MOD_TOTAL = re.compile(r"^\s*total\s*(\d+)\s*$")
_RE_MOD_MAXIMIZED = re.compile(r"^\s*(!|maximized)\s*$")
_RE_MOD_DC = re.compile(r"^\s*[Dd][Cc]\s*(-?\d+)\s*$")
_RE_MOD_SF = re.compile(r"^\s*sf(?:\s+(\S.*?)(?:/(\S.*?))?)?\s*$")
_RE_PERMUTATIONS = re.compile(r"\{(.*?)\}")
_RE_PCT_ROLL = re.compile(r"^\s*(\d+)%(.*)$", re.DOTALL)
_RE_SLASH_DELIM = re.compile(r"\s*/\s*")

_SF_ANTONYMS = {
    "hit": "MISS",
    "miss": "HIT",
    "success": "FAIL",
    "succeed": "FAIL",
    "fail": "SUCCESS",
}
_PCT_ANTONYMS = {"hit": "miss", "miss": "hit"}


def _fail_message_for(success: str) -> str:
    return _SF_ANTONYMS.get(success.lower(), "NOT " + success)


def _percentile_labels(label: str) -> tuple[str, str]:
    label = label.strip()
    if not label:
        return "success", "fail"
    labels = _RE_SLASH_DELIM.split(label, maxsplit=1)
    if len(labels) == 2:
        return labels[0], labels[1]
    return labels[0], _PCT_ANTONYMS.get(labels[0], "did not " + labels[0])


def _margin(target: int, result: int) -> StructuredDescription:
    if result > target:
        return fragment("exceeded", result - target)
    if result == target:
        return fragment("met", "successful")
    return fragment("short", target - result)


def _substitute(template: str, values: tuple[str, ...]) -> str:
    for place, value in enumerate(values):
        template = template.replace(f"{{{place}}}", value, 1)
    return template


@dataclass
class _Modifiers:
    """Global modifiers parsed from the most recent specification."""

    title: str = ""
    confirm: bool = False
    crit_threat: int = 0
    crit_bonus: int = 0
    repeat_for: int = 1
    repeat_until: int = 0
    total: int = 0
    maximized: bool = False
    dc: int = 0
    sf_option: str = ""
    success_message: str = ""
    fail_message: str = ""
    pct_chance: int = -1
    pct_label: str = ""
    template: str = ""
    permutations: list[list[str]] = field(default_factory=list)

    @property
    def auto_sf(self) -> tuple[str, str] | None:
        if self.sf_option or self.confirm:
            return self.success_message, self.fail_message
        return None

    @property
    def critspec(self) -> str:
        spec = "c"
        if self.crit_threat:
            spec += str(self.crit_threat)
        if self.crit_bonus:
            spec += f"{self.crit_bonus:+d}"
        return spec


class DieRoller:
    """Rolls die-roll specifications, remembering the last one for re-rolls.

    A DieRoller owns its random source. Two rollers built with the same seed
    and given the same sequence of calls produce identical results. A
    DieRoller is not safe for concurrent use; give each caller its own.

    Args:
        rng: Random source to draw from.
        seed: Seed for a new random.Random, used only when rng is omitted.
    """

    def __init__(self, rng: random.Random | None = None, *, seed: int | None = None) -> None:
        self.rng = rng if rng is not None else random.Random(seed)
        self.modifiers = _Modifiers()
        self.dice: Dice | None = Dice("1d20", rng=self.rng)
        self._last: tuple[Dice, Evaluation] | None = None

    # ------------------------------------------------------------------
    # Random helpers
    # ------------------------------------------------------------------

    def rand_float(self) -> float:
        """A float in [0.0, 1.0) drawn from the roller's own random stream."""
        return self.rng.random()

    def rand_int(self, n: int) -> int:
        """An int in [0, n) drawn from the roller's own random stream (0 if n <= 0)."""
        if n <= 0:
            return 0
        return self.rng.randrange(n)

    # ------------------------------------------------------------------
    # Specification parsing
    # ------------------------------------------------------------------

    def set_specification(self, spec: str) -> None:
        """Parse a full specification, replacing any previous one.

        Raises:
            DiceSyntaxError: If the expression is malformed.
            UnknownModifierError: For an unrecognized "|" clause.
            IncompatibleModifierError: For modifiers that cannot be combined.
            ConfirmationNotApplicableError: If confirmation is requested for
                anything but a single die.
        """
        mods = _Modifiers()
        self.modifiers = _Modifiers()
        self.dice = None
        self._last = None

        # Convert <= and >= first so their "=" is not taken as the title separator.
        spec = spec.replace(">=", "≥").replace("<=", "≤")
        if m := _RE_TITLE.match(spec):
            mods.title, spec = m.group(1), m.group(2)

        pieces = spec.split("|")
        if len(pieces) > 1:
            spec = pieces[0].strip()
            for modifier in pieces[1:]:
                self._parse_modifier(modifier, mods)
                if _RE_MOD_MINMAX.match(modifier):
                    # min/max belong to the expression itself.
                    spec += "|" + modifier

        spec = spec.replace("//", "÷")
        value_sets = _RE_PERMUTATIONS.findall(spec)
        for values in value_sets:
            choices = values.split("/")
            if len(choices) < 2:
                raise DiceSyntaxError(
                    f"invalid die-roll specification {{{values}}}: values in braces must "
                    "have more than one value separated by slashes"
                )
            mods.permutations.append(choices)
        if value_sets:
            counter = itertools.count()
            mods.template = _RE_PERMUTATIONS.sub(lambda _: f"{{{next(counter)}}}", spec)

        if m := _RE_PCT_ROLL.match(spec):
            self._check_percentile(spec, mods)
            mods.pct_chance = int(m.group(1))
            mods.pct_label = m.group(2)
            self.dice = Dice.from_die_type(1, 100, rng=self.rng)
        elif mods.template:
            # Validate every combination up front so errors surface before any rolling.
            for combination in itertools.product(*mods.permutations):
                self._build_dice(_substitute(mods.template, combination), mods)
        else:
            self.dice = self._build_dice(spec, mods)

        self.modifiers = mods
        logger.debug(
            "Parsed specification %r (title=%r, permutations=%d)",
            spec,
            mods.title,
            len(mods.permutations),
        )

    def _parse_modifier(self, modifier: str, mods: _Modifiers) -> None:
        if _RE_MOD_MINMAX.match(modifier):
            return
        if m := _RE_MOD_CONFIRM.match(modifier):
            mods.confirm = True
            if m.group(1):
                mods.crit_threat = int(m.group(1))
            if m.group(2):
                mods.crit_bonus = int(m.group(2))
            mods.success_message = mods.success_message or "HIT"
            mods.fail_message = mods.fail_message or "MISS"
        elif m := _RE_MOD_UNTIL.match(modifier):
            mods.repeat_until = int(m.group(1))
        elif m := _RE_MOD_REPEAT.match(modifier):
            mods.repeat_for = int(m.group(1))
        elif m := _RE_MOD_TOTAL.match(modifier):
            mods.total = int(m.group(1))
        elif _RE_MOD_MAXIMIZED.match(modifier):
            mods.maximized = True
        elif m := _RE_MOD_DC.match(modifier):
            mods.dc = int(m.group(1))
        elif m := _RE_MOD_SF.match(modifier):
            mods.sf_option = m.group(0).strip()
            if m.group(1):
                mods.success_message = m.group(1)
                mods.fail_message = m.group(2) or _fail_message_for(m.group(1))
            else:
                mods.success_message, mods.fail_message = "SUCCESS", "FAIL"
        else:
            raise UnknownModifierError(
                f"global modifier option {modifier.strip()!r} not understood; must be "
                "!, c, dc, min, max, maximized, sf, total, until, or repeat"
            )

        if mods.total and mods.repeat_until:
            raise IncompatibleModifierError("you can't use both total and until in the same die roll")

    @staticmethod
    def _check_percentile(spec: str, mods: _Modifiers) -> None:
        if mods.permutations:
            raise IncompatibleModifierError("permutations with percentile die rolls are not supported")
        if "|" in spec:
            raise IncompatibleModifierError(f"invalid global modifier for percentile die rolls: {spec!r}")
        if mods.confirm:
            raise IncompatibleModifierError("you can't confirm critical percentile die rolls")
        if mods.dc:
            raise IncompatibleModifierError("you can't have a percentile die roll with a DC")
        if mods.sf_option:
            raise IncompatibleModifierError("you can't use auto-success/fail with percentile die rolls")
        if mods.total:
            raise IncompatibleModifierError("you can't use total with percentile die rolls")

    def _build_dice(self, expression: str, mods: _Modifiers) -> Dice:
        if not expression.strip():
            raise DiceSyntaxError("empty die-roll expression")
        dice = Dice(expression, rng=self.rng)
        if mods.confirm or mods.sf_option:
            die = dice.single_die
            if die is None or die.numerator != 1:
                if mods.confirm:
                    raise ConfirmationNotApplicableError(
                        "you can't confirm a critical on this roll because it doesn't involve only a single die"
                    )
                raise IncompatibleModifierError(
                    "you can't indicate auto-success/fail (|sf option) because it involves multiple dice"
                )
        return dice

    # ------------------------------------------------------------------
    # Rolling
    # ------------------------------------------------------------------

    def _require_specification(self) -> None:
        if self.dice is None and not self.modifiers.template:
            raise DiceSyntaxError("no die-roll specification to re-roll")

    def _dice_sequence(self) -> Iterator[Dice]:
        mods = self.modifiers
        if mods.template:
            for combination in itertools.product(*mods.permutations):
                yield Dice(_substitute(mods.template, combination), rng=self.rng)
        elif self.dice is not None:
            yield self.dice

    def do_roll(self, spec: str = "") -> tuple[str, list[StructuredResult]]:
        """Roll a specification, or re-roll the previous one if spec is empty.

        Returns:
            (title, results) with one StructuredResult per elementary roll.

        Raises:
            DiceError: If the specification is invalid or evaluation fails.
        """
        if spec:
            self.set_specification(spec)
        self._require_specification()

        mods = self.modifiers
        results: list[StructuredResult] = []
        repeat_iter = 0
        attempts = 0
        cumulative = 0
        while repeat_iter < mods.repeat_for:
            result = 0
            for dice in self._dice_sequence():
                result, rolled = self._roll_dice(dice, attempts, cumulative)
                results.extend(rolled)
            cumulative += result

            if mods.total:
                if cumulative >= mods.total:
                    repeat_iter += 1
                    cumulative = 0
            elif mods.repeat_until == 0 or result >= mods.repeat_until:
                repeat_iter += 1

            attempts += 1
            if attempts >= MAX_ATTEMPTS:
                if repeat_iter < mods.repeat_for:
                    logger.warning(
                        "Stopped rolling %r after %d attempts", mods.title or spec, MAX_ATTEMPTS
                    )
                break

        return mods.title, results

    def do_roll_once(self, spec: str = "") -> tuple[str, StructuredResult]:
        """Like do_roll, but the specification must produce exactly one result.

        Raises:
            MultipleResultsError: If more than one result was produced.
        """
        title, results = self.do_roll(spec)
        if len(results) != 1:
            raise MultipleResultsError("die roll spec calls for more than a single roll")
        return title, results[0]

    def _report_options(
        self, desc: list[StructuredDescription], result: int, attempts: int, cumulative: int
    ) -> None:
        mods = self.modifiers
        iteration = fragment("iteration", attempts + 1)
        if mods.confirm:
            desc.extend([fragment("moddelim", "|"), fragment("critspec", mods.critspec)])
        if mods.repeat_for > 1:
            desc.extend([fragment("moddelim", "|"), fragment("repeat", mods.repeat_for), iteration])
        if mods.repeat_until:
            desc.extend(
                [
                    fragment("moddelim", "|"),
                    fragment("until", mods.repeat_until),
                    iteration,
                    _margin(mods.repeat_until, result),
                ]
            )
        if mods.total:
            desc.extend(
                [
                    fragment("moddelim", "|"),
                    fragment("total", mods.total),
                    fragment("cumulative", cumulative + result),
                    iteration,
                ]
            )
        if mods.dc:
            desc.extend([fragment("moddelim", "|"), fragment("dc", mods.dc), _margin(mods.dc, result)])
        if mods.sf_option:
            desc.extend([fragment("moddelim", "|"), fragment("sf", mods.sf_option)])

    def _roll_percentile(self, dice: Dice) -> tuple[int, list[StructuredResult]]:
        mods = self.modifiers
        evaluation = dice.max_roll() if mods.maximized else dice.roll()
        self._last = (dice, evaluation)
        roll = evaluation.total
        success, fail = _percentile_labels(mods.pct_label)
        succeeded = roll <= mods.pct_chance

        desc = [fragment("success", success) if succeeded else fragment("fail", fail)]
        desc.extend([fragment("separator", "="), fragment("diespec", f"{mods.pct_chance}%")])
        if mods.pct_label.strip():
            desc.append(fragment("label", mods.pct_label.strip()))
        if mods.maximized:
            desc.extend([fragment("maxroll", roll), fragment("moddelim", "|"), fragment("fullmax", "maximized")])
        else:
            desc.append(fragment("roll", roll))
        return roll, [StructuredResult(total=1 if succeeded else 0, details=desc)]

    def _roll_dice(self, dice: Dice, attempts: int, cumulative: int) -> tuple[int, list[StructuredResult]]:
        mods = self.modifiers
        if mods.pct_chance >= 0:
            return self._roll_percentile(dice)

        evaluation = dice.max_roll() if mods.maximized else dice.roll()
        self._last = (dice, evaluation)
        result = evaluation.total

        desc = dice.structured_description(evaluation, auto_sf=mods.auto_sf)
        self._report_options(desc, result, attempts, cumulative)
        if mods.maximized:
            desc.extend([fragment("moddelim", "|"), fragment("fullmax", "maximized")])
        results = [StructuredResult(total=result, details=desc)]

        if mods.confirm:
            confirmation = self._confirm(dice, evaluation)
            if confirmation is not None:
                results.append(confirmation)
        return result, results

    def _confirm(self, dice: Dice, evaluation: Evaluation) -> StructuredResult | None:
        mods = self.modifiers
        if evaluation.natural == NATURAL_NONE:
            raise ConfirmationNotApplicableError(
                "you need to roll the dice first before confirming a critical roll"
            )
        if evaluation.natural == NATURAL_DISQUALIFIED:
            raise ConfirmationNotApplicableError(
                "you can't confirm a critical on this roll because it doesn't involve only a single die"
            )

        if mods.maximized:
            second = dice.max_roll(mods.crit_bonus)
        else:
            threat = mods.crit_threat if mods.crit_threat > 0 else evaluation.default_threat
            if evaluation.natural < threat:
                return None
            second = dice.roll(mods.crit_bonus)
        self._last = (dice, second)

        desc = [fragment("critlabel", "Confirm:")]
        desc.extend(dice.structured_description(second, auto_sf=mods.auto_sf, roll_bonus=mods.crit_bonus))
        if mods.maximized:
            desc.extend([fragment("moddelim", "|"), fragment("fullmax", "maximized")])
        return StructuredResult(total=second.total, details=desc)

    # ------------------------------------------------------------------
    # Secret rolls and natural-roll queries
    # ------------------------------------------------------------------

    def explain_secret_roll(self, spec: str, notice: str) -> tuple[str, StructuredResult]:
        """Describe a roll request without rolling anything.

        Used to acknowledge a roll whose results only someone else (usually
        the GM) gets to see.

        Args:
            spec: The specification, or "" for the previous one.
            notice: Why the roll is secret, reported as the first fragment.

        Returns:
            (title, result) with result.suppressed set.
        """
        if spec:
            self.set_specification(spec)
        self._require_specification()
        mods = self.modifiers
        desc = [fragment("notice", notice)]

        if mods.pct_chance >= 0:
            desc.append(fragment("diespec", f"{mods.pct_chance}%"))
            if mods.pct_label.strip():
                desc.append(fragment("label", mods.pct_label.strip()))
            if mods.maximized:
                desc.extend([fragment("moddelim", "|"), fragment("fullmax", "maximized")])
        elif self.dice is None:
            # Permutations have no single expression to describe.
            desc.append(fragment("diespec", spec or mods.template))
        else:
            desc.extend(self.dice.structured_description())
            self._report_secret_options(desc)
            if mods.maximized:
                desc.extend([fragment("moddelim", "|"), fragment("fullmax", "maximized")])

        return mods.title, StructuredResult(suppressed=True, details=desc)

    def _report_secret_options(self, desc: list[StructuredDescription]) -> None:
        mods = self.modifiers
        if mods.confirm:
            desc.extend([fragment("moddelim", "|"), fragment("critspec", mods.critspec)])
        if mods.repeat_for > 1:
            desc.extend([fragment("moddelim", "|"), fragment("repeat", mods.repeat_for)])
        if mods.repeat_until:
            desc.extend([fragment("moddelim", "|"), fragment("until", mods.repeat_until)])
        if mods.total:
            desc.extend([fragment("moddelim", "|"), fragment("total", mods.total)])
        if mods.dc:
            desc.extend([fragment("moddelim", "|"), fragment("dc", mods.dc)])
        if mods.sf_option:
            desc.extend([fragment("moddelim", "|"), fragment("sf", mods.sf_option)])

    def _is_natural(self, check_for_max: bool) -> bool:
        if self._last is None:
            return False
        dice, evaluation = self._last
        groups = [(i, c) for i, c in enumerate(dice.components) if i in evaluation.outcomes]
        if len(groups) != 1:
            return False
        index, group = groups[0]
        outcome = evaluation.outcomes[index]
        if group.numerator != 1:
            return False
        return outcome.natural == (group.sides if check_for_max else 1)

    def is_natural_max(self) -> bool:
        """True if the last roll was a single die that came up on its highest face."""
        return self._is_natural(True)

    def is_natural_1(self) -> bool:
        """True if the last roll was a single die that came up 1."""
        return self._is_natural(False)


def roll(spec: str) -> tuple[str, list[StructuredResult]]:
    """Roll a specification with a fresh DieRoller."""
    return DieRoller().do_roll(spec)


def roll_once(spec: str) -> tuple[str, StructuredResult]:
    """Roll a specification that must produce exactly one result."""
    return DieRoller().do_roll_once(spec)
