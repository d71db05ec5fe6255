"""Tokenizer and grammar matcher for die-roll expressions.

An expression is a sequence of values separated by operators:

    [>] [<n>[/<div>]] d <sides> [best|worst of <r>] [<label>]
    <constant> [<label>]

joined with + - * // <= >= (or their Unicode forms × ÷ ≤ ≥) and grouped with
parentheses, optionally followed by "| min <n>" and/or "| max <n>".
Whitespace is insignificant except inside labels.
"""

from __future__ import annotations

import logging
import re

from gmdice.components import (
    Component,
    Constant,
    DieGroup,
    GroupBegin,
    GroupEnd,
    Label,
    Op,
    Operator,
)
from gmdice.errors import DiceSyntaxError, InvalidDieError, UnbalancedGroupError, UnknownModifierError

logger = logging.getLogger(__name__)

EXPECTED_SYNTAX = (
    "[<n>[/<d>]] d [<sides>|%] [best|worst of <n>] "
    "[+|-|*|×|÷|//|<=|>=|≤|≥ ...] ['|'min <n>] ['|'max <n>]"
)

_OPERATOR_CHARS = "-+*×÷()≤≥"

_RE_CONFIRM = re.compile(r"\bc(\d+)?([-+]\d+)?\b")
_RE_MIN = re.compile(r"^\s*min\s*([+-]?\d+)\s*$")
_RE_MAX = re.compile(r"^\s*max\s*([+-]?\d+)\s*$")
_RE_MINMAX = re.compile(r"\b(min|max)\s*[+-]?\d+")
_RE_SPLIT = re.compile(rf"[{re.escape(_OPERATOR_CHARS)}]|[^{re.escape(_OPERATOR_CHARS)}]+")
_RE_IS_DIE = re.compile(r"\d+\s*[dD]\d*\d+")

# A label is one or more words, each starting with a letter or underscore.
# ≡ and ‖ carry client color/title encodings; # appears in color codes.
_LABEL_WORD = r"[^\W\d][\w,.≡‖#]*"
_RE_BARE_LABEL = re.compile(rf"^\s*{_LABEL_WORD}(?:\s+{_LABEL_WORD})*\s*$")
_RE_CONSTANT = re.compile(r"^\s*(\d+(?:\.\d+)?|\.\d+)\s*(.*?)\s*$", re.DOTALL)
#                                max    numerator   denominator        sides       best/worst      rerolls   label
_RE_DIE = re.compile(
    r"^\s*(>)?\s*(\d*)\s*(?:/\s*(\d+))?\s*[Dd]\s*(%|\d+)\s*(?:(best|worst)\s*of\s*(\d+))?\s*(.*?)\s*$",
    re.DOTALL,
)

_OPERATORS: dict[str, Op] = {
    "+": Op.add,
    "-": Op.subtract,
    "*": Op.multiply,
    "×": Op.multiply,
    "÷": Op.divide,
    "≤": Op.at_most,
    "≥": Op.at_least,
}


def normalize(expr: str) -> str:
    """Replace the two-character ASCII operators with their single glyphs."""
    return expr.replace("//", "÷").replace(">=", "≥").replace("<=", "≤")


def is_bare_label(text: str) -> bool:
    return _RE_BARE_LABEL.match(text) is not None


def split_clamps(desc: str) -> tuple[str, int, int]:
    """Separate "| min <n>" and "| max <n>" clauses from an expression.

    Returns:
        (expression, min_value, max_value), with 0 meaning no limit.

    Raises:
        UnknownModifierError: For any other "|" clause.
    """
    pieces = desc.split("|")
    min_value = max_value = 0
    for modifier in pieces[1:]:
        if m := _RE_MIN.match(modifier):
            min_value = int(m.group(1))
        elif m := _RE_MAX.match(modifier):
            max_value = int(m.group(1))
        else:
            raise UnknownModifierError(f"invalid global modifier {modifier.strip()!r}")
    return pieces[0], min_value, max_value


def _parse_die(part: str, m: re.Match, desc: str) -> DieGroup:
    if _RE_MINMAX.search(part):
        raise DiceSyntaxError(
            f"syntax error in die roll subexpression {part!r} in {desc!r}; min/max limits "
            "must appear after the final operator in the expression, since they apply "
            "to the entire set of dice rolls"
        )
    initial_max, numerator, denominator, sides, which, count, label = m.groups()
    if sides != "%" and int(sides) == 0:
        raise InvalidDieError(f"dice cannot have a nonpositive number of sides in {part!r}")

    rerolls = 0
    if which:
        rerolls = int(count) - 1
        if rerolls < 0:
            raise DiceSyntaxError(f"{which} of {count} in {part!r} must be at least 1")

    if label:
        if _RE_IS_DIE.search(label):
            raise DiceSyntaxError(
                f"label following die roll in {part!r} looks like another die roll"
                "--did you forget an operator?"
            )
        if not is_bare_label(label):
            raise DiceSyntaxError(f"label {label!r} has illegal characters")

    return DieGroup(
        sides=100 if sides == "%" else int(sides),
        numerator=int(numerator) if numerator else 1,
        denominator=int(denominator) if denominator else 0,
        rerolls=rerolls,
        best=which != "worst",
        initial_max=bool(initial_max),
        label=label.strip(),
    )


def _parse_constant(part: str, desc: str) -> Constant:
    m = _RE_CONSTANT.match(part)
    if m is None:
        raise DiceSyntaxError(
            f"syntax error in die roll subexpression {part!r} in {desc!r}; "
            f"should be {EXPECTED_SYNTAX!r}"
        )
    if _RE_MINMAX.search(part):
        raise DiceSyntaxError(
            f"min/max limits in {part!r} must appear after the final operator in {desc!r}"
        )
    label = m.group(2).strip()
    if label and not is_bare_label(label):
        raise DiceSyntaxError(f"constant label {label!r} has illegal characters")
    return Constant(value=float(m.group(1)), label=label)


def parse_expression(desc: str) -> tuple[list[Component], int, int]:
    """Parse a die-roll expression into components.

    Args:
        desc: Expression text, e.g. "d20+5 | min 6".

    Returns:
        (components, min_value, max_value); limits of 0 are unset.

    Raises:
        DiceSyntaxError: If the expression is malformed.
        InvalidDieError: If a die has zero sides.
        UnknownModifierError: If a "|" clause other than min/max is present.
    """
    if _RE_CONFIRM.search(desc):
        raise DiceSyntaxError(
            "confirmation specifier (c[threat][±bonus]) not allowed in this location; "
            "it must be at the end of a full die-roll specification only"
        )

    expr, min_value, max_value = split_clamps(desc)
    parts = _RE_SPLIT.findall(normalize(expr))
    if not parts:
        raise DiceSyntaxError(f"syntax error in die roll description {expr!r}; should be {EXPECTED_SYNTAX!r}")

    components: list[Component] = []
    op_expected = False
    depth = 0
    for part in parts:
        if part.isspace():
            continue

        if op_expected:
            op = _OPERATORS.get(part)
            if part == ")":
                depth -= 1
                if depth < 0:
                    raise UnbalancedGroupError(f"')' with no matching '(' in {expr!r}")
                components.append(GroupEnd())
            elif part == "(":
                raise DiceSyntaxError("expected operator before '(' in die-roll expression")
            elif op is not None:
                components.append(Operator(op))
                op_expected = False
            elif is_bare_label(part):
                if _RE_DIE.match(part):
                    raise DiceSyntaxError(
                        f"{part.strip()!r} looks suspiciously like a die-roll specification "
                        "but appears as a label; did you forget an operator?"
                    )
                components.append(Label(part.strip()))
            else:
                raise DiceSyntaxError(f"expected operator before {part.strip()!r} in die-roll expression")
            continue

        # A value is expected: leading + is a no-op, leading - negates.
        if part == "+":
            continue
        if part == "-":
            components.append(Operator(Op.negate))
            continue
        if part == "(":
            depth += 1
            components.append(GroupBegin())
            continue
        if part in _OPERATOR_CHARS:
            raise DiceSyntaxError(f"unexpected operator {part!r} in die-roll expression")

        op_expected = True
        if m := _RE_DIE.match(part):
            components.append(_parse_die(part, m, expr))
        else:
            components.append(_parse_constant(part, expr))

    if not op_expected:
        raise DiceSyntaxError(f"missing value after last operator in die-roll expression {expr!r}")
    if depth != 0:
        raise UnbalancedGroupError(f"'(' without matching ')' in die-roll expression {expr!r}")

    logger.debug("Parsed %r into %d components", desc, len(components))
    return components, min_value, max_value
