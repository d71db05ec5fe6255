"""Operator-precedence evaluation of die-roll expressions.

EvalStack keeps two stacks: operand values (floats, so fractional
intermediate results survive until floored) and pending operators. Operators
are applied as soon as a later operator of equal or lower precedence arrives,
which gives the usual left-to-right algebraic order within each tier.
"""

from __future__ import annotations

import math

from gmdice.components import PRECEDENCE, Op
from gmdice.errors import DivisionByZeroError, StackIntegrityError, UnbalancedGroupError

_GROUP = "("


class EvalStack:
    def __init__(self) -> None:
        self.values: list[float] = []
        self.operators: list[Op | str] = []

    def push(self, value: float) -> None:
        self.values.append(value)

    def _pop(self) -> float:
        if not self.values:
            raise StackIntegrityError("expression stack underflow")
        return self.values.pop()

    def _top_operator(self) -> Op | str | None:
        return self.operators[-1] if self.operators else None

    def push_operator(self, op: Op) -> None:
        """Queue an operator, first applying any pending ones that bind as tightly."""
        if op is not Op.negate:
            # Unary negation is a prefix operator; it never closes out its predecessors.
            while True:
                top = self._top_operator()
                if top is None or top == _GROUP or PRECEDENCE[top] < PRECEDENCE[op]:
                    break
                self._apply()
        self.operators.append(op)

    def begin_group(self) -> None:
        self.operators.append(_GROUP)

    def end_group(self) -> None:
        while self._top_operator() not in (None, _GROUP):
            self._apply()
        if self._top_operator() is None:
            raise UnbalancedGroupError("')' with no matching '(' in die-roll expression")
        self.operators.pop()

    def _apply(self) -> None:
        op = self.operators.pop()
        if op is Op.negate:
            self.push(-self._pop())
            return

        y = self._pop()
        x = self._pop()
        if op is Op.add:
            self.push(math.floor(x + y))
        elif op is Op.subtract:
            self.push(math.floor(x - y))
        elif op is Op.multiply:
            self.push(math.floor(x * y))
        elif op is Op.divide:
            if y == 0:
                raise DivisionByZeroError("division by zero is not defined")
            self.push(math.floor(x / y))
        elif op is Op.at_most:
            self.push(min(x, y))
        elif op is Op.at_least:
            self.push(max(x, y))
        else:
            raise StackIntegrityError(f"unknown operator {op!r}")

    def evaluate(self) -> int:
        """Apply all remaining operators and return the single integer result.

        Raises:
            UnbalancedGroupError: If a '(' was never closed.
            StackIntegrityError: If the operands do not reduce to one value.
        """
        while self.operators:
            if self._top_operator() == _GROUP:
                raise UnbalancedGroupError("'(' without matching ')' in die-roll expression")
            self._apply()
        if len(self.values) != 1:
            raise StackIntegrityError(
                f"expression stack holds {len(self.values)} values at end of evaluation"
            )
        return int(self.values[0])
