"""Exception hierarchy for the dice engine and preset store.

Every error raised by gmdice derives from DiceError, which is itself a
ValueError so callers that only care about "bad input" can catch that.
"""

from __future__ import annotations


class DiceError(ValueError):
    """Base class for all die-roll errors."""


class DiceSyntaxError(DiceError):
    """Raised when a die-roll expression or specification is malformed."""


class UnbalancedGroupError(DiceSyntaxError):
    """Raised when parentheses in an expression do not pair up."""


class InvalidDieError(DiceError):
    """Raised when a die has a nonpositive number of sides."""


class DivisionByZeroError(DiceError):
    """Raised when an expression divides by zero."""


class StackIntegrityError(DiceError):
    """Raised when the evaluation stack is left in an inconsistent state."""


class UnknownModifierError(DiceError):
    """Raised for a global modifier clause that is not understood."""


class IncompatibleModifierError(DiceError):
    """Raised when global modifiers are combined in an unsupported way."""


class ConfirmationNotApplicableError(DiceError):
    """Raised when a critical confirmation cannot be made for a roll."""


class MultipleResultsError(DiceError):
    """Raised when a single-result call would produce more than one result."""


class PresetFileError(DiceError):
    """Base class for preset file format problems."""


class UnsupportedVersionError(PresetFileError):
    """Raised when a preset file declares a format version we cannot read."""


class CorruptFileError(PresetFileError):
    """Raised when a preset file is structurally invalid."""
