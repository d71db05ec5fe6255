"""Structured die-roll results.

A die roll is reported as an ordered list of (type, value) fragments rather
than formatted text, so each client can style the parts however it likes.
For example, rolling "1d20+3|min 5|c" might produce:

    result=23  success=HIT  separator==  diespec=1d20  roll=20
    operator=+  constant=3  moddelim=|  min=5  moddelim=|  critspec=c

followed by a second result for the confirmation roll, which starts with
critlabel=Confirm:.

render_text() turns a fragment list into a compact plain-text line for logs
and terminals.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class StructuredDescription(BaseModel):
    """One tagged fragment of a die-roll description."""

    type: str
    value: str


class StructuredResult(BaseModel):
    """The outcome of one elementary roll and how it was derived."""

    suppressed: bool = Field(
        default=False,
        description="True when no result was generated and total should be ignored.",
    )
    invalid: bool = Field(default=False, description="True if the roll request was invalid.")
    total: int = 0
    details: list[StructuredDescription] = Field(default_factory=list)

    def text(self) -> str:
        """Plain-text rendering of this result's details."""
        return render_text(self.details)


def fragment(type_: str, value: object) -> StructuredDescription:
    """Shorthand constructor used throughout the engine."""
    return StructuredDescription(type=type_, value=str(value))


# ---------------------------------------------------------------------------
# Plain-text rendering
# ---------------------------------------------------------------------------

_TEMPLATES: dict[str, str] = {
    "best": " (best of {}) ",
    "critlabel": "{} ",
    "critspec": "{} ",
    "fullmax": "{} ",
    "moddelim": "{} ",
    "separator": "{} ",
    "dc": "DC {} ",
    "diespec": "{}",
    "maximized": "{}",
    "operator": "{}",
    "begingroup": "{}",
    "endgroup": "{}",
    "discarded": "{{discarded {}}}",
    "exceeded": "(EXCEEDED DC by {}) ",
    "fail": "({}) ",
    "success": "({}) ",
    "iteration": "(#{}) ",
    "label": " {}",
    "max": "!{}",
    "maxroll": "{{!{}}}",
    "met": "MET DC ({}) ",
    "min": " (min {}) ",
    "notice": "[{}] ",
    "repeat": "(x{}) ",
    "result": "[{}] ",
    "roll": "{{{}}}",
    "short": "(MISSED DC by {}) ",
    "subtotal": "({})",
    "until": " (until {}) ",
    "worst": " (worst of {}) ",
    "total": " (total {}) ",
    "cumulative": "(cumulative {}) ",
    "sf": "{} ",
}


def _render_number(value: str) -> str:
    # Negative numbers are bracketed so "+" followed by "-3" stays readable.
    try:
        n = float(value)
    except ValueError:
        return value
    return f"({value})" if n < 0 else value


def render_text(details: list[StructuredDescription]) -> str:
    """Render a fragment list as a single plain-text line.

    Args:
        details: Fragments as produced by a die roll.

    Returns:
        A human-readable summary such as "[23] = 1d20{20}+3".
    """
    parts: list[str] = []
    for d in details:
        if d.type in ("bonus", "constant", "diebonus"):
            parts.append(_render_number(d.value))
        elif d.type in _TEMPLATES:
            parts.append(_TEMPLATES[d.type].format(d.value))
        else:
            parts.append(f" <{d.type}: {d.value}> ")
    return "".join(parts)
