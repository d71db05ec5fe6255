"""gmdice-roll: roll dice from the command line.

    gmdice-roll --dice "Attack=d20+7|c; 2d6+4 slashing"
    gmdice-roll --json --seed 42 --dice 3d6
    gmdice-roll                     (interactive; blank line re-rolls, "help" shows syntax)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from gmdice.config import settings
from gmdice.errors import DiceError
from gmdice.presets import read_preset_file
from gmdice.results import StructuredResult
from gmdice.roller import SYNTAX, DieRoller

logger = logging.getLogger(__name__)


def report_text(title: str, results: list[StructuredResult]) -> None:
    if title:
        print(f"** {title} **")
    for i, result in enumerate(results):
        prefix = f"Roll #{i + 1}: " if len(results) > 1 else ""
        if result.invalid:
            print(prefix + "**INVALID DIE ROLL**")
        elif result.suppressed:
            print(prefix + "**RESULT HIDDEN**")
        else:
            print(prefix + result.text())


def report_json(result_sets: list[tuple[str, list[StructuredResult]]], seed: int | None) -> None:
    payload = []
    for title, results in result_sets:
        entry: dict = {"results": [r.model_dump() for r in results]}
        if title:
            entry["title"] = title
        if seed is not None:
            entry["seed"] = seed
        payload.append(entry)
    print(json.dumps({"result_set": payload}, ensure_ascii=False))


def _list_presets(path: str) -> int:
    try:
        presets, meta = read_preset_file(path)
    except (OSError, DiceError) as exc:
        print(f"ERROR: {exc}")
        return 1
    if meta.comment:
        print(f"# {meta.comment}")
    for p in presets:
        line = f"{p.name}: {p.spec}"
        if p.description:
            line += f"  ({p.description})"
        print(line)
    return 0


def _interactive(roller: DieRoller) -> int:
    print('Enter each die-roll expression below.\nType "help" to see a syntax description.\nEOF terminates.')
    for line in sys.stdin:
        spec = line.rstrip("\n")
        if spec.strip() == "help":
            print(SYNTAX)
            continue
        try:
            title, results = roller.do_roll(spec.strip())
        except DiceError as exc:
            print(f"ERROR: {exc}")
            continue
        report_text(title, results)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="gmdice-roll",
        description="Roll dice using tabletop RPG die-roll expressions.",
    )
    parser.add_argument(
        "--dice",
        default="",
        help="die-roll expression(s) to roll, separated by semicolons (interactive if omitted)",
    )
    parser.add_argument("--json", action="store_true", help="print results as JSON")
    parser.add_argument("--seed", type=int, default=None, help="seed for reproducible results")
    parser.add_argument("--syntax", action="store_true", help="print the die-roll syntax and exit")
    parser.add_argument("--presets", metavar="FILE", help="list the presets stored in FILE and exit")
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level)

    if args.syntax:
        print(SYNTAX)
        return 0
    if args.presets:
        return _list_presets(args.presets)

    seed = args.seed if args.seed is not None else settings.random_seed
    roller = DieRoller(seed=seed)

    if not args.dice:
        return _interactive(roller)

    result_sets = []
    for i, spec in enumerate(args.dice.split(";")):
        try:
            result_sets.append(roller.do_roll(spec.strip()))
        except DiceError as exc:
            print(f"ERROR: die-roll expression #{i + 1}: {exc}")
            return 1

    if args.json:
        report_json(result_sets, seed)
    else:
        for title, results in result_sets:
            report_text(title, results)
    return 0


if __name__ == "__main__":
    sys.exit(main())
