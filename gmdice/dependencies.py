"""FastAPI dependencies for gmdice."""

from __future__ import annotations

from pathlib import Path

from gmdice.config import settings
from gmdice.roller import DieRoller


def get_roller() -> DieRoller:
    """A fresh DieRoller per request, seeded from settings when a seed is configured.

    DieRoller is not safe for concurrent use, so requests never share one.
    """
    return DieRoller(seed=settings.random_seed)


def get_preset_path() -> Path:
    return Path(settings.preset_file)
