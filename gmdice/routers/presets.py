"""Preset routes: list the configured preset file and roll presets by name."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException

from gmdice.dependencies import get_preset_path, get_roller
from gmdice.presets import DieRollPreset, read_preset_file
from gmdice.roller import DieRoller
from gmdice.schemas import PresetListResponse, PresetOut, RollResponse

router = APIRouter()


def _find_preset(presets: list[DieRollPreset], name: str) -> DieRollPreset | None:
    for p in presets:
        if p.name == name:
            return p
    return None


@router.get("/presets", response_model=PresetListResponse)
async def list_presets(path: Path = Depends(get_preset_path)) -> PresetListResponse:
    presets, meta = read_preset_file(path)
    return PresetListResponse(
        presets=[PresetOut(name=p.name, description=p.description, spec=p.spec) for p in presets],
        comment=meta.comment,
    )


@router.post("/presets/{name}/roll", response_model=RollResponse)
async def roll_preset(
    name: str,
    path: Path = Depends(get_preset_path),
    roller: DieRoller = Depends(get_roller),
) -> RollResponse:
    presets, _ = read_preset_file(path)
    preset = _find_preset(presets, name)
    if preset is None:
        raise HTTPException(status_code=404, detail=f"No preset named {name!r}")
    title, results = roller.do_roll(preset.spec)
    return RollResponse(title=title, results=results)
