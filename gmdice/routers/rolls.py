"""Die-roll routes: open rolls, single-result rolls, secret-roll receipts and syntax help."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from gmdice.dependencies import get_roller
from gmdice.roller import SYNTAX, DieRoller
from gmdice.schemas import (
    RollRequest,
    RollResponse,
    SecretRollRequest,
    SingleRollResponse,
    SyntaxResponse,
)

router = APIRouter()


@router.post("/roll", response_model=RollResponse)
async def roll(body: RollRequest, roller: DieRoller = Depends(get_roller)) -> RollResponse:
    title, results = roller.do_roll(body.spec)
    return RollResponse(title=title, results=results)


@router.post("/roll/once", response_model=SingleRollResponse)
async def roll_once(body: RollRequest, roller: DieRoller = Depends(get_roller)) -> SingleRollResponse:
    title, result = roller.do_roll_once(body.spec)
    return SingleRollResponse(title=title, result=result)


@router.post("/roll/secret", response_model=SingleRollResponse)
async def roll_secret(
    body: SecretRollRequest, roller: DieRoller = Depends(get_roller)
) -> SingleRollResponse:
    """Acknowledge a secret roll without revealing (or making) it."""
    title, result = roller.explain_secret_roll(body.spec, body.notice)
    return SingleRollResponse(title=title, result=result)


@router.get("/syntax", response_model=SyntaxResponse)
async def syntax() -> SyntaxResponse:
    return SyntaxResponse(syntax=SYNTAX)
