from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.requests import Request

from gmdice.config import settings
from gmdice.errors import DiceError
from gmdice.routers import presets, rolls

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="gmdice", debug=settings.debug)

app.include_router(rolls.router)
app.include_router(presets.router)


@app.exception_handler(DiceError)
async def dice_error_handler(request: Request, exc: DiceError) -> JSONResponse:
    logger.debug("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc), "error": type(exc).__name__})


@app.exception_handler(FileNotFoundError)
async def missing_file_handler(request: Request, exc: FileNotFoundError) -> JSONResponse:
    logger.warning("Preset file not found: %s", exc.filename)
    return JSONResponse(status_code=404, content={"detail": "Preset file not found"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected failure handling %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
