"""Shared test fixtures for the gmdice test suite.

scripted_rng
    A ScriptedRandom whose randint() returns queued faces in order, so a
    test can say exactly what each die shows. Queue values with
    ``rng.queue(20, 3, ...)``; running out of values fails the test.

client
    An httpx AsyncClient wired to the FastAPI app over ASGITransport.
    Rollers are seeded from settings.random_seed, which the fixture pins
    so HTTP results are reproducible.
"""

from __future__ import annotations

import random

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from gmdice.config import settings
from gmdice.main import app


class ScriptedRandom(random.Random):
    def __init__(self) -> None:
        super().__init__(0)
        self.faces: list[int] = []

    def queue(self, *faces: int) -> None:
        self.faces.extend(faces)

    def randint(self, a: int, b: int) -> int:
        if not self.faces:
            raise AssertionError(f"unexpected die roll randint({a}, {b})")
        face = self.faces.pop(0)
        if not a <= face <= b:
            raise AssertionError(f"scripted face {face} is outside [{a}, {b}]")
        return face


@pytest.fixture
def scripted_rng() -> ScriptedRandom:
    return ScriptedRandom()


@pytest_asyncio.fixture
async def client(monkeypatch):
    monkeypatch.setattr(settings, "random_seed", 1234)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
