"""Project-wide pytest configuration hooks."""

from __future__ import annotations

from typing import Generator

import pytest

from ecs.ecs_manager import ECSManager


@pytest.fixture
def ecs_manager() -> Generator[ECSManager, None, None]:
    """A manager owning a fresh esper world, deleted after the test."""

    manager = ECSManager()
    try:
        yield manager
    finally:
        manager.close()
