"""FastAPI dependencies: the process-wide engine and its event manager."""

from __future__ import annotations

from collections.abc import Generator  # noqa: TC003
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends

from evarsity.api.events import EventManager
from evarsity.engine import AcademicEngine

if TYPE_CHECKING:
    from evarsity.config import EngineConfig

# Set by the application lifespan
_engine: AcademicEngine | None = None
_event_manager: EventManager | None = None


def init_services(config: EngineConfig | None = None) -> AcademicEngine:
    """Create the event manager and an engine that publishes to it."""
    global _engine, _event_manager  # noqa: PLW0603
    _event_manager = EventManager()
    _engine = AcademicEngine(config=config, publisher=_event_manager)
    return _engine


def close_services() -> None:
    """Close the engine's database and drop both services."""
    global _engine, _event_manager  # noqa: PLW0603
    if _engine is not None:
        _engine.close()
    _engine = None
    _event_manager = None


def get_engine() -> Generator[AcademicEngine, None, None]:
    if _engine is None:
        raise RuntimeError("AcademicEngine not initialized. Call init_services() first.")
    yield _engine


def get_event_manager() -> Generator[EventManager, None, None]:
    if _event_manager is None:
        raise RuntimeError("EventManager not initialized. Call init_services() first.")
    yield _event_manager


EngineDep = Annotated[AcademicEngine, Depends(get_engine)]
EventManagerDep = Annotated[EventManager, Depends(get_event_manager)]
