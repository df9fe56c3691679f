"""Fixtures for route tests."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from evarsity.api.app import register_exception_handlers
from evarsity.api.dependencies import get_engine
from evarsity.api.routes import (
    certificates,
    courses,
    dropouts,
    enrollments,
    progress,
    semesters,
)
from evarsity.engine import AcademicEngine


@pytest.fixture
def app(engine: AcademicEngine):
    """Create a test FastAPI app with the in-memory engine injected."""
    app = FastAPI()

    def override_get_engine():
        yield engine

    app.dependency_overrides[get_engine] = override_get_engine
    register_exception_handlers(app)

    for module in (courses, enrollments, progress, certificates, dropouts, semesters):
        app.include_router(module.router, prefix="/api/v1")

    return app


@pytest.fixture
def client(app: FastAPI):
    """Create a test client."""
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
