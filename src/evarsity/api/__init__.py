"""REST API for the academic lifecycle engine."""

from evarsity.api.app import app, create_app
from evarsity.api.models import (
    APIResponse,
    CourseResponse,
    DropoutResponse,
    ProgressResponse,
)

__all__ = [
    "APIResponse",
    "CourseResponse",
    "DropoutResponse",
    "ProgressResponse",
    "app",
    "create_app",
]
