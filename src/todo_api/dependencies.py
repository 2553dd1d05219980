"""FastAPI dependencies returning the backends installed on the application."""
from __future__ import annotations

from fastapi import Request

from .repositories import LabelRepository, TodoRepository


def get_todo_repository(request: Request) -> TodoRepository:
    """Dependency for getting the shared todo repository instance."""
    return request.app.state.todo_repository


def get_label_repository(request: Request) -> LabelRepository:
    """Dependency for getting the shared label repository instance."""
    return request.app.state.label_repository
