import os

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backend for the module-level app
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from todo_api.db import sqlite_repositories  # noqa: E402
from todo_api.main import create_app  # noqa: E402
from todo_api.repositories import memory_repositories  # noqa: E402


@pytest.fixture(params=["memory", "sqlite"])
def repositories(request, tmp_path):
    """
    A (todo, label) repository pair. Every test using it runs once per backend,
    so both backends are held to the same behavior.
    """
    if request.param == "sqlite":
        return sqlite_repositories(str(tmp_path / "todos.db"))
    return memory_repositories()


@pytest.fixture
def todo_repo(repositories):
    return repositories[0]


@pytest.fixture
def label_repo(repositories):
    return repositories[1]


@pytest.fixture
def client(repositories):
    return TestClient(create_app(*repositories))
