"""Repository tests, run against both the in-memory and the SQLite backend."""

import asyncio
import sqlite3

import pytest

from todo_api.db import Database, SQLiteTodoRepository, sqlite_repositories
from todo_api.errors import Duplicate, NotFound, Unexpected
from todo_api.repositories import (
    InMemoryLabelRepository,
    InMemoryStore,
    InMemoryTodoRepository,
    get_repositories,
    memory_repositories,
)
from todo_api.schemas import TodoCreate, TodoUpdate
from todo_api.settings import Settings


@pytest.mark.asyncio
async def test_create_then_find(todo_repo, label_repo):
    label = await label_repo.create("test label")
    created = await todo_repo.create(TodoCreate(text="buy milk", labels=[label["id"]]))
    assert created == {
        "id": 1,
        "text": "buy milk",
        "completed": False,
        "labels": [{"id": label["id"], "name": "test label"}],
    }
    assert await todo_repo.find(created["id"]) == created


@pytest.mark.asyncio
async def test_missing_todo_not_found(todo_repo):
    with pytest.raises(NotFound) as exc:
        await todo_repo.find(7)
    assert exc.value.id == 7
    assert exc.value.entity == "todo"
    with pytest.raises(NotFound):
        await todo_repo.update(7, TodoUpdate(completed=True))
    for _ in range(2):
        with pytest.raises(NotFound):
            await todo_repo.delete(7)


@pytest.mark.asyncio
async def test_create_with_missing_label_leaves_nothing(todo_repo, label_repo):
    label = await label_repo.create("real")
    with pytest.raises(NotFound) as exc:
        await todo_repo.create(TodoCreate(text="bad", labels=[label["id"], 50, 40]))
    assert exc.value.entity == "label"
    assert exc.value.id == 40
    assert await todo_repo.all() == []


@pytest.mark.asyncio
async def test_update_only_given_fields(todo_repo, label_repo):
    label = await label_repo.create("l")
    todo = await todo_repo.create(TodoCreate(text="before", labels=[label["id"]]))

    updated = await todo_repo.update(todo["id"], TodoUpdate(completed=True))
    assert updated == {**todo, "completed": True}

    updated = await todo_repo.update(todo["id"], TodoUpdate(text="after"))
    assert updated == {**todo, "text": "after", "completed": True}

    # Explicit nulls are ignored
    updated = await todo_repo.update(todo["id"], TodoUpdate(text=None, completed=None))
    assert updated == {**todo, "text": "after", "completed": True}
    assert await todo_repo.find(todo["id"]) == updated


@pytest.mark.asyncio
async def test_duplicate_label(label_repo):
    first = await label_repo.create("same")
    with pytest.raises(Duplicate) as exc:
        await label_repo.create("same")
    assert exc.value.existing_id == first["id"]
    assert [label["name"] for label in await label_repo.all()] == ["same"]


@pytest.mark.asyncio
async def test_delete_label_detaches_from_todos(todo_repo, label_repo):
    a = await label_repo.create("a")
    b = await label_repo.create("b")
    t1 = await todo_repo.create(TodoCreate(text="one", labels=[a["id"], b["id"]]))
    t2 = await todo_repo.create(TodoCreate(text="two", labels=[a["id"]]))

    await label_repo.delete(a["id"])

    assert await todo_repo.all() == [
        {**t1, "labels": [b]},
        {**t2, "labels": []},
    ]
    with pytest.raises(NotFound) as exc:
        await label_repo.delete(a["id"])
    assert exc.value.entity == "label"


@pytest.mark.asyncio
async def test_ids_never_reused(todo_repo, label_repo):
    first = await todo_repo.create(TodoCreate(text="1"))
    second = await todo_repo.create(TodoCreate(text="2"))
    await todo_repo.delete(second["id"])
    third = await todo_repo.create(TodoCreate(text="3"))
    assert third["id"] == second["id"] + 1
    assert [t["id"] for t in await todo_repo.all()] == [first["id"], third["id"]]

    la = await label_repo.create("x")
    await label_repo.delete(la["id"])
    lb = await label_repo.create("x")
    assert lb["id"] == la["id"] + 1


@pytest.mark.asyncio
async def test_returned_entities_are_copies(todo_repo, label_repo):
    label = await label_repo.create("copy")
    todo = await todo_repo.create(TodoCreate(text="copy", labels=[label["id"]]))
    todo["text"] = "mutated"
    todo["labels"][0]["name"] = "mutated"
    fresh = await todo_repo.find(todo["id"])
    assert fresh["text"] == "copy"
    assert fresh["labels"][0]["name"] == "copy"


@pytest.mark.asyncio
async def test_concurrent_creates_get_distinct_ids():
    todo_repo, _ = memory_repositories()
    n = 50
    created = await asyncio.gather(*(todo_repo.create(TodoCreate(text=f"t{i}")) for i in range(n)))
    ids = [t["id"] for t in created]
    assert len(set(ids)) == n
    assert len(await todo_repo.all()) == n


@pytest.mark.asyncio
async def test_concurrent_create_and_label_delete_stay_consistent():
    store = InMemoryStore()
    todo_repo = InMemoryTodoRepository(store)
    label_repo = InMemoryLabelRepository(store)
    label = await label_repo.create("racy")

    async def create():
        try:
            return await todo_repo.create(TodoCreate(text="t", labels=[label["id"]]))
        except NotFound:
            return None

    results = await asyncio.gather(*(create() for _ in range(10)), label_repo.delete(label["id"]))
    for todo in results[:-1]:
        if todo is not None:
            assert (await todo_repo.find(todo["id"]))["labels"] == []
    assert all(not record.label_ids for record in store.todos.values())


@pytest.mark.asyncio
async def test_sqlite_concurrent_creates(tmp_path):
    todo_repo, _ = sqlite_repositories(str(tmp_path / "c.db"))
    created = await asyncio.gather(*(todo_repo.create(TodoCreate(text=f"t{i}")) for i in range(20)))
    assert len({t["id"] for t in created}) == 20
    assert len(await todo_repo.all()) == 20


@pytest.mark.asyncio
async def test_sqlite_failure_is_unexpected(tmp_path):
    path = str(tmp_path / "broken.db")
    repo = SQLiteTodoRepository(Database(path))
    conn = sqlite3.connect(path)
    conn.execute("DROP TABLE todo_labels")
    conn.commit()
    conn.close()
    with pytest.raises(Unexpected):
        await repo.all()


@pytest.mark.asyncio
async def test_sqlite_data_survives_new_handle(tmp_path):
    path = str(tmp_path / "persist.db")
    todo_repo, label_repo = sqlite_repositories(path)
    label = await label_repo.create("kept")
    todo = await todo_repo.create(TodoCreate(text="kept", labels=[label["id"]]))

    todo_repo2, label_repo2 = sqlite_repositories(path)
    assert await todo_repo2.find(todo["id"]) == todo
    assert await label_repo2.all() == [label]


def test_get_repositories_follows_settings(tmp_path):
    settings = Settings(
        persistence_backend="sqlite",
        sqlite_db_path=str(tmp_path / "nested" / "todos.db"),
        cors_allow_origins=["*"],
        log_level="INFO",
    )
    todo_repo, label_repo = get_repositories(settings)
    assert todo_repo.backend == "sqlite"
    assert (tmp_path / "nested" / "todos.db").exists()

    memory = Settings(persistence_backend="memory", sqlite_db_path="", cors_allow_origins=["*"], log_level="INFO")
    todo_repo, label_repo = get_repositories(memory)
    assert isinstance(todo_repo, InMemoryTodoRepository)
    assert isinstance(label_repo, InMemoryLabelRepository)
    assert todo_repo.store is label_repo.store


@pytest.mark.asyncio
async def test_ids_beyond_int64_are_not_found(todo_repo, label_repo):
    huge = 2**63
    with pytest.raises(NotFound) as exc:
        await todo_repo.find(huge)
    assert exc.value.id == huge
    with pytest.raises(NotFound):
        await todo_repo.update(huge, TodoUpdate(completed=True))
    with pytest.raises(NotFound):
        await todo_repo.delete(-huge - 1)
    with pytest.raises(NotFound) as exc:
        await label_repo.delete(huge)
    assert exc.value.entity == "label"

    with pytest.raises(NotFound) as exc:
        await todo_repo.create(TodoCreate(text="x", labels=[huge]))
    assert exc.value.entity == "label"
    assert exc.value.id == huge
    assert await todo_repo.all() == []

    todo = await todo_repo.create(TodoCreate(text="y"))
    with pytest.raises(NotFound) as exc:
        await todo_repo.update(todo["id"], TodoUpdate(labels=[huge]))
    assert exc.value.entity == "label"
