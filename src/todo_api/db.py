from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generator, Iterable, List, Optional, Tuple, TypeVar

from starlette.concurrency import run_in_threadpool

from .errors import Duplicate, NotFound, Unexpected
from .logger import get_logger
from .models import LabelEntity, TodoEntity
from .repositories import LabelRepository, TodoRepository
from .schemas import TodoCreate, TodoUpdate

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class _Tables:
    todos: str = "todos"
    labels: str = "labels"
    todo_labels: str = "todo_labels"


_T = _Tables()

# SQLite INTEGER PRIMARY KEY range; anything outside can not be stored.
_MIN_ID = -(2**63)
_MAX_ID = 2**63 - 1

_SELECT_TODOS = f"""
    SELECT t.id AS id, t.text AS text, t.completed AS completed,
           l.id AS label_id, l.name AS label_name
    FROM {_T.todos} AS t
    LEFT JOIN {_T.todo_labels} AS tl ON tl.todo_id = t.id
    LEFT JOIN {_T.labels} AS l ON l.id = tl.label_id
"""


class Database:
    """
    Handle to a SQLite database file shared by the SQLite repositories.

    Every operation opens a short-lived connection with foreign keys enabled,
    runs inside one transaction (committed on success, rolled back on any
    exception) and executes in the threadpool so the event loop never blocks.
    """

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._timeout = timeout
        self._init_db()

    @contextmanager
    def connect(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    async def run(self, fn: Callable[..., T], *args: Any) -> T:
        """
        Run `fn(conn, *args)` in one transaction on a worker thread.

        RepositoryErrors raised by `fn` propagate after rollback; any other
        driver failure is reported as Unexpected.
        """

        def _call() -> T:
            with self.connect() as conn:
                return fn(conn, *args)

        try:
            return await run_in_threadpool(_call)
        except (sqlite3.Error, OverflowError) as e:
            logger.exception("sqlite operation failed on %s", self._db_path)
            raise Unexpected(str(e)) from e

    def _init_db(self) -> None:
        with self.connect() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_T.labels} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_T.todos} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    text TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_T.todo_labels} (
                    todo_id INTEGER NOT NULL REFERENCES {_T.todos}(id) ON DELETE CASCADE,
                    label_id INTEGER NOT NULL REFERENCES {_T.labels}(id) ON DELETE CASCADE,
                    PRIMARY KEY (todo_id, label_id)
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_T.todo_labels}_label_id ON {_T.todo_labels}(label_id)"
            )
        logger.info("sqlite schema ready at %s", self._db_path)


def _check_id(id: int, entity: str = "todo") -> None:
    # Ids that do not fit the column can not exist in the store.
    if not _MIN_ID <= id <= _MAX_ID:
        raise NotFound(id, entity)


def _rows_to_entities(rows: Iterable[sqlite3.Row]) -> List[TodoEntity]:
    # Rows arrive ordered by todo id, then label id.
    todos: Dict[int, TodoEntity] = {}
    for row in rows:
        todo_id = int(row["id"])
        todo = todos.get(todo_id)
        if todo is None:
            todo = {
                "id": todo_id,
                "text": str(row["text"]),
                "completed": bool(row["completed"]),
                "labels": [],
            }
            todos[todo_id] = todo
        if row["label_id"] is not None:
            todo["labels"].append({"id": int(row["label_id"]), "name": str(row["label_name"])})
    return list(todos.values())


class SQLiteTodoRepository(TodoRepository):
    """
    SQLite repository implementing the TodoRepository interface.
    """

    backend = "sqlite"

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _attach(conn: sqlite3.Connection, todo_id: int, label_ids: Iterable[int]) -> None:
        for label_id in sorted(label_ids):
            _check_id(label_id, "label")
            try:
                conn.execute(
                    f"INSERT INTO {_T.todo_labels} (todo_id, label_id) VALUES (?, ?)",
                    (todo_id, label_id),
                )
            except sqlite3.IntegrityError as e:
                raise NotFound(label_id, "label") from e

    @staticmethod
    def _fetch(conn: sqlite3.Connection, todo_id: Optional[int] = None) -> List[TodoEntity]:
        if todo_id is None:
            rows = conn.execute(f"{_SELECT_TODOS} ORDER BY t.id ASC, l.id ASC").fetchall()
        else:
            rows = conn.execute(
                f"{_SELECT_TODOS} WHERE t.id = ? ORDER BY l.id ASC", (todo_id,)
            ).fetchall()
        return _rows_to_entities(rows)

    def _find_one(self, conn: sqlite3.Connection, todo_id: int) -> TodoEntity:
        _check_id(todo_id)
        found = self._fetch(conn, todo_id)
        if not found:
            raise NotFound(todo_id)
        return found[0]

    def _create(self, conn: sqlite3.Connection, data: TodoCreate) -> TodoEntity:
        cur = conn.execute(
            f"INSERT INTO {_T.todos} (text, completed) VALUES (?, 0)", (data.text,)
        )
        new_id = int(cur.lastrowid)
        self._attach(conn, new_id, data.labels)
        logger.debug("created todo %s", new_id)
        return self._find_one(conn, new_id)

    def _update(self, conn: sqlite3.Connection, todo_id: int, data: TodoUpdate) -> TodoEntity:
        _check_id(todo_id)
        changes = data.changes()
        if changes:
            columns = ", ".join(f"{col} = ?" for col in changes)
            params: List[Any] = [
                (1 if value else 0) if col == "completed" else value for col, value in changes.items()
            ]
            cur = conn.execute(f"UPDATE {_T.todos} SET {columns} WHERE id = ?", (*params, todo_id))
            if cur.rowcount == 0:
                raise NotFound(todo_id)
        elif conn.execute(f"SELECT 1 FROM {_T.todos} WHERE id = ?", (todo_id,)).fetchone() is None:
            raise NotFound(todo_id)

        if data.replaces_labels:
            conn.execute(f"DELETE FROM {_T.todo_labels} WHERE todo_id = ?", (todo_id,))
            self._attach(conn, todo_id, data.labels or [])
        return self._find_one(conn, todo_id)

    @staticmethod
    def _delete(conn: sqlite3.Connection, todo_id: int) -> None:
        _check_id(todo_id)
        cur = conn.execute(f"DELETE FROM {_T.todos} WHERE id = ?", (todo_id,))
        if cur.rowcount == 0:
            raise NotFound(todo_id)
        logger.debug("deleted todo %s", todo_id)

    async def create(self, data: TodoCreate) -> TodoEntity:
        return await self._db.run(self._create, data)

    async def find(self, todo_id: int) -> TodoEntity:
        return await self._db.run(self._find_one, todo_id)

    async def all(self) -> List[TodoEntity]:
        return await self._db.run(self._fetch)

    async def update(self, todo_id: int, data: TodoUpdate) -> TodoEntity:
        return await self._db.run(self._update, todo_id, data)

    async def delete(self, todo_id: int) -> None:
        await self._db.run(self._delete, todo_id)


class SQLiteLabelRepository(LabelRepository):
    """
    SQLite repository implementing the LabelRepository interface.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _existing_id(conn: sqlite3.Connection, name: str) -> Optional[int]:
        row = conn.execute(f"SELECT id FROM {_T.labels} WHERE name = ?", (name,)).fetchone()
        return int(row["id"]) if row else None

    def _create(self, conn: sqlite3.Connection, name: str) -> LabelEntity:
        existing = self._existing_id(conn, name)
        if existing is not None:
            raise Duplicate(existing)
        try:
            cur = conn.execute(f"INSERT INTO {_T.labels} (name) VALUES (?)", (name,))
        except sqlite3.IntegrityError as e:
            # Lost a race against another insert of the same name
            winner = self._existing_id(conn, name)
            if winner is None:
                raise
            raise Duplicate(winner) from e
        new_id = int(cur.lastrowid)
        logger.debug("created label %s (%s)", new_id, name)
        return {"id": new_id, "name": name}

    @staticmethod
    def _all(conn: sqlite3.Connection) -> List[LabelEntity]:
        rows = conn.execute(f"SELECT id, name FROM {_T.labels} ORDER BY id ASC").fetchall()
        return [{"id": int(r["id"]), "name": str(r["name"])} for r in rows]

    @staticmethod
    def _delete(conn: sqlite3.Connection, label_id: int) -> None:
        _check_id(label_id, "label")
        cur = conn.execute(f"DELETE FROM {_T.labels} WHERE id = ?", (label_id,))
        if cur.rowcount == 0:
            raise NotFound(label_id, "label")
        logger.debug("deleted label %s", label_id)

    async def create(self, name: str) -> LabelEntity:
        return await self._db.run(self._create, name)

    async def all(self) -> List[LabelEntity]:
        return await self._db.run(self._all)

    async def delete(self, label_id: int) -> None:
        await self._db.run(self._delete, label_id)


# PUBLIC_INTERFACE
def sqlite_repositories(db_path: str) -> Tuple[SQLiteTodoRepository, SQLiteLabelRepository]:
    """Return a SQLite todo/label repository pair sharing one Database."""
    db = Database(db_path)
    return SQLiteTodoRepository(db), SQLiteLabelRepository(db)
