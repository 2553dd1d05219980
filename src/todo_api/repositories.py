from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .errors import Duplicate, NotFound
from .logger import get_logger
from .models import LabelEntity, TodoEntity
from .rwlock import RWLock
from .schemas import TodoCreate, TodoUpdate
from .settings import Settings, get_settings

logger = get_logger(__name__)


# PUBLIC_INTERFACE
class TodoRepository(ABC):
    """Abstract repository contract for todo storage backends."""

    backend: str = "unknown"

    @abstractmethod
    async def create(self, data: TodoCreate) -> TodoEntity:
        """
        Create and return a new TodoEntity with completed=False.
        Raises NotFound(label_id, "label") if any referenced label is missing.
        """

    @abstractmethod
    async def find(self, todo_id: int) -> TodoEntity:
        """Return a TodoEntity by id. Raises NotFound if absent."""

    @abstractmethod
    async def all(self) -> List[TodoEntity]:
        """Return every TodoEntity ordered by ascending id."""

    @abstractmethod
    async def update(self, todo_id: int, data: TodoUpdate) -> TodoEntity:
        """
        Update the fields present in `data` and return the updated entity.
        Raises NotFound if the todo (or a label in data.labels) is absent.
        """

    @abstractmethod
    async def delete(self, todo_id: int) -> None:
        """Delete a TodoEntity by id. Raises NotFound if absent."""


# PUBLIC_INTERFACE
class LabelRepository(ABC):
    """Abstract repository contract for label storage backends."""

    @abstractmethod
    async def create(self, name: str) -> LabelEntity:
        """Create and return a new LabelEntity. Raises Duplicate if the name is taken."""

    @abstractmethod
    async def all(self) -> List[LabelEntity]:
        """Return every LabelEntity ordered by ascending id."""

    @abstractmethod
    async def delete(self, label_id: int) -> None:
        """Delete a LabelEntity by id, detaching it from every todo. Raises NotFound if absent."""


@dataclass
class _TodoRecord:
    id: int
    text: str
    completed: bool = False
    label_ids: Set[int] = field(default_factory=set)


class InMemoryStore:
    """
    Process-memory storage shared by the in-memory todo and label repositories.

    All access goes through `lock`: readers take `lock.read()`, every mutation
    holds `lock.write()` for the whole logical operation. Ids come from
    per-entity counters and are never reused after deletion.
    """

    def __init__(self) -> None:
        self.lock = RWLock()
        self.todos: Dict[int, _TodoRecord] = {}
        self.labels: Dict[int, LabelEntity] = {}
        self._next_todo_id = 1
        self._next_label_id = 1

    def allocate_todo_id(self) -> int:
        i = self._next_todo_id
        self._next_todo_id += 1
        return i

    def allocate_label_id(self) -> int:
        i = self._next_label_id
        self._next_label_id += 1
        return i

    def check_labels(self, label_ids: Iterable[int]) -> None:
        for label_id in sorted(label_ids):
            if label_id not in self.labels:
                raise NotFound(label_id, "label")

    def materialize(self, record: _TodoRecord) -> TodoEntity:
        # Return copies to avoid external mutation
        labels = [self.labels[i].copy() for i in sorted(record.label_ids) if i in self.labels]
        return {
            "id": record.id,
            "text": record.text,
            "completed": record.completed,
            "labels": labels,
        }


class InMemoryTodoRepository(TodoRepository):
    """
    Concurrency-safe in-memory todo repository suitable for testing and
    default runtime.
    """

    backend = "memory"

    def __init__(self, store: Optional[InMemoryStore] = None) -> None:
        self._store = store or InMemoryStore()

    @property
    def store(self) -> InMemoryStore:
        return self._store

    async def create(self, data: TodoCreate) -> TodoEntity:
        store = self._store
        async with store.lock.write():
            store.check_labels(data.labels)
            record = _TodoRecord(
                id=store.allocate_todo_id(),
                text=data.text,
                label_ids=set(data.labels),
            )
            store.todos[record.id] = record
            logger.debug("created todo %s", record.id)
            return store.materialize(record)

    async def find(self, todo_id: int) -> TodoEntity:
        store = self._store
        async with store.lock.read():
            record = store.todos.get(todo_id)
            if record is None:
                raise NotFound(todo_id)
            return store.materialize(record)

    async def all(self) -> List[TodoEntity]:
        store = self._store
        async with store.lock.read():
            return [store.materialize(store.todos[i]) for i in sorted(store.todos)]

    async def update(self, todo_id: int, data: TodoUpdate) -> TodoEntity:
        store = self._store
        async with store.lock.write():
            existing = store.todos.get(todo_id)
            if existing is None:
                raise NotFound(todo_id)
            if data.replaces_labels:
                store.check_labels(data.labels or [])

            # Update only provided fields
            changes = data.changes()
            if "text" in changes:
                existing.text = changes["text"]
            if "completed" in changes:
                existing.completed = changes["completed"]
            if data.replaces_labels:
                existing.label_ids = set(data.labels or [])
            return store.materialize(existing)

    async def delete(self, todo_id: int) -> None:
        store = self._store
        async with store.lock.write():
            if store.todos.pop(todo_id, None) is None:
                raise NotFound(todo_id)
            logger.debug("deleted todo %s", todo_id)


class InMemoryLabelRepository(LabelRepository):
    """
    Concurrency-safe in-memory label repository. Share the `InMemoryStore`
    with the todo repository so that label deletion detaches todos.
    """

    def __init__(self, store: Optional[InMemoryStore] = None) -> None:
        self._store = store or InMemoryStore()

    @property
    def store(self) -> InMemoryStore:
        return self._store

    async def create(self, name: str) -> LabelEntity:
        store = self._store
        async with store.lock.write():
            for existing in store.labels.values():
                if existing["name"] == name:
                    raise Duplicate(existing["id"])
            label: LabelEntity = {"id": store.allocate_label_id(), "name": name}
            store.labels[label["id"]] = label
            logger.debug("created label %s (%s)", label["id"], name)
            return label.copy()

    async def all(self) -> List[LabelEntity]:
        store = self._store
        async with store.lock.read():
            return [store.labels[i].copy() for i in sorted(store.labels)]

    async def delete(self, label_id: int) -> None:
        store = self._store
        async with store.lock.write():
            if store.labels.pop(label_id, None) is None:
                raise NotFound(label_id, "label")
            for record in store.todos.values():
                record.label_ids.discard(label_id)
            logger.debug("deleted label %s", label_id)


# PUBLIC_INTERFACE
def memory_repositories() -> Tuple[TodoRepository, LabelRepository]:
    """Return an in-memory todo/label repository pair sharing one store."""
    store = InMemoryStore()
    return InMemoryTodoRepository(store), InMemoryLabelRepository(store)


# PUBLIC_INTERFACE
def get_repositories(settings: Optional[Settings] = None) -> Tuple[TodoRepository, LabelRepository]:
    """
    Factory to return the configured todo/label repositories based on settings.
    - memory: InMemoryTodoRepository / InMemoryLabelRepository over one InMemoryStore
    - sqlite: SQLiteTodoRepository / SQLiteLabelRepository over one Database
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import sqlite_repositories

        return sqlite_repositories(settings.sqlite_db_path)
    return memory_repositories()
