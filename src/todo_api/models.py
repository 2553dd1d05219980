from __future__ import annotations

from typing import List, TypedDict


# PUBLIC_INTERFACE
class LabelEntity(TypedDict):
    """
    A label that can be attached to any number of todos.

    Fields:
    - id: Unique integer identifier assigned by the backend
    - name: Unique label name
    """

    id: int
    name: str


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A lightweight domain model representing a Todo item as returned by a
    storage backend.

    Fields:
    - id: Unique integer identifier assigned by the backend
    - text: Todo text (1..100 chars, trimmed on input via schemas)
    - completed: Boolean completion flag
    - labels: Labels currently associated with the todo, ordered by id.
      Resolved at read time; never stored on the todo itself.
    """

    id: int
    text: str
    completed: bool
    labels: List[LabelEntity]
