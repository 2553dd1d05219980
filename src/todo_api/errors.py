from __future__ import annotations


class RepositoryError(Exception):
    """Base class for errors raised by storage backends."""


# PUBLIC_INTERFACE
class NotFound(RepositoryError):
    """
    A referenced entity does not exist.

    `entity` is "todo" or "label" so that callers can tell a missing todo
    apart from a missing label referenced while associating.
    """

    def __init__(self, id: int, entity: str = "todo") -> None:
        super().__init__(f"{entity} {id} not found")
        self.id = id
        self.entity = entity


# PUBLIC_INTERFACE
class Duplicate(RepositoryError):
    """A label with the requested name already exists."""

    def __init__(self, existing_id: int) -> None:
        super().__init__(f"label already exists with id {existing_id}")
        self.existing_id = existing_id


# PUBLIC_INTERFACE
class Unexpected(RepositoryError):
    """Any backend failure not covered by NotFound or Duplicate."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail
