from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TEXT_MAX_LENGTH = 100
NAME_MAX_LENGTH = 100


def _validate_text(value: str, field: str, max_length: int) -> str:
    """
    Internal helper to strip whitespace and enforce a 1..max_length length.
    """
    s = value.strip()
    if not s:
        raise ValueError(f"{field} can not be empty")
    if len(s) > max_length:
        raise ValueError(f"{field} length must be at most {max_length} characters")
    return s


def _normalize_label_ids(value: Optional[List[int]]) -> Optional[List[int]]:
    # Label ids form a set; keep a stable ascending order.
    if value is None:
        return None
    return sorted(set(value))


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "text": "buy milk",
                "labels": [1],
            }
        }
    )

    text: str = Field(..., description="Todo text", min_length=1, max_length=TEXT_MAX_LENGTH)
    labels: List[int] = Field(default_factory=list, description="Ids of existing labels to attach")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..100 length.
        """
        return _validate_text(v, "text", TEXT_MAX_LENGTH)

    @field_validator("labels")
    @classmethod
    def normalize_labels(cls, v: List[int]) -> List[int]:
        return _normalize_label_ids(v) or []


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; only provided fields will be updated.
    When `labels` is provided it replaces the todo's label set.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "text": "buy milk and eggs",
                "completed": True,
            }
        }
    )

    id: Optional[int] = Field(default=None, description="Todo id; must match the path id when given")
    text: Optional[str] = Field(default=None, description="Todo text", min_length=1, max_length=TEXT_MAX_LENGTH)
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    labels: Optional[List[int]] = Field(default=None, description="Replacement set of label ids")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: Optional[str]) -> Optional[str]:
        """
        If text is provided, strip whitespace and enforce 1..100 length.
        """
        if v is None:
            return v
        return _validate_text(v, "text", TEXT_MAX_LENGTH)

    @field_validator("labels")
    @classmethod
    def normalize_labels(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        return _normalize_label_ids(v)

    def changes(self) -> dict:
        """
        Return the column updates carried by this payload: only fields that
        were explicitly set and are not null.
        """
        return {
            name: getattr(self, name)
            for name in ("text", "completed")
            if name in self.model_fields_set and getattr(self, name) is not None
        }

    @property
    def replaces_labels(self) -> bool:
        return "labels" in self.model_fields_set and self.labels is not None


# PUBLIC_INTERFACE
class LabelCreate(BaseModel):
    """
    Schema for creating a Label.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"name": "test label"}})

    name: str = Field(..., description="Unique label name", min_length=1, max_length=NAME_MAX_LENGTH)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_text(v, "name", NAME_MAX_LENGTH)


# PUBLIC_INTERFACE
class LabelOut(BaseModel):
    """
    Schema returned by the API for a Label.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"id": 1, "name": "test label"}})

    id: int = Field(..., description="Unique identifier of the label")
    name: str = Field(..., description="Label name")


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "text": "buy milk",
                "completed": False,
                "labels": [{"id": 1, "name": "test label"}],
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    text: str = Field(..., description="Todo text")
    completed: bool = Field(..., description="Completion status flag")
    labels: List[LabelOut] = Field(default_factory=list, description="Labels attached to the todo")
