from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..dependencies import get_todo_repository
from ..errors import NotFound
from ..repositories import TodoRepository
from ..schemas import TodoCreate, TodoOut, TodoUpdate

router = APIRouter(
    prefix="/todos",
    tags=["todos"],
)


def _todo_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")


def _label_not_found(exc: NotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Label {exc.id} not found")


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item attached to existing labels and return the created resource.",
    responses={
        201: {"description": "Todo created successfully"},
        400: {"description": "Validation error or unknown label id"},
    },
)
async def create_todo(payload: TodoCreate, repo: TodoRepository = Depends(get_todo_repository)) -> TodoOut:
    """
    Create a new Todo. Every id in `labels` must refer to an existing label.
    """
    try:
        created = await repo.create(payload)
    except NotFound as exc:
        raise _label_not_found(exc) from exc
    return TodoOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TodoOut],
    summary="List Todos",
    description="List every todo ordered by ascending id.",
    responses={200: {"description": "List retrieved successfully"}},
)
async def all_todos(repo: TodoRepository = Depends(get_todo_repository)) -> List[TodoOut]:
    items = await repo.all()
    return [TodoOut(**it) for it in items]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={
        200: {"description": "Todo found"},
        404: {"description": "Todo not found"},
    },
)
async def find_todo(todo_id: int, repo: TodoRepository = Depends(get_todo_repository)) -> TodoOut:
    """
    Retrieve a single Todo item by its ID.
    """
    try:
        item = await repo.find(todo_id)
    except NotFound as exc:
        raise _todo_not_found() from exc
    return TodoOut(**item)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Update Todo",
    description=(
        "Partially update fields of a Todo item. Omitted fields keep their values; "
        "`labels`, when given, replaces the attached label set."
    ),
    responses={
        200: {"description": "Todo updated"},
        400: {"description": "Validation error, id mismatch or unknown label id"},
        404: {"description": "Todo not found"},
    },
)
async def update_todo(
    todo_id: int, payload: TodoUpdate, repo: TodoRepository = Depends(get_todo_repository)
) -> TodoOut:
    """
    Partial update of a Todo item.
    """
    if payload.id is not None and payload.id != todo_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Body id {payload.id} does not match path id {todo_id}",
        )
    try:
        updated = await repo.update(todo_id, payload)
    except NotFound as exc:
        if exc.entity == "label":
            raise _label_not_found(exc) from exc
        raise _todo_not_found() from exc
    return TodoOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete Todo",
    description="Delete a Todo item by ID.",
    responses={
        204: {"description": "Todo deleted"},
        404: {"description": "Todo not found"},
    },
)
async def delete_todo(todo_id: int, repo: TodoRepository = Depends(get_todo_repository)) -> Response:
    """
    Delete a Todo. Returns 204 on success, 404 if not found.
    """
    try:
        await repo.delete(todo_id)
    except NotFound as exc:
        raise _todo_not_found() from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
