from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..dependencies import get_label_repository
from ..errors import Duplicate, NotFound
from ..repositories import LabelRepository
from ..schemas import LabelCreate, LabelOut

router = APIRouter(
    prefix="/labels",
    tags=["labels"],
)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=LabelOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Label",
    description="Create a new Label. Names are unique.",
    responses={
        201: {"description": "Label created successfully"},
        400: {"description": "Validation error"},
        409: {"description": "A label with this name already exists"},
    },
)
async def create_label(payload: LabelCreate, repo: LabelRepository = Depends(get_label_repository)) -> LabelOut:
    try:
        created = await repo.create(payload.name)
    except Duplicate as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Label already exists with id {exc.existing_id}",
        ) from exc
    return LabelOut(**created)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[LabelOut],
    summary="List Labels",
    description="List every label ordered by ascending id.",
)
async def all_labels(repo: LabelRepository = Depends(get_label_repository)) -> List[LabelOut]:
    return [LabelOut(**it) for it in await repo.all()]


# PUBLIC_INTERFACE
@router.delete(
    "/{label_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete Label",
    description="Delete a Label by ID. Todos carrying the label keep existing without it.",
    responses={
        204: {"description": "Label deleted"},
        404: {"description": "Label not found"},
    },
)
async def delete_label(label_id: int, repo: LabelRepository = Depends(get_label_repository)) -> Response:
    """
    Delete a Label. Returns 204 on success, 404 if not found.
    """
    try:
        await repo.delete(label_id)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Label not found") from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
