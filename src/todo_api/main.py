from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import Unexpected
from .logger import get_logger
from .repositories import LabelRepository, TodoRepository, get_repositories
from .routers import labels as labels_router
from .routers import todos as todos_router
from .settings import Settings, get_settings

logger = get_logger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "todos", "description": "CRUD operations for Todo items and their labels."},
    {"name": "labels", "description": "Create, list and delete Labels."},
]


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


async def unexpected_exception_handler(request: Request, exc: Unexpected) -> JSONResponse:
    """Map backend failures that are not NotFound/Duplicate to 500."""
    logger.exception("unexpected backend failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Unexpected", "message": "Internal server error"},
    )


# PUBLIC_INTERFACE
def create_app(
    todo_repository: Optional[TodoRepository] = None,
    label_repository: Optional[LabelRepository] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the FastAPI application around one todo and one label backend.

    The repositories are stored on `app.state` and shared by every request.
    Pass both repositories or neither; when both are omitted they are built
    from settings (PERSISTENCE_BACKEND).
    """
    settings = settings or get_settings()
    if (todo_repository is None) != (label_repository is None):
        raise ValueError("create_app needs both a todo and a label repository, or neither")
    if todo_repository is None or label_repository is None:
        todo_repository, label_repository = get_repositories(settings)

    app = FastAPI(
        title="Todo Backend",
        description="Backend API service for managing todos and labels with pluggable storage backends.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    app.state.todo_repository = todo_repository
    app.state.label_repository = label_repository

    # Configure CORS based on settings (CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Unexpected, unexpected_exception_handler)

    backend = todo_repository.backend

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health and the active backend.
        """
        return {"message": "Healthy", "backend": backend}

    # Include routers
    app.include_router(todos_router.router)
    app.include_router(labels_router.router)

    logger.info("todo api ready with %s", backend)
    return app


app = create_app()
