"""
FastAPI Todo/Label backend package.

The ASGI application lives in `todo_api.main` (`app`, or `create_app()` to
build one around explicit repository instances).
"""

__version__ = "0.1.0"
