"""
Utility script to generate and write the OpenAPI schema for the FastAPI app.

This script builds the FastAPI application and serializes its OpenAPI schema
to a JSON file so that API clients and documentation tools can consume a
stable schema without running the server.

Usage:
    python -m todo_api.generate_openapi [output_path]

The default output path is interfaces/openapi.json under the current
working directory.
"""
from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, List, Optional

from .logger import get_logger
from .main import create_app, openapi_tags
from .repositories import memory_repositories

logger = get_logger(__name__)

DEFAULT_OUTPUT = os.path.join("interfaces", "openapi.json")


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Ensure the OpenAPI schema contains the expected tags metadata. This does
    not override existing tag definitions unless missing.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


# PUBLIC_INTERFACE
def generate_openapi(out_path: Optional[str] = None) -> str:
    """Generate the OpenAPI schema file and return the written file path."""
    out_path = out_path or DEFAULT_OUTPUT
    # The schema does not depend on the backend; avoid touching a database.
    app = create_app(*memory_repositories())
    schema = app.openapi()
    _ensure_tags(schema)

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    logger.info("wrote OpenAPI schema to %s", out_path)
    return out_path


def main(argv: Optional[List[str]] = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    generate_openapi(args[0] if args else None)


if __name__ == "__main__":
    main()
