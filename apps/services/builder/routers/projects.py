"""
Projects Router

Endpoints:
    POST   /api/projects                  - Save (upsert) a schema
    GET    /api/projects                  - List saved projects
    DELETE /api/projects/{id}             - Delete a project
    GET    /api/projects/load/{filename}  - Load a saved schema
    GET    /projects/{id}                 - SPA entry point (index.html)
"""

import logging
import re
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from apps.services.builder.config import INDEX_HTML
from apps.services.builder.dependencies import get_project_store
from apps.services.builder.project_store import is_valid_project_id
from apps.services.builder.schemas import ProjectEntry, ProjectIn

logger = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["projects"])


@router.post("/api/projects", response_model=ProjectEntry)
def save_project(body: ProjectIn) -> Dict[str, Any]:
    if not isinstance(body.schema_, dict):
        raise HTTPException(status_code=400, detail="Invalid schema")
    return get_project_store().save(
        body.schema_,
        name=body.name,
        prompt=body.prompt,
        requested_id=body.id,
    )


@router.get("/api/projects")
def list_projects() -> List[Dict[str, Any]]:
    return get_project_store().list_projects()


@router.delete("/api/projects/{project_id}")
def delete_project(project_id: str) -> Dict[str, bool]:
    if not is_valid_project_id(project_id):
        raise HTTPException(status_code=400, detail="Invalid project id")
    if not get_project_store().delete(project_id):
        raise HTTPException(status_code=404, detail="Not found")
    return {"ok": True}


@router.get("/api/projects/load/{filename}")
def load_project(filename: str) -> Any:
    """Only serves files from public/schemas/; non-hex characters are dropped."""
    project_id = re.sub(r"[^a-f0-9]", "", filename)
    if not project_id:
        raise HTTPException(status_code=400, detail="Invalid filename")

    try:
        schema = get_project_store().load_schema(project_id)
    except (OSError, ValueError) as e:
        logger.error(f"[Projects] Failed to parse schema {project_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to parse schema file")
    if schema is None:
        raise HTTPException(status_code=404, detail="File not found")
    return schema


@router.get("/projects/{project_id}", include_in_schema=False)
def project_page(project_id: str):
    """The frontend loads the project itself."""
    if not INDEX_HTML.exists():
        raise HTTPException(status_code=404, detail="index.html not found")
    return FileResponse(INDEX_HTML)
