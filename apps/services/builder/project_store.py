"""
Project manifest store.

Saved schemas live in public/schemas/<id>.json; data/projects.json lists them
newest first. Ids are either supplied by the caller (10 lowercase hex chars)
or derived from the schema content hash.
"""

import hashlib
import json
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from libs.pineui.document_cache import write_atomic

logger = logging.getLogger("uvicorn.error")

PROJECT_ID_RE = re.compile(r"^[a-f0-9]{10}$")
NAME_MAX = 80
PROMPT_MAX = 200


def is_valid_project_id(value: Optional[str]) -> bool:
    return bool(value) and bool(PROJECT_ID_RE.match(value))


def schema_hash_id(schema: Dict[str, Any]) -> str:
    """First 10 hex chars of sha256 over the compact schema JSON."""
    raw = json.dumps(schema, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:10]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ProjectStore:
    """JSON-file project manifest with schema files beside it."""

    def __init__(self, manifest_path: Path, schemas_dir: Path):
        self.manifest_path = Path(manifest_path)
        self.schemas_dir = Path(schemas_dir)
        self._lock = threading.Lock()

    def schema_path(self, project_id: str) -> Path:
        return self.schemas_dir / f"{project_id}.json"

    def list_projects(self) -> List[Dict[str, Any]]:
        """Manifest entries, newest first; unreadable manifest reads as empty."""
        try:
            data = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return []
        return data if isinstance(data, list) else []

    def _write_manifest(self, projects: List[Dict[str, Any]]) -> None:
        write_atomic(self.manifest_path, json.dumps(projects, indent=2).encode("utf-8"))

    def save(
        self,
        schema: Dict[str, Any],
        name: Optional[str] = None,
        prompt: Optional[str] = None,
        requested_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Write the schema and upsert its manifest entry."""
        project_id = requested_id if is_valid_project_id(requested_id) else schema_hash_id(schema)

        with self._lock:
            self.schemas_dir.mkdir(parents=True, exist_ok=True)
            self.schema_path(project_id).write_text(json.dumps(schema, indent=2), encoding="utf-8")

            projects = self.list_projects()
            existing = next((i for i, p in enumerate(projects) if p.get("id") == project_id), None)
            now = _now_iso()
            entry = {
                "id": project_id,
                "name": (name or prompt or "Untitled")[:NAME_MAX],
                "prompt": (prompt or "")[:PROMPT_MAX],
                "createdAt": projects[existing].get("createdAt", now) if existing is not None else now,
                "updatedAt": now,
                "url": f"/schemas/{project_id}.json",
            }
            if existing is not None:
                projects[existing] = entry
            else:
                projects.insert(0, entry)
            self._write_manifest(projects)

        logger.info(f'[Projects] Project saved, id: {project_id} name: "{entry["name"]}"')
        return entry

    def delete(self, project_id: str) -> bool:
        """Remove a project. Returns False when the id is unknown."""
        with self._lock:
            projects = self.list_projects()
            remaining = [p for p in projects if p.get("id") != project_id]
            if len(remaining) == len(projects):
                return False
            self.schema_path(project_id).unlink(missing_ok=True)
            self._write_manifest(remaining)

        logger.info(f"[Projects] Project deleted, id: {project_id}")
        return True

    def load_schema(self, project_id: str) -> Optional[Dict[str, Any]]:
        """
        Read a saved schema.

        Returns None when missing; raises ValueError when the file is not JSON.
        """
        path = self.schema_path(project_id)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))
