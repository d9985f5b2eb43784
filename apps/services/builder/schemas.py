"""Request/response models for the builder API."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class HistoryMessage(BaseModel):
    """One prior conversation turn."""

    role: Literal["user", "assistant"]
    content: str = ""


class GenerateRequest(BaseModel):
    """POST /api/generate body. Prompt emptiness is checked by the relay."""

    prompt: Optional[str] = None
    history: List[HistoryMessage] = Field(default_factory=list)


class ProjectIn(BaseModel):
    """POST /api/projects body."""

    schema_: Optional[Any] = Field(default=None, alias="schema")
    name: Optional[str] = None
    prompt: Optional[str] = None
    id: Optional[str] = None


class ProjectEntry(BaseModel):
    id: str
    name: str
    prompt: str
    createdAt: str
    updatedAt: str
    url: str


class PineUIVersionOut(BaseModel):
    version: str
    js: str
    css: str


def error_body(message: str) -> Dict[str, str]:
    """Uniform API error payload."""
    return {"error": message}
