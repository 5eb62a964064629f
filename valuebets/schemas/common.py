from __future__ import annotations
from typing import Any, Dict, Optional
from pydantic import BaseModel


class ErrorBody(BaseModel):
    error: str


class UpstreamDetail(BaseModel):
    host: Optional[str] = None
    status: Optional[int] = None
    body: str = ""


class UpstreamError(ErrorBody):
    detail: UpstreamDetail


class SourceError(ErrorBody):
    status: Optional[int] = None
    body: Optional[str] = None


class CronResult(BaseModel):
    ok: bool
    snapshot_for: Optional[str] = None
    count: Optional[int] = None
    rev: Optional[int] = None
    updated: Optional[int] = None
    scanned: Optional[int] = None
    note: Optional[str] = None
    error: Optional[str] = None

    def body(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
