"""Error taxonomy for pipeline operations."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException


@dataclass(eq=False)
class PipelineError(Exception):
    code: str
    detail: str
    status_code: int = 400

    def __str__(self) -> str:
        return f"{self.code}: {self.detail}"

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.detail)


class PipelineNotFoundError(PipelineError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=404)


class PipelineValidationError(PipelineError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=400)
