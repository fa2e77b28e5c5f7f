"""Pydantic schemas for the analysis endpoint."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from repolens.analysis.engine import DEFAULT_REF


class AnalyzeRequest(BaseModel):
    """Payload for ``POST /analyze``.

    Fields are optional at the schema level so a missing one is reported
    as a 400 with an error message rather than a validation envelope.
    """

    installation_id: Optional[int] = Field(default=None, description="GitHub App installation ID")
    owner: Optional[str] = None
    repo: Optional[str] = None
    ref: str = Field(default=DEFAULT_REF, description="Branch to analyse")

    def missing_fields(self) -> list[str]:
        missing = ["installation_id"] if self.installation_id is None else []
        missing.extend(name for name in ("owner", "repo") if not getattr(self, name))
        return missing


class AnalyzeResponse(BaseModel):
    ok: bool = True
    analysis: dict[str, Any]


class ErrorResponse(BaseModel):
    """Error envelope returned by the JSON endpoints."""

    error: str
