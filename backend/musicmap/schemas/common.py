from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class Envelope(BaseModel):
    status: Literal["success", "error"] = "success"
    message: Optional[str] = None
    data: Optional[Any] = None


def success(data: Any = None, message: str | None = None) -> dict[str, Any]:
    return Envelope(status="success", message=message, data=data).model_dump(mode="json", exclude_none=True)


def failure(message: str) -> dict[str, Any]:
    return Envelope(status="error", message=message).model_dump(mode="json", exclude_none=True)


class SessionRequest(BaseModel):
    session_token: str = Field("", description="Opaque token returned by login")


class HealthResponse(BaseModel):
    ok: bool = True
    database: bool = True
