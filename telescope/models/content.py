from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ClientRequestContent(BaseModel):
    hostname: str
    method: str
    uri: str
    headers: dict[str, Any] = Field(default_factory=dict)
    payload: Any = Field(default_factory=dict)
    response_status: int | None = None
    response_headers: dict[str, Any] = Field(default_factory=dict)
    response: Any = None
    duration: float | None = None
    error: str | None = None
    redirects: list[str] = Field(default_factory=list)


class RequestContent(BaseModel):
    hostname: str
    method: str
    uri: str
    ip: str | None = None
    headers: dict[str, Any] = Field(default_factory=dict)
    payload: Any = Field(default_factory=dict)
    response_status: int
    response_headers: dict[str, Any] = Field(default_factory=dict)
    response: Any = None
    duration: float
    memory: float | None = None
    user: Any = None


class TraceFrame(BaseModel):
    file: str
    line: int | None = None
    function: str


class ErrorContent(BaseModel):
    hostname: str
    class_name: str
    message: str
    file: str | None = None
    line: int | None = None
    trace: list[TraceFrame] = Field(default_factory=list)


class LogContent(BaseModel):
    level: str
    message: str
    logger: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)


class DumpContent(BaseModel):
    dump: Any
