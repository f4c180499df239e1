"""Request and response bodies for the HTTP surface."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class MessageRequest(BaseModel):
    text: str


class ActionRecord(BaseModel):
    command: str
    status: Literal["succeeded", "failed", "rolled_back"]
    output: str = ""
    rollback: bool = False


class ErrorInfo(BaseModel):
    code: str
    message: str = ""


class MessageResponse(BaseModel):
    text: str
    actions: list[ActionRecord] = Field(default_factory=list)
    error: ErrorInfo | None = None
    warnings: list[str] = Field(default_factory=list)


class JsonRpcRequest(BaseModel):
    jsonrpc: str
    method: str
    id: Any = None
    params: dict[str, Any] = Field(default_factory=dict)
