"""HTTP surface: the message endpoint and the tool-invocation protocol."""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from koro import __version__
from koro.agent.dispatcher import INTERNAL_ERROR_TEXT, RequestDispatcher
from koro.api.schema import ErrorInfo, JsonRpcRequest, MessageRequest, MessageResponse
from koro.errors import InvalidRequest, KoroError, ToolNotFound
from koro.tools.memory import create_memory_tools
from koro.tools.registry import ToolRegistry

logger = structlog.get_logger(__name__)

MCP_PROTOCOL_VERSION = "2024-11-05"

# Error codes that are not a normal (200) reply.
ERROR_STATUS = {
    "busy": 503,
    "model_unavailable": 502,
    "storage_unavailable": 500,
    "internal_error": 500,
    "invalid_request": 400,
}


def _rpc_result(rpc_id: Any, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": rpc_id, "result": result}


def _rpc_error(rpc_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": rpc_id, "error": {"code": code, "message": message}}


def create_app(
    dispatcher: RequestDispatcher,
    tools: ToolRegistry | None = None,
    name: str = "koro",
) -> FastAPI:
    """Build the FastAPI app around a dispatcher."""
    tools = tools or create_memory_tools(dispatcher)
    app = FastAPI(title=name, version=__version__)
    app.state.dispatcher = dispatcher
    app.state.tools = tools

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        body = MessageResponse(
            text="Sorry, I couldn't read that request.",
            error=ErrorInfo(code="invalid_request", message=str(exc.errors())),
        )
        return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("api.unhandled_error", path=request.url.path)
        body = MessageResponse(
            text=INTERNAL_ERROR_TEXT,
            error=ErrorInfo(code="internal_error", message=str(exc)),
        )
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))

    @app.post("/message", response_model=MessageResponse, response_model_exclude_none=True)
    async def message(req: MessageRequest) -> JSONResponse:
        result = await dispatcher.handle(req.text)
        body = MessageResponse.model_validate(result.to_dict())
        status = ERROR_STATUS.get(result.error_code or "", 200)
        return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))

    @app.post("/skills/reload")
    async def reload_skills() -> JSONResponse:
        try:
            count = await dispatcher.reload_skills()
        except KoroError as e:
            return JSONResponse(
                status_code=ERROR_STATUS.get(e.code, 500),
                content={"error": {"code": e.code, "message": e.message}},
            )
        return JSONResponse({"status": "ok", "skills": count})

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "name": name, "version": __version__}

    @app.post("/mcp")
    async def mcp(request: Request) -> JSONResponse:
        try:
            rpc = JsonRpcRequest.model_validate(await request.json())
        except ValueError as e:
            return JSONResponse(_rpc_error(None, -32600, f"Invalid request: {e}"))

        if rpc.jsonrpc != "2.0":
            return JSONResponse(_rpc_error(rpc.id, -32600, "Invalid JSON-RPC version"))

        if rpc.method == "initialize":
            return JSONResponse(_rpc_result(rpc.id, {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": name, "version": __version__},
            }))
        if rpc.method == "tools/list":
            return JSONResponse(_rpc_result(rpc.id, {"tools": tools.get_schemas()}))
        if rpc.method != "tools/call":
            return JSONResponse(_rpc_error(rpc.id, -32601, f"Method not found: {rpc.method}"))

        tool_name = rpc.params.get("name")
        arguments = rpc.params.get("arguments") or {}
        if not isinstance(tool_name, str) or not isinstance(arguments, dict):
            return JSONResponse(_rpc_error(rpc.id, -32602, "Missing tool name or arguments"))

        try:
            text = await tools.execute(tool_name, arguments)
        except (ToolNotFound, InvalidRequest) as e:
            return JSONResponse(_rpc_error(rpc.id, -32602, e.message))
        except KoroError as e:
            logger.warning("api.tool_failed", tool=tool_name, code=e.code, error=e.message)
            return JSONResponse(_rpc_error(rpc.id, -32000, f"{e.code}: {e.message}"))

        return JSONResponse(_rpc_result(rpc.id, {"content": [{"type": "text", "text": text}]}))

    return app
