import asyncio
import json
import logging
from contextlib import aclosing
from typing import Any, AsyncGenerator, Dict, List

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from ..agent import ChatService
from ..common.text import chunk_text
from ..errors import ConfigError
from ..registry import ServerRegistry
from ..schemas import ChatRequest, ServerDelete, ServerUpsert, parse_descriptor

logger = logging.getLogger(__name__)

# Pause between text chunks so long answers still arrive as a stream.
TEXT_CHUNK_DELAY = 0.015


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _to_sse(event: Dict[str, Any]) -> Dict[str, str]:
    kind = event["type"]
    if kind == "annotation":
        payload: Any = event["annotation"]
    else:
        payload = {key: value for key, value in event.items() if key != "type"}
    return {"event": kind, "data": json.dumps(payload)}


def build_router(*, service: ChatService, registry: ServerRegistry) -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @router.get("/api/mcp")
    def list_servers() -> JSONResponse:
        try:
            servers = registry.list()
        except ConfigError as exc:
            logger.error("Cannot read server registry: %s", exc)
            return _error(500, str(exc))
        return JSONResponse({name: descriptor.to_config() for name, descriptor in servers.items()})

    @router.post("/api/mcp")
    def add_server(payload: ServerUpsert = Body(...)) -> JSONResponse:
        name = payload.mcpServer
        if not isinstance(name, str) or not name.strip():
            return _error(400, "Invalid server name")
        try:
            descriptor = parse_descriptor(payload.config)
        except ConfigError as exc:
            return _error(400, f"Invalid server configuration: {exc}")
        registry.add(name, descriptor)
        return JSONResponse({"success": True, "mcpServer": name})

    @router.delete("/api/mcp")
    def delete_server(payload: ServerDelete = Body(...)) -> JSONResponse:
        name = payload.mcpServer
        if not isinstance(name, str) or not name.strip():
            return _error(400, "Invalid server name")
        try:
            registry.remove(name)
        except KeyError:
            return _error(404, f"MCP server '{name}' not found")
        return JSONResponse({"success": True, "mcpServer": name})

    @router.get("/api/tools")
    async def list_tools() -> List[dict]:
        return [tool.summary() for tool in service.builtins()]

    @router.get("/api/model")
    async def get_model() -> dict:
        return {"model": service.current_model, "available": service.available_models}

    @router.post("/api/chat")
    async def chat(request: ChatRequest) -> EventSourceResponse:
        turn = service.start_turn(request.messages, request.model)

        async def event_generator() -> AsyncGenerator[dict, None]:
            async with aclosing(turn.stream()) as events:
                async for event in events:
                    if event["type"] == "text":
                        for chunk in chunk_text(event["content"]):
                            yield {"event": "text", "data": json.dumps(chunk)}
                            await asyncio.sleep(TEXT_CHUNK_DELAY)
                    else:
                        yield _to_sse(event)

        return EventSourceResponse(event_generator())

    return router
