import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..agent import ChatService
from ..common.config import mcp_config_path
from ..errors import ConfigError
from ..registry import JsonFileServerRegistry, ServerRegistry
from ..tools import Connector, connect
from .routes import build_router


def create_app(
    registry: Optional[ServerRegistry] = None,
    *,
    model_client: Any = None,
    connector: Connector = connect,
    **service_options: Any,
) -> FastAPI:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)

    registry = registry if registry is not None else JsonFileServerRegistry(mcp_config_path())
    service = ChatService(registry, model_client=model_client, connector=connector, **service_options)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncGenerator[None, None]:
        try:
            logger.info("Configured MCP servers: %s", sorted(registry.list()))
        except ConfigError as exc:
            logger.error("Server registry is invalid, chat turns will fail until it is fixed: %s", exc)
        yield

    app = FastAPI(title="mcpchat", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(build_router(service=service, registry=registry))
    return app
