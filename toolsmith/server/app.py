"""
toolsmith HTTP server

FastAPI application exposing one or more tools over the execute, health,
schema and metrics endpoints. The execute routes are rate limited per client
address with slowapi when ``rate_limit`` is set.
"""

import secrets
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

import toolsmith
from toolsmith.config import ServerSettings, get_settings
from toolsmith.kernel.executor import (
    ErrorCode,
    ExecuteRequest,
    ExecuteResponse,
    ExecutionMetrics,
    ToolContract,
    ToolDispatcher,
    ToolNotFoundError,
    ToolRegistry,
    describe_tool,
)
from toolsmith.logging_setup import configure_logging

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
ENDPOINTS = {
    "execute": "/api/execute",
    "health": "/health",
    "schema": "/schema",
    "metrics": "/metrics",
}
_HEALTH_RANK = {"healthy": 0, "degraded": 1, "unhealthy": 2}


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request id to every request and echo it on the response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class ToolSet:
    """Dispatchers served by one app, addressable by ``name[@version]``."""

    def __init__(self, dispatchers: list[ToolDispatcher]) -> None:
        if not dispatchers:
            raise ValueError("at least one tool is required")
        self._registry = ToolRegistry()
        self._dispatchers: dict[str, ToolDispatcher] = {}
        for dispatcher in dispatchers:
            self._registry.register(dispatcher.contract)
            self._dispatchers[dispatcher.contract.tool_id] = dispatcher

    def __iter__(self) -> Iterator[ToolDispatcher]:
        return iter(self._dispatchers.values())

    def __len__(self) -> int:
        return len(self._dispatchers)

    def select(self, tool_id: str | None) -> ToolDispatcher | None:
        """Return the dispatcher for ``tool_id``; None when it is ambiguous.

        Raises:
            ToolNotFoundError: If ``tool_id`` names no served tool
        """
        if tool_id is None:
            return next(iter(self)) if len(self) == 1 else None
        contract = self._registry.resolve_id(tool_id)
        return self._dispatchers[contract.tool_id]


def _api_key_dependency(settings: ServerSettings) -> Callable[[Request], None]:
    expected = [key.get_secret_value().encode() for key in settings.api_keys]

    def require_api_key(request: Request) -> None:
        if not expected:
            return
        supplied = request.headers.get("x-api-key")
        authorization = request.headers.get("authorization", "")
        if supplied is None and authorization.lower().startswith("bearer "):
            supplied = authorization[7:].strip()
        if supplied is not None:
            candidate = supplied.encode()
            # Compare against every key so timing does not reveal which matched.
            matches = [secrets.compare_digest(candidate, key) for key in expected]
            if any(matches):
                return
        logger.warning("Rejected unauthenticated request", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": ErrorCode.AUTHENTICATION_REQUIRED.value,
                "message": "A valid API key is required (X-API-Key or Authorization: Bearer)",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )

    return require_api_key


def _envelope(status_code: int, response: ExecuteResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


def _as_dispatcher(tool: ToolContract | ToolDispatcher, settings: ServerSettings) -> ToolDispatcher:
    if isinstance(tool, ToolDispatcher):
        return tool
    return ToolDispatcher(
        tool,
        metrics=ExecutionMetrics(
            history_size=settings.metrics_history_size,
            retention_seconds=settings.metrics_retention_seconds,
        ),
        default_timeout_seconds=settings.execution_timeout_seconds,
    )


def create_app(
    *tools: ToolContract | ToolDispatcher,
    settings: ServerSettings | None = None,
) -> FastAPI:
    """Build the FastAPI application serving ``tools``.

    Args:
        *tools: Tool contracts or pre-configured dispatchers
        settings: Server settings; ``get_settings()`` when omitted

    Raises:
        ValueError: If no tool is given or two tools share a name and version
    """
    settings = settings or get_settings()
    toolset = ToolSet([_as_dispatcher(tool, settings) for tool in tools])
    require_api_key = _api_key_dependency(settings)
    protected = [Depends(require_api_key)]

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan handler."""
        logger.info(
            "Starting tool server",
            tools=[dispatcher.contract.tool_id for dispatcher in toolset],
            auth_enabled=settings.auth_enabled,
            rate_limit=settings.rate_limit,
        )
        yield
        logger.info("Shutting down tool server")
        for dispatcher in toolset:
            await dispatcher.shutdown()

    first = next(iter(toolset)).contract
    app = FastAPI(
        title=first.name if len(toolset) == 1 else "toolsmith",
        version=first.version if len(toolset) == 1 else toolsmith.__version__,
        description=first.metadata.description if len(toolset) == 1 else "",
        lifespan=lifespan,
    )
    app.state.toolset = toolset
    app.state.settings = settings

    app.add_middleware(RequestIdMiddleware)
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    @app.exception_handler(RequestValidationError)
    async def malformed_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        logger.info("Malformed request body", path=request.url.path, problems=problems)
        return _envelope(
            status.HTTP_400_BAD_REQUEST,
            ExecuteResponse.failed(
                str(uuid.uuid4()),
                ErrorCode.VALIDATION_ERROR.value,
                "Request body must be a JSON object with input_data and config",
                details={"problems": problems},
            ),
        )

    limiter = Limiter(key_func=get_remote_address) if settings.rate_limit else None
    if limiter is not None:
        app.state.limiter = limiter

        @app.exception_handler(RateLimitExceeded)
        async def rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
            logger.warning("Rate limit exceeded", path=request.url.path, limit=str(exc.detail))
            return _envelope(
                status.HTTP_429_TOO_MANY_REQUESTS,
                ExecuteResponse.failed(
                    str(uuid.uuid4()),
                    ErrorCode.RATE_LIMIT_EXCEEDED.value,
                    "Too many requests, please try again later",
                    details={"limit": str(exc.detail)},
                ),
            )

    def select_or_raise(tool_id: str | None) -> ToolDispatcher | None:
        try:
            return toolset.select(tool_id)
        except ToolNotFoundError as exc:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": exc.code, "message": str(exc)},
            ) from exc

    async def execute(payload: ExecuteRequest, request: Request) -> JSONResponse:
        try:
            dispatcher = toolset.select(payload.tool_id)
        except ToolNotFoundError as exc:
            return _envelope(
                status.HTTP_404_NOT_FOUND,
                ExecuteResponse.failed(
                    payload.execution_id or str(uuid.uuid4()), exc.code, str(exc)
                ),
            )
        if dispatcher is None:
            return _envelope(
                status.HTTP_400_BAD_REQUEST,
                ExecuteResponse.failed(
                    payload.execution_id or str(uuid.uuid4()),
                    ErrorCode.VALIDATION_ERROR.value,
                    "tool_id is required when several tools are served",
                    details={"tools": [d.contract.tool_id for d in toolset]},
                ),
            )
        outcome = await dispatcher.dispatch(payload, request_id=request.state.request_id)
        return _envelope(outcome.status_code, outcome.response)

    if limiter is not None and settings.rate_limit:
        execute = limiter.limit(settings.rate_limit)(execute)

    for path in ("/execute", ENDPOINTS["execute"]):
        app.add_api_route(path, execute, methods=["POST"], dependencies=protected)

    @app.get("/health")
    async def health(tool_id: str | None = None) -> JSONResponse:
        dispatcher = select_or_raise(tool_id)
        if dispatcher is not None:
            report = await dispatcher.health()
            return JSONResponse(status_code=report.http_status, content=report.model_dump(mode="json"))

        reports = [await d.health() for d in toolset]
        worst = max(reports, key=lambda report: _HEALTH_RANK[report.status])
        return JSONResponse(
            status_code=worst.http_status,
            content={
                "status": worst.status,
                "tools": [report.model_dump(mode="json") for report in reports],
            },
        )

    @app.get("/schema", dependencies=protected)
    async def schema(tool_id: str | None = None) -> dict[str, Any]:
        dispatcher = select_or_raise(tool_id)
        if dispatcher is not None:
            return describe_tool(dispatcher.contract)
        return {"tools": [describe_tool(d.contract) for d in toolset]}

    @app.get("/metrics", dependencies=protected)
    async def metrics(tool_id: str | None = None) -> dict[str, Any]:
        dispatcher = select_or_raise(tool_id)
        if dispatcher is not None:
            return dispatcher.metrics_snapshot().model_dump(mode="json")
        return {
            "tools": {
                d.contract.tool_id: d.metrics_snapshot().model_dump(mode="json") for d in toolset
            }
        }

    @app.get("/", dependencies=protected)
    async def root() -> dict[str, Any]:
        tools = [
            {
                "name": d.contract.name,
                "version": d.contract.version,
                "description": d.contract.metadata.description,
                "capabilities": list(d.contract.metadata.capabilities),
            }
            for d in toolset
        ]
        if len(tools) == 1:
            return {**tools[0], "endpoints": ENDPOINTS}
        return {"tools": tools, "endpoints": ENDPOINTS}

    return app


def serve(
    target: FastAPI | ToolContract | ToolDispatcher,
    settings: ServerSettings | None = None,
    *,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Configure logging and run ``target`` with uvicorn until interrupted."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, json_logs=settings.json_logs)
    app = target if isinstance(target, FastAPI) else create_app(target, settings=settings)
    uvicorn.run(
        app,
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,
    )
