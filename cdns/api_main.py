from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .models import QueryRequest, dump, dump_results
from .plugins.dns import POPULAR_DNS_SERVERS
from .services.query_service import QueryValidationError, build_query_config, run_query
from .services.task_service import TaskRegistry, TaskRunner
from .version import VERSION

log = logging.getLogger(__name__)


def _uptime(started: float) -> str:
    return str(timedelta(seconds=int(time.monotonic() - started)))


def create_app(registry: TaskRegistry | None = None, runner: TaskRunner | None = None) -> FastAPI:
    """
    Build the HTTP API. The registry and runner live as long as the app; tests
    pass their own to stay isolated from each other.
    """
    if registry is None:
        registry = runner.registry if runner is not None else TaskRegistry()
    if runner is None:
        runner = TaskRunner(registry)
    started = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Starting cdns API (version %s)", VERSION)
        yield
        log.info("Shutting down cdns API; background tasks keep running to completion")
        runner.shutdown(wait=False)

    app = FastAPI(title="cdns API", version=VERSION, lifespan=lifespan)
    app.state.registry = registry
    app.state.runner = runner

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        t0 = time.perf_counter()
        response = await call_next(request)
        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"
        log.info(
            "HTTP Request method=%s path=%s status=%d client_ip=%s latency=%.3fms",
            request.method,
            path,
            response.status_code,
            request.client.host if request.client else "-",
            (time.perf_counter() - t0) * 1000,
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.get("/api/v1/health")
    def health() -> dict[str, str]:
        return {"status": "healthy", "version": VERSION, "uptime": _uptime(started)}

    @app.get("/api/v1/dns-servers")
    def dns_servers() -> dict[str, list[dict[str, str]]]:
        return {
            "dns_servers": [{"ip": ip, "name": name} for ip, name in POPULAR_DNS_SERVERS.items()]
        }

    @app.post("/api/v1/query")
    def query(payload: QueryRequest) -> dict[str, Any]:
        query_config = build_query_config(payload.timeout, payload.retries, payload.filter)
        try:
            results = run_query(payload.domain, payload.nameservers, query_config)
        except QueryValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"results": dump_results(results)}

    @app.post("/api/v1/query/background", status_code=202)
    def query_background(payload: QueryRequest) -> dict[str, str]:
        task, _ = runner.submit(payload)
        return {"task_id": task.id, "status": task.status.value}

    @app.get("/api/v1/task/{task_id}")
    def get_task(task_id: str) -> dict[str, Any]:
        task = registry.get_task(task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        return dump(task)

    @app.get("/api/v1/tasks")
    def list_tasks(status: str | None = None) -> dict[str, list[dict[str, Any]]]:
        return {"tasks": [dump(t) for t in registry.list_tasks(status)]}

    return app


app = create_app()
