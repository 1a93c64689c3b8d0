from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_serializer


class ParsedRecord(BaseModel):
    ttl: int
    type: str
    address: str | None = None
    host: str | None = None
    pref: int | None = None
    text: str | None = None
    target: str | None = None
    port: int | None = None
    priority: int | None = None
    weight: int | None = None
    serial: int | None = None
    refresh: int | None = None
    retry: int | None = None
    expire: int | None = None
    minimum: int | None = None
    mname: str | None = None
    rname: str | None = None
    flags: int | None = None
    tag: str | None = None
    value: str | None = None
    raw_data: str | None = None


class Statistics(BaseModel):
    total_queries: int = 0
    successful_queries: int = 0
    failed_queries: int = 0
    # seconds
    total_response_time: float = 0.0
    average_response_time: float = 0.0


class Result(BaseModel):
    nameserver: str
    domain: str
    query_time: datetime
    records: dict[str, list[ParsedRecord]] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)
    statistics: Statistics = Field(default_factory=Statistics)

    @model_serializer(mode="wrap")
    def _omit_empty_errors(self, handler: Any) -> dict[str, Any]:
        data = handler(self)
        if not data.get("errors"):
            data.pop("errors", None)
        return data


class TaskStatus(str, Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


class BackgroundTask(BaseModel):
    id: str
    domain: str
    nameservers: list[str]
    status: TaskStatus = TaskStatus.pending
    results: list[Result] | None = None
    created_at: datetime
    completed_at: datetime | None = None
    error: str | None = None


class QueryRequest(BaseModel):
    """Body of POST /api/v1/query and /api/v1/query/background."""

    domain: str
    nameservers: list[str]
    timeout: int = 0
    retries: int = 0
    filter: list[str] = Field(default_factory=list)


def dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json", exclude_none=True)


def dump_results(results: list[Result]) -> list[dict]:
    return [dump(r) for r in results]
