"""
System Router - liveness and runtime information endpoints

- GET /ping: build information and process uptime
- GET /system-info: interpreter memory and garbage-collector statistics

Anti-Patterns Avoided:
- No bare except clauses
- No module-level mutable state besides the process start timestamp
"""

import gc
import resource
import sys
import threading
import time
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from httpobs.core.config import Settings, get_settings

router = APIRouter(tags=["system"])

STARTUP_TIME = datetime.now(timezone.utc)
_STARTUP_MONOTONIC_NS = time.monotonic_ns()


# =============================================================================
# Response Models
# =============================================================================


class PingResponse(BaseModel):
    """Liveness response with build and uptime information."""

    commit_hash: str
    build_time: str
    startup_time: datetime
    uptime_ns: int
    uptime_string: str


class GCGeneration(BaseModel):
    collections: int
    collected: int
    uncollectable: int


class SystemInfoResponse(BaseModel):
    """Runtime memory statistics."""

    python_version: str
    max_rss_kb: int
    gc_objects: int
    gc_counts: list[int]
    gc_thresholds: list[int]
    gc_generations: list[GCGeneration]
    thread_count: int


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/ping", response_model=PingResponse)
async def ping(settings: Settings = Depends(get_settings)) -> PingResponse:
    """
    Liveness probe.

    Returns:
        PingResponse: commit, build time, startup time and uptime
    """
    uptime_ns = time.monotonic_ns() - _STARTUP_MONOTONIC_NS
    return PingResponse(
        commit_hash=settings.build_commit_id,
        build_time=settings.build_time,
        startup_time=STARTUP_TIME,
        uptime_ns=uptime_ns,
        uptime_string=str(timedelta(microseconds=uptime_ns // 1000)),
    )


@router.get("/system-info", response_model=SystemInfoResponse)
async def system_info() -> SystemInfoResponse:
    """
    Interpreter memory statistics.

    max_rss_kb is the peak resident set size reported by getrusage (kilobytes
    on Linux).
    """
    usage = resource.getrusage(resource.RUSAGE_SELF)
    return SystemInfoResponse(
        python_version=sys.version.split()[0],
        max_rss_kb=usage.ru_maxrss,
        gc_objects=len(gc.get_objects()),
        gc_counts=list(gc.get_count()),
        gc_thresholds=list(gc.get_threshold()),
        gc_generations=[GCGeneration(**stats) for stats in gc.get_stats()],
        thread_count=threading.active_count(),
    )
