"""
HTTP API for pyinflate
"""
import logging
from collections.abc import Callable

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from pyinflate.config import InflatorSettings, get_settings
from pyinflate.engine import InflationEngine
from pyinflate.errors import InvalidParameterError
from pyinflate.service import InflatorService

logger = logging.getLogger(__name__)


class InflateAccepted(BaseModel):
    message: str
    target_mb: int
    step_mb: int


class StatusResponse(BaseModel):
    allocated_mb: int
    blocks: int
    inflating: bool
    last_error: str | None = None


class MemoryResponse(BaseModel):
    own_bytes: int
    subtree_bytes: int
    container_bytes: int | None


class ResetResponse(BaseModel):
    allocated_mb: int


class StopResponse(BaseModel):
    stopping: bool


def create_app(
    service: InflatorService | None = None,
    settings: InflatorSettings | None = None,
    shutdown: Callable[[], None] | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Inflation service to expose. A new one is created if omitted.
        settings: Defaults for inflate parameters.
        shutdown: Called by POST /stop; the serve command wires it to uvicorn.
    """
    settings = settings or get_settings()
    if service is None:
        service = InflatorService(InflationEngine(step_interval=settings.step_interval))

    app = FastAPI(
        title="pyinflate",
        description="Deliberately consume physical memory to exercise memory-pressure scenarios",
        version="0.1.0",
    )
    app.state.service = service
    app.state.settings = settings
    app.state.shutdown = shutdown

    @app.post("/inflate", response_model=InflateAccepted, status_code=202, tags=["inflation"])
    async def inflate(
        request: Request,
        max_mb: int | None = Query(
            default=None, ge=0, description="Additional MB this request allocates"
        ),
        step_mb: int | None = Query(default=None, ge=1),
    ):
        """Start adding max_mb MB in the background; poll /status for progress."""
        svc: InflatorService = request.app.state.service
        target = settings.default_max_mb if max_mb is None else max_mb
        step = settings.default_step_mb if step_mb is None else step_mb

        try:
            svc.start_inflation(target, step)
        except InvalidParameterError as e:
            raise HTTPException(status_code=422, detail=str(e))

        logger.info(f"Inflation requested: {target} MB in steps of {step} MB")
        return InflateAccepted(
            message=f"Inflation started: adding {target} MB in steps of {step} MB",
            target_mb=target,
            step_mb=step,
        )

    @app.get("/status", response_model=StatusResponse, tags=["inflation"])
    async def status(request: Request):
        svc: InflatorService = request.app.state.service
        current = svc.get_status()
        error = svc.last_error
        return StatusResponse(
            allocated_mb=current.allocated_mb,
            blocks=current.block_count,
            inflating=svc.is_inflating,
            last_error=str(error) if error else None,
        )

    @app.get("/memory", response_model=MemoryResponse, tags=["inflation"])
    def memory(request: Request):
        """Real memory footprint of this process, its children and its container.

        Plain def: the proc scan runs in the threadpool, not on the event loop.
        """
        svc: InflatorService = request.app.state.service
        report = svc.memory_report()
        return MemoryResponse(
            own_bytes=report.own_bytes,
            subtree_bytes=report.subtree_bytes,
            container_bytes=report.container_bytes,
        )

    @app.post("/reset", response_model=ResetResponse, tags=["inflation"])
    def reset(request: Request):
        """Release every block; gc.collect() runs in the threadpool."""
        svc: InflatorService = request.app.state.service
        result = svc.reset()
        return ResetResponse(allocated_mb=result.allocated_mb)

    @app.post("/stop", response_model=StopResponse, tags=["inflation"])
    async def stop(request: Request):
        logger.info("Stop requested via /stop endpoint. Shutting down.")
        hook = request.app.state.shutdown
        if hook is not None:
            hook()
        return StopResponse(stopping=True)

    return app
