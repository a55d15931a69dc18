"""HTTP control surface over the command service.

Thin layer: every route delegates to ``CommandService`` or ``CommandQueue``
and maps their errors to status codes.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from mentionbot.core.scheduler import BotNotFoundError, BotNotPollableError
from mentionbot.core.service import CommandService, SchedulingUnavailableError
from mentionbot.core.worker import CommandJob, CommandQueue
from mentionbot.models.command import ParsedCommand
from mentionbot.models.schedule import PollSchedule, RateLimitState
from mentionbot.models.trade import Trade


class CommandRequest(BaseModel):
    """Body of a manually submitted command."""

    bot_id: int
    text: str = Field(min_length=1, max_length=1000)
    source_message_id: str | None = None


class CommandResponse(BaseModel):
    """Synchronous command result."""

    bot_id: int
    accepted: bool
    command: ParsedCommand | None = None
    trade: Trade | None = None
    error: str | None = None


class SchedulingResponse(BaseModel):
    bot_id: int
    scheduled: bool
    changed: bool = True
    schedule: PollSchedule | None = None


router = APIRouter()


def _service(request: Request) -> CommandService:
    return request.app.state.service


def _queue(request: Request) -> CommandQueue:
    return request.app.state.queue


@router.get("/health")
async def health(request: Request) -> dict:
    service = _service(request)
    scheduler = service.scheduler
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "scheduler_running": scheduler.is_running if scheduler else False,
        "scheduled_bots": scheduler.scheduled_bot_ids if scheduler else [],
    }


@router.post("/bots/{bot_id}/scheduling", response_model=SchedulingResponse)
async def start_scheduling(bot_id: int, request: Request) -> SchedulingResponse:
    schedule = await _service(request).start_scheduling(bot_id)
    return SchedulingResponse(bot_id=bot_id, scheduled=True, schedule=schedule)


@router.delete("/bots/{bot_id}/scheduling", response_model=SchedulingResponse)
async def stop_scheduling(bot_id: int, request: Request) -> SchedulingResponse:
    was_scheduled = await _service(request).stop_scheduling(bot_id)
    return SchedulingResponse(bot_id=bot_id, scheduled=False, changed=was_scheduled)


@router.get("/bots/{bot_id}/schedule", response_model=PollSchedule)
async def get_schedule(bot_id: int, request: Request) -> PollSchedule:
    schedule = await _service(request).get_schedule(bot_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail=f"Bot {bot_id} has no schedule")
    return schedule


@router.delete("/bots/{bot_id}/schedule", response_model=SchedulingResponse)
async def reset_schedule(bot_id: int, request: Request) -> SchedulingResponse:
    removed = await _service(request).reset_schedule(bot_id)
    return SchedulingResponse(bot_id=bot_id, scheduled=False, changed=removed)


@router.post("/commands", status_code=202, response_model=CommandJob)
async def submit_command(body: CommandRequest, request: Request) -> CommandJob:
    return _queue(request).submit(body.bot_id, body.text, body.source_message_id)


@router.get("/commands/{job_id}", response_model=CommandJob)
async def get_command(job_id: str, request: Request) -> CommandJob:
    job = _queue(request).get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return job


@router.post("/commands/execute", response_model=CommandResponse)
async def execute_command(body: CommandRequest, request: Request) -> CommandResponse:
    outcome = await _service(request).process_single_command(
        body.bot_id, body.text, body.source_message_id
    )
    return CommandResponse(
        bot_id=outcome.bot_id,
        accepted=outcome.accepted,
        command=outcome.command,
        trade=outcome.trade,
        error=outcome.error,
    )


@router.get("/bots/{bot_id}/trades", response_model=list[Trade])
async def list_trades(
    bot_id: int,
    request: Request,
    limit: int = Query(default=50, ge=1, le=500),
) -> list[Trade]:
    return await _service(request).list_trades(bot_id, limit)


@router.get("/trades/{trade_id}", response_model=Trade)
async def get_trade(trade_id: str, request: Request) -> Trade:
    trade = await _service(request).get_trade(trade_id)
    if trade is None:
        raise HTTPException(status_code=404, detail=f"Trade {trade_id} not found")
    return trade


@router.get("/rate-limits", response_model=dict[str, RateLimitState])
async def rate_limits(request: Request) -> dict[str, RateLimitState]:
    return _service(request).rate_limits()


def create_app(service: CommandService, queue: CommandQueue) -> FastAPI:
    """Build the API application.

    Args:
        service: Command service the routes delegate to.
        queue: Background queue for submitted commands.
    """
    app = FastAPI(title="MentionBot", version="0.1.0")
    app.state.service = service
    app.state.queue = queue
    app.include_router(router)

    @app.exception_handler(BotNotFoundError)
    async def _bot_not_found(request: Request, exc: BotNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(BotNotPollableError)
    async def _bot_not_pollable(request: Request, exc: BotNotPollableError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(SchedulingUnavailableError)
    async def _scheduling_unavailable(
        request: Request, exc: SchedulingUnavailableError
    ) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    return app
