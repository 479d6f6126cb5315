"""API endpoints for the LibreLinkUp session and on-demand syncs."""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, SecretStr

from llu_sync.auth.session import SessionService
from llu_sync.models.sync import SyncRunResult
from llu_sync.sync.orchestrator import run_sync_once
from llu_sync.sync.scheduler import SyncScheduler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["session"])


class LoginBody(BaseModel):
    email: str = ""
    password: SecretStr = SecretStr("")


def get_scheduler(request: Request) -> Optional[SyncScheduler]:
    """The scheduler started by the app lifespan, if any."""
    return getattr(request.app.state, "scheduler", None)


def get_session_service(scheduler: Optional[SyncScheduler] = Depends(get_scheduler)) -> SessionService:
    return SessionService(scheduler=scheduler)


def get_sync_runner(
    scheduler: Optional[SyncScheduler] = Depends(get_scheduler),
) -> Callable[[], Awaitable[SyncRunResult]]:
    """Manual runs go through the scheduler so they never overlap a scheduled tick."""
    if scheduler is not None:
        return scheduler.run_now
    return run_sync_once


@router.post("/session/login")
async def login(body: LoginBody, session: SessionService = Depends(get_session_service)) -> Any:
    """
    Log in to LibreLinkUp and start the recurring sync.

    Args:
        body: Account email and password
        session: Session service

    Returns:
        LoginOutcome on success; 401 with the outcome otherwise
    """
    outcome = await session.login(body.email, body.password.get_secret_value())
    if not outcome.success:
        return JSONResponse(status_code=401, content=outcome.model_dump(mode="json"))
    return outcome.model_dump(mode="json")


@router.delete("/session")
async def logout(session: SessionService = Depends(get_session_service)) -> Dict[str, Any]:
    return session.logout().model_dump()


@router.get("/session")
async def status(session: SessionService = Depends(get_session_service)) -> Dict[str, Any]:
    return session.status().model_dump()


@router.post("/sync")
async def sync_now(runner: Callable[[], Awaitable[SyncRunResult]] = Depends(get_sync_runner)) -> Any:
    """
    Run one sync immediately, outside the schedule.

    Returns:
        SyncRunResult; 502 when the run failed
    """
    result = await runner()
    content = result.model_dump(mode="json")
    if not result.succeeded:
        return JSONResponse(status_code=502, content=content)
    return content
