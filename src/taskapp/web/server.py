"""
FastAPI web server for TaskApp analytics.

Exposes the burndown, risk and gantt computations over a space snapshot,
plus notification fan-out, free slot suggestions and sign-out.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
import uvicorn

from .. import __version__
from ..config import ConfigModel, get_config
from ..services.burndown import BurndownConfigurationError, MilestoneNotFoundError, compute_burndown
from ..services.gantt import build_task_tree, calc_date_range
from ..services.notifications import (
    NotificationContext,
    NotificationEvent,
    NotificationRegistry,
    TaskNotificationPayload,
    TaskSummary,
    build_registry,
)
from ..services.rate_limit import SlidingWindowRateLimiter, get_client_ip
from ..services.risk import calculate_risk_forecasts
from ..services.scheduling import compute_available_slots, parse_busy_periods
from ..storage import SpaceNotFoundError, SpaceSnapshot, SpaceStorage, StorageError, get_storage
from ..utils.datetime import now_utc, today_local
from .auth import (
    AuthenticatedUser,
    get_bearer_token,
    get_current_user,
    get_user_lookup,
    require_space_member,
)


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================================================
# Request / response models
# ============================================================================

class CamelModel(BaseModel):
    """Accepts both the camelCase keys sent by the web client and snake_case."""
    model_config = ConfigDict(populate_by_name=True)


class NotifyRequest(CamelModel):
    space_id: str = Field(..., alias="spaceId", min_length=1)
    task_id: str = Field(..., alias="taskId", min_length=1)
    event: NotificationEvent = NotificationEvent.TASK_SHARED
    custom_message: Optional[str] = Field(None, alias="customMessage", max_length=2000)
    changes: Dict[str, str] = Field(default_factory=dict)


class BusyPeriodModel(BaseModel):
    start: str
    end: str


class SlotsRequest(CamelModel):
    busy_periods: List[BusyPeriodModel] = Field(default_factory=list, alias="busyPeriods")
    start_date: str = Field(..., alias="startDate")
    end_date: str = Field(..., alias="endDate")
    duration_minutes: int = Field(..., alias="durationMinutes")
    business_hour_start: int = Field(9, alias="businessHourStart")
    business_hour_end: int = Field(18, alias="businessHourEnd")
    step_minutes: int = Field(30, alias="stepMinutes")
    max_results: int = Field(100, alias="maxResults")


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str = "healthy"
    timestamp: str
    version: str


# ============================================================================
# Global dependencies
# ============================================================================

_registry: Optional[NotificationRegistry] = None
_rate_limiter: Optional[SlidingWindowRateLimiter] = None


def get_app_config() -> ConfigModel:
    """Get the active configuration."""
    return get_config()


def get_space_storage() -> SpaceStorage:
    """Get the space storage instance."""
    return get_storage()


def get_registry() -> NotificationRegistry:
    """Get the notification registry, built from config on first use."""
    global _registry
    if _registry is None:
        _registry = build_registry(get_config())
    return _registry


def get_rate_limiter() -> SlidingWindowRateLimiter:
    """Get the process-wide rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        config = get_config()
        _rate_limiter = SlidingWindowRateLimiter(
            max_requests=config.rate_limit_requests,
            window_seconds=config.rate_limit_window_seconds,
        )
    return _rate_limiter


def reset_app_state() -> None:
    """Drop cached registry and limiter (useful for testing)."""
    global _registry, _rate_limiter
    _registry = None
    _rate_limiter = None


async def enforce_rate_limit(request: Request,
                             limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter)) -> None:
    """Reject the request with 429 once the client IP exhausts its window."""
    client_ip = get_client_ip(request.headers, request.client.host if request.client else None)
    result = limiter.check(client_ip)
    if not result.allowed:
        logger.warning("Rate limit exceeded for %s on %s", client_ip, request.url.path)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests",
            headers={
                "Retry-After": str(result.retry_after(limiter.clock())),
                "X-RateLimit-Remaining": "0",
            },
        )


def require_space_id(space_id: Optional[str]) -> str:
    if not space_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="spaceId is required")
    return space_id


def load_member_snapshot(space_id: str, user: AuthenticatedUser, storage: SpaceStorage) -> SpaceSnapshot:
    """Load a space the caller belongs to, mapping storage errors to HTTP."""
    try:
        snapshot = storage.load_space(space_id)
    except SpaceNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Space not found")
    except StorageError as e:
        logger.error("Failed to load space %s: %s", space_id, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load space")

    require_space_member(user, snapshot.space)
    return snapshot


# ============================================================================
# Application
# ============================================================================

app = FastAPI(
    title="TaskApp API",
    description="Burndown, risk and gantt analytics for TaskApp spaces",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

api = APIRouter(prefix="/api", dependencies=[Depends(enforce_rate_limit)])


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(timestamp=now_utc().isoformat(), version=__version__)


@api.get("/burndown")
async def get_burndown(
    space_id: Optional[str] = Query(None, alias="spaceId"),
    milestone_id: Optional[str] = Query(None, alias="milestoneId"),
    user: AuthenticatedUser = Depends(get_current_user),
    storage: SpaceStorage = Depends(get_space_storage),
    config: ConfigModel = Depends(get_app_config),
):
    """Burndown series for a milestone, or the whole space without milestoneId."""
    space_id = require_space_id(space_id)
    snapshot = load_member_snapshot(space_id, user, storage)

    try:
        data = compute_burndown(
            snapshot.tasks,
            snapshot.milestones,
            space_id,
            milestone_id=milestone_id or None,
            default_span_days=config.default_burndown_days,
            utc_offset=config.utc_offset,
        )
    except MilestoneNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Milestone not found")
    except BurndownConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return data.to_dict()


@api.get("/risk")
async def get_risk(
    space_id: Optional[str] = Query(None, alias="spaceId"),
    user: AuthenticatedUser = Depends(get_current_user),
    storage: SpaceStorage = Depends(get_space_storage),
    config: ConfigModel = Depends(get_app_config),
):
    """Risk forecast for every milestone of the space."""
    space_id = require_space_id(space_id)
    snapshot = load_member_snapshot(space_id, user, storage)

    forecasts = calculate_risk_forecasts(
        snapshot.tasks,
        snapshot.milestones,
        window_days=config.velocity_window_days,
        grace_days=config.at_risk_grace_days,
        insufficient_data_days=config.insufficient_data_days,
        utc_offset=config.utc_offset,
    )
    return {
        "space_id": space_id,
        "forecasts": {milestone_id: a.to_dict() for milestone_id, a in forecasts.items()},
    }


@api.get("/gantt")
async def get_gantt(
    space_id: Optional[str] = Query(None, alias="spaceId"),
    user: AuthenticatedUser = Depends(get_current_user),
    storage: SpaceStorage = Depends(get_space_storage),
    config: ConfigModel = Depends(get_app_config),
):
    """Ordered gantt rows plus the visible date range."""
    space_id = require_space_id(space_id)
    snapshot = load_member_snapshot(space_id, user, storage)

    today = today_local(config.utc_offset)
    range_start, range_end = calc_date_range(snapshot.tasks, snapshot.milestones, today)
    return {
        "space_id": space_id,
        "range": {"start": range_start.isoformat(), "end": range_end.isoformat()},
        "rows": [node.to_dict() for node in build_task_tree(snapshot.tasks)],
    }


@api.post("/notify")
async def notify(
    body: NotifyRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: SpaceStorage = Depends(get_space_storage),
    registry: NotificationRegistry = Depends(get_registry),
    config: ConfigModel = Depends(get_app_config),
):
    """Send a task notification to every provider configured for the space."""
    snapshot = load_member_snapshot(body.space_id, user, storage)
    task = snapshot.get_task(body.task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    payload = TaskNotificationPayload(
        task=TaskSummary(
            id=task.id,
            title=task.title,
            status=task.status.value,
            ball=task.ball.value,
            due_date=task.due_date.isoformat() if task.due_date else None,
        ),
        space_name=snapshot.space.name,
        app_url=config.app_url,
        actor_name=user.display_name,
        custom_message=body.custom_message,
        changes=body.changes,
    )
    context = NotificationContext(
        org_id=snapshot.space.org_id or "",
        space_id=snapshot.space.id,
        task_id=task.id,
        actor_id=user.id,
    )

    results = await registry.notify_all(body.event, context, payload)
    return {"results": [r.to_dict() for r in results]}


@api.post("/scheduling/slots")
async def available_slots(
    body: SlotsRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    config: ConfigModel = Depends(get_app_config),
):
    """Free weekday slots between two dates given the attendees' busy periods."""
    slots = compute_available_slots(
        parse_busy_periods([p.model_dump() for p in body.busy_periods]),
        body.start_date,
        body.end_date,
        body.duration_minutes,
        business_hour_start=body.business_hour_start,
        business_hour_end=body.business_hour_end,
        step_minutes=body.step_minutes,
        max_results=body.max_results,
        utc_offset=config.utc_offset,
    )
    return {"slots": [slot.to_dict() for slot in slots]}


@api.post("/auth/signout")
async def signout(
    token: str = Depends(get_bearer_token),
    user: AuthenticatedUser = Depends(get_current_user),
    lookup=Depends(get_user_lookup),
):
    """Forget the cached lookup for this token."""
    lookup.invalidate(token)
    logger.info("User %s signed out", user.id)
    return {"success": True}


app.include_router(api)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "type": "internal_error",
        },
    )


def start_server(host: str = "127.0.0.1", port: int = 8000, debug: bool = False):
    """Start the web server."""
    uvicorn.run(
        "taskapp.web.server:app",
        host=host,
        port=port,
        reload=debug,
        reload_dirs=["src/taskapp"] if debug else None,
    )


if __name__ == "__main__":
    start_server(debug=True)
