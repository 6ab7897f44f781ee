"""Application services for TaskApp."""

from .burndown import (
    BurndownConfigurationError,
    BurndownData,
    BurndownPoint,
    BurndownSummary,
    MilestoneNotFoundError,
    compute_burndown,
)
from .risk import (
    RiskAssessment,
    RiskStatus,
    calculate_milestone_risk,
    calculate_risk_forecasts,
    calculate_velocity,
)
from .gantt import TaskTreeNode, build_task_tree, calc_date_range
from .notifications import (
    NotificationContext,
    NotificationEvent,
    NotificationProvider,
    NotificationRegistry,
    NotificationResult,
    TaskNotificationPayload,
    TaskSummary,
    build_registry,
)
from .rate_limit import RateLimitResult, SlidingWindowRateLimiter, get_client_ip
from .auth_cache import CachedUserLookup
from .scheduling import AvailableSlot, BusyPeriod, compute_available_slots

__all__ = [
    "BurndownConfigurationError",
    "BurndownData",
    "BurndownPoint",
    "BurndownSummary",
    "MilestoneNotFoundError",
    "compute_burndown",
    "RiskAssessment",
    "RiskStatus",
    "calculate_milestone_risk",
    "calculate_risk_forecasts",
    "calculate_velocity",
    "TaskTreeNode",
    "build_task_tree",
    "calc_date_range",
    "NotificationContext",
    "NotificationEvent",
    "NotificationProvider",
    "NotificationRegistry",
    "NotificationResult",
    "TaskNotificationPayload",
    "TaskSummary",
    "build_registry",
    "RateLimitResult",
    "SlidingWindowRateLimiter",
    "get_client_ip",
    "CachedUserLookup",
    "AvailableSlot",
    "BusyPeriod",
    "compute_available_slots",
]
