"""Task notification fan-out for TaskApp.

Providers (Slack, incoming webhooks for Teams / Google Chat, ...) share one
interface and are collected in a registry. ``notify_all`` sends an event to
every configured provider; a failure in one provider is logged and reported
in the results without blocking the others.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from ..config import ConfigModel


logger = logging.getLogger(__name__)


class NotificationEvent(Enum):
    """Events that can be pushed to chat tools."""
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    BALL_PASSED = "ball_passed"
    STATUS_CHANGED = "status_changed"
    COMMENT_ADDED = "comment_added"
    REVIEW_OPENED = "review_opened"
    MEETING_ENDED = "meeting_ended"
    TASK_SHARED = "task_shared"  # manual share from the UI


EVENT_LABELS = {
    NotificationEvent.TASK_CREATED: "Task created",
    NotificationEvent.TASK_UPDATED: "Task updated",
    NotificationEvent.BALL_PASSED: "Ball passed",
    NotificationEvent.STATUS_CHANGED: "Status changed",
    NotificationEvent.COMMENT_ADDED: "Comment added",
    NotificationEvent.REVIEW_OPENED: "Review opened",
    NotificationEvent.MEETING_ENDED: "Meeting ended",
    NotificationEvent.TASK_SHARED: "Task shared",
}

STATUS_LABELS = {
    "backlog": "Backlog",
    "todo": "To do",
    "in_progress": "In progress",
    "in_review": "In review",
    "done": "Done",
    "considering": "Considering",
}

BALL_LABELS = {
    "client": "Client",
    "internal": "Internal",
}


@dataclass
class NotificationContext:
    """Who and where an event happened."""
    org_id: str
    space_id: str
    task_id: Optional[str] = None
    actor_id: Optional[str] = None


@dataclass
class TaskSummary:
    """The task fields a notification message shows."""
    id: str
    title: str
    status: str
    ball: str = "internal"
    due_date: Optional[str] = None
    assignee_name: Optional[str] = None
    description: Optional[str] = None


@dataclass
class TaskNotificationPayload:
    task: TaskSummary
    space_name: str
    app_url: str
    actor_name: Optional[str] = None
    custom_message: Optional[str] = None
    changes: Dict[str, str] = field(default_factory=dict)

    @property
    def task_url(self) -> str:
        return f"{self.app_url.rstrip('/')}/tasks?task={self.task.id}"


@dataclass
class NotificationResult:
    """Outcome of a single provider send."""
    provider: str
    message_id: Optional[str] = None
    error: Optional[str] = None
    skipped: Optional[str] = None  # reason the provider chose not to send

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def sent(self) -> bool:
        return self.ok and self.skipped is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'provider': self.provider,
            'message_id': self.message_id,
            'error': self.error,
            'skipped': self.skipped,
        }


class NotificationProvider(ABC):
    """Abstract base class for notification providers."""

    name: str = ""

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the provider has the global credentials it needs."""
        pass

    @abstractmethod
    async def is_space_configured(self, space_id: str) -> bool:
        """Whether the space has a destination for this provider."""
        pass

    @abstractmethod
    async def send_task_notification(self,
                                     event: NotificationEvent,
                                     context: NotificationContext,
                                     payload: TaskNotificationPayload) -> NotificationResult:
        """Deliver one notification."""
        pass


class NotificationRegistry:
    """Holds providers by name and fans events out to them."""

    def __init__(self):
        self._providers: Dict[str, NotificationProvider] = {}

    def register(self, provider: NotificationProvider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: str) -> Optional[NotificationProvider]:
        return self._providers.get(name)

    @property
    def providers(self) -> List[NotificationProvider]:
        return list(self._providers.values())

    async def notify_all(self,
                         event: NotificationEvent,
                         context: NotificationContext,
                         payload: TaskNotificationPayload) -> List[NotificationResult]:
        """Send to every configured provider; one failure never blocks the rest."""
        results: List[NotificationResult] = []

        for name, provider in self._providers.items():
            if not provider.is_configured():
                continue

            try:
                if not await provider.is_space_configured(context.space_id):
                    continue
                result = await provider.send_task_notification(event, context, payload)
                results.append(result)
            except Exception as e:
                logger.error("Notification provider %s failed: %s", name, e, exc_info=True)
                results.append(NotificationResult(provider=name, error=str(e) or type(e).__name__))

        return results


def build_fallback_text(event: NotificationEvent, payload: TaskNotificationPayload) -> str:
    """Plain text used by clients that cannot render blocks."""
    label = EVENT_LABELS.get(event, "Task notification")
    parts = [f"[{payload.space_name}] {label}: {payload.task.title}"]
    if payload.actor_name:
        parts.append(f"by {payload.actor_name}")
    return " ".join(parts)


def build_task_blocks(event: NotificationEvent, payload: TaskNotificationPayload) -> List[Dict[str, Any]]:
    """Build a Slack Block Kit message for a task event."""
    task = payload.task
    blocks: List[Dict[str, Any]] = [{
        "type": "header",
        "text": {"type": "plain_text", "text": EVENT_LABELS.get(event, "Task notification"), "emoji": True},
    }]

    context_elements = []
    if payload.actor_name:
        context_elements.append({"type": "mrkdwn", "text": f"*{payload.actor_name}*"})
    context_elements.append({"type": "mrkdwn", "text": payload.space_name})
    if task.ball == "client":
        context_elements.append({"type": "mrkdwn", "text": "Waiting on client"})
    blocks.append({"type": "context", "elements": context_elements})

    fields = [
        {"type": "mrkdwn", "text": f"*Status*\n{STATUS_LABELS.get(task.status, task.status)}"},
        {"type": "mrkdwn", "text": f"*Ball*\n{BALL_LABELS.get(task.ball, task.ball)}"},
    ]
    if task.assignee_name:
        fields.append({"type": "mrkdwn", "text": f"*Assignee*\n{task.assignee_name}"})
    if task.due_date:
        fields.append({"type": "mrkdwn", "text": f"*Due*\n{task.due_date}"})

    blocks.append({
        "type": "section",
        "text": {"type": "mrkdwn", "text": f"*<{payload.task_url}|{task.title}>*"},
        "fields": fields,
    })

    old_status, new_status = payload.changes.get("old_status"), payload.changes.get("new_status")
    if old_status and new_status:
        blocks.append({
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"{STATUS_LABELS.get(old_status, old_status)} → {STATUS_LABELS.get(new_status, new_status)}",
            },
        })

    comment = payload.changes.get("comment_body")
    if comment:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"> {comment[:500]}"}})

    if payload.custom_message:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": payload.custom_message}})

    return blocks


class SlackNotificationProvider(NotificationProvider):
    """Posts task notifications to the Slack channel linked to a space."""

    name = "slack"
    API_URL = "https://slack.com/api/chat.postMessage"

    def __init__(self, bot_token: Optional[str], channels: Dict[str, str],
                 enabled_events: Optional[Dict[str, bool]] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.bot_token = bot_token
        self.channels = channels
        self.enabled_events = enabled_events or {}
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.bot_token)

    async def is_space_configured(self, space_id: str) -> bool:
        return space_id in self.channels

    def is_event_enabled(self, event: NotificationEvent) -> bool:
        # Manual shares always go out
        if event == NotificationEvent.TASK_SHARED:
            return True
        return self.enabled_events.get(event.value, True)

    async def send_task_notification(self,
                                     event: NotificationEvent,
                                     context: NotificationContext,
                                     payload: TaskNotificationPayload) -> NotificationResult:
        channel = self.channels.get(context.space_id)
        if not channel:
            return NotificationResult(provider=self.name, skipped="no_channel")
        if not self.is_event_enabled(event):
            return NotificationResult(provider=self.name, skipped="event_disabled")

        body = {
            "channel": channel,
            "text": build_fallback_text(event, payload),
            "blocks": build_task_blocks(event, payload),
        }
        headers = {
            "Authorization": f"Bearer {self.bot_token}",
            "Content-Type": "application/json; charset=utf-8",
        }

        client = self._client or httpx.AsyncClient(timeout=10.0)
        try:
            response = await client.post(self.API_URL, json=body, headers=headers)
            response.raise_for_status()
            data = response.json()
        finally:
            if self._client is None:
                await client.aclose()

        if not data.get("ok"):
            error = data.get("error", "unknown_error")
            logger.warning("Slack rejected message for space %s: %s", context.space_id, error)
            return NotificationResult(provider=self.name, error=error)

        return NotificationResult(provider=self.name, message_id=data.get("ts"))


class WebhookNotificationProvider(NotificationProvider):
    """Posts a simple JSON message to an incoming webhook per space."""

    name = "webhook"

    def __init__(self, urls: Dict[str, str], client: Optional[httpx.AsyncClient] = None):
        self.urls = urls
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.urls)

    async def is_space_configured(self, space_id: str) -> bool:
        return space_id in self.urls

    async def send_task_notification(self,
                                     event: NotificationEvent,
                                     context: NotificationContext,
                                     payload: TaskNotificationPayload) -> NotificationResult:
        url = self.urls.get(context.space_id)
        if not url:
            return NotificationResult(provider=self.name, skipped="no_webhook")
        text = build_fallback_text(event, payload)
        if payload.custom_message:
            text = f"{text}\n{payload.custom_message}"
        body = {"text": f"{text}\n{payload.task_url}", "event": event.value, "task_id": payload.task.id}

        client = self._client or httpx.AsyncClient(timeout=10.0)
        try:
            response = await client.post(url, json=body)
            response.raise_for_status()
        finally:
            if self._client is None:
                await client.aclose()

        return NotificationResult(provider=self.name, message_id=response.headers.get("x-request-id"))


def build_registry(config: ConfigModel) -> NotificationRegistry:
    """Create a registry with every provider known to TaskApp."""
    registry = NotificationRegistry()
    registry.register(SlackNotificationProvider(
        bot_token=config.slack_bot_token,
        channels=config.slack_channels,
        enabled_events=config.slack_events,
    ))
    registry.register(WebhookNotificationProvider(urls=config.webhook_urls))
    return registry
