"""Discord webhook notification sink.

DiscordNotifier wraps httpx.AsyncClient to post an embed for accepted votes
and bumps, with circuit breaker protection and an SLA timeout. Notifications
are best-effort: the engagement gate only guarantees the activity record,
never delivery to Discord.
"""

import asyncio
import time
from typing import Optional

import httpx
import structlog

from promoboard.config import settings
from promoboard.metrics import notifications_total
from promoboard.services.background import track_task

log = structlog.get_logger(__name__)

# Discord embed colours per tier
TIER_COLOURS: dict[str, int] = {
    "free": 0x5865F2,
    "gold": 0xF1C40F,
    "platinum": 0xB9F2FF,
}


class CircuitOpenError(Exception):
    """The webhook failed too often recently; calls are short-circuited."""


class NotificationFailedError(Exception):
    """A webhook call timed out, could not connect or got a non-2xx reply."""


class CircuitBreaker:
    """Tracks webhook health as closed, open or half-open.

    Only outages count, meaning timeouts, transport errors and 5xx replies.
    A 4xx means Discord is up and refused this payload, so it never opens
    the breaker. After ``failure_threshold`` consecutive outages it opens
    for ``recovery_timeout`` seconds; the next call is a half-open trial.
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 30.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.opened_at = 0.0
        self.state = "closed"

    def before_call(self) -> None:
        if self.state != "open":
            return
        if time.monotonic() - self.opened_at < self.recovery_timeout:
            raise CircuitOpenError("Discord webhook is temporarily disabled")
        self.state = "half-open"

    def record_success(self) -> None:
        self.failure_count = 0
        self.state = "closed"

    def record_outage(self) -> None:
        self.failure_count += 1
        if self.state == "half-open" or self.failure_count >= self.failure_threshold:
            self.state = "open"
            self.opened_at = time.monotonic()


def build_embed(event: str, listing_name: str, tier: str, detail: str) -> dict:
    """Build the webhook payload for a vote or bump."""
    title = {
        "vote": f"New vote for {listing_name}",
        "bump": f"{listing_name} was bumped",
    }.get(event, listing_name)
    return {
        "embeds": [
            {
                "title": title,
                "description": detail,
                "color": TIER_COLOURS.get(tier, TIER_COLOURS["free"]),
            }
        ]
    }


class DiscordNotifier:
    """Posts engagement events to a Discord webhook."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.webhook_url = settings.discord_webhook_url if webhook_url is None else webhook_url
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(5.0, connect=2.0),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
        self.breaker = CircuitBreaker(
            failure_threshold=settings.circuit_failure_threshold,
            recovery_timeout=settings.circuit_recovery_timeout,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send(self, payload: dict) -> None:
        """POST ``payload`` to the webhook.

        Raises:
            CircuitOpenError: The webhook is in an outage window.
            NotificationFailedError: Timeout, transport error or non-2xx reply.
        """
        self.breaker.before_call()
        try:
            resp = await asyncio.wait_for(
                self.client.post(self.webhook_url, json=payload),
                timeout=settings.notification_timeout,
            )
        except (httpx.TransportError, asyncio.TimeoutError) as exc:
            self.breaker.record_outage()
            raise NotificationFailedError(f"webhook unreachable: {exc!r}") from exc

        if resp.status_code >= 500:
            self.breaker.record_outage()
            raise NotificationFailedError(f"webhook returned {resp.status_code}")
        if resp.is_error:
            raise NotificationFailedError(f"webhook rejected payload: {resp.status_code}")
        self.breaker.record_success()

    async def notify_quietly(self, payload: dict) -> bool:
        """Send and swallow failures. Returns True when delivered."""
        if not self.enabled:
            return False
        try:
            await self.send(payload)
        except (CircuitOpenError, NotificationFailedError) as exc:
            notifications_total.labels(outcome="error").inc()
            log.warning("discord_notification_failed", error=str(exc))
            return False
        notifications_total.labels(outcome="ok").inc()
        return True

    async def aclose(self) -> None:
        await self.client.aclose()


_notifier: Optional[DiscordNotifier] = None


def get_notifier() -> DiscordNotifier:
    """Process-wide notifier, created on first use."""
    global _notifier
    if _notifier is None:
        _notifier = DiscordNotifier()
    return _notifier


def notify_in_background(payload: dict, notifier: Optional[DiscordNotifier] = None):
    """Dispatch a notification without blocking the caller; None when disabled."""
    notifier = notifier or get_notifier()
    if not notifier.enabled:
        return None
    return track_task(notifier.notify_quietly(payload))


async def close_notifier() -> None:
    global _notifier
    if _notifier is not None:
        await _notifier.aclose()
        _notifier = None
