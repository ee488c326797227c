"""Web Push delivery (VAPID) via pywebpush.

pywebpush is blocking (requests), so each send runs in a worker thread and
carries its own HTTP timeout. A sender cannot be built without VAPID keys:
missing credentials are a setup error for the whole run, not a per-message
failure.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any

import structlog

from clubcal.config import ConfigurationError, Settings, get_settings

logger = structlog.get_logger()

# Push service answers for subscriptions the browser has dropped
_GONE_STATUSES = frozenset({404, 410})


@dataclass(frozen=True)
class PushKeys:
    """Browser-issued encryption material for a push subscription."""

    p256dh: str
    auth: str


def missing_push_settings(settings: Settings) -> list[str]:
    """Names of the VAPID settings still unset."""
    missing = []
    if not settings.vapid_public_key:
        missing.append("VAPID_PUBLIC_KEY")
    if not settings.vapid_private_key:
        missing.append("VAPID_PRIVATE_KEY")
    return missing


class WebPushSender:
    """Send encrypted payloads to browser push endpoints."""

    def __init__(
        self,
        private_key: str,
        public_key: str,
        contact: str,
        ttl_seconds: int = 3600,
        timeout: float = 10.0,
    ) -> None:
        if not private_key or not public_key:
            msg = "Missing VAPID keys"
            raise ConfigurationError(msg)
        self.private_key = private_key
        self.public_key = public_key
        self.contact = contact
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout

    def _send_blocking(self, endpoint: str, keys: PushKeys, data: str) -> None:
        from pywebpush import webpush

        webpush(
            subscription_info={
                "endpoint": endpoint,
                "keys": {"p256dh": keys.p256dh, "auth": keys.auth},
            },
            data=data,
            vapid_private_key=self.private_key,
            # pywebpush adds aud/exp to the claims dict, so build a fresh one per call
            vapid_claims={"sub": self.contact},
            ttl=self.ttl_seconds,
            timeout=self.timeout,
        )

    async def send(self, endpoint: str, keys: PushKeys, payload: dict[str, Any]) -> bool:
        """Deliver one notification. Returns True if the push service accepted it."""
        from pywebpush import WebPushException

        data = json.dumps(payload)
        try:
            await asyncio.to_thread(self._send_blocking, endpoint, keys, data)
        except WebPushException as exc:
            status = exc.response.status_code if exc.response is not None else None
            if status in _GONE_STATUSES:
                logger.warning("push_subscription_gone", endpoint=endpoint, status=status)
            else:
                logger.warning("push_send_failed", endpoint=endpoint, status=status, error=str(exc))
            return False
        except Exception:
            logger.exception("push_send_failed", endpoint=endpoint)
            return False
        logger.info("push_sent", endpoint=endpoint)
        return True


def create_push_sender(settings: Settings | None = None) -> WebPushSender:
    """Build a sender from configuration.

    Raises:
        ConfigurationError: If VAPID keys are not configured.
    """
    settings = settings or get_settings()
    missing = missing_push_settings(settings)
    if missing:
        msg = f"Missing {', '.join(missing)}"
        raise ConfigurationError(msg)
    return WebPushSender(
        private_key=settings.vapid_private_key,
        public_key=settings.vapid_public_key,
        contact=settings.push_contact,
        ttl_seconds=settings.push_ttl_seconds,
        timeout=settings.adapter_timeout_seconds,
    )
