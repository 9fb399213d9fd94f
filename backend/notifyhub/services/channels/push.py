"""Mobile push via the Expo push API."""

from __future__ import annotations

import logging

import httpx

from notifyhub.core.config import settings
from notifyhub.services.channels.base import ChannelAdapter, ChannelResult, DeliveryRequest
from notifyhub.services.email_service import subject_for

logger = logging.getLogger(__name__)


class PushAdapter(ChannelAdapter):
    channel = "push"

    def __init__(self, api_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.api_url = api_url or settings.PUSH_API_URL
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if settings.PUSH_ACCESS_TOKEN:
            headers["Authorization"] = f"Bearer {settings.PUSH_ACCESS_TOKEN}"
        return headers

    async def send(self, request: DeliveryRequest) -> ChannelResult:
        if not request.push_tokens:
            return ChannelResult.skipped("no push tokens registered")

        messages = [
            {
                "to": token,
                "title": subject_for(request.type),
                "body": request.message,
                "data": {"notificationId": request.notification_id, "type": request.type},
                "sound": "default",
                "priority": "high",
            }
            for token in request.push_tokens
        ]

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                resp = await client.post(self.api_url, json=messages, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning("Push delivery failed for %s: %s", request.notification_id, exc)
            return ChannelResult.failure(str(exc)[:500])

        if not 200 <= resp.status_code < 300:
            body = resp.text[:500] if resp.text else None
            logger.warning(
                "Push gateway returned %s for %s", resp.status_code, request.notification_id
            )
            return ChannelResult.failure(f"HTTP {resp.status_code}: {body}")

        try:
            body_json = resp.json()
        except ValueError:
            body_json = {}
        tickets = body_json.get("data", []) if isinstance(body_json, dict) else []
        if tickets and all(ticket.get("status") == "error" for ticket in tickets):
            detail = tickets[0].get("message") or "all push tickets rejected"
            return ChannelResult.failure(detail)
        return ChannelResult.success(f"{len(messages)} device(s)")
