"""Uniform interface every delivery channel implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ChannelStatus(str, Enum):
    SUCCESS = "success"
    OFFLINE = "offline"  # in-app only: recipient has no live session
    SKIPPED = "skipped"  # not permitted, or no address for the channel
    TIMEOUT = "timeout"
    FAILURE = "failure"


@dataclass(frozen=True)
class ChannelResult:
    status: ChannelStatus
    detail: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status == ChannelStatus.SUCCESS

    @property
    def attempted(self) -> bool:
        return self.status in (
            ChannelStatus.SUCCESS,
            ChannelStatus.TIMEOUT,
            ChannelStatus.FAILURE,
        )

    @property
    def retryable(self) -> bool:
        return self.status in (ChannelStatus.TIMEOUT, ChannelStatus.FAILURE)

    @classmethod
    def success(cls, detail: str | None = None) -> ChannelResult:
        return cls(ChannelStatus.SUCCESS, detail)

    @classmethod
    def skipped(cls, detail: str | None = None) -> ChannelResult:
        return cls(ChannelStatus.SKIPPED, detail)

    @classmethod
    def failure(cls, detail: str | None = None) -> ChannelResult:
        return cls(ChannelStatus.FAILURE, detail)


@dataclass
class DeliveryRequest:
    """What an adapter needs to deliver one notification."""

    notification_id: str
    recipient_id: str
    type: str
    message: str
    payload: dict[str, Any]
    email: str | None = None
    push_tokens: list[str] = field(default_factory=list)


class ChannelAdapter(ABC):
    channel: str

    @abstractmethod
    async def send(self, request: DeliveryRequest) -> ChannelResult:
        """Attempt delivery. Timeouts are enforced by the caller."""
