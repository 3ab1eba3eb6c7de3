"""Broker frame data transfer objects.

Defines the shape of frames delivered by the broker (command, headers, body)
and the default headers applied when publishing.
"""

from enum import Enum

from pydantic import BaseModel, Field

MESSAGE_COMMAND = "MESSAGE"
UNSUBSCRIBE_SENTINEL = "UNSUBSCRIBE"


class FrameKind(str, Enum):
    """How the worker treats a delivered frame."""

    DELIVERABLE = "deliverable"
    CONTROL_UNSUBSCRIBE = "control_unsubscribe"
    OTHER = "other"


class Frame(BaseModel):
    """One unit of broker communication: command, headers and body."""

    command: str = Field(..., description="Frame command, e.g. MESSAGE or RECEIPT")
    headers: dict[str, str] = Field(default_factory=dict, description="Frame headers")
    body: str = Field("", description="Wire-encoded payload, usually JSON text")

    @property
    def kind(self) -> FrameKind:
        if self.command != MESSAGE_COMMAND:
            return FrameKind.OTHER
        if self.body == UNSUBSCRIBE_SENTINEL:
            return FrameKind.CONTROL_UNSUBSCRIBE
        return FrameKind.DELIVERABLE

    @property
    def message_id(self) -> str | None:
        return self.headers.get("message-id")

    @property
    def destination(self) -> str | None:
        return self.headers.get("destination")


class PublishHeaders(BaseModel):
    """Default headers sent with every published message."""

    priority: int = Field(4, description="JMS priority, 0-9")
    persistent: bool = Field(True, description="Ask the broker to persist the message")

    def merge(self, headers: dict | None = None) -> dict:
        """Return the defaults shallow-merged with caller headers; the caller wins."""
        return {**self.model_dump(), **(headers or {})}
