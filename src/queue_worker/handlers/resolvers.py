"""Strategies that pick the registered handler for a delivered message.

PayloadResolver reads the handler identifier from the payload's "class" field
and passes it "args". DestinationResolver derives the identifier from the
queue the frame arrived on and passes the whole payload.
"""

from typing import Any

from queue_worker.frame_model_dto import Frame
from queue_worker.handlers.registry import HandlerRegistry, UnknownHandlerError


class PayloadResolver:
    """Dispatch {"class": name, "args": value} payloads to the handler registered as name."""

    def __init__(self, registry: HandlerRegistry) -> None:
        self.registry = registry

    def __call__(self, payload: Any, frame: Frame) -> None:
        if not isinstance(payload, dict) or "class" not in payload:
            raise UnknownHandlerError(None)
        handler = self.registry.resolve(payload["class"])
        handler(payload.get("args"))


class DestinationResolver:
    """Dispatch payloads to the handler named after the frame's destination.

    The queue prefix is stripped and path segments become a dotted identifier,
    so "/queue/scheduled/default" resolves the handler "scheduled.default".
    """

    def __init__(self, registry: HandlerRegistry, prefix: str = "/queue/") -> None:
        self.registry = registry
        self.prefix = prefix

    def identifier(self, destination: str) -> str:
        name = destination.removeprefix(self.prefix)
        return ".".join(segment for segment in name.split("/") if segment)

    def __call__(self, payload: Any, frame: Frame) -> None:
        handler = self.registry.resolve(self.identifier(frame.destination or ""))
        handler(payload)
