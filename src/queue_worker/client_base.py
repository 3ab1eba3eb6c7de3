"""Abstract base for broker client backends.

Defines the interface the worker drives: publish, subscribe/unsubscribe,
acknowledge, a bounded wait for idle and close. Implementations (e.g.
StompClient) provide the transport.
"""

from abc import ABC, abstractmethod
from typing import Callable

from queue_worker.frame_model_dto import Frame

FrameCallback = Callable[[Frame], None]


class BrokerClient(ABC):
    """Abstract base class for a connection to the message broker.

    A client may hold several subscriptions, one per destination. Callbacks
    for a destination are invoked one frame at a time in delivery order.
    """

    @abstractmethod
    def publish(self, destination: str, body: str, headers: dict | None = None) -> None:
        """Send one message to the destination."""
        pass

    @abstractmethod
    def subscribe(self, destination: str, headers: dict, callback: FrameCallback) -> None:
        """Register callback for frames delivered on destination. Must not block."""
        pass

    @abstractmethod
    def unsubscribe(self, destination: str) -> None:
        """Remove the subscription for destination. Unknown destinations are ignored."""
        pass

    @abstractmethod
    def ack(self, frame: Frame) -> None:
        """Acknowledge a delivered frame. Frames without an id are ignored."""
        pass

    @abstractmethod
    def join(self, timeout: float | None = None) -> bool:
        """Block until no subscription is active or the client is closed.

        Returns True when the client went idle, False when timeout elapsed first.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Disconnect from the broker. Safe to call more than once."""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Return True while the connection is usable."""
        pass
