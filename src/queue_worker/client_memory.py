"""In-process broker client for unit tests and local runs.

MemoryBroker holds the queues; each MemoryClient is one connection to it.
Frames are delivered on the thread that calls join(), honouring the prefetch
size and client acknowledgment.
"""

import itertools
import threading
import time
from collections import deque

from queue_worker.client_base import BrokerClient, FrameCallback
from queue_worker.client_stomp import wire_headers
from queue_worker.frame_model_dto import MESSAGE_COMMAND, Frame

POLL_INTERVAL = 0.01


class MemoryBroker:
    """Queues shared by every MemoryClient connected to this broker."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.queues: dict[str, deque[Frame]] = {}
        self.published: list[Frame] = []
        self._ids = itertools.count(1)

    def enqueue(self, destination: str, body: str, headers: dict | None = None) -> Frame:
        with self.lock:
            message_id = f"ID:memory-{next(self._ids)}"
            frame_headers = wire_headers(headers)
            frame_headers.update({"message-id": message_id, "ack": message_id, "destination": destination})
            frame = Frame(command=MESSAGE_COMMAND, headers=frame_headers, body=body)
            self.queues.setdefault(destination, deque()).append(frame)
            self.published.append(frame)
            return frame

    def requeue(self, destination: str, frames: list[Frame]) -> None:
        """Put unacknowledged frames back at the head of the queue, preserving order."""
        with self.lock:
            queue = self.queues.setdefault(destination, deque())
            queue.extendleft(reversed(frames))

    def pending(self, destination: str) -> int:
        with self.lock:
            return len(self.queues.get(destination, ()))


class _Subscription:
    def __init__(self, callback: FrameCallback, prefetch: int) -> None:
        self.callback = callback
        self.prefetch = max(prefetch, 1)


class MemoryClient(BrokerClient):
    """Broker client connected to a MemoryBroker.

    Unsubscribing or closing from inside a callback takes effect once the
    callback returns, so the frame being handled can still be acknowledged.
    Frames left unacknowledged on unsubscribe go back to the broker queue.
    """

    def __init__(self, broker: MemoryBroker, prefetch_header: str = "activemq.prefetchSize") -> None:
        self.broker = broker
        self.prefetch_header = prefetch_header
        self.acked: list[str] = []
        self._subscriptions: dict[str, _Subscription] = {}
        self._unacked: dict[str, Frame] = {}
        self._released: set[str] = set()
        self._dispatching = False
        self._close_pending = False
        self._closed = False

    def publish(self, destination: str, body: str, headers: dict | None = None) -> None:
        self._check_open()
        self.broker.enqueue(destination, body, headers)

    def subscribe(self, destination: str, headers: dict, callback: FrameCallback) -> None:
        self._check_open()
        prefetch = int(headers.get(self.prefetch_header, 1))
        with self.broker.lock:
            self._subscriptions[destination] = _Subscription(callback, prefetch)

    def unsubscribe(self, destination: str) -> None:
        with self.broker.lock:
            if self._subscriptions.pop(destination, None) is None:
                return
            if self._dispatching:
                self._released.add(destination)
            else:
                self._requeue(destination)

    def ack(self, frame: Frame) -> None:
        message_id = frame.message_id
        if not message_id:
            return
        self._check_open()
        with self.broker.lock:
            self.acked.append(message_id)
            self._unacked.pop(message_id, None)

    def join(self, timeout: float | None = None) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            self._pump()
            if self._closed or not self._subscriptions:
                return True
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(POLL_INTERVAL)

    def close(self) -> None:
        with self.broker.lock:
            for destination in list(self._subscriptions):
                self.unsubscribe(destination)
            if self._dispatching:
                self._close_pending = True
            else:
                self._closed = True

    def is_connected(self) -> bool:
        return not (self._closed or self._close_pending)

    def _in_flight(self, destination: str) -> int:
        return sum(1 for frame in self._unacked.values() if frame.destination == destination)

    def _pump(self) -> None:
        with self.broker.lock:
            for destination, subscription in list(self._subscriptions.items()):
                queue = self.broker.queues.get(destination)
                while (
                    queue
                    and self.is_connected()
                    and self._subscriptions.get(destination) is subscription
                    and self._in_flight(destination) < subscription.prefetch
                ):
                    self._deliver(queue.popleft(), subscription.callback)

    def _deliver(self, frame: Frame, callback: FrameCallback) -> None:
        self._unacked[frame.message_id] = frame
        self._dispatching = True
        try:
            callback(frame)
        finally:
            self._dispatching = False
            for destination in self._released:
                self._requeue(destination)
            self._released.clear()
            if self._close_pending:
                self._close_pending = False
                self._closed = True

    def _requeue(self, destination: str) -> None:
        frames = [frame for frame in self._unacked.values() if frame.destination == destination]
        for frame in frames:
            del self._unacked[frame.message_id]
        self.broker.requeue(destination, frames)

    def _check_open(self) -> None:
        if self._closed:
            raise ConnectionError("MemoryClient is closed")
