"""STOMP broker client using stomp.py.

Connects to an ActiveMQ-style broker over STOMP 1.2 and routes MESSAGE frames
to per-destination callbacks on the stomp.py receiver thread.
"""

import logging
import threading

import stomp

from queue_worker.client_base import BrokerClient, FrameCallback
from queue_worker.config import Settings, get_settings
from queue_worker.frame_model_dto import Frame


def wire_headers(headers: dict | None) -> dict[str, str]:
    """Convert header values to the strings STOMP puts on the wire."""
    wire = {}
    for key, value in (headers or {}).items():
        if isinstance(value, bool):
            wire[key] = "true" if value else "false"
        else:
            wire[key] = str(value)
    return wire


class _Listener(stomp.ConnectionListener):
    """Forwards stomp.py callbacks to the owning StompClient."""

    def __init__(self, client: "StompClient") -> None:
        self.client = client

    def on_message(self, frame) -> None:
        self.client.deliver(Frame(command=frame.cmd, headers=dict(frame.headers), body=frame.body or ""))

    def on_error(self, frame) -> None:
        self.client.logger.error("Broker error: %s %s", frame.headers.get("message"), frame.body)

    def on_disconnected(self) -> None:
        self.client.mark_disconnected()


class StompClient(BrokerClient):
    """Broker client implementation using stomp.py.

    One subscription per destination; the destination doubles as the STOMP
    subscription id. Closing from inside a message callback only marks the
    client closed, the socket is disconnected by the next join() or close()
    made from another thread, after the running callback has returned.
    """

    def __init__(self, settings: Settings | None = None, connection: stomp.Connection | None = None) -> None:
        """Connect to the broker described by settings (or the process-wide default)."""
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(__name__)
        self._subscriptions: dict[str, FrameCallback] = {}
        self._lock = threading.RLock()
        self._dispatch_lock = threading.Lock()
        self._receiver = threading.local()
        self._idle = threading.Event()
        self._idle.set()
        self._closed = False
        self._disconnect_pending = False

        self.connection = connection or stomp.Connection(
            host_and_ports=[(self.settings.host, self.settings.port)],
            heartbeats=(self.settings.heartbeat_ms, self.settings.heartbeat_ms),
            vhost=self.settings.vhost,
            timeout=self.settings.connect_timeout,
        )
        self.connection.set_listener("queue_worker", _Listener(self))
        passcode = self.settings.passcode.get_secret_value() if self.settings.passcode else None
        self.connection.connect(self.settings.login, passcode, wait=True)
        self.logger.debug("Connected to %s:%s", self.settings.host, self.settings.port)

    def publish(self, destination: str, body: str, headers: dict | None = None) -> None:
        self.connection.send(destination, body, headers=wire_headers(headers))

    def subscribe(self, destination: str, headers: dict, callback: FrameCallback) -> None:
        headers = dict(headers)
        ack = headers.pop("ack", "auto")
        with self._lock:
            self._subscriptions[destination] = callback
            self._idle.clear()
        self.connection.subscribe(destination, id=destination, ack=ack, headers=wire_headers(headers))

    def unsubscribe(self, destination: str) -> None:
        with self._lock:
            if self._subscriptions.pop(destination, None) is None:
                self.logger.debug("No subscription for %s", destination)
                return
            if not self._subscriptions:
                self._idle.set()
        if self.connection.is_connected():
            self.connection.unsubscribe(id=destination)

    def ack(self, frame: Frame) -> None:
        ack_id = frame.headers.get("ack") or frame.message_id
        if not ack_id:
            self.logger.debug("Nothing to acknowledge for %s frame", frame.command)
            return
        self.connection.ack(ack_id)

    def join(self, timeout: float | None = None) -> bool:
        idle = self._idle.wait(timeout)
        if self._disconnect_pending and not self._in_receiver_thread():
            self._disconnect()
        return idle

    def close(self) -> None:
        deferred = self._in_receiver_thread()
        with self._lock:
            self._closed = True
            self._subscriptions.clear()
            # set before waking join() so the owner thread sees it
            if deferred:
                self._disconnect_pending = True
            self._idle.set()
        if not deferred:
            self._disconnect()

    def is_connected(self) -> bool:
        return not self._closed and self.connection.is_connected()

    def deliver(self, frame: Frame) -> None:
        """Run the callback registered for the frame's subscription."""
        key = frame.headers.get("subscription") or frame.destination
        with self._lock:
            callback = self._subscriptions.get(key)
        if callback is None:
            # left unacknowledged, the broker redelivers it to the next consumer
            self.logger.debug("Dropping %s for inactive subscription %s", frame.message_id, key)
            return
        with self._dispatch_lock:
            self._receiver.active = True
            try:
                callback(frame)
            finally:
                self._receiver.active = False

    def mark_disconnected(self) -> None:
        with self._lock:
            self._closed = True
            self._subscriptions.clear()
            self._idle.set()

    def _in_receiver_thread(self) -> bool:
        return getattr(self._receiver, "active", False)

    def _disconnect(self) -> None:
        # wait for an in-flight callback so its acknowledgment reaches the broker
        with self._dispatch_lock:
            self._disconnect_pending = False
            if self.connection.is_connected():
                self.connection.disconnect()
