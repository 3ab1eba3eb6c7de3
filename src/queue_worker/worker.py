"""Publish to and consume from broker queues.

The Worker owns one lazily created broker client. Consumption runs every
delivered frame through Worker.call, which decodes the JSON body, hands it to
the bound handler and always acknowledges the frame, so one bad message never
stops the subscription.
"""

import json
import logging
from typing import Any, Callable

from queue_worker.client_base import BrokerClient, FrameCallback
from queue_worker.client_stomp import StompClient
from queue_worker.config import Settings, get_settings
from queue_worker.frame_model_dto import Frame, FrameKind, PublishHeaders
from queue_worker.handlers.registry import HandlerRegistry
from queue_worker.handlers.resolvers import PayloadResolver

ClientFactory = Callable[[Settings], BrokerClient]
MessageHandler = Callable[[Any, Frame], None]

PEEK_DURATION = 2


class Worker:
    """Publisher and single-subscription consumer for one queue.

    Args:
        queue: Default queue name for publish and subscribe.
        logger: Logger for dispatch outcomes; defaults to the module logger.
        handler: Callable taking (payload, frame). Defaults to a PayloadResolver
            over registry, which dispatches {"class": ..., "args": ...} payloads.
        registry: Handlers for the default PayloadResolver.
        settings: Broker settings; defaults to the process-wide settings.
        client_factory: Builds the broker client from settings; defaults to StompClient.
    """

    def __init__(
        self,
        queue: str | None = None,
        logger: logging.Logger | None = None,
        handler: MessageHandler | None = None,
        registry: HandlerRegistry | None = None,
        settings: Settings | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.queue = queue
        self.logger = logger or logging.getLogger(__name__)
        self.handler = handler or PayloadResolver(registry if registry is not None else HandlerRegistry())
        self.settings = settings or get_settings()
        self.client_factory = client_factory or StompClient
        self._client: BrokerClient | None = None

    @property
    def client(self) -> BrokerClient:
        """The broker client, connected on first use."""
        if self._client is None:
            self._client = self.client_factory(self.settings)
        return self._client

    def destination(self, queue_name: str | None = None) -> str:
        return self.settings.destination(queue_name or self.queue)

    def publish(self, message: Any, headers: dict | None = None) -> None:
        """Publish a message to the worker's queue.

        Strings are sent as-is, anything else is serialized to JSON. Caller
        headers override the defaults {"priority": 4, "persistent": True}.
        """
        body = message if isinstance(message, str) else json.dumps(message)
        self.client.publish(self.destination(), body, PublishHeaders().merge(headers))

    push = publish

    def subscribe(self, queue_name: str | None = None, size: int = 1, callback: FrameCallback | None = None) -> None:
        """Subscribe with client acknowledgment and at most size unacknowledged frames in flight."""
        destination = self.destination(queue_name)
        headers = {"ack": "client", self.settings.prefetch_header: size}
        self.client.subscribe(destination, headers, callback or self.call)
        self.logger.debug("Subscribed to %s with prefetch %s", destination, size)

    def subscribe_with_timeout(self, duration: float, size: int = 1, callback: FrameCallback | None = None) -> bool:
        """Subscribe and wait up to duration seconds for the subscription to finish.

        Returns True if it finished in time. On the deadline the worker quits
        (unsubscribe and close) and False is returned; no error is raised.
        """
        client = self.client
        self.subscribe(size=size, callback=callback)
        if client.join(timeout=duration):
            return True
        self.logger.info("Subscription to %s timed out after %ss", self.destination(), duration)
        self.quit()
        return False

    def unsubscribe(self, queue_name: str | None = None) -> None:
        if self._client is None:
            self.logger.debug("Not connected, nothing to unsubscribe")
            return
        self._client.unsubscribe(self.destination(queue_name))

    def quit(self, queue_name: str | None = None) -> None:
        """Unsubscribe and close the connection. A later call reconnects."""
        self.unsubscribe(queue_name)
        self.close()

    def close(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            client.close()

    def ack(self, frame: Frame) -> None:
        self.client.ack(frame)

    def join(self, timeout: float | None = None) -> bool:
        return self.client.join(timeout=timeout)

    def call(self, frame: Frame) -> None:
        """Handle one delivered frame; the subscription callback.

        Only MESSAGE frames are decoded and handed to the handler. A body of
        "UNSUBSCRIBE" ends the subscription instead. Every frame is
        acknowledged, including those whose decode or handler failed.
        Frames arriving after quit() have no connection to acknowledge on
        and are dropped for the broker to redeliver.
        """
        client = self._client
        if client is None:
            self.logger.debug("Dropping %s, worker is not connected", frame.message_id)
            return
        try:
            kind = frame.kind
            if kind is FrameKind.DELIVERABLE:
                self.dispatch(frame)
            elif kind is FrameKind.CONTROL_UNSUBSCRIBE:
                self.logger.info("Unsubscribe requested on %s", frame.destination)
                client.unsubscribe(frame.destination or self.destination())
            else:
                self.logger.debug("Skipping %s frame", frame.command)
        finally:
            client.ack(frame)
            self.logger.info("Processed %s for %s", frame.message_id, frame.destination)

    def dispatch(self, frame: Frame) -> None:
        """Decode the frame body and run the handler, logging any failure."""
        try:
            payload = json.loads(frame.body)
        except ValueError:
            self.logger.exception("Invalid JSON in %s from %s", frame.message_id, frame.destination)
            return
        try:
            self.handler(payload, frame)
        except Exception as e:
            self.logger.exception("Error handling %s from %s: %s", frame.message_id, frame.destination, e)


def publish(
    queue_name: str,
    *messages: Any,
    headers: dict | None = None,
    settings: Settings | None = None,
    client_factory: ClientFactory | None = None,
) -> None:
    """Publish messages in order over one connection, then close it."""
    worker = Worker(queue_name, settings=settings, client_factory=client_factory)
    try:
        for message in messages:
            worker.publish(message, headers)
    finally:
        worker.close()


def peek(
    queue_name: str,
    size: int = 1,
    duration: float = PEEK_DURATION,
    settings: Settings | None = None,
    client_factory: ClientFactory | None = None,
) -> list[dict]:
    """Read up to size messages within duration seconds.

    Each payload gets the broker's "message-id" merged in. Messages are
    acknowledged as they are read, so they are removed from the queue.
    """
    messages: list[dict] = []

    def collect(payload: dict, frame: Frame) -> None:
        if len(messages) >= size:
            return
        messages.append({**payload, "message-id": frame.message_id})
        if len(messages) == size:
            worker.quit()

    worker = Worker(queue_name, handler=collect, settings=settings, client_factory=client_factory)
    try:
        worker.subscribe_with_timeout(duration, size)
    finally:
        worker.close()
    return messages
