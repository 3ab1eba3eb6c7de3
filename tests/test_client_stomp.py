"""Tests for the stomp.py backed client, with the connection mocked out."""

import threading
import time
from types import SimpleNamespace
from unittest import TestCase
from unittest.mock import MagicMock

from queue_worker.client_stomp import StompClient, _Listener, wire_headers
from queue_worker.config import Settings
from queue_worker.frame_model_dto import Frame
from queue_worker.worker import peek

DESTINATION = "/queue/stomp"


def stomp_frame(body="{}", **headers):
    headers = {"message-id": "ID:1", "destination": DESTINATION, "subscription": DESTINATION, **headers}
    return SimpleNamespace(cmd="MESSAGE", headers=headers, body=body)


class TestWireHeaders(TestCase):
    def test_booleans_and_numbers_become_strings(self):
        self.assertEqual(
            wire_headers({"priority": 4, "persistent": True, "redelivered": False}),
            {"priority": "4", "persistent": "true", "redelivered": "false"},
        )

    def test_none(self):
        self.assertEqual(wire_headers(None), {})


class TestStompClient(TestCase):
    def setUp(self):
        self.connection = MagicMock()
        self.connection.is_connected.return_value = True
        self.settings = Settings(login="user", passcode="pass")
        self.client = StompClient(self.settings, connection=self.connection)
        self.listener = self.connection.set_listener.call_args[0][1]

    def test_connects_with_credentials(self):
        self.connection.connect.assert_called_once_with("user", "pass", wait=True)
        self.assertIsInstance(self.listener, _Listener)

    def test_publish_sends_wire_headers(self):
        self.client.publish(DESTINATION, "{}", {"priority": 4, "persistent": True})
        self.connection.send.assert_called_once_with(
            DESTINATION, "{}", headers={"priority": "4", "persistent": "true"}
        )

    def test_subscribe_passes_ack_mode_and_prefetch(self):
        self.client.subscribe(DESTINATION, {"ack": "client", "activemq.prefetchSize": 3}, MagicMock())
        self.connection.subscribe.assert_called_once_with(
            DESTINATION, id=DESTINATION, ack="client", headers={"activemq.prefetchSize": "3"}
        )

    def test_messages_are_routed_to_the_subscription_callback(self):
        callback = MagicMock()
        self.client.subscribe(DESTINATION, {"ack": "client"}, callback)
        self.listener.on_message(stomp_frame('{"a": 1}'))
        frame = callback.call_args[0][0]
        self.assertEqual(frame, Frame(command="MESSAGE", headers=stomp_frame().headers, body='{"a": 1}'))

    def test_messages_for_unknown_subscriptions_are_dropped(self):
        callback = MagicMock()
        self.client.subscribe(DESTINATION, {"ack": "client"}, callback)
        self.listener.on_message(stomp_frame(subscription="/queue/other", destination="/queue/other"))
        callback.assert_not_called()

    def test_ack_prefers_the_ack_header(self):
        self.client.ack(Frame(command="MESSAGE", headers={"message-id": "ID:1", "ack": "ACK:1"}))
        self.connection.ack.assert_called_once_with("ACK:1")

    def test_ack_falls_back_to_message_id(self):
        self.client.ack(Frame(command="MESSAGE", headers={"message-id": "ID:1"}))
        self.connection.ack.assert_called_once_with("ID:1")

    def test_ack_without_id_is_ignored(self):
        self.client.ack(Frame(command="RECEIPT", headers={"receipt-id": "r"}))
        self.connection.ack.assert_not_called()

    def test_unsubscribe_makes_the_client_idle(self):
        self.client.subscribe(DESTINATION, {"ack": "client"}, MagicMock())
        self.assertFalse(self.client.join(timeout=0.01))
        self.client.unsubscribe(DESTINATION)
        self.connection.unsubscribe.assert_called_once_with(id=DESTINATION)
        self.assertTrue(self.client.join(timeout=0.01))

    def test_unsubscribe_unknown_destination_is_ignored(self):
        self.client.unsubscribe(DESTINATION)
        self.connection.unsubscribe.assert_not_called()

    def test_close_disconnects(self):
        self.client.close()
        self.connection.disconnect.assert_called_once()
        self.assertFalse(self.client.is_connected())

    def test_close_inside_callback_is_deferred_to_join(self):
        def callback(frame):
            self.client.close()
            self.client.ack(frame)

        self.client.subscribe(DESTINATION, {"ack": "client"}, callback)
        self.listener.on_message(stomp_frame())
        self.connection.disconnect.assert_not_called()
        self.connection.ack.assert_called_once_with("ID:1")

        self.assertTrue(self.client.join(timeout=0.01))
        self.connection.disconnect.assert_called_once()

    def test_broker_disconnect_releases_join(self):
        self.client.subscribe(DESTINATION, {"ack": "client"}, MagicMock())
        self.listener.on_disconnected()
        self.assertTrue(self.client.join(timeout=0.01))

    def test_close_inside_callback_while_owner_waits_in_join(self):
        joined = []

        def callback(frame):
            self.client.close()
            time.sleep(0.05)
            self.client.ack(frame)

        self.client.subscribe(DESTINATION, {"ack": "client"}, callback)
        owner = threading.Thread(target=lambda: joined.append(self.client.join(timeout=2)))
        owner.start()
        time.sleep(0.01)
        self.listener.on_message(stomp_frame())
        owner.join(timeout=2)

        self.assertEqual(joined, [True])
        self.connection.disconnect.assert_called_once()
        calls = [name for name, _, _ in self.connection.method_calls]
        self.assertLess(calls.index("ack"), calls.index("disconnect"))


class TestStompPeek(TestCase):
    """peek over a StompClient whose broker delivers on its own thread."""

    def setUp(self):
        self.connection = MagicMock()
        self.connection.is_connected.return_value = True
        self.deliveries = []

        def deliver_later(destination, **kwargs):
            listener = self.connection.set_listener.call_args[0][1]
            thread = threading.Thread(target=listener.on_message, args=(stomp_frame('{"a": 1}'),))
            self.deliveries.append(thread)
            thread.start()

        self.connection.subscribe.side_effect = deliver_later

    def factory(self, settings):
        return StompClient(settings, connection=self.connection)

    def test_peek_acks_then_disconnects_once(self):
        messages = peek("stomp", 1, duration=2, settings=Settings(), client_factory=self.factory)
        for thread in self.deliveries:
            thread.join(timeout=2)

        self.assertEqual(messages, [{"a": 1, "message-id": "ID:1"}])
        self.connection.ack.assert_called_once_with("ID:1")
        self.connection.unsubscribe.assert_called_once_with(id=DESTINATION)
        self.connection.disconnect.assert_called_once()
