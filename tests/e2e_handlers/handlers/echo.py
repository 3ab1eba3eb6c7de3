"""Handler registered as "echo" by the consume CLI tests.

Records every payload it handles so tests can assert on dispatch.
"""

from queue_worker.handlers.base import BaseHandler


class Handler(BaseHandler):
    """Handler that keeps the payloads it was given."""

    def __init__(self) -> None:
        self.handled = []

    def handle(self, payload) -> None:
        self.handled.append(payload)
