"""Base handler interface for queue messages.

A handler is registered under an identifier at startup. The worker resolves
it per message and calls validate then handle.
"""

from abc import ABC, abstractmethod
from typing import Any


class BaseHandler(ABC):
    """Abstract base for message handlers.

    Subclasses may override validate to check the payload before handling.
    handle is required and performs the actual work (e.g. call an API, update DB).
    """

    def validate(self, payload: Any) -> None:
        """Optionally validate the payload; raise if invalid."""
        return None

    @abstractmethod
    def handle(self, payload: Any) -> None:
        """Process the payload. Raising is logged by the worker; the message is still acknowledged."""
        pass

    def __call__(self, payload: Any) -> None:
        self.validate(payload)
        self.handle(payload)
