"""Registry mapping handler identifiers to handlers.

Populated once at startup, either by explicit register() calls or by
load_handlers(), which imports handlers.<name> modules from a handlers path.
"""

import importlib
import logging
import os
import sys
from typing import Any, Callable

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class UnknownHandlerError(LookupError):
    """Raised when no handler is registered under the requested identifier."""

    def __init__(self, identifier: str | None) -> None:
        super().__init__(f"No handler registered for {identifier!r}")
        self.identifier = identifier


class HandlerRegistry:
    """Mapping of identifier to a callable taking one payload argument."""

    def __init__(self, handlers: dict[str, Handler] | None = None) -> None:
        self._handlers: dict[str, Handler] = dict(handlers or {})

    def register(self, identifier: str, handler: Handler) -> Handler:
        if not callable(handler):
            raise TypeError(f"Handler for {identifier!r} is not callable")
        self._handlers[identifier] = handler
        return handler

    def resolve(self, identifier: str | None) -> Handler:
        try:
            return self._handlers[identifier]
        except KeyError:
            raise UnknownHandlerError(identifier) from None

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


def load_handlers(
    names: list[str],
    handlers_path: list[str] | None = None,
    registry: HandlerRegistry | None = None,
) -> HandlerRegistry:
    """Import handlers.<name> for each name and register its Handler instance.

    Args:
        names: Handler identifiers; dotted names map to nested modules.
        handlers_path: Directories containing a "handlers" package, added to sys.path.
        registry: Registry to populate; a new one is created when omitted.
    Returns:
        The populated registry.

    Raises:
        ImportError: If a handler module cannot be imported.
        AttributeError: If a handler module has no Handler class.
    """
    registry = registry if registry is not None else HandlerRegistry()
    for path in handlers_path or []:
        if os.path.exists(path) and path not in sys.path:
            sys.path.append(path)
    for name in names:
        module = importlib.import_module(f"handlers.{name}")
        registry.register(name, module.Handler())
        logger.debug("Registered handler %s from %s", name, module.__name__)
    return registry
