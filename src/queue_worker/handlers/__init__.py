from queue_worker.handlers.base import BaseHandler
from queue_worker.handlers.registry import HandlerRegistry, UnknownHandlerError, load_handlers
from queue_worker.handlers.resolvers import DestinationResolver, PayloadResolver

__all__ = [
    "BaseHandler",
    "DestinationResolver",
    "HandlerRegistry",
    "PayloadResolver",
    "UnknownHandlerError",
    "load_handlers",
]
