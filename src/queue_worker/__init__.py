"""Worker for publishing to and consuming from STOMP message queues."""

from queue_worker.config import Settings, configure, get_settings
from queue_worker.frame_model_dto import Frame, FrameKind
from queue_worker.worker import Worker, peek, publish

__all__ = [
    "Frame",
    "FrameKind",
    "Settings",
    "Worker",
    "configure",
    "get_settings",
    "peek",
    "publish",
]
