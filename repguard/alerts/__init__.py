from .base import AlertPayload, AlertSink, AlertManager, make_payload
from .sinks import LogSink, FileSink, WebhookSink

__all__ = [
    "AlertPayload",
    "AlertSink",
    "AlertManager",
    "make_payload",
    "LogSink",
    "FileSink",
    "WebhookSink",
]
