"""
simple_mq - A simple point-to-point message queue client

This package provides a thin broker client (contexts, consumers, producers,
asynchronous listeners) over Redis lists, plus the session manager and
interactive console used by the listener demo.
"""

from .core import (
    BrokerError,
    BytesMessage,
    ConfigError,
    ConnectionFactory,
    ConnectionParams,
    Context,
    ContextState,
    Destination,
    Message,
    PayloadError,
    TextMessage,
    close,
    configure,
    create_consumer,
    create_producer,
    make_factory,
    open_context,
    queue_context,
    queue_uri,
    receive_text,
    resolve_queue,
    send_text,
    set_listener,
    start,
    stop,
)
from .console import CommandLoop, run_listener
from .listener import MessagePrinter, format_error, print_error
from .session import ListenerSession

__version__ = "0.1.0"
__description__ = "A simple point-to-point message queue client"

__all__ = [
    "BrokerError", "BytesMessage", "ConfigError", "ConnectionFactory", "ConnectionParams", "Context",
    "ContextState", "Destination", "Message", "PayloadError", "TextMessage", "close", "configure",
    "create_consumer", "create_producer", "make_factory", "open_context", "queue_context", "queue_uri",
    "receive_text", "resolve_queue", "send_text", "set_listener", "start", "stop", "CommandLoop",
    "run_listener", "MessagePrinter", "format_error", "print_error", "ListenerSession",
]
