import logging
from typing import Any, Callable, Optional

from .core import (
    BrokerError,
    ConnectionFactory,
    Consumer,
    Context,
    ContextState,
    Destination,
    Message,
    TextMessage,
    create_consumer,
    create_producer,
    open_context,
    queue_context,
    queue_uri,
    resolve_queue,
    send_text,
    set_listener,
)

log = logging.getLogger(__name__)


class ListenerSession:
  """Owns the long-lived consumer context and opens a producer context per send.

  The listener is attached before the context can be started, so nothing is
  dispatched until ``start()``.
  """

  def __init__(self, factory: ConnectionFactory, queue_name: str, listener: Callable[[Message], Any]):
    self.factory = factory
    self.queue_name = queue_name
    self.listener = listener
    self.context: Optional[Context] = None
    self.destination: Optional[Destination] = None
    self.consumer: Optional[Consumer] = None

  def __enter__(self) -> "ListenerSession":
    self.open()
    return self

  def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
    self.close()

  @property
  def state(self) -> Optional[ContextState]:
    return self.context.state if self.context else None

  def open(self) -> None:
    if self.context is not None:
      raise BrokerError(f"Session for '{self.queue_name}' is already open")
    context = open_context(self.factory)
    try:
      self.destination = resolve_queue(context, queue_uri(self.queue_name))
      self.consumer = create_consumer(context, self.destination)
      set_listener(self.consumer, self.listener)
    except BaseException:
      context.close()
      raise
    self.context = context
    log.info(f"Listener attached to '{self.queue_name}'")

  def _require_context(self) -> Context:
    if self.context is None:
      raise RuntimeError("Session is not open")
    return self.context

  def start(self) -> None:
    self._require_context().start()

  def stop(self) -> None:
    self._require_context().stop()

  def send(self, payload: str) -> TextMessage:
    """Send ``payload`` through a fresh producer context, closed before returning."""
    if self.destination is None:
      raise RuntimeError("Session is not open")
    with queue_context(self.factory) as producer_context:
      producer = create_producer(producer_context)
      return send_text(producer, self.destination, payload)

  def close(self) -> None:
    if self.context is not None:
      self.context.close()
