import enum
import json
import logging
import re
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generator, List, Optional

import redis

log = logging.getLogger(__name__)

QUEUE_URI_PREFIX = "queue:///"
MAX_QUEUE_NAME_LENGTH = 48
# Seconds a delivery pump blocks on the broker before re-checking for stop
DELIVERY_POLL_TIMEOUT = 1
CONNECT_TIMEOUT = 10.0

_QUEUE_NAME_RE = re.compile(r"^[A-Za-z0-9._/%]+$")


class BrokerError(Exception):
  """Exception raised when a broker operation fails.

  ``linked_exception`` holds the underlying client error, if any. It may carry
  its own chain of causes.
  """

  def __init__(self, message: str, linked_exception: Optional[BaseException] = None):
    self.message = message
    self.linked_exception = linked_exception
    super().__init__(self.message)


class ConfigError(BrokerError):
  """Exception raised when a connection factory cannot be configured."""


class PayloadError(BrokerError):
  """Exception raised when the body of a message cannot be read."""


def error_chain(exc: BaseException) -> List[BaseException]:
  """Return ``exc`` followed by each linked or underlying cause, outermost first."""
  chain = [exc]
  seen = {id(exc)}
  current = getattr(exc, "linked_exception", None) or exc.__cause__
  while current is not None and id(current) not in seen:
    chain.append(current)
    seen.add(id(current))
    nxt = getattr(current, "linked_exception", None) or current.__cause__
    if nxt is None and not current.__suppress_context__:
      nxt = current.__context__
    current = nxt
  return chain


@dataclass(frozen=True)
class ConnectionParams:
  """Everything needed to open an authenticated client connection."""

  host: str
  port: int
  channel: str
  queue_manager: str
  application_name: str
  user: str
  password: str = field(repr=False)
  client_mode: bool = True
  cspauth: bool = True


class ContextState(enum.Enum):
  CREATED = "created"
  STARTED = "started"
  STOPPED = "stopped"
  CLOSED = "closed"


class ConnectionFactory:
  """Holds validated connection settings and opens contexts from them."""

  def __init__(self):
    self.params: Optional[ConnectionParams] = None
    self.usable = True

  def configure(self, params: ConnectionParams) -> None:
    """Validate and record ``params``; a failure leaves the factory unusable."""
    problems = []
    if not params.host:
      problems.append("host name is empty")
    if not isinstance(params.port, int) or not 0 <= params.port <= 65535:
      problems.append(f"port {params.port!r} is not in the range 0-65535")
    if not params.channel:
      problems.append("channel is empty")
    if not params.queue_manager:
      problems.append("queue manager name is empty")
    if not params.client_mode:
      problems.append("only client connection mode is supported")
    if params.cspauth and not params.user:
      problems.append("user authentication requires a user id")
    if problems:
      self.params = None
      self.usable = False
      raise ConfigError(f"Invalid connection properties: {'; '.join(problems)}")
    self.params = params
    self.usable = True
    log.debug(f"Factory configured for {params.queue_manager} at {params.host}({params.port})")

  def create_context(self) -> "Context":
    if not self.usable or self.params is None:
      raise ConfigError("Connection factory is not configured")
    return Context(self.params)


class Destination:
  """A resolved queue within a queue manager."""

  def __init__(self, name: str, queue_manager: str):
    self.name = name
    self.queue_manager = queue_manager
    self.key = f"{queue_manager}:{name}"

  @property
  def uri(self) -> str:
    return f"{QUEUE_URI_PREFIX}{self.name}"

  def __eq__(self, other: Any) -> bool:
    return isinstance(other, Destination) and other.key == self.key

  def __hash__(self) -> int:
    return hash(self.key)

  def __repr__(self) -> str:
    return f"Destination({self.uri!r})"


class Message:
  """A message and the metadata the broker attaches to it."""

  kind = "message"

  def __init__(self, message_id: Optional[str] = None, timestamp: Optional[int] = None,
               destination: Optional[Destination] = None, application_name: Optional[str] = None):
    self.message_id = message_id
    self.timestamp = timestamp
    self.destination = destination
    self.application_name = application_name

  def _body_text(self) -> str:
    return ""

  def __str__(self) -> str:
    destination = self.destination.uri if self.destination else None
    header = [
        f"  Message class:    {self.kind}",
        f"  MessageID:        {self.message_id}",
        f"  Timestamp:        {self.timestamp}",
        f"  Destination:      {destination}",
        f"  PutApplName:      {self.application_name}",
    ]
    return "\n".join(header + [self._body_text()])


class TextMessage(Message):
  kind = "text"

  def __init__(self, text: Any, **kwargs: Any):
    super().__init__(**kwargs)
    self.text = text

  def get_text(self) -> str:
    if not isinstance(self.text, str):
      raise PayloadError(f"Message {self.message_id} does not carry a text body")
    return self.text

  def _body_text(self) -> str:
    return str(self.text)


class BytesMessage(Message):
  kind = "bytes"

  def __init__(self, body: bytes, **kwargs: Any):
    super().__init__(**kwargs)
    self.body = body

  def get_bytes(self) -> bytes:
    return self.body

  def _body_text(self) -> str:
    return f"<{len(self.body)} bytes>"


def encode_message(message: TextMessage) -> str:
  return json.dumps({
      "type": "text",
      "id": message.message_id,
      "timestamp": message.timestamp,
      "app": message.application_name,
      "text": message.text,
  })


def decode_message(raw: bytes, destination: Destination) -> Message:
  """Build a message from a raw queue entry.

  Entries that are not a JSON text envelope come back as a ``BytesMessage``.
  """
  try:
    envelope = json.loads(raw)
  except (ValueError, RecursionError):
    # malformed, undecodable or too deeply nested to parse
    envelope = None
  if not isinstance(envelope, dict) or envelope.get("type") != "text":
    return BytesMessage(raw, destination=destination)
  return TextMessage(
      envelope.get("text"),
      message_id=envelope.get("id"),
      timestamp=envelope.get("timestamp"),
      destination=destination,
      application_name=envelope.get("app"),
  )


class _DeliveryPump(threading.Thread):
  """Pulls messages for one consumer and hands them to its listener."""

  def __init__(self, consumer: "Consumer"):
    super().__init__(name=f"simple_mq-delivery-{consumer.destination.name}", daemon=True)
    self.consumer = consumer
    self.stop_event = threading.Event()

  def run(self) -> None:
    consumer = self.consumer
    log.debug(f"Delivery started for '{consumer.destination.name}'")
    while not self.stop_event.is_set():
      try:
        result = consumer.context.client.blpop([consumer.destination.key], timeout=DELIVERY_POLL_TIMEOUT)
      except redis.RedisError as e:
        log.error(f"Delivery error on '{consumer.destination.name}': {e}")
        self.stop_event.wait(DELIVERY_POLL_TIMEOUT)
        continue
      if not result:
        continue
      _, raw = result
      try:
        message = decode_message(raw, consumer.destination)
        log.debug(f"Delivering {message.message_id} from '{consumer.destination.name}'")
        consumer.listener(message)
      except Exception:
        log.exception(f"Failed to deliver message from '{consumer.destination.name}'")
    log.debug(f"Delivery stopped for '{consumer.destination.name}'")


class Consumer:
  """Receive side of a destination, in pull mode or with an attached listener."""

  def __init__(self, context: "Context", destination: Destination):
    self.context = context
    self.destination = destination
    self.listener: Optional[Callable[[Message], Any]] = None
    self.closed = False

  def set_message_listener(self, listener: Callable[[Message], Any]) -> None:
    self.context._check_open()
    if self.context.state is ContextState.STARTED:
      raise BrokerError("Cannot set a message listener while the context is started")
    self.listener = listener

  def receive_text(self, timeout: Optional[float] = None) -> Optional[str]:
    """Wait up to ``timeout`` seconds for a text message; ``None`` on expiry."""
    self.context._check_open()
    if self.listener is not None:
      raise BrokerError("Cannot receive synchronously on a consumer with a message listener")
    try:
      result = self.context.client.blpop([self.destination.key], timeout=timeout or 0)
    except redis.RedisError as e:
      raise BrokerError(f"Failed to receive from '{self.destination.name}'", e) from e
    if not result:
      log.debug(f"No message on '{self.destination.name}' within {timeout}s")
      return None
    _, raw = result
    message = decode_message(raw, self.destination)
    if not isinstance(message, TextMessage):
      raise PayloadError(f"Message received from '{self.destination.name}' was not of type Text")
    return message.get_text()

  def close(self) -> None:
    self.closed = True


class Producer:
  """Send side of a context."""

  def __init__(self, context: "Context"):
    self.context = context

  def send(self, destination: Destination, message: TextMessage) -> TextMessage:
    self.context._check_open()
    message.message_id = f"ID:{uuid.uuid4().hex}"
    message.timestamp = int(time.time() * 1000)
    message.destination = destination
    message.application_name = self.context.params.application_name
    try:
      self.context.client.rpush(destination.key, encode_message(message))
    except redis.RedisError as e:
      raise BrokerError(f"Failed to send to '{destination.name}'", e) from e
    log.debug(f"Sent {message.message_id} to '{destination.name}'")
    return message

  def send_text(self, destination: Destination, text: str) -> TextMessage:
    return self.send(destination, TextMessage(text))


class Context:
  """An authenticated broker session owning consumers and producers.

  A new context does not dispatch messages to listeners until ``start()``.
  """

  def __init__(self, params: ConnectionParams):
    self.params = params
    self.state = ContextState.CREATED
    self.consumers: List[Consumer] = []
    self.producers: List[Producer] = []
    self._pumps: Dict[int, _DeliveryPump] = {}
    self.client = self._connect()

  def _connect(self) -> redis.Redis:
    params = self.params
    client_name = re.sub(r"\s+", "_", f"{params.application_name}@{params.channel}")
    client = redis.Redis(
        host=params.host,
        port=params.port,
        username=params.user if params.cspauth else None,
        password=params.password if params.cspauth else None,
        client_name=client_name,
        socket_connect_timeout=CONNECT_TIMEOUT,
        socket_keepalive=True,
        decode_responses=False,
    )
    try:
      client.ping()
    except redis.RedisError as e:
      try:
        client.close()
      except redis.RedisError:
        log.debug("Ignoring error while discarding failed connection")
      raise BrokerError(
          f"Failed to connect to queue manager '{params.queue_manager}' "
          f"with connection mode 'Client' and host name '{params.host}({params.port})'", e) from e
    log.info(f"Connected to {params.queue_manager} at {params.host}({params.port}) on {params.channel}")
    return client

  def __enter__(self) -> "Context":
    return self

  def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
    self.close()

  def _check_open(self) -> None:
    if self.state is ContextState.CLOSED:
      raise BrokerError("Context is closed")

  def _check_not_delivery_thread(self, operation: str) -> None:
    if threading.current_thread() in self._pumps.values():
      raise BrokerError(f"Cannot call {operation}() from a message listener on the same context")

  def create_queue(self, name: str) -> Destination:
    self._check_open()
    if name.startswith(QUEUE_URI_PREFIX):
      name = name[len(QUEUE_URI_PREFIX):]
    elif "://" in name:
      raise BrokerError(f"Unsupported destination URI '{name}'")
    if not name or len(name) > MAX_QUEUE_NAME_LENGTH or not _QUEUE_NAME_RE.match(name):
      raise BrokerError(f"Invalid queue name '{name}'")
    return Destination(name, self.params.queue_manager)

  def create_consumer(self, destination: Destination) -> Consumer:
    self._check_open()
    consumer = Consumer(self, destination)
    self.consumers.append(consumer)
    return consumer

  def create_producer(self) -> Producer:
    self._check_open()
    producer = Producer(self)
    self.producers.append(producer)
    return producer

  def start(self) -> None:
    """Begin, or resume, delivery to listeners. Idempotent."""
    self._check_open()
    self._check_not_delivery_thread("start")
    if self.state is ContextState.STARTED:
      return
    for consumer in self.consumers:
      if consumer.listener is not None and not consumer.closed:
        pump = _DeliveryPump(consumer)
        self._pumps[id(consumer)] = pump
        pump.start()
    self.state = ContextState.STARTED
    log.info("Context started")

  def stop(self) -> None:
    """Halt delivery. Returns once no listener is running. Idempotent."""
    self._check_open()
    self._check_not_delivery_thread("stop")
    if self.state is ContextState.STARTED:
      self._halt_delivery()
    self.state = ContextState.STOPPED
    log.info("Context stopped")

  def _halt_delivery(self) -> None:
    pumps = list(self._pumps.values())
    for pump in pumps:
      pump.stop_event.set()
    for pump in pumps:
      pump.join()
    self._pumps.clear()

  def close(self) -> None:
    """Release every child and the broker connection. Repeated calls do nothing."""
    if self.state is ContextState.CLOSED:
      return
    self._check_not_delivery_thread("close")
    self._halt_delivery()
    for consumer in self.consumers:
      consumer.close()
    self.state = ContextState.CLOSED
    try:
      self.client.close()
    except redis.RedisError as e:
      raise BrokerError("Failed to close the connection", e) from e
    finally:
      log.info(f"Context closed for {self.params.queue_manager}")


def queue_uri(name: str) -> str:
  return f"{QUEUE_URI_PREFIX}{name}"


def make_factory() -> ConnectionFactory:
  return ConnectionFactory()


def configure(factory: ConnectionFactory, params: ConnectionParams) -> None:
  factory.configure(params)


def open_context(factory: ConnectionFactory) -> Context:
  return factory.create_context()


def resolve_queue(context: Context, name: str) -> Destination:
  return context.create_queue(name)


def create_consumer(context: Context, destination: Destination) -> Consumer:
  return context.create_consumer(destination)


def create_producer(context: Context) -> Producer:
  return context.create_producer()


def set_listener(consumer: Consumer, callback: Callable[[Message], Any]) -> None:
  consumer.set_message_listener(callback)


def start(context: Context) -> None:
  context.start()


def stop(context: Context) -> None:
  context.stop()


def send_text(producer: Producer, destination: Destination, text: str) -> TextMessage:
  return producer.send_text(destination, text)


def receive_text(consumer: Consumer, timeout: Optional[float] = None) -> Optional[str]:
  return consumer.receive_text(timeout)


def close(context: Context) -> None:
  context.close()


@contextmanager
def queue_context(factory: ConnectionFactory) -> Generator[Context, None, None]:
  """Context manager for a broker context; closes it on every exit path."""
  context = open_context(factory)
  with context as ctx:
    yield ctx
