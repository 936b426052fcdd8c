"""Test configuration and fixtures for simple_mq tests."""
import threading
import time
from collections import defaultdict, deque

import pytest
import redis
from unittest.mock import patch

from simple_mq.core import ConnectionParams, configure, make_factory


class FakeBroker:
  """In-memory stand-in for the Redis server shared by every fake client."""

  def __init__(self):
    self.lists = defaultdict(deque)
    self.cond = threading.Condition()
    self.clients = []
    self.down = False

  def push_raw(self, key, value):
    with self.cond:
      self.lists[key].append(value)
      self.cond.notify_all()


class FakeRedis:
  """Implements the slice of ``redis.Redis`` the client adapter uses."""

  def __init__(self, broker, **kwargs):
    self.broker = broker
    self.kwargs = kwargs
    self.close_calls = 0
    broker.clients.append(self)

  def ping(self):
    if self.broker.down:
      raise redis.ConnectionError("Error 111 connecting to localhost:1414. Connection refused.")
    return True

  def rpush(self, key, value):
    if isinstance(value, str):
      value = value.encode("utf-8")
    self.broker.push_raw(key, value)
    return len(self.broker.lists[key])

  def blpop(self, keys, timeout=0):
    deadline = time.monotonic() + timeout if timeout else None
    with self.broker.cond:
      while True:
        for key in keys:
          if self.broker.lists[key]:
            return key.encode("utf-8"), self.broker.lists[key].popleft()
        if deadline is None:
          self.broker.cond.wait()
          continue
        remaining = deadline - time.monotonic()
        if remaining <= 0:
          return None
        self.broker.cond.wait(remaining)

  def close(self):
    self.close_calls += 1


@pytest.fixture(autouse=True)
def clean_environ(monkeypatch):
  """Keep MQ_* variables from the developer's shell out of the tests."""
  for name in ("MQ_HOST", "MQ_PORT", "MQ_CHANNEL", "MQ_QMGR", "MQ_APP_NAME", "MQ_APP_USER",
               "MQ_APP_PASSWORD", "MQ_QUEUE_NAME", "MQ_LOG_LEVEL"):
    monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_broker(monkeypatch):
  """Patch redis.Redis so every context talks to one in-memory broker."""
  broker = FakeBroker()
  monkeypatch.setattr("simple_mq.core.DELIVERY_POLL_TIMEOUT", 0.05)
  with patch("simple_mq.core.redis.Redis", side_effect=lambda **kwargs: FakeRedis(broker, **kwargs)):
    yield broker


@pytest.fixture
def params():
  """Standard connection parameters for testing."""
  return ConnectionParams(
      host="localhost",
      port=1414,
      channel="DEV.APP.SVRCONN",
      queue_manager="QM1",
      application_name="JmsPutGet (JMS)",
      user="app",
      password="passw0rd",
  )


@pytest.fixture
def factory(params):
  """A configured connection factory."""
  cf = make_factory()
  configure(cf, params)
  return cf


@pytest.fixture
def queue_name():
  """Standard queue name for testing."""
  return "LUKE.ALIAS.QUEUE"


def _wait_for(predicate, timeout=2.0):
  deadline = time.monotonic() + timeout
  while time.monotonic() < deadline:
    if predicate():
      return True
    time.sleep(0.01)
  return predicate()


@pytest.fixture
def wait_for():
  """Poll a predicate until it is true or a timeout elapses."""
  return _wait_for
