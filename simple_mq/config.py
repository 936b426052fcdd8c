"""Connection defaults for the demo programs, overridable from the environment."""
import logging
import os
from typing import Mapping, Optional

from .core import ConfigError, ConnectionParams

log = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
ONE_SHOT_HOST = "0.0.0.0"
DEFAULT_PORT = 1414
DEFAULT_CHANNEL = "DEV.APP.SVRCONN"
DEFAULT_QUEUE_MANAGER = "QM1"
DEFAULT_APP_NAME = "JmsPutGet (JMS)"
DEFAULT_APP_USER = "app"
DEFAULT_APP_PASSWORD = "_APP_PASSWORD_"
DEFAULT_QUEUE_NAME = "LUKE.ALIAS.QUEUE"
DEFAULT_LOG_LEVEL = "WARNING"


def load_params(host: str = DEFAULT_HOST, environ: Optional[Mapping[str, str]] = None) -> ConnectionParams:
  """Build connection parameters from ``MQ_*`` variables, falling back to the defaults."""
  env = os.environ if environ is None else environ
  raw_port = env.get("MQ_PORT", str(DEFAULT_PORT))
  try:
    port = int(raw_port)
  except ValueError as e:
    raise ConfigError(f"MQ_PORT must be an integer, got {raw_port!r}", e) from e
  params = ConnectionParams(
      host=env.get("MQ_HOST", host),
      port=port,
      channel=env.get("MQ_CHANNEL", DEFAULT_CHANNEL),
      queue_manager=env.get("MQ_QMGR", DEFAULT_QUEUE_MANAGER),
      application_name=env.get("MQ_APP_NAME", DEFAULT_APP_NAME),
      user=env.get("MQ_APP_USER", DEFAULT_APP_USER),
      password=env.get("MQ_APP_PASSWORD", DEFAULT_APP_PASSWORD),
  )
  log.debug(f"Loaded connection parameters: {params}")
  return params


def queue_name(environ: Optional[Mapping[str, str]] = None) -> str:
  env = os.environ if environ is None else environ
  return env.get("MQ_QUEUE_NAME", DEFAULT_QUEUE_NAME)


def log_level(environ: Optional[Mapping[str, str]] = None) -> str:
  env = os.environ if environ is None else environ
  return env.get("MQ_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
