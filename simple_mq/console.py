"""Interactive console driving a listener session from standard input."""
import logging
import sys
from typing import Callable, Dict, Optional, TextIO

from .core import BrokerError, ConnectionParams, configure, make_factory
from .listener import MessagePrinter, format_error
from .session import ListenerSession

log = logging.getLogger(__name__)

PROMPT = "Ready :"
PAYLOAD_PROMPT = "Payload :"
HELP = "Help: Valid commands are start/restart, stop, send, and exit"


class CommandLoop:
  """Reads one command per line and applies it to a ``ListenerSession``."""

  def __init__(self, session: ListenerSession, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
    self.session = session
    self.stdin = stdin or sys.stdin
    self.stdout = stdout or sys.stdout
    self._commands: Dict[str, Callable[[], Optional[int]]] = {
        "start": self._start,
        "restart": self._start,
        "stop": self._stop,
        "send": self._send,
        "exit": self._exit,
    }

  def _write(self, line: str) -> None:
    # one write per line so delivery output cannot split it
    self.stdout.write(f"{line}\n")
    self.stdout.flush()

  def _readline(self) -> Optional[str]:
    """Next line without its newline, or ``None`` at end of input."""
    line = self.stdin.readline()
    if line == "":
      return None
    return line.rstrip("\r\n")

  def run(self) -> int:
    """Process commands until ``exit`` or end of input; returns the exit status."""
    while True:
      self._write(PROMPT)
      try:
        line = self._readline()
      except (OSError, UnicodeDecodeError) as e:
        log.warning(f"Failed to read command: {e}")
        self._write(format_error(e))
        continue
      command = "exit" if line is None else line.lower()
      status = self.dispatch(command)
      if status is not None:
        return status

  def dispatch(self, command: str) -> Optional[int]:
    handler = self._commands.get(command)
    if handler is None:
      self._write(HELP)
      return None
    log.debug(f"Command: {command}")
    return handler()

  def _start(self) -> None:
    try:
      self.session.start()
    except BrokerError as e:
      self._write(format_error(e))
      return
    self._write("--Message Listener Started --")

  def _stop(self) -> None:
    try:
      self.session.stop()
    except BrokerError as e:
      self._write(format_error(e))
      return
    self._write("--Message Listener Stopped--")

  def _send(self) -> None:
    self._write(PAYLOAD_PROMPT)
    try:
      payload = self._readline()
    except (OSError, UnicodeDecodeError) as e:
      self._write(format_error(e))
      return
    if payload is None:
      log.warning("End of input before a payload was entered; nothing sent")
      return
    try:
      self.session.send(payload)
    except BrokerError as e:
      self._write("Exception sending message!")
      self._write(format_error(e))
      return
    self._write("--Sent Message--")

  def _exit(self) -> int:
    try:
      self.session.close()
    except BrokerError as e:
      self._write(format_error(e))
    self._write("--Exiting --")
    return 0


def run_listener(params: ConnectionParams, queue_name: str,
                 stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> int:
  """Connect, attach a ``MessagePrinter`` to ``queue_name`` and run the console."""
  out = stdout or sys.stdout
  print(f"MQ Test: Connecting to {params.host}, PORT: {params.port}, CHANNEL: {params.channel},"
        f"Connecting to {queue_name}", file=out, flush=True)
  factory = make_factory()
  session = ListenerSession(factory, queue_name, MessagePrinter(out))
  try:
    configure(factory, params)
    session.open()
  except BrokerError as e:
    print(format_error(e), file=out, flush=True)
    return -1
  try:
    print("The message listener is running", file=out, flush=True)
    return CommandLoop(session, stdin, out).run()
  finally:
    session.close()
