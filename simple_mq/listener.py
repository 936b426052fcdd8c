import logging
import sys
from typing import Optional, TextIO

from .core import Message, TextMessage, error_chain

log = logging.getLogger(__name__)


def format_error(exc: BaseException) -> str:
  """Render an error and its chain of causes, one per line."""
  chain = error_chain(exc)
  lines = [f"{type(exc).__name__}: {exc}"]
  if len(chain) > 1:
    lines.append("Inner exception(s):")
    lines.extend(f"{type(cause).__name__}: {cause}" for cause in chain[1:])
  return "\n".join(lines)


def print_error(exc: BaseException, out: Optional[TextIO] = None) -> None:
  print(format_error(exc), file=out or sys.stdout, flush=True)


class MessagePrinter:
  """Message listener that writes each delivered message to a stream.

  Runs on the consumer's delivery thread, so it only reads the message it is
  handed and writes once.
  """

  def __init__(self, out: Optional[TextIO] = None):
    self.out = out or sys.stdout

  def __call__(self, message: Message) -> None:
    if not isinstance(message, TextMessage):
      self._write("message was not of type Text")
      return
    try:
      text = message.get_text()
    except Exception as e:
      log.warning(f"Could not read payload of {message.message_id}: {e}")
      self._write(format_error(e))
      return
    self._write(f"received message with payload: {text}")

  def _write(self, line: str) -> None:
    self.out.write(f"{line}\n")
    self.out.flush()
