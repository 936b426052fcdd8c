"""
Tests for example scripts
"""

import io
from unittest.mock import patch

from examples.get_example import main as get_main
from examples.listener_example import main as listener_main
from examples.put_example import main as put_main


class TestPutExample:
  """Test cases for the put example script"""

  @patch("examples.put_example.time.time", return_value=1700000000.5)
  def test_put_sends_numbered_message(self, mock_time, fake_broker, capsys):
    status = put_main()

    out = capsys.readouterr().out
    assert status == 0
    assert out.startswith("Sent Message:\n")
    assert "testing 1 2 ..500" in out
    assert out.rstrip().endswith("SUCCESS")
    assert fake_broker.clients[0].kwargs["host"] == "0.0.0.0"
    assert all(client.close_calls == 1 for client in fake_broker.clients)

  def test_put_reports_broker_error(self, fake_broker, capsys):
    fake_broker.down = True

    status = put_main()

    lines = capsys.readouterr().out.splitlines()
    assert status == -1
    assert lines[0].startswith("BrokerError: Failed to connect")
    assert lines[1] == "Inner exception(s):"
    assert lines[-1] == "FAILURE"


class TestGetExample:
  """Test cases for the get example script"""

  @patch("examples.put_example.time.time", return_value=1700000000.125)
  def test_put_then_get(self, mock_time, fake_broker, capsys):
    put_main()
    capsys.readouterr()

    status = get_main()

    out = capsys.readouterr().out
    assert status == 0
    assert out == "\nReceived Message\n\ntesting 1 2 ..125\nSUCCESS\n"

  @patch("examples.get_example.RECEIVE_TIMEOUT", 0.1)
  def test_get_timeout_still_prints_header(self, fake_broker, capsys):
    status = get_main()

    out = capsys.readouterr().out
    assert status == 0
    assert out == "\nReceived Message\n\nSUCCESS\n"

  def test_get_reports_broker_error(self, fake_broker, capsys):
    fake_broker.down = True

    status = get_main()

    assert status == -1
    assert capsys.readouterr().out.splitlines()[-1] == "FAILURE"

  def test_get_uses_configured_queue(self, fake_broker, monkeypatch, capsys):
    monkeypatch.setenv("MQ_QUEUE_NAME", "DEV.QUEUE.1")
    monkeypatch.setenv("MQ_QMGR", "QM2")
    fake_broker.push_raw("QM2:DEV.QUEUE.1", b'{"type": "text", "text": "configured"}')

    assert get_main() == 0
    assert "configured" in capsys.readouterr().out


class TestListenerExample:
  """Test cases for the listener example script"""

  def test_listener_exits_on_command(self, fake_broker, monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("start\nexit\n"))

    status = listener_main()

    lines = capsys.readouterr().out.splitlines()
    assert status == 0
    assert "--Message Listener Started --" in lines
    assert lines[-1] == "--Exiting --"

  def test_listener_bad_port(self, monkeypatch, capsys):
    monkeypatch.setenv("MQ_PORT", "abc")

    assert listener_main() == -1
    assert "ConfigError" in capsys.readouterr().out

  @patch("examples.listener_example.run_listener", side_effect=KeyboardInterrupt)
  def test_listener_interrupt_exits_cleanly(self, mock_run_listener, capsys):
    assert listener_main() == 0
    assert "--Exiting --" in capsys.readouterr().out
