"""
Tests for the tmux transport, with subprocess.run replaced by a fake tmux.
"""

import subprocess

import pytest

from pane_scheduler import transport
from pane_scheduler.transport import TmuxTransport, TransportError


class FakeTmux:
    """Answers tmux invocations from a table of (args prefix) -> (returncode, stdout)."""

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def __call__(self, cmd, **kwargs):
        assert cmd[0] == "tmux"
        args = tuple(cmd[1:])
        self.calls.append(args)
        for prefix, (code, stdout) in self.responses.items():
            if args[:len(prefix)] == prefix:
                return subprocess.CompletedProcess(cmd, code, stdout, "" if code == 0 else "no such target")
        return subprocess.CompletedProcess(cmd, 1, "", "unknown command")


@pytest.fixture
def no_delay(monkeypatch):
    monkeypatch.setattr(transport.time, "sleep", lambda seconds: None)


def test_send_types_text_then_enter(monkeypatch, no_delay):
    fake = FakeTmux({("send-keys",): (0, "")})
    monkeypatch.setattr(transport.subprocess, "run", fake)

    TmuxTransport().send("work:0.1", "status report")

    assert fake.calls == [
        ("send-keys", "-t", "work:0.1", "status report"),
        ("send-keys", "-t", "work:0.1", "Enter"),
    ]


def test_send_failure_raises(monkeypatch, no_delay):
    monkeypatch.setattr(transport.subprocess, "run", FakeTmux({}))

    with pytest.raises(TransportError, match="send-keys failed with exit code 1"):
        TmuxTransport().send("work:0.1", "x")


def test_timeout_raises(monkeypatch):
    def slow(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(transport.subprocess, "run", slow)

    with pytest.raises(TransportError, match="timed out"):
        TmuxTransport(timeout=1).send("work", "x")


def test_missing_binary_raises(monkeypatch):
    def missing(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(transport.subprocess, "run", missing)

    with pytest.raises(TransportError, match="failed to run tmux"):
        TmuxTransport().send("work", "x")


def test_invalid_arguments_raise_transport_error(monkeypatch):
    def null_byte(cmd, **kwargs):
        raise ValueError("embedded null byte")

    monkeypatch.setattr(transport.subprocess, "run", null_byte)
    tmux = TmuxTransport()

    with pytest.raises(TransportError, match="embedded null byte"):
        tmux.send("a\x00b:0.0", "x")
    assert tmux.session_exists("a\x00b") is False
    assert tmux.target_exists("a\x00b:0.0") is False


def test_existence_checks(monkeypatch):
    fake = FakeTmux({
        ("has-session", "-t", "work"): (0, ""),
        ("display-message", "-t", "work:0.1"): (0, "%3\n"),
    })
    monkeypatch.setattr(transport.subprocess, "run", fake)
    tmux = TmuxTransport()

    assert tmux.session_exists("work")
    assert not tmux.session_exists("ghost")
    assert tmux.target_exists("work:0.1")
    assert not tmux.target_exists("work:7.0")


def test_list_targets_walks_sessions_windows_panes(monkeypatch):
    fake = FakeTmux({
        ("list-sessions",): (0, "work\nbroken\n"),
        ("list-windows", "-t", "work"): (0, "0\n2\n"),
        ("list-panes", "-t", "work:0"): (0, "0\n1\n"),
        ("list-panes", "-t", "work:2"): (0, "0\n"),
    })
    monkeypatch.setattr(transport.subprocess, "run", fake)

    assert TmuxTransport().list_targets() == ["work:0.0", "work:0.1", "work:2.0"]


def test_list_targets_without_server(monkeypatch):
    monkeypatch.setattr(transport.subprocess, "run", FakeTmux({}))
    assert TmuxTransport().list_targets() == []
