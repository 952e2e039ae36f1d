import socket
import threading
import time

from serverkit import idle_server
from serverkit.idle_server import IdleServer, RemainingTimeout


class _FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_wait_without_events_resets_and_expires():
    clock = _FakeClock()
    remaining = RemainingTimeout(5000, clock)
    assert remaining.start() == 5000
    clock.now = 5.0
    assert remaining.update(False) is True
    assert remaining.timeout == 5000


def test_early_return_shortens_next_wait():
    clock = _FakeClock()
    remaining = RemainingTimeout(5000, clock)
    remaining.start()
    clock.now = 2.0
    assert remaining.update(True) is False
    assert remaining.timeout == 3000
    assert remaining.start() == 3000


def test_running_out_while_busy_expires_and_resets():
    clock = _FakeClock()
    remaining = RemainingTimeout(5000, clock)
    remaining.start()
    clock.now = 6.0
    assert remaining.update(True) is True
    assert remaining.timeout == remaining.initial


def test_timeout_never_grows_between_resets():
    clock = _FakeClock()
    remaining = RemainingTimeout(1000, clock)
    previous = remaining.timeout
    for _ in range(3):
        remaining.start()
        clock.now += 0.1
        remaining.update(True)
        assert remaining.timeout <= previous
        previous = remaining.timeout


def _start(server):
    thread = threading.Thread(target=server.serve, daemon=True)
    thread.start()
    return thread


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate() and time.monotonic() < deadline:
        time.sleep(0.01)
    return predicate()


def test_idle_connection_is_closed():
    server = IdleServer("127.0.0.1", 0, timeslot=0.05, handle_signals=False)
    thread = _start(server)
    try:
        with socket.create_connection(server.address, timeout=5) as client:
            assert client.recv(16) == b""
        assert _wait_for(lambda: server.connection_count == 0)
    finally:
        server.stop()
        thread.join(5)
    assert not thread.is_alive()


def test_client_close_removes_connection():
    server = IdleServer("127.0.0.1", 0, timeslot=10, handle_signals=False)
    thread = _start(server)
    try:
        client = socket.create_connection(server.address, timeout=5)
        assert _wait_for(lambda: server.connection_count == 1)
        client.close()
        assert _wait_for(lambda: server.connection_count == 0)
    finally:
        server.stop()
        thread.join(5)
    assert not thread.is_alive()


def test_main_without_arguments_prints_usage(capsys):
    assert idle_server.main(["127.0.0.1"]) == 1
    assert "usage:" in capsys.readouterr().out