import io
import re
import socket
import threading
import time

import pytest

from serverkit import oob_server
from serverkit.oob_server import serve_oob


@pytest.fixture
def connection():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        client = socket.create_connection(listener.getsockname(), timeout=5)
        conn, _ = listener.accept()
        yield client, conn
        client.close()
        conn.close()


def test_normal_and_urgent_data_are_separated(connection):
    client, conn = connection

    def client_side():
        client.sendall(b"123")
        time.sleep(0.1)
        client.send(b"abc", socket.MSG_OOB)
        time.sleep(0.1)
        client.sendall(b"123")
        client.shutdown(socket.SHUT_WR)

    sender = threading.Thread(target=client_side, daemon=True)
    sender.start()
    out = io.StringIO()
    serve_oob(conn, out)
    sender.join(5)
    assert not sender.is_alive()
    text = out.getvalue()
    assert "got 1 bytes of oob data 'c'" in text
    normal = "".join(re.findall(r"normal data '([^']*)'", text))
    assert normal == "123ab123"


def test_normal_data_counts_match_contents(connection):
    client, conn = connection
    client.sendall(b"hello")
    client.shutdown(socket.SHUT_WR)
    out = io.StringIO()
    serve_oob(conn, out)
    reports = re.findall(r"got (\d+) bytes of normal data '([^']*)'", out.getvalue())
    assert "".join(text for _, text in reports) == "hello"
    assert all(int(count) == len(text) for count, text in reports)


def test_immediate_close_reports_nothing(connection):
    client, conn = connection
    client.shutdown(socket.SHUT_WR)
    out = io.StringIO()
    serve_oob(conn, out)
    assert out.getvalue() == ""


def test_main_without_arguments_prints_usage(capsys):
    assert oob_server.main([]) == 1
    assert "usage:" in capsys.readouterr().out