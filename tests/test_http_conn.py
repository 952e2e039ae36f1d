import os

import pytest

from serverkit.http_conn import (
    ERROR_400_FORM,
    ERROR_404_FORM,
    ERROR_404_TITLE,
    ERROR_500_TITLE,
    READ_BUFFER_SIZE,
    CheckState,
    HttpCode,
    HttpConn,
    LineStatus,
)

BODY = b"hello world"


@pytest.fixture
def doc_root(tmp_path):
    hello = tmp_path / "hello.txt"
    hello.write_bytes(BODY)
    os.chmod(hello, 0o644)
    private = tmp_path / "private.txt"
    private.write_bytes(b"hidden")
    os.chmod(private, 0o600)
    empty = tmp_path / "empty.txt"
    empty.write_bytes(b"")
    os.chmod(empty, 0o644)
    sub = tmp_path / "sub"
    sub.mkdir()
    os.chmod(sub, 0o755)
    return str(tmp_path)


def _request(path="/hello.txt", headers=(), method="GET", version="HTTP/1.1"):
    lines = [f"{method} {path} {version}", *headers, "", ""]
    return "\r\n".join(lines).encode()


def _conn(doc_root, data):
    conn = HttpConn(doc_root)
    conn.feed(data)
    return conn


def test_get_existing_file(doc_root):
    conn = _conn(doc_root, _request())
    assert conn.process_read() is HttpCode.FILE_REQUEST
    assert conn.process_write(HttpCode.FILE_REQUEST) is True
    out = conn.output()
    assert out.startswith(b"HTTP/1.1 200 OK\r\n")
    assert f"Content-Length: {len(BODY)}\r\n".encode() in out
    assert b"Connection: close\r\n" in out
    assert out.endswith(b"\r\n\r\n" + BODY)


def test_missing_file_gives_404(doc_root):
    conn = _conn(doc_root, _request("/nothing.txt"))
    code = conn.process_read()
    assert code is HttpCode.NO_RESOURCE
    assert conn.process_write(code) is True
    out = conn.output().decode()
    assert out.startswith(f"HTTP/1.1 404 {ERROR_404_TITLE}\r\n")
    assert f"Content-Length: {len(ERROR_404_FORM)}\r\n" in out
    assert out.endswith(ERROR_404_FORM)


def test_unreadable_file_is_forbidden(doc_root):
    conn = _conn(doc_root, _request("/private.txt"))
    assert conn.process_read() is HttpCode.FORBIDDEN_REQUEST


def test_directory_is_bad_request(doc_root):
    conn = _conn(doc_root, _request("/sub"))
    assert conn.process_read() is HttpCode.BAD_REQUEST


@pytest.mark.parametrize(
    "data",
    [
        _request(method="POST"),
        _request(version="HTTP/1.0"),
        b"GET\r\n\r\n",
        b"GET /hello.txt\r\n\r\n",
        _request(path="hello.txt"),
    ],
)
def test_malformed_request_line(doc_root, data):
    conn = _conn(doc_root, data)
    assert conn.process_read() is HttpCode.BAD_REQUEST
    assert conn.process_write(HttpCode.BAD_REQUEST) is True
    assert conn.output().decode().endswith(ERROR_400_FORM)


def test_method_and_version_are_case_insensitive(doc_root):
    conn = _conn(doc_root, _request(method="get", version="http/1.1"))
    assert conn.process_read() is HttpCode.FILE_REQUEST
    assert conn.url == "/hello.txt"


def test_absolute_url_is_stripped(doc_root):
    conn = _conn(doc_root, _request(path="http://localhost/hello.txt"))
    assert conn.process_read() is HttpCode.FILE_REQUEST
    assert conn.url == "/hello.txt"
    assert conn.real_file == os.path.join(doc_root, "hello.txt")


def test_request_split_over_two_feeds(doc_root):
    data = _request()
    conn = HttpConn(doc_root)
    conn.feed(data[:10])
    assert conn.process_read() is HttpCode.NO_REQUEST
    assert conn.check_state is CheckState.REQUESTLINE
    conn.feed(data[10:])
    assert conn.process_read() is HttpCode.FILE_REQUEST


def test_headers_are_recorded(doc_root):
    conn = _conn(
        doc_root,
        _request(headers=["Host: localhost", "Connection: keep-alive", "X-Other: 1"]),
    )
    assert conn.process_read() is HttpCode.FILE_REQUEST
    assert conn.host == "localhost"
    assert conn.linger is True
    conn.process_write(HttpCode.FILE_REQUEST)
    assert b"Connection: keep-alive\r\n" in conn.output()


def test_content_body(doc_root):
    conn = _conn(doc_root, _request(headers=["Content-Length: 4"]) + b"abcd")
    assert conn.process_read() is HttpCode.FILE_REQUEST
    assert conn.content_length == 4
    assert conn.content == b"abcd"


def test_incomplete_content_waits(doc_root):
    conn = _conn(doc_root, _request(headers=["Content-Length: 4"]) + b"ab")
    assert conn.process_read() is HttpCode.NO_REQUEST
    assert conn.check_state is CheckState.CONTENT
    assert conn.content is None


def test_parse_line_statuses():
    conn = HttpConn()
    conn.feed(b"abc\r")
    assert conn.parse_line() is LineStatus.OPEN
    conn.feed(b"\n")
    assert conn.parse_line() is LineStatus.OK

    bare = HttpConn()
    bare.feed(b"abc\n")
    assert bare.parse_line() is LineStatus.BAD

    lone_cr = HttpConn()
    lone_cr.feed(b"abc\rdef")
    assert lone_cr.parse_line() is LineStatus.BAD


def test_feed_rejects_close_and_overflow():
    conn = HttpConn()
    assert conn.feed(b"") is False
    assert conn.feed(b"x" * (READ_BUFFER_SIZE + 5)) is False
    assert conn.read_idx == READ_BUFFER_SIZE
    assert conn.feed(b"y") is False


def test_empty_file_closes_connection(doc_root):
    conn = _conn(doc_root, _request("/empty.txt"))
    assert conn.process_read() is HttpCode.FILE_REQUEST
    assert conn.process_write(HttpCode.FILE_REQUEST) is False


def test_process_write_other_codes():
    conn = HttpConn()
    assert conn.process_write(HttpCode.NO_REQUEST) is False
    assert conn.process_write(HttpCode.INTERNAL_ERROR) is True
    assert conn.output().startswith(f"HTTP/1.1 500 {ERROR_500_TITLE}\r\n".encode())


def test_reset_clears_state(doc_root):
    conn = _conn(doc_root, _request(headers=["Connection: keep-alive"]))
    conn.process_read()
    conn.process_write(HttpCode.FILE_REQUEST)
    conn.reset()
    assert conn.read_idx == 0
    assert conn.output() == b""
    assert conn.linger is False
    assert conn.check_state is CheckState.REQUESTLINE