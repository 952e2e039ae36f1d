"""Incremental HTTP/1.1 request parser and response builder for static files."""

from __future__ import annotations

import logging
import os
import re
import stat
from enum import Enum, IntEnum
from typing import Any, Optional

logger = logging.getLogger(__name__)

FILENAME_LEN = 200
READ_BUFFER_SIZE = 2048
WRITE_BUFFER_SIZE = 1024
DOC_ROOT = "/var/www/html"

OK_200_TITLE = "OK"
ERROR_400_TITLE = "Bad Request"
ERROR_400_FORM = "Your request has bad syntax or is inherently impossible to satisfy.\n"
ERROR_403_TITLE = "Forbidden"
ERROR_403_FORM = "You do not have permission to get file from this server.\n"
ERROR_404_TITLE = "Not Found"
ERROR_404_FORM = "The requested file was not found on this server.\n"
ERROR_500_TITLE = "Internal Error"
ERROR_500_FORM = "There was an unusual problem serving the requested file.\n"
EMPTY_PAGE = "<html><body></body></html>"

_BLANK = re.compile(r"[ \t]")
_LINE_BREAK = re.compile(rb"[\r\n]")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_CR = ord("\r")
_LF = ord("\n")


class Method(IntEnum):
    GET = 0
    POST = 1
    HEAD = 2
    PUT = 3
    DELETE = 4
    TRACE = 5
    OPTIONS = 6
    CONNECT = 7
    PATCH = 8


class CheckState(IntEnum):
    REQUESTLINE = 0
    HEADER = 1
    CONTENT = 2


class HttpCode(Enum):
    NO_REQUEST = 0
    GET_REQUEST = 1
    BAD_REQUEST = 2
    NO_RESOURCE = 3
    FORBIDDEN_REQUEST = 4
    FILE_REQUEST = 5
    INTERNAL_ERROR = 6
    CLOSED_CONNECTION = 7


class LineStatus(IntEnum):
    OK = 0
    BAD = 1
    OPEN = 2


_ERROR_PAGES = {
    HttpCode.INTERNAL_ERROR: (500, ERROR_500_TITLE, ERROR_500_FORM),
    HttpCode.BAD_REQUEST: (400, ERROR_400_TITLE, ERROR_400_FORM),
    HttpCode.NO_RESOURCE: (404, ERROR_404_TITLE, ERROR_404_FORM),
    HttpCode.FORBIDDEN_REQUEST: (403, ERROR_403_TITLE, ERROR_403_FORM),
}


def _atol(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


class HttpConn:
    """State of one HTTP connection: bytes read so far and the response built."""

    def __init__(self, doc_root: str = DOC_ROOT, address: Any = None) -> None:
        self.doc_root = str(doc_root)
        self.address = address
        self.reset()

    def reset(self) -> None:
        """Forget the current request and response, ready for the next request."""
        self.check_state = CheckState.REQUESTLINE
        self.linger = False
        self.method = Method.GET
        self.url: Optional[str] = None
        self.version: Optional[str] = None
        self.host: Optional[str] = None
        self.content_length = 0
        self.content: Optional[bytes] = None
        self.real_file = ""
        self.file_content: Optional[bytes] = None
        self._read_buf = bytearray()
        self._checked_idx = 0
        self._start_line = 0
        self._line_end = 0
        self._write_buf = bytearray()
        self._with_file = False

    @property
    def read_idx(self) -> int:
        return len(self._read_buf)

    def feed(self, data: bytes) -> bool:
        """Append received bytes; False when the peer closed or the buffer is full."""
        room = READ_BUFFER_SIZE - len(self._read_buf)
        if room <= 0 or not data:
            return False
        self._read_buf += data[:room]
        return len(data) < room

    def parse_line(self) -> LineStatus:
        """Look for the end of the next line, which must end with CR LF."""
        buf = self._read_buf
        match = _LINE_BREAK.search(buf, self._checked_idx)
        if match is None:
            self._checked_idx = len(buf)
            return LineStatus.OPEN
        pos = match.start()
        self._checked_idx = pos
        if buf[pos] == _CR:
            if pos + 1 == len(buf):
                return LineStatus.OPEN
            if buf[pos + 1] == _LF:
                self._line_end = pos
                self._checked_idx = pos + 2
                return LineStatus.OK
            return LineStatus.BAD
        if pos > 1 and buf[pos - 1] == _CR:
            self._line_end = pos - 1
            self._checked_idx = pos + 1
            return LineStatus.OK
        return LineStatus.BAD

    def process_read(self) -> HttpCode:
        """Parse as much of the request as has arrived."""
        line_status = LineStatus.OK
        while (
            self.check_state is CheckState.CONTENT and line_status is LineStatus.OK
        ) or (line_status := self.parse_line()) is LineStatus.OK:
            if self.check_state is CheckState.CONTENT:
                if self._parse_content():
                    return self.do_request()
                line_status = LineStatus.OPEN
                continue
            text = bytes(self._read_buf[self._start_line:self._line_end]).decode("latin-1")
            self._start_line = self._checked_idx
            logger.debug("got 1 http line: %s", text)
            if self.check_state is CheckState.REQUESTLINE:
                if self._parse_request_line(text) is HttpCode.BAD_REQUEST:
                    return HttpCode.BAD_REQUEST
            elif self._parse_headers(text) is HttpCode.GET_REQUEST:
                return self.do_request()
        return HttpCode.NO_REQUEST

    def _parse_request_line(self, text: str) -> HttpCode:
        match = _BLANK.search(text)
        if match is None:
            return HttpCode.BAD_REQUEST
        if text[: match.start()].lower() != "get":
            return HttpCode.BAD_REQUEST
        self.method = Method.GET
        rest = text[match.end():].lstrip(" \t")
        match = _BLANK.search(rest)
        if match is None:
            return HttpCode.BAD_REQUEST
        url: Optional[str] = rest[: match.start()]
        version = rest[match.end():].lstrip(" \t")
        if version.lower() != "http/1.1":
            return HttpCode.BAD_REQUEST
        if url[:7].lower() == "http://":
            slash = url.find("/", 7)
            url = url[slash:] if slash >= 0 else None
        if not url or url[0] != "/":
            return HttpCode.BAD_REQUEST
        self.url = url
        self.version = version
        self.check_state = CheckState.HEADER
        return HttpCode.NO_REQUEST

    def _parse_headers(self, text: str) -> HttpCode:
        if not text:
            if self.method is Method.HEAD:
                return HttpCode.GET_REQUEST
            if self.content_length != 0:
                self.check_state = CheckState.CONTENT
                return HttpCode.NO_REQUEST
            return HttpCode.GET_REQUEST
        lowered = text.lower()
        if lowered.startswith("connection:"):
            if text[11:].lstrip(" \t").lower() == "keep-alive":
                self.linger = True
        elif lowered.startswith("content-length:"):
            self.content_length = _atol(text[15:].lstrip(" \t"))
        elif lowered.startswith("host:"):
            self.host = text[5:].lstrip(" \t")
        else:
            logger.debug("oop! unknow header %s", text)
        return HttpCode.NO_REQUEST

    def _parse_content(self) -> bool:
        if len(self._read_buf) < self.content_length + self._checked_idx:
            return False
        start = self._start_line
        self.content = bytes(self._read_buf[start:start + max(self.content_length, 0)])
        return True

    def do_request(self) -> HttpCode:
        """Locate the requested file under the document root and load it."""
        room = max(0, FILENAME_LEN - len(self.doc_root) - 1)
        self.real_file = self.doc_root + (self.url or "")[:room]
        try:
            info = os.stat(self.real_file)
        except OSError:
            return HttpCode.NO_RESOURCE
        if not info.st_mode & stat.S_IROTH:
            return HttpCode.FORBIDDEN_REQUEST
        if stat.S_ISDIR(info.st_mode):
            return HttpCode.BAD_REQUEST
        try:
            with open(self.real_file, "rb") as handle:
                self.file_content = handle.read()
        except OSError:
            return HttpCode.INTERNAL_ERROR
        return HttpCode.FILE_REQUEST

    def _add_response(self, text: str) -> bool:
        used = len(self._write_buf)
        if used >= WRITE_BUFFER_SIZE:
            return False
        encoded = text.encode("latin-1")
        if len(encoded) >= WRITE_BUFFER_SIZE - 1 - used:
            return False
        self._write_buf += encoded
        return True

    def _add_status_line(self, status: int, title: str) -> bool:
        return self._add_response(f"HTTP/1.1 {status} {title}\r\n")

    def _add_headers(self, content_length: int) -> None:
        self._add_response(f"Content-Length: {content_length}\r\n")
        self._add_response(f"Connection: {'keep-alive' if self.linger else 'close'}\r\n")
        self._add_response("\r\n")

    def process_write(self, code: HttpCode) -> bool:
        """Build the response for ``code``; False if the connection should close."""
        self._with_file = False
        if code in _ERROR_PAGES:
            status, title, form = _ERROR_PAGES[code]
            self._add_status_line(status, title)
            self._add_headers(len(form))
            return self._add_response(form)
        if code is not HttpCode.FILE_REQUEST:
            return False
        self._add_status_line(200, OK_200_TITLE)
        if self.file_content:
            self._add_headers(len(self.file_content))
            self._with_file = True
            return True
        # An empty file gets a placeholder page, yet the connection is closed.
        self._add_headers(len(EMPTY_PAGE))
        self._add_response(EMPTY_PAGE)
        return False

    def output(self) -> bytes:
        """The response bytes: headers and, for a file, its contents."""
        body = self.file_content if self._with_file and self.file_content else b""
        return bytes(self._write_buf) + body