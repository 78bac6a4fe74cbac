"""Fetching and showing release notices for the running version.

The notice endpoint is taken from ``ACT_NOTICE_URL``; without it, or with
``ACT_DISABLE_VERSION_CHECK=1``, no request is made.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import sys
import threading
import time
import urllib.request
from dataclasses import dataclass
from typing import Optional, TextIO
from urllib.error import HTTPError, URLError
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

DISABLE_ENV = "ACT_DISABLE_VERSION_CHECK"
NOTICE_URL_ENV = "ACT_NOTICE_URL"

_REQUEST_TIMEOUT = 30.0
_log = logging.getLogger(__name__)

_LEVELS = {
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}

_GOARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
}


@dataclass(frozen=True)
class Notice:
    level: str
    message: str


def _os_name() -> str:
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform == "win32":
        return "windows"
    return sys.platform


def _arch_name() -> str:
    machine = platform.machine().lower()
    return _GOARCH.get(machine, machine)


def etag_path() -> str:
    """Return the cache file holding the last notices ETag, creating its directory."""
    cache = os.environ.get("XDG_CACHE_HOME", "")
    if not cache:
        try:
            cache = os.path.join(os.path.expanduser("~"), ".cache")
        except (RuntimeError, KeyError):
            cache = os.path.abspath(".")
    directory = os.path.join(cache, "act")
    os.makedirs(directory, exist_ok=True)
    return os.path.join(directory, ".notices.etag")


def load_notices_etag() -> str:
    """Return the saved ETag, or an empty string."""
    path = etag_path()
    try:
        with open(path, encoding="utf-8") as file:
            content = file.read()
    except OSError as exc:
        _log.debug("Unable to load etag from %s: %s", path, exc)
        return ""
    return content.removesuffix("\n")


def save_notices_etag(etag: str) -> None:
    """Store ``etag`` in the cache file, readable only by the owner."""
    path = etag_path()
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as file:
            file.write(etag.removesuffix("\n"))
    except OSError as exc:
        _log.debug("Unable to save etag to %s: %s", path, exc)


def _notice_url(base: str, version: str) -> str:
    parts = urlsplit(base)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query += [("os", _os_name()), ("arch", _arch_name()), ("version", version)]
    query.sort(key=lambda pair: pair[0])
    return urlunsplit(parts._replace(query=urlencode(query)))


def get_version_notices(version: str) -> Optional[list[Notice]]:
    """Fetch notices for ``version``; None when there is nothing new or on failure."""
    if os.environ.get(DISABLE_ENV) == "1":
        return None
    base = os.environ.get(NOTICE_URL_ENV, "")
    if not base:
        _log.debug("No notice URL configured")
        return None

    try:
        request = urllib.request.Request(_notice_url(base, version), method="GET")
    except ValueError as exc:
        _log.debug("%s", exc)
        return None
    etag = load_notices_etag()
    if etag:
        _log.debug("Conditional GET for notices etag=%s", etag)
        request.add_header("If-None-Match", etag)

    try:
        with urllib.request.urlopen(request, timeout=_REQUEST_TIMEOUT) as response:
            status, headers, body = response.status, response.headers, response.read()
    except HTTPError as exc:
        status, headers = exc.code, exc.headers
        try:
            body = exc.read()
        except OSError:
            body = b""
    except (URLError, OSError, ValueError) as exc:
        _log.debug("%s", exc)
        return None

    new_etag = headers.get("Etag", "") if headers is not None else ""
    if new_etag:
        _log.debug("Saving notices etag=%s", new_etag)
        save_notices_etag(new_etag)

    if status == 304:
        _log.debug("No new notices")
        return None
    try:
        payload = json.loads(body.decode("utf-8"))
        return [
            Notice(level=str(item.get("level", "")), message=str(item.get("message", "")))
            for item in payload
        ]
    except (ValueError, TypeError, AttributeError) as exc:
        _log.debug("%s", exc)
        return None


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(
            {
                "level": record.levelname.lower(),
                "msg": record.getMessage(),
                "time": time.strftime("%Y-%m-%dT%H:%M:%S%z", time.localtime(record.created)),
            }
        )


class NoticeLoader:
    """Loads notices in the background and shows them when asked."""

    def __init__(self, stream: Optional[TextIO] = None, timeout: float = 1.0) -> None:
        self._stream = stream
        self._timeout = timeout
        self._done = threading.Event()
        self._notices: Optional[list[Notice]] = None

    def start(self, version: str) -> None:
        """Begin fetching notices for ``version`` in a background thread."""

        def load() -> None:
            try:
                self._notices = get_version_notices(version)
            finally:
                self._done.set()

        threading.Thread(target=load, name="notices", daemon=True).start()

    def display(self, json_logger: bool = False) -> list[Notice]:
        """Wait briefly for the notices, log them and return them."""
        if not self._done.wait(self._timeout):
            _log.debug("Timeout waiting for notices")
            return []
        notices = self._notices or []
        if not notices:
            return []

        stream = self._stream if self._stream is not None else sys.stderr
        handler = logging.StreamHandler(stream)
        handler.setFormatter(
            _JsonFormatter() if json_logger else logging.Formatter("%(levelname)-8s %(message)s")
        )
        logger = logging.Logger("localact.notices", logging.INFO)
        logger.addHandler(handler)
        stream.write("\n")
        for notice in notices:
            level = _LEVELS.get(notice.level.lower(), logging.INFO)
            logger.log(level, "%s", notice.message)
        handler.flush()
        return notices