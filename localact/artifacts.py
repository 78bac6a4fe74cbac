"""HTTP server that stores and serves workflow artifacts.

Uploaded items live below a base directory, grouped by workflow run. Paths
taken from requests are always confined to that directory.
"""

from __future__ import annotations

import json
import logging
import os
import posixpath
import re
import threading
from dataclasses import dataclass, field
from socketserver import ThreadingMixIn
from typing import Any, BinaryIO, Callable, Iterable, Iterator, Optional, Protocol
from urllib.parse import parse_qs
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

GZIP_EXTENSION = ".gz__"

_CHUNK_SIZE = 64 * 1024
_log = logging.getLogger(__name__)


def _clean(path: str) -> str:
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _join(*parts: str) -> str:
    """Join non-empty parts with '/' and clean the result."""
    present = [part for part in parts if part]
    if not present:
        return ""
    return _clean("/".join(present))


def safe_resolve(base_dir: str, rel_path: str) -> str:
    """Resolve ``rel_path`` below ``base_dir`` without escaping it."""
    confined = _clean(posixpath.join("/", rel_path))
    return _join(base_dir, confined)


class ArtifactFileSystem(Protocol):
    """Storage used by the artifact server."""

    def open_writable(self, name: str) -> BinaryIO: ...

    def open_appendable(self, name: str) -> BinaryIO: ...

    def list_dir(self, name: str) -> list[str]: ...

    def walk_files(self, name: str) -> Iterable[str]: ...

    def open(self, name: str) -> BinaryIO: ...


class LocalFileSystem:
    """Artifact storage on the local disk."""

    @staticmethod
    def _ensure_parent(name: str) -> None:
        parent = os.path.dirname(name)
        if parent:
            os.makedirs(parent, exist_ok=True)

    def open_writable(self, name: str) -> BinaryIO:
        """Open ``name`` for writing, truncating it and creating parents."""
        self._ensure_parent(name)
        return open(name, "wb")

    def open_appendable(self, name: str) -> BinaryIO:
        """Open ``name`` for appending, creating it and its parents."""
        self._ensure_parent(name)
        return open(name, "ab")

    def list_dir(self, name: str) -> list[str]:
        """Return the sorted names of the entries in directory ``name``."""
        return sorted(os.listdir(name))

    def walk_files(self, name: str) -> Iterator[str]:
        """Yield every file below ``name`` in lexical order.

        If ``name`` is itself a file it is the only path yielded.
        """
        if not os.path.isdir(name):
            os.stat(name)
            yield name
            return
        with os.scandir(name) as it:
            entries = sorted(it, key=lambda entry: entry.name)
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                yield from self.walk_files(entry.path)
            else:
                yield entry.path

    def open(self, name: str) -> BinaryIO:
        """Open ``name`` for reading."""
        return open(name, "rb")


@dataclass
class _Request:
    environ: dict[str, Any]
    params: dict[str, str]

    @property
    def host(self) -> str:
        host = self.environ.get("HTTP_HOST")
        if host:
            return host
        return f"{self.environ.get('SERVER_NAME', '')}:{self.environ.get('SERVER_PORT', '')}"

    def query(self, key: str) -> str:
        values = parse_qs(self.environ.get("QUERY_STRING", ""), keep_blank_values=True)
        return values.get(key, [""])[0]

    def header(self, name: str) -> str:
        key = "HTTP_" + name.upper().replace("-", "_")
        return self.environ.get(key, "")

    def body_chunks(self) -> Iterator[bytes]:
        stream = self.environ.get("wsgi.input")
        try:
            remaining = int(self.environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            remaining = 0
        if stream is None:
            return
        while remaining > 0:
            chunk = stream.read(min(remaining, _CHUNK_SIZE))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


@dataclass
class _Response:
    status: str
    body: bytes
    headers: list[tuple[str, str]] = field(default_factory=list)

    @classmethod
    def json(cls, payload: Any) -> "_Response":
        body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return cls("200 OK", body, [("Content-Type", "application/json")])

    @classmethod
    def text(cls, status: str, message: str) -> "_Response":
        return cls(status, message.encode("utf-8"), [("Content-Type", "text/plain; charset=utf-8")])


_Handler = Callable[[_Request], _Response]
_SUCCESS = {"message": "success"}


class ArtifactApp:
    """WSGI application implementing the artifact upload and download API."""

    def __init__(self, base_dir: str, fs: Optional[ArtifactFileSystem] = None) -> None:
        self.base_dir = base_dir
        self.fs: ArtifactFileSystem = fs if fs is not None else LocalFileSystem()
        artifacts = re.compile(r"^/_apis/pipelines/workflows/(?P<run_id>[^/]+)/artifacts$")
        self._routes: list[tuple[str, re.Pattern[str], _Handler]] = [
            ("POST", artifacts, self._prepare_upload),
            ("PATCH", artifacts, self._finalize_upload),
            ("GET", artifacts, self._list_artifacts),
            ("PUT", re.compile(r"^/upload/(?P<run_id>[^/]+)$"), self._upload_blob),
            ("GET", re.compile(r"^/download/(?P<container>[^/]+)$"), self._list_container),
            ("GET", re.compile(r"^/artifact(?P<path>/.*)$"), self._download),
        ]

    def __call__(self, environ: dict[str, Any], start_response: Callable) -> list[bytes]:
        response = self._dispatch(environ)
        headers = response.headers + [("Content-Length", str(len(response.body)))]
        start_response(response.status, headers)
        return [response.body]

    def _dispatch(self, environ: dict[str, Any]) -> _Response:
        raw_path = environ.get("PATH_INFO", "") or "/"
        path = raw_path.encode("latin-1", "replace").decode("utf-8", "replace")
        method = environ.get("REQUEST_METHOD", "GET").upper()
        allowed: list[str] = []
        for route_method, pattern, handler in self._routes:
            match = pattern.match(path)
            if match is None:
                continue
            if route_method != method:
                allowed.append(route_method)
                continue
            try:
                return handler(_Request(environ, match.groupdict()))
            except Exception as exc:  # noqa: BLE001 - reported as a server error
                _log.error("%s %s failed: %s", method, path, exc)
                return _Response.text("500 Internal Server Error", str(exc))
        if allowed:
            response = _Response.text("405 Method Not Allowed", "Method Not Allowed")
            response.headers.append(("Allow", ", ".join(allowed)))
            return response
        return _Response.text("404 Not Found", "404 page not found")

    def _prepare_upload(self, request: _Request) -> _Response:
        run_id = request.params["run_id"]
        return _Response.json(
            {"fileContainerResourceUrl": f"http://{request.host}/upload/{run_id}"}
        )

    def _upload_blob(self, request: _Request) -> _Response:
        item_path = request.query("itemPath")
        if request.header("Content-Encoding") == "gzip":
            item_path += GZIP_EXTENSION
        run_path = safe_resolve(self.base_dir, request.params["run_id"])
        target = safe_resolve(run_path, item_path)

        content_range = request.header("Content-Range")
        if content_range and not content_range.startswith("bytes 0-"):
            opener = self.fs.open_appendable
        else:
            opener = self.fs.open_writable
        with opener(target) as file:
            for chunk in request.body_chunks():
                file.write(chunk)
        return _Response.json(_SUCCESS)

    def _finalize_upload(self, request: _Request) -> _Response:
        return _Response.json(_SUCCESS)

    def _list_artifacts(self, request: _Request) -> _Response:
        run_id = request.params["run_id"]
        entries = self.fs.list_dir(safe_resolve(self.base_dir, run_id))
        url = f"http://{request.host}/download/{run_id}"
        value = [{"name": name, "fileContainerResourceUrl": url} for name in entries]
        return _Response.json({"count": len(value), "value": value or None})

    def _list_container(self, request: _Request) -> _Response:
        container = request.params["container"]
        item_path = request.query("itemPath")
        root = safe_resolve(self.base_dir, _join(container, item_path))
        items = []
        for path in self.fs.walk_files(root):
            rel = os.path.relpath(path, root).replace(os.sep, "/")
            if rel.endswith(GZIP_EXTENSION):
                rel = rel[: -len(GZIP_EXTENSION)]
            items.append(
                {
                    "path": _join(item_path, rel),
                    "itemType": "file",
                    "contentLocation": (
                        f"http://{request.host}/artifact/{container}/{item_path}/{rel}"
                    ),
                }
            )
        return _Response.json({"value": items or None})

    def _download(self, request: _Request) -> _Response:
        target = safe_resolve(self.base_dir, request.params["path"][1:])
        headers: list[tuple[str, str]] = [("Content-Type", "application/octet-stream")]
        try:
            file = self.fs.open(target)
        except OSError:
            file = self.fs.open(target + GZIP_EXTENSION)
            headers.append(("Content-Encoding", "gzip"))
        with file:
            body = file.read()
        return _Response("200 OK", body, headers)


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        _log.debug("%s - %s", self.address_string(), format % args)


class _ThreadingServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class _ServerHandle:
    """Stops a running artifact server when called."""

    def __init__(self, server: Optional[WSGIServer] = None) -> None:
        self._server = server
        self._lock = threading.Lock()

    @property
    def address(self) -> Optional[tuple[str, int]]:
        if self._server is None:
            return None
        host, port = self._server.server_address[:2]
        return host, port

    def __call__(self) -> None:
        with self._lock:
            server, self._server = self._server, None
        if server is not None:
            server.shutdown()
            server.server_close()


def serve(artifact_path: str, addr: str, port: str | int) -> _ServerHandle:
    """Start the artifact server in the background and return its stopper.

    With an empty ``artifact_path`` no server is started.
    """
    if not artifact_path:
        return _ServerHandle()
    _log.debug("Artifacts base path '%s'", artifact_path)
    server = make_server(
        addr,
        int(port),
        ArtifactApp(artifact_path),
        server_class=_ThreadingServer,
        handler_class=_QuietHandler,
    )
    thread = threading.Thread(target=server.serve_forever, name="artifact-server", daemon=True)
    thread.start()
    _log.info("Start server on http://%s:%s", addr, port)
    return _ServerHandle(server)