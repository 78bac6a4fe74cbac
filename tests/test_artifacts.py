import io
import json
import urllib.request
from wsgiref.util import setup_testing_defaults

import pytest

from localact.artifacts import (
    ArtifactApp,
    LocalFileSystem,
    safe_resolve,
    serve,
)

BASE = "artifact/server/path"


class _MemFile(io.BytesIO):
    def __init__(self, store, name, initial=b""):
        super().__init__(initial)
        self.seek(0, io.SEEK_END)
        self._store = store
        self._name = name

    def close(self):
        if not self.closed:
            self._store[self._name] = self.getvalue()
        super().close()


class MemoryFS:
    def __init__(self, files=None):
        self.files = dict(files or {})
        self.appended = []

    def open_writable(self, name):
        return _MemFile(self.files, name)

    def open_appendable(self, name):
        self.appended.append(name)
        return _MemFile(self.files, name, self.files.get(name, b""))

    def list_dir(self, name):
        prefix = name + "/"
        names = {key[len(prefix):].split("/")[0] for key in self.files if key.startswith(prefix)}
        if not names:
            raise FileNotFoundError(name)
        return sorted(names)

    def walk_files(self, name):
        if name in self.files:
            yield name
            return
        prefix = name + "/"
        found = sorted(key for key in self.files if key.startswith(prefix))
        if not found:
            raise FileNotFoundError(name)
        yield from found

    def open(self, name):
        if name not in self.files:
            raise FileNotFoundError(name)
        return io.BytesIO(self.files[name])


def call(app, method, path, query="", body=b"", headers=None):
    environ = {
        "REQUEST_METHOD": method,
        "PATH_INFO": path,
        "QUERY_STRING": query,
        "HTTP_HOST": "localhost",
        "CONTENT_LENGTH": str(len(body)),
        "wsgi.input": io.BytesIO(body),
    }
    for key, value in (headers or {}).items():
        environ["HTTP_" + key.upper().replace("-", "_")] = value
    setup_testing_defaults(environ)
    captured = {}

    def start_response(status, response_headers):
        captured["status"] = status
        captured["headers"] = dict(response_headers)

    data = b"".join(app(environ, start_response))
    return captured["status"], captured["headers"], data


def test_new_artifact_upload_prepare():
    app = ArtifactApp(BASE, MemoryFS())
    status, _, body = call(app, "POST", "/_apis/pipelines/workflows/1/artifacts")
    assert status.startswith("200")
    assert json.loads(body)["fileContainerResourceUrl"] == "http://localhost/upload/1"


def test_artifact_upload_blob():
    memfs = MemoryFS()
    app = ArtifactApp(BASE, memfs)
    status, _, body = call(app, "PUT", "/upload/1", "itemPath=some/file", b"content")
    assert status.startswith("200")
    assert json.loads(body)["message"] == "success"
    assert memfs.files["artifact/server/path/1/some/file"] == b"content"


def test_finalize_artifact_upload():
    app = ArtifactApp(BASE, MemoryFS())
    status, _, body = call(app, "PATCH", "/_apis/pipelines/workflows/1/artifacts")
    assert status.startswith("200")
    assert json.loads(body)["message"] == "success"


def test_list_artifacts():
    memfs = MemoryFS({"artifact/server/path/1/file.txt": b""})
    app = ArtifactApp(BASE, memfs)
    status, _, body = call(app, "GET", "/_apis/pipelines/workflows/1/artifacts")
    assert status.startswith("200")
    response = json.loads(body)
    assert response["count"] == 1
    assert response["value"][0]["name"] == "file.txt"
    assert response["value"][0]["fileContainerResourceUrl"] == "http://localhost/download/1"


def test_list_artifact_container():
    memfs = MemoryFS({"artifact/server/path/1/some/file": b""})
    app = ArtifactApp(BASE, memfs)
    status, _, body = call(app, "GET", "/download/1", "itemPath=some/file")
    assert status.startswith("200")
    value = json.loads(body)["value"]
    assert len(value) == 1
    assert value[0]["path"] == "some/file"
    assert value[0]["itemType"] == "file"
    assert value[0]["contentLocation"] == "http://localhost/artifact/1/some/file/."


def test_download_artifact_file():
    memfs = MemoryFS({"artifact/server/path/1/some/file": b"content"})
    app = ArtifactApp(BASE, memfs)
    status, _, body = call(app, "GET", "/artifact/1/some/file")
    assert status.startswith("200")
    assert body == b"content"


@pytest.mark.parametrize(
    "rel_path, expected",
    [
        ("baz", "/foo/bar/baz"),
        ("baz/blue", "/foo/bar/baz/blue"),
        ("baz/../../blue", "/foo/bar/blue"),
        ("../../parent", "/foo/bar/parent"),
        ("/root", "/foo/bar/root"),
        ("/", "/foo/bar"),
        ("", "/foo/bar"),
    ],
)
def test_safe_resolve(rel_path, expected):
    assert safe_resolve("/foo/bar", rel_path) == expected


def test_safe_resolve_relative_base():
    assert safe_resolve(BASE, "../1/x") == "artifact/server/path/1/x"


def test_download_artifact_file_unsafe_path():
    memfs = MemoryFS({"artifact/server/path/some/file": b"content"})
    app = ArtifactApp(BASE, memfs)
    status, _, body = call(app, "GET", "/artifact/2/../../some/file")
    assert status.startswith("200")
    assert body == b"content"


def test_artifact_upload_blob_unsafe_path():
    memfs = MemoryFS()
    app = ArtifactApp(BASE, memfs)
    status, _, body = call(app, "PUT", "/upload/1", "itemPath=../../some/file", b"content")
    assert status.startswith("200")
    assert json.loads(body)["message"] == "success"
    assert memfs.files["artifact/server/path/1/some/file"] == b"content"


def test_gzip_upload_is_stored_with_suffix():
    memfs = MemoryFS()
    app = ArtifactApp(BASE, memfs)
    call(app, "PUT", "/upload/1", "itemPath=a.txt", b"zipped", {"Content-Encoding": "gzip"})
    assert memfs.files == {"artifact/server/path/1/a.txt.gz__": b"zipped"}


def test_content_range_not_at_start_appends():
    memfs = MemoryFS({"artifact/server/path/1/a": b"first"})
    app = ArtifactApp(BASE, memfs)
    call(app, "PUT", "/upload/1", "itemPath=a", b"second", {"Content-Range": "bytes 5-10/*"})
    assert memfs.appended == ["artifact/server/path/1/a"]
    assert memfs.files["artifact/server/path/1/a"] == b"firstsecond"


def test_content_range_at_start_truncates():
    memfs = MemoryFS({"artifact/server/path/1/a": b"old"})
    app = ArtifactApp(BASE, memfs)
    call(app, "PUT", "/upload/1", "itemPath=a", b"new", {"Content-Range": "bytes 0-2/*"})
    assert memfs.appended == []
    assert memfs.files["artifact/server/path/1/a"] == b"new"


def test_download_falls_back_to_gzip():
    memfs = MemoryFS({"artifact/server/path/1/a.gz__": b"zipped"})
    app = ArtifactApp(BASE, memfs)
    status, headers, body = call(app, "GET", "/artifact/1/a")
    assert status.startswith("200")
    assert headers["Content-Encoding"] == "gzip"
    assert body == b"zipped"


def test_download_missing_file_is_server_error():
    app = ArtifactApp(BASE, MemoryFS())
    status, _, _ = call(app, "GET", "/artifact/1/missing")
    assert status.startswith("500")


def test_list_artifacts_missing_run_is_server_error():
    app = ArtifactApp(BASE, MemoryFS())
    status, _, _ = call(app, "GET", "/_apis/pipelines/workflows/9/artifacts")
    assert status.startswith("500")


def test_unknown_route_is_not_found():
    app = ArtifactApp(BASE, MemoryFS())
    status, _, _ = call(app, "GET", "/nothing/here")
    assert status.startswith("404")


def test_wrong_method_is_not_allowed():
    app = ArtifactApp(BASE, MemoryFS())
    status, headers, _ = call(app, "DELETE", "/upload/1")
    assert status.startswith("405")
    assert headers["Allow"] == "PUT"


def test_round_trip_on_local_disk(tmp_path):
    base = str(tmp_path / "store")
    app = ArtifactApp(base, LocalFileSystem())
    call(app, "PUT", "/upload/3", "itemPath=art/dir/b.txt", b"bee")
    call(app, "PUT", "/upload/3", "itemPath=art/dir/a.txt", b"ay")
    call(app, "PUT", "/upload/3", "itemPath=art/dir/c.txt", b"sea", {"Content-Encoding": "gzip"})

    _, _, listing = call(app, "GET", "/_apis/pipelines/workflows/3/artifacts")
    assert [item["name"] for item in json.loads(listing)["value"]] == ["art"]

    _, _, items = call(app, "GET", "/download/3", "itemPath=art")
    value = json.loads(items)["value"]
    assert [item["path"] for item in value] == ["art/dir/a.txt", "art/dir/b.txt", "art/dir/c.txt"]
    assert value[0]["contentLocation"] == "http://localhost/artifact/3/art/dir/a.txt"

    _, _, body = call(app, "GET", "/artifact/3/art/dir/b.txt")
    assert body == b"bee"
    _, headers, body = call(app, "GET", "/artifact/3/art/dir/c.txt")
    assert body == b"sea"
    assert headers["Content-Encoding"] == "gzip"


def test_local_file_system_append(tmp_path):
    fs = LocalFileSystem()
    target = str(tmp_path / "deep" / "file")
    with fs.open_writable(target) as file:
        file.write(b"abc")
    with fs.open_appendable(target) as file:
        file.write(b"def")
    with fs.open(target) as file:
        assert file.read() == b"abcdef"
    with fs.open_writable(target) as file:
        file.write(b"x")
    with fs.open(target) as file:
        assert file.read() == b"x"


def test_local_file_system_listing(tmp_path):
    fs = LocalFileSystem()
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "inner").write_bytes(b"")
    (tmp_path / "a").write_bytes(b"")
    (tmp_path / "c").write_bytes(b"")
    assert fs.list_dir(str(tmp_path)) == ["a", "b", "c"]
    walked = [p.replace(str(tmp_path), "") for p in fs.walk_files(str(tmp_path))]
    assert [p.replace("\\", "/") for p in walked] == ["/a", "/b/inner", "/c"]
    assert list(fs.walk_files(str(tmp_path / "a"))) == [str(tmp_path / "a")]
    with pytest.raises(FileNotFoundError):
        list(fs.walk_files(str(tmp_path / "missing")))


def test_serve_without_path_starts_nothing():
    stop = serve("", "127.0.0.1", "0")
    assert stop.address is None
    stop()
    assert stop.address is None


def test_serve_handles_requests_until_stopped(tmp_path):
    stop = serve(str(tmp_path), "127.0.0.1", "0")
    host, port = stop.address
    url = f"http://{host}:{port}/_apis/pipelines/workflows/7/artifacts"
    try:
        request = urllib.request.Request(url, data=b"", method="POST")
        with urllib.request.urlopen(request, timeout=5) as response:
            payload = json.loads(response.read())
        assert payload["fileContainerResourceUrl"] == f"http://{host}:{port}/upload/7"
    finally:
        stop()
    assert stop.address is None
    with pytest.raises(OSError):
        urllib.request.urlopen(urllib.request.Request(url, data=b"", method="POST"), timeout=5)