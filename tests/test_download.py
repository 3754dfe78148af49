from __future__ import annotations

from pathlib import Path

import pytest
import requests

import treecache.download as download_module
from treecache.download import (
    archive_name,
    download,
    download_and_extract_producer,
    download_producer,
)


class _FakeResponse:
    def __init__(self, *, status_code: int, chunks: list[bytes], fail_after: int | None = None) -> None:
        self.status_code = status_code
        self.chunks = chunks
        self.fail_after = fail_after
        self.closed = False

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.closed = True

    def raise_for_status(self) -> None:
        if self.status_code < 400:
            return
        error = requests.HTTPError(f"{self.status_code} error")
        error.response = self  # type: ignore[assignment]
        raise error

    def iter_content(self, chunk_size: int):
        _ = chunk_size
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise requests.ConnectionError("connection reset")
            yield chunk


class _FakeSession:
    def __init__(self, response: _FakeResponse) -> None:
        self.response = response
        self.calls: list[tuple[str, bool, float]] = []

    def get(self, url: str, *, stream: bool, timeout: float) -> _FakeResponse:
        self.calls.append((url, stream, timeout))
        return self.response


def test_download_streams_body_to_file(tmp_path) -> None:
    response = _FakeResponse(status_code=200, chunks=[b"abc", b"", b"def"])
    session = _FakeSession(response)
    dest = tmp_path / "nested" / "server.zip"

    result = download(
        "https://example.com/server.zip",
        dest,
        session=session,  # type: ignore[arg-type]
        timeout_seconds=5.0,
    )

    assert result == dest
    assert dest.read_bytes() == b"abcdef"
    assert session.calls == [("https://example.com/server.zip", True, 5.0)]
    assert response.closed


def test_download_http_error_leaves_no_file(tmp_path) -> None:
    session = _FakeSession(_FakeResponse(status_code=404, chunks=[]))
    dest = tmp_path / "missing.zip"

    with pytest.raises(requests.HTTPError):
        download("https://example.com/missing.zip", dest, session=session)  # type: ignore[arg-type]

    assert not dest.exists()


def test_download_interrupted_stream_removes_partial_file(tmp_path) -> None:
    session = _FakeSession(_FakeResponse(status_code=200, chunks=[b"abc", b"def"], fail_after=1))
    dest = tmp_path / "partial.bin"

    with pytest.raises(requests.ConnectionError):
        download("https://example.com/partial.bin", dest, session=session)  # type: ignore[arg-type]

    assert not dest.exists()


def test_download_closes_session_it_creates(monkeypatch, tmp_path) -> None:
    class _OwnedSession(_FakeSession):
        def __init__(self, response: _FakeResponse) -> None:
            super().__init__(response)
            self.closed = False

        def __enter__(self) -> _OwnedSession:
            return self

        def __exit__(self, *exc_info: object) -> None:
            self.closed = True

    session = _OwnedSession(_FakeResponse(status_code=200, chunks=[b"body"]))
    monkeypatch.setattr(download_module.requests, "Session", lambda: session)

    download("https://example.com/body.bin", tmp_path / "body.bin")

    assert (tmp_path / "body.bin").read_bytes() == b"body"
    assert session.closed


def test_download_validates_arguments(tmp_path) -> None:
    with pytest.raises(ValueError):
        download("https://example.com/a", tmp_path / "a", timeout_seconds=0)
    with pytest.raises(ValueError):
        download("https://example.com/a", tmp_path / "a", chunk_size=0)


def test_download_producer_writes_dest(tmp_path) -> None:
    session = _FakeSession(_FakeResponse(status_code=200, chunks=[b"payload"]))
    produce = download_producer("https://example.com/asset.pak", session=session)  # type: ignore[arg-type]

    produce(tmp_path / "asset.pak")

    assert (tmp_path / "asset.pak").read_bytes() == b"payload"


def test_download_and_extract_producer_extracts_into_dest(monkeypatch, tmp_path) -> None:
    extracted: list[tuple[str, bytes, Path]] = []

    def _fake_extract(src: Path, dest: Path) -> None:
        extracted.append((src.name, src.read_bytes(), dest))
        dest.mkdir(parents=True)

    monkeypatch.setattr(download_module, "extract", _fake_extract)
    session = _FakeSession(_FakeResponse(status_code=200, chunks=[b"zipdata"]))
    produce = download_and_extract_producer(
        "https://example.com/files/server.zip?sig=abc",
        session=session,  # type: ignore[arg-type]
    )

    produce(tmp_path / "install")

    assert extracted == [("server.zip", b"zipdata", tmp_path / "install")]


def test_archive_name_falls_back_for_bare_urls() -> None:
    assert archive_name("https://example.com/a/b/server.tar.gz?x=1") == "server.tar.gz"
    assert archive_name("https://example.com/") == "download"
