"""Tests for the three-phase upload through SzczkBackend.put."""

from __future__ import annotations

import io
import threading
from typing import TYPE_CHECKING

import httpx
import pytest

from szczk_store import Cancelled, InvalidContent, InvalidPath, InvalidResponse, NotAFolder, RemoteError, TransportError
from szczk_store.backends._upload import content_size
from tests.fake_service import ROOT_ID

if TYPE_CHECKING:
    from szczk_store._config import SzczkConfig
    from szczk_store.backends import SzczkBackend
    from tests.fake_service import FakeSzczkService


class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[int, int]] = []

    def __call__(self, sent: int, total: int) -> None:
        self.calls.append((sent, total))


class _Unseekable:
    def __init__(self, data: bytes) -> None:
        self._buf = io.BytesIO(data)

    def read(self, size: int = -1) -> bytes:
        return self._buf.read(size)


class TestContentSize:
    def test_bytes(self) -> None:
        assert content_size(b"hello") == 5

    def test_stream_from_current_position(self) -> None:
        stream = io.BytesIO(b"0123456789")
        stream.seek(4)
        assert content_size(stream) == 6
        assert stream.tell() == 4

    def test_unseekable(self) -> None:
        with pytest.raises(InvalidContent, match="size is required"):
            content_size(_Unseekable(b"x"))  # type: ignore[arg-type]


class TestPut:
    def test_phases_run_in_order(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        backend.put(backend.root(), "new.txt", b"hello world")
        assert service.calls()[1:] == ["first_upload", "transfer", "ok_upload"]
        assert len(service.finalized) == 1

    def test_negotiate_payload(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        backend.put(backend.root(), "new.txt", b"hello world")
        (session,) = service.sessions.values()
        assert session == {"parent_folder_id": ROOT_ID, "file_name": "new.txt", "file_size": 11}

    def test_uploaded_object_is_listed(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        folder = service.add(ROOT_ID, "inbox", is_folder=True)
        backend.put(backend.get("/inbox"), "report.csv", b"a,b\n1,2\n")
        obj = backend.get("/inbox/report.csv")
        assert obj.size == 8
        assert service.items[obj.id]["parent"] == folder

    def test_transfer_is_unauthenticated_multipart(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        backend.put(backend.root(), "new.txt", b"payload-bytes")
        (transfer,) = [r for r in service.requests if r.url.host == "upload.szczk.test"]
        assert "Authorization" not in transfer.headers
        assert transfer.headers["Content-Type"].startswith("multipart/form-data")
        (body,) = service.uploads.values()
        assert b'name="file"; filename="new.txt"' in body
        assert b"payload-bytes" in body

    def test_stream_content(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        backend.put(backend.root(), "s.bin", io.BytesIO(b"streamed"))
        (session,) = service.sessions.values()
        assert session["file_size"] == 8
        assert b"streamed" in next(iter(service.uploads.values()))

    def test_unseekable_stream_with_size(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        backend.put(backend.root(), "u.bin", _Unseekable(b"abc"), size=3)  # type: ignore[arg-type]
        assert len(service.finalized) == 1

    def test_unseekable_stream_without_size(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        with pytest.raises(InvalidContent) as exc_info:
            backend.put(backend.root(), "u.bin", _Unseekable(b"abc"))  # type: ignore[arg-type]
        assert exc_info.value.operation == "put"
        assert exc_info.value.path == "/u.bin"
        assert service.calls("first_upload") == []

    def test_destination_must_be_folder(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        service.add(ROOT_ID, "doc.txt")
        doc = backend.get("/doc.txt")
        with pytest.raises(NotAFolder) as exc_info:
            backend.put(doc, "x.txt", b"x")
        assert exc_info.value.operation == "put"
        assert service.calls("first_upload") == []

    def test_invalid_name(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        with pytest.raises(InvalidPath):
            backend.put(backend.root(), "a/b.txt", b"x")
        assert service.calls("first_upload") == []


class TestProgress:
    def test_completion_reported_once(self, backend: SzczkBackend) -> None:
        progress = Recorder()
        backend.put(backend.root(), "small.txt", b"hello", progress=progress)
        assert progress.calls == [(5, 5)]

    def test_large_upload_reports_increasing_progress(self, backend: SzczkBackend) -> None:
        progress = Recorder()
        total = 200_000
        backend.put(backend.root(), "big.bin", b"x" * total, progress=progress)
        assert progress.calls[-1] == (total, total)
        assert [c for c in progress.calls if c[0] == total] == [(total, total)]
        sent = [c[0] for c in progress.calls]
        assert sent == sorted(sent)
        assert len(progress.calls) > 1
        assert all(t == total for _, t in progress.calls)

    def test_no_completion_when_finalize_fails(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        progress = Recorder()
        service.fail("ok_upload", 500)
        with pytest.raises(RemoteError):
            backend.put(backend.root(), "big.bin", b"x" * 200_000, progress=progress)
        assert all(sent < total for sent, total in progress.calls)


class TestAtomicity:
    def test_negotiate_failure_skips_transfer(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        service.fail("first_upload", 500)
        with pytest.raises(RemoteError) as exc_info:
            backend.put(backend.root(), "new.txt", b"data")
        assert exc_info.value.operation == "put"
        assert service.calls("transfer") == []
        assert service.calls("ok_upload") == []

    def test_negotiate_missing_fields(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        service.fail_with("first_upload", httpx.Response(200, json={"upload_url": "https://upload.szczk.test/x"}))
        with pytest.raises(InvalidResponse):
            backend.put(backend.root(), "new.txt", b"data")
        assert service.calls("transfer") == []

    def test_transfer_failure_is_never_finalized(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        service.fail("transfer", 500, {"error": "disk full"})
        with pytest.raises(RemoteError) as exc_info:
            backend.put(backend.root(), "new.txt", b"data")
        assert exc_info.value.status == 500
        assert "disk full" in exc_info.value.body
        assert service.calls("ok_upload") == []
        assert service.finalized == []
        assert [i for i in service.items.values() if i["name"] == "new.txt"] == []

    def test_finalize_failure_is_an_error(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        service.fail("ok_upload", 503)
        with pytest.raises(RemoteError) as exc_info:
            backend.put(backend.root(), "new.txt", b"data")
        assert exc_info.value.status == 503
        assert service.finalized == []

    def test_transfer_connection_error(self, service: FakeSzczkService, config: SzczkConfig) -> None:
        from szczk_store.backends import SzczkBackend

        def handle(request: httpx.Request) -> httpx.Response:
            if request.url.host == "upload.szczk.test":
                raise httpx.ConnectError("connection reset", request=request)
            return service.handle(request)

        with SzczkBackend(config, client_options={"transport": httpx.MockTransport(handle)}) as backend:
            with pytest.raises(TransportError) as exc_info:
                backend.put(backend.root(), "new.txt", b"data")
        assert exc_info.value.operation == "put"
        assert service.calls("ok_upload") == []

    def test_expired_token_on_negotiate_is_retried(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        service.fail("first_upload", 401)
        backend.put(backend.root(), "new.txt", b"data")
        assert service.calls("first_upload") == ["first_upload", "first_upload"]
        assert len(service.calls("refresh_token")) == 1
        assert len(service.finalized) == 1


class TestCancellation:
    def test_cancel_during_transfer(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        cancel = threading.Event()
        progress = Recorder()

        def stop_after_first_chunk(sent: int, total: int) -> None:
            progress(sent, total)
            cancel.set()

        with pytest.raises(Cancelled) as exc_info:
            backend.put(backend.root(), "big.bin", b"x" * 200_000, progress=stop_after_first_chunk, cancel=cancel)
        assert exc_info.value.operation == "put"
        assert len(progress.calls) == 1
        assert service.calls("ok_upload") == []
        assert service.finalized == []

    def test_cancel_before_start(self, backend: SzczkBackend, service: FakeSzczkService) -> None:
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(Cancelled):
            backend.put(backend.root(), "new.txt", b"data", cancel=cancel)
        assert service.calls("first_upload") == []
