"""Three-phase upload protocol: negotiate, transfer, finalize."""

from __future__ import annotations

import io
import logging
import threading
from typing import TYPE_CHECKING, BinaryIO

import httpx

from szczk_store._errors import InvalidContent, InvalidResponse, RemoteError, TransportError
from szczk_store._http import raise_if_cancelled, response_text
from szczk_store._models import UploadSession

if TYPE_CHECKING:
    from szczk_store._executor import RequestExecutor
    from szczk_store._models import RemoteObject
    from szczk_store._types import ProgressCallback, WritableContent

log = logging.getLogger(__name__)


def content_size(content: WritableContent) -> int:
    """Return the number of bytes ``content`` will yield.

    :raises InvalidContent: If the size of a stream cannot be determined.
    """
    if isinstance(content, (bytes, bytearray)):
        return len(content)
    try:
        start = content.tell()
        end = content.seek(0, io.SEEK_END)
        content.seek(start)
    except (AttributeError, OSError, ValueError) as exc:
        raise InvalidContent("size is required for non-seekable streams", operation="put") from exc
    return end - start


class _ProgressReader:
    """File-like wrapper that reports bytes read and honors cancellation.

    Progress never reaches ``total`` here: completion is only reported after
    the upload is finalized.
    """

    def __init__(
        self,
        source: BinaryIO,
        total: int,
        progress: ProgressCallback | None,
        cancel_events: tuple[threading.Event | None, ...],
    ) -> None:
        self._source = source
        self._total = total
        self._progress = progress
        self._cancel_events = cancel_events
        self.sent = 0

    def read(self, size: int = -1) -> bytes:
        raise_if_cancelled(*self._cancel_events, operation="put")
        chunk = self._source.read(size)
        self.sent += len(chunk)
        if self._progress is not None and chunk and self.sent < self._total:
            self._progress(self.sent, self._total)
        return chunk


class Uploader:
    """Runs one upload through the service's negotiate/transfer/finalize steps.

    Steps are strictly sequential. A failed transfer is never finalized; the
    service has no cancel endpoint, so the negotiated session is left to expire.

    :param executor: Authenticated executor for negotiate and finalize.
    :param client: Unauthenticated client used to send bytes to the upload URL.
    :param lifecycle: Adapter-wide cancellation event.
    """

    def __init__(
        self, executor: RequestExecutor, client: httpx.Client, lifecycle: threading.Event | None = None
    ) -> None:
        self._executor = executor
        self._client = client
        self._lifecycle = lifecycle

    def negotiate(
        self, parent: RemoteObject, name: str, size: int, cancel: threading.Event | None = None
    ) -> UploadSession:
        data = self._executor.execute_json(
            "POST",
            "/first_upload",
            json={"parent_folder_id": parent.id, "file_name": name, "file_size": size},
            operation="put",
            item_id=parent.id,
            cancel=cancel,
        )
        upload_url = data.get("upload_url")
        upload_token = data.get("upload_token")
        if not isinstance(upload_url, str) or not upload_url or not isinstance(upload_token, str) or not upload_token:
            raise InvalidResponse("first_upload response lacks upload_url/upload_token", operation="put")
        return UploadSession(upload_url=upload_url, upload_token=upload_token)

    def transfer(
        self,
        session: UploadSession,
        name: str,
        content: WritableContent,
        size: int,
        *,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        """Stream the bytes to the negotiated URL; return the number of bytes sent."""
        source: BinaryIO = io.BytesIO(content) if isinstance(content, (bytes, bytearray)) else content
        reader = _ProgressReader(source, size, progress, (self._lifecycle, cancel))
        try:
            response = self._client.post(session.upload_url, files={"file": (name, reader)})
        except httpx.HTTPError as exc:
            raise TransportError(f"Upload transfer failed: {exc}", operation="put") from exc
        if not response.is_success:
            raise RemoteError(
                f"Upload transfer failed with status {response.status_code}",
                status=response.status_code,
                body=response_text(response),
                operation="put",
            )
        return reader.sent

    def finalize(self, session: UploadSession, cancel: threading.Event | None = None) -> None:
        self._executor.execute(
            "POST",
            "/ok_upload",
            json={"upload_token": session.upload_token},
            operation="put",
            cancel=cancel,
        )

    def upload(
        self,
        parent: RemoteObject,
        name: str,
        content: WritableContent,
        *,
        size: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        total = content_size(content) if size is None else size
        session = self.negotiate(parent, name, total, cancel)
        log.debug("Upload session negotiated for %r (%d bytes)", name, total)
        sent = self.transfer(session, name, content, total, progress=progress, cancel=cancel)
        if sent != total:
            log.warning("Upload of %r sent %d bytes, %d were announced", name, sent, total)
        self.finalize(session, cancel)
        log.debug("Upload of %r finalized", name)
        if progress is not None:
            progress(total, total)
