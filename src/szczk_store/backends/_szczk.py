"""Szczk Cloud backend: the identifier-based REST API behind a path-based contract."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import httpx

from szczk_store._auth import Authenticator, Refresher
from szczk_store._backend import Backend
from szczk_store._capabilities import Capability, CapabilitySet
from szczk_store._config import SzczkConfig
from szczk_store._errors import (
    BackendUnavailable,
    InvalidPath,
    InvalidResponse,
    NotAFile,
    NotAFolder,
    NotFound,
    SzczkStoreError,
    TransportError,
)
from szczk_store._executor import RequestExecutor
from szczk_store._models import Link, RemoteObject
from szczk_store._path import RemotePath
from szczk_store._scheduler import TokenScheduler
from szczk_store._token import TokenStore
from szczk_store.backends._upload import Uploader

if TYPE_CHECKING:
    from collections.abc import Iterator

    from szczk_store._types import Clock, ProgressCallback, WritableContent

log = logging.getLogger(__name__)

_SZCZK_CAPABILITIES = CapabilitySet({c for c in Capability if c is not Capability.MAKE_DIR})


def _check_name(name: str) -> str:
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\0" in name:
        raise InvalidPath(f"Invalid object name {name!r}", path=name)
    return name


class SzczkBackend(Backend):
    """Backend for the Szczk Cloud file service.

    Listings are never cached: every :meth:`get` lists the parents along the
    path again. Call :meth:`init` (or use the backend as a context manager)
    before any operation; :meth:`close` stops the token scheduler and cancels
    in-flight operations at their next checkpoint.

    :param config: Adapter settings. Alternatively pass the settings as
        keyword arguments (``api_key=...``), as the registry does.
    :param client_options: Extra options for both ``httpx.Client`` instances
        (e.g. ``transport``, ``verify``, ``proxy``).
    :param clock: Returns the current UTC time; used for token expiry.
    """

    def __init__(
        self,
        config: SzczkConfig | None = None,
        *,
        client_options: dict[str, Any] | None = None,
        clock: Clock | None = None,
        **settings: Any,
    ) -> None:
        if config is None:
            config = SzczkConfig.from_dict(settings)
        elif settings:
            raise TypeError(f"Unexpected settings alongside config: {sorted(settings)}")
        else:
            config.validate()
        self._config = config
        self._closed = False
        self._lifecycle = threading.Event()
        self._tokens = TokenStore(clock)

        opts: dict[str, Any] = dict(client_options or {})
        opts.setdefault("timeout", config.timeout)
        self._client = httpx.Client(base_url=config.base_url, **opts)
        self._upload_client = httpx.Client(**opts)

        self._authenticator = Authenticator(self._client, config, self._tokens, self._lifecycle)
        self._refresher = Refresher(self._client, config, self._tokens, self._lifecycle)
        self._executor = RequestExecutor(self._client, self._tokens, self._refresher, self._lifecycle)
        self._scheduler = TokenScheduler(
            self._authenticator,
            self._refresher,
            self._tokens,
            self._lifecycle,
            margin=config.refresh_margin,
            min_interval=config.min_refresh_interval,
        )
        self._uploader = Uploader(self._executor, self._upload_client, self._lifecycle)

    def __repr__(self) -> str:
        return f"SzczkBackend(base_url={self._config.base_url!r}, root_folder_id={self._config.root_folder_id!r})"

    @property
    def name(self) -> str:
        return "szczk"

    @property
    def capabilities(self) -> CapabilitySet:
        return _SZCZK_CAPABILITIES

    @property
    def is_ready(self) -> bool:
        return not self._closed and self._tokens.is_ready

    # region: lifecycle

    def init(self, cancel: threading.Event | None = None) -> None:
        if self._closed:
            raise BackendUnavailable("Backend is closed", operation="init")
        if self._tokens.is_ready:
            return
        log.debug("Initializing Szczk backend for %s", self._config.base_url)
        self._authenticator.authenticate(cancel)
        self._scheduler.start()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        log.debug("Closing Szczk backend")
        self._scheduler.stop()
        self._tokens.invalidate()
        self._client.close()
        self._upload_client.close()

    # endregion

    # region: error mapping

    @contextmanager
    def _errors(self, operation: str, *, path: str | None = None, item_id: str | None = None) -> Iterator[None]:
        """Attach operation context to errors and map stray httpx exceptions."""
        if self._closed:
            raise BackendUnavailable("Backend is closed", operation=operation, path=path, item_id=item_id)
        try:
            yield
        except SzczkStoreError as exc:
            if exc.operation is None:
                exc.operation = operation
            if exc.path is None:
                exc.path = path
            if exc.item_id is None:
                exc.item_id = item_id
            raise
        except httpx.HTTPError as exc:
            raise TransportError(str(exc), operation=operation, path=path, item_id=item_id) from exc

    # endregion

    # region: read operations

    def root(self) -> RemoteObject:
        return RemoteObject.root(self._config.root_folder_id)

    def list_children(
        self, folder: RemoteObject | None = None, *, cancel: threading.Event | None = None
    ) -> list[RemoteObject]:
        folder = folder or self.root()
        with self._errors("list", path=str(folder.path), item_id=folder.id):
            return self._list(folder, cancel)

    def _list(self, folder: RemoteObject, cancel: threading.Event | None) -> list[RemoteObject]:
        if not folder.is_folder:
            raise NotAFolder(f"Not a folder: {folder.path}")
        data = self._executor.execute_json(
            "GET",
            "/list_files",
            params={"folder_id": folder.id},
            operation="list",
            item_id=folder.id,
            cancel=cancel,
        )
        entries = data.get("files") or []
        if not isinstance(entries, list):
            raise InvalidResponse("list_files response 'files' is not a list")
        children = []
        for entry in entries:
            try:
                children.append(RemoteObject.from_wire(entry, folder.path))
            except InvalidPath:
                log.warning("Skipping %r in %s: name is not addressable by path", entry.get("name"), folder.path)
            except (KeyError, TypeError, ValueError) as exc:
                raise InvalidResponse(f"Malformed list_files entry: {exc!r}") from exc
        return children

    def get(self, path: str, *, cancel: threading.Event | None = None) -> RemoteObject:
        target = RemotePath(path)
        with self._errors("get", path=str(target)):
            return self._resolve(target, cancel)

    def _resolve(self, target: RemotePath, cancel: threading.Event | None) -> RemoteObject:
        """Walk ``target`` from the root, listing each parent to match the next name."""
        current = self.root()
        for name in target.parts:
            if not current.is_folder:
                raise NotFound(f"Not found: {target} ({current.path} is a file)")
            current = self._child(current, name, cancel, target)
        return current

    def _child(
        self, folder: RemoteObject, name: str, cancel: threading.Event | None, target: RemotePath
    ) -> RemoteObject:
        for child in self._list(folder, cancel):
            if child.name == name:
                return child
        raise NotFound(f"Not found: {target}")

    def link(self, file: RemoteObject, *, cancel: threading.Event | None = None) -> Link:
        with self._errors("link", path=str(file.path), item_id=file.id):
            if file.is_folder:
                raise NotAFile(f"Cannot link a folder: {file.path}")
            data = self._executor.execute_json(
                "GET",
                "/get_download_url",
                params={"file_id": file.id},
                operation="link",
                item_id=file.id,
                cancel=cancel,
            )
            url = data.get("url")
            if not isinstance(url, str) or not url:
                raise InvalidResponse("get_download_url response lacks 'url'")
            return Link(url=url)

    # endregion

    # region: mutations

    def rename(self, obj: RemoteObject, new_name: str, *, cancel: threading.Event | None = None) -> None:
        with self._errors("rename", path=str(obj.path), item_id=obj.id):
            self._executor.execute(
                "POST",
                "/rename_item",
                json={"item_id": obj.id, "new_name": _check_name(new_name)},
                operation="rename",
                item_id=obj.id,
                cancel=cancel,
            )
        log.debug("Renamed %s to %r", obj.path, new_name)

    def move(self, obj: RemoteObject, dst_folder: RemoteObject, *, cancel: threading.Event | None = None) -> None:
        with self._errors("move", path=str(obj.path), item_id=obj.id):
            if not dst_folder.is_folder:
                raise NotAFolder(f"Move destination is not a folder: {dst_folder.path}")
            self._executor.execute(
                "POST",
                "/move_item",
                json={"item_id": obj.id, "destination_folder_id": dst_folder.id},
                operation="move",
                item_id=obj.id,
                cancel=cancel,
            )
        log.debug("Moved %s into %s", obj.path, dst_folder.path)

    def remove(self, obj: RemoteObject, *, cancel: threading.Event | None = None) -> None:
        with self._errors("remove", path=str(obj.path), item_id=obj.id):
            if obj.path.is_root or obj.id == self._config.root_folder_id:
                raise InvalidPath("Cannot delete the root container")
            self._executor.execute(
                "POST",
                "/delete_item",
                json={"item_id": obj.id},
                operation="remove",
                item_id=obj.id,
                cancel=cancel,
            )
        log.debug("Removed %s", obj.path)

    def put(
        self,
        dst_folder: RemoteObject,
        name: str,
        content: WritableContent,
        *,
        size: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        with self._errors("put", path=f"{str(dst_folder.path).rstrip('/')}/{name}", item_id=dst_folder.id):
            if not dst_folder.is_folder:
                raise NotAFolder(f"Upload destination is not a folder: {dst_folder.path}")
            self._uploader.upload(dst_folder, _check_name(name), content, size=size, progress=progress, cancel=cancel)

    # endregion
