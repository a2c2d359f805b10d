"""Store: the path-addressed, user-facing facade over a backend."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

from szczk_store._capabilities import Capability
from szczk_store._errors import InvalidPath, NotFound
from szczk_store._path import RemotePath

if TYPE_CHECKING:
    import threading
    from types import TracebackType

    from szczk_store._backend import Backend
    from szczk_store._models import Link, RemoteObject
    from szczk_store._types import ProgressCallback, WritableContent


class Store:
    """A logical remote folder scoped to a root path.

    Paths are validated, prefixed with ``root_path`` and resolved to remote
    objects through the backend before each identifier-based call. Objects
    returned to the caller carry store-relative paths.

    :param backend: The backend to delegate I/O to (must be initialized).
    :param root_path: Path prefix for all operations (may be empty).
    """

    def __init__(self, backend: Backend, root_path: str = "") -> None:
        self._backend = backend
        self._root = RemotePath(root_path)

    def __repr__(self) -> str:
        return f"Store(backend={self._backend.name!r}, root_path={str(self._root)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Store):
            return self._backend is other._backend and self._root == other._root
        return NotImplemented

    def __hash__(self) -> int:
        return hash((id(self._backend), self._root))

    def close(self) -> None:
        """Close the underlying backend, releasing any held resources."""
        self._backend.close()

    def __enter__(self) -> Store:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # region: path helpers

    def _full_path(self, path: str) -> RemotePath:
        rel = RemotePath(path)
        return RemotePath("/".join((*self._root.parts, *rel.parts)))

    def _require_child_path(self, path: str) -> RemotePath:
        """Resolve a path that must not be the store root."""
        full = self._full_path(path)
        if full == self._root:
            raise InvalidPath("Operation not allowed on the store root", path=path)
        return full

    def _rebase(self, obj: RemoteObject) -> RemoteObject:
        """Return a copy of ``obj`` with its path relative to the store root."""
        parts = obj.path.parts
        depth = len(self._root.parts)
        if parts[:depth] != self._root.parts:
            raise InvalidPath(f"Path {str(obj.path)!r} is not under store root {str(self._root)!r}", path=str(obj.path))
        return dataclasses.replace(obj, path=RemotePath("/".join(parts[depth:])))

    def _resolve(self, full: RemotePath, cancel: threading.Event | None) -> RemoteObject:
        return self._backend.get(str(full), cancel=cancel)

    # endregion

    def supports(self, capability: Capability) -> bool:
        """Check whether the backend supports a capability."""
        return self._backend.capabilities.supports(capability)

    def get(self, path: str, *, cancel: threading.Event | None = None) -> RemoteObject:
        """Resolve ``path`` to a remote object.

        :raises NotFound: If nothing exists at ``path``.
        """
        self._backend.capabilities.require(Capability.GET, path=path)
        return self._rebase(self._resolve(self._full_path(path), cancel))

    def exists(self, path: str, *, cancel: threading.Event | None = None) -> bool:
        """Check whether ``path`` resolves to an object. Never raises ``NotFound``."""
        try:
            self.get(path, cancel=cancel)
        except NotFound:
            return False
        return True

    def list_children(self, path: str = "", *, cancel: threading.Event | None = None) -> list[RemoteObject]:
        """List the direct children of the folder at ``path``.

        :raises NotFound: If the folder does not exist.
        :raises NotAFolder: If ``path`` is a file.
        """
        self._backend.capabilities.require(Capability.LIST, path=path)
        folder = self._resolve(self._full_path(path), cancel)
        return [self._rebase(child) for child in self._backend.list_children(folder, cancel=cancel)]

    def link(self, path: str, *, cancel: threading.Event | None = None) -> Link:
        """Return a download link for the file at ``path``.

        :raises NotAFile: If ``path`` is a folder.
        """
        self._backend.capabilities.require(Capability.LINK, path=path)
        return self._backend.link(self._resolve(self._full_path(path), cancel), cancel=cancel)

    def make_dir(self, path: str, *, cancel: threading.Event | None = None) -> RemoteObject:
        """Create a folder at ``path``.

        :raises NotSupported: If the backend cannot create folders.
        """
        self._backend.capabilities.require(Capability.MAKE_DIR, path=path)
        full = self._require_child_path(path)
        parent = self._resolve(full.parent or self._root, cancel)
        return self._rebase(self._backend.make_dir(parent, full.name, cancel=cancel))

    def rename(self, path: str, new_name: str, *, cancel: threading.Event | None = None) -> None:
        """Rename the object at ``path`` to ``new_name`` (same parent)."""
        self._backend.capabilities.require(Capability.RENAME, path=path)
        obj = self._resolve(self._require_child_path(path), cancel)
        self._backend.rename(obj, new_name, cancel=cancel)

    def move(self, path: str, dst_folder: str, *, cancel: threading.Event | None = None) -> None:
        """Move the object at ``path`` into the folder at ``dst_folder``.

        :raises NotFound: If either path does not exist.
        :raises NotAFolder: If ``dst_folder`` is a file.
        """
        self._backend.capabilities.require(Capability.MOVE, path=path)
        obj = self._resolve(self._require_child_path(path), cancel)
        dst = self._resolve(self._full_path(dst_folder), cancel)
        self._backend.move(obj, dst, cancel=cancel)

    def delete(self, path: str, *, missing_ok: bool = False, cancel: threading.Event | None = None) -> None:
        """Delete the object at ``path``.

        :raises NotFound: If the object is missing and ``missing_ok`` is ``False``.
        :raises InvalidPath: If ``path`` is the store root.
        """
        self._backend.capabilities.require(Capability.REMOVE, path=path)
        full = self._require_child_path(path)
        try:
            obj = self._resolve(full, cancel)
        except NotFound:
            if missing_ok:
                return
            raise
        self._backend.remove(obj, cancel=cancel)

    def upload(
        self,
        path: str,
        content: WritableContent,
        *,
        size: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Upload ``content`` to ``path``; the parent folder must already exist.

        :raises NotFound: If the parent folder does not exist.
        :raises InvalidContent: If ``content`` is an unseekable stream and ``size`` is omitted.
        """
        self._backend.capabilities.require(Capability.PUT, path=path)
        full = self._require_child_path(path)
        parent = self._resolve(full.parent or self._root, cancel)
        self._backend.put(parent, full.name, content, size=size, progress=progress, cancel=cancel)
