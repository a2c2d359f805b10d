"""Backend abstract base class: the object-store contract the host consumes."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

from szczk_store._capabilities import Capability
from szczk_store._errors import NotSupported

if TYPE_CHECKING:
    import threading
    from types import TracebackType

    from szczk_store._capabilities import CapabilitySet
    from szczk_store._models import Link, RemoteObject
    from szczk_store._types import ProgressCallback, WritableContent


class Backend(abc.ABC):
    """Abstract base class for object-store backends.

    Objects are addressed by :class:`RemoteObject` (which carries the remote
    identifier); only :meth:`get` accepts a host path. Every operation takes
    an optional ``cancel`` event and must abort once it is set. Backend-native
    exceptions must never leak; they must be mapped to ``szczk_store`` errors.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Unique identifier for this backend type (e.g. ``'szczk'``)."""

    @property
    @abc.abstractmethod
    def capabilities(self) -> CapabilitySet:
        """Declared capabilities of this backend."""

    @abc.abstractmethod
    def init(self, cancel: threading.Event | None = None) -> None:
        """Prepare the backend for use (authenticate, start background work).

        :raises AuthError: If the backend cannot obtain valid credentials.
        """

    @abc.abstractmethod
    def root(self) -> RemoteObject:
        """Return the object standing for the configured root container."""

    @abc.abstractmethod
    def list_children(
        self, folder: RemoteObject | None = None, *, cancel: threading.Event | None = None
    ) -> list[RemoteObject]:
        """List the direct children of ``folder`` (the root if ``None``).

        :raises NotAFolder: If ``folder`` is a file.
        """

    @abc.abstractmethod
    def get(self, path: str, *, cancel: threading.Event | None = None) -> RemoteObject:
        """Resolve a host path to a remote object.

        :raises NotFound: If no object exists at ``path``.
        """

    @abc.abstractmethod
    def link(self, file: RemoteObject, *, cancel: threading.Event | None = None) -> Link:
        """Return a fetchable URL for ``file``.

        :raises NotAFile: If ``file`` is a folder.
        """

    def make_dir(self, parent: RemoteObject, name: str, *, cancel: threading.Event | None = None) -> RemoteObject:
        """Create a folder named ``name`` inside ``parent``.

        :raises NotSupported: Unless the backend overrides this.
        """
        path = f"{str(parent.path).rstrip('/')}/{name}"
        self.capabilities.require(Capability.MAKE_DIR, path=path)
        raise NotSupported(
            f"{type(self).__name__} does not implement make_dir",
            capability=Capability.MAKE_DIR.value,
            operation=Capability.MAKE_DIR.value,
            path=path,
        )

    @abc.abstractmethod
    def rename(self, obj: RemoteObject, new_name: str, *, cancel: threading.Event | None = None) -> None:
        """Rename ``obj`` in place."""

    @abc.abstractmethod
    def move(self, obj: RemoteObject, dst_folder: RemoteObject, *, cancel: threading.Event | None = None) -> None:
        """Move ``obj`` into ``dst_folder``.

        :raises NotAFolder: If ``dst_folder`` is a file.
        """

    @abc.abstractmethod
    def remove(self, obj: RemoteObject, *, cancel: threading.Event | None = None) -> None:
        """Delete ``obj``."""

    @abc.abstractmethod
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
        """Upload ``content`` as ``name`` inside ``dst_folder``.

        :param size: Content length; derived from ``content`` when omitted.
        :param progress: Called with ``(sent, total)``; ``(total, total)`` only once the upload is durable.
        """

    def close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""

    def __enter__(self) -> Backend:
        self.init()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
