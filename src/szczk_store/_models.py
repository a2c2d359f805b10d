"""Immutable models mirroring the remote service's wire shapes."""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Any

from szczk_store._path import RemotePath

log = logging.getLogger(__name__)

# Modification time used when the service sends a timestamp we cannot parse.
ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value: object) -> datetime | None:
    """Parse an RFC 3339 timestamp, returning ``None`` if it is unusable."""
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclasses.dataclass(frozen=True, eq=False)
class RemoteObject:
    """A file or folder on the remote service.

    Identity is the remote ``id``; ``path`` is synthesized from the parent's
    resolved path because the service never returns full paths.

    :param id: Opaque remote identifier.
    :param name: Object name (final path component).
    :param size: Size in bytes (``0`` for folders unless the service says otherwise).
    :param is_folder: ``True`` for containers.
    :param modified_at: Last modification time (``ZERO_TIME`` if unknown).
    :param path: Host path of the object.
    """

    id: str
    name: str
    size: int
    is_folder: bool
    modified_at: datetime
    path: RemotePath

    @classmethod
    def root(cls, folder_id: str) -> RemoteObject:
        """The synthetic object standing for the configured root container."""
        return cls(id=folder_id, name="", size=0, is_folder=True, modified_at=ZERO_TIME, path=RemotePath("/"))

    @classmethod
    def from_wire(cls, entry: dict[str, Any], parent: RemotePath) -> RemoteObject:
        """Build an object from one ``files[]`` entry of a listing.

        :raises KeyError: If ``id`` or ``name`` is missing.
        """
        name = str(entry["name"])
        modified = parse_timestamp(entry.get("modified_at"))
        if modified is None:
            log.debug("Unparseable modified_at %r for item %r", entry.get("modified_at"), entry.get("id"))
            modified = ZERO_TIME
        return cls(
            id=str(entry["id"]),
            name=name,
            size=int(entry.get("size") or 0),
            is_folder=bool(entry.get("is_folder", False)),
            modified_at=modified,
            path=parent / name,
        )

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RemoteObject):
            return self.id == other.id
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.id)


@dataclasses.dataclass(frozen=True)
class Link:
    """A fetchable, typically short-lived download URL for a file."""

    url: str


@dataclasses.dataclass(frozen=True)
class UploadSession:
    """Per-upload state produced by the negotiate step."""

    upload_url: str
    upload_token: str
