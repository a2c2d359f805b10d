"""RemotePath: immutable, validated absolute path value object."""

from __future__ import annotations

from typing import Final

from szczk_store._errors import InvalidPath


class RemotePath:
    """An immutable, normalized absolute path as seen by the host.

    The remote service addresses objects by identifier only; this type is the
    host-side address that gets resolved to an identifier by listing parents.

    :param raw: The raw path string to normalize and validate. Empty or ``"/"``
        denotes the root container.
    :raises InvalidPath: If the path is malformed or unsafe.
    """

    __slots__ = ("_parts",)
    _parts: Final[tuple[str, ...]]  # type: ignore[misc]

    def __init__(self, raw: str = "/") -> None:
        object.__setattr__(self, "_parts", self._normalize(raw))

    @staticmethod
    def _normalize(raw: str) -> tuple[str, ...]:
        if "\0" in raw:
            raise InvalidPath("Path contains null byte", path=raw)
        parts: list[str] = []
        for segment in raw.replace("\\", "/").split("/"):
            if segment == "" or segment == ".":
                continue
            if segment == "..":
                raise InvalidPath("Path contains '..' segment", path=raw)
            parts.append(segment)
        return tuple(parts)

    @classmethod
    def _from_parts(cls, parts: tuple[str, ...]) -> RemotePath:
        p = object.__new__(cls)
        object.__setattr__(p, "_parts", parts)
        return p

    @property
    def is_root(self) -> bool:
        return not self._parts

    @property
    def name(self) -> str:
        """Final component of the path (empty for the root)."""
        return self._parts[-1] if self._parts else ""

    @property
    def parent(self) -> RemotePath | None:
        """Parent path, or ``None`` for the root.

        Example: ``RemotePath("/a/b").parent`` is ``RemotePath("/a")`` and
        ``RemotePath("/a").parent`` is the root.
        """
        if not self._parts:
            return None
        return self._from_parts(self._parts[:-1])

    @property
    def parts(self) -> tuple[str, ...]:
        """Tuple of path components (empty for the root)."""
        return self._parts

    def __truediv__(self, other: str) -> RemotePath:
        if not other or "/" in other or "\\" in other or other in (".", ".."):
            raise InvalidPath(f"Invalid path component {other!r}", path=f"{self}/{other}")
        return self._from_parts((*self._parts, other))

    def __str__(self) -> str:
        return "/" + "/".join(self._parts)

    def __repr__(self) -> str:
        return f"RemotePath({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RemotePath):
            return self._parts == other._parts
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._parts)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"RemotePath is immutable: cannot set '{name}'")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"RemotePath is immutable: cannot delete '{name}'")
