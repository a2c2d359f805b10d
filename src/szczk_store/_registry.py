"""Registry: explicit backend factories, lifecycle management and store access."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from szczk_store._config import RegistryConfig
from szczk_store._store import Store

if TYPE_CHECKING:
    from types import TracebackType

    from szczk_store._backend import Backend


def _builtin_backends() -> dict[str, type[Backend]]:
    from szczk_store.backends._szczk import SzczkBackend

    return {"szczk": SzczkBackend}


class Registry:
    """Owns backend factories and the backends opened through them.

    Nothing registers itself at import time: the host creates a registry,
    optionally registers extra backend types on it, and asks it for stores.

    :param config: Optional configuration. Validates immediately.
    :raises ValueError: If config is invalid.
    """

    def __init__(self, config: RegistryConfig | None = None) -> None:
        self._config = config or RegistryConfig()
        self._config.validate()
        self._factories = _builtin_backends()
        self._backends: dict[str, Backend] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        stores = sorted(self._config.stores.keys())
        return f"Registry(stores={stores!r})"

    def register_backend(self, type_name: str, cls: type[Backend]) -> None:
        """Register a backend class for a given type string.

        :param type_name: The type identifier (e.g. ``"szczk"``).
        :param cls: The backend class; instantiated with the config's options.
        """
        self._factories[type_name] = cls

    @property
    def backend_types(self) -> list[str]:
        return sorted(self._factories)

    def get_store(self, name: str) -> Store:
        """Get a store by its profile name, initializing its backend on first use.

        :param name: The store profile name.
        :raises KeyError: If no store profile with this name exists.
        :raises AuthError: If the backend fails to authenticate.
        """
        if name not in self._config.stores:
            available = sorted(self._config.stores.keys())
            raise KeyError(f"Unknown store '{name}'. Available stores: {available}")

        profile = self._config.stores[name]
        backend = self._get_backend(profile.backend)
        return Store(backend=backend, root_path=profile.root_path)

    def _get_backend(self, name: str) -> Backend:
        """Lazily instantiate, initialize and cache a backend."""
        with self._lock:
            return self._open_backend(name)

    def _open_backend(self, name: str) -> Backend:
        if name not in self._backends:
            cfg = self._config.backends[name]
            if cfg.type not in self._factories:
                raise ValueError(f"Unknown backend type '{cfg.type}'. Registered types: {self.backend_types}")
            factory = self._factories[cfg.type]
            try:
                backend = factory(**cfg.options)
            except (TypeError, ValueError) as exc:
                raise ValueError(
                    f"Invalid options for backend '{name}' (type={cfg.type!r}): {exc}. "
                    f"Provided options: {sorted(cfg.options.keys())}"
                ) from exc
            try:
                backend.init()
            except BaseException:
                backend.close()
                raise
            self._backends[name] = backend
        return self._backends[name]

    def close(self) -> None:
        """Close all opened backends."""
        with self._lock:
            backends = list(self._backends.values())
            self._backends.clear()
        for backend in backends:
            backend.close()

    def __enter__(self) -> Registry:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
