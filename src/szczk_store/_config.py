"""Configuration model: immutable containers for adapter, backend and store settings."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

_ENV_PREFIX = "SZCZK_"


@dataclasses.dataclass(frozen=True)
class SzczkConfig:
    """Construction parameters of a Szczk Cloud adapter.

    :param api_key: API key exchanged for tokens at ``/authenticate``.
    :param api_secret: API secret paired with ``api_key``.
    :param auth_url: Base URL of the authentication service.
    :param base_url: Base URL of the file service.
    :param root_folder_id: Identifier of the container mapped to ``/``.
    :param timeout: Per-request timeout in seconds.
    :param refresh_margin: Seconds before expiry at which the token is renewed.
    :param min_refresh_interval: Lower bound for the scheduler's sleep, in seconds.
    """

    api_key: str
    api_secret: str
    auth_url: str
    base_url: str
    root_folder_id: str = "root"
    timeout: float = 30.0
    refresh_margin: float = 300.0
    min_refresh_interval: float = 60.0

    def __repr__(self) -> str:
        return (
            f"SzczkConfig(auth_url={self.auth_url!r}, base_url={self.base_url!r}, "
            f"root_folder_id={self.root_folder_id!r})"
        )

    def validate(self) -> None:
        """Check that every required setting is present.

        :raises ValueError: If a required field is empty or a number is out of range.
        """
        for field in ("api_key", "api_secret", "auth_url", "base_url", "root_folder_id"):
            value = getattr(self, field)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"{field} must be a non-empty string")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.refresh_margin < 0 or self.min_refresh_interval <= 0:
            raise ValueError("refresh_margin must be >= 0 and min_refresh_interval > 0")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SzczkConfig:
        """Construct from a plain dict (e.g. parsed TOML/JSON or backend options).

        :raises ValueError: If a required key is missing or a value is invalid.
        """
        missing = [k for k in ("api_key", "api_secret", "auth_url", "base_url") if k not in data]
        if missing:
            raise ValueError(f"Missing Szczk settings: {missing}")
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown Szczk settings: {unknown}")
        config = cls(**data)
        config.validate()
        return config

    @classmethod
    def from_env(cls, prefix: str = _ENV_PREFIX) -> SzczkConfig:
        """Construct from environment variables.

        Required: ``SZCZK_API_KEY``, ``SZCZK_API_SECRET``, ``SZCZK_AUTH_URL``,
        ``SZCZK_BASE_URL``. Optional: ``SZCZK_ROOT_FOLDER_ID``, ``SZCZK_TIMEOUT``.

        :raises KeyError: If a required variable is unset.
        """
        data: dict[str, Any] = {
            "api_key": os.environ[f"{prefix}API_KEY"],
            "api_secret": os.environ[f"{prefix}API_SECRET"],
            "auth_url": os.environ[f"{prefix}AUTH_URL"],
            "base_url": os.environ[f"{prefix}BASE_URL"],
        }
        if root := os.environ.get(f"{prefix}ROOT_FOLDER_ID"):
            data["root_folder_id"] = root
        if timeout := os.environ.get(f"{prefix}TIMEOUT"):
            data["timeout"] = float(timeout)
        return cls.from_dict(data)


@dataclasses.dataclass(frozen=True)
class BackendConfig:
    """Describes a backend instance.

    :param type: Backend type identifier (e.g. ``"szczk"``).
    :param options: Backend-specific configuration options.
    """

    type: str
    options: dict[str, object] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class StoreProfile:
    """Describes a named store.

    :param backend: Name of the backend config to use.
    :param root_path: Path prefix for all operations.
    """

    backend: str
    root_path: str = ""


@dataclasses.dataclass(frozen=True)
class RegistryConfig:
    """Top-level configuration container.

    :param backends: Mapping of backend names to their configs.
    :param stores: Mapping of store names to their profiles.
    """

    backends: dict[str, BackendConfig] = dataclasses.field(default_factory=dict)
    stores: dict[str, StoreProfile] = dataclasses.field(default_factory=dict)

    def validate(self) -> None:
        """Validate that all store profiles reference existing backends.

        :raises ValueError: If a store references a non-existent backend.
        """
        for store_name, profile in self.stores.items():
            if profile.backend not in self.backends:
                raise ValueError(
                    f"Store '{store_name}' references unknown backend '{profile.backend}'. "
                    f"Available backends: {sorted(self.backends.keys())}"
                )

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> RegistryConfig:
        """Construct from a plain dict with ``backends`` and ``stores`` keys."""
        raw_backends = data.get("backends", {})
        raw_stores = data.get("stores", {})
        if not isinstance(raw_backends, dict) or not isinstance(raw_stores, dict):
            msg = "Expected 'backends' and 'stores' to be dicts"
            raise TypeError(msg)

        backends = {
            str(name): BackendConfig(type=str(cfg["type"]), options=dict(cfg.get("options", {})))
            for name, cfg in _dict_items(raw_backends, "Backend config")
        }
        stores = {
            str(name): StoreProfile(backend=str(prof["backend"]), root_path=str(prof.get("root_path", "")))
            for name, prof in _dict_items(raw_stores, "Store profile")
        }
        return cls(backends=backends, stores=stores)


def _dict_items(raw: dict[Any, Any], what: str) -> list[tuple[Any, dict[str, Any]]]:
    for name, value in raw.items():
        if not isinstance(value, dict):
            raise TypeError(f"{what} for '{name}' must be a dict")
    return list(raw.items())
