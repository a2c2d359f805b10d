"""Tests for Registry: explicit backend factories and store lifecycle."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from szczk_store import AuthError, BackendConfig, Registry, RegistryConfig, Store, StoreProfile
from szczk_store.backends import SzczkBackend
from tests.fake_service import API_KEY, API_SECRET, AUTH_URL, BASE_URL, ROOT_ID

if TYPE_CHECKING:
    from tests.fake_service import FakeSzczkService


def _options(service: FakeSzczkService, **overrides: Any) -> dict[str, object]:
    options: dict[str, object] = {
        "api_key": API_KEY,
        "api_secret": API_SECRET,
        "auth_url": AUTH_URL,
        "base_url": BASE_URL,
        "client_options": {"transport": service.transport},
    }
    options.update(overrides)
    return options


def _make_config(service: FakeSzczkService, **overrides: Any) -> RegistryConfig:
    return RegistryConfig(
        backends={"cloud": BackendConfig(type="szczk", options=_options(service, **overrides))},
        stores={
            "main": StoreProfile(backend="cloud", root_path="data"),
            "other": StoreProfile(backend="cloud"),
        },
    )


@pytest.fixture
def registry(service: FakeSzczkService) -> Registry:
    service.add(ROOT_ID, "data", is_folder=True)
    reg = Registry(_make_config(service))
    yield reg  # type: ignore[misc]
    reg.close()


class TestConstruction:
    def test_validates_on_construction(self) -> None:
        bad = RegistryConfig(backends={}, stores={"main": StoreProfile(backend="nonexistent")})
        with pytest.raises(ValueError, match="nonexistent"):
            Registry(bad)

    def test_empty_registry(self) -> None:
        reg = Registry()
        assert reg.backend_types == ["szczk"]
        assert repr(reg) == "Registry(stores=[])"

    def test_builtin_types_are_per_instance(self) -> None:
        first = Registry()
        first.register_backend("custom", SzczkBackend)
        assert "custom" not in Registry().backend_types


class TestGetStore:
    def test_returns_store(self, registry: Registry) -> None:
        store = registry.get_store("main")
        assert isinstance(store, Store)
        assert store.get("").name == "data"

    def test_unknown_store(self, registry: Registry) -> None:
        with pytest.raises(KeyError, match="main"):
            registry.get_store("missing")

    def test_backend_shared_and_authenticated_once(self, registry: Registry, service: FakeSzczkService) -> None:
        main = registry.get_store("main")
        other = registry.get_store("other")
        assert main._backend is other._backend
        assert service.calls("authenticate") == ["authenticate"]

    def test_concurrent_get_store_opens_one_backend(self, service: FakeSzczkService) -> None:
        def slow_auth(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("authenticate"):
                time.sleep(0.05)
            return service.handle(request)

        options = _options(service, client_options={"transport": httpx.MockTransport(slow_auth)})
        config = RegistryConfig(
            backends={"cloud": BackendConfig(type="szczk", options=options)},
            stores={"main": StoreProfile(backend="cloud"), "other": StoreProfile(backend="cloud")},
        )
        barrier = threading.Barrier(4)
        stores: list[Store] = []

        def open_store(name: str) -> None:
            barrier.wait()
            stores.append(reg.get_store(name))

        with Registry(config) as reg:
            threads = [threading.Thread(target=open_store, args=(n,)) for n in ("main", "other", "main", "other")]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
            assert len(stores) == 4
            assert len({id(s._backend) for s in stores}) == 1
        assert service.calls("authenticate") == ["authenticate"]

    def test_unknown_backend_type(self, service: FakeSzczkService) -> None:
        config = RegistryConfig(
            backends={"x": BackendConfig(type="ftp")},
            stores={"s": StoreProfile(backend="x")},
        )
        with pytest.raises(ValueError, match="ftp"):
            Registry(config).get_store("s")

    def test_invalid_options(self, service: FakeSzczkService) -> None:
        reg = Registry(_make_config(service, bucket="nope"))
        with pytest.raises(ValueError, match="bucket"):
            reg.get_store("main")
        assert service.calls() == []

    def test_missing_credentials(self, service: FakeSzczkService) -> None:
        options = _options(service)
        del options["api_secret"]
        config = RegistryConfig(
            backends={"cloud": BackendConfig(type="szczk", options=options)},
            stores={"main": StoreProfile(backend="cloud")},
        )
        with pytest.raises(ValueError, match="api_secret"):
            Registry(config).get_store("main")

    def test_failed_init_is_not_cached(self, service: FakeSzczkService) -> None:
        reg = Registry(_make_config(service))
        service.fail("authenticate", 401)
        with pytest.raises(AuthError):
            reg.get_store("other")
        store = reg.get_store("other")
        assert store.get("").id == ROOT_ID
        assert len(service.calls("authenticate")) == 2
        reg.close()

    def test_registered_backend_type(self, service: FakeSzczkService) -> None:
        created: list[SzczkBackend] = []

        class Tracking(SzczkBackend):
            def __init__(self, **kwargs: Any) -> None:
                super().__init__(**kwargs)
                created.append(self)

        config = RegistryConfig(
            backends={"t": BackendConfig(type="tracking", options=_options(service))},
            stores={"s": StoreProfile(backend="t")},
        )
        with Registry(config) as reg:
            reg.register_backend("tracking", Tracking)
            reg.get_store("s")
            assert len(created) == 1
        assert not created[0].is_ready


class TestClose:
    def test_close_closes_backends(self, registry: Registry) -> None:
        backend = registry.get_store("main")._backend
        registry.close()
        assert isinstance(backend, SzczkBackend)
        assert not backend.is_ready

    def test_context_manager(self, service: FakeSzczkService) -> None:
        with Registry(_make_config(service)) as reg:
            backend = reg.get_store("other")._backend
        assert isinstance(backend, SzczkBackend)
        assert not backend.is_ready

    def test_from_dict_config(self, service: FakeSzczkService) -> None:
        config = RegistryConfig.from_dict(
            {
                "backends": {"cloud": {"type": "szczk", "options": _options(service)}},
                "stores": {"main": {"backend": "cloud"}},
            }
        )
        with Registry(config) as reg:
            assert reg.get_store("main").exists("")
