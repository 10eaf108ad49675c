import asyncio
import importlib
import inspect
from pathlib import Path
import sys
from collections.abc import Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

override_runtime_env = importlib.import_module("app.config").override_runtime_env
reset_engine_for_tests = importlib.import_module("app.db").reset_engine_for_tests
dependencies = importlib.import_module("app.dependencies")

_CACHED_PROVIDERS = (
    "get_app_config",
    "get_payments_client",
    "get_catalog_service",
    "get_storage_service",
)

_SCRUBBED_ENV = (
    "API_BASE_PATH",
    "SITE_URL",
    "VERCEL_URL",
    "STRIPE_SECRET_KEY_LIVE",
    "STRIPE_WEBHOOK_SECRET_LIVE",
    "STRIPE_API_BASE",
    "STORAGE_URL",
    "SUPABASE_URL",
    "ERRORS_DEBUG_DETAILS",
)


def _clear_provider_caches() -> None:
    for name in _CACHED_PROVIDERS:
        getattr(dependencies, name).cache_clear()


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    marker = pyfuncitem.get_closest_marker("asyncio")
    if marker is None:
        return None
    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None
    fixtureinfo = getattr(pyfuncitem, "_fixtureinfo", None)
    if fixtureinfo is None:
        return None
    kwargs = {name: pyfuncitem.funcargs[name] for name in fixtureinfo.argnames}
    asyncio.run(test_func(**kwargs))
    return True


@pytest.fixture(autouse=True)
def _test_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "soundwave.db"

    for name in _SCRUBBED_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_soundwave")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_test_soundwave")
    monkeypatch.setenv("SITE_URL", "https://soundwave.test")

    override_runtime_env(None)
    _clear_provider_caches()
    reset_engine_for_tests()
    try:
        yield
    finally:
        reset_engine_for_tests()
        _clear_provider_caches()
        override_runtime_env(None)


@pytest.fixture()
def payments_provider():
    from tests.helpers import FakePaymentsProvider

    return FakePaymentsProvider()


@pytest.fixture()
def client(payments_provider):
    from fastapi.testclient import TestClient

    from app.main import create_app

    application = create_app()
    application.dependency_overrides[dependencies.get_payments_client] = payments_provider.client
    with TestClient(application) as test_client:
        yield test_client
    application.dependency_overrides.clear()
