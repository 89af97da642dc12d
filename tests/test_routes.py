"""HTTP surface over httpx.AsyncClient (ASGITransport, no lifespan)."""

import asyncio
import logging
import time

import httpx
import pytest

from catalogue.api.main import create_app
from catalogue.config.settings import ConnectionConfig, ConnectionMode, Settings
from catalogue.core.exceptions import StoreConnectionError
from catalogue.core.store_handle import StoreHandle
from catalogue.core.supervisor import ConnectionSupervisor

from conftest import FakeClient, FakeCollection


@pytest.fixture
def serve(settings, connection_config, make_connector, fast_sleep):
    """
    Build an app around a started supervisor. With failures=None the store
    never comes up; otherwise the supervisor is connected before returning.
    """

    async def _serve(store, failures=0, app_settings=None):
        supervisor = ConnectionSupervisor(
            connection_config,
            connector=make_connector(store, failures=failures),
            sleep=fast_sleep,
        )
        app = create_app(settings=app_settings or settings, supervisor=supervisor)
        supervisor.start()
        if failures is not None:
            assert await supervisor.wait_until_available(timeout=1)
        return app, supervisor

    return _serve


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


def _assert_uniform_headers(response: httpx.Response) -> None:
    assert response.headers["timing-allow-origin"] == "*"
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["x-request-id"]


# ============================================================================
# HEALTH
# ============================================================================

@pytest.mark.asyncio
async def test_health_reports_store_down(serve, store):
    app, supervisor = await serve(store, failures=None)

    async with _client(app) as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"app": "OK", "mongo": False}
    _assert_uniform_headers(response)
    await supervisor.stop()


@pytest.mark.asyncio
async def test_health_reports_store_up(serve, store, collection):
    app, supervisor = await serve(store)

    async with _client(app) as client:
        response = await client.get("/health")

    assert response.json() == {"app": "OK", "mongo": True}
    assert collection.calls == []
    await supervisor.stop()


# ============================================================================
# DATA ROUTES
# ============================================================================

@pytest.mark.asyncio
async def test_list_products(serve, store):
    app, supervisor = await serve(store)

    async with _client(app) as client:
        response = await client.get("/products")

    assert response.status_code == 200
    body = response.json()
    assert [p["sku"] for p in body] == ["STAN-1", "RED-1", "CNA"]
    assert body[0]["_id"] == "64b7f0c2a1b2c3d4e5f60001"
    assert body[0]["price"] == 67.99
    _assert_uniform_headers(response)
    await supervisor.stop()


@pytest.mark.asyncio
async def test_product_by_sku(serve, store):
    app, supervisor = await serve(store)

    async with _client(app) as client:
        response = await client.get("/product/RED-1")

    assert response.status_code == 200
    assert response.json()["name"] == "Ewooid"
    await supervisor.stop()


@pytest.mark.asyncio
async def test_product_by_unknown_sku_is_404_text(serve, store):
    app, supervisor = await serve(store)

    async with _client(app) as client:
        response = await client.get("/product/NOPE")

    assert response.status_code == 404
    assert response.text == "SKU not found"
    _assert_uniform_headers(response)
    await supervisor.stop()


@pytest.mark.asyncio
async def test_go_slow_delays_sku_lookup(serve, store):
    app, supervisor = await serve(
        store, app_settings=Settings(MONGO=True, GO_SLOW=100, _env_file=None)
    )

    async with _client(app) as client:
        started = time.perf_counter()
        response = await client.get("/product/STAN-1")
        elapsed = time.perf_counter() - started

    assert response.status_code == 200
    assert elapsed >= 0.09
    await supervisor.stop()


@pytest.mark.asyncio
async def test_products_in_category_sorted_by_name(serve, store):
    app, supervisor = await serve(store)

    async with _client(app) as client:
        response = await client.get("/products/Robot")

    assert response.status_code == 200
    assert [p["name"] for p in response.json()] == ["Ewooid", "Stan"]
    await supervisor.stop()


@pytest.mark.asyncio
async def test_unknown_category_is_empty_list(serve, store):
    app, supervisor = await serve(store)

    async with _client(app) as client:
        response = await client.get("/products/Garden")

    assert response.status_code == 200
    assert response.json() == []
    await supervisor.stop()


@pytest.mark.asyncio
async def test_categories(serve, store):
    app, supervisor = await serve(store)

    async with _client(app) as client:
        response = await client.get("/categories")

    assert response.status_code == 200
    assert sorted(response.json()) == ["Artificial Intelligence", "Plush", "Robot"]
    await supervisor.stop()


@pytest.mark.asyncio
async def test_search(serve, store):
    app, supervisor = await serve(store)

    async with _client(app) as client:
        response = await client.get("/search/antenna")

    assert response.status_code == 200
    assert [p["sku"] for p in response.json()] == ["CNA"]
    await supervisor.stop()


# ============================================================================
# FAILURE MODES
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path", ["/products", "/product/STAN-1", "/products/Robot", "/categories", "/search/robot"]
)
async def test_data_routes_are_gated_while_store_is_down(serve, store, collection, path):
    app, supervisor = await serve(store, failures=None)

    async with _client(app) as client:
        response = await client.get(path)

    assert response.status_code == 500
    assert response.text == "Database not available"
    assert collection.calls == []
    _assert_uniform_headers(response)
    await supervisor.stop()


@pytest.mark.asyncio
async def test_query_failure_is_500_json(serve, products):
    collection = FakeCollection(products, error=RuntimeError("text index required"))
    app, supervisor = await serve(StoreHandle(FakeClient(collection), collection))

    async with _client(app) as client:
        response = await client.get("/search/rocket")

    assert response.status_code == 500
    body = response.json()
    assert body["error_code"] == "QUERY_ERROR"
    assert "text index required" in body["message"]
    assert body["request_id"] == response.headers["x-request-id"]
    _assert_uniform_headers(response)
    await supervisor.stop()


@pytest.mark.asyncio
async def test_unknown_path_is_404_with_uniform_headers(serve, store):
    app, supervisor = await serve(store)

    async with _client(app) as client:
        response = await client.get("/nope")

    assert response.status_code == 404
    _assert_uniform_headers(response)
    await supervisor.stop()


# ============================================================================
# REQUEST DISPATCH
# ============================================================================

@pytest.mark.asyncio
async def test_inbound_request_id_is_echoed(serve, store):
    app, supervisor = await serve(store)

    async with _client(app) as client:
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["x-request-id"] == "req-123"
    await supervisor.stop()


@pytest.mark.asyncio
async def test_request_completion_is_logged(serve, store, caplog):
    app, supervisor = await serve(store)

    with caplog.at_level(logging.INFO, logger="catalogue.request"):
        async with _client(app) as client:
            await client.get("/categories", headers={"X-Request-ID": "req-456"})

    completed = [r for r in caplog.records if r.getMessage().startswith("request completed")]
    assert len(completed) == 1
    assert completed[0].status_code == 200
    assert completed[0].request_id == "req-456"
    assert completed[0].path == "/categories"
    assert "[req-456]" in completed[0].getMessage()
    await supervisor.stop()


@pytest.mark.asyncio
async def test_failed_health_ping_gates_routes_again(settings, products, fast_sleep):
    config = ConnectionConfig(
        mode=ConnectionMode.PLAIN,
        url="mongodb://localhost:27017/catalogue",
        retry_interval_ms=500,
        health_check_interval_ms=100,
    )
    collection = FakeCollection(products)
    handle = StoreHandle(FakeClient(collection), collection)
    attempts = []

    async def connector(_config):
        attempts.append(_config)
        if len(attempts) > 1:
            raise StoreConnectionError("connection refused")
        return handle

    supervisor = ConnectionSupervisor(config, connector=connector, sleep=fast_sleep)
    app = create_app(settings=settings, supervisor=supervisor)
    supervisor.start()
    assert await supervisor.wait_until_available(timeout=1)

    handle.client.ping_error = ConnectionError("gone")
    for _ in range(200):
        if not supervisor.available:
            break
        await asyncio.sleep(0)

    async with _client(app) as client:
        health = await client.get("/health")
        response = await client.get("/products")

    assert health.json() == {"app": "OK", "mongo": False}
    assert response.status_code == 500
    assert response.text == "Database not available"
    assert collection.calls == []
    assert handle.client.closed
    await supervisor.stop()


@pytest.mark.asyncio
async def test_openapi_documents_error_body(serve, store):
    app, supervisor = await serve(store)

    async with _client(app) as client:
        schema = (await client.get("/openapi.json")).json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    assert "500" in schema["paths"]["/products"]["get"]["responses"]
    await supervisor.stop()
