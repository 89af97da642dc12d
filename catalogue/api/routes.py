# catalogue/api/routes.py

import asyncio
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from catalogue.api.dependencies import (
    get_request_logger,
    get_settings,
    get_supervisor,
    require_store,
)
from catalogue.api.models import ErrorResponse, HealthResponse
from catalogue.config.constants import HEALTH_APP_OK, SKU_NOT_FOUND_MESSAGE
from catalogue.config.settings import Settings
from catalogue.core.store_handle import StoreHandle
from catalogue.core.supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)
router = APIRouter(
    tags=["catalogue"],
    responses={500: {"model": ErrorResponse, "description": "Store unavailable or query failed"}},
)

# ============================================================================
# HEALTH
# ============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness + cached store availability",
)
async def health(
    supervisor: ConnectionSupervisor = Depends(get_supervisor),
) -> HealthResponse:
    """
    Always 200. `mongo` is the supervisor's availability flag at call time;
    no store round-trip is made.
    """
    return HealthResponse(app=HEALTH_APP_OK, mongo=supervisor.available)

# ============================================================================
# PRODUCTS
# ============================================================================
# Every data route depends on require_store (the availability gate).
# QueryError propagates to the app-level handler (logged, 500 JSON).

@router.get("/products", summary="All products")
async def list_products(
    store: StoreHandle = Depends(require_store),
) -> List[Dict[str, Any]]:
    return await store.find_all()


@router.get("/product/{sku}", summary="Product by SKU")
async def get_product(
    sku: str,
    store: StoreHandle = Depends(require_store),
    settings: Settings = Depends(get_settings),
    log: logging.LoggerAdapter = Depends(get_request_logger),
):
    """
    Exact match on SKU, 404 text when nothing matches.

    GO_SLOW (ms) delays the query; used to simulate a slow dependency.
    """
    if settings.go_slow_ms > 0:
        await asyncio.sleep(settings.go_slow_ms / 1000)

    product = await store.find_by_sku(sku)
    log.info("product lookup", extra={"sku": sku, "found": product is not None})

    if product is None:
        return PlainTextResponse(SKU_NOT_FOUND_MESSAGE, status_code=404)
    return product


@router.get("/products/{cat}", summary="Products in a category, sorted by name")
async def list_products_in_category(
    cat: str,
    store: StoreHandle = Depends(require_store),
) -> List[Dict[str, Any]]:
    # An empty match is a valid (empty) result, not a 404.
    return await store.find_by_category(cat)


@router.get("/categories", summary="Distinct categories")
async def list_categories(
    store: StoreHandle = Depends(require_store),
) -> List[Any]:
    return await store.distinct_categories()


@router.get("/search/{text}", summary="Text search over name and description")
async def search_products(
    text: str,
    store: StoreHandle = Depends(require_store),
) -> List[Dict[str, Any]]:
    return await store.search(text)
