# Store Handle (one logical MongoDB connection)
"""
================================================================================
FILE: catalogue/core/store_handle.py
================================================================================

PURPOSE:
    Wraps the single logical connection to the document store: the motor
    client and the active products collection. Issues the five catalogue
    queries and converts results to JSON-safe values.

WORKFLOW (connect):
    1. Build AsyncIOMotorClient from ConnectionConfig.url
    2. Confirm the server is reachable (admin ping, bounded by
       serverSelectionTimeoutMS)
    3. Bind database/collection names
    4. Any failure -> StoreConnectionError (supervisor retries)

QUERIES:
    - find_all:            find({})
    - find_by_sku:         find_one({"sku": sku})
    - find_by_category:    find({"categories": cat}).sort("name", 1)
    - distinct_categories: distinct("categories")
    - search:              find({"$text": {"$search": text}})

KEY FACTS:
    - All operations async (non-blocking)
    - Exactly one client per handle; the handle is owned by the
      ConnectionSupervisor and nobody else closes it
    - Query failures -> QueryError (surfaced as 500, never retried)
    - No timeout on queries: a hung query hangs the requesting task
    - Documents are opaque; only BSON types are converted

TESTING ENVIRONMENT:
    - Build StoreHandle(client, collection) with fake motor objects
    - Patch AsyncIOMotorClient to exercise connect() failures
"""

# ================================================================================
# IMPORTS
# ================================================================================

import asyncio
import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient

from catalogue.config.settings import ConnectionConfig
from catalogue.utils import serialize_document, to_json_safe
from .exceptions import QueryError, StoreConnectionError

logger = logging.getLogger(__name__)

# ================================================================================
# STORE HANDLE CLASS
# ================================================================================

class StoreHandle:
    """
    Live connection + collection reference used to perform queries.

    Created by StoreHandle.connect() (or directly in tests).
    """

    def __init__(self, client: Any, collection: Any):
        """
        Args:
            client: AsyncIOMotorClient (or compatible fake)
            collection: AsyncIOMotorCollection (or compatible fake)
        """
        self.client = client
        self.collection = collection

    @classmethod
    async def connect(cls, config: ConnectionConfig) -> "StoreHandle":
        """
        Make one connection attempt.

        Args:
            config: Resolved connection profile

        Returns:
            Connected StoreHandle

        Raises:
            StoreConnectionError: If the client cannot be built or the
                server does not answer the ping
        """
        client = None
        try:
            client = AsyncIOMotorClient(
                config.url,
                serverSelectionTimeoutMS=config.connect_timeout_ms,
            )
            await client.admin.command("ping")
        except asyncio.CancelledError:
            if client is not None:
                client.close()
            raise
        except Exception as e:
            if client is not None:
                client.close()
            raise StoreConnectionError(
                f"MongoDB connection failed: {str(e)}",
                context={"url": config.redacted_url, "mode": config.mode.value},
            ) from e

        collection = client[config.database][config.collection]
        logger.debug(
            f"StoreHandle bound to {config.database}.{config.collection} "
            f"({config.mode.value})"
        )
        return cls(client, collection)

    async def ping(self) -> None:
        """Round-trip to the server; raises whatever the driver raises."""
        await self.client.admin.command("ping")

    def close(self) -> None:
        """Close the underlying client."""
        self.client.close()
        logger.info("MongoDB client closed")

    # ========================================================================
    # QUERIES
    # ========================================================================

    async def find_all(self) -> List[Dict[str, Any]]:
        """Every product."""
        try:
            products = await self.collection.find({}).to_list(length=None)
        except Exception as e:
            raise QueryError(f"find all products failed: {str(e)}") from e
        return [serialize_document(p) for p in products]

    async def find_by_sku(self, sku: str) -> Optional[Dict[str, Any]]:
        """
        Exact match on SKU.

        Returns:
            The product, or None if no record matches
        """
        try:
            product = await self.collection.find_one({"sku": sku})
        except Exception as e:
            raise QueryError(
                f"find product by sku failed: {str(e)}",
                context={"sku": sku},
            ) from e
        return serialize_document(product)

    async def find_by_category(self, category: str) -> List[Dict[str, Any]]:
        """Products tagged with `category`, sorted by name ascending."""
        try:
            cursor = self.collection.find({"categories": category}).sort("name", 1)
            products = await cursor.to_list(length=None)
        except Exception as e:
            raise QueryError(
                f"find products by category failed: {str(e)}",
                context={"category": category},
            ) from e
        return [serialize_document(p) for p in products]

    async def distinct_categories(self) -> List[Any]:
        """Distinct category values across all products."""
        try:
            categories = await self.collection.distinct("categories")
        except Exception as e:
            raise QueryError(f"distinct categories failed: {str(e)}") from e
        return to_json_safe(list(categories))

    async def search(self, text: str) -> List[Dict[str, Any]]:
        """Text-index search over name/description."""
        try:
            hits = await self.collection.find(
                {"$text": {"$search": text}}
            ).to_list(length=None)
        except Exception as e:
            raise QueryError(
                f"text search failed: {str(e)}",
                context={"text": text},
            ) from e
        return [serialize_document(h) for h in hits]
