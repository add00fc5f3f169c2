"""
Product Inventory API — Product Service (Query Layer)
========================================================

What:  List, get, create, update and delete operations on the `products`
       collection.
How:   Receives the shared Motor database handle per call, runs the queries,
       and translates driver failures into application exceptions.
Who:   Called by route handlers in routes/products.py.

Time Budget:
    List runs a count and a page fetch concurrently, each bounded by
    QUERY_TIMEOUT_SECONDS (default 10s). If either overruns, the list fails
    with QueryTimeoutError and the other result is discarded. Get by id
    shares the same budget.

Error Mapping:
    Driver connection failure        → DatabaseConnectionError (500)
    Read overran its budget          → QueryTimeoutError (500)
    Id matches nothing               → NotFoundError (404)
    Write rejected by the schema     → InvalidInputError (400)
    Anything else                    → OperationError (500), or
                                       InvalidInputError for create/update
"""

import asyncio
import logging
from typing import Any, Awaitable, Dict, Optional, Type, TypeVar

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import ConnectionFailure, PyMongoError

from inventory_api.config import settings
from inventory_api.database import PRODUCTS_COLLECTION
from inventory_api.exceptions import (
    DatabaseConnectionError,
    InventoryError,
    InvalidInputError,
    NotFoundError,
    OperationError,
    QueryTimeoutError,
)
from inventory_api.schemas.product import (
    PRODUCT_FIELDS,
    AppliedCriteria,
    MessageResponse,
    PaginationMeta,
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from inventory_api.services.query_builder import ProductQuery

logger = logging.getLogger(__name__)

T = TypeVar("T")

LIST_FAILED = "Error fetching products"
GET_FAILED = "Error fetching product"
CREATE_FAILED = "Error creating product"
UPDATE_FAILED = "Error updating product"
DELETE_FAILED = "Error deleting product"


class ProductService:
    """
    Business logic layer for product operations.

    Stateless apart from its time budget: the database handle is passed in
    on every call, so one instance serves all concurrent requests.

    Args:
        query_timeout: Seconds allowed per read; defaults to the configured
            QUERY_TIMEOUT_SECONDS.
    """

    def __init__(self, query_timeout: Optional[float] = None):
        self._query_timeout = query_timeout

    @property
    def query_timeout(self) -> float:
        if self._query_timeout is not None:
            return self._query_timeout
        return settings.query_timeout_seconds

    # ── List ──────────────────────────────────────────────────────────────

    async def list_products(
        self, db: AsyncIOMotorDatabase, query: ProductQuery
    ) -> ProductListResponse:
        """
        Return one page of products matching the query, plus pagination
        metadata and an echo of the applied filter and sort.

        Raises:
            QueryTimeoutError: Count or fetch exceeded the time budget.
            DatabaseConnectionError: The store became unreachable.
            OperationError: Any other failure, driver or otherwise.
        """
        collection = _products(db)

        cursor = collection.find(query.filter)
        if query.sort:
            cursor = cursor.sort(query.sort)
        cursor = cursor.skip(query.skip).limit(query.limit)

        fetch = asyncio.ensure_future(
            self._bounded(cursor.to_list(length=query.limit), "query", LIST_FAILED)
        )
        count = asyncio.ensure_future(
            self._bounded(collection.count_documents(query.filter), "count", LIST_FAILED)
        )

        try:
            documents, total = await asyncio.gather(fetch, count)
        except InventoryError:
            _cancel(fetch, count)
            raise
        except PyMongoError as e:
            _cancel(fetch, count)
            logger.error("Error fetching products: %s", str(e))
            raise _driver_error(e, LIST_FAILED, OperationError)
        except Exception as e:
            # e.g. a filter value BSON cannot encode
            _cancel(fetch, count)
            logger.error("Error fetching products: %s", str(e))
            raise OperationError(
                message=LIST_FAILED, error=str(e), context={"error_type": type(e).__name__}
            ) from e

        logger.debug(
            "Listed %d of %d products (page=%d, limit=%d)",
            len(documents), total, query.page, query.limit,
        )

        return ProductListResponse(
            products=[ProductResponse.from_document(doc) for doc in documents],
            pagination=PaginationMeta(
                total=total,
                page=query.page,
                pages=query.pages_for(total),
                limit=query.limit,
            ),
            filters=AppliedCriteria(applied=query.applied_filters()),
            sorting=AppliedCriteria(applied=query.applied_sort()),
        )

    # ── Get ───────────────────────────────────────────────────────────────

    async def get_product(self, db: AsyncIOMotorDatabase, product_id: str) -> ProductResponse:
        """
        Raises:
            NotFoundError: No product has this id.
            OperationError: The id is malformed or the lookup failed.
            QueryTimeoutError: The lookup exceeded the time budget.
        """
        object_id = _object_id(product_id, GET_FAILED, OperationError)
        try:
            document = await self._bounded(
                _products(db).find_one({"_id": object_id}), "query", GET_FAILED
            )
        except PyMongoError as e:
            logger.error("Error fetching product %s: %s", product_id, str(e))
            raise _driver_error(e, GET_FAILED, OperationError)

        if document is None:
            raise NotFoundError(resource_id=product_id)
        return ProductResponse.from_document(document)

    # ── Create ────────────────────────────────────────────────────────────

    async def create_product(
        self, db: AsyncIOMotorDatabase, payload: Optional[Dict[str, Any]]
    ) -> ProductResponse:
        """
        Persist a new product and return it with its generated id.

        Raises:
            InvalidInputError: The payload fails the product schema or the
                store rejects the write.
        """
        try:
            product = ProductCreate.model_validate(payload or {})
        except ValidationError as e:
            raise InvalidInputError(message=CREATE_FAILED, error=describe_validation_error(e))

        document = product.model_dump(exclude_none=True)
        try:
            result = await _products(db).insert_one(document)
        except PyMongoError as e:
            logger.error("Error creating product: %s", str(e))
            raise _driver_error(e, CREATE_FAILED, InvalidInputError)

        document["_id"] = result.inserted_id
        logger.info("Product created: %s", result.inserted_id)
        return ProductResponse.from_document(document)

    # ── Update ────────────────────────────────────────────────────────────

    async def update_product(
        self,
        db: AsyncIOMotorDatabase,
        product_id: str,
        payload: Optional[Dict[str, Any]],
    ) -> ProductResponse:
        """
        Fetch-then-merge partial update.

        Every field in `ProductUpdate.fields_to_update` overwrites the stored
        value, including zero and false. The merged document is re-validated
        against the product schema before anything is written.

        Raises:
            NotFoundError: No product has this id.
            InvalidInputError: Malformed id, schema rejection, or write failure.
        """
        object_id = _object_id(product_id, UPDATE_FAILED, InvalidInputError)
        try:
            changes = ProductUpdate.model_validate(payload or {})
        except ValidationError as e:
            raise InvalidInputError(message=UPDATE_FAILED, error=describe_validation_error(e))

        collection = _products(db)
        try:
            stored = await self._bounded(
                collection.find_one({"_id": object_id}), "query", UPDATE_FAILED
            )
        except PyMongoError as e:
            logger.error("Error updating product %s: %s", product_id, str(e))
            raise _driver_error(e, UPDATE_FAILED, InvalidInputError)

        if stored is None:
            raise NotFoundError(resource_id=product_id)

        fields = changes.fields_to_update
        merged = {k: stored[k] for k in PRODUCT_FIELDS if stored.get(k) is not None}
        merged.update(changes.model_dump(include=fields))
        try:
            product = ProductCreate.model_validate(merged)
        except ValidationError as e:
            raise InvalidInputError(message=UPDATE_FAILED, error=describe_validation_error(e))

        if fields:
            try:
                result = await collection.update_one(
                    {"_id": object_id},
                    {"$set": product.model_dump(include=fields)},
                )
            except PyMongoError as e:
                logger.error("Error updating product %s: %s", product_id, str(e))
                raise _driver_error(e, UPDATE_FAILED, InvalidInputError)
            # Deleted between the read and the write
            if result.matched_count == 0:
                raise NotFoundError(resource_id=product_id)
            logger.info("Product %s updated: %s", product_id, sorted(fields))

        return ProductResponse.from_document(
            {"_id": object_id, **product.model_dump(exclude_none=True)}
        )

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete_product(self, db: AsyncIOMotorDatabase, product_id: str) -> MessageResponse:
        """
        Hard-delete a product.

        Raises:
            NotFoundError: No product has this id.
            OperationError: Malformed id or driver failure.
        """
        object_id = _object_id(product_id, DELETE_FAILED, OperationError)
        try:
            result = await _products(db).delete_one({"_id": object_id})
        except PyMongoError as e:
            logger.error("Error deleting product %s: %s", product_id, str(e))
            raise _driver_error(e, DELETE_FAILED, OperationError)

        if result.deleted_count == 0:
            raise NotFoundError(resource_id=product_id)

        logger.info("Product deleted: %s", product_id)
        return MessageResponse(message="Product deleted successfully")

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _bounded(self, awaitable: Awaitable[T], operation: str, message: str) -> T:
        timeout = self.query_timeout
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("%s timed out after %.1fs", operation.capitalize(), timeout)
            raise QueryTimeoutError(message=message, operation=operation, timeout=timeout)


def _products(db: AsyncIOMotorDatabase) -> AsyncIOMotorCollection:
    return db[PRODUCTS_COLLECTION]


def _object_id(
    product_id: str, message: str, error_cls: Type[InventoryError]
) -> ObjectId:
    try:
        return ObjectId(product_id)
    except (InvalidId, TypeError) as e:
        raise error_cls(message=message, error=str(e), context={"product_id": product_id})


def _driver_error(
    e: PyMongoError, message: str, fallback: Type[InventoryError]
) -> InventoryError:
    if isinstance(e, ConnectionFailure):
        return DatabaseConnectionError(message=message, error=str(e))
    return fallback(message=message, error=str(e), context={"error_type": type(e).__name__})


def _cancel(*tasks: "asyncio.Future[Any]") -> None:
    for task in tasks:
        if not task.done():
            task.cancel()


def describe_validation_error(e: ValidationError) -> str:
    """Flatten a pydantic error into one line, e.g. 'Product validation failed: name: Field required'."""
    problems = []
    for item in e.errors():
        location = ".".join(str(part) for part in item["loc"]) or "body"
        problems.append(f"{location}: {item['msg']}")
    return "Product validation failed: " + "; ".join(problems)


product_service = ProductService()
