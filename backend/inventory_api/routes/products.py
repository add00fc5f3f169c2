"""
Product Inventory API — Product Route Handlers
=================================================

What:  CRUD endpoints under /api/products.
How:   Extracts query parameters and JSON or form bodies, delegates to
       ProductService, returns JSON. Failures propagate as InventoryError subclasses and are
       rendered by the global handlers in main.py.
"""

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from inventory_api.database import get_database
from inventory_api.exceptions import InvalidInputError
from inventory_api.schemas.product import (
    ErrorResponse,
    MessageResponse,
    ProductListResponse,
    ProductResponse,
)
from inventory_api.services.product_service import product_service
from inventory_api.services.query_builder import build_product_query

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["Products"])

_NOT_FOUND = {"description": "Product not found", "model": ErrorResponse}
_SERVER_ERROR = {"description": "Server error", "model": ErrorResponse}
_BAD_REQUEST = {"description": "Rejected by the product schema", "model": ErrorResponse}

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

# Read by hand in read_payload, so documented here
_PRODUCT_BODY = {
    "requestBody": {
        "content": {
            media_type: {"schema": {"type": "object"}}
            for media_type in ("application/json",) + _FORM_TYPES
        },
    },
}


async def read_payload(request: Request) -> Any:
    """
    Product body as JSON or as a form. Form values arrive as strings and are
    coerced by the product schema like any other input.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        return dict(form)

    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise InvalidInputError(message="Invalid request", error=str(e))


@router.get(
    "",
    response_model=ProductListResponse,
    responses={500: _SERVER_ERROR},
    summary="List products with pagination, filtering and sorting",
)
async def list_products(
    page: Optional[str] = Query(default=None, description="Page number, 1-based (default 1)"),
    limit: Optional[str] = Query(default=None, description="Page size (default 10)"),
    category: Optional[str] = Query(default=None, description="Exact category match"),
    min_price: Optional[str] = Query(default=None, alias="minPrice", description="Minimum price, inclusive"),
    max_price: Optional[str] = Query(default=None, alias="maxPrice", description="Maximum price, inclusive"),
    name: Optional[str] = Query(default=None, description="Case-insensitive name substring"),
    stock: Optional[str] = Query(default=None, description="Minimum stock, inclusive"),
    sort: Optional[str] = Query(
        default=None,
        description="Comma-separated fields; prefix with '-' for descending, e.g. '-price,name'",
    ),
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> ProductListResponse:
    """
    Numeric parameters arrive as raw strings so that unparseable values fall
    back to defaults instead of failing the request.
    """
    query = build_product_query({
        "page": page,
        "limit": limit,
        "category": category,
        "minPrice": min_price,
        "maxPrice": max_price,
        "name": name,
        "stock": stock,
        "sort": sort,
    })
    return await product_service.list_products(db=db, query=query)


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    response_model_exclude_none=True,
    responses={404: _NOT_FOUND, 500: _SERVER_ERROR},
    summary="Get a product by id",
)
async def get_product(
    product_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> ProductResponse:
    return await product_service.get_product(db=db, product_id=product_id)


@router.post(
    "",
    status_code=201,
    response_model=ProductResponse,
    response_model_exclude_none=True,
    responses={400: _BAD_REQUEST},
    openapi_extra=_PRODUCT_BODY,
    summary="Create a product",
)
async def create_product(
    payload: Any = Depends(read_payload),
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> ProductResponse:
    """Body fields: name (required), price, category, stock, description."""
    return await product_service.create_product(db=db, payload=payload)


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    response_model_exclude_none=True,
    responses={400: _BAD_REQUEST, 404: _NOT_FOUND},
    openapi_extra=_PRODUCT_BODY,
    summary="Partially update a product",
)
async def update_product(
    product_id: str,
    payload: Any = Depends(read_payload),
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> ProductResponse:
    """Only fields present in the body with a non-null value are overwritten."""
    return await product_service.update_product(db=db, product_id=product_id, payload=payload)


@router.delete(
    "/{product_id}",
    response_model=MessageResponse,
    responses={404: _NOT_FOUND, 500: _SERVER_ERROR},
    summary="Delete a product",
)
async def delete_product(
    product_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> MessageResponse:
    return await product_service.delete_product(db=db, product_id=product_id)
