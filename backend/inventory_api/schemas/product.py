"""
Product Inventory API — Pydantic Request/Response Schemas
===========================================================

What:  Pydantic models defining the API contract and the store-level schema.
How:   Write models (ProductCreate, ProductUpdate) are validated inside the
       service layer so that rejections surface as InvalidInputError (400)
       with the usual `{message, error}` body. Response models drive FastAPI
       serialization and the OpenAPI docs.
Who:   Used by the product service and by route handlers as response models.
"""

from typing import Any, Dict, List, Mapping, Optional, Set

from pydantic import BaseModel, Field, model_serializer

# Document fields a client may write; `_id` is always assigned by MongoDB
PRODUCT_FIELDS = ("name", "price", "category", "stock", "description")

# BSON stores integers in at most 8 bytes
MAX_STOCK = 2**63 - 1


# ══════════════════════════════════════════════════════════════════════════
# Write Models — Store-level schema applied on every write
# ══════════════════════════════════════════════════════════════════════════


class ProductCreate(BaseModel):
    """
    What:  A product document as it may be persisted.
    When:  Validated on create, and again on the merged document during update.

    Only `name` is mandatory. Values are coerced where possible
    ("9.99" → 9.99, "3" → 3, 123 → "123"); anything else is a rejection.
    """
    name: str = Field(min_length=1, description="Product name")
    price: Optional[float] = Field(default=None, ge=0, description="Unit price")
    category: Optional[str] = Field(default=None, description="Category label")
    stock: Optional[int] = Field(default=None, ge=0, le=MAX_STOCK, description="Units on hand")
    description: Optional[str] = Field(default=None, description="Free text")

    model_config = {"extra": "ignore", "coerce_numbers_to_str": True}


class ProductUpdate(BaseModel):
    """
    What:  A partial product sent to PUT /api/products/{id}.

    `fields_to_update` is the set of fields the client actually sent with a
    non-null value. Zero, false and empty values count as sent, so
    `{"price": 0}` overwrites the stored price.
    """
    name: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    stock: Optional[int] = Field(default=None, ge=0, le=MAX_STOCK)
    description: Optional[str] = None

    model_config = {"extra": "ignore", "coerce_numbers_to_str": True}

    @property
    def fields_to_update(self) -> Set[str]:
        return {
            field for field in self.model_fields_set
            if getattr(self, field) is not None
        }


# ══════════════════════════════════════════════════════════════════════════
# Response Models — What the API returns to clients
# ══════════════════════════════════════════════════════════════════════════


class ProductResponse(BaseModel):
    """
    What:  A stored product with its identifier as a hex string.
    Who:   Returned by every product route except delete.
    """
    id: str = Field(description="Store-assigned identifier (ObjectId hex)")
    name: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    stock: Optional[int] = None
    description: Optional[str] = None

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "ProductResponse":
        values = {field: document[field] for field in PRODUCT_FIELDS if field in document}
        return cls(id=str(document["_id"]), **values)

    @model_serializer(mode="wrap")
    def _omit_absent(self, handler):
        # Fields the document never had are left out, in lists too
        return {key: value for key, value in handler(self).items() if value is not None}


class PaginationMeta(BaseModel):
    total: int = Field(description="Number of records matching the filter")
    page: int = Field(description="Current page (1-based)")
    pages: int = Field(description="ceil(total / limit)")
    limit: int = Field(description="Page size")


class AppliedCriteria(BaseModel):
    """Echo of the filter or sort actually applied; null when none was."""
    applied: Optional[Dict[str, Any]] = None


class ProductListResponse(BaseModel):
    """
    What:  Paginated response for GET /api/products.

    Pagination is offset based: skip = (page - 1) * limit. `total` and the
    page come from two concurrent queries and may disagree under concurrent
    writes.
    """
    products: List[ProductResponse]
    pagination: PaginationMeta
    filters: AppliedCriteria
    sorting: AppliedCriteria


class MessageResponse(BaseModel):
    message: str = Field(description="Human-readable message")


# ══════════════════════════════════════════════════════════════════════════
# Error Response Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Error format shared by all endpoints.

    Example:
        {
            "message": "Error creating product",
            "error": "Product validation failed: name: Field required"
        }
    """
    message: str = Field(description="Human-readable error description")
    error: Optional[str] = Field(default=None, description="Underlying error text")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
