"""
Product Inventory API — Application Package Initializer
=========================================================

What: Marks the `inventory_api` directory as a Python package.
Who:  Used implicitly by Python's import system and explicitly by pytest and uvicorn.

Architecture Note:
    The backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │     Services (Query construction)   │  ← Filters, sorting, pagination
    ├─────────────────────────────────────┤
    │          Schemas (Pydantic)         │  ← API contracts + store schema
    ├─────────────────────────────────────┤
    │   Connection Manager (Persistence)  │  ← Cached Motor client
    └─────────────────────────────────────┘

    Routes handle status codes and request parsing, services own the MongoDB
    queries, and the connection manager owns the single client handle.
"""

__version__ = "1.0.0"
