"""
Product Inventory API — Services Layer
=========================================

What:  Business logic between routes (HTTP) and MongoDB (persistence).

Service Inventory:
    - query_builder: query-string → filter / sort / page window (pure)
    - ProductService: list, get, create, update, delete with time budgets
      and error translation

Services receive the database handle per call and can be tested without
HTTP.
"""
