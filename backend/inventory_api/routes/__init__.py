"""
Product Inventory API — API Routes Package
=============================================

Route Inventory:
    - health.py:    GET  /                      (welcome message)
                    GET  /health                (database probe)
    - products.py:  GET  /api/products          (paginated, filtered list)
                    GET  /api/products/{id}     (single product)
                    POST /api/products          (create)
                    PUT  /api/products/{id}     (partial update)
                    DELETE /api/products/{id}   (hard delete)

Routes are thin: they parse the request, call ProductService, and return the
result. Errors are rendered by the global handlers in main.py.
"""
