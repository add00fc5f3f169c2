"""
Local server entrypoint: `python -m inventory_api` or the `inventory-api`
console script. Serverless runtimes import `inventory_api.main:app` instead.
"""

import uvicorn

from inventory_api.config import settings


def main() -> None:
    uvicorn.run(
        "inventory_api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
