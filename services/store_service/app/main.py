"""FastAPI application for the Store Service."""

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.store_service.routers import (
    admin_router,
    catalog_router,
    checkout_router,
    webhooks_router,
)
from slowapi.errors import RateLimitExceeded


def create_app() -> FastAPI:
    """Create and configure the Store Service FastAPI app."""
    app = FastAPI(
        title="Merch Store Service",
        version="0.1.0",
        description="Print-on-demand storefront backend - catalog sync, checkout, fulfillment.",
    )

    add_observability_middleware(app)
    add_exception_handlers(app)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    # Public store routes (catalog, checkout, provider webhooks)
    app.include_router(catalog_router, prefix="/store")
    app.include_router(checkout_router, prefix="/store")
    app.include_router(webhooks_router, prefix="/store")

    # Operator routes (sync, publishing, orders, webhook ledger)
    app.include_router(admin_router, prefix="/admin/store")

    return app


app = create_app()
