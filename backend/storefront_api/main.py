"""
Storefront API main application.
Entry point for the FastAPI REST server.

Run with:
    uvicorn storefront_api.main:app --reload --port 8000
"""

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from storefront_api.core import configure_cors, lifespan, register_middlewares
from storefront_api.routers.health import router as health_router
from storefront_api.routers.loyalty import router as loyalty_router
from storefront_api.routers.menu import router as menu_router
from storefront_api.routers.orders import router as orders_router
from storefront_api.routers.revisions import router as revisions_router
from storefront_api.routers.stock import router as stock_router


app = FastAPI(
    title="Storefront API",
    description="Stock, menu availability, orders and loyalty coupons",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

register_middlewares(app)
configure_cors(app)

app.include_router(health_router)
app.include_router(menu_router)
app.include_router(stock_router)
app.include_router(orders_router)
app.include_router(loyalty_router)
app.include_router(revisions_router)
