import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import CORS_ORIGINS, RATE_LIMIT_PER_MINUTE
from .errors import install_error_handlers
from .log import configure_logging
from .middleware import RateLimitMiddleware, RequestLoggingMiddleware
from .rabbitmq import publisher
from .redis_client import redis_client
from .routes import auth, bookings, catalog, chat, cleanup, merchants, service_requests

configure_logging()
logger = structlog.get_logger("marketplace")

OPENAPI_TAGS = [
    {"name": "System", "description": "Operational endpoints."},
    {"name": "Auth", "description": "Registration, login and role management."},
    {"name": "Service requests", "description": "Customer requests and merchant offers."},
    {"name": "Bookings", "description": "Confirmed engagements between a customer and a merchant."},
    {"name": "Chat", "description": "Per-booking messages."},
    {"name": "Merchants", "description": "Merchant profiles."},
    {"name": "Catalog", "description": "Static list of offered trades."},
    {"name": "Maintenance", "description": "Secret-gated data reset."},
]

app = FastAPI(title="Handyman Marketplace API", openapi_tags=OPENAPI_TAGS)

app.add_middleware(RateLimitMiddleware, redis=redis_client, max_per_minute=RATE_LIMIT_PER_MINUTE)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

app.include_router(auth.router)
app.include_router(service_requests.router)
app.include_router(bookings.router)
app.include_router(chat.router)
app.include_router(merchants.router)
app.include_router(catalog.router)
app.include_router(cleanup.router)


@app.get("/health", tags=["System"])
async def health():
    return {
        "status": "OK",
        "service": "marketplace-api",
        "events_enabled": publisher.enabled,
        "rate_limit_enabled": redis_client is not None,
    }


@app.on_event("startup")
async def startup():
    # never crash the API if RabbitMQ is temporarily unavailable
    try:
        await publisher.connect()
    except Exception as e:
        logger.warning("rabbitmq_unavailable_at_startup", error=str(e))


@app.on_event("shutdown")
async def shutdown():
    try:
        await publisher.close()
    except Exception as e:
        logger.warning("rabbitmq_close_failed", error=str(e))
