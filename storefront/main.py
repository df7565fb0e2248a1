# storefront/main.py

from typing import Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config.settings import Settings, get_settings, validate_settings
from .db import Base, build_engine, build_sessionmaker
from .logging_config import configure_logging, get_logger
from .middleware import request_id_middleware
from .psp.dispatcher import PSPDispatcher
from .routers import auth, checkout, gateways, orders, webhooks_stripe
from .services.inflight import InFlightRegistry
from . import models  # noqa: F401  (register tables on Base)

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    cashfree_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    # ---------------------------------------------
    # SETTINGS
    # ---------------------------------------------
    if settings is None:
        load_dotenv()
        settings = get_settings()
    validate_settings(settings)
    configure_logging()

    app = FastAPI(
        title="Storefront Checkout API",
        version=settings.APP_VERSION,
    )

    # ---------------------------------------------
    # STATE (one configured client per gateway, per app)
    # ---------------------------------------------
    engine = build_engine(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_sessionmaker(engine)
    app.state.dispatcher = PSPDispatcher(settings, cashfree_transport=cashfree_transport)
    app.state.inflight = InFlightRegistry()

    # ---------------------------------------------
    # MIDDLEWARE
    # ---------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_id_middleware)

    # ---------------------------------------------
    # ROUTERS
    # ---------------------------------------------
    app.include_router(orders.router, prefix="/orders", tags=["Orders"])
    app.include_router(webhooks_stripe.router, prefix="/webhooks", tags=["Stripe Webhooks"])
    app.include_router(checkout.router, prefix="/checkout", tags=["Checkout"])
    app.include_router(auth.router, prefix="/auth", tags=["Auth"])
    app.include_router(gateways.router, prefix="/gateways", tags=["Gateways"])

    @app.get("/health")
    def health():
        return {"status": "ok", "environment": settings.NODE_ENV}

    logger.info("app_started", environment=settings.NODE_ENV, cashfree_environment=settings.CASHFREE_ENVIRONMENT)
    return app
