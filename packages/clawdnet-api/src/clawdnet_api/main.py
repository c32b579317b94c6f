"""ClawdNet API application factory."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clawdnet_core.config import ClawdnetSettings, load_settings
from clawdnet_protocol.x402 import X402_PAYMENT_REQUIRED_MARKER, X402_PAYMENT_RESPONSE_HEADER

from .dependencies import ServiceContainer
from .middleware import StructuredLoggingMiddleware, register_exception_handlers, setup_logging
from .routers import discovery, invoke, transactions

logger = logging.getLogger("clawdnet.api")


def create_app(
    settings: ClawdnetSettings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    settings = settings or (container.settings if container else load_settings())
    container = container or ServiceContainer(settings)

    setup_logging(json_format=settings.use_json_logs, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting ClawdNet API ({settings.environment})...")
        yield
        logger.info("Shutting down ClawdNet API...")
        await container.close()

    app = FastAPI(
        title="ClawdNet Agent API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(StructuredLoggingMiddleware, exclude_paths=["/health"])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "X-Request-ID",
            "X-PAYMENT",
            "payment-signature",
            "X-Caller-Handle",
        ],
        expose_headers=[X402_PAYMENT_REQUIRED_MARKER, X402_PAYMENT_RESPONSE_HEADER, "X-Request-ID"],
    )
    register_exception_handlers(app)

    app.dependency_overrides[invoke.get_deps] = lambda: invoke.InvokeDependencies(  # type: ignore[arg-type]
        orchestrator=container.orchestrator,
    )
    app.include_router(invoke.router, prefix="/api/agents")

    app.dependency_overrides[transactions.get_deps] = lambda: transactions.TransactionDependencies(  # type: ignore[arg-type]
        directory=container.directory,
        recorder=container.recorder,
    )
    app.include_router(transactions.router, prefix="/api/agents")

    app.dependency_overrides[discovery.get_deps] = lambda: discovery.DiscoveryDependencies(  # type: ignore[arg-type]
        directory=container.directory,
        domain=settings.public_domain,
    )
    app.include_router(discovery.router)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
            "components": container.component_status(),
        }

    return app
