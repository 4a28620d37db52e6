"""
Agent Gateway - FastAPI Application.

Main entry point for the chat, admin and catalog HTTP API.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gateway.catalog.parser import CatalogParser
from gateway.catalog.store import SnapshotStore
from gateway.config import GatewaySettings, get_settings
from gateway.logic.augmenter import ResponseAugmenter
from gateway.logic.chat_service import ChatService, CommandService
from gateway.logic.config_inspector import ConfigInspector
from gateway.logic.classifier import LLMClassifier
from gateway.logic.command_interpreter import CommandInterpreter
from gateway.logic.config_mutator import ConfigurationMutator
from gateway.logic.document_store import ConfigurationDocument, DocumentStore
from gateway.logic.input_validator import InputValidator
from gateway.logic.llm_client import LLMClient
from gateway.logic.rate_limiter import RateLimiter, TierRateLimits
from gateway.logic.response_collector import ResponseCollector
from gateway.middleware.error_handler import setup_error_handlers
from gateway.middleware.rate_limit import RateLimitMiddleware
from gateway.middleware.request_logging import RequestLoggingMiddleware
from gateway.middleware.security_headers import SecurityHeadersMiddleware
from gateway.routes import admin, catalog, chat, health

# Load environment variables from .env file
load_dotenv()

# Configure logging (GATEWAY_ prefix per naming convention)
log_level_str = os.getenv("GATEWAY_LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_str, logging.INFO)
log_format = os.getenv(
    "GATEWAY_LOG_FORMAT",
    "%(asctime)s - %(levelname)s - %(name)s - %(funcName)s - %(message)s",
)
logging.basicConfig(level=log_level, format=log_format)
logger = logging.getLogger(__name__)

# Suppress per-request httpx logs
logging.getLogger("httpx").setLevel(logging.WARNING)


async def _cleanup_rate_limits(app: FastAPI, interval: float) -> None:
    """Background task evicting expired rate limit records."""
    while True:
        await asyncio.sleep(interval)
        evicted = app.state.rate_limiter.cleanup() + app.state.chat_service.tier_limits.cleanup()
        if evicted:
            logger.debug("🧹 Evicted %d expired rate limit records", evicted)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Starts the rate limit cleanup task and closes HTTP clients on shutdown.
    """
    settings: GatewaySettings = app.state.settings
    cleanup_task = asyncio.create_task(
        _cleanup_rate_limits(app, settings.rate_limit_cleanup_interval)
    )
    snapshot = app.state.snapshots.current()
    logger.info(
        "✅ Gateway ready: %d agents, %d tiers from %s",
        len(snapshot.agents),
        len(snapshot.tiers),
        settings.config_dir,
    )

    yield

    cleanup_task.cancel()
    await app.state.collector.close()
    await app.state.llm.close()
    logger.info("👋 Gateway stopped")


def build_components(app: FastAPI, settings: GatewaySettings) -> None:
    """
    Build every gateway component and attach it to app.state.

    Raises:
        ConfigError: If the configuration directory cannot be loaded.
    """
    parser = CatalogParser(
        settings.config_dir,
        plans=settings.plans,
        default_plan=settings.default_plan,
        default_agent=settings.default_agent,
        fallback_agents=settings.fallback_agents,
    )
    snapshots = SnapshotStore(parser)

    def validate_documents(path: str, document: ConfigurationDocument) -> None:
        parser.load()

    documents = DocumentStore(settings.config_dir, validator=validate_documents)
    commands = CommandService(
        CommandInterpreter(),
        ConfigurationMutator(documents, snapshots.current),
    )

    llm = LLMClient(timeout=settings.llm_timeout)
    collector = ResponseCollector(settings, llm)

    app.state.settings = settings
    app.state.snapshots = snapshots
    app.state.llm = llm
    app.state.collector = collector
    app.state.command_service = commands
    app.state.config_inspector = ConfigInspector(documents, parser)
    app.state.rate_limiter = RateLimiter(settings.rate_limit_max, settings.rate_limit_window_ms)
    app.state.chat_service = ChatService(
        settings,
        snapshots,
        collector,
        commands,
        classifier=LLMClassifier.from_settings(llm, settings),
        augmenter=ResponseAugmenter(),
        validator=InputValidator(settings.max_message_length, settings.max_username_length),
        tier_limits=TierRateLimits(),
    )


def create_app(settings: GatewaySettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Agent Gateway",
        description="Tier-gated chat routing to specialized agents",
        version="0.1.0",
        lifespan=lifespan,
    )
    build_components(app, settings)

    # Register error handlers
    setup_error_handlers(app)

    app.add_middleware(RateLimitMiddleware, limiter=app.state.rate_limiter)

    if settings.security_headers_enabled:
        app.add_middleware(SecurityHeadersMiddleware)
    if settings.request_logging_enabled:
        app.add_middleware(RequestLoggingMiddleware, skip_paths=("/health",))

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )

    # Register routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(chat.router, prefix="/api/chat", tags=["Chat"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
    app.include_router(catalog.router, prefix="/api", tags=["Catalog"])

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "gateway.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )
