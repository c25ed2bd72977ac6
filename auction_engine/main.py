"""
Main FastAPI Application

The engine is created once per app and lives on ``app.state.engine``.
The lifespan starts the ticker and the synthetic bid worker and wires
WebSocket fan-out to the engine's event bus.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auction_engine.core.config import Settings, get_settings
from auction_engine.core.dependencies import build_engine
from auction_engine.core.exceptions import PersistenceFailure
from auction_engine.core.logger import get_logger, setup_logging
from auction_engine.services.auction_service import AuctionEngine
from auction_engine.websockets.ws_manager import ConnectionManager
from auction_engine.workers.synthetic_worker import SyntheticBidWorker
from auction_engine.workers.ticker import Ticker

# Import routers
from auction_engine.api import admin, auctions, bids, users, websockets

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[AuctionEngine] = None,
    start_workers: bool = True,
) -> FastAPI:
    """
    Build the application

    Args:
        settings: Defaults to the cached environment settings
        engine: Use this engine instead of building one from settings
        start_workers: Run the ticker and synthetic bid worker in the lifespan
    """
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting", app=settings.APP_NAME, version=settings.APP_VERSION)

        app.state.engine = engine or build_engine(settings)

        manager = ConnectionManager()
        manager.attach(asyncio.get_running_loop())
        app.state.engine.event_bus.subscribe(manager)
        app.state.ws_manager = manager

        app.state.ticker = None
        app.state.synthetic_worker = None
        if start_workers:
            app.state.ticker = Ticker(app.state.engine, settings.TICK_INTERVAL)
            await app.state.ticker.start()

            if settings.AI_BID_ENABLED:
                app.state.synthetic_worker = SyntheticBidWorker(
                    app.state.engine, settings.AI_BID_CHECK_INTERVAL,
                )
                await app.state.synthetic_worker.start()

        logger.info("Startup complete")
        yield

        logger.info("Shutting down")
        if app.state.synthetic_worker:
            await app.state.synthetic_worker.stop()
        if app.state.ticker:
            await app.state.ticker.stop()
        app.state.engine.event_bus.unsubscribe(manager)
        app.state.engine.event_bus.shutdown()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========================================================================
    # ERROR HANDLERS
    # ========================================================================
    @app.exception_handler(TimeoutError)
    async def lock_timeout_handler(request: Request, exc: TimeoutError):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(PersistenceFailure)
    async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
        logger.error("Persistence failure in request", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})

    # ========================================================================
    # INCLUDE ROUTERS
    # ========================================================================
    app.include_router(auctions.router)
    app.include_router(bids.router)
    app.include_router(users.router)
    app.include_router(admin.router)
    app.include_router(websockets.router)

    @app.get("/", tags=["root"])
    def root(request: Request):
        """Server status and statistics"""
        stats = request.app.state.engine.get_stats()
        return {
            "message": f"{settings.APP_NAME} v{settings.APP_VERSION}",
            "status": "running",
            "active_auctions": stats["active"],
            "pending_auctions": stats["pending"],
            "ended_auctions": stats["ended"],
        }

    return app


app = create_app()
