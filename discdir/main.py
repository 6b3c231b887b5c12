"""
FastAPI application main module.
"""
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from prometheus_client import make_asgi_app

from .config import Config
from .database.directory_store import DirectoryStore
from .database.errors import DatabaseError
from .dependencies.directory import set_query_handler
from .routers import routers
from .tasks.program_listener import ListenerSupervisor
from .utils.directory_query import DirectoryQueryHandler
from .utils.logging_config import setup_logging
from .utils.solana_connection import SolanaConnection

# Configure logging
setup_logging('discdir')
logger = setup_logging('discdir.main')

RUNNING_MESSAGE = "Discriminator Directory API is running"


def create_app(store_factory: Callable[[], DirectoryStore] = DirectoryStore,
               connection_factory: Callable[[], SolanaConnection] = SolanaConnection,
               start_listeners: bool = True) -> FastAPI:
    """
    Build the application.

    Args:
        store_factory: Builds the directory store on startup
        connection_factory: Builds the ledger connection on startup
        start_listeners: Start a listener for every program already in the directory
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for FastAPI app.
        Handles startup and shutdown events.
        """
        # Startup
        logger.info("Starting up application...")

        store: Optional[DirectoryStore] = store_factory()
        connection = connection_factory()
        supervisor: Optional[ListenerSupervisor] = None

        try:
            await store.initialize_async()
            logger.info("Directory store initialized")
        except DatabaseError as e:
            logger.error(f"Failed to connect to the database: {e}")
            logger.warning("Starting server with limited functionality - database operations will not work")
            store.close()
            store = None

        if store is not None:
            supervisor = ListenerSupervisor(connection, store)
            set_query_handler(
                DirectoryQueryHandler(store, connection, on_program_backfilled=supervisor.ensure_listener)
            )

            if start_listeners:
                try:
                    program_ids = await store.list_program_ids_async()
                    supervisor.start(program_ids)
                except DatabaseError as e:
                    logger.error(f"Failed to fetch program IDs: {e}")

        app.state.store = store
        app.state.supervisor = supervisor

        try:
            logger.info("About to yield control to Uvicorn")
            yield
        finally:
            set_query_handler(None)

            if supervisor is not None:
                await supervisor.stop()

            try:
                await connection.close()
            except Exception as e:
                logger.error(f"Error closing ledger connection: {str(e)}")

            if store is not None:
                store.close()

            logger.info("Application shutdown complete")

    # Create FastAPI app
    app = FastAPI(
        title=Config.API_TITLE,
        description=Config.API_DESCRIPTION,
        version=Config.API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {
                "name": "Directory",
                "description": "Discriminator upload and lookup endpoints"
            }
        ]
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add Prometheus metrics
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    for router in routers:
        app.include_router(router)

    @app.get("/", tags=["Root"], response_class=PlainTextResponse)
    async def root():
        return RUNNING_MESSAGE

    @app.get("/health", tags=["Root"], response_class=PlainTextResponse)
    async def health():
        return RUNNING_MESSAGE

    return app


app = create_app()
