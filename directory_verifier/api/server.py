"""
FastAPI server for the directory verifier.

Exposes triggered verification, the single-item review queue and audit
queries. Components are built once per app and shared through app.state.

Run with:
    uvicorn directory_verifier.api.server:app
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from directory_verifier import __version__
from directory_verifier.api.models import HealthResponse
from directory_verifier.api.routes import review as review_routes
from directory_verifier.api.routes import verification as verification_routes
from directory_verifier.config.logging import get_logger
from directory_verifier.data_management.database import Database
from directory_verifier.pipeline.verification_pipeline import VerificationPipeline
from directory_verifier.review.review_gateway import ReviewGateway
from directory_verifier.verification.verification_agent import VerificationAgent

logger = get_logger("api")


def create_app(
    database: Optional[Database] = None,
    agent: Optional[VerificationAgent] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        database: Store handle (defaults to settings.database_url); connected
            on startup and closed on shutdown
        agent: Verification agent for triggered runs (defaults to the
            standard check set)
    """
    database = database or Database()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        logger.info("API server starting")
        await database.connect()
        app.state.database = database
        app.state.pipeline = VerificationPipeline(database, agent=agent)
        app.state.gateway = ReviewGateway(database)
        logger.info("Database connected")

        yield

        logger.info("API server shutting down")
        await database.close()

    app = FastAPI(
        title="Directory Verifier API",
        description="Triggered verification, review queue and audit log for the resource directory",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(verification_routes.router)
    app.include_router(review_routes.router)

    @app.get("/", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            version=__version__,
            database_connected=database.is_connected,
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "directory_verifier.api.server:app",
        host="0.0.0.0",
        port=8080,
        log_level="info",
    )
