"""
Main FastAPI application
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deadlines.config import Settings, get_settings
from deadlines.database import Database
from deadlines.models import *  # noqa: F401,F403 - register tables on Base.metadata
from deadlines.services.queue import QueueClient, SignatureVerifier, TaskDispatcher
from deadlines.api import todos, projects, queue
from deadlines.utils.logger import get_logger

logger = get_logger("deadlines")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Composition root: every long-lived client is built here and parked on app.state"""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = Database(settings.DATABASE_URL, echo=settings.DEBUG)
        queue_client = QueueClient.from_settings(settings)

        app.state.db = db
        app.state.dispatcher = TaskDispatcher(queue_client)
        app.state.signature_verifier = SignatureVerifier.from_settings(settings)

        await db.create_all()
        logger.info("Database tables created")

        yield

        await queue_client.aclose()
        await db.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(todos.router, prefix="/api/teams/{team_id}/todos", tags=["Todos"])
    app.include_router(projects.router, prefix="/api/teams/{team_id}/projects", tags=["Projects"])
    app.include_router(queue.router, prefix="/api/queue", tags=["Queue"])

    @app.get("/")
    async def root():
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running"
        }

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "deadlines.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().DEBUG
    )
