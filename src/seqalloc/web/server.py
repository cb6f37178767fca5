from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from seqalloc.app import App
from seqalloc.config import Config
from seqalloc.errors import AllocationError, UserError
from seqalloc.web.error_handlers import allocation_error_handler, general_exception_handler, user_error_handler
from seqalloc.web.openapi import set_custom_openapi
from seqalloc.web.routers import histories_router, sequences_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """FastAPI application lifespan management."""
        app.state.app = app_instance
        app.state.config = config
        async with app_instance.lifespan():
            yield

    app = FastAPI(title="seqalloc API", lifespan=lifespan)

    # Health check endpoint (at root level, not versioned)
    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(sequences_router, prefix="/api/v1")
    app.include_router(histories_router, prefix="/api/v1")

    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(AllocationError, allocation_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app
