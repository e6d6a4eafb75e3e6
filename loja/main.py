import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from loja import config
from loja.api.v1 import cart, products
from loja.infrastructure.database import Database
from loja.logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_app(database_url: Optional[str] = None) -> FastAPI:
    """Build the application; the store is opened by the lifespan handler."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifecycle manager - setup and teardown.
        Opens the connection pool at startup and disposes it at shutdown.
        """
        # Startup
        db = Database(
            database_url or config.DATABASE_URL,
            echo=config.DB_ECHO,
            pool_size=config.DB_POOL_SIZE,
        )
        await db.create_tables()
        app.state.db = db
        logger.info("Store service started")

        yield

        # Shutdown
        await db.close()

    app = FastAPI(
        title="Loja API",
        description="Catálogo de produtos e carrinho com reserva de estoque",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(products.router)
    app.include_router(cart.router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # Malformed payloads are InvalidInput, answered like the domain errors
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "ok", "service": "loja"}

    @app.get("/")
    async def root():
        return {
            "message": "Loja API",
            "endpoints": {
                "produtos": "/produtos",
                "carrinho": "/carrinho",
                "docs": "/docs",
            },
        }

    return app


configure_logging(config.LOG_LEVEL)
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "loja.main:app",
        host=config.HOST,
        port=config.PORT,
    )
