"""
Shared fixtures.

Every test gets its own file-backed SQLite database, so concurrent
transactions use separate connections, like against PostgreSQL.
"""

from decimal import Decimal

import httpx
import pytest_asyncio

from loja.application.product.catalog import ProductCatalog
from loja.domain.product.commands import CreateProduct
from loja.infrastructure.database import Database
from loja.main import create_app


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'loja.db'}")
    await db.create_tables()

    yield db

    await db.close()


@pytest_asyncio.fixture
async def catalog(database):
    return ProductCatalog(database)


@pytest_asyncio.fixture
async def widget(catalog):
    """Product{nome: Widget, preco: 10.00, estoque: 5}"""
    return await catalog.create_product(
        CreateProduct(nome="Widget", preco=Decimal("10.00"), estoque=5)
    )


@pytest_asyncio.fixture
async def client(database):
    # ASGITransport doesn't run the lifespan, the store is wired in directly
    app = create_app()
    app.state.db = database

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
