# product_repository.py
from typing import List, Optional

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from loja.infrastructure.models import CartItem, Product


class ProductRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> List[Product]:
        result = await self.session.execute(select(Product).order_by(Product.nome))
        return list(result.scalars().all())

    async def get_by_id(self, id: str, for_update: bool = False) -> Optional[Product]:
        """
        Load product by id.

        for_update=True takes a row lock (SELECT ... FOR UPDATE) so concurrent
        reservations of the same product queue up behind each other. It also
        refreshes an instance already present in the session.
        """
        stmt = select(Product).where(Product.id == id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_name(self, nome: str) -> Optional[Product]:
        """Look up a product by name (for the uniqueness check)"""
        result = await self.session.execute(select(Product).where(Product.nome == nome))
        return result.scalar_one_or_none()

    async def create(self, product: Product) -> Product:
        self.session.add(product)
        await self.session.flush()
        return product

    async def reserve_stock(self, id: str, quantidade: int) -> Optional[int]:
        """
        Conditionally decrement stock.

        The WHERE clause re-checks availability inside the UPDATE itself, so
        stock can't go negative even if the earlier read is stale.

        Returns:
            remaining stock, or None when not enough units were available
        """
        stmt = (
            update(Product)
            .where(Product.id == id, Product.estoque >= quantidade)
            .values(estoque=Product.estoque - quantidade)
            .returning(Product.estoque)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def release_stock(self, id: str, quantidade: int) -> Optional[int]:
        """Give reserved units back to stock; returns the new stock."""
        stmt = (
            update(Product)
            .where(Product.id == id)
            .values(estoque=Product.estoque + quantidade)
            .returning(Product.estoque)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def is_reserved(self, id: str) -> bool:
        """True when any cart line still references the product."""
        result = await self.session.execute(
            select(exists().where(CartItem.produto_id == id))
        )
        return bool(result.scalar())

    async def delete(self, product: Product) -> None:
        await self.session.delete(product)
        await self.session.flush()
