from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from loja.infrastructure.models import Cart, CartItem


class CartRepository:
    """
    Cart Repository - carts and their lines.

    Carts are always loaded together with their lines and each line's
    product, so formatting a cart never triggers lazy loads.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _select_cart(self):
        return (
            select(Cart)
            .options(selectinload(Cart.itens).selectinload(CartItem.produto))
            # Reloads inside a transaction must see the rows it just wrote
            .execution_options(populate_existing=True)
        )

    async def get_by_owner(self, usuario_id: str) -> Optional[Cart]:
        result = await self.session.execute(
            self._select_cart().where(Cart.usuario_id == usuario_id)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, carrinho_id: str) -> Optional[Cart]:
        result = await self.session.execute(
            self._select_cart().where(Cart.id == carrinho_id)
        )
        return result.scalar_one_or_none()

    async def create(self, usuario_id: str) -> Cart:
        cart = Cart(usuario_id=usuario_id)
        self.session.add(cart)
        await self.session.flush()
        return cart

    async def get_item(
        self, carrinho_id: str, produto_id: str, for_update: bool = False
    ) -> Optional[CartItem]:
        stmt = select(CartItem).where(
            CartItem.carrinho_id == carrinho_id,
            CartItem.produto_id == produto_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_item(self, carrinho_id: str, produto_id: str, quantidade: int) -> None:
        """
        Add quantidade units of a product to the cart.

        Creates the line on first add; later adds increment it. Two
        transactions creating the same line at once end with an
        IntegrityError on the (produtoId, carrinhoId) unique key for the loser.
        """
        item = await self.get_item(carrinho_id, produto_id, for_update=True)
        if item is None:
            self.session.add(
                CartItem(carrinho_id=carrinho_id, produto_id=produto_id, quantidade=quantidade)
            )
        else:
            result = await self.session.execute(
                update(CartItem)
                .where(CartItem.id == item.id)
                .values(quantidade=CartItem.quantidade + quantidade)
                .returning(CartItem.quantidade)
                .execution_options(synchronize_session=False)
            )
            set_committed_value(item, "quantidade", result.scalar_one())
        await self.session.flush()

    async def delete_item(self, item: CartItem) -> Optional[int]:
        """
        Delete a cart line.

        Returns:
            the quantity the deleted row held, or None if a concurrent
            transaction deleted it first
        """
        result = await self.session.execute(
            delete(CartItem)
            .where(CartItem.id == item.id)
            .returning(CartItem.quantidade)
            .execution_options(synchronize_session=False)
        )
        quantidade = result.scalar_one_or_none()
        if quantidade is not None:
            self.session.expunge(item)
        return quantidade
