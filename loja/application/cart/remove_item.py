import asyncio
import logging

from loja import config
from loja.application.cart.create_cart import GetOrCreateCartUseCase
from loja.application.cart.view_cart import CartView, format_cart
from loja.domain.cart.commands import RemoveItemFromCart
from loja.domain.exceptions import CartItemNotFoundError, ConcurrencyException
from loja.infrastructure.database import Database
from loja.infrastructure.repositories.cart_repository import CartRepository
from loja.infrastructure.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)


class RemoveItemFromCartUseCase:
    """
    Use Case: Remove a product from the cart.

    The whole line goes away and its full quantity returns to stock, in one
    transaction. Locks are taken product first, then line, in the same order
    as AddItemToCartUseCase.
    """

    def __init__(
        self,
        database: Database,
        max_retries: int = config.MAX_TRANSACTION_RETRIES,
        retry_delay_base: float = config.RETRY_DELAY_BASE,
    ):
        self.database = database
        self.max_retries = max_retries
        self.retry_delay_base = retry_delay_base

    async def execute(self, command: RemoveItemFromCart) -> CartView:
        """Execute remove item command with retry on concurrency conflicts"""
        cart = await GetOrCreateCartUseCase(self.database).execute(command.usuario_id)

        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._execute_once(cart.id, command)
            except ConcurrencyException as e:
                if attempt == self.max_retries:
                    logger.error(
                        "Release of product %s for owner %s failed after %d attempts: %s",
                        command.produto_id, command.usuario_id, attempt, e
                    )
                    raise
                delay = self.retry_delay_base * (2 ** (attempt - 1))
                logger.warning(
                    "Attempt %d to release product %s conflicted, retrying in %.2fs",
                    attempt, command.produto_id, delay
                )
                await asyncio.sleep(delay)

    async def _execute_once(self, carrinho_id: str, command: RemoveItemFromCart) -> CartView:
        """Single execution attempt"""
        async with self.database.transaction() as session:
            products = ProductRepository(session)
            carts = CartRepository(session)

            product = await products.get_by_id(command.produto_id, for_update=True)
            item = None
            if product is not None:
                item = await carts.get_item(carrinho_id, command.produto_id, for_update=True)
            if item is None:
                raise CartItemNotFoundError(command.produto_id)

            # Restock exactly what the deleted row held
            quantidade = await carts.delete_item(item)
            if quantidade is None:
                raise CartItemNotFoundError(command.produto_id)
            await products.release_stock(product.id, quantidade)

            cart = await carts.get_by_id(carrinho_id)
            view = format_cart(cart)

        logger.info(
            "Released %d x product %s from owner %s",
            quantidade, command.produto_id, command.usuario_id
        )
        return view
