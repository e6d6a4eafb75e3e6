import asyncio
import logging

from sqlalchemy.exc import IntegrityError

from loja import config
from loja.application.cart.create_cart import GetOrCreateCartUseCase
from loja.application.cart.view_cart import CartView, format_cart
from loja.domain.cart.commands import AddItemToCart
from loja.domain.exceptions import (
    ConcurrencyException,
    InsufficientStockError,
    InvalidInputError,
    ProductNotFoundError,
)
from loja.infrastructure.database import Database
from loja.infrastructure.repositories.cart_repository import CartRepository
from loja.infrastructure.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)


class AddItemToCartUseCase:
    """
    Use Case: Reserve stock by adding a product to the owner's cart.

    Flow:
    1. Resolve (or create) the owner's cart
    2. In one transaction:
       a. lock the product row and check its stock
       b. decrement stock with a conditional UPDATE (estoque >= quantidade)
       c. create the cart line or increment its quantity
       d. reload the cart and format it
    3. On a write conflict the whole transaction is rolled back and retried
       against fresh data, up to max_retries attempts

    Stock decrement and line upsert commit together or not at all.
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

    async def execute(self, command: AddItemToCart) -> CartView:
        """
        Execute add item command with retry on concurrency conflicts.

        Raises:
            InvalidInputError: quantidade < 1
            ProductNotFoundError: no product with this id
            InsufficientStockError: not enough stock left for the reservation
            ConcurrencyException: still conflicting after max_retries attempts
        """
        if command.quantidade < 1:
            raise InvalidInputError(
                "A quantidade deve ser de no mínimo 1.",
                details={'quantidade': command.quantidade}
            )

        cart = await GetOrCreateCartUseCase(self.database).execute(command.usuario_id)

        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._execute_once(cart.id, command)
            except ConcurrencyException as e:
                if attempt == self.max_retries:
                    logger.error(
                        "Reservation of product %s for owner %s failed after %d attempts: %s",
                        command.produto_id, command.usuario_id, attempt, e
                    )
                    raise
                delay = self.retry_delay_base * (2 ** (attempt - 1))
                logger.warning(
                    "Attempt %d to reserve product %s conflicted, retrying in %.2fs",
                    attempt, command.produto_id, delay
                )
                await asyncio.sleep(delay)

    async def _execute_once(self, carrinho_id: str, command: AddItemToCart) -> CartView:
        """Single execution attempt"""
        try:
            async with self.database.transaction() as session:
                products = ProductRepository(session)
                carts = CartRepository(session)

                product = await products.get_by_id(command.produto_id, for_update=True)
                if product is None:
                    raise ProductNotFoundError(command.produto_id)

                if product.estoque < command.quantidade:
                    raise InsufficientStockError(product.nome, product.estoque)

                remaining = await products.reserve_stock(product.id, command.quantidade)
                if remaining is None:
                    # Stock was taken by a transaction that committed after our read
                    current = await products.get_by_id(product.id, for_update=True)
                    if current is None:
                        raise ProductNotFoundError(command.produto_id)
                    raise InsufficientStockError(current.nome, current.estoque)

                await carts.upsert_item(carrinho_id, product.id, command.quantidade)

                cart = await carts.get_by_id(carrinho_id)
                view = format_cart(cart)
        except IntegrityError as e:
            # Concurrent first add of the same product to the same cart
            raise ConcurrencyException(
                f"Conflito ao adicionar o produto {command.produto_id} ao carrinho."
            ) from e

        logger.info(
            "Reserved %d x product %s for owner %s (estoque restante: %d)",
            command.quantidade, command.produto_id, command.usuario_id, remaining
        )
        return view
