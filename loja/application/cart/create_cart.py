import logging

from sqlalchemy.exc import IntegrityError

from loja import config
from loja.domain.exceptions import CartNotFoundError, ConcurrencyException
from loja.infrastructure.database import Database
from loja.infrastructure.models import Cart
from loja.infrastructure.repositories.cart_repository import CartRepository

logger = logging.getLogger(__name__)


class GetOrCreateCartUseCase:
    """
    Use Case: return the owner's cart, creating an empty one on first access.

    Flow:
    1. Load the cart (lines and products eagerly loaded)
    2. If missing, insert it in its own transaction
    3. If a concurrent request inserted it first, the unique key on
       usuarioId rejects our insert; fetch the winner's cart instead
    """

    def __init__(self, database: Database, max_retries: int = config.MAX_TRANSACTION_RETRIES):
        self.database = database
        self.max_retries = max_retries

    async def execute(self, usuario_id: str) -> Cart:
        for attempt in range(1, self.max_retries + 1):
            cart = await self._load(usuario_id)
            if cart is not None:
                return cart

            try:
                async with self.database.transaction() as session:
                    await CartRepository(session).create(usuario_id)
                logger.info("Cart created for owner %s", usuario_id)
            except IntegrityError:
                logger.info("Cart for owner %s created concurrently, using existing one", usuario_id)
            except ConcurrencyException:
                if attempt == self.max_retries:
                    raise
                logger.warning("Attempt %d to create cart for owner %s conflicted", attempt, usuario_id)

        cart = await self._load(usuario_id)
        if cart is None:
            raise CartNotFoundError(usuario_id)
        return cart

    async def _load(self, usuario_id: str) -> Cart | None:
        async with self.database.session() as session:
            return await CartRepository(session).get_by_owner(usuario_id)
