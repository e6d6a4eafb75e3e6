# catalog.py
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from loja.domain.exceptions import (
    DuplicateProductNameError,
    InvalidInputError,
    ProductInUseError,
    ProductNotFoundError,
)
from loja.domain.product.commands import CreateProduct, UpdateProduct
from loja.infrastructure.database import Database
from loja.infrastructure.models import MAX_ESTOQUE, MAX_PRECO, PRECO_DECIMAL_PLACES, Product
from loja.infrastructure.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)

MIN_PRECO = Decimal("0.01")
PRECO_QUANTUM = Decimal(1).scaleb(-PRECO_DECIMAL_PLACES)
UPDATABLE_FIELDS = ("nome", "preco", "estoque")


class ProductCatalog:
    """
    Product Catalog - creates, reads, updates and deletes products.

    Catalog mutations touch a single Produto row, so each one runs in its
    own short transaction. Stock moves caused by carts go through the
    cart use cases instead.
    """

    def __init__(self, database: Database):
        self.database = database

    def _validate_nome(self, nome: Optional[str]) -> None:
        if nome is None or not nome.strip():
            raise InvalidInputError("O nome do produto não pode ser vazio.", details={'nome': nome})

    def _validate_preco(self, preco: Optional[Decimal]) -> None:
        if preco is None or preco < MIN_PRECO:
            raise InvalidInputError(
                f"O preço deve ser de no mínimo {MIN_PRECO}.",
                details={'preco': preco}
            )
        if preco > MAX_PRECO:
            raise InvalidInputError(
                f"O preço deve ser de no máximo {MAX_PRECO}.",
                details={'preco': preco}
            )
        # Stored as-is, never rounded
        if preco != preco.quantize(PRECO_QUANTUM):
            raise InvalidInputError(
                f"O preço deve ter no máximo {PRECO_DECIMAL_PLACES} casas decimais.",
                details={'preco': preco}
            )

    def _validate_estoque(self, estoque: Optional[int]) -> None:
        if estoque is None or estoque < 0:
            raise InvalidInputError(
                "O estoque não pode ser negativo.",
                details={'estoque': estoque}
            )
        if estoque > MAX_ESTOQUE:
            raise InvalidInputError(
                f"O estoque deve ser de no máximo {MAX_ESTOQUE}.",
                details={'estoque': estoque}
            )

    def _validate(self, fields: dict) -> None:
        validators = {
            'nome': self._validate_nome,
            'preco': self._validate_preco,
            'estoque': self._validate_estoque,
        }
        for field_name, value in fields.items():
            validators[field_name](value)

    async def create_product(self, command: CreateProduct) -> Product:
        """Create a product with a unique name"""
        self._validate(command.model_dump())

        try:
            async with self.database.transaction() as session:
                repo = ProductRepository(session)
                if await repo.get_by_name(command.nome) is not None:
                    raise DuplicateProductNameError(command.nome)
                product = await repo.create(Product(**command.model_dump()))
        except IntegrityError as e:
            # Lost the race for the name to a concurrent create
            raise DuplicateProductNameError(command.nome) from e

        logger.info("Product %s created (nome=%r, estoque=%d)", product.id, product.nome, product.estoque)
        return product

    async def get_products(self) -> List[Product]:
        async with self.database.session() as session:
            return await ProductRepository(session).get_all()

    async def get_product(self, id: str) -> Product:
        async with self.database.session() as session:
            product = await ProductRepository(session).get_by_id(id)
        if product is None:
            raise ProductNotFoundError(id)
        return product

    async def update_product(self, id: str, command: UpdateProduct) -> Product:
        """
        Partial update (any subset of nome, preco, estoque).

        Raises:
            InvalidInputError: a supplied field is invalid, or nothing was supplied
            ProductNotFoundError: no product with this id
            DuplicateProductNameError: the new name belongs to another product
        """
        changes = command.changes()
        self._validate(changes)

        try:
            async with self.database.transaction() as session:
                repo = ProductRepository(session)
                product = await repo.get_by_id(id, for_update=True)
                if product is None:
                    raise ProductNotFoundError(id)

                if not changes:
                    raise InvalidInputError("Pelo menos um campo deve ser fornecido para atualização.")

                if 'nome' in changes and changes['nome'] != product.nome:
                    existing = await repo.get_by_name(changes['nome'])
                    if existing is not None and existing.id != id:
                        raise DuplicateProductNameError(changes['nome'])

                for field_name in UPDATABLE_FIELDS:
                    if field_name in changes:
                        setattr(product, field_name, changes[field_name])
                await session.flush()
        except IntegrityError as e:
            raise DuplicateProductNameError(changes.get('nome', '')) from e

        logger.info("Product %s updated (%s)", id, ", ".join(sorted(changes)))
        return product

    async def delete_product(self, id: str) -> None:
        """
        Delete a product.

        Products still reserved by a cart line are kept; the caller gets
        ProductInUseError and must remove the lines first.
        """
        try:
            async with self.database.transaction() as session:
                repo = ProductRepository(session)
                product = await repo.get_by_id(id, for_update=True)
                if product is None:
                    raise ProductNotFoundError(id)
                if await repo.is_reserved(id):
                    raise ProductInUseError(id)
                await repo.delete(product)
        except IntegrityError as e:
            # A line referencing the product was committed in between
            raise ProductInUseError(id) from e

        logger.info("Product %s deleted", id)
