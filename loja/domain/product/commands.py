from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class Command(BaseModel):
    """Base class for all commands"""
    pass


class CreateProduct(Command):
    """Command: Create a new product in the catalog"""
    nome: str
    preco: Decimal
    estoque: int


class UpdateProduct(Command):
    """
    Command: Change any subset of a product's fields.

    Only fields explicitly set by the caller are applied, see changes().
    """
    nome: Optional[str] = None
    preco: Optional[Decimal] = None
    estoque: Optional[int] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
