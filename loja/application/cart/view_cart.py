from dataclasses import dataclass, field
from decimal import Decimal

from loja.infrastructure.database import Database
from loja.infrastructure.models import Cart
from loja.application.cart.create_cart import GetOrCreateCartUseCase


@dataclass(frozen=True)
class CartLineView:
    produto_id: str
    nome: str
    quantidade: int
    preco_unitario: Decimal
    total_item: Decimal


@dataclass(frozen=True)
class CartView:
    """Formatted cart. Totals are computed on read and never stored."""
    id: str
    usuario_id: str
    itens: list[CartLineView] = field(default_factory=list)
    total: Decimal = Decimal("0")


def format_cart(cart: Cart) -> CartView:
    """Project a cart (lines and products loaded) into its response shape."""
    itens = [
        CartLineView(
            produto_id=item.produto_id,
            nome=item.produto.nome,
            quantidade=item.quantidade,
            preco_unitario=item.produto.preco,
            total_item=item.quantidade * item.produto.preco,
        )
        for item in sorted(cart.itens, key=lambda i: i.produto.nome)
    ]
    total = sum((line.total_item for line in itens), Decimal("0"))
    return CartView(id=cart.id, usuario_id=cart.usuario_id, itens=itens, total=total)


class ViewCartQuery:
    """
    Query: Get the contents of a cart.

    Reads bypass the reservation logic; an owner without a cart gets an
    empty one created on the spot.
    """

    def __init__(self, database: Database):
        self.database = database

    async def execute(self, usuario_id: str) -> CartView:
        cart = await GetOrCreateCartUseCase(self.database).execute(usuario_id)
        return format_cart(cart)
