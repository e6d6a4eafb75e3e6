# models.py
from decimal import Decimal
from typing import List
from uuid import uuid4

from sqlalchemy import ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Bounds of the Produto columns: Numeric(12, 2) and int4
PRECO_DECIMAL_PLACES = 2
MAX_PRECO = Decimal("9999999999.99")
MAX_ESTOQUE = 2**31 - 1


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid4())


class Product(Base):
    __tablename__ = "Produto"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    nome: Mapped[str] = mapped_column(String, unique=True)
    preco: Mapped[Decimal] = mapped_column(Numeric(12, PRECO_DECIMAL_PLACES))
    # Available (unreserved) units
    estoque: Mapped[int] = mapped_column(Integer)


class Cart(Base):
    __tablename__ = "Carrinho"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    usuario_id: Mapped[str] = mapped_column("usuarioId", String, unique=True)

    itens: Mapped[List["CartItem"]] = relationship(
        back_populates="carrinho",
        cascade="all, delete-orphan",
    )


class CartItem(Base):
    __tablename__ = "ItemCarrinho"
    __table_args__ = (
        # A product appears at most once per cart
        UniqueConstraint("produtoId", "carrinhoId"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    quantidade: Mapped[int] = mapped_column(Integer)
    produto_id: Mapped[str] = mapped_column(
        "produtoId", ForeignKey("Produto.id", ondelete="RESTRICT", onupdate="CASCADE")
    )
    carrinho_id: Mapped[str] = mapped_column(
        "carrinhoId", ForeignKey("Carrinho.id", ondelete="RESTRICT", onupdate="CASCADE")
    )

    produto: Mapped["Product"] = relationship()
    carrinho: Mapped["Cart"] = relationship(back_populates="itens")
