from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from loja.infrastructure.models import MAX_ESTOQUE, MAX_PRECO, PRECO_DECIMAL_PLACES

# Decimals on the way in, JSON numbers on the way out
Money = Annotated[Decimal, PlainSerializer(float, return_type=float)]


# === Product schemas ===

class ProductCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    nome: str = Field(..., min_length=1, examples=["Smartphone XYZ"])
    preco: Decimal = Field(
        ..., ge=Decimal("0.01"), le=MAX_PRECO, decimal_places=PRECO_DECIMAL_PLACES, examples=[1299.99]
    )
    estoque: int = Field(..., ge=0, le=MAX_ESTOQUE, examples=[50])


class ProductUpdateRequest(BaseModel):
    """All fields optional; at least one must be sent."""
    model_config = ConfigDict(extra="forbid")

    nome: Optional[str] = Field(None, min_length=1)
    preco: Optional[Decimal] = Field(
        None, ge=Decimal("0.01"), le=MAX_PRECO, decimal_places=PRECO_DECIMAL_PLACES
    )
    estoque: Optional[int] = Field(None, ge=0, le=MAX_ESTOQUE)


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    nome: str
    preco: Money
    estoque: int


class ProductMessageResponse(BaseModel):
    mensagem: str
    produto: ProductResponse


# === Cart schemas ===

class AddItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    produto_id: str = Field(..., alias="produtoId", min_length=1)
    quantidade: int = Field(..., ge=1, le=MAX_ESTOQUE, description="A quantidade deve ser de no mínimo 1.")


class CartLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    produto_id: str = Field(alias="produtoId")
    nome: str
    quantidade: int
    preco_unitario: Money = Field(alias="precoUnitario")
    total_item: Money = Field(alias="totalItem")


class CartResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    usuario_id: str = Field(alias="usuarioId")
    itens: List[CartLineResponse]
    total: Money


class CartMessageResponse(BaseModel):
    mensagem: str
    carrinho: CartResponse
