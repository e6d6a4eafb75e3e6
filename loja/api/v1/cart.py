from fastapi import APIRouter, Depends

from loja.api.dependencies import get_database, get_usuario_id, http_error
from loja.api.v1 import schemas
from loja.application.cart.add_item import AddItemToCartUseCase
from loja.application.cart.remove_item import RemoveItemFromCartUseCase
from loja.application.cart.view_cart import ViewCartQuery
from loja.domain.cart.commands import AddItemToCart, RemoveItemFromCart
from loja.domain.exceptions import LojaError
from loja.infrastructure.database import Database

router = APIRouter(prefix="/carrinho", tags=["carrinho"])


# === Command Endpoints (Write) ===

@router.post("/adicionar", response_model=schemas.CartMessageResponse, status_code=201)
async def add_item_to_cart(
    payload: schemas.AddItemRequest,
    database: Database = Depends(get_database),
    usuario_id: str = Depends(get_usuario_id),
):
    """
    Adicionar item ao carrinho.

    Reserves the units: product stock and cart line change in one
    transaction, retried on concurrency conflicts.
    """
    try:
        command = AddItemToCart(
            usuario_id=usuario_id,
            produto_id=payload.produto_id,
            quantidade=payload.quantidade,
        )
        cart = await AddItemToCartUseCase(database).execute(command)
    except LojaError as e:
        raise http_error(e) from e
    return {"mensagem": "Item adicionado ao carrinho!", "carrinho": cart}


@router.delete("/remover/{produto_id}", response_model=schemas.CartMessageResponse)
async def remove_item_from_cart(
    produto_id: str,
    database: Database = Depends(get_database),
    usuario_id: str = Depends(get_usuario_id),
):
    """Remover item do carrinho (the whole line goes back to stock)"""
    try:
        command = RemoveItemFromCart(usuario_id=usuario_id, produto_id=produto_id)
        cart = await RemoveItemFromCartUseCase(database).execute(command)
    except LojaError as e:
        raise http_error(e) from e
    return {"mensagem": "Item removido do carrinho!", "carrinho": cart}


# === Query Endpoints (Read) ===

@router.get("", response_model=schemas.CartResponse)
async def get_cart(
    database: Database = Depends(get_database),
    usuario_id: str = Depends(get_usuario_id),
):
    """Ver carrinho atual"""
    try:
        return await ViewCartQuery(database).execute(usuario_id)
    except LojaError as e:
        raise http_error(e) from e
