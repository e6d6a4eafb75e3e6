from typing import List

from fastapi import APIRouter, Depends, Response

from loja.api.dependencies import get_database, http_error
from loja.api.v1 import schemas
from loja.application.product.catalog import ProductCatalog
from loja.domain.exceptions import LojaError
from loja.domain.product.commands import CreateProduct, UpdateProduct
from loja.infrastructure.database import Database

router = APIRouter(prefix="/produtos", tags=["produtos"])


def get_catalog(database: Database = Depends(get_database)) -> ProductCatalog:
    return ProductCatalog(database)


@router.post("", response_model=schemas.ProductMessageResponse, status_code=201)
async def create_product(
    payload: schemas.ProductCreateRequest,
    catalog: ProductCatalog = Depends(get_catalog),
):
    """
    Criar um novo produto.

    - nome: obrigatório, único
    - preco: >= 0.01
    - estoque: >= 0
    """
    try:
        product = await catalog.create_product(CreateProduct(**payload.model_dump()))
    except LojaError as e:
        raise http_error(e) from e
    return {"mensagem": "Produto criado com sucesso!", "produto": product}


@router.get("", response_model=List[schemas.ProductResponse])
async def list_products(catalog: ProductCatalog = Depends(get_catalog)):
    """Listar todos os produtos"""
    try:
        return await catalog.get_products()
    except LojaError as e:
        raise http_error(e) from e


@router.get("/{id}", response_model=schemas.ProductResponse)
async def get_product(id: str, catalog: ProductCatalog = Depends(get_catalog)):
    """Obter um produto específico"""
    try:
        return await catalog.get_product(id)
    except LojaError as e:
        raise http_error(e) from e


@router.put("/{id}", response_model=schemas.ProductMessageResponse)
async def update_product(
    id: str,
    payload: schemas.ProductUpdateRequest,
    catalog: ProductCatalog = Depends(get_catalog),
):
    """
    Atualizar um produto existente.

    Only the fields sent are changed; an empty body is rejected.
    """
    try:
        command = UpdateProduct(**payload.model_dump(exclude_unset=True))
        product = await catalog.update_product(id, command)
    except LojaError as e:
        raise http_error(e) from e
    return {"mensagem": "Produto atualizado!", "produto": product}


@router.delete("/{id}", status_code=204)
async def delete_product(id: str, catalog: ProductCatalog = Depends(get_catalog)):
    """Remover um produto"""
    try:
        await catalog.delete_product(id)
    except LojaError as e:
        raise http_error(e) from e
    return Response(status_code=204)
