import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import delete

from loja.application.cart.add_item import AddItemToCartUseCase
from loja.application.cart.create_cart import GetOrCreateCartUseCase
from loja.application.cart.remove_item import RemoveItemFromCartUseCase
from loja.application.cart.view_cart import ViewCartQuery
from loja.domain.cart.commands import AddItemToCart, RemoveItemFromCart
from loja.domain.exceptions import (
    CartItemNotFoundError,
    ConcurrencyException,
    InsufficientStockError,
    InvalidInputError,
    ProductNotFoundError,
)
from loja.domain.product.commands import CreateProduct
from loja.infrastructure.models import Product
from loja.infrastructure.repositories.product_repository import ProductRepository

OWNER = "usuario-123"


def add(database, produto_id, quantidade, usuario_id=OWNER, max_retries=5):
    use_case = AddItemToCartUseCase(database, max_retries=max_retries, retry_delay_base=0.01)
    return use_case.execute(
        AddItemToCart(usuario_id=usuario_id, produto_id=produto_id, quantidade=quantidade)
    )


def remove(database, produto_id, usuario_id=OWNER):
    use_case = RemoveItemFromCartUseCase(database, retry_delay_base=0.01)
    return use_case.execute(RemoveItemFromCart(usuario_id=usuario_id, produto_id=produto_id))


class TestGetOrCreateCart:

    async def test_creates_empty_cart_on_first_access(self, database):
        cart = await GetOrCreateCartUseCase(database).execute(OWNER)

        assert cart.id
        assert cart.usuario_id == OWNER
        assert cart.itens == []

    async def test_returns_same_cart_afterwards(self, database):
        first = await GetOrCreateCartUseCase(database).execute(OWNER)
        second = await GetOrCreateCartUseCase(database).execute(OWNER)

        assert first.id == second.id

    async def test_concurrent_first_access_yields_one_cart(self, database):
        carts = await asyncio.gather(
            *(GetOrCreateCartUseCase(database).execute(OWNER) for _ in range(4))
        )

        assert len({cart.id for cart in carts}) == 1

    async def test_view_empty_cart(self, database):
        view = await ViewCartQuery(database).execute(OWNER)

        assert view.usuario_id == OWNER
        assert view.itens == []
        assert view.total == Decimal("0")


class TestAddItem:

    async def test_reserve_stock(self, database, catalog, widget):
        """Widget(10.00, estoque 5) + 3 -> total 30.00, estoque 2"""
        view = await add(database, widget.id, 3)

        assert view.total == Decimal("30.00")
        assert len(view.itens) == 1
        line = view.itens[0]
        assert line.produto_id == widget.id
        assert line.nome == "Widget"
        assert line.quantidade == 3
        assert line.preco_unitario == Decimal("10.00")
        assert line.total_item == Decimal("30.00")

        assert (await catalog.get_product(widget.id)).estoque == 2

    async def test_insufficient_stock_leaves_state_untouched(self, database, catalog, widget):
        await add(database, widget.id, 3)

        with pytest.raises(InsufficientStockError) as exc_info:
            await add(database, widget.id, 3)

        assert 'Estoque insuficiente para "Widget". Disponível: 2.' == str(exc_info.value)
        assert (await catalog.get_product(widget.id)).estoque == 2
        view = await ViewCartQuery(database).execute(OWNER)
        assert view.itens[0].quantidade == 3

    async def test_repeated_add_increments_single_line(self, database, catalog):
        product = await catalog.create_product(
            CreateProduct(nome="Bolt", preco=Decimal("0.50"), estoque=10)
        )

        await add(database, product.id, 3)
        view = await add(database, product.id, 2)

        assert len(view.itens) == 1
        assert view.itens[0].quantidade == 5
        assert view.total == Decimal("2.50")
        assert (await catalog.get_product(product.id)).estoque == 5

    async def test_total_sums_all_lines(self, database, catalog, widget):
        bolt = await catalog.create_product(
            CreateProduct(nome="Bolt", preco=Decimal("0.25"), estoque=10)
        )

        await add(database, widget.id, 2)
        view = await add(database, bolt.id, 4)

        assert [line.nome for line in view.itens] == ["Bolt", "Widget"]
        assert view.total == Decimal("21.00")

    async def test_reserve_whole_stock(self, database, catalog, widget):
        await add(database, widget.id, 5)

        assert (await catalog.get_product(widget.id)).estoque == 0

    async def test_missing_product(self, database):
        with pytest.raises(ProductNotFoundError, match="Produto com ID nope não encontrado."):
            await add(database, "nope", 1)

    async def test_product_deleted_between_check_and_reserve(self, database, catalog, widget, monkeypatch):
        async def reserve_after_delete(self, id, quantidade):
            await self.session.execute(delete(Product).where(Product.id == id))
            return None

        monkeypatch.setattr(ProductRepository, "reserve_stock", reserve_after_delete)

        with pytest.raises(ProductNotFoundError):
            await add(database, widget.id, 1)

        monkeypatch.undo()
        assert (await catalog.get_product(widget.id)).estoque == 5

    @pytest.mark.parametrize("quantidade", [0, -2])
    async def test_quantity_must_be_positive(self, database, catalog, widget, quantidade):
        with pytest.raises(InvalidInputError, match="no mínimo 1"):
            await add(database, widget.id, quantidade)

        assert (await catalog.get_product(widget.id)).estoque == 5

    async def test_carts_are_isolated_per_owner(self, database, catalog, widget):
        await add(database, widget.id, 2, usuario_id="ana")
        await add(database, widget.id, 1, usuario_id="bruno")

        ana = await ViewCartQuery(database).execute("ana")
        bruno = await ViewCartQuery(database).execute("bruno")

        assert ana.id != bruno.id
        assert ana.itens[0].quantidade == 2
        assert bruno.itens[0].quantidade == 1
        # 5 - 2 - 1: stock is conserved across carts
        assert (await catalog.get_product(widget.id)).estoque == 2


class TestRemoveItem:

    async def test_round_trip_restores_stock(self, database, catalog, widget):
        await add(database, widget.id, 3)

        view = await remove(database, widget.id)

        assert view.itens == []
        assert view.total == Decimal("0")
        assert (await catalog.get_product(widget.id)).estoque == 5

    async def test_remove_restocks_full_line_quantity(self, database, catalog):
        product = await catalog.create_product(
            CreateProduct(nome="Bolt", preco=Decimal("1.00"), estoque=10)
        )
        await add(database, product.id, 3)
        await add(database, product.id, 4)

        await remove(database, product.id)

        assert (await catalog.get_product(product.id)).estoque == 10

    async def test_remove_keeps_other_lines(self, database, catalog, widget):
        bolt = await catalog.create_product(
            CreateProduct(nome="Bolt", preco=Decimal("1.00"), estoque=10)
        )
        await add(database, widget.id, 1)
        await add(database, bolt.id, 2)

        view = await remove(database, widget.id)

        assert [line.nome for line in view.itens] == ["Bolt"]
        assert view.total == Decimal("2.00")

    async def test_remove_never_added(self, database, widget):
        with pytest.raises(CartItemNotFoundError, match=f"Produto com ID {widget.id} não está no carrinho."):
            await remove(database, widget.id)

    async def test_remove_unknown_product(self, database):
        with pytest.raises(CartItemNotFoundError):
            await remove(database, "nope")

    async def test_remove_twice(self, database, catalog, widget):
        await add(database, widget.id, 2)
        await remove(database, widget.id)

        with pytest.raises(CartItemNotFoundError):
            await remove(database, widget.id)

        assert (await catalog.get_product(widget.id)).estoque == 5

    async def test_remove_from_other_owner_cart(self, database, widget):
        await add(database, widget.id, 2, usuario_id="ana")

        with pytest.raises(CartItemNotFoundError):
            await remove(database, widget.id, usuario_id="bruno")


class TestConcurrentReservations:

    async def test_two_adds_exceeding_stock_only_one_wins(self, database, catalog, widget):
        """estoque 5, two concurrent adds of 3: exactly one reservation"""
        await GetOrCreateCartUseCase(database).execute(OWNER)

        results = await asyncio.gather(
            add(database, widget.id, 3),
            add(database, widget.id, 3),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], InsufficientStockError)

        assert (await catalog.get_product(widget.id)).estoque == 2
        view = await ViewCartQuery(database).execute(OWNER)
        assert view.itens[0].quantidade == 3

    async def test_concurrent_removals_restock_once(self, database, catalog, widget):
        await add(database, widget.id, 3)

        results = await asyncio.gather(
            remove(database, widget.id),
            remove(database, widget.id),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], CartItemNotFoundError)
        assert (await catalog.get_product(widget.id)).estoque == 5

    async def test_stock_is_conserved_under_contention(self, database, catalog):
        product = await catalog.create_product(
            CreateProduct(nome="Bolt", preco=Decimal("1.00"), estoque=4)
        )
        owners = [f"owner-{n}" for n in range(6)]
        for owner in owners:
            await GetOrCreateCartUseCase(database).execute(owner)

        results = await asyncio.gather(
            *(add(database, product.id, 1, usuario_id=owner, max_retries=8) for owner in owners),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, Exception):
                assert isinstance(result, (InsufficientStockError, ConcurrencyException))

        reserved = 0
        for owner in owners:
            view = await ViewCartQuery(database).execute(owner)
            assert all(line.quantidade >= 1 for line in view.itens)
            reserved += sum(line.quantidade for line in view.itens)

        estoque = (await catalog.get_product(product.id)).estoque
        assert estoque >= 0
        assert estoque + reserved == 4
        assert reserved == sum(1 for r in results if not isinstance(r, Exception))
