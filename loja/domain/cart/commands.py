from pydantic import BaseModel


class Command(BaseModel):
    """Base class for all cart commands"""
    pass


class AddItemToCart(Command):
    """Command: Reserve quantidade units of a product in the owner's cart"""
    usuario_id: str
    produto_id: str
    quantidade: int


class RemoveItemFromCart(Command):
    """Command: Drop a product's line from the owner's cart, restocking it"""
    usuario_id: str
    produto_id: str
