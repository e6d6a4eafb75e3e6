"""
Domain exceptions for the store service.

Every error raised by the catalog, the cart and the stock reservation use
cases derives from LojaError, so the HTTP layer can map a whole family to a
status code without knowing each concrete class.
"""


class LojaError(Exception):
    """
    Base exception for all store errors.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (ids, names, quantities)
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ', '.join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


# === InvalidInput ===

class InvalidInputError(LojaError):
    """Raised when a field is malformed or out of range, or an update is empty."""
    pass


class InsufficientStockError(InvalidInputError):
    """Raised when a product does not have enough stock for a reservation."""

    def __init__(self, nome: str, disponivel: int):
        super().__init__(
            f'Estoque insuficiente para "{nome}". Disponível: {disponivel}.',
            details={'nome': nome, 'disponivel': disponivel}
        )
        self.nome = nome
        self.disponivel = disponivel


# === NotFound ===

class NotFoundError(LojaError):
    """Base exception for missing products, carts and cart lines."""
    pass


class ProductNotFoundError(NotFoundError):
    """Raised when product doesn't exist in the catalog"""

    def __init__(self, produto_id: str):
        super().__init__(
            f"Produto com ID {produto_id} não encontrado.",
            details={'produto_id': produto_id}
        )
        self.produto_id = produto_id


class CartItemNotFoundError(NotFoundError):
    """Raised when the product is not a line of the owner's cart"""

    def __init__(self, produto_id: str):
        super().__init__(
            f"Produto com ID {produto_id} não está no carrinho.",
            details={'produto_id': produto_id}
        )
        self.produto_id = produto_id


class CartNotFoundError(NotFoundError):
    """Raised when a cart could neither be found nor created for an owner"""

    def __init__(self, usuario_id: str):
        super().__init__(
            f"Carrinho do usuário {usuario_id} não encontrado.",
            details={'usuario_id': usuario_id}
        )
        self.usuario_id = usuario_id


# === Conflict ===

class ConflictError(LojaError):
    """Base exception for unique-key and write conflicts."""
    pass


class DuplicateProductNameError(ConflictError):
    """Raised when another product already uses the name."""

    def __init__(self, nome: str):
        super().__init__(
            "Já existe um produto com este nome.",
            details={'nome': nome}
        )
        self.nome = nome


class ProductInUseError(ConflictError):
    """Raised when deleting a product that is still reserved by cart lines."""

    def __init__(self, produto_id: str):
        super().__init__(
            f"Produto com ID {produto_id} está reservado em carrinhos e não pode ser removido.",
            details={'produto_id': produto_id}
        )
        self.produto_id = produto_id


class ConcurrencyException(ConflictError):
    """Raised when a transaction lost a write conflict against a concurrent one"""
    pass


# === StoreUnavailable ===

class StoreUnavailableError(LojaError):
    """Raised when the transactional store cannot be reached or fails."""
    pass
