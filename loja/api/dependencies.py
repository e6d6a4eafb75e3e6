from typing import Optional

from fastapi import Header, HTTPException, Request

from loja import config
from loja.domain.exceptions import (
    ConflictError,
    InvalidInputError,
    LojaError,
    NotFoundError,
    StoreUnavailableError,
)
from loja.infrastructure.database import Database


def get_database(request: Request) -> Database:
    """Get the store handle from app state"""
    return request.app.state.db


def get_usuario_id(x_usuario_id: Optional[str] = Header(default=None)) -> str:
    """
    Owner of the cart for this request.

    Identity is supplied by whatever sits in front of the service; without
    the header every request shares the placeholder owner.
    """
    return x_usuario_id or config.DEFAULT_USUARIO_ID


def http_error(error: LojaError) -> HTTPException:
    """Map a domain error to its HTTP status."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=error.message)
    if isinstance(error, InvalidInputError):
        return HTTPException(status_code=400, detail=error.message)
    if isinstance(error, ConflictError):
        return HTTPException(status_code=409, detail=error.message)
    if isinstance(error, StoreUnavailableError):
        return HTTPException(status_code=503, detail=error.message)
    return HTTPException(status_code=500, detail=error.message)
