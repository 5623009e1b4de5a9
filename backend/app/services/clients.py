"""Client management scoped to one owner."""

import logging
import math

from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidStateError, NotFoundError, ValidationError
from backend.app.crud.crud_client import client_crud
from backend.app.crud.crud_invoice import invoice_crud
from backend.app.models.client import Client
from backend.app.schemas.client import ClientCreate, ClientUpdate

logger = logging.getLogger(__name__)


def get_client(db: Session, owner_id: int, client_id: int) -> Client:
    client = client_crud.get(db, client_id=client_id, owner_id=owner_id)
    if client is None:
        raise NotFoundError("Client not found")
    return client


def create_client(db: Session, owner_id: int, data: ClientCreate) -> Client:
    client = client_crud.create(db, obj_in=data, owner_id=owner_id)
    logger.info("Created client %s for owner %s", client.id, owner_id)
    return client


def list_clients(db: Session, owner_id: int, search: str | None = None, page: int = 1, page_size: int = 50) -> dict:
    if page < 1 or page_size < 1:
        raise ValidationError("page and page_size must be positive")
    items, total = client_crud.get_multi(db, owner_id=owner_id, search=search, page=page, page_size=page_size)
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size),
    }


def update_client(db: Session, owner_id: int, client_id: int, data: ClientUpdate) -> Client:
    client = get_client(db, owner_id, client_id)
    return client_crud.update(db, db_obj=client, obj_in=data)


def delete_client(db: Session, owner_id: int, client_id: int) -> None:
    client = get_client(db, owner_id, client_id)
    if invoice_crud.count_for_client(db, client_id=client.id):
        raise InvalidStateError("Cannot delete a client that has invoices")
    client_crud.delete(db, db_obj=client)
    logger.info("Deleted client %s for owner %s", client_id, owner_id)
