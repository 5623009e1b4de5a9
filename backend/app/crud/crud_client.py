"""CRUD operations for clients."""

from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.errors import ConflictError
from backend.app.models.client import Client
from backend.app.schemas.client import ClientCreate, ClientUpdate


class CRUDClient:
    def create(self, db: Session, *, obj_in: ClientCreate, owner_id: int) -> Client:
        obj = Client(owner_id=owner_id, **obj_in.model_dump(exclude_none=True))
        db.add(obj)
        self._commit(db)
        db.refresh(obj)
        return obj

    def get(self, db: Session, *, client_id: int, owner_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id, Client.owner_id == owner_id).first()

    def get_multi(
        self,
        db: Session,
        *,
        owner_id: int,
        search: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[Client], int]:
        query = db.query(Client).filter(Client.owner_id == owner_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(Client.name.ilike(pattern), Client.email.ilike(pattern), Client.company.ilike(pattern))
            )
        total = query.count()
        items = (
            query.order_by(Client.name.asc(), Client.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    def update(self, db: Session, *, db_obj: Client, obj_in: ClientUpdate) -> Client:
        update_data = obj_in.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(db_obj, field, value)
        self._commit(db)
        db.refresh(db_obj)
        return db_obj

    def delete(self, db: Session, *, db_obj: Client) -> Client:
        db.delete(db_obj)
        db.commit()
        return db_obj

    def _commit(self, db: Session) -> None:
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError("A client with this email already exists") from exc


client_crud = CRUDClient()
