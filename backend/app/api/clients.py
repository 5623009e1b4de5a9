"""Client routes for owners."""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from backend.app.core.security import get_current_user
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.schemas.client import ClientCreate, ClientPage, ClientRead, ClientUpdate
from backend.app.services import clients as client_service

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("", response_model=ClientPage)
def list_clients(
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return client_service.list_clients(db, current_user.id, search=search, page=page, page_size=page_size)


@router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(payload: ClientCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return client_service.create_client(db, current_user.id, payload)


@router.get("/{client_id}", response_model=ClientRead)
def get_client(client_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return client_service.get_client(db, current_user.id, client_id)


@router.patch("/{client_id}", response_model=ClientRead)
def update_client(
    client_id: int,
    payload: ClientUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return client_service.update_client(db, current_user.id, client_id, payload)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(client_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    client_service.delete_client(db, current_user.id, client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
