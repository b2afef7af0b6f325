from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from ..authentication import get_current_user
from ..concurrency import coalesce_patch, versioned_update
from ..Database import atomic, get_db
from ..Models import Client, Contract, Event, Project
from ..schemas import ClientCreate, ClientUpdate, StatusUpdate
from ..serializers import client_out

router = APIRouter(prefix="/clients", tags=["Clients"])

CLIENT_FIELDS = {
    "name": "name",
    "contactPerson": "contact_person",
    "email": "email",
    "phone": "phone",
    "status": "status",
    "area": "area",
}


def _get_client(db: Session, client_id: int) -> Client:
    row = db.query(Client).filter(Client.client_id == client_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Client not found")
    return row


@router.get("")
def list_clients(current=Depends(get_current_user), db: Session = Depends(get_db)):
    return [client_out(c) for c in db.query(Client).order_by(Client.created_at.desc()).all()]


@router.get("/{client_id}")
def get_client(client_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    return client_out(_get_client(db, client_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_client(payload: ClientCreate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.name or not payload.email:
        raise HTTPException(status_code=400, detail="Name and email are required")
    row = Client(
        name=payload.name,
        contact_person=payload.contactPerson,
        email=payload.email,
        phone=payload.phone,
        status=payload.status or "Prospect",
        area=payload.area,
        created_by=current["user_id"],
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return client_out(row)


@router.put("/{client_id}")
def update_client(client_id: int, payload: ClientUpdate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    values = coalesce_patch({CLIENT_FIELDS[k]: v for k, v in payload.model_dump(exclude={"expectedVersion"}).items()})
    row = versioned_update(
        db,
        Client,
        Client.client_id,
        client_id,
        values,
        payload.expectedVersion,
        serialize=client_out,
        label="Client",
    )
    return client_out(row)


@router.patch("/{client_id}/status")
def update_client_status(client_id: int, payload: StatusUpdate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.status:
        raise HTTPException(status_code=400, detail="Status is required")
    row = versioned_update(
        db, Client, Client.client_id, client_id, {"status": payload.status}, None, serialize=client_out, label="Client"
    )
    return client_out(row)


@router.delete("/{client_id}")
def delete_client(client_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    with atomic(db):
        _get_client(db, client_id)
        # projects, contracts and events survive the client; only the link is dropped
        for model in (Project, Contract, Event):
            db.execute(
                update(model)
                .where(model.client_id == client_id)
                .values(client_id=None)
                .execution_options(synchronize_session=False)
            )
        db.execute(delete(Client).where(Client.client_id == client_id).execution_options(synchronize_session=False))
    return {"message": "Client deleted successfully"}
