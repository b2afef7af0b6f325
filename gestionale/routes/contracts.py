from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload

from ..authentication import get_current_user
from ..concurrency import coalesce_patch
from ..Database import get_db
from ..Models import Contract
from ..schemas import ContractCreate, ContractUpdate, StatusUpdate
from ..serializers import contract_out

router = APIRouter(prefix="/contracts", tags=["Contracts"])

CONTRACT_FIELDS = {
    "type": "type",
    "clientId": "client_id",
    "projectId": "project_id",
    "amount": "amount",
    "status": "status",
    "date": "date",
}


def _get_contract(db: Session, contract_id: int) -> Contract:
    row = (
        db.query(Contract)
        .options(joinedload(Contract.client), joinedload(Contract.project))
        .filter(Contract.contract_id == contract_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Contract not found")
    return row


@router.get("")
def list_contracts(current=Depends(get_current_user), db: Session = Depends(get_db)):
    rows = (
        db.query(Contract)
        .options(joinedload(Contract.client), joinedload(Contract.project))
        .order_by(Contract.date.desc(), Contract.created_at.desc())
        .all()
    )
    return [contract_out(c) for c in rows]


@router.get("/{contract_id}")
def get_contract(contract_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    return contract_out(_get_contract(db, contract_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_contract(payload: ContractCreate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.type or not payload.clientId or not payload.amount or not payload.date:
        raise HTTPException(status_code=400, detail="Type, client, amount and date are required")
    row = Contract(
        type=payload.type,
        client_id=payload.clientId,
        project_id=payload.projectId,
        amount=payload.amount,
        status=payload.status or "Bozza",
        date=payload.date,
        created_by=current["user_id"],
    )
    db.add(row)
    db.commit()
    return contract_out(_get_contract(db, row.contract_id))


@router.put("/{contract_id}")
def update_contract(contract_id: int, payload: ContractUpdate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    row = _get_contract(db, contract_id)
    for field, value in coalesce_patch({CONTRACT_FIELDS[k]: v for k, v in payload.model_dump().items()}).items():
        setattr(row, field, value)
    db.commit()
    return contract_out(_get_contract(db, contract_id))


@router.patch("/{contract_id}/status")
def update_contract_status(contract_id: int, payload: StatusUpdate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.status:
        raise HTTPException(status_code=400, detail="Status is required")
    row = _get_contract(db, contract_id)
    row.status = payload.status
    db.commit()
    return contract_out(_get_contract(db, contract_id))


@router.delete("/{contract_id}")
def delete_contract(contract_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    db.delete(_get_contract(db, contract_id))
    db.commit()
    return {"message": "Contract deleted successfully"}
