from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, update
from sqlalchemy.orm import Session, joinedload

from ..authentication import get_current_user
from ..authorize import require_permission
from ..concurrency import coalesce_patch
from ..Database import atomic, get_db
from ..Models import Candidate, Event, SchedulingPoll
from ..schemas import CandidateCreate, CandidateUpdate
from ..serializers import candidate_out

router = APIRouter(prefix="/candidates", tags=["Candidates"])

INITIAL_STATUS = "In attesa"
CANDIDATE_FIELDS = {
    "name": "name",
    "email": "email",
    "cvUrl": "cv_url",
    "status": "status",
    "areaCompetenza": "area_competenza",
}

require_view = require_permission("candidates.view")
require_write = require_permission("candidates.write")
require_delete = require_permission(
    "candidates.delete", "Access denied. Only Admin, CDA and Presidente can delete candidates"
)


def _get_candidate(db: Session, candidate_id: int) -> Candidate:
    row = (
        db.query(Candidate)
        .options(joinedload(Candidate.creator))
        .filter(Candidate.candidate_id == candidate_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return row


def _email_taken(db: Session, email: str, exclude_id: int | None = None) -> bool:
    q = db.query(Candidate).filter(Candidate.email == email)
    if exclude_id is not None:
        q = q.filter(Candidate.candidate_id != exclude_id)
    return q.first() is not None


@router.get("")
def list_candidates(current=Depends(get_current_user), db: Session = Depends(get_db)):
    require_view(current)
    q = db.query(Candidate).options(joinedload(Candidate.creator))
    # managers only see candidates of their own area
    if current.get("role") == "Manager" and current.get("area"):
        q = q.filter(Candidate.area_competenza == current["area"])
    return [candidate_out(c) for c in q.order_by(Candidate.created_at.desc()).all()]


@router.get("/{candidate_id}")
def get_candidate(candidate_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    require_view(current)
    return candidate_out(_get_candidate(db, candidate_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_candidate(payload: CandidateCreate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.name or not payload.email:
        raise HTTPException(status_code=400, detail="Name and email are required")
    require_write(current)
    if _email_taken(db, payload.email):
        raise HTTPException(status_code=400, detail="Email already registered for another candidate")

    row = Candidate(
        name=payload.name,
        email=payload.email,
        cv_url=payload.cvUrl,
        area_competenza=payload.areaCompetenza,
        created_by=current["user_id"],
        status=INITIAL_STATUS,
    )
    db.add(row)
    db.commit()
    return candidate_out(_get_candidate(db, row.candidate_id))


@router.put("/{candidate_id}")
def update_candidate(candidate_id: int, payload: CandidateUpdate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    require_write(current)
    row = _get_candidate(db, candidate_id)
    if payload.email and _email_taken(db, payload.email, exclude_id=candidate_id):
        raise HTTPException(status_code=400, detail="Email already registered for another candidate")

    for field, value in coalesce_patch({CANDIDATE_FIELDS[k]: v for k, v in payload.model_dump().items()}).items():
        setattr(row, field, value)
    db.commit()
    return candidate_out(_get_candidate(db, candidate_id))


@router.delete("/{candidate_id}")
def delete_candidate(candidate_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    require_delete(current)
    with atomic(db):
        _get_candidate(db, candidate_id)
        # interviews and polls stay, only the link to the candidate is dropped
        for model in (Event, SchedulingPoll):
            db.execute(
                update(model)
                .where(model.candidate_id == candidate_id)
                .values(candidate_id=None)
                .execution_options(synchronize_session=False)
            )
        db.execute(delete(Candidate).where(Candidate.candidate_id == candidate_id).execution_options(synchronize_session=False))
    return {"message": "Candidate deleted successfully"}
