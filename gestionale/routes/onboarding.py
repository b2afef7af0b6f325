import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..authentication import get_current_user, hash_password
from ..authorize import require_permission
from ..Database import atomic, get_db
from ..Models import Candidate, Project, ProjectAssignment, User
from ..schemas import OnboardingStart

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["Onboarding"])

ACCEPTED_STATUS = "Accettato"
ONBOARDING_STATUS = "In colloquio"
TRIAL_ROLE = "Associato (Prova)"
TRIAL_PROJECT_STATUS = "In Corso"

require_onboarding = require_permission("onboarding.start")


def generate_temp_password() -> str:
    return secrets.token_urlsafe(18)


def assign_member(db: Session, project_id: int, user_id: int) -> None:
    db.add(ProjectAssignment(project_id=project_id, user_id=user_id))
    db.flush()


@router.post("/start", status_code=status.HTTP_201_CREATED)
def start_onboarding(payload: OnboardingStart, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.candidateId:
        raise HTTPException(status_code=400, detail="candidateId is required")
    require_onboarding(current)

    with atomic(db):
        candidate = db.query(Candidate).filter(Candidate.candidate_id == payload.candidateId).first()
        if not candidate:
            raise HTTPException(status_code=404, detail="Candidate not found")
        if candidate.status != ACCEPTED_STATUS:
            raise HTTPException(
                status_code=400,
                detail=f'Candidate must be in status "{ACCEPTED_STATUS}" (current status: {candidate.status})',
            )
        if db.query(User).filter(User.email == candidate.email).first():
            raise HTTPException(
                status_code=400,
                detail="A user with this email already exists. The trial period may already have been started.",
            )

        area = candidate.area_competenza or current.get("area")
        temp_password = generate_temp_password()

        user = User(
            name=candidate.name,
            email=candidate.email,
            password_hash=hash_password(temp_password),
            area=area,
            role=TRIAL_ROLE,
            is_active=True,
        )
        db.add(user)
        db.flush()

        project = Project(
            name=f"Periodo di Prova: {candidate.name}",
            client_id=None,
            area=area,
            status=TRIAL_PROJECT_STATUS,
            created_by=current["user_id"],
        )
        db.add(project)
        db.flush()

        assign_member(db, project.project_id, user.user_id)
        candidate.status = ONBOARDING_STATUS

    logger.info(
        "Onboarding started for candidate %s: user %s, project %s",
        payload.candidateId, user.user_id, project.project_id,
    )
    return {
        "message": "Trial period started successfully",
        "user": {
            "id": user.user_id,
            "name": user.name,
            "email": user.email,
            "area": user.area,
            "role": user.role,
            "createdAt": user.created_at,
            "tempPassword": temp_password,
        },
        "project": {
            "id": project.project_id,
            "name": project.name,
            "area": project.area,
            "status": project.status,
            "createdAt": project.created_at,
            "assignedUserId": user.user_id,
        },
        "warning": "A temporary password was generated. Deliver it to the candidate through a secure channel.",
    }
