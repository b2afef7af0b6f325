import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..authentication import create_access_token, get_current_user, hash_password, verify_password
from ..Database import get_db
from ..Models import User
from ..schemas import UserLogin, UserRegister

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

DEFAULT_ROLE = "Socio"


def _session_payload(user: User, message: str) -> dict:
    return {
        "message": message,
        "token": create_access_token(user),
        "user": {
            "id": user.user_id,
            "name": user.name,
            "email": user.email,
            "area": user.area,
            "role": user.role,
        },
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: UserRegister, db: Session = Depends(get_db)):
    if not payload.name or not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Name, email and password are required")
    if db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        area=payload.area,
        role=payload.role or DEFAULT_ROLE,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s (%s)", user.user_id, user.role)
    return _session_payload(user, "Registration completed")


@router.post("/login")
def login(payload: UserLogin, db: Session = Depends(get_db)):
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    user = db.query(User).filter(User.email == payload.email).first()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("Failed login for %s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account deactivated")

    return _session_payload(user, "Login successful")


@router.get("/verify")
def verify(current=Depends(get_current_user), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.user_id == current["user_id"]).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {
        "user": {
            "id": user.user_id,
            "name": user.name,
            "email": user.email,
            "area": user.area,
            "role": user.role,
        }
    }
