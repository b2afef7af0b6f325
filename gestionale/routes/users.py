from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..authentication import get_current_user, hash_password
from ..authorize import can, enforce_self_or_admin, require_permission
from ..concurrency import coalesce_patch
from ..Database import get_db
from ..Models import User
from ..schemas import PasswordReset, UserCreate, UserStatusUpdate, UserUpdate
from ..serializers import user_out

router = APIRouter(prefix="/users", tags=["Users"])

ONLINE_WINDOW = timedelta(minutes=5)
MIN_PASSWORD_LENGTH = 6

require_user_admin = require_permission("users.manage", "Access denied. Only Admin/IT managers can manage users.")


def _get_user(db: Session, user_id: int) -> User:
    row = db.query(User).filter(User.user_id == user_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="User not found")
    return row


@router.get("")
def list_users(current=Depends(get_current_user), db: Session = Depends(get_db)):
    if can(current, "users.manage"):
        return [user_out(u) for u in db.query(User).order_by(User.name.asc()).all()]
    rows = db.query(User).filter(User.is_active.is_(True)).order_by(User.name.asc()).all()
    return [user_out(u, full=False) for u in rows]


@router.get("/online")
def online_users(current=Depends(get_current_user), db: Session = Depends(get_db)):
    since = datetime.utcnow() - ONLINE_WINDOW
    rows = db.query(User).filter(User.last_seen > since).order_by(User.last_seen.desc()).all()
    return [user_out(u) for u in rows]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    require_user_admin(current)
    if not payload.name or not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Name, email and password are required")
    if db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        area=payload.area,
        role=payload.role or "Socio",
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user_out(user)


@router.put("/{user_id}")
def update_user(user_id: int, payload: UserUpdate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    require_user_admin(current)
    user = _get_user(db, user_id)
    for field, value in coalesce_patch(payload.model_dump()).items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user_out(user)


@router.patch("/{user_id}/reset-password")
def reset_password(user_id: int, payload: PasswordReset, current=Depends(get_current_user), db: Session = Depends(get_db)):
    require_user_admin(current)
    if not payload.newPassword or len(payload.newPassword) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    user = _get_user(db, user_id)
    user.password_hash = hash_password(payload.newPassword)
    db.commit()
    return {"message": "Password reset successfully"}


@router.patch("/{user_id}/status")
def update_status(user_id: int, payload: UserStatusUpdate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    require_user_admin(current)
    if payload.isActive is None:
        raise HTTPException(status_code=400, detail="isActive is required")
    if user_id == current["user_id"] and not payload.isActive:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    user = _get_user(db, user_id)
    user.is_active = payload.isActive
    db.commit()
    return {"id": user.user_id, "name": user.name, "email": user.email, "isActive": user.is_active}


@router.get("/{user_id}")
def get_user(user_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    enforce_self_or_admin(current, user_id)
    return user_out(_get_user(db, user_id))
