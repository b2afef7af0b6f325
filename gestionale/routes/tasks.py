from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from ..authentication import get_current_user
from ..Database import get_db
from ..Models import Task, User
from ..schemas import TaskAssign, TaskStatusUpdate
from ..serializers import task_out
from .projects import enforce_project_manager

router = APIRouter(prefix="/tasks", tags=["Tasks"])

TASK_STATUSES = ("Da Fare", "In Corso", "Completato", "In Revisione")
DONE_STATUS = "Completato"


def _get_task(db: Session, task_id: int) -> Task:
    row = db.query(Task).filter(Task.task_id == task_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Task not found")
    return row


@router.get("/mytasks")
def my_tasks(current=Depends(get_current_user), db: Session = Depends(get_db)):
    rows = (
        db.query(Task)
        .options(joinedload(Task.project), joinedload(Task.assignee))
        .filter(Task.assigned_to_user_id == current["user_id"], Task.status != DONE_STATUS)
        .order_by(Task.priority.desc(), Task.created_at.asc())
        .all()
    )
    result = []
    for task in rows:
        data = task_out(task)
        data["projectName"] = task.project.name
        data["projectArea"] = task.project.area
        result.append(data)
    return result


@router.put("/{task_id}/assign")
def assign_task(task_id: int, payload: TaskAssign, current=Depends(get_current_user), db: Session = Depends(get_db)):
    task = _get_task(db, task_id)
    enforce_project_manager(db, current, task.project_id)
    if not payload.userId:
        raise HTTPException(status_code=400, detail="User ID is required")
    if not db.query(User).filter(User.user_id == payload.userId).first():
        raise HTTPException(status_code=404, detail="User not found")

    task.assigned_to_user_id = payload.userId
    db.commit()
    db.refresh(task)
    return task_out(task)


@router.put("/{task_id}/status")
def update_task_status(task_id: int, payload: TaskStatusUpdate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.status:
        raise HTTPException(status_code=400, detail="Status is required")
    if payload.status not in TASK_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")

    task = _get_task(db, task_id)
    if task.assigned_to_user_id != current["user_id"]:
        raise HTTPException(status_code=403, detail="You can only update tasks assigned to you")

    task.status = payload.status
    db.commit()
    db.refresh(task)
    return task_out(task)
