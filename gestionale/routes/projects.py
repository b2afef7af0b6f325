import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete
from sqlalchemy.orm import Session, selectinload

from ..authentication import get_current_user
from ..authorize import AREA_MANAGER_ROLES, can
from ..concurrency import coalesce_patch, versioned_update
from ..Database import atomic, get_db
from ..Models import Client, Project, ProjectAssignment, Task, Todo, User
from ..schemas import (
    ProjectCreate,
    ProjectTaskCreate,
    ProjectUpdate,
    StatusUpdate,
    TeamMemberAdd,
    TodoCreate,
    TodoStatusUpdate,
)
from ..serializers import project_out, task_out, todo_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])

PROJECT_FIELDS = {"name": "name", "clientId": "client_id", "area": "area", "status": "status"}
TODO_STATUS_COMPLETED = {"terminato": True, "da fare": False}


def _get_project(db: Session, project_id: int) -> Project:
    row = (
        db.query(Project)
        .options(selectinload(Project.todos), selectinload(Project.client))
        .filter(Project.project_id == project_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Project not found")
    return row


def _get_todo(db: Session, project_id: int, todo_id: int) -> Todo:
    row = db.query(Todo).filter(Todo.todo_id == todo_id, Todo.project_id == project_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Todo not found")
    return row


def enforce_project_manager(db: Session, current: dict, project_id: int) -> Project:
    """Allow system roles, team members, and area managers of the project's area."""
    project = _get_project(db, project_id)
    if can(current, "projects.manage_any"):
        return project

    is_member = (
        db.query(ProjectAssignment)
        .filter(ProjectAssignment.project_id == project_id, ProjectAssignment.user_id == current["user_id"])
        .first()
        is not None
    )
    if is_member:
        return project

    user = db.query(User).filter(User.user_id == current["user_id"]).first()
    if user and user.role in AREA_MANAGER_ROLES and user.area and user.area == project.area:
        return project

    raise HTTPException(
        status_code=403,
        detail="Access denied. Only area managers or team members can manage this project.",
    )


@router.get("")
def list_projects(current=Depends(get_current_user), db: Session = Depends(get_db)):
    rows = (
        db.query(Project)
        .options(selectinload(Project.todos), selectinload(Project.client))
        .order_by(Project.created_at.desc())
        .all()
    )
    return [project_out(p) for p in rows]


@router.get("/my")
def my_projects(current=Depends(get_current_user), db: Session = Depends(get_db)):
    rows = (
        db.query(Project)
        .join(ProjectAssignment, ProjectAssignment.project_id == Project.project_id)
        .filter(ProjectAssignment.user_id == current["user_id"])
        .order_by(Project.created_at.desc())
        .all()
    )
    return [project_out(p) for p in rows]


@router.get("/{project_id}")
def get_project(project_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    return project_out(_get_project(db, project_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(payload: ProjectCreate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.name or not payload.clientId:
        raise HTTPException(status_code=400, detail="Name and client are required")
    if not db.query(Client).filter(Client.client_id == payload.clientId).first():
        raise HTTPException(status_code=404, detail="Client not found")
    row = Project(
        name=payload.name,
        client_id=payload.clientId,
        area=payload.area,
        status=payload.status or "Pianificato",
        created_by=current["user_id"],
    )
    db.add(row)
    db.commit()
    return project_out(_get_project(db, row.project_id))


@router.put("/{project_id}")
def update_project(project_id: int, payload: ProjectUpdate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    values = coalesce_patch({PROJECT_FIELDS[k]: v for k, v in payload.model_dump(exclude={"expectedVersion"}).items()})
    versioned_update(
        db,
        Project,
        Project.project_id,
        project_id,
        values,
        payload.expectedVersion,
        serialize=project_out,
        label="Project",
    )
    return project_out(_get_project(db, project_id))


@router.patch("/{project_id}/status")
def update_project_status(project_id: int, payload: StatusUpdate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.status:
        raise HTTPException(status_code=400, detail="Status is required")
    row = versioned_update(
        db, Project, Project.project_id, project_id, {"status": payload.status}, None, serialize=project_out, label="Project"
    )
    return project_out(row, with_todos=False)


@router.delete("/{project_id}")
def delete_project(project_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    with atomic(db):
        _get_project(db, project_id)
        for model in (Todo, ProjectAssignment, Task):
            db.execute(delete(model).where(model.project_id == project_id).execution_options(synchronize_session=False))
        db.execute(delete(Project).where(Project.project_id == project_id).execution_options(synchronize_session=False))
    logger.info("Project %s deleted by user %s", project_id, current["user_id"])
    return {"message": "Project deleted successfully"}


# --- Todos ---

@router.post("/{project_id}/todos", status_code=status.HTTP_201_CREATED)
def add_todo(project_id: int, payload: TodoCreate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.text:
        raise HTTPException(status_code=400, detail="Todo text is required")
    _get_project(db, project_id)
    todo = Todo(project_id=project_id, text=payload.text, priority=payload.priority or "Media")
    db.add(todo)
    db.commit()
    db.refresh(todo)
    return todo_out(todo)


@router.patch("/{project_id}/todos/{todo_id}/toggle")
def toggle_todo(project_id: int, todo_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    todo = _get_todo(db, project_id, todo_id)
    todo.completed = not todo.completed
    db.commit()
    db.refresh(todo)
    return todo_out(todo)


@router.patch("/{project_id}/todos/{todo_id}/status")
def update_todo_status(
    project_id: int,
    todo_id: int,
    payload: TodoStatusUpdate,
    current=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    todo = _get_todo(db, project_id, todo_id)
    completed = TODO_STATUS_COMPLETED.get(payload.status, payload.completed)
    todo.completed = bool(completed)
    db.commit()
    db.refresh(todo)
    data = todo_out(todo)
    data["status"] = payload.status or ("terminato" if todo.completed else "da fare")
    return data


@router.delete("/{project_id}/todos/{todo_id}")
def delete_todo(project_id: int, todo_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    db.delete(_get_todo(db, project_id, todo_id))
    db.commit()
    return {"message": "Todo deleted successfully"}


# --- Team ---

@router.get("/{project_id}/team")
def get_team(project_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    _get_project(db, project_id)
    rows = (
        db.query(ProjectAssignment, User)
        .join(User, ProjectAssignment.user_id == User.user_id)
        .filter(ProjectAssignment.project_id == project_id)
        .order_by(User.name.asc())
        .all()
    )
    return [
        {
            "userId": user.user_id,
            "name": user.name,
            "email": user.email,
            "area": user.area,
            "role": user.role,
            "assignedAt": assignment.assigned_at,
        }
        for assignment, user in rows
    ]


@router.post("/{project_id}/team", status_code=status.HTTP_201_CREATED)
def add_team_member(project_id: int, payload: TeamMemberAdd, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.userId:
        raise HTTPException(status_code=400, detail="User ID is required")
    enforce_project_manager(db, current, project_id)
    if not db.query(User).filter(User.user_id == payload.userId).first():
        raise HTTPException(status_code=404, detail="User not found")
    existing = (
        db.query(ProjectAssignment)
        .filter(ProjectAssignment.project_id == project_id, ProjectAssignment.user_id == payload.userId)
        .first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="User already assigned to this project")

    db.add(ProjectAssignment(project_id=project_id, user_id=payload.userId))
    db.commit()
    return {"projectId": project_id, "userId": payload.userId}


@router.delete("/{project_id}/team/{user_id}")
def remove_team_member(project_id: int, user_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    enforce_project_manager(db, current, project_id)
    row = (
        db.query(ProjectAssignment)
        .filter(ProjectAssignment.project_id == project_id, ProjectAssignment.user_id == user_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Assignment not found")
    db.delete(row)
    db.commit()
    return {"message": "Team member removed"}


# --- Tasks ---

@router.get("/{project_id}/tasks")
def list_project_tasks(project_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    _get_project(db, project_id)
    rows = db.query(Task).filter(Task.project_id == project_id).order_by(Task.created_at.asc()).all()
    return [task_out(t) for t in rows]


@router.post("/{project_id}/tasks", status_code=status.HTTP_201_CREATED)
def create_project_task(
    project_id: int,
    payload: ProjectTaskCreate,
    current=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not payload.description:
        raise HTTPException(status_code=400, detail="Task description is required")
    enforce_project_manager(db, current, project_id)
    if payload.assignedTo and not db.query(User).filter(User.user_id == payload.assignedTo).first():
        raise HTTPException(status_code=404, detail="User not found")

    task = Task(
        project_id=project_id,
        description=payload.description,
        status=payload.status or "Da Fare",
        priority=payload.priority or "Media",
        assigned_to_user_id=payload.assignedTo,
        updated_at=datetime.utcnow(),
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return task_out(task)


@router.delete("/{project_id}/tasks/{task_id}")
def delete_project_task(project_id: int, task_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    enforce_project_manager(db, current, project_id)
    row = db.query(Task).filter(Task.task_id == task_id, Task.project_id == project_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Task not found")
    db.delete(row)
    db.commit()
    return {"message": "Task deleted successfully"}
