from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .Database import Base


class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    area = Column(String, nullable=True, index=True)
    role = Column(String, nullable=False, default="Socio")
    is_active = Column(Boolean, default=True, nullable=False)
    last_seen = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assignments = relationship("ProjectAssignment", back_populates="user")
    participations = relationship("Participant", back_populates="user")


class Client(Base):
    __tablename__ = "clients"

    client_id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    contact_person = Column(String, nullable=True)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    status = Column(String, default="Prospect")
    area = Column(String, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_by = Column(Integer, ForeignKey("users.user_id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    projects = relationship("Project", back_populates="client")


class Project(Base):
    __tablename__ = "projects"

    project_id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.client_id"), nullable=True)
    area = Column(String, nullable=True)
    status = Column(String, default="Pianificato")
    version = Column(Integer, nullable=False, default=1)
    created_by = Column(Integer, ForeignKey("users.user_id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    client = relationship("Client", back_populates="projects")
    todos = relationship("Todo", back_populates="project", order_by="Todo.created_at")
    assignments = relationship("ProjectAssignment", back_populates="project")
    tasks = relationship("Task", back_populates="project")


class Todo(Base):
    __tablename__ = "todos"

    todo_id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    text = Column(Text, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    priority = Column(String, default="Media")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="todos")


class ProjectAssignment(Base):
    __tablename__ = "project_assignments"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_assignment"),)

    assignment_id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    assigned_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="assignments")
    user = relationship("User", back_populates="assignments")


class Task(Base):
    __tablename__ = "tasks"

    task_id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String, default="Da Fare")
    priority = Column(String, default="Media")
    assigned_to_user_id = Column(Integer, ForeignKey("users.user_id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="tasks")
    assignee = relationship("User")


class Contract(Base):
    __tablename__ = "contracts"

    contract_id = Column(Integer, primary_key=True, index=True)
    type = Column(String, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.client_id"), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String, default="Bozza")
    date = Column(Date, nullable=False)
    created_by = Column(Integer, ForeignKey("users.user_id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client")
    project = relationship("Project")


class Candidate(Base):
    __tablename__ = "candidates"

    candidate_id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    cv_url = Column(String, nullable=True)
    status = Column(String, default="In attesa")
    area_competenza = Column(String, nullable=True)
    created_by = Column(Integer, ForeignKey("users.user_id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    creator = relationship("User")


class Event(Base):
    __tablename__ = "events"

    event_id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, default="")
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    event_type = Column(String, default="generic")
    event_subtype = Column(String, nullable=True)
    area = Column(String, nullable=True)
    client_id = Column(Integer, ForeignKey("clients.client_id"), nullable=True)
    candidate_id = Column(Integer, ForeignKey("candidates.candidate_id"), nullable=True)
    invitation_rules = Column(JSON, nullable=True)
    recurrence_type = Column(String, default="none")
    recurrence_end_date = Column(DateTime, nullable=True)
    is_call = Column(Boolean, default=False)
    call_link = Column(String, nullable=True)
    creator_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    creator = relationship("User", foreign_keys=[creator_id])
    client = relationship("Client")
    participants = relationship("Participant", back_populates="event")
    reports = relationship("EventReport", back_populates="event")


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_participant_event_user"),)

    participant_id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.event_id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    status = Column(String, default="pending", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    event = relationship("Event", back_populates="participants")
    user = relationship("User", back_populates="participations")


class EventReport(Base):
    __tablename__ = "event_reports"

    report_id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.event_id"), nullable=False)
    creator_user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    report_content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    event = relationship("Event", back_populates="reports")
    creator = relationship("User")


class SchedulingPoll(Base):
    __tablename__ = "scheduling_polls"

    poll_id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    invitation_rules = Column(JSON, nullable=False)
    poll_type = Column(String, default="fixed_slots", nullable=False)
    status = Column(String, default="open", nullable=False)
    creator_user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    candidate_id = Column(Integer, ForeignKey("candidates.candidate_id"), nullable=True)
    final_event_id = Column(Integer, ForeignKey("events.event_id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    creator = relationship("User")
    candidate = relationship("Candidate")
    slots = relationship("PollTimeSlot", back_populates="poll", order_by="PollTimeSlot.start_time")


class PollTimeSlot(Base):
    __tablename__ = "poll_time_slots"

    slot_id = Column(Integer, primary_key=True, index=True)
    poll_id = Column(Integer, ForeignKey("scheduling_polls.poll_id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    poll = relationship("SchedulingPoll", back_populates="slots")
    votes = relationship("PollVote", back_populates="slot")


class PollVote(Base):
    __tablename__ = "poll_votes"
    __table_args__ = (UniqueConstraint("slot_id", "user_id", name="uq_poll_vote_slot_user"),)

    vote_id = Column(Integer, primary_key=True, index=True)
    slot_id = Column(Integer, ForeignKey("poll_time_slots.slot_id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    slot = relationship("PollTimeSlot", back_populates="votes")
    user = relationship("User")


class AvailabilityVote(Base):
    __tablename__ = "open_availability_votes"
    __table_args__ = (UniqueConstraint("poll_id", "user_id", "slot_start_time", name="uq_availability_vote"),)

    availability_id = Column(Integer, primary_key=True, index=True)
    poll_id = Column(Integer, ForeignKey("scheduling_polls.poll_id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    slot_start_time = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")
