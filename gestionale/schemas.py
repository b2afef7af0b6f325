from datetime import date as date_type, datetime, timezone
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, EmailStr


def _naive_utc(value: datetime) -> datetime:
    # timestamps are stored as naive UTC
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDateTime = Annotated[datetime, AfterValidator(_naive_utc)]

# ==================== AUTH / USERS ====================
class UserRegister(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    area: Optional[str] = None
    role: Optional[str] = None


class UserLogin(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserCreate(UserRegister):
    pass


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    area: Optional[str] = None
    role: Optional[str] = None


class PasswordReset(BaseModel):
    newPassword: Optional[str] = None


class UserStatusUpdate(BaseModel):
    isActive: Optional[bool] = None


# ==================== CLIENTS ====================
class ClientCreate(BaseModel):
    name: Optional[str] = None
    contactPerson: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None
    area: Optional[str] = None


class ClientUpdate(ClientCreate):
    expectedVersion: Optional[int] = None


class StatusUpdate(BaseModel):
    status: Optional[str] = None


# ==================== PROJECTS ====================
class ProjectCreate(BaseModel):
    name: Optional[str] = None
    clientId: Optional[int] = None
    area: Optional[str] = None
    status: Optional[str] = None


class ProjectUpdate(ProjectCreate):
    expectedVersion: Optional[int] = None


class TodoCreate(BaseModel):
    text: Optional[str] = None
    priority: Optional[str] = None


class TodoStatusUpdate(BaseModel):
    status: Optional[str] = None
    completed: Optional[bool] = None


class TeamMemberAdd(BaseModel):
    userId: Optional[int] = None


class ProjectTaskCreate(BaseModel):
    description: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    assignedTo: Optional[int] = None


# ==================== TASKS ====================
class TaskAssign(BaseModel):
    userId: Optional[int] = None


class TaskStatusUpdate(BaseModel):
    status: Optional[str] = None


# ==================== CONTRACTS ====================
class ContractCreate(BaseModel):
    type: Optional[str] = None
    clientId: Optional[int] = None
    projectId: Optional[int] = None
    amount: Optional[float] = None
    status: Optional[str] = None
    date: Optional[date_type] = None


class ContractUpdate(ContractCreate):
    pass


# ==================== CANDIDATES ====================
class CandidateCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    cvUrl: Optional[str] = None
    areaCompetenza: Optional[str] = None


class CandidateUpdate(CandidateCreate):
    status: Optional[str] = None


class OnboardingStart(BaseModel):
    candidateId: Optional[int] = None


# ==================== EVENTS ====================
class InvitationRules(BaseModel):
    groups: Optional[List[str]] = None
    individuals: Optional[List[int]] = None
    area: Optional[str] = None


class EventCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    startTime: Optional[UtcDateTime] = None
    endTime: Optional[UtcDateTime] = None
    eventType: Optional[str] = None
    eventSubtype: Optional[str] = None
    area: Optional[str] = None
    clientId: Optional[int] = None
    invitationRules: Optional[InvitationRules] = None
    participantIds: Optional[List[int]] = None
    recurrenceType: Optional[str] = None
    recurrenceEndDate: Optional[UtcDateTime] = None
    isCall: Optional[bool] = None
    callLink: Optional[str] = None
    # formazione
    trainerName: Optional[str] = None
    prerequisites: Optional[str] = None
    level: Optional[str] = None
    # networking
    location: Optional[str] = None
    externalLink: Optional[str] = None


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    startTime: Optional[UtcDateTime] = None
    endTime: Optional[UtcDateTime] = None
    eventType: Optional[str] = None
    eventSubtype: Optional[str] = None
    area: Optional[str] = None
    clientId: Optional[int] = None
    isCall: Optional[bool] = None
    callLink: Optional[str] = None
    expectedVersion: Optional[int] = None


class RsvpRequest(BaseModel):
    status: Optional[str] = None


class ReportContent(BaseModel):
    reportContent: Optional[str] = None


# ==================== POLLS ====================
class TimeSlotIn(BaseModel):
    startTime: UtcDateTime
    endTime: UtcDateTime


class PollCreate(BaseModel):
    title: Optional[str] = None
    durationMinutes: Optional[int] = None
    invitationRules: Optional[InvitationRules] = None
    timeSlots: Optional[List[TimeSlotIn]] = None
    candidateId: Optional[int] = None
    pollType: Optional[str] = None


class PollVoteRequest(BaseModel):
    slotIds: Optional[List[int]] = None


class AvailabilityRequest(BaseModel):
    slots: Optional[List[UtcDateTime]] = None


class PollOrganize(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    eventType: Optional[str] = None
    eventSubtype: Optional[str] = None
    area: Optional[str] = None
    clientId: Optional[int] = None
    callLink: Optional[str] = None
    invitationRules: Optional[InvitationRules] = None
    slotId: Optional[int] = None
    slotStartTime: Optional[UtcDateTime] = None


def rules_dict(rules: Optional[InvitationRules]) -> Optional[Dict[str, Any]]:
    return rules.model_dump(exclude_none=True) if rules is not None else None
