import logging
from datetime import datetime
from typing import List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy import delete, update
from sqlalchemy.orm import Session, joinedload, selectinload

from ..authentication import get_current_user
from ..authorize import can, enforce_owner_or_admin
from ..concurrency import coalesce_patch, versioned_update
from ..Database import atomic, get_db
from ..invitations import add_participants, expand_invites
from ..Models import Event, EventReport, Participant, SchedulingPoll, User
from ..schemas import EventCreate, EventUpdate, RsvpRequest, UtcDateTime, rules_dict
from ..serializers import event_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])

RECURRENCE_STEPS = {
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
}
RSVP_STATUSES = ("accepted", "declined")
MAX_OCCURRENCES = 520
EVENT_FIELDS = {
    "title": "title",
    "description": "description",
    "startTime": "start_time",
    "endTime": "end_time",
    "isCall": "is_call",
    "callLink": "call_link",
    "eventType": "event_type",
    "eventSubtype": "event_subtype",
    "area": "area",
    "clientId": "client_id",
}


def recurrence_dates(
    start: datetime, end: datetime, recurrence_type: str, until: Optional[datetime]
) -> List[Tuple[datetime, datetime]]:
    """Expand one occurrence into every occurrence up to ``until`` (inclusive)."""
    step = RECURRENCE_STEPS.get(recurrence_type)
    if step is None or until is None:
        return [(start, end)]

    duration = end - start
    dates = []
    n = 0
    current = start
    while current <= until and len(dates) <= MAX_OCCURRENCES:
        dates.append((current, current + duration))
        n += 1
        # step from the original start so month-end days do not drift
        current = start + step * n
    return dates or [(start, end)]


def _with_extras(description: str, lines: List[str]) -> str:
    if not lines:
        return description
    extra = "\n".join(lines)
    return f"{description}\n\n{extra}" if description else extra


def build_description(payload: EventCreate, event_type: str) -> str:
    description = payload.description or ""
    if event_type == "formazione":
        lines = []
        if payload.trainerName:
            lines.append(f"Relatore: {payload.trainerName}")
        if payload.level:
            lines.append(f"Livello: {payload.level}")
        if payload.prerequisites:
            lines.append(f"Prerequisiti: {payload.prerequisites}")
        return _with_extras(description, lines)
    if event_type == "networking":
        lines = []
        if payload.location:
            lines.append(f"Location: {payload.location}")
        if payload.externalLink:
            lines.append(f"Link: {payload.externalLink}")
        return _with_extras(description, lines)
    return description


def _event_query(db: Session):
    return db.query(Event).options(
        joinedload(Event.creator),
        joinedload(Event.client),
        selectinload(Event.participants).joinedload(Participant.user),
    )


def _get_event(db: Session, event_id: int) -> Event:
    row = _event_query(db).filter(Event.event_id == event_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Event not found")
    return row


@router.get("")
def list_events(
    start_date: Optional[UtcDateTime] = Query(default=None, alias="startDate"),
    end_date: Optional[UtcDateTime] = Query(default=None, alias="endDate"),
    is_call: Optional[bool] = Query(default=None, alias="isCall"),
    current=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    q = _event_query(db)
    if start_date:
        q = q.filter(Event.start_time >= start_date)
    if end_date:
        q = q.filter(Event.end_time <= end_date)
    if is_call is not None:
        q = q.filter(Event.is_call.is_(is_call))
    return [event_out(e) for e in q.order_by(Event.start_time.asc()).all()]


@router.get("/my/upcoming")
def my_upcoming(current=Depends(get_current_user), db: Session = Depends(get_db)):
    rows = (
        db.query(Event, Participant.status)
        .join(Participant, Participant.event_id == Event.event_id)
        .options(joinedload(Event.creator), joinedload(Event.client))
        .filter(Participant.user_id == current["user_id"], Event.start_time > datetime.utcnow())
        .order_by(Event.start_time.asc())
        .all()
    )
    result = []
    for event, my_status in rows:
        data = event_out(event, with_participants=False)
        data["myStatus"] = my_status
        result.append(data)
    return result


@router.get("/{event_id}")
def get_event(event_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    return event_out(_get_event(db, event_id))


@router.get("/{event_id}/participants")
def list_participants(event_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    rows = (
        db.query(Participant, User)
        .join(User, Participant.user_id == User.user_id)
        .filter(Participant.event_id == event_id)
        .order_by(User.name.asc())
        .all()
    )
    return [
        {
            "id": participant.participant_id,
            "status": participant.status,
            "userId": user.user_id,
            "userName": user.name,
            "userEmail": user.email,
            "area": user.area,
        }
        for participant, user in rows
    ]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_event(payload: EventCreate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.title or not payload.startTime or not payload.endTime:
        raise HTTPException(status_code=400, detail="Title, start time and end time are required")
    if payload.endTime <= payload.startTime:
        raise HTTPException(status_code=400, detail="End time must be after start time")
    if payload.eventSubtype == "call_reparto" and payload.area:
        if payload.area != current.get("area") and not can(current, "events.cross_area_call"):
            raise HTTPException(status_code=403, detail="Not allowed to create calls for other departments")

    event_type = payload.eventType or ("call" if payload.isCall else "generic")
    is_call = payload.isCall if payload.isCall is not None else event_type == "call"
    recurrence_type = payload.recurrenceType or "none"
    rules = rules_dict(payload.invitationRules)
    description = build_description(payload, event_type)
    occurrences = recurrence_dates(payload.startTime, payload.endTime, recurrence_type, payload.recurrenceEndDate)
    if len(occurrences) > MAX_OCCURRENCES:
        raise HTTPException(status_code=400, detail=f"A recurring event cannot exceed {MAX_OCCURRENCES} occurrences")

    created_ids = []
    with atomic(db):
        if rules:
            invitees = expand_invites(db, rules)
        else:
            invitees = payload.participantIds or []

        for start, end in occurrences:
            event = Event(
                title=payload.title,
                description=description,
                start_time=start,
                end_time=end,
                event_type=event_type,
                event_subtype=payload.eventSubtype,
                area=payload.area,
                client_id=payload.clientId,
                invitation_rules=rules,
                recurrence_type=recurrence_type,
                recurrence_end_date=payload.recurrenceEndDate,
                is_call=is_call,
                call_link=payload.callLink,
                creator_id=current["user_id"],
            )
            db.add(event)
            db.flush()
            add_participants(db, event.event_id, invitees)
            created_ids.append(event.event_id)

    logger.info("User %s created %d event(s) with %d invitee(s)", current["user_id"], len(created_ids), len(invitees))
    events = [event_out(_get_event(db, event_id)) for event_id in created_ids]
    if len(events) > 1:
        return {"message": f"{len(events)} events created successfully", "events": events}
    return events[0]


@router.put("/{event_id}")
def update_event(event_id: int, payload: EventUpdate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    event = _get_event(db, event_id)
    enforce_owner_or_admin(current, event.creator_id, "You are not allowed to edit this event")

    values = coalesce_patch({EVENT_FIELDS[k]: v for k, v in payload.model_dump(exclude={"expectedVersion"}).items()})
    start = values.get("start_time", event.start_time)
    end = values.get("end_time", event.end_time)
    if end <= start:
        raise HTTPException(status_code=400, detail="End time must be after start time")

    versioned_update(
        db,
        Event,
        Event.event_id,
        event_id,
        values,
        payload.expectedVersion,
        serialize=lambda e: event_out(e, with_participants=False),
        label="Event",
    )
    return event_out(_get_event(db, event_id))


@router.delete("/{event_id}")
def delete_event(event_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    with atomic(db):
        event = _get_event(db, event_id)
        enforce_owner_or_admin(current, event.creator_id, "You are not allowed to delete this event")
        for model in (Participant, EventReport):
            db.execute(delete(model).where(model.event_id == event_id).execution_options(synchronize_session=False))
        db.execute(
            update(SchedulingPoll)
            .where(SchedulingPoll.final_event_id == event_id)
            .values(final_event_id=None)
            .execution_options(synchronize_session=False)
        )
        db.execute(delete(Event).where(Event.event_id == event_id).execution_options(synchronize_session=False))
    return {"message": "Event deleted successfully"}


@router.post("/{event_id}/rsvp")
def rsvp(event_id: int, payload: RsvpRequest, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if payload.status not in RSVP_STATUSES:
        raise HTTPException(status_code=400, detail='Status must be "accepted" or "declined"')
    if not db.query(Event.event_id).filter(Event.event_id == event_id).first():
        raise HTTPException(status_code=404, detail="Event not found")

    message = f"RSVP {payload.status} successfully"
    participant = (
        db.query(Participant)
        .filter(Participant.event_id == event_id, Participant.user_id == current["user_id"])
        .first()
    )
    if participant:
        participant.status = payload.status
        db.commit()
        return {"message": message, "participant": {"id": participant.participant_id, "status": participant.status}}

    participant = Participant(event_id=event_id, user_id=current["user_id"], status=payload.status)
    db.add(participant)
    db.commit()
    body = {"message": message, "participant": {"id": participant.participant_id, "status": participant.status}}
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=body)
