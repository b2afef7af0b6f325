import logging
from collections import defaultdict
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.orm import Session, joinedload

from ..authentication import get_current_user
from ..authorize import ADMIN_ROLE, can
from ..Database import atomic, get_db
from ..invitations import add_participants
from ..Models import (
    AvailabilityVote,
    Candidate,
    Event,
    Participant,
    PollTimeSlot,
    PollVote,
    SchedulingPoll,
    User,
)
from ..schemas import AvailabilityRequest, PollCreate, PollOrganize, PollVoteRequest, rules_dict
from ..serializers import event_out, participant_out, poll_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/polls", tags=["Polls"])

FIXED_SLOTS = "fixed_slots"
OPEN_AVAILABILITY = "open_availability"
POLL_OPEN = "open"
POLL_CLOSED = "closed"
INTERVIEW_EVENT_TYPE = "colloquio"


def _poll_query(db: Session):
    return db.query(SchedulingPoll).options(
        joinedload(SchedulingPoll.creator), joinedload(SchedulingPoll.candidate)
    )


def _get_poll(db: Session, poll_id: int) -> SchedulingPoll:
    row = _poll_query(db).filter(SchedulingPoll.poll_id == poll_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Poll not found")
    return row


def _is_owner_or_admin(current: dict, poll: SchedulingPoll) -> bool:
    return poll.creator_user_id == current["user_id"] or current.get("role") == ADMIN_ROLE


def _slot_out(slot: PollTimeSlot) -> dict:
    return {
        "id": slot.slot_id,
        "pollId": slot.poll_id,
        "startTime": slot.start_time,
        "endTime": slot.end_time,
        "createdAt": slot.created_at,
    }


def _availability_summary(db: Session, poll_id: int) -> list:
    rows = (
        db.query(AvailabilityVote.slot_start_time, func.count(AvailabilityVote.availability_id))
        .filter(AvailabilityVote.poll_id == poll_id)
        .group_by(AvailabilityVote.slot_start_time)
        .order_by(AvailabilityVote.slot_start_time.asc())
        .all()
    )
    return [{"slotStartTime": start, "count": count} for start, count in rows]


def poll_detail(db: Session, poll: SchedulingPoll, user_id: int) -> dict:
    data = poll_out(poll)

    if poll.poll_type == FIXED_SLOTS:
        slots = db.query(PollTimeSlot).filter(PollTimeSlot.poll_id == poll.poll_id).order_by(PollTimeSlot.start_time.asc()).all()
        votes = (
            db.query(PollVote, User)
            .join(User, PollVote.user_id == User.user_id)
            .join(PollTimeSlot, PollVote.slot_id == PollTimeSlot.slot_id)
            .filter(PollTimeSlot.poll_id == poll.poll_id)
            .order_by(PollVote.slot_id, User.name)
            .all()
        )
        by_slot = defaultdict(list)
        for vote, user in votes:
            by_slot[vote.slot_id].append(
                {"id": vote.vote_id, "userId": user.user_id, "userName": user.name, "userEmail": user.email}
            )
        data["slots"] = [dict(_slot_out(slot), votes=by_slot[slot.slot_id]) for slot in slots]
        return data

    mine = (
        db.query(AvailabilityVote.slot_start_time)
        .filter(AvailabilityVote.poll_id == poll.poll_id, AvailabilityVote.user_id == user_id)
        .order_by(AvailabilityVote.slot_start_time.asc())
        .all()
    )
    data["slots"] = []
    data["myAvailabilitySlots"] = [row.slot_start_time for row in mine]
    data["availabilitySummary"] = _availability_summary(db, poll.poll_id)
    return data


@router.get("")
def list_polls(
    poll_status: Optional[str] = Query(default=None, alias="status"),
    creator_id: Optional[int] = Query(default=None, alias="creatorId"),
    current=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    q = _poll_query(db)
    if poll_status:
        q = q.filter(SchedulingPoll.status == poll_status)
    if creator_id:
        q = q.filter(SchedulingPoll.creator_user_id == creator_id)
    return [poll_out(p) for p in q.order_by(SchedulingPoll.created_at.desc()).all()]


@router.get("/{poll_id}")
def get_poll(poll_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    return poll_detail(db, _get_poll(db, poll_id), current["user_id"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_poll(payload: PollCreate, current=Depends(get_current_user), db: Session = Depends(get_db)):
    poll_type = OPEN_AVAILABILITY if payload.pollType == OPEN_AVAILABILITY else FIXED_SLOTS
    if not payload.title or not payload.durationMinutes or payload.invitationRules is None:
        raise HTTPException(status_code=400, detail="Title, duration and invitation rules are required")
    if payload.durationMinutes < 0:
        raise HTTPException(status_code=400, detail="Duration must be a positive number of minutes")

    slots = payload.timeSlots or []
    if poll_type == FIXED_SLOTS:
        if not slots:
            raise HTTPException(status_code=400, detail="Fixed-slot polls need at least one time slot")
        if any(slot.endTime <= slot.startTime for slot in slots):
            raise HTTPException(status_code=400, detail="Every time slot must end after it starts")

    with atomic(db):
        if payload.candidateId and not db.query(Candidate.candidate_id).filter(Candidate.candidate_id == payload.candidateId).first():
            raise HTTPException(status_code=404, detail="Candidate not found")
        if not can(current, "polls.create"):
            raise HTTPException(status_code=403, detail="You are not allowed to create polls")

        poll = SchedulingPoll(
            title=payload.title,
            duration_minutes=payload.durationMinutes,
            invitation_rules=rules_dict(payload.invitationRules),
            creator_user_id=current["user_id"],
            candidate_id=payload.candidateId,
            poll_type=poll_type,
            status=POLL_OPEN,
        )
        db.add(poll)
        db.flush()

        if poll_type == FIXED_SLOTS:
            db.execute(
                insert(PollTimeSlot).values(
                    [{"poll_id": poll.poll_id, "start_time": s.startTime, "end_time": s.endTime} for s in slots]
                )
            )
        poll_id = poll.poll_id

    logger.info("User %s created %s poll %s", current["user_id"], poll_type, poll_id)
    return poll_detail(db, _get_poll(db, poll_id), current["user_id"])


@router.post("/{poll_id}/vote")
def vote(poll_id: int, payload: PollVoteRequest, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if payload.slotIds is None:
        raise HTTPException(status_code=400, detail="slotIds must be a list")
    slot_ids = list(dict.fromkeys(payload.slotIds))

    with atomic(db):
        poll = _get_poll(db, poll_id)
        if poll.status != POLL_OPEN:
            raise HTTPException(status_code=400, detail="The poll is closed")
        if poll.poll_type != FIXED_SLOTS:
            raise HTTPException(status_code=400, detail="This poll does not use fixed-slot voting")

        poll_slots = db.query(PollTimeSlot.slot_id).filter(PollTimeSlot.poll_id == poll_id)
        if slot_ids:
            found = poll_slots.filter(PollTimeSlot.slot_id.in_(slot_ids)).count()
            if found != len(slot_ids):
                raise HTTPException(status_code=400, detail="One or more slots do not belong to this poll")

        # a new ballot replaces the previous one entirely
        db.execute(
            delete(PollVote)
            .where(
                PollVote.user_id == current["user_id"],
                PollVote.slot_id.in_(select(PollTimeSlot.slot_id).where(PollTimeSlot.poll_id == poll_id)),
            )
            .execution_options(synchronize_session=False)
        )
        if slot_ids:
            db.execute(
                insert(PollVote).values([{"slot_id": slot_id, "user_id": current["user_id"]} for slot_id in slot_ids])
            )

    return {"message": "Vote recorded successfully", "votedSlots": len(slot_ids)}


@router.post("/{poll_id}/availability")
def save_availability(poll_id: int, payload: AvailabilityRequest, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if payload.slots is None:
        raise HTTPException(status_code=400, detail="slots must be a list")
    starts = list(dict.fromkeys(payload.slots))

    with atomic(db):
        poll = _get_poll(db, poll_id)
        if poll.status != POLL_OPEN:
            raise HTTPException(status_code=400, detail="The poll is closed")
        if poll.poll_type != OPEN_AVAILABILITY:
            raise HTTPException(status_code=400, detail="This poll does not collect open availability")

        db.execute(
            delete(AvailabilityVote)
            .where(AvailabilityVote.poll_id == poll_id, AvailabilityVote.user_id == current["user_id"])
            .execution_options(synchronize_session=False)
        )
        if starts:
            db.execute(
                insert(AvailabilityVote).values(
                    [{"poll_id": poll_id, "user_id": current["user_id"], "slot_start_time": start} for start in starts]
                )
            )

    return {"message": "Availability saved", "saved": len(starts)}


@router.get("/{poll_id}/heatmap")
def heatmap(poll_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    poll = _get_poll(db, poll_id)
    if poll.poll_type != OPEN_AVAILABILITY:
        raise HTTPException(status_code=400, detail="This poll does not collect open availability")
    if not _is_owner_or_admin(current, poll):
        raise HTTPException(status_code=403, detail="You are not allowed to view this heatmap")

    rows = (
        db.query(AvailabilityVote.slot_start_time, User)
        .join(User, AvailabilityVote.user_id == User.user_id)
        .filter(AvailabilityVote.poll_id == poll_id)
        .order_by(AvailabilityVote.slot_start_time.asc(), User.name.asc())
        .all()
    )
    grouped = {}
    for start, user in rows:
        grouped.setdefault(start, []).append({"userId": user.user_id, "userName": user.name, "userEmail": user.email})

    return {
        "pollId": poll_id,
        "durationMinutes": poll.duration_minutes,
        "slots": [
            {"slotStartTime": start, "availableUsers": len(users), "users": users}
            for start, users in grouped.items()
        ],
    }


@router.post("/{poll_id}/organize", status_code=status.HTTP_201_CREATED)
def organize(poll_id: int, payload: PollOrganize, current=Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.title:
        raise HTTPException(status_code=400, detail="Title is required")

    with atomic(db):
        poll = _get_poll(db, poll_id)
        if poll.status != POLL_OPEN:
            raise HTTPException(status_code=409, detail="The poll has already been organized")
        if not _is_owner_or_admin(current, poll):
            raise HTTPException(status_code=403, detail="You are not allowed to organize this poll")

        if poll.poll_type == FIXED_SLOTS:
            if not payload.slotId:
                raise HTTPException(status_code=400, detail="slotId is required for fixed-slot polls")
            slot = (
                db.query(PollTimeSlot)
                .filter(PollTimeSlot.slot_id == payload.slotId, PollTimeSlot.poll_id == poll_id)
                .first()
            )
            if not slot:
                raise HTTPException(status_code=404, detail="Slot not found")
            start, end = slot.start_time, slot.end_time
            voters = db.query(PollVote.user_id).filter(PollVote.slot_id == slot.slot_id).order_by(PollVote.vote_id).all()
            participant_ids = [row.user_id for row in voters]
        else:
            if not payload.slotStartTime:
                raise HTTPException(status_code=400, detail="slotStartTime is required for open-availability polls")
            start = payload.slotStartTime
            end = start + timedelta(minutes=poll.duration_minutes)
            available = (
                db.query(AvailabilityVote.user_id)
                .filter(AvailabilityVote.poll_id == poll_id, AvailabilityVote.slot_start_time == start)
                .order_by(AvailabilityVote.availability_id)
                .all()
            )
            if not available:
                raise HTTPException(status_code=400, detail="Nobody is available at the selected time")
            participant_ids = [row.user_id for row in available]

        event_type = INTERVIEW_EVENT_TYPE if poll.candidate_id else (payload.eventType or "generic")
        event = Event(
            title=payload.title,
            description=payload.description or "",
            start_time=start,
            end_time=end,
            event_type=event_type,
            event_subtype=payload.eventSubtype,
            area=payload.area,
            client_id=payload.clientId,
            candidate_id=poll.candidate_id,
            invitation_rules=rules_dict(payload.invitationRules) or poll.invitation_rules,
            recurrence_type="none",
            is_call=event_type == "call",
            call_link=payload.callLink,
            creator_id=current["user_id"],
        )
        db.add(event)
        db.flush()
        add_participants(db, event.event_id, participant_ids)

        # guarded on status so two concurrent organizers cannot both close the poll
        closed = db.execute(
            update(SchedulingPoll)
            .where(SchedulingPoll.poll_id == poll_id, SchedulingPoll.status == POLL_OPEN)
            .values(status=POLL_CLOSED, final_event_id=event.event_id)
            .execution_options(synchronize_session=False)
        )
        if closed.rowcount == 0:
            raise HTTPException(status_code=409, detail="The poll has already been organized")
        event_id = event.event_id
        candidate = poll.candidate

    logger.info("Poll %s organized into event %s with %d participant(s)", poll_id, event_id, len(participant_ids))
    if candidate is not None:
        # TODO: send the interview invitation once outbound mail is configured
        logger.info("Interview notification pending for %s at %s", candidate.email, start)

    event = (
        db.query(Event)
        .options(joinedload(Event.creator), joinedload(Event.client))
        .filter(Event.event_id == event_id)
        .first()
    )
    participants = (
        db.query(Participant)
        .options(joinedload(Participant.user))
        .filter(Participant.event_id == event_id)
        .all()
    )
    data = event_out(event, with_participants=False)
    data["participants"] = [participant_out(p) for p in participants]
    data["message"] = "Event created from poll"
    data["candidateNotified"] = candidate is not None
    return data
