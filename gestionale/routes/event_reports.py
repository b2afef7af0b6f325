from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload

from ..authentication import get_current_user
from ..authorize import can, enforce_owner_or_admin
from ..Database import get_db
from ..Models import Event, EventReport
from ..schemas import ReportContent
from ..serializers import report_out

router = APIRouter(prefix="/events", tags=["Event reports"])


def _get_event(db: Session, event_id: int) -> Event:
    row = db.query(Event).filter(Event.event_id == event_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Event not found")
    return row


def _get_report(db: Session, event_id: int, report_id: int) -> EventReport:
    row = (
        db.query(EventReport)
        .options(joinedload(EventReport.creator))
        .filter(EventReport.report_id == report_id, EventReport.event_id == event_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Report not found")
    return row


def _content(payload: ReportContent) -> str:
    if not payload.reportContent or not payload.reportContent.strip():
        raise HTTPException(status_code=400, detail="Report content is required")
    return payload.reportContent


@router.get("/{event_id}/reports")
def list_reports(event_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    _get_event(db, event_id)
    rows = (
        db.query(EventReport)
        .options(joinedload(EventReport.creator))
        .filter(EventReport.event_id == event_id)
        .order_by(EventReport.created_at.desc())
        .all()
    )
    return [report_out(r) for r in rows]


@router.post("/{event_id}/reports", status_code=status.HTTP_201_CREATED)
def create_report(event_id: int, payload: ReportContent, current=Depends(get_current_user), db: Session = Depends(get_db)):
    content = _content(payload)
    event = _get_event(db, event_id)
    if not (can(current, "reports.create") or event.creator_id == current["user_id"]):
        raise HTTPException(status_code=403, detail="You are not allowed to write reports for this event")

    row = EventReport(event_id=event_id, creator_user_id=current["user_id"], report_content=content)
    db.add(row)
    db.commit()
    return report_out(_get_report(db, event_id, row.report_id))


@router.put("/{event_id}/reports/{report_id}")
def update_report(
    event_id: int,
    report_id: int,
    payload: ReportContent,
    current=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    content = _content(payload)
    row = _get_report(db, event_id, report_id)
    enforce_owner_or_admin(current, row.creator_user_id, "You are not allowed to edit this report")

    row.report_content = content
    row.updated_at = datetime.utcnow()
    db.commit()
    return report_out(_get_report(db, event_id, report_id))


@router.delete("/{event_id}/reports/{report_id}")
def delete_report(event_id: int, report_id: int, current=Depends(get_current_user), db: Session = Depends(get_db)):
    row = _get_report(db, event_id, report_id)
    enforce_owner_or_admin(current, row.creator_user_id, "You are not allowed to delete this report")
    db.delete(row)
    db.commit()
    return {"message": "Report deleted successfully"}
