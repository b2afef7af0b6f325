from .Models import (
    Candidate,
    Client,
    Contract,
    Event,
    EventReport,
    Participant,
    Project,
    SchedulingPoll,
    Task,
    Todo,
    User,
)


def user_out(user: User, full: bool = True) -> dict:
    if not full:
        return {"id": user.user_id, "name": user.name, "area": user.area, "role": user.role}
    return {
        "id": user.user_id,
        "name": user.name,
        "email": user.email,
        "area": user.area,
        "role": user.role,
        "isActive": user.is_active,
        "lastSeen": user.last_seen,
        "createdAt": user.created_at,
    }


def client_out(client: Client) -> dict:
    return {
        "id": client.client_id,
        "name": client.name,
        "contactPerson": client.contact_person,
        "email": client.email,
        "phone": client.phone,
        "status": client.status,
        "area": client.area,
        "version": client.version,
        "createdAt": client.created_at,
    }


def todo_out(todo: Todo) -> dict:
    return {
        "id": todo.todo_id,
        "text": todo.text,
        "completed": todo.completed,
        "priority": todo.priority,
        "createdAt": todo.created_at,
    }


def project_out(project: Project, with_todos: bool = True) -> dict:
    data = {
        "id": project.project_id,
        "name": project.name,
        "clientId": project.client_id,
        "clientName": project.client.name if project.client else None,
        "area": project.area,
        "status": project.status,
        "version": project.version,
        "createdAt": project.created_at,
    }
    if with_todos:
        data["todos"] = [todo_out(todo) for todo in project.todos]
    return data


def task_out(task: Task) -> dict:
    return {
        "id": task.task_id,
        "projectId": task.project_id,
        "description": task.description,
        "status": task.status,
        "priority": task.priority,
        "assignedTo": task.assigned_to_user_id,
        "assignedToName": task.assignee.name if task.assignee else None,
        "createdAt": task.created_at,
        "updatedAt": task.updated_at,
    }


def contract_out(contract: Contract) -> dict:
    return {
        "id": contract.contract_id,
        "type": contract.type,
        "amount": float(contract.amount) if contract.amount is not None else None,
        "status": contract.status,
        "date": contract.date,
        "clientId": contract.client_id,
        "projectId": contract.project_id,
        "clientName": contract.client.name if contract.client else None,
        "projectName": contract.project.name if contract.project else None,
        "createdAt": contract.created_at,
    }


def candidate_out(candidate: Candidate) -> dict:
    return {
        "id": candidate.candidate_id,
        "name": candidate.name,
        "email": candidate.email,
        "cvUrl": candidate.cv_url,
        "status": candidate.status,
        "areaCompetenza": candidate.area_competenza,
        "createdAt": candidate.created_at,
        "updatedAt": candidate.updated_at,
        "createdByName": candidate.creator.name if candidate.creator else None,
    }


def participant_out(participant: Participant) -> dict:
    return {
        "id": participant.participant_id,
        "status": participant.status,
        "userId": participant.user_id,
        "userName": participant.user.name,
        "userEmail": participant.user.email,
    }


def event_out(event: Event, with_participants: bool = True) -> dict:
    data = {
        "id": event.event_id,
        "title": event.title,
        "description": event.description,
        "startTime": event.start_time,
        "endTime": event.end_time,
        "isCall": event.is_call,
        "callLink": event.call_link,
        "eventType": event.event_type,
        "eventSubtype": event.event_subtype,
        "area": event.area,
        "clientId": event.client_id,
        "clientName": event.client.name if event.client else None,
        "candidateId": event.candidate_id,
        "recurrenceType": event.recurrence_type,
        "recurrenceEndDate": event.recurrence_end_date,
        "creatorId": event.creator_id,
        "creatorName": event.creator.name if event.creator else None,
        "version": event.version,
        "createdAt": event.created_at,
    }
    if with_participants:
        data["participants"] = [participant_out(p) for p in event.participants]
    return data


def report_out(report: EventReport) -> dict:
    return {
        "id": report.report_id,
        "eventId": report.event_id,
        "creatorUserId": report.creator_user_id,
        "reportContent": report.report_content,
        "createdAt": report.created_at,
        "updatedAt": report.updated_at,
        "creatorName": report.creator.name if report.creator else None,
        "creatorEmail": report.creator.email if report.creator else None,
    }


def poll_out(poll: SchedulingPoll) -> dict:
    return {
        "id": poll.poll_id,
        "title": poll.title,
        "durationMinutes": poll.duration_minutes,
        "invitationRules": poll.invitation_rules,
        "status": poll.status,
        "finalEventId": poll.final_event_id,
        "candidateId": poll.candidate_id,
        "candidateName": poll.candidate.name if poll.candidate else None,
        "candidateEmail": poll.candidate.email if poll.candidate else None,
        "pollType": poll.poll_type,
        "creatorUserId": poll.creator_user_id,
        "creatorName": poll.creator.name if poll.creator else None,
        "creatorEmail": poll.creator.email if poll.creator else None,
        "createdAt": poll.created_at,
    }
