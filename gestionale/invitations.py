from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import insert
from sqlalchemy.orm import Session

from .Models import Participant, User

MANAGER_GROUP_ROLES = ("Manager", "Responsabile", "Presidente", "CDA", "Tesoreria", "Audit")

# group name (lower case) -> (User column, accepted values)
GROUPS = {
    "manager": ("role", MANAGER_GROUP_ROLES),
    "cda": ("role", ("CDA",)),
    "associati": ("role", ("Socio",)),
    "socio": ("role", ("Socio",)),
    "it": ("area", ("IT",)),
    "marketing": ("area", ("Marketing",)),
    "commerciale": ("area", ("Commerciale",)),
}


def _active_ids(db: Session, *criteria) -> List[int]:
    rows = db.query(User.user_id).filter(User.is_active.is_(True), *criteria).all()
    return [row.user_id for row in rows]


def expand_invites(db: Session, rules: Optional[Dict[str, Any]]) -> List[int]:
    # active users only, in order of first appearance
    if not rules:
        return []

    user_ids: Dict[int, None] = {}

    groups = rules.get("groups")
    if isinstance(groups, list):
        for group in groups:
            rule = GROUPS.get(str(group).lower())
            if rule is None:
                continue
            column, accepted = rule
            for user_id in _active_ids(db, getattr(User, column).in_(accepted)):
                user_ids.setdefault(user_id)

    individuals = rules.get("individuals")
    if isinstance(individuals, list):
        wanted = [user_id for user_id in individuals if user_id]
        if wanted:
            active = set(_active_ids(db, User.user_id.in_(wanted)))
            for user_id in wanted:
                if user_id in active:
                    user_ids.setdefault(user_id)

    area = rules.get("area")
    if area:
        for user_id in _active_ids(db, User.area == area):
            user_ids.setdefault(user_id)

    return list(user_ids)


def add_participants(db: Session, event_id: int, user_ids: Iterable[int], status: str = "pending") -> int:
    """Insert one participant row per distinct user with a single multi-row INSERT."""
    unique_ids = list(dict.fromkeys(user_ids))
    if not unique_ids:
        return 0
    db.execute(
        insert(Participant).values(
            [{"event_id": event_id, "user_id": user_id, "status": status} for user_id in unique_ids]
        )
    )
    return len(unique_ids)
