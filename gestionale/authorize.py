from fastapi import HTTPException, status

ADMIN_ROLE = "Admin"

MANAGEMENT_ROLES = frozenset({"Manager", "CDA", "Admin", "Responsabile", "Presidente"})
SYSTEM_ROLES = frozenset({"Admin", "IT", "Responsabile"})

# action -> roles allowed to perform it
PERMISSIONS = {
    "candidates.view": MANAGEMENT_ROLES,
    "candidates.write": MANAGEMENT_ROLES,
    "candidates.delete": frozenset({"Admin", "CDA", "Presidente"}),
    "onboarding.start": MANAGEMENT_ROLES,
    "polls.create": MANAGEMENT_ROLES,
    "reports.create": MANAGEMENT_ROLES,
    "events.cross_area_call": frozenset({"Presidente", "Admin"}),
    "users.manage": SYSTEM_ROLES,
    "projects.manage_any": SYSTEM_ROLES,
}

# roles that manage the projects of their own area
AREA_MANAGER_ROLES = frozenset({"IT", "Marketing", "Commerciale"})


def can(current_user: dict, action: str) -> bool:
    return current_user.get("role") in PERMISSIONS.get(action, frozenset())


def require_permission(action: str, detail: str = "Access denied"):
    def checker(current_user: dict):
        if not can(current_user, action):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return current_user

    return checker


def enforce_self_or_admin(current_user: dict, target_user_id: int) -> None:
    is_admin = can(current_user, "users.manage")
    is_self = current_user.get("user_id") == target_user_id
    if not (is_admin or is_self):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own profile")


def enforce_owner_or_admin(current_user: dict, owner_user_id: int, detail: str = "Owner permission required") -> None:
    if current_user.get("role") == ADMIN_ROLE:
        return
    if current_user.get("user_id") != owner_user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
