import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class ConcurrentModificationError(Exception):
    def __init__(self, current_version: int, expected_version: int, server_data: Dict[str, Any], message: str):
        super().__init__(message)
        self.current_version = current_version
        self.expected_version = expected_version
        self.server_data = server_data
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "CONCURRENT_MODIFICATION",
            "message": self.message,
            "currentVersion": self.current_version,
            "expectedVersion": self.expected_version,
            "serverData": self.server_data,
        }


def coalesce_patch(values: Dict[str, Any]) -> Dict[str, Any]:
    # None means "leave unchanged"
    return {key: value for key, value in values.items() if value is not None}


def versioned_update(
    db: Session,
    model,
    pk_column,
    row_id: int,
    values: Dict[str, Any],
    expected_version: Optional[int],
    serialize: Callable[[Any], Dict[str, Any]],
    label: str,
):
    # no expected_version means last write wins
    stmt = update(model).where(pk_column == row_id)
    if expected_version is not None:
        stmt = stmt.where(model.version == expected_version)
    stmt = stmt.values(**values, version=model.version + 1, updated_at=datetime.utcnow())

    result = db.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        db.rollback()
        current = db.query(model).filter(pk_column == row_id).first()
        if current is None:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        logger.info(
            "Version conflict on %s %s: expected %s, found %s",
            label, row_id, expected_version, current.version,
        )
        raise ConcurrentModificationError(
            current_version=current.version,
            expected_version=expected_version,
            server_data=serialize(current),
            message=f"{label} was modified by another user. Reload to see the changes.",
        )

    db.commit()
    return db.query(model).populate_existing().filter(pk_column == row_id).first()
