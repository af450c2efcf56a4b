"""Per-user CRUD over saved measurement profiles."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from logic.validation import MeasurementInput, MeasurementPatch, validate_payload
from models.measurement import MeasurementProfile
from models.timestamps import format_timestamp, utc_now
from tailor_app.errors import NotFound, Unauthenticated
from tailor_app.logging_config import get_logger, log_event
from tools.backend import Backend
from tools.identity import AuthUser
from tools.observability import instrument_operation

LOGGER = get_logger(__name__)

TABLE = "measurements"


def _require_user(user: Optional[AuthUser]) -> AuthUser:
    if user is None:
        raise Unauthenticated("Sign in to manage measurements")
    return user


class MeasurementRepository:
    """Owner-scoped access to the ``measurements`` table.

    A profile that belongs to someone else is reported as missing, never as
    forbidden, so ids cannot be probed across accounts.
    """

    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    def _owned_row(self, profile_id: str, user: AuthUser) -> Dict[str, Any]:
        row = self.backend.select_one(TABLE, {"id": str(profile_id), "user_id": user.id})
        if row is None:
            raise NotFound(f"Measurement profile {profile_id} not found")
        return row

    @instrument_operation("measurements.list")
    def list(self, user: Optional[AuthUser]) -> List[MeasurementProfile]:
        owner = _require_user(user)
        rows = self.backend.select(TABLE, {"user_id": owner.id}, order_by="created_at", descending=True)
        return [MeasurementProfile.from_row(row) for row in rows]

    def get(self, profile_id: str, user: Optional[AuthUser]) -> MeasurementProfile:
        owner = _require_user(user)
        return MeasurementProfile.from_row(self._owned_row(profile_id, owner))

    @instrument_operation("measurements.create")
    def create(self, user: Optional[AuthUser], data: Mapping[str, Any]) -> MeasurementProfile:
        owner = _require_user(user)
        validated = validate_payload(MeasurementInput, data, "Measurements are invalid")
        row = self.backend.insert(TABLE, {**validated.model_dump(), "user_id": owner.id})
        log_event(LOGGER, logging.INFO, "measurement_created", profile_id=row["id"], user_id=owner.id)
        return MeasurementProfile.from_row(row)

    @instrument_operation("measurements.update")
    def update(
        self, profile_id: str, patch: Mapping[str, Any], user: Optional[AuthUser]
    ) -> MeasurementProfile:
        """Apply ``patch`` and revalidate the merged profile before writing."""

        owner = _require_user(user)
        existing = MeasurementProfile.from_row(self._owned_row(profile_id, owner))
        changes = validate_payload(MeasurementPatch, patch, "Measurements are invalid")
        merged = {**existing.as_input(), **changes.model_dump(exclude_unset=True, exclude_none=True)}
        validated = validate_payload(MeasurementInput, merged, "Measurements are invalid")
        rows = self.backend.update(
            TABLE,
            {"id": existing.id, "user_id": owner.id},
            {**validated.model_dump(), "updated_at": format_timestamp(utc_now())},
        )
        if not rows:
            raise NotFound(f"Measurement profile {profile_id} not found")
        return MeasurementProfile.from_row(rows[0])

    @instrument_operation("measurements.delete")
    def delete(self, profile_id: str, user: Optional[AuthUser]) -> None:
        owner = _require_user(user)
        removed = self.backend.delete(TABLE, {"id": str(profile_id), "user_id": owner.id})
        if not removed:
            raise NotFound(f"Measurement profile {profile_id} not found")
        log_event(LOGGER, logging.INFO, "measurement_deleted", profile_id=str(profile_id), user_id=owner.id)


__all__ = ["MeasurementRepository"]
