"""Measurement profile data model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from models.taxonomy import MEASUREMENT_FIELDS
from models.timestamps import parse_timestamp


@dataclass(frozen=True)
class MeasurementProfile:
    """A saved set of body measurements belonging to one user."""

    id: str
    user_id: str
    nickname: str
    neck: float
    chest: float
    waist: float
    hips: float
    arm_length: float
    height: float
    shoulder: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def values(self) -> Dict[str, float]:
        """Return the seven body measurements keyed by field name."""

        return {name: getattr(self, name) for name in MEASUREMENT_FIELDS}

    def as_input(self) -> Dict[str, Any]:
        return {"nickname": self.nickname, **self.values()}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "MeasurementProfile":
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            nickname=str(row.get("nickname") or ""),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
            **{name: float(row[name]) for name in MEASUREMENT_FIELDS},
        )


__all__ = ["MeasurementProfile"]
