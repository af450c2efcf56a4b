"""Pydantic schemas for measurement and checkout input, plus error translation."""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaError

from models.taxonomy import MEASUREMENT_RANGES, measurement_range_message
from tailor_app.errors import ValidationError

M = TypeVar("M", bound=BaseModel)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_RANGE_ERROR_TYPES = {"greater_than_equal", "less_than_equal"}


def _bounded(field_name: str, required: bool = True) -> Any:
    low, high = MEASUREMENT_RANGES[field_name]
    if required:
        return Field(ge=low, le=high)
    return Field(None, ge=low, le=high)


class MeasurementInput(BaseModel):
    """Contract for a complete measurement profile, values in centimetres."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    nickname: str = Field(min_length=1)
    neck: float = _bounded("neck")
    chest: float = _bounded("chest")
    waist: float = _bounded("waist")
    hips: float = _bounded("hips")
    arm_length: float = _bounded("arm_length")
    height: float = _bounded("height")
    shoulder: float = _bounded("shoulder")

    @field_validator("nickname")
    @classmethod
    def _strip_nickname(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("nickname is required")
        return stripped


class MeasurementPatch(BaseModel):
    """Partial update for a measurement profile; omitted fields are untouched."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    nickname: Optional[str] = None
    neck: Optional[float] = _bounded("neck", required=False)
    chest: Optional[float] = _bounded("chest", required=False)
    waist: Optional[float] = _bounded("waist", required=False)
    hips: Optional[float] = _bounded("hips", required=False)
    arm_length: Optional[float] = _bounded("arm_length", required=False)
    height: Optional[float] = _bounded("height", required=False)
    shoulder: Optional[float] = _bounded("shoulder", required=False)


class CustomerDetails(BaseModel):
    """Contact fields snapshotted onto an order at checkout."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2)
    email: str
    phone: str = Field(min_length=10)
    address: str = Field(min_length=10)
    notes: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        if not _EMAIL_PATTERN.match(value):
            raise ValueError("Please enter a valid email")
        return value.lower()


def schema_errors_to_fields(exc: SchemaError) -> Dict[str, str]:
    """Flatten Pydantic errors into a ``{field: message}`` mapping."""

    fields: Dict[str, str] = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        name = str(loc[0]) if loc else "__root__"
        if name in MEASUREMENT_RANGES and error.get("type") in _RANGE_ERROR_TYPES:
            message = measurement_range_message(name)
        else:
            message = str(error.get("msg", "invalid value"))
        fields.setdefault(name, message)
    return fields


def validate_payload(
    model: Type[M],
    data: Mapping[str, Any],
    message: str,
    error_cls: Type[ValidationError] = ValidationError,
) -> M:
    """Validate ``data`` against ``model`` raising the domain validation error."""

    try:
        return model.model_validate(dict(data))
    except SchemaError as exc:
        raise error_cls(message, schema_errors_to_fields(exc)) from exc


__all__ = [
    "MeasurementInput",
    "MeasurementPatch",
    "CustomerDetails",
    "schema_errors_to_fields",
    "validate_payload",
]
