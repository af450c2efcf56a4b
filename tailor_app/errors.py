"""Error taxonomy shared by the catalog, session, repository and order layers."""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional


class TailorError(Exception):
    """Base class for every error the storefront core raises on purpose."""

    code = "tailor_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, object]:
        return {"error": self.code, "message": self.message}


class ValidationError(TailorError, ValueError):
    """Field-level problem the user can fix by correcting input."""

    code = "validation_error"

    def __init__(self, message: str, fields: Optional[Mapping[str, str]] = None) -> None:
        super().__init__(message)
        self.fields: Dict[str, str] = dict(fields or {})

    def to_dict(self) -> Dict[str, object]:
        payload = super().to_dict()
        payload["fields"] = dict(self.fields)
        return payload


class InvalidProduct(ValidationError):
    code = "invalid_product"


class IneligibleFabric(ValidationError):
    code = "ineligible_fabric"


class InvalidOption(ValidationError):
    code = "invalid_option"


class InvalidMeasurements(ValidationError):
    code = "invalid_measurements"


class IncompleteSession(ValidationError):
    code = "incomplete_session"

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            f"Customization is incomplete; missing: {', '.join(self.missing)}",
            {name: "required" for name in self.missing},
        )


class InvalidStatusTransition(ValidationError):
    code = "invalid_status_transition"


class NotFound(TailorError, LookupError):
    """Referenced entity is absent or not visible to the caller."""

    code = "not_found"


class Unauthenticated(TailorError, PermissionError):
    code = "unauthenticated"


class Forbidden(TailorError, PermissionError):
    code = "forbidden"


class CollaboratorUnavailable(TailorError, ConnectionError):
    """The hosted backend could not be reached or timed out."""

    code = "collaborator_unavailable"

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


__all__ = [
    "TailorError",
    "ValidationError",
    "InvalidProduct",
    "IneligibleFabric",
    "InvalidOption",
    "InvalidMeasurements",
    "IncompleteSession",
    "InvalidStatusTransition",
    "NotFound",
    "Unauthenticated",
    "Forbidden",
    "CollaboratorUnavailable",
]
