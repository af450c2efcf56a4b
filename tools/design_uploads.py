"""Durable storage for customer design artifacts.

Designs are uploaded first and referenced afterwards: an order may only carry a
reference that the store confirms exists.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import Optional

import requests

from tailor_app.errors import CollaboratorUnavailable, ValidationError
from tailor_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)

MAX_DESIGN_BYTES = 10 * 1024 * 1024
LOCAL_SCHEME = "design://"
_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


def check_design_upload(filename: str, content: bytes, content_type: str) -> None:
    """Raise :class:`ValidationError` unless the upload is an image of at most 10 MB."""

    if not (content_type or "").lower().startswith("image/"):
        raise ValidationError("Design must be an image", {"design_upload": "Only image files are accepted"})
    if not content:
        raise ValidationError("Design file is empty", {"design_upload": "File is empty"})
    if len(content) > MAX_DESIGN_BYTES:
        raise ValidationError("Design file is too large", {"design_upload": "File must be 10 MB or smaller"})
    if not filename:
        raise ValidationError("Design file needs a name", {"design_upload": "File name is required"})


def _object_name(filename: str, content: bytes) -> str:
    digest = hashlib.sha256(content).hexdigest()[:16]
    safe = _SAFE_NAME.sub("-", Path(filename).name).strip("-") or "design"
    return f"{digest}-{safe}"


class DesignUploadStore:
    """Interface for design artifact storage."""

    def upload(self, filename: str, content: bytes, content_type: str) -> str:
        raise NotImplementedError

    def exists(self, reference: str) -> bool:
        raise NotImplementedError


class LocalDesignUploadStore(DesignUploadStore):
    """Filesystem-backed store used in demo mode."""

    def __init__(self, base_dir: str | Path = "data/designs") -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, reference: str) -> Optional[Path]:
        if not reference.startswith(LOCAL_SCHEME):
            return None
        name = reference[len(LOCAL_SCHEME):]
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            return None
        return self.base_dir / name

    def upload(self, filename: str, content: bytes, content_type: str) -> str:
        check_design_upload(filename, content, content_type)
        name = _object_name(filename, content)
        (self.base_dir / name).write_bytes(content)
        log_event(LOGGER, logging.INFO, "design_uploaded", object_name=name, size=len(content))
        return f"{LOCAL_SCHEME}{name}"

    def exists(self, reference: str) -> bool:
        path = self._path(reference or "")
        return bool(path and path.is_file())


class RestDesignUploadStore(DesignUploadStore):
    """Hosted object storage bucket reached over HTTPS."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        bucket: str = "designs",
        timeout_seconds: float = 5.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout_seconds = timeout_seconds
        self.http = http or requests.Session()

    def _public_prefix(self) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/"

    def _headers(self, content_type: Optional[str] = None) -> dict:
        headers = {"apikey": self.api_key, "Authorization": f"Bearer {self.api_key}"}
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def upload(self, filename: str, content: bytes, content_type: str) -> str:
        check_design_upload(filename, content, content_type)
        name = _object_name(filename, content)
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{name}"
        try:
            response = self.http.post(
                url,
                data=content,
                headers={**self._headers(content_type), "x-upsert": "true"},
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise CollaboratorUnavailable("Design storage unreachable") from exc
        if response.status_code >= 500:
            raise CollaboratorUnavailable("Design storage error")
        if response.status_code >= 400:
            raise ValidationError("Design upload rejected", {"design_upload": response.text or "rejected"})
        log_event(LOGGER, logging.INFO, "design_uploaded", object_name=name, size=len(content))
        return self._public_prefix() + name

    def exists(self, reference: str) -> bool:
        if not reference or not reference.startswith(self._public_prefix()):
            return False
        try:
            response = self.http.head(reference, headers=self._headers(), timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            raise CollaboratorUnavailable("Design storage unreachable") from exc
        if response.status_code >= 500:
            raise CollaboratorUnavailable("Design storage error")
        return response.status_code == 200


__all__ = [
    "MAX_DESIGN_BYTES",
    "check_design_upload",
    "DesignUploadStore",
    "LocalDesignUploadStore",
    "RestDesignUploadStore",
]
