"""Identity provider and design upload store tests."""

from pathlib import Path
from typing import List, Optional

import pytest

from fakes import FakeHTTP, FakeResponse
from tailor_app.errors import CollaboratorUnavailable, Unauthenticated, ValidationError
from tools.backend import SQLiteBackend
from tools.design_uploads import MAX_DESIGN_BYTES, LocalDesignUploadStore, RestDesignUploadStore
from tools.identity import AuthUser, DemoIdentityProvider, RestIdentityProvider


def test_demo_admin_and_customer_sign_in(backend: SQLiteBackend) -> None:
    identity = DemoIdentityProvider(backend)

    admin = identity.sign_in("Admin@eTailor.com", "admin123456")
    assert admin.user.is_admin
    with pytest.raises(Unauthenticated):
        identity.sign_in("admin@etailor.com", "wrong")

    customer = identity.sign_in("asha@example.com", "anything")
    assert customer.user.role == "customer"
    assert identity.current_user() == customer.user
    assert identity.sign_in("asha@example.com", "again").user.id == customer.user.id
    assert backend.select_one("profiles", {"id": customer.user.id})["role"] == "customer"


def test_demo_tokens_and_sign_out(backend: SQLiteBackend) -> None:
    identity = DemoIdentityProvider(backend)
    changes: List[Optional[AuthUser]] = []
    unsubscribe = identity.on_auth_change(changes.append)

    first = identity.sign_in("asha@example.com", "pw")
    second = identity.sign_in("ravi@example.com", "pw")
    assert identity.user_for_token(first.access_token) == first.user

    identity.sign_out(first.access_token)
    assert identity.user_for_token(first.access_token) is None
    assert identity.current_user() == second.user

    identity.sign_out()
    assert identity.current_user() is None
    assert changes == [first.user, second.user, None]

    unsubscribe()
    identity.sign_in("asha@example.com", "pw")
    assert len(changes) == 3


def test_demo_sign_up_validates(backend: SQLiteBackend) -> None:
    identity = DemoIdentityProvider(backend)
    with pytest.raises(ValidationError):
        identity.sign_up("not-an-email", "secret1", "Asha")
    with pytest.raises(ValidationError):
        identity.sign_up("asha@example.com", "123", "Asha")

    session = identity.sign_up("asha@example.com", "secret1", "Asha Rao")
    assert session.user.full_name == "Asha Rao"


def test_rest_identity_reads_role_from_profiles(backend: SQLiteBackend) -> None:
    backend.insert("profiles", {"id": "u-admin", "email": "boss@example.com", "role": "admin"})
    http = FakeHTTP(
        [
            FakeResponse(200, {"access_token": "tok", "user": {"id": "u-admin", "email": "boss@example.com"}}),
            FakeResponse(200, {"id": "u-admin", "email": "boss@example.com"}),
            FakeResponse(401, {"message": "expired"}),
        ]
    )
    identity = RestIdentityProvider("https://backend.example.com", "anon", backend=backend, http=http)

    session = identity.sign_in("boss@example.com", "pw")
    assert session.user.is_admin
    assert http.calls[0]["url"].endswith("/auth/v1/token?grant_type=password")
    assert identity.user_for_token("tok").id == "u-admin"
    assert identity.user_for_token("stale") is None


def test_local_design_upload_contract(tmp_path: Path) -> None:
    store = LocalDesignUploadStore(tmp_path)

    reference = store.upload("my sketch.png", b"\x89PNG data", "image/png")
    assert reference.startswith("design://")
    assert store.exists(reference)
    assert not store.exists("design://missing.png")
    assert not store.exists("design://../escape")
    assert not store.exists("blob:http://localhost/abc")

    with pytest.raises(ValidationError):
        store.upload("notes.pdf", b"%PDF", "application/pdf")
    with pytest.raises(ValidationError):
        store.upload("huge.png", b"0" * (MAX_DESIGN_BYTES + 1), "image/png")


def test_rest_design_upload_and_exists() -> None:
    http = FakeHTTP([FakeResponse(200, {"Key": "designs/x"}), FakeResponse(200, text="ok"), FakeResponse(404, text="")])
    store = RestDesignUploadStore("https://backend.example.com", "anon", bucket="designs", http=http)

    reference = store.upload("sketch.png", b"\x89PNG", "image/png")
    assert reference.startswith("https://backend.example.com/storage/v1/object/public/designs/")
    assert store.exists(reference)
    assert not store.exists(reference)
    assert not store.exists("https://elsewhere.example.com/x.png")

    failing = RestDesignUploadStore("https://backend.example.com", "anon", http=FakeHTTP([FakeResponse(502, text="")]))
    with pytest.raises(CollaboratorUnavailable):
        failing.upload("sketch.png", b"\x89PNG", "image/png")
