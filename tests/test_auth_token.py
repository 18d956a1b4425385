import asyncio
from datetime import timedelta
from types import SimpleNamespace

import pytest
from jose import jwt

from app import auth_token
from app.auth_token import (
    Identity,
    create_session_token,
    extract_session_token,
    get_current_identity,
    require_admin,
    resolve_identity,
    verify_session_token,
)
from app.errors import Forbidden, Unauthenticated


def test_extract_session_token_finds_named_cookie():
    header = "theme=dark; sid=abc.def.ghi; other=1"
    assert extract_session_token(header) == "abc.def.ghi"


def test_extract_session_token_missing_cookie():
    assert extract_session_token(None) is None
    assert extract_session_token("") is None
    assert extract_session_token("theme=dark") is None
    assert extract_session_token("sid=") is None


def test_valid_token_resolves_identity():
    token = create_session_token(42)
    assert resolve_identity(f"sid={token}") == Identity(user_id=42, is_admin=False)


def test_admin_claim_is_carried():
    identity = verify_session_token(create_session_token(7, is_admin=True))
    assert identity == Identity(user_id=7, is_admin=True)


def test_expired_token_is_rejected():
    token = create_session_token(42, expires_in=timedelta(seconds=-5))
    assert verify_session_token(token) is None


def test_tampered_token_is_rejected():
    token = create_session_token(42)
    header, payload, signature = token.split(".")
    flipped = signature[:-2] + ("AA" if signature[-2:] != "AA" else "BB")
    assert verify_session_token(f"{header}.{payload}.{flipped}") is None


def test_token_signed_with_another_secret_is_rejected():
    forged = jwt.encode({"user_id": 1, "is_admin": True}, "not-the-secret", algorithm=auth_token.ALGORITHM)
    assert verify_session_token(forged) is None


def test_non_numeric_subject_is_rejected():
    token = jwt.encode({"sub": "alice"}, auth_token.SECRET_KEY, algorithm=auth_token.ALGORITHM)
    assert verify_session_token(token) is None


def test_sub_claim_is_accepted_as_user_id():
    token = jwt.encode({"sub": "9"}, auth_token.SECRET_KEY, algorithm=auth_token.ALGORITHM)
    assert verify_session_token(token) == Identity(user_id=9)


def test_get_current_identity_requires_a_token():
    with pytest.raises(Unauthenticated):
        asyncio.run(get_current_identity(None))
    with pytest.raises(Unauthenticated):
        asyncio.run(get_current_identity("garbage"))


def test_require_admin_accepts_role_or_claim():
    admin_by_role = SimpleNamespace(id=1, role="admin")
    player = SimpleNamespace(id=2, role="player")

    assert asyncio.run(require_admin(Identity(1), admin_by_role)) is admin_by_role
    assert asyncio.run(require_admin(Identity(2, is_admin=True), player)) is player
    with pytest.raises(Forbidden):
        asyncio.run(require_admin(Identity(2), player))
