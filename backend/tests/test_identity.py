import uuid

import pytest

from coderoom.core.identity import (
    AuthMiddleware,
    BearerTokenStrategy,
    Capability,
    GatewayHeaderStrategy,
    RequestIdentity,
    build_auth_middleware,
    extract_bearer_token,
    has_capability,
)
from coderoom.core.security import TokenCodec, token_codec
from coderoom.models.user import User
from coderoom.schemas.user import UserRole
from coderoom.services.session_service import session_service

GATEWAY_USER = "3b2f0c4e-1d7a-4a58-9f2e-6c1b8d0e5a77"


def _bearer(db, email="zoe@example.com"):
    pair = session_service.register(db, email, "password123")
    return {"Authorization": f"Bearer {pair.access_token}"}


def _gateway(user_id=GATEWAY_USER, role="TEACHER"):
    return {"X-User-Id": user_id, "X-User-Role": role}


def test_extract_bearer_token():
    assert extract_bearer_token({"Authorization": "Bearer abc"}) == "abc"
    assert extract_bearer_token({"authorization": "bearer abc"}) == "abc"
    assert extract_bearer_token({"Authorization": "Basic abc"}) is None
    assert extract_bearer_token({"Authorization": "Bearer "}) is None
    assert extract_bearer_token({}) is None


def test_bearer_strategy_loads_user(db):
    headers = _bearer(db)
    identity = BearerTokenStrategy(token_codec).resolve(headers, db)
    user = db.query(User).filter(User.email == "zoe@example.com").one()

    assert identity is not None
    assert identity.user_id == user.id
    assert identity.role is UserRole.STUDENT
    assert identity.email == "zoe@example.com"
    assert identity.is_root is False
    assert identity.source == "bearer"


def test_bearer_strategy_prefers_stored_role(db):
    headers = _bearer(db)
    user = db.query(User).filter(User.email == "zoe@example.com").one()
    user.role = UserRole.TEACHER.value
    db.commit()

    identity = BearerTokenStrategy(token_codec).resolve(headers, db)
    assert identity.role is UserRole.TEACHER


def test_bearer_strategy_ignores_inactive_user(db):
    headers = _bearer(db)
    user = db.query(User).filter(User.email == "zoe@example.com").one()
    user.is_active = False
    db.commit()

    assert BearerTokenStrategy(token_codec).resolve(headers, db) is None


def test_bearer_strategy_fails_open_on_bad_token(db):
    strategy = BearerTokenStrategy(token_codec)
    assert strategy.resolve({"Authorization": "Bearer garbage"}, db) is None

    foreign = TokenCodec("someone-elses-secret").issue_access_token(GATEWAY_USER, "x@example.com", "STUDENT")
    assert strategy.resolve({"Authorization": f"Bearer {foreign}"}, db) is None


def test_bearer_strategy_claims_only():
    token = token_codec.issue_access_token(GATEWAY_USER, "claims@example.com", UserRole.TEACHER)
    identity = BearerTokenStrategy(token_codec, load_user=False).resolve({"Authorization": f"Bearer {token}"}, None)
    assert identity == RequestIdentity(
        user_id=GATEWAY_USER, role=UserRole.TEACHER, email="claims@example.com", source="bearer"
    )


def test_bearer_strategy_rejects_non_uuid_subject():
    token = token_codec.issue_access_token("42", "claims@example.com", "STUDENT")
    headers = {"Authorization": f"Bearer {token}"}
    assert BearerTokenStrategy(token_codec, load_user=False).resolve(headers, None) is None


def test_gateway_strategy():
    identity = GatewayHeaderStrategy().resolve(_gateway())
    assert identity.user_id == GATEWAY_USER
    assert identity.role is UserRole.TEACHER
    assert identity.email is None
    assert identity.source == "gateway"


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"X-User-Id": GATEWAY_USER},
        {"X-User-Role": "STUDENT"},
        _gateway(role="ADMIN"),
        _gateway(user_id="not-a-uuid"),
    ],
)
def test_gateway_strategy_rejects_incomplete_headers(headers):
    assert GatewayHeaderStrategy().resolve(headers) is None


def test_middleware_without_gateway_trust_ignores_headers(db):
    middleware = build_auth_middleware(token_codec)
    assert middleware.authenticate(_gateway(), db) is None


def test_middleware_prefers_bearer_over_gateway(db):
    headers = dict(_bearer(db), **_gateway())
    identity = build_auth_middleware(token_codec, trust_gateway_headers=True).authenticate(headers, db)
    assert identity.source == "bearer"
    assert identity.email == "zoe@example.com"


def test_middleware_falls_back_to_gateway(db):
    headers = dict({"Authorization": "Bearer garbage"}, **_gateway())
    identity = build_auth_middleware(token_codec, trust_gateway_headers=True).authenticate(headers, db)
    assert identity.source == "gateway"
    assert identity.user_id == GATEWAY_USER


def test_middleware_with_no_strategies():
    assert AuthMiddleware([]).authenticate({"Authorization": "Bearer x"}) is None


def test_capabilities():
    student = RequestIdentity(user_id=str(uuid.uuid4()), role=UserRole.STUDENT)
    teacher = RequestIdentity(user_id=str(uuid.uuid4()), role=UserRole.TEACHER)
    root = RequestIdentity(user_id=str(uuid.uuid4()), role=UserRole.TEACHER, is_root=True)

    assert has_capability(student, Capability.STUDENT)
    assert not has_capability(student, Capability.TEACHER)
    assert not has_capability(student, Capability.ROOT)

    assert has_capability(teacher, Capability.STUDENT)
    assert has_capability(teacher, UserRole.TEACHER)
    assert not has_capability(teacher, Capability.ROOT)

    assert all(has_capability(root, cap) for cap in Capability)
    assert not has_capability(None, Capability.STUDENT)

    assert teacher.capabilities == [Capability.STUDENT, Capability.TEACHER]
    assert root.capabilities == [Capability.STUDENT, Capability.TEACHER, Capability.ROOT]
