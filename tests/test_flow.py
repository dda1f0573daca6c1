"""Use-case tests for the registration, login and retrieval flow."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest

from identity.errors import InternalError
from identity.flow import (
    INVALID_CREDENTIALS_MESSAGE,
    INVALID_TOKEN_MESSAGE,
    MISSING_TOKEN_MESSAGE,
    AuthFlow,
    Conflict,
    Created,
    Forbidden,
    InternalFailure,
    LoggedIn,
    NotFound,
    Retrieved,
    Unauthorized,
    extract_bearer_token,
)
from identity.passwords import CredentialHasher
from identity.registry import UserRegistry
from identity.tokens import TokenService

SIGNING_KEY = "flow-tests-signing-key-0123456789abcdef012345"
EMAIL = "a@x.com"
PASSWORD = "secret123"


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(scope="module")
def hasher() -> CredentialHasher:
    return CredentialHasher(rounds=4)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def tokens(clock: FakeClock) -> TokenService:
    return TokenService(SIGNING_KEY, clock=clock)


@pytest.fixture()
def flow(hasher: CredentialHasher, tokens: TokenService) -> AuthFlow:
    return AuthFlow(UserRegistry(), hasher, tokens)


def _login_token(flow: AuthFlow, email: str = EMAIL, password: str = PASSWORD) -> str:
    result = flow.login(email, password)
    assert isinstance(result, LoggedIn)
    return result.token


def test_register_creates_user_without_hash(flow: AuthFlow) -> None:
    result = flow.register(EMAIL, "A", PASSWORD)

    assert isinstance(result, Created)
    assert result.status_code == 201
    assert result.body() == {"id": result.user.id, "email": EMAIL, "name": "A"}
    stored = flow.registry.find_by_id(result.user.id)
    assert stored is not None
    assert stored.password_hash != PASSWORD


def test_register_twice_conflicts(flow: AuthFlow) -> None:
    assert isinstance(flow.register(EMAIL, "A", PASSWORD), Created)

    again = flow.register(EMAIL.upper(), "B", "other-password")

    assert isinstance(again, Conflict)
    assert again.status_code == 409
    assert "message" in again.body()
    assert len(flow.registry) == 1


def test_concurrent_registration_yields_single_user(flow: AuthFlow) -> None:
    workers = 8
    barrier = threading.Barrier(workers)

    def attempt(index: int):
        barrier.wait()
        return flow.register("race@x.com", f"Racer {index}", PASSWORD)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(attempt, range(workers)))

    assert sum(isinstance(result, Created) for result in results) == 1
    assert sum(isinstance(result, Conflict) for result in results) == workers - 1


def test_hash_not_computed_for_known_email(flow: AuthFlow, hasher: CredentialHasher) -> None:
    flow.register(EMAIL, "A", PASSWORD)
    with mock.patch.object(hasher, "hash", wraps=hasher.hash) as spy:
        flow.register(EMAIL, "A", PASSWORD)
    spy.assert_not_called()


def test_register_accepts_any_non_empty_password(flow: AuthFlow) -> None:
    long_password = "p" * 72 + "-long-tail"
    nul_password = "bad\x00password"

    assert isinstance(flow.register(EMAIL, "A", nul_password), Created)
    assert isinstance(flow.register("b@x.com", "B", long_password), Created)

    assert isinstance(flow.login(EMAIL, nul_password), LoggedIn)
    assert isinstance(flow.login("b@x.com", long_password), LoggedIn)
    assert isinstance(flow.login("b@x.com", "p" * 72 + "-other-tail"), Unauthorized)


def test_register_hash_failure_is_internal(flow: AuthFlow, hasher: CredentialHasher) -> None:
    with mock.patch.object(hasher, "hash", side_effect=InternalError("boom")):
        result = flow.register(EMAIL, "A", PASSWORD)

    assert isinstance(result, InternalFailure)
    assert result.status_code == 500
    assert len(flow.registry) == 0


def test_login_issues_token_for_subject(flow: AuthFlow, tokens: TokenService) -> None:
    created = flow.register(EMAIL, "A", PASSWORD)
    assert isinstance(created, Created)

    result = flow.login(EMAIL, PASSWORD)

    assert isinstance(result, LoggedIn)
    assert result.status_code == 200
    assert result.token not in repr(result)
    claims = tokens.verify(result.token)
    assert claims.subject == created.user.id
    assert claims.email == EMAIL


def test_login_is_case_insensitive_on_email(flow: AuthFlow) -> None:
    flow.register(EMAIL, "A", PASSWORD)
    assert isinstance(flow.login("  A@X.COM", PASSWORD), LoggedIn)


def test_login_failures_are_indistinguishable(flow: AuthFlow, hasher: CredentialHasher) -> None:
    flow.register(EMAIL, "A", PASSWORD)

    with mock.patch.object(hasher, "verify_dummy", wraps=hasher.verify_dummy) as dummy:
        unknown = flow.login("nobody@x.com", PASSWORD)
    wrong = flow.login(EMAIL, "wrong")

    assert isinstance(unknown, Unauthorized)
    assert isinstance(wrong, Unauthorized)
    assert unknown.status_code == wrong.status_code == 401
    assert unknown.body() == wrong.body() == {"message": INVALID_CREDENTIALS_MESSAGE}
    assert unknown == wrong
    dummy.assert_called_once()


def test_login_signing_failure_is_internal(flow: AuthFlow, tokens: TokenService) -> None:
    flow.register(EMAIL, "A", PASSWORD)
    with mock.patch.object(tokens, "issue", side_effect=InternalError("boom")):
        result = flow.login(EMAIL, PASSWORD)
    assert isinstance(result, InternalFailure)


def test_retrieve_own_user(flow: AuthFlow) -> None:
    created = flow.register(EMAIL, "A", PASSWORD)
    assert isinstance(created, Created)
    token = _login_token(flow)

    result = flow.retrieve_protected_user(f"Bearer {token}", created.user.id)

    assert isinstance(result, Retrieved)
    assert result.status_code == 200
    assert result.body() == {"id": created.user.id, "email": EMAIL, "name": "A"}


@pytest.mark.parametrize("header", [None, "", "   "])
def test_retrieve_without_header(flow: AuthFlow, header) -> None:
    result = flow.retrieve_protected_user(header, "any-id")

    assert isinstance(result, Unauthorized)
    assert result.body() == {"message": MISSING_TOKEN_MESSAGE}


@pytest.mark.parametrize("header", ["Token abc", "Bearer", "Bearer a b", "abc"])
def test_retrieve_with_malformed_header(flow: AuthFlow, header: str) -> None:
    result = flow.retrieve_protected_user(header, "any-id")

    assert isinstance(result, Unauthorized)
    assert result.reason == "malformed_header"


def test_token_failures_share_one_message(flow: AuthFlow, clock: FakeClock) -> None:
    created = flow.register(EMAIL, "A", PASSWORD)
    assert isinstance(created, Created)
    user_id = created.user.id

    forged = TokenService("a-completely-different-signing-key-0123456789").issue(user_id, EMAIL)
    expired = _login_token(flow)
    clock.now = clock.now + timedelta(hours=24)

    results = {
        "signature_invalid": flow.retrieve_protected_user(f"Bearer {forged}", user_id),
        "expired": flow.retrieve_protected_user(f"Bearer {expired}", user_id),
        "malformed": flow.retrieve_protected_user("Bearer garbage", user_id),
    }

    for kind, result in results.items():
        assert isinstance(result, Unauthorized)
        assert result.reason == kind
        assert result.body() == {"message": INVALID_TOKEN_MESSAGE}


def test_retrieve_other_user_is_forbidden_by_default(flow: AuthFlow) -> None:
    flow.register(EMAIL, "A", PASSWORD)
    other = flow.register("b@x.com", "B", PASSWORD)
    assert isinstance(other, Created)
    token = _login_token(flow)

    result = flow.retrieve_protected_user(f"Bearer {token}", other.user.id)

    assert isinstance(result, Forbidden)
    assert result.status_code == 403


def test_retrieve_other_user_when_unrestricted(
    hasher: CredentialHasher, tokens: TokenService
) -> None:
    flow = AuthFlow(UserRegistry(), hasher, tokens, restrict_to_subject=False)
    flow.register(EMAIL, "A", PASSWORD)
    other = flow.register("b@x.com", "B", PASSWORD)
    assert isinstance(other, Created)
    token = _login_token(flow)

    result = flow.retrieve_protected_user(f"Bearer {token}", other.user.id)
    assert isinstance(result, Retrieved)
    assert result.user.email == "b@x.com"

    missing = flow.retrieve_protected_user(f"Bearer {token}", "no-such-user")
    assert isinstance(missing, NotFound)
    assert missing.status_code == 404


def test_retrieve_unknown_subject_is_not_found(flow: AuthFlow, tokens: TokenService) -> None:
    token = tokens.issue("ghost-id", "ghost@x.com")

    result = flow.retrieve_protected_user(f"Bearer {token}", "ghost-id")

    assert isinstance(result, NotFound)


def test_extract_bearer_token() -> None:
    assert extract_bearer_token("Bearer abc") == "abc"
    assert extract_bearer_token("bearer abc") == "abc"
    assert extract_bearer_token("Basic abc") is None
    assert extract_bearer_token("Bearer") is None
