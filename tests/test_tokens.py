from itsdangerous import URLSafeTimedSerializer
from starlette.requests import Request

from auth import (
    TokenClaims,
    TokenService,
    hash_password,
    verify_password,
)
from models import UserRole

CLAIMS = TokenClaims(user_id=7, email="ana@example.com", role=UserRole.admin)


def _request(headers: dict[str, str]) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
    }
    return Request(scope)


def test_issued_token_verifies_with_same_secret() -> None:
    service = TokenService("secret-a")
    result = service.verify(service.issue(CLAIMS))
    assert result.valid
    assert result.claims == CLAIMS


def test_token_from_other_secret_is_rejected() -> None:
    token = TokenService("secret-a").issue(CLAIMS)
    assert not TokenService("secret-b").verify(token).valid


def test_tampered_and_missing_tokens_fail_closed() -> None:
    service = TokenService("secret-a")
    token = service.issue(CLAIMS)
    assert not service.verify(token[:-2] + "xx").valid
    assert not service.verify("").valid
    assert not service.verify(None).valid
    assert not service.verify("not-a-token").valid


def test_signed_but_undecodable_payload_is_rejected() -> None:
    signer = URLSafeTimedSerializer("secret-a", salt="session-token").make_signer()
    token = signer.sign(b"not-json").decode("utf-8")

    result = TokenService("secret-a").verify(token)
    assert not result.valid
    assert result.claims is None


def test_token_expires_after_seven_days() -> None:
    issued_at = 1_700_000_000.0
    token = TokenService("secret-a", clock=lambda: issued_at).issue(CLAIMS)

    six_days = TokenService("secret-a", clock=lambda: issued_at + 6 * 86400)
    eight_days = TokenService("secret-a", clock=lambda: issued_at + 8 * 86400)

    assert six_days.verify(token).valid
    assert not eight_days.verify(token).valid


def test_authenticate_reads_cookie_and_bearer_header() -> None:
    service = TokenService("secret-a")
    token = service.issue(CLAIMS)

    from_cookie = service.authenticate(_request({"Cookie": f"token={token}"}))
    assert from_cookie.valid
    assert from_cookie.user_id == 7
    assert from_cookie.role == UserRole.admin

    from_header = service.authenticate(
        _request({"Authorization": f"Bearer {token}"})
    )
    assert from_header.valid
    assert from_header.email == "ana@example.com"


def test_authenticate_normalizes_failures() -> None:
    service = TokenService("secret-a")
    for headers in ({}, {"Cookie": "token=garbage"}, {"Authorization": "Basic abc"}):
        result = service.authenticate(_request(headers))
        assert not result.valid
        assert result.user_id is None
        assert result.email is None
        assert result.role is None


def test_password_hash_round_trip() -> None:
    digest = hash_password("hunter22")
    assert digest != "hunter22"
    assert verify_password(digest, "hunter22")
    assert not verify_password(digest, "hunter23")
    assert not verify_password("not-a-bcrypt-digest", "hunter22")
